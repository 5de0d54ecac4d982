"""Tests for ui_compare.core.raster and RasterImage: decoding, resampling, common size."""

import base64
import io
import logging

import numpy as np
import pytest
from imgutil import BLACK, WHITE, jpeg_bytes, png_bytes, solid, with_patch
from PIL import Image
from ui_compare.core.errors import DecodeError, InputError
from ui_compare.core.raster import (
    common_size,
    decode_base64_payload,
    decode_captured,
    decode_reference,
    resample,
    sniff_mime,
)
from ui_compare.core.types import FrameDimensions, RasterImage


class TestRasterImage:
    def test_reshapes_flat_buffer(self) -> None:
        img = RasterImage.from_bytes(2, 3, bytes(range(24)))
        assert img.pixels.shape == (3, 2, 4)
        assert img.size == (2, 3)
        assert img.tobytes() == bytes(range(24))

    def test_wrong_length_rejected(self) -> None:
        with pytest.raises(DecodeError, match='does not match'):
            RasterImage.from_bytes(2, 2, bytes(15))

    def test_zero_size_rejected(self) -> None:
        with pytest.raises(DecodeError):
            RasterImage(0, 5, np.zeros((5, 0, 4), dtype=np.uint8))

    def test_wrong_dtype_rejected(self) -> None:
        with pytest.raises(DecodeError):
            RasterImage(1, 1, np.zeros((1, 1, 4), dtype=np.float32))

    def test_pixels_are_read_only(self) -> None:
        img = solid(2, 2)
        with pytest.raises(ValueError):
            img.pixels[0, 0, 0] = 1


class TestBase64Payload:
    def test_plain(self) -> None:
        assert decode_base64_payload(base64.b64encode(b'abc').decode()) == b'abc'

    def test_data_url_prefix_stripped(self) -> None:
        payload = 'data:image/jpeg;base64,' + base64.b64encode(b'\xff\xd8xyz').decode()
        assert decode_base64_payload(payload) == b'\xff\xd8xyz'

    def test_bytes_payload(self) -> None:
        assert decode_base64_payload(base64.b64encode(b'png!')) == b'png!'

    def test_empty(self) -> None:
        with pytest.raises(InputError, match='missing or empty'):
            decode_base64_payload('')

    def test_prefix_only(self) -> None:
        with pytest.raises(InputError, match='missing or empty'):
            decode_base64_payload('data:image/png;base64,')

    def test_bad_padding(self) -> None:
        with pytest.raises(InputError, match='not valid base64'):
            decode_base64_payload('abc')


class TestDecodeCaptured:
    def test_png(self) -> None:
        img = decode_captured(png_bytes(with_patch(solid(4, 3), 0, 0, 1, 1, BLACK)))
        assert img.size == (4, 3)
        assert tuple(img.pixels[0, 0]) == BLACK
        assert tuple(img.pixels[2, 3]) == WHITE

    def test_rgb_png_gets_opaque_alpha(self) -> None:
        buf = io.BytesIO()
        Image.new('RGB', (3, 2), (10, 20, 30)).save(buf, format='PNG')
        img = decode_captured(buf.getvalue())
        assert tuple(img.pixels[1, 2]) == (10, 20, 30, 255)

    def test_jpeg_detected(self, caplog: pytest.LogCaptureFixture) -> None:
        data = jpeg_bytes(8, 6, (200, 40, 40))
        with caplog.at_level(logging.INFO, logger='ui_compare'):
            img = decode_captured(data)
        assert img.size == (8, 6)
        r, g, b, a = (int(v) for v in img.pixels[3, 4])
        assert abs(r - 200) < 10 and abs(g - 40) < 10 and abs(b - 40) < 10
        assert a == 255
        assert 'Detected JPEG' in caplog.text

    def test_garbage_is_decode_error_with_prefix(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger='ui_compare'):
            with pytest.raises(DecodeError) as exc_info:
                decode_captured(b'hello')
        assert 'length=5' in exc_info.value.detail
        assert '68 65 6c 6c 6f' in exc_info.value.detail
        assert 'PNG signature' in caplog.text

    def test_empty(self) -> None:
        with pytest.raises(DecodeError, match='empty'):
            decode_captured(b'')

    def test_oversized_image_is_decode_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        data = png_bytes(solid(10, 10))
        monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 10)
        with pytest.raises(DecodeError) as exc_info:
            decode_captured(data)
        assert isinstance(exc_info.value.__cause__, Image.DecompressionBombError)
        assert 'first_bytes=89 50 4e 47' in exc_info.value.detail


class TestDecodeReference:
    def test_png(self) -> None:
        assert decode_reference(png_bytes(solid(5, 7))).size == (5, 7)

    def test_jpeg_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_reference(jpeg_bytes(4, 4))

    def test_html_error_page_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_reference(b'<html><body>AccessDenied</body></html>')


class TestResample:
    def test_same_size_is_identity(self) -> None:
        img = solid(10, 10)
        assert resample(img, 10, 10) is img

    def test_upscale_duplicates_pixels(self) -> None:
        arr = np.array(
            [[[1, 1, 1, 255], [2, 2, 2, 255]], [[3, 3, 3, 255], [4, 4, 4, 128]]],
            dtype=np.uint8,
        )
        out = resample(RasterImage(2, 2, arr), 4, 4)
        assert out.size == (4, 4)
        assert out.pixels[:, :, 0].tolist() == [[1, 1, 2, 2], [1, 1, 2, 2], [3, 3, 4, 4], [3, 3, 4, 4]]
        # alpha copied verbatim
        assert out.pixels[3, 3, 3] == 128

    def test_downscale_uses_floor_mapping(self) -> None:
        arr = np.zeros((4, 4, 4), dtype=np.uint8)
        arr[..., 0] = np.arange(16, dtype=np.uint8).reshape(4, 4)
        out = resample(RasterImage(4, 4, arr), 2, 2)
        assert out.pixels[:, :, 0].tolist() == [[0, 2], [8, 10]]

    def test_non_integer_ratio(self) -> None:
        arr = np.zeros((1, 5, 4), dtype=np.uint8)
        arr[0, :, 0] = [10, 20, 30, 40, 50]
        out = resample(RasterImage(5, 1, arr), 3, 1)
        # floor(x * 5 / 3) -> 0, 1, 3
        assert out.pixels[0, :, 0].tolist() == [10, 20, 40]

    def test_invalid_target(self) -> None:
        with pytest.raises(InputError):
            resample(solid(4, 4), 0, 4)


class TestCommonSize:
    def test_component_wise_minimum(self) -> None:
        assert common_size(solid(200, 50), solid(100, 80)) == (100, 50)

    def test_requested_dimensions_participate(self) -> None:
        assert common_size(solid(200, 200), solid(150, 150), FrameDimensions(120, 300)) == (120, 150)

    def test_non_positive_request_rejected(self) -> None:
        with pytest.raises(InputError):
            common_size(solid(10, 10), solid(10, 10), FrameDimensions(0, 10))


class TestSniffMime:
    def test_jpeg(self) -> None:
        assert sniff_mime(b'\xff\xd8\xff\xe0') == 'image/jpeg'

    def test_png_and_unknown(self) -> None:
        assert sniff_mime(b'\x89PNG') == 'image/png'
        assert sniff_mime(b'') == 'image/png'
