"""Decode screenshot / Figma render bytes into RasterImage and resample them.

The captured screenshot may be PNG or JPEG (sniffed from the first two
bytes). The Figma render is always PNG. Both end up as RGBA uint8 arrays so
the comparison code never has to care where they came from.

Resampling is nearest-neighbour with integer floor mapping, copying all four
channels verbatim. No interpolation: a 1px hairline stays a hairline rather
than smearing into neighbours and inflating the diff.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re

import numpy as np
from PIL import Image, UnidentifiedImageError

from ui_compare.core.errors import DecodeError, InputError, InvariantError
from ui_compare.core.types import FrameDimensions, RasterImage

logger = logging.getLogger('ui_compare.raster')

JPEG_SOI = b'\xff\xd8'
PNG_SIGNATURE_BYTE = 0x89

_DATA_URL_PREFIX = re.compile(r'^data:image/\w+;base64,')


def decode_base64_payload(payload: str | bytes) -> bytes:
    """Strip an optional `data:image/<fmt>;base64,` prefix and base64-decode."""
    if isinstance(payload, bytes):
        payload = payload.decode('ascii', errors='replace')
    clean = _DATA_URL_PREFIX.sub('', payload.strip())
    if not clean:
        raise InputError('Screenshot is missing or empty')
    try:
        data = base64.b64decode(clean, validate=False)
    except (binascii.Error, ValueError) as e:
        raise InputError('Screenshot is not valid base64', str(e)) from e
    if not data:
        raise InputError('Screenshot is missing or empty')
    return data


def _to_raster(data: bytes, fmt: str) -> RasterImage:
    try:
        with Image.open(io.BytesIO(data), formats=[fmt]) as img:
            rgba = img.convert('RGBA')
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
        raise DecodeError.for_buffer(f'Could not decode {fmt} image: {e}', data) from e
    arr = np.asarray(rgba, dtype=np.uint8).copy()
    return RasterImage(rgba.width, rgba.height, arr)


def decode_captured(data: bytes) -> RasterImage:
    """Decode a screenshot: JPEG if it starts with FF D8, otherwise PNG.

    A missing PNG signature is logged, not rejected; PIL gets a go at it anyway.
    """
    if not data:
        raise DecodeError.for_buffer('Screenshot buffer is empty', data)
    if data[:2] == JPEG_SOI:
        logger.info('Detected JPEG screenshot (%d bytes), decoding', len(data))
        image = _to_raster(data, 'JPEG')
    else:
        if data[0] != PNG_SIGNATURE_BYTE:
            logger.warning(
                'Screenshot buffer does not start with PNG signature; first bytes: %s',
                data[:16].hex(),
            )
        image = _to_raster(data, 'PNG')
    logger.info('Decoded screenshot %dx%d', image.width, image.height)
    return image


def decode_reference(data: bytes) -> RasterImage:
    """Decode the Figma render. PNG only."""
    if not data:
        raise DecodeError.for_buffer('Figma image buffer is empty', data)
    if data[0] != PNG_SIGNATURE_BYTE:
        # Usually an HTML/JSON error page served with a 200; show it as text.
        logger.warning('Figma buffer does not start with PNG signature: %r', data[:100])
    image = _to_raster(data, 'PNG')
    logger.info('Decoded Figma image %dx%d', image.width, image.height)
    return image


def resample(image: RasterImage, width: int, height: int) -> RasterImage:
    """Nearest-neighbour resize. Returns `image` itself when the size already matches."""
    if image.width == width and image.height == height:
        return image
    if width <= 0 or height <= 0:
        raise InputError(f'Cannot resample to {width}x{height}')

    # floor(dst * src / dst_size), in integer arithmetic
    src_x = (np.arange(width, dtype=np.int64) * image.width) // width
    src_y = (np.arange(height, dtype=np.int64) * image.height) // height
    out = image.pixels[src_y[:, None], src_x[None, :]]

    if out.shape != (height, width, 4):
        raise InvariantError(f'Resampled buffer has shape {out.shape}, expected {(height, width, 4)}')
    return RasterImage(width, height, np.ascontiguousarray(out))


def common_size(
    captured: RasterImage,
    reference: RasterImage,
    requested: FrameDimensions | None = None,
) -> tuple[int, int]:
    """Component-wise minimum of both images and the requested frame size."""
    widths = [captured.width, reference.width]
    heights = [captured.height, reference.height]
    if requested is not None:
        widths.append(requested.width)
        heights.append(requested.height)
    width, height = min(widths), min(heights)
    if width <= 0 or height <= 0:
        raise InputError(f'Nothing to compare: target size {width}x{height}')
    return width, height


def encode_png(pixels: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(pixels)).save(buf, format='PNG')
    return buf.getvalue()


def sniff_mime(data: bytes) -> str:
    return 'image/jpeg' if data[:2] == JPEG_SOI else 'image/png'
