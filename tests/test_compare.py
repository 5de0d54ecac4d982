"""Tests for ui_compare.techniques.compare: YIQ pixel diff with anti-aliasing detection."""

import numpy as np
import pytest
from imgutil import BLACK, WHITE, noisy, solid, with_patch
from ui_compare.core.errors import InvariantError
from ui_compare.core.sensitivity import PROFILES
from ui_compare.core.types import RasterImage
from ui_compare.techniques.compare import AA_COLOUR, DIFF_COLOUR, score

LEVELS = sorted(PROFILES)


def _columns(values: list[int], height: int = 5) -> RasterImage:
    """Greyscale image whose column x has brightness values[x]."""
    arr = np.empty((height, len(values), 4), dtype=np.uint8)
    for x, v in enumerate(values):
        arr[:, x] = (v, v, v, 255)
    return RasterImage(len(values), height, arr)


class TestIdentity:
    @pytest.mark.parametrize('level', LEVELS)
    def test_identical_images_score_zero(self, level: int) -> None:
        img = noisy(30, 20)
        outcome = score(img, img, PROFILES[level].match_threshold)
        assert outcome.mismatch_count == 0
        assert outcome.diff_score == 0.0
        assert not outcome.mismatch_mask.any()

    def test_backdrop_is_faded_grey(self) -> None:
        black = solid(6, 4, BLACK)
        outcome = score(black, black, 0.5)
        # 255 + (0 - 255) * 0.1, truncated
        assert (outcome.diff_pixels == np.array([229, 229, 229, 255], dtype=np.uint8)).all()

    def test_white_backdrop_stays_white(self) -> None:
        white = solid(3, 3, WHITE)
        assert (score(white, white, 0.5).diff_pixels == 255).all()


class TestMismatch:
    @pytest.mark.parametrize('level', LEVELS)
    def test_black_vs_white_is_total(self, level: int) -> None:
        outcome = score(solid(10, 10, BLACK), solid(10, 10, WHITE), PROFILES[level].match_threshold)
        assert outcome.mismatch_count == 100
        assert outcome.diff_score == 1.0
        assert (outcome.diff_pixels[..., :3] == DIFF_COLOUR).all()

    def test_transparent_vs_white_matches(self) -> None:
        # fully transparent composites to white
        clear = solid(4, 4, (0, 0, 0, 0))
        assert score(clear, solid(4, 4, WHITE), 0.1).mismatch_count == 0

    def test_single_pixel_change_only_at_strict_levels(self) -> None:
        base = solid(5, 5, (128, 128, 128, 255))
        changed = with_patch(base, 2, 2, 1, 1, (100, 100, 100, 255))
        # YIQ delta ~396, above 35215*0.1^2 but below 35215*0.3^2
        assert score(base, changed, PROFILES[5].match_threshold).mismatch_count == 1
        assert score(base, changed, PROFILES[4].match_threshold).mismatch_count == 0
        outcome = score(base, changed, PROFILES[5].match_threshold)
        assert outcome.mismatch_mask[2, 2]
        assert tuple(outcome.diff_pixels[2, 2, :3]) == DIFF_COLOUR

    def test_size_mismatch_is_invariant_error(self) -> None:
        with pytest.raises(InvariantError):
            score(solid(4, 4), solid(4, 5), 0.5)


class TestAntiAliasing:
    def test_edge_pixel_is_forgiven(self) -> None:
        # black | black | grey | white | white: the grey column is an AA edge
        img1 = _columns([0, 0, 128, 255, 255])
        img2 = _columns([0, 0, 100, 255, 255])
        outcome = score(img1, img2, PROFILES[5].match_threshold)
        assert outcome.mismatch_count == 0
        for y in range(5):
            assert tuple(outcome.diff_pixels[y, 2, :3]) == AA_COLOUR

    @pytest.mark.parametrize('level', LEVELS)
    def test_edge_pixel_never_counts(self, level: int) -> None:
        img1 = _columns([0, 0, 128, 255, 255])
        img2 = _columns([0, 0, 100, 255, 255])
        assert score(img1, img2, PROFILES[level].match_threshold).mismatch_count == 0


class TestProperties:
    def test_symmetric(self) -> None:
        a = noisy(40, 30, seed=1)
        b = noisy(40, 30, seed=2)
        for level in LEVELS:
            t = PROFILES[level].match_threshold
            assert score(a, b, t).mismatch_count == score(b, a, t).mismatch_count

    def test_deterministic(self) -> None:
        a = noisy(25, 25, seed=3)
        b = noisy(25, 25, seed=4)
        first = score(a, b, 0.5)
        second = score(a, b, 0.5)
        assert first.mismatch_count == second.mismatch_count
        assert np.array_equal(first.diff_pixels, second.diff_pixels)

    def test_stricter_levels_never_find_less(self) -> None:
        a = noisy(40, 40, seed=5)
        arr = a.pixels.astype(np.int16)
        jitter = np.random.default_rng(6).integers(-60, 61, size=arr.shape)
        jitter[..., 3] = 0
        b = RasterImage(40, 40, np.clip(arr + jitter, 0, 255).astype(np.uint8))
        counts = [score(a, b, PROFILES[level].match_threshold).mismatch_count for level in LEVELS]
        assert counts == sorted(counts)
        assert counts[-1] > 0

    def test_score_in_unit_interval(self) -> None:
        outcome = score(noisy(16, 16, seed=7), noisy(16, 16, seed=8), 0.1)
        assert 0.0 <= outcome.diff_score <= 1.0
        assert outcome.diff_score == outcome.mismatch_count / 256
