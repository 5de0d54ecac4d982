"""Pixel diff between the Figma render and the captured screenshot.

Both images must already share a size (see core.raster.resample). Colour
distance is the YIQ-weighted delta from Kotsarenko & Ramos, "Measuring
perceived color difference using YIQ NTSC transmission color space in mobile
applications", with the anti-aliasing detector popularised by pixelmatch:

  - semi-transparent pixels are composited over white first
  - delta > 35215 * threshold^2 makes a pixel a candidate mismatch
  - a candidate is forgiven if it sits on an anti-aliased edge in EITHER image:
    it has both a darker and a brighter neighbour, at most two identical
    neighbours, and the darkest or brightest neighbour has 3+ identical
    neighbours of its own in both images

The check is symmetric in its two inputs, so swapping reference and capture
yields the same count. Changing any constant here changes diff_score for
every stored result; bump PIXEL_MATCH_VERSION when you do.

Diff image: img1 drawn as faded grey, forgiven anti-aliasing in yellow,
mismatches in red.

Example:
    outcome = score(captured, reference, get_profile(3).match_threshold)
    outcome.mismatch_count, outcome.diff_score
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ui_compare.core.errors import InvariantError
from ui_compare.core.types import RasterImage

logger = logging.getLogger('ui_compare.compare')

PIXEL_MATCH_VERSION = 'yiq-aa/1'

MAX_YIQ_DELTA = 35215.0
DIFF_ALPHA = 0.1
DIFF_COLOUR = (255, 0, 0)
AA_COLOUR = (255, 255, 0)

# Neighbour visiting order: x-major, then y. argmin/argmax keep the first hit,
# so this order decides which darkest/brightest neighbour gets inspected.
_NEIGHBOURS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))


@dataclass(frozen=True)
class DiffOutcome:
    mismatch_count: int
    diff_score: float
    mismatch_mask: np.ndarray  # (h, w) bool
    diff_pixels: np.ndarray  # (h, w, 4) uint8


def _rgb2y(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.29889531 + rgb[..., 1] * 0.58662247 + rgb[..., 2] * 0.11448223


def _rgb2i(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.59597799 - rgb[..., 1] * 0.27417610 - rgb[..., 2] * 0.32180189


def _rgb2q(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.21147017 - rgb[..., 1] * 0.52261711 + rgb[..., 2] * 0.31114694


def _blend_white(pixels: np.ndarray) -> np.ndarray:
    """Composite RGBA over a white background; returns float RGB."""
    rgb = pixels[..., :3].astype(np.float64)
    alpha = pixels[..., 3:4].astype(np.float64) / 255.0
    return 255.0 + (rgb - 255.0) * alpha


def _packed(pixels: np.ndarray) -> np.ndarray:
    """One uint32 per pixel so RGBA equality is a single compare."""
    return np.ascontiguousarray(pixels).view(np.uint32)[..., 0]


def _colour_delta(rgb1: np.ndarray, rgb2: np.ndarray) -> np.ndarray:
    """Squared YIQ distance; negative where img1 is the brighter pixel."""
    y1 = _rgb2y(rgb1)
    y2 = _rgb2y(rgb2)
    y = y1 - y2
    i = _rgb2i(rgb1) - _rgb2i(rgb2)
    q = _rgb2q(rgb1) - _rgb2q(rgb2)
    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    return np.where(y1 > y2, -delta, delta)


def _on_border(xs: np.ndarray, ys: np.ndarray, width: int, height: int) -> np.ndarray:
    return (xs == 0) | (xs == width - 1) | (ys == 0) | (ys == height - 1)


def _many_siblings(packed: np.ndarray) -> np.ndarray:
    """(h, w) bool: pixel has 3+ identical neighbours (image edge counts as one)."""
    h, w = packed.shape
    ys, xs = np.mgrid[0:h, 0:w]
    count = _on_border(xs, ys, w, h).astype(np.int8)
    for dx, dy in _NEIGHBOURS:
        cy = slice(max(-dy, 0), h - max(dy, 0))
        cx = slice(max(-dx, 0), w - max(dx, 0))
        ny = slice(max(dy, 0), h - max(-dy, 0))
        nx = slice(max(dx, 0), w - max(-dx, 0))
        count[cy, cx] += packed[cy, cx] == packed[ny, nx]
    return count > 2


def _antialiased(
    luma: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    siblings_a: np.ndarray,
    siblings_b: np.ndarray,
) -> np.ndarray:
    """Anti-aliasing test for the pixels at (xs, ys), using brightness `luma` of one image."""
    h, w = luma.shape
    n = len(xs)
    deltas = np.zeros((n, len(_NEIGHBOURS)), dtype=np.float64)
    valid = np.zeros((n, len(_NEIGHBOURS)), dtype=bool)
    centre = luma[ys, xs]
    for k, (dx, dy) in enumerate(_NEIGHBOURS):
        nx = xs + dx
        ny = ys + dy
        ok = (nx >= 0) & (nx < w) & (ny >= 0) & (ny < h)
        valid[:, k] = ok
        neighbour = luma[np.clip(ny, 0, h - 1), np.clip(nx, 0, w - 1)]
        deltas[:, k] = np.where(ok, centre - neighbour, 0.0)

    zeroes = _on_border(xs, ys, w, h).astype(np.int64) + np.sum(valid & (deltas == 0), axis=1)
    darkest = deltas.min(axis=1)
    brightest = deltas.max(axis=1)

    offsets = np.array(_NEIGHBOURS)
    lo = offsets[deltas.argmin(axis=1)]
    hi = offsets[deltas.argmax(axis=1)]
    lo_x, lo_y = np.clip(xs + lo[:, 0], 0, w - 1), np.clip(ys + lo[:, 1], 0, h - 1)
    hi_x, hi_y = np.clip(xs + hi[:, 0], 0, w - 1), np.clip(ys + hi[:, 1], 0, h - 1)

    darkest_flat = siblings_a[lo_y, lo_x] & siblings_b[lo_y, lo_x]
    brightest_flat = siblings_a[hi_y, hi_x] & siblings_b[hi_y, hi_x]

    return (zeroes <= 2) & (darkest < 0) & (brightest > 0) & (darkest_flat | brightest_flat)


def score(img1: RasterImage, img2: RasterImage, threshold: float) -> DiffOutcome:
    """Count mismatching pixels between two same-size images at `threshold` (0..1)."""
    if img1.size != img2.size:
        raise InvariantError(f'score() needs equal sizes, got {img1.size} and {img2.size}')

    width, height = img1.size
    p1, p2 = img1.pixels, img2.pixels
    packed1, packed2 = _packed(p1), _packed(p2)

    # faded greyscale of img1 as the backdrop
    grey = 255.0 + (_rgb2y(p1[..., :3].astype(np.float64)) - 255.0) * (DIFF_ALPHA * p1[..., 3] / 255.0)
    out = np.empty((height, width, 4), dtype=np.uint8)
    out[..., :3] = grey.astype(np.uint8)[..., None]
    out[..., 3] = 255

    mask = np.zeros((height, width), dtype=bool)
    differs = packed1 != packed2
    if differs.any():
        rgb1, rgb2 = _blend_white(p1), _blend_white(p2)
        delta = np.where(differs, _colour_delta(rgb1, rgb2), 0.0)
        max_delta = MAX_YIQ_DELTA * threshold * threshold
        ys, xs = np.nonzero(np.abs(delta) > max_delta)

        if len(xs):
            siblings1 = _many_siblings(packed1)
            siblings2 = _many_siblings(packed2)
            aa = _antialiased(_rgb2y(rgb1), xs, ys, siblings1, siblings2) | _antialiased(
                _rgb2y(rgb2), xs, ys, siblings1, siblings2
            )
            out[ys[aa], xs[aa], :3] = AA_COLOUR
            mask[ys[~aa], xs[~aa]] = True
            out[mask, :3] = DIFF_COLOUR

    mismatches = int(mask.sum())
    diff_score = mismatches / (width * height)
    logger.info(
        'Diff score: %.2f%% (%d px, threshold %.2f, %s)',
        diff_score * 100,
        mismatches,
        threshold,
        PIXEL_MATCH_VERSION,
    )
    return DiffOutcome(mismatches, diff_score, mask, out)
