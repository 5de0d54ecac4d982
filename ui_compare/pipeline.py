"""End-to-end comparison: Figma frame + captured screenshot -> ComparisonResult.

`compare_images` is the pure synchronous core (decode, normalise, score,
find regions). `compare_frame` wraps it with the Figma lookups
(frame size, export render, downloads). `fetch_metadata` only does the
frame size lookup.
"""

from __future__ import annotations

import logging

from ui_compare.core.errors import InputError
from ui_compare.core.raster import (
    common_size,
    decode_base64_payload,
    decode_captured,
    decode_reference,
    encode_png,
    resample,
)
from ui_compare.core.sensitivity import DEFAULT_LEVEL, get_profile
from ui_compare.core.types import ComparisonResult, FrameDimensions, FrameReference
from ui_compare.figma.client import FigmaClient, parse_reference
from ui_compare.techniques.compare import score
from ui_compare.techniques.regions import analyze

logger = logging.getLogger('ui_compare.pipeline')


def compare_images(
    captured: bytes,
    reference: bytes,
    dimensions: FrameDimensions | None = None,
    sensitivity: int | None = DEFAULT_LEVEL,
) -> ComparisonResult:
    """Compare raw screenshot bytes against raw Figma PNG bytes.

    Both images are resampled to the component-wise minimum of their sizes
    and `dimensions` (the frame size Figma reports), then scored and
    analysed at the given sensitivity level.
    """
    profile = get_profile(sensitivity)
    logger.info(
        'Using sensitivity level %d (pixel %d, block %.2f, min area %d, match %.1f)',
        profile.level,
        profile.pixel_diff_threshold,
        profile.block_threshold,
        profile.min_cluster_area,
        profile.match_threshold,
    )

    shot = decode_captured(captured)
    design = decode_reference(reference)

    width, height = common_size(shot, design, dimensions)
    logger.info('Comparing images at %dx%d...', width, height)
    shot = resample(shot, width, height)
    design = resample(design, width, height)

    outcome = score(shot, design, profile.match_threshold)
    issues = analyze(shot, design, profile)

    return ComparisonResult(
        reference_image=reference,
        captured_image=captured,
        diff_image=encode_png(outcome.diff_pixels),
        diff_score=outcome.diff_score,
        resolution=FrameDimensions(width, height),
        issues=issues,
        sensitivity=profile.level,
    )


def _require_reference(figma_url: str) -> FrameReference:
    if not figma_url:
        raise InputError('Missing figmaUrl')
    ref = parse_reference(figma_url)
    if ref is None:
        raise InputError('Invalid Figma URL', figma_url)
    return ref


async def fetch_metadata(client: FigmaClient, figma_url: str) -> FrameDimensions:
    """Frame dimensions for a Figma URL (cached by the client)."""
    ref = _require_reference(figma_url)
    return await client.fetch_frame_dimensions(ref)


async def compare_frame(
    client: FigmaClient,
    figma_url: str,
    screenshot: bytes | str | None = None,
    *,
    screenshot_url: str | None = None,
    dimensions: FrameDimensions | None = None,
    figma_image_url: str | None = None,
    sensitivity: int | None = DEFAULT_LEVEL,
) -> ComparisonResult:
    """Compare a captured page against the Figma frame at `figma_url`.

    Args:
        client: Figma client (owns caching and rate limiting).
        figma_url: Design URL with a node-id.
        screenshot: Raw image bytes, or a base64 string (data URL prefix allowed).
        screenshot_url: Download the capture from here instead.
        dimensions: Skip the metadata lookup and use these.
        figma_image_url: Skip the export call and download this render.
        sensitivity: 1 (loosest) to 5 (strictest).
    """
    ref = _require_reference(figma_url)

    if isinstance(screenshot, str):
        screenshot = decode_base64_payload(screenshot)
    if not screenshot and not screenshot_url:
        raise InputError('Screenshot is missing or empty')

    if dimensions is None:
        dimensions = await client.fetch_frame_dimensions(ref)

    image_url = figma_image_url or await client.fetch_exported_image_url(ref)
    reference = await client.fetch_image(image_url)

    if not screenshot:
        screenshot = await client.fetch_image(screenshot_url)
    logger.info('Screenshot buffer size: %d', len(screenshot))

    return compare_images(screenshot, reference, dimensions, sensitivity)
