"""Sensitivity levels 1 (loosest) to 5 (strictest).

Each level tunes both halves of the comparison: the pixel-match threshold
used for the global diff score, and the per-pixel / per-block / minimum-area
thresholds used when carving out issue regions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger('ui_compare.sensitivity')


@dataclass(frozen=True)
class SensitivityProfile:
    level: int
    pixel_diff_threshold: int  # mean |dRGB| a pixel must exceed to count as different
    block_threshold: float  # fraction of different pixels that activates a block
    min_cluster_area: int  # clusters smaller than this (px) are dropped
    match_threshold: float  # YIQ pixel-match threshold, 0..1


PROFILES: dict[int, SensitivityProfile] = {
    1: SensitivityProfile(1, 50, 0.20, 500, 0.9),
    2: SensitivityProfile(2, 35, 0.10, 250, 0.7),
    3: SensitivityProfile(3, 25, 0.05, 100, 0.5),
    4: SensitivityProfile(4, 15, 0.02, 50, 0.3),
    5: SensitivityProfile(5, 5, 0.01, 10, 0.1),
}

DEFAULT_LEVEL = 3


def get_profile(level: int | None) -> SensitivityProfile:
    """Return the profile for `level`, falling back to the default for anything unknown."""
    profile = PROFILES.get(level) if isinstance(level, int) else None
    if profile is None:
        if level is not None:
            logger.warning('Unknown sensitivity %r, using %d', level, DEFAULT_LEVEL)
        return PROFILES[DEFAULT_LEVEL]
    return profile
