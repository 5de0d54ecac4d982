"""Turn per-pixel differences into a handful of issue regions.

Steps:
  1. Split the compared area into 20x20 blocks (edge blocks clipped). A pixel
     counts as different when its mean |dR|,|dG|,|dB| exceeds the profile's
     pixel threshold; a block is active when the fraction of different pixels
     exceeds the block threshold.
  2. Cluster active blocks by 4-connectivity (explicit stack, row-major scan,
     neighbours pushed Right, Left, Down, Up, so ids are reproducible).
  3. Convert each cluster's block range to a pixel rectangle clipped to the
     image, drop those under the profile's minimum area.
  4. Classify: High > 50000 px, Medium > 10000 px, else Low. Under 1000 px is
     a Color issue (small and tight), anything bigger a Layout issue.
  5. Rank by severity then area, keep the top 20.

Example:
    issues = analyze(captured, reference, get_profile(3))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ui_compare.core.errors import InvariantError
from ui_compare.core.sensitivity import SensitivityProfile
from ui_compare.core.types import (
    ISSUE_COLOR,
    ISSUE_LAYOUT,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    SEVERITY_RANK,
    Issue,
    RasterImage,
    Region,
)

logger = logging.getLogger('ui_compare.regions')

BLOCK_SIZE = 20
MAX_ISSUES = 20
HIGH_AREA = 50000
MEDIUM_AREA = 10000
COLOR_AREA = 1000


@dataclass
class Cluster:
    min_col: int
    min_row: int
    max_col: int
    max_row: int
    block_count: int = 0


def active_blocks(img1: RasterImage, img2: RasterImage, profile: SensitivityProfile) -> np.ndarray:
    """(blocks_y, blocks_x) bool grid of blocks whose different-pixel ratio exceeds the threshold."""
    if img1.size != img2.size:
        raise InvariantError(f'active_blocks() needs equal sizes, got {img1.size} and {img2.size}')
    width, height = img1.size

    rgb1 = img1.pixels[..., :3].astype(np.int16)
    rgb2 = img2.pixels[..., :3].astype(np.int16)
    channel_sum = np.abs(rgb1 - rgb2).sum(axis=2)
    # mean > t  <=>  sum > 3t, for integer sums
    different = (channel_sum > 3 * profile.pixel_diff_threshold).astype(np.int64)

    row_starts = np.arange(0, height, BLOCK_SIZE)
    col_starts = np.arange(0, width, BLOCK_SIZE)
    counts = np.add.reduceat(np.add.reduceat(different, row_starts, axis=0), col_starts, axis=1)

    block_h = np.minimum(row_starts + BLOCK_SIZE, height) - row_starts
    block_w = np.minimum(col_starts + BLOCK_SIZE, width) - col_starts
    totals = np.outer(block_h, block_w)

    return counts / totals > profile.block_threshold


def find_clusters(active: np.ndarray) -> list[Cluster]:
    """4-connected components of `active`, in row-major discovery order."""
    blocks_y, blocks_x = active.shape
    flat = active.ravel()
    visited = np.zeros(flat.shape, dtype=bool)
    clusters: list[Cluster] = []

    for start in np.flatnonzero(flat):
        start = int(start)
        if visited[start]:
            continue
        col, row = start % blocks_x, start // blocks_x
        cluster = Cluster(min_col=col, min_row=row, max_col=col, max_row=row)
        stack = [start]
        visited[start] = True

        while stack:
            idx = stack.pop()
            cx, cy = idx % blocks_x, idx // blocks_x
            cluster.min_col = min(cluster.min_col, cx)
            cluster.min_row = min(cluster.min_row, cy)
            cluster.max_col = max(cluster.max_col, cx)
            cluster.max_row = max(cluster.max_row, cy)
            cluster.block_count += 1

            for nx, ny in ((cx + 1, cy), (cx - 1, cy), (cx, cy + 1), (cx, cy - 1)):
                if 0 <= nx < blocks_x and 0 <= ny < blocks_y:
                    n_idx = ny * blocks_x + nx
                    if flat[n_idx] and not visited[n_idx]:
                        visited[n_idx] = True
                        stack.append(n_idx)

        clusters.append(cluster)

    return clusters


def cluster_region(cluster: Cluster, width: int, height: int) -> Region:
    x = max(0, cluster.min_col * BLOCK_SIZE)
    y = max(0, cluster.min_row * BLOCK_SIZE)
    w = (cluster.max_col - cluster.min_col + 1) * BLOCK_SIZE
    h = (cluster.max_row - cluster.min_row + 1) * BLOCK_SIZE
    return Region(x, y, min(w, width - x), min(h, height - y))


def classify(area: int) -> tuple[str, str]:
    """(severity, type) for a region of `area` pixels."""
    if area > HIGH_AREA:
        severity = SEVERITY_HIGH
    elif area > MEDIUM_AREA:
        severity = SEVERITY_MEDIUM
    else:
        severity = SEVERITY_LOW
    issue_type = ISSUE_COLOR if area < COLOR_AREA else ISSUE_LAYOUT
    return severity, issue_type


def analyze(img1: RasterImage, img2: RasterImage, profile: SensitivityProfile) -> list[Issue]:
    """Ranked issues (at most MAX_ISSUES) for two same-size images."""
    width, height = img1.size
    logger.info(
        'Analyzing with sensitivity %dx: pixel>%d block>%.2f min_area=%d',
        profile.level,
        profile.pixel_diff_threshold,
        profile.block_threshold,
        profile.min_cluster_area,
    )
    clusters = find_clusters(active_blocks(img1, img2, profile))

    issues: list[Issue] = []
    for index, cluster in enumerate(clusters):
        region = cluster_region(cluster, width, height)
        if region.area < profile.min_cluster_area:
            continue
        severity, issue_type = classify(region.area)
        issues.append(
            Issue(
                id=f'diff-cluster-{index}',
                type=issue_type,
                message=f'Difference detected in {region.width}x{region.height} region',
                severity=severity,
                region=region,
            )
        )

    issues.sort(key=lambda i: (-SEVERITY_RANK[i.severity], -i.region.area))
    logger.info('Found %d clusters, %d issues kept', len(clusters), min(len(issues), MAX_ISSUES))
    return issues[:MAX_ISSUES]
