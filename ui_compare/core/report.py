"""Report builder: text and JSON output for ui-compare results."""

from __future__ import annotations

import base64
import json
from typing import Any

from ui_compare.core.raster import sniff_mime
from ui_compare.core.types import ComparisonResult, FrameDimensions


def data_url(data: bytes) -> str:
    return f'data:{sniff_mime(data)};base64,{base64.b64encode(data).decode("ascii")}'


def to_dict(result: ComparisonResult) -> dict[str, Any]:
    """The JSON shape the compare-ui endpoint used to return."""
    return {
        'figmaImageUrl': data_url(result.reference_image),
        'screenshotUrl': data_url(result.captured_image),
        'diffImageUrl': data_url(result.diff_image),
        'diffScore': result.diff_score,
        'resolution': {'width': result.resolution.width, 'height': result.resolution.height},
        'issues': [issue.to_dict() for issue in result.issues],
    }


def format_text(result: ComparisonResult, figma_url: str | None = None) -> str:
    """Format result as human-readable text."""
    lines = []
    dim = f'{result.resolution.width}×{result.resolution.height}'
    header = f'ui-compare: {dim} at sensitivity {result.sensitivity}'
    if figma_url:
        header += f' ({figma_url})'
    lines.append(header)
    lines.append(f'diff: {result.diff_score * 100:.2f}% mismatch')
    lines.append('')

    if not result.issues:
        lines.append('No issues found.')
        return '\n'.join(lines)

    lines.append(f'{len(result.issues)} issue(s):')
    for issue in result.issues:
        r = issue.region
        lines.append(
            f'  [{issue.severity:<6}] {issue.type:<6} {issue.id:<16} '
            f'({r.x},{r.y} {r.width}×{r.height})  {issue.message}'
        )
    return '\n'.join(lines)


def format_json(result: ComparisonResult) -> str:
    """Format result as JSON."""
    return json.dumps(to_dict(result), indent=2)


def format_metadata(dims: FrameDimensions, as_json: bool = False) -> str:
    if as_json:
        return json.dumps({'dimensions': {'width': dims.width, 'height': dims.height}}, indent=2)
    return f'frame: {dims.width}×{dims.height}'
