"""Tests for ui_compare.core.report: text and JSON rendering."""

import base64
import json

from imgutil import jpeg_bytes, png_bytes, solid
from ui_compare.core.report import data_url, format_json, format_metadata, format_text, to_dict
from ui_compare.core.types import ComparisonResult, FrameDimensions, Issue, Region


def _result(issues: list[Issue] | None = None, captured: bytes | None = None) -> ComparisonResult:
    png = png_bytes(solid(4, 4))
    return ComparisonResult(
        reference_image=png,
        captured_image=captured or png,
        diff_image=png,
        diff_score=0.0421,
        resolution=FrameDimensions(1280, 800),
        issues=issues or [],
        sensitivity=4,
    )


ISSUE = Issue(
    id='diff-cluster-2',
    type='Layout',
    message='Difference detected in 400x300 region',
    severity='High',
    region=Region(20, 40, 400, 300),
)


class TestDataUrl:
    def test_png(self) -> None:
        data = png_bytes(solid(2, 2))
        url = data_url(data)
        assert url.startswith('data:image/png;base64,')
        assert base64.b64decode(url.split(',', 1)[1]) == data

    def test_jpeg(self) -> None:
        assert data_url(jpeg_bytes(2, 2)).startswith('data:image/jpeg;base64,')


class TestToDict:
    def test_keys_match_compare_ui_response(self) -> None:
        obj = to_dict(_result([ISSUE]))
        assert list(obj) == ['figmaImageUrl', 'screenshotUrl', 'diffImageUrl', 'diffScore', 'resolution', 'issues']
        assert obj['diffScore'] == 0.0421
        assert obj['resolution'] == {'width': 1280, 'height': 800}
        assert obj['issues'] == [
            {
                'id': 'diff-cluster-2',
                'type': 'Layout',
                'message': 'Difference detected in 400x300 region',
                'severity': 'High',
                'region': {'x': 20, 'y': 40, 'width': 400, 'height': 300},
            }
        ]

    def test_jpeg_screenshot_keeps_its_mime(self) -> None:
        obj = to_dict(_result(captured=jpeg_bytes(4, 4)))
        assert obj['screenshotUrl'].startswith('data:image/jpeg;base64,')
        assert obj['figmaImageUrl'].startswith('data:image/png;base64,')


class TestFormatJson:
    def test_round_trips_through_json(self) -> None:
        obj = json.loads(format_json(_result([ISSUE])))
        assert obj['issues'][0]['id'] == 'diff-cluster-2'
        assert obj['resolution']['width'] == 1280


class TestFormatText:
    def test_no_issues(self) -> None:
        text = format_text(_result())
        assert text.splitlines()[0] == 'ui-compare: 1280×800 at sensitivity 4'
        assert 'diff: 4.21% mismatch' in text
        assert text.endswith('No issues found.')

    def test_issue_lines(self) -> None:
        text = format_text(_result([ISSUE]), figma_url='https://figma.test/x')
        assert '(https://figma.test/x)' in text.splitlines()[0]
        assert '1 issue(s):' in text
        line = text.splitlines()[-1]
        assert '[High' in line
        assert 'diff-cluster-2' in line
        assert '(20,40 400×300)' in line
        assert line.endswith('Difference detected in 400x300 region')


class TestFormatMetadata:
    def test_text(self) -> None:
        assert format_metadata(FrameDimensions(1440, 900)) == 'frame: 1440×900'

    def test_json(self) -> None:
        assert json.loads(format_metadata(FrameDimensions(1440, 900), as_json=True)) == {
            'dimensions': {'width': 1440, 'height': 900}
        }
