"""ui-compare: diff a live page screenshot against its Figma design frame.

Usage: ui-compare <command> [options]

Commands:
  compare FIGMA_URL SCREENSHOT   pixel diff + ranked issue regions
  metadata FIGMA_URL             frame dimensions from the Figma API

SCREENSHOT is a PNG/JPEG path or an http(s) URL to download.

Environment variables / .env loading:
  OS environment variables are always used first.
  If a variable is not set, ui-compare looks for a .env file starting from
  the current directory and walking up, stopping at the nearest .git boundary.
  Use --env-file to override the .env location explicitly.
  FIGMA_ACCESS_TOKEN is required for anything that talks to Figma.
"""

import argparse
import asyncio
import os
import sys

from ui_compare.core.env import Settings, load_env, load_settings
from ui_compare.core.errors import CompareError, InputError
from ui_compare.core.report import format_json, format_metadata, format_text
from ui_compare.core.sensitivity import PROFILES
from ui_compare.core.types import ComparisonResult, FrameDimensions
from ui_compare.figma.client import FigmaClient
from ui_compare.logging_config import setup_logger
from ui_compare.pipeline import compare_frame, fetch_metadata


def _build_parser() -> argparse.ArgumentParser:
    epilog = (
        'Examples:\n'
        '  ui-compare compare "https://www.figma.com/design/ABC123/Site?node-id=10-20" shot.png\n'
        '  ui-compare compare "<figma url>" shot.jpg --sensitivity 5 --json\n'
        '  ui-compare compare "<figma url>" shot.png --fail-on-score=0.05\n'
        '  ui-compare metadata "<figma url>"\n'
        '\n'
        'Sensitivity: 1 (loosest) .. 5 (strictest), default 3 or UI_COMPARE_SENSITIVITY.\n'
    )
    parser = argparse.ArgumentParser(
        prog='ui-compare',
        description='Compare a captured screenshot against a Figma design frame.',
        epilog=epilog,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    # Global options before subcommand
    parser.add_argument(
        '--env-file',
        metavar='PATH',
        default=None,
        help='Path to .env file (default: walk up from cwd to .git boundary)',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', help='Command to run')

    p = sub.add_parser('compare', help='Diff a screenshot against a Figma frame')
    p.add_argument('figma_url', help='Figma design URL with ?node-id=')
    p.add_argument('screenshot', help='Screenshot path or http(s) URL')
    p.add_argument('-s', '--sensitivity', type=int, choices=sorted(PROFILES), default=None)
    p.add_argument('--width', type=int, default=None, help='Frame width (skips metadata lookup)')
    p.add_argument('--height', type=int, default=None, help='Frame height (skips metadata lookup)')
    p.add_argument('--figma-image-url', default=None, help='Use this render instead of exporting one')
    p.add_argument('-j', '--json', action='store_true', help='Output JSON instead of text')
    p.add_argument(
        '-f',
        '--fail-on-score',
        type=float,
        default=None,
        metavar='X',
        help='Exit 1 if the diff score exceeds X (0..1, CI gating)',
    )

    m = sub.add_parser('metadata', help='Print frame dimensions for a Figma URL')
    m.add_argument('figma_url', help='Figma design URL with ?node-id=')
    m.add_argument('-j', '--json', action='store_true', help='Output JSON instead of text')

    return parser


def _check_fail_on_score(result: ComparisonResult, threshold: float) -> bool:
    """Return True if the diff score exceeds threshold."""
    if result.diff_score > threshold:
        print(f'\nFAIL: diff score {result.diff_score:.4f} exceeded threshold {threshold}')
        return True
    return False


def _dimensions(args: argparse.Namespace) -> FrameDimensions | None:
    if args.width is None and args.height is None:
        return None
    if args.width is None or args.height is None or args.width <= 0 or args.height <= 0:
        raise InputError('--width and --height must be given together and be positive')
    return FrameDimensions(args.width, args.height)


async def _run_compare(args: argparse.Namespace, settings: Settings) -> ComparisonResult:
    screenshot: bytes | None = None
    screenshot_url: str | None = None
    if args.screenshot.startswith(('http://', 'https://')):
        screenshot_url = args.screenshot
    elif os.path.isfile(args.screenshot):
        with open(args.screenshot, 'rb') as f:
            screenshot = f.read()
    else:
        raise InputError(f'image not found: {args.screenshot}')

    sensitivity = args.sensitivity if args.sensitivity is not None else settings.sensitivity
    async with FigmaClient.from_settings(settings) as client:
        return await compare_frame(
            client,
            args.figma_url,
            screenshot,
            screenshot_url=screenshot_url,
            dimensions=_dimensions(args),
            figma_image_url=args.figma_image_url,
            sensitivity=sensitivity,
        )


async def _run_metadata(args: argparse.Namespace, settings: Settings) -> FrameDimensions:
    async with FigmaClient.from_settings(settings) as client:
        return await fetch_metadata(client, args.figma_url)


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    # Load .env before anything else; OS env vars always win
    env_path = load_env(env_file=getattr(args, 'env_file', None))
    if env_path:
        print(f'ui-compare: loaded {env_path}', file=sys.stderr)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logger(verbose=args.verbose)

    try:
        settings = load_settings()
        if args.command == 'metadata':
            dims = asyncio.run(_run_metadata(args, settings))
            print(format_metadata(dims, as_json=args.json))
            return
        result = asyncio.run(_run_compare(args, settings))
    except CompareError as e:
        print(f'Error: {e}', file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(format_json(result))
    else:
        print(format_text(result, figma_url=args.figma_url))

    # CI gate: after output so the report is visible even on failure
    if args.fail_on_score is not None and _check_fail_on_score(result, args.fail_on_score):
        sys.exit(1)


if __name__ == '__main__':
    main()
