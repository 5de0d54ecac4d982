"""Environment variable loading and typed settings for ui-compare.

Load order (first wins):
  1. Existing OS environment variables: never overwritten.
  2. .env file at --env-file path (if explicitly provided).
  3. .env file walking up from cwd, stopping at .git (file or dir).

Walking stops at .git so we never load a .env from outside the repo.
Only sets variables that are NOT already in os.environ. The Figma token
usually lives here as FIGMA_ACCESS_TOKEN.

load_settings() then reads the tunables below into a frozen Settings.

    FIGMA_ACCESS_TOKEN        Figma personal access token (FIGMA_TOKEN also accepted)
    FIGMA_API_BASE            default https://api.figma.com
    FIGMA_HTTP_TIMEOUT        per-request timeout, seconds (60)
    FIGMA_MIN_CALL_INTERVAL   spacing between Figma API calls, seconds (3)
    FIGMA_CACHE_TTL           response cache lifetime, seconds (900)
    FIGMA_MAX_RETRIES         attempts on HTTP 429 (5)
    FIGMA_RETRY_BASE_DELAY    exponential backoff base, seconds (2)
    UI_COMPARE_SENSITIVITY    default sensitivity level 1-5 (3)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from ui_compare.core.errors import ConfigError

FIGMA_API_BASE = 'https://api.figma.com'
TOKEN_VARS = ('FIGMA_ACCESS_TOKEN', 'FIGMA_TOKEN')


def _find_dotenv(start: Path) -> Path | None:
    """Walk up from start, return first .env found, stop at .git boundary."""
    current = start.resolve()
    while True:
        candidate = current / '.env'
        if candidate.is_file():
            return candidate
        if (current / '.git').exists():
            return None
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _parse_dotenv(path: Path) -> dict[str, str]:
    """Parse a .env file into a dict. Handles KEY=value, KEY="value" and `export KEY=value`."""
    result: dict[str, str] = {}
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, _, raw_value = line.partition('=')
        key = key.strip()
        if key.startswith('export '):
            key = key[len('export ') :].strip()
        value = raw_value.strip().strip('"').strip("'")
        if key:
            result[key] = value
    return result


def load_env(env_file: str | None = None) -> Path | None:
    """Load .env into os.environ for keys not already set.

    Returns the path that was loaded, or None if no .env was found/used.
    """
    if env_file:
        path = Path(env_file)
        if not path.is_file():
            return None
    else:
        path = _find_dotenv(Path.cwd())
        if path is None:
            return None

    for key, value in _parse_dotenv(path).items():
        if key not in os.environ:
            os.environ[key] = value

    return path


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


@dataclass(frozen=True)
class Settings:
    figma_token: str = ''
    figma_api_base: str = FIGMA_API_BASE
    http_timeout: float = 60.0
    min_call_interval: float = 3.0
    cache_ttl: float = 15 * 60.0
    max_retries: int = 5
    retry_base_delay: float = 2.0
    sensitivity: int = 3


def load_settings() -> Settings:
    """Build Settings from os.environ. Call after load_env() so .env values are visible."""
    token = next((os.environ[k] for k in TOKEN_VARS if os.environ.get(k)), '')
    try:
        return Settings(
            figma_token=token.strip(),
            figma_api_base=os.getenv('FIGMA_API_BASE', FIGMA_API_BASE).rstrip('/'),
            http_timeout=_float('FIGMA_HTTP_TIMEOUT', 60.0),
            min_call_interval=_float('FIGMA_MIN_CALL_INTERVAL', 3.0),
            cache_ttl=_float('FIGMA_CACHE_TTL', 15 * 60.0),
            max_retries=_int('FIGMA_MAX_RETRIES', 5),
            retry_base_delay=_float('FIGMA_RETRY_BASE_DELAY', 2.0),
            sensitivity=_int('UI_COMPARE_SENSITIVITY', 3),
        )
    except ValueError as e:
        raise ConfigError('Invalid numeric setting in environment', str(e)) from e
