"""Error taxonomy for ui-compare.

Every error a caller is expected to handle derives from CompareError and
carries a short message plus an optional detail string. The CLI prints
both; `to_dict()` gives an `{"error", "details"}` body for JSON callers.

InvariantError sits outside that hierarchy: it signals a bug, not bad input
or a flaky upstream.
"""

from __future__ import annotations


class CompareError(Exception):
    """Base class for user-facing failures."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f'{self.message} ({self.detail})'
        return self.message

    def to_dict(self) -> dict[str, str | None]:
        return {'error': self.message, 'details': self.detail}


class InputError(CompareError):
    """Unparsable reference URL, missing field, malformed payload."""


class ConfigError(CompareError):
    """Missing or implausible configuration (e.g. the Figma token)."""


class DecodeError(CompareError):
    """Image bytes could not be decoded into an RGBA raster."""

    @classmethod
    def for_buffer(cls, message: str, data: bytes) -> DecodeError:
        prefix = data[:16].hex(' ')
        return cls(message, f'length={len(data)} first_bytes={prefix}')


class UpstreamError(CompareError):
    """The Figma API or an image host failed."""


class NotFoundError(UpstreamError):
    """File, node or image does not exist."""


class AccessDeniedError(UpstreamError):
    """Token rejected or lacks access to the file."""


class SchemaError(UpstreamError):
    """Upstream answered 200 but the body is not what we expect."""


class RateLimitedError(UpstreamError):
    """HTTP 429. `retry_after` is the server's requested wait in seconds, if any."""

    def __init__(self, message: str, retry_after: float | None = None, detail: str | None = None):
        super().__init__(message, detail)
        self.retry_after = retry_after


class InvariantError(RuntimeError):
    """Internal consistency check failed. Programmer error."""
