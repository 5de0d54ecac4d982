"""Figma REST API client for frame metadata and rendered PNG exports.

Every API call goes through the same three layers, outermost first:

    ResponseCache.get_or_fetch  -> skip the call entirely if we asked recently
    RateLimiter.acquire         -> keep calls MIN_API_CALL_INTERVAL apart
    retry_with_backoff          -> ride out HTTP 429s

Usage:
    ref = parse_reference('https://www.figma.com/design/ABC123/Name?node-id=10-20')
    async with FigmaClient(token) as client:
        dims = await client.fetch_frame_dimensions(ref)
        url = await client.fetch_exported_image_url(ref)
        png = await client.fetch_image(url)
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlsplit, parse_qs

import httpx
from pydantic import ValidationError

from ui_compare.core.env import FIGMA_API_BASE, Settings
from ui_compare.core.errors import (
    AccessDeniedError,
    ConfigError,
    NotFoundError,
    RateLimitedError,
    SchemaError,
    UpstreamError,
)
from ui_compare.core.types import FrameDimensions, FrameReference
from ui_compare.figma.cache import CACHE_TTL, ResponseCache, default_cache
from ui_compare.figma.ratelimit import MIN_API_CALL_INTERVAL, RateLimiter, default_rate_limiter
from ui_compare.figma.retry import BASE_DELAY, MAX_RETRIES, retry_with_backoff
from ui_compare.figma.schemas import ImagesResponse, NodesResponse

logger = logging.getLogger('ui_compare.figma')

MIN_TOKEN_LENGTH = 20
_LEADING_INT = re.compile(r'\s*(\d+)')


def parse_reference(url: str) -> FrameReference | None:
    """Parse a Figma design URL into (file_key, node_id).

    The file key is the third path segment (/design/<key>/<name> or
    /file/<key>/...), the node id comes from ?node-id= with hyphens turned
    into colons. Returns None when either part is missing or the URL does not
    parse; callers should report that as bad input.
    """
    try:
        parts = urlsplit(url.strip())
    except (AttributeError, ValueError):
        return None
    if not parts.scheme or not parts.netloc:
        return None

    segments = parts.path.split('/')
    file_key = segments[2] if len(segments) > 2 else ''
    node_ids = parse_qs(parts.query).get('node-id')
    node_id = node_ids[0].replace('-', ':') if node_ids else ''

    if not file_key or not node_id:
        return None
    return FrameReference(file_key=file_key, node_id=node_id)


def _retry_after_seconds(resp: httpx.Response) -> float | None:
    """Leading integer of Retry-After ('5.5' -> 5.0), or None.

    The HTTP-date form has no leading digits and falls back to exponential
    backoff.
    """
    m = _LEADING_INT.match(resp.headers.get('Retry-After', ''))
    return float(m.group(1)) if m else None


class FigmaClient:
    """Async Figma REST client with shared caching, rate limiting and 429 retries.

    Args:
        token: Figma personal access token.
        api_base: Figma API root.
        timeout: Per-request HTTP timeout in seconds.
        rate_limiter: Defaults to the process-wide limiter.
        cache: Defaults to the process-wide response cache.
        max_retries: Attempts per call when rate limited.
        base_delay: Exponential backoff base, seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
        sleep: Async sleep used between retries.
    """

    def __init__(
        self,
        token: str | None,
        *,
        api_base: str = FIGMA_API_BASE,
        timeout: float = 60.0,
        rate_limiter: RateLimiter | None = None,
        cache: ResponseCache | None = None,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        token = (token or '').strip()
        if not token:
            raise ConfigError(
                'Figma access token not configured',
                'Set FIGMA_ACCESS_TOKEN in the environment or .env',
            )
        if len(token) < MIN_TOKEN_LENGTH:
            raise ConfigError(
                'Figma access token appears to be invalid',
                'Token is too short. Please generate a new token from Figma settings.',
            )
        logger.debug('Using Figma token %s... (length: %d)', token[:8], len(token))
        self._token = token
        self._api_base = api_base.rstrip('/')
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.rate_limiter = rate_limiter if rate_limiter is not None else default_rate_limiter()
        self.cache = cache if cache is not None else default_cache()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> FigmaClient:
        """Client configured from env Settings.

        Non-default spacing or TTL gets a private limiter or cache; otherwise
        the process-wide ones are shared.
        """
        if 'rate_limiter' not in kwargs and settings.min_call_interval != MIN_API_CALL_INTERVAL:
            kwargs['rate_limiter'] = RateLimiter(settings.min_call_interval)
        if 'cache' not in kwargs and settings.cache_ttl != CACHE_TTL:
            kwargs['cache'] = ResponseCache(settings.cache_ttl)
        return cls(
            settings.figma_token,
            api_base=settings.figma_api_base,
            timeout=settings.http_timeout,
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            **kwargs,
        )

    async def __aenter__(self) -> FigmaClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
                limits=httpx.Limits(max_connections=5, max_keepalive_connections=3),
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """Authenticated GET against the Figma API, mapped onto our error types."""
        client = self._get_client()
        url = f'{self._api_base}{path}'
        try:
            resp = await client.get(url, params=params, headers={'X-Figma-Token': self._token})
        except httpx.TimeoutException as e:
            raise UpstreamError(f'Figma API timeout: {path}') from e
        except httpx.TransportError as e:
            raise UpstreamError(f'Figma API connection error: {path}', str(e)) from e

        if resp.status_code == 429:
            retry_after = _retry_after_seconds(resp)
            raise RateLimitedError('Figma API rate limit exceeded', retry_after=retry_after)
        if resp.status_code == 403:
            raise AccessDeniedError(
                'Figma API access denied',
                'Check that FIGMA_ACCESS_TOKEN is valid and can read this file.',
            )
        if resp.status_code == 404:
            raise NotFoundError('Figma file or node not found', path)
        if not resp.is_success:
            raise UpstreamError(f'Figma API error {resp.status_code}', resp.text[:200])

        try:
            return resp.json()
        except ValueError as e:
            raise SchemaError('Figma API returned invalid JSON', resp.text[:200]) from e

    async def _call(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        await self.rate_limiter.acquire()
        return await retry_with_backoff(
            lambda: self._get(path, params),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            sleep=self._sleep,
        )

    # ------------------------------------------------------------------
    # Frame metadata
    # ------------------------------------------------------------------

    async def fetch_frame_dimensions(self, ref: FrameReference) -> FrameDimensions:
        """Frame width/height from its absoluteBoundingBox, rounded to whole pixels."""
        return await self.cache.get_or_fetch(
            f'frame-data-{ref.file_key}-{ref.node_id}',
            lambda: self._fetch_frame_dimensions(ref),
        )

    async def _fetch_frame_dimensions(self, ref: FrameReference) -> FrameDimensions:
        logger.info('Fetching Figma node data for %s...', ref.node_id)
        data = await self._call(f'/v1/files/{ref.file_key}/nodes', {'ids': ref.node_id})
        try:
            parsed = NodesResponse.model_validate(data)
        except ValidationError as e:
            raise SchemaError('Unexpected Figma nodes response', str(e)) from e

        node = parsed.nodes.get(ref.node_id)
        if node is None:
            raise NotFoundError(f'Node {ref.node_id} not found in Figma response')
        if node.document is None:
            raise SchemaError('Invalid node structure - no document property found')
        bbox = node.document.absolute_bounding_box
        if bbox is None:
            raise SchemaError(
                'No bounding box found',
                'Node must be a frame or component with absoluteBoundingBox.',
            )

        # round half up, like the design tool displays it
        dims = FrameDimensions(width=int(bbox.width + 0.5), height=int(bbox.height + 0.5))
        logger.info('Frame %s is %dx%d', ref.node_id, dims.width, dims.height)
        return dims

    # ------------------------------------------------------------------
    # Image export
    # ------------------------------------------------------------------

    async def fetch_exported_image_url(self, ref: FrameReference) -> str:
        """URL of a 1x PNG render of the frame (Figma-hosted, expires after a while)."""
        return await self.cache.get_or_fetch(
            f'figma-image-{ref.file_key}-{ref.node_id}',
            lambda: self._fetch_exported_image_url(ref),
        )

    async def _fetch_exported_image_url(self, ref: FrameReference) -> str:
        logger.info('Exporting Figma image for node %s...', ref.node_id)
        data = await self._call(
            f'/v1/images/{ref.file_key}',
            {'ids': ref.node_id, 'format': 'png', 'scale': '1'},
        )
        try:
            parsed = ImagesResponse.model_validate(data)
        except ValidationError as e:
            raise SchemaError('Unexpected Figma images response', str(e)) from e

        if parsed.err:
            raise UpstreamError(f'Figma image render error: {parsed.err}')
        image_url = parsed.images.get(ref.node_id)
        if not image_url:
            raise NotFoundError(
                'No image URL returned from Figma API',
                'The node might not be exportable.',
            )
        return image_url

    # ------------------------------------------------------------------
    # Plain downloads
    # ------------------------------------------------------------------

    async def fetch_image(self, url: str) -> bytes:
        """Download raw bytes from `url` (no auth, no rate limiting)."""
        logger.info('Downloading image from: %s', url)
        client = self._get_client()
        try:
            resp = await client.get(url)
        except httpx.TimeoutException as e:
            raise UpstreamError(f'Timed out downloading image: {url}') from e
        except httpx.TransportError as e:
            raise UpstreamError(f'Could not reach image host: {url}', str(e)) from e

        if not resp.is_success:
            raise UpstreamError(f'Failed to download image: {resp.status_code}', url)
        logger.info(
            'Downloaded %d bytes (content-type: %s)',
            len(resp.content),
            resp.headers.get('content-type', '?'),
        )
        return resp.content
