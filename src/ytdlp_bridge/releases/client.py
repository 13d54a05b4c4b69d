"""Release listing client.

ytdlp-bridge releases v0.1.0

Reads the paginated GitHub release listing of yt-dlp. Only ``tag_name`` is
consumed. There is no retry: network failures and malformed bodies are
reported once, as NetworkError / ReleaseDecodeError.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from ..config import Config, get_config
from ..errors import NetworkError, NoReleasesError, ReleaseDecodeError
from ..types import ReleaseDescriptor

__all__ = ["ReleaseClient", "decode_releases"]

logger = logging.getLogger(__name__)

_HEADERS = {"Accept": "application/vnd.github+json"}


def decode_releases(body: str) -> list[ReleaseDescriptor]:
    """Decode a JSON array of release objects, preserving order.

    Raises:
        ReleaseDecodeError: If the body is not a JSON array of objects with
            a string tag_name
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ReleaseDecodeError(str(e), body) from e

    if not isinstance(data, list):
        raise ReleaseDecodeError(
            f"expected a JSON array, got {type(data).__name__}", body
        )

    try:
        return [ReleaseDescriptor.model_validate(item) for item in data]
    except ValidationError as e:
        raise ReleaseDecodeError(str(e), body) from e


def _require_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")


class ReleaseClient:
    """GitHub release listing client.

    The total timeout of every request comes from the configuration
    (YTB_HTTP_TIMEOUT, default 5s).

    Example:
        async with ReleaseClient() as client:
            releases = await client.list_releases(page=1, per_page=10)
            print([r.tag for r in releases])
    """

    def __init__(
        self,
        config: Config | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Configuration (default: environment)
            session: Shared HTTP session; the client does not close a
                session it did not create
        """
        self._config = config or get_config()
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=self._config.http_timeout)

    @property
    def config(self) -> Config:
        return self._config

    @property
    def timeout(self) -> aiohttp.ClientTimeout:
        return self._timeout

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "ReleaseClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def list_releases(self, page: int = 1, per_page: int = 30) -> list[ReleaseDescriptor]:
        """Fetch one page of release descriptors, in the remote's order.

        Args:
            page: Page number (>= 1)
            per_page: Page size (>= 1)

        Raises:
            ValueError: If page or per_page is not a positive integer
            NetworkError: On connection failure, timeout or non-2xx status
            ReleaseDecodeError: If the body is not a release array
        """
        _require_positive("page", page)
        _require_positive("per_page", per_page)

        url = self._config.releases_endpoint
        params = {"page": str(page), "per_page": str(per_page)}
        session = await self.get_session()

        logger.debug(f"GET {url} page={page} per_page={per_page}")
        try:
            async with session.get(
                url, params=params, headers=_HEADERS, timeout=self._timeout
            ) as response:
                body = await response.text()
                if response.status >= 400:
                    raise NetworkError(str(response.url), body[:200], response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(url, f"Network error: {e!r}") from e

        releases = decode_releases(body)
        logger.debug(f"Fetched {len(releases)} release(s)")
        return releases

    async def latest_release(self) -> ReleaseDescriptor:
        """The newest release (page 1, size 1).

        Raises:
            NoReleasesError: If the listing is empty
        """
        releases = await self.list_releases(page=1, per_page=1)
        if not releases:
            raise NoReleasesError()
        return releases[0]
