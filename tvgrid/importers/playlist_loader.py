"""Remote playlist fetching"""

import logging

import httpx

from ..catalog.models import ChannelEntry
from ..streaming.error_handler import PlaylistLoadError
from .m3u_parser import parse_playlist

logger = logging.getLogger(__name__)


class PlaylistLoader:
    """Fetches extended-M3U playlists over HTTP(S) and parses them"""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        user_agent: str | None = None,
    ):
        self._owns_client = client is None
        headers = {"User-Agent": user_agent} if user_agent else None
        self._client = client or httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, headers=headers
        )
        self.timeout = timeout

    async def fetch_text(self, url: str) -> str:
        """
        Download a playlist document.

        Raises:
            PlaylistLoadError: On transport failure or a non-2xx response.
        """
        logger.info(f"Fetching playlist from URL: {url}")
        try:
            response = await self._client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise PlaylistLoadError(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise PlaylistLoadError(url, f"HTTP {response.status_code}")

        return response.content.decode("utf-8", errors="replace")

    async def load(self, url: str) -> list[ChannelEntry]:
        """Fetch and fully parse a playlist."""
        return parse_playlist(await self.fetch_text(url))

    async def load_with_fallback(
        self, url: str, fallback_url: str | None = None
    ) -> tuple[list[ChannelEntry], str]:
        """
        Load url, falling back to a known-good playlist on failure.

        Returns:
            Tuple of (channels, url actually loaded)

        Raises:
            PlaylistLoadError: If neither playlist could be fetched.
        """
        try:
            return await self.load(url), url
        except PlaylistLoadError as e:
            if not fallback_url or fallback_url == url:
                raise
            logger.warning(f"{e}; falling back to {fallback_url}")
            return await self.load(fallback_url), fallback_url

    async def close(self):
        """Close HTTP client"""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "PlaylistLoader":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
