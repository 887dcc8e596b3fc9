"""
Stream engine contract and an HTTP manifest implementation.

The failover controller and the source validator never talk to the
network themselves. They drive a PlayerSession obtained from a
StreamEngine: attach(url, timeout) settles as either ready or a
classified EngineError, and close() releases whatever the session holds.
A real adaptive-streaming player can be plugged in behind the same
contract; HttpManifestEngine is the built-in implementation used for
probing, which treats a successfully parsed HLS manifest as "ready".
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx
import m3u8

from tvgrid.streaming.error_handler import EngineError, EngineErrorKind, ErrorHandler

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) tvgrid"


@dataclass(frozen=True)
class AttachResult:
    """Settlement of an attach or recovery attempt."""

    url: str
    error: EngineError | None = None

    @property
    def ready(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, url: str) -> "AttachResult":
        return cls(url=url)

    @classmethod
    def failed(cls, url: str, error: EngineError) -> "AttachResult":
        return cls(url=url, error=error)


@runtime_checkable
class PlayerSession(Protocol):
    """One attached stream: a probe, or the player behind a slot."""

    async def attach(self, url: str, timeout: float) -> AttachResult:
        """Load url; settle ready once its manifest is usable."""
        ...

    async def recover_media(self, timeout: float) -> AttachResult:
        """Try to recover from a media error without changing source."""
        ...

    async def close(self) -> None:
        """Release all resources. Safe to call more than once."""
        ...


@runtime_checkable
class StreamEngine(Protocol):
    """Factory for player sessions."""

    def open_session(self) -> PlayerSession:
        ...


class ManifestSession:
    """PlayerSession that fetches and parses an HLS manifest over HTTP."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        error_handler: ErrorHandler,
    ):
        self._client = client
        self.error_handler = error_handler
        self.url: str | None = None
        self.playlist: m3u8.M3U8 | None = None
        self.closed = False

    async def attach(self, url: str, timeout: float) -> AttachResult:
        if self.closed:
            raise RuntimeError("Session is closed")
        self.url = url
        self.playlist = None
        return await self._load(url, timeout)

    async def recover_media(self, timeout: float) -> AttachResult:
        if self.url is None:
            raise RuntimeError("Nothing attached to recover")
        logger.debug(f"Reloading manifest for in-place recovery: {self.url}")
        return await self._load(self.url, timeout)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.playlist = None

    async def _load(self, url: str, timeout: float) -> AttachResult:
        context = {"url": url}
        try:
            response = await asyncio.wait_for(
                self._client.get(url, timeout=timeout), timeout=timeout
            )
            if response.status_code >= 400:
                context["http_status_code"] = response.status_code
                raise httpx.HTTPStatusError(
                    f"HTTP {response.status_code}",
                    request=response.request,
                    response=response,
                )
            playlist = self._parse_manifest(response.text, str(response.url))
        except Exception as e:
            return AttachResult.failed(url, self.error_handler.handle_error(e, context))

        self.playlist = playlist
        return AttachResult.ok(url)

    @staticmethod
    def _parse_manifest(content: str, uri: str) -> m3u8.M3U8:
        """Parse content as HLS; a manifest with nothing to play is a media error."""
        if "#EXTM3U" not in content:
            raise EngineError(EngineErrorKind.MEDIA, "Response is not an HLS manifest", url=uri)

        try:
            playlist = m3u8.loads(content, uri=uri)
        except Exception as e:
            raise EngineError(
                EngineErrorKind.MEDIA, f"Manifest parsing failed: {e}", url=uri, original_exception=e
            ) from e

        if playlist.is_variant:
            if not playlist.playlists:
                raise EngineError(EngineErrorKind.MEDIA, "Master manifest lists no variants", url=uri)
        elif not playlist.segments:
            raise EngineError(EngineErrorKind.MEDIA, "Media manifest lists no segments", url=uri)

        return playlist


class HttpManifestEngine:
    """
    StreamEngine backed by a shared httpx.AsyncClient.

    Use as an async context manager, or call aclose() when done.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        error_handler: ErrorHandler | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": user_agent, "Accept": "*/*"},
        )
        self.error_handler = error_handler or ErrorHandler()

    def open_session(self) -> ManifestSession:
        return ManifestSession(self._client, self.error_handler)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpManifestEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
