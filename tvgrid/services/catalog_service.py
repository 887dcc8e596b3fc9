"""Playlist refresh and validation runs for the channel catalog"""

import asyncio
import contextlib
import logging

from ..catalog.catalog import ChannelCatalog
from ..config import TVGridConfig, get_config
from ..importers.playlist_loader import PlaylistLoader
from ..streaming.engine import StreamEngine
from ..validation.source_validator import ProgressCallback, SourceValidator, ValidationReport

logger = logging.getLogger(__name__)


class ValidationSupersededError(Exception):
    """A validation run was abandoned in favour of a newer one."""


class CatalogService:
    """Loads playlists into the catalog and tracks channel validity"""

    def __init__(
        self,
        catalog: ChannelCatalog,
        loader: PlaylistLoader,
        engine: StreamEngine,
        config: TVGridConfig | None = None,
    ):
        self.catalog = catalog
        self.loader = loader
        self.engine = engine
        self.config = config or get_config()
        self.loaded_url: str | None = None
        self.last_report: ValidationReport | None = None
        self._validation_task: asyncio.Task | None = None

    @property
    def valid_ids(self) -> frozenset[int] | None:
        """Valid channel ids from the last completed run, or None."""
        if self.last_report is None:
            return None
        return self.last_report.valid_ids

    @property
    def is_validating(self) -> bool:
        return self._validation_task is not None and not self._validation_task.done()

    async def refresh(self, url: str | None = None) -> int:
        """
        Reload the playlist and swap the catalog.

        Falls back to the configured fallback playlist when the requested
        one cannot be fetched. The catalog is only replaced once a playlist
        has been fetched and parsed completely.

        Returns:
            Number of channels in the new catalog

        Raises:
            PlaylistLoadError: If no playlist could be fetched.
        """
        target = url or self.config.playlist.url
        if not target:
            raise ValueError("No playlist URL given and none configured")

        channels, loaded_from = await self.loader.load_with_fallback(
            target, self.config.playlist.fallback_url or None
        )

        await self.cancel_validation()
        self.catalog.replace(channels)
        self.loaded_url = loaded_from
        self.last_report = None
        return len(channels)

    async def validate(self, on_progress: ProgressCallback | None = None) -> ValidationReport:
        """
        Validate the current catalog.

        Starting a run supersedes any run still in flight. Results only
        live in memory for this session.
        """
        await self.cancel_validation()

        validator = SourceValidator(
            self.engine,
            concurrency_limit=self.config.validation.concurrency_limit,
            probe_timeout=self.config.validation.probe_timeout,
        )
        generation = self.catalog.generation
        task = asyncio.create_task(validator.validate(self.catalog.entries, on_progress))
        self._validation_task = task

        try:
            report = await task
        except asyncio.CancelledError:
            if self._validation_task is task:
                raise
            raise ValidationSupersededError("Validation run was superseded or cancelled") from None
        finally:
            if self._validation_task is task:
                self._validation_task = None

        if generation == self.catalog.generation:
            self.last_report = report
        else:
            logger.info("Catalog changed during validation; discarding results")
        return report

    async def cancel_validation(self) -> None:
        """Abandon the in-flight validation run, if any."""
        task = self._validation_task
        self._validation_task = None
        if task is None or task.done():
            return

        logger.info("Cancelling in-flight validation run")
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def visible_channels(self, hide_invalid: bool = False):
        """Catalog entries to display, honouring the last validation run."""
        return self.catalog.visible(self.valid_ids, hide_invalid=hide_invalid)
