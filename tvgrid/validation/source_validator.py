"""
Batched validation of channel sources.

Channels are checked in sequential waves of at most `concurrency_limit`
channels. Inside a wave every channel is probed in parallel, but each
channel walks its own sources strictly in order and stops at the first
one that becomes ready. A wave must fully settle before the next one
starts, so the number of open probe sessions never exceeds the limit.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field

from tvgrid.catalog.models import ChannelEntry, ValidationRecord
from tvgrid.streaming.engine import AttachResult, StreamEngine
from tvgrid.streaming.error_handler import EngineError, EngineErrorKind, ErrorHandler

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY_LIMIT = 5
DEFAULT_PROBE_TIMEOUT = 10.0

ERROR_NO_SOURCES = "no_sources"
ERROR_PROBE_UNAVAILABLE = "probe_unavailable"

ProgressCallback = Callable[[int, int], None]


class ProbeUnavailableError(Exception):
    """The engine could not provide a probe session at all."""


@dataclass
class ValidationReport:
    """Result of one completed validation run."""

    total: int
    records: list[ValidationRecord] = field(default_factory=list)

    @property
    def valid_ids(self) -> frozenset[int]:
        return frozenset(r.channel_id for r in self.records if r.is_valid)

    @property
    def valid_count(self) -> int:
        return len(self.valid_ids)

    @property
    def errors(self) -> list[ValidationRecord]:
        """Records whose probe infrastructure failed."""
        return [r for r in self.records if r.error is not None]


class SourceValidator:
    """Determines which channels currently have a playable source."""

    def __init__(
        self,
        engine: StreamEngine,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        error_handler: ErrorHandler | None = None,
    ):
        """
        Initialize the validator.

        Args:
            engine: Provides one probe session per attempted source.
            concurrency_limit: Channels probed in parallel per wave.
            probe_timeout: Hard upper bound in seconds for a single probe.
            error_handler: Classifies unexpected probe exceptions.
        """
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        if probe_timeout <= 0:
            raise ValueError("probe_timeout must be positive")

        self.engine = engine
        self.concurrency_limit = concurrency_limit
        self.probe_timeout = probe_timeout
        self.error_handler = error_handler or ErrorHandler()
        self.in_flight = 0
        self.peak_in_flight = 0

    async def probe(self, url: str) -> AttachResult:
        """
        Time-boxed check that a single source becomes ready.

        The probe session is closed on every exit path, including timeout
        and cancellation, before this coroutine returns.

        Raises:
            ProbeUnavailableError: If no probe session could be created.
        """
        try:
            session = self.engine.open_session()
        except Exception as e:
            raise ProbeUnavailableError(str(e) or type(e).__name__) from e

        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            return await asyncio.wait_for(
                session.attach(url, self.probe_timeout), timeout=self.probe_timeout
            )
        except asyncio.TimeoutError:
            return AttachResult.failed(
                url,
                EngineError(
                    EngineErrorKind.NETWORK,
                    f"Probe timed out after {self.probe_timeout}s",
                    url=url,
                ),
            )
        except Exception as e:
            return AttachResult.failed(url, self.error_handler.handle_error(e, {"url": url}))
        finally:
            try:
                await session.close()
            except Exception as e:
                logger.warning(f"Failed to close probe session for {url}: {e}")
            self.in_flight -= 1

    async def validate_channel(self, channel: ChannelEntry) -> ValidationRecord:
        """Try a channel's sources in order until one is ready."""
        if not channel.sources:
            return ValidationRecord(channel.id, False, ERROR_NO_SOURCES)

        for index, url in enumerate(channel.sources):
            try:
                result = await self.probe(url)
            except ProbeUnavailableError as e:
                logger.error(f"Cannot probe channel {channel.name}: {e}")
                return ValidationRecord(channel.id, False, f"{ERROR_PROBE_UNAVAILABLE}: {e}")

            if result.ready:
                if index > 0:
                    logger.debug(f"{channel.name}: source {index + 1} ready after earlier failures")
                return ValidationRecord(channel.id, True)

            logger.debug(
                f"{channel.name}: source {index + 1}/{len(channel.sources)} "
                f"failed ({result.error.kind.value}: {result.error.message})"
            )

        return ValidationRecord(channel.id, False)

    async def iter_validate(
        self,
        channels: Iterable[ChannelEntry],
        on_progress: ProgressCallback | None = None,
    ) -> AsyncIterator[ValidationRecord]:
        """
        Validate channels wave by wave, yielding each record.

        Args:
            channels: Channels to validate.
            on_progress: Called with (checked, total) after every wave.

        Yields:
            One ValidationRecord per channel.
        """
        pending = list(channels)
        total = len(pending)
        checked = 0

        for start in range(0, total, self.concurrency_limit):
            batch = pending[start:start + self.concurrency_limit]
            records = await asyncio.gather(*(self.validate_channel(c) for c in batch))

            checked += len(batch)
            if on_progress is not None:
                try:
                    on_progress(checked, total)
                except Exception as e:
                    logger.error(f"Progress callback failed: {e}", exc_info=True)

            for record in records:
                yield record

    async def validate(
        self,
        channels: Iterable[ChannelEntry],
        on_progress: ProgressCallback | None = None,
    ) -> ValidationReport:
        """
        Validate all channels and return the completed run.

        Args:
            channels: Channels to validate.
            on_progress: Called with (checked, total) after every wave.

        Returns:
            ValidationReport holding one record per channel.
        """
        pending = list(channels)
        report = ValidationReport(total=len(pending))

        logger.info(
            f"Validating {report.total} channels "
            f"(concurrency {self.concurrency_limit}, timeout {self.probe_timeout}s)"
        )

        async for record in self.iter_validate(pending, on_progress):
            report.records.append(record)

        logger.info(f"Validation complete: {report.valid_count}/{report.total} channels valid")
        return report
