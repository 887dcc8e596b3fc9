"""
Per-slot playback failover.

Each on-screen player slot owns one FailoverController. The controller
binds a catalog channel to a player session and walks the state machine

    IDLE -> ATTACHING -> PLAYING
    ATTACHING|PLAYING -> RECOVERING -> ATTACHING   (network: next source)
    ATTACHING|PLAYING -> RECOVERING -> PLAYING     (media: same source)
    any -> EXHAUSTED                               (fatal, or recovery failed)

Only a network error or an explicit user switch moves the channel's
active source index. Network failover wraps around the source list and,
unless `stop_after_full_cycle` is configured, keeps cycling for as long
as sources keep failing.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tvgrid.catalog.catalog import ChannelCatalog
from tvgrid.catalog.models import ChannelEntry
from tvgrid.config import FailoverConfig
from tvgrid.streaming.engine import AttachResult, PlayerSession, StreamEngine
from tvgrid.streaming.error_handler import EngineError, EngineErrorKind, ErrorHandler

logger = logging.getLogger(__name__)


class SlotStatus(str, Enum):
    """Playback states of a slot."""

    IDLE = "idle"
    ATTACHING = "attaching"
    PLAYING = "playing"
    RECOVERING = "recovering"
    EXHAUSTED = "exhausted"


@dataclass
class FailoverSlotState:
    """Mutable state owned by one controller."""

    bound_channel_id: int | None = None
    attempted_sources: set[int] = field(default_factory=set)
    status: SlotStatus = SlotStatus.IDLE
    last_error: EngineError | None = None


@dataclass(frozen=True)
class SlotEvent:
    """Status change published to slot observers."""

    slot_id: int
    status: SlotStatus
    channel_id: int | None
    source_index: int | None
    error: EngineError | None = None


SlotObserver = Callable[[SlotEvent], None]


class FailoverController:
    """Drives one player slot and fails over between a channel's sources."""

    def __init__(
        self,
        slot_id: int,
        catalog: ChannelCatalog,
        engine: StreamEngine,
        config: FailoverConfig | None = None,
        error_handler: ErrorHandler | None = None,
    ):
        """
        Initialize a slot controller.

        Args:
            slot_id: Position of the slot on screen.
            catalog: Catalog the bound channel belongs to.
            engine: Opens the player session for each binding.
            config: Failover tuning (timeouts, bounded retry flag).
            error_handler: Classifies unexpected session exceptions.
        """
        self.slot_id = slot_id
        self.catalog = catalog
        self.engine = engine
        self.config = config or FailoverConfig()
        self.error_handler = error_handler or ErrorHandler()

        self.state = FailoverSlotState()
        self._channel: ChannelEntry | None = None
        self._session: PlayerSession | None = None
        self._task: asyncio.Task | None = None
        self._observers: list[SlotObserver] = []

    # ------------------------------------------------------------ status

    @property
    def status(self) -> SlotStatus:
        return self.state.status

    @property
    def channel(self) -> ChannelEntry | None:
        return self._channel

    @property
    def is_switching_source(self) -> bool:
        """True while the slot is recovering from a playback error."""
        return self.state.status == SlotStatus.RECOVERING

    @property
    def is_exhausted(self) -> bool:
        return self.state.status == SlotStatus.EXHAUSTED

    def subscribe(self, observer: SlotObserver) -> Callable[[], None]:
        """Register a status observer; returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ----------------------------------------------------- user actions

    async def bind(self, channel_id: int) -> None:
        """
        Bind the slot to a channel and start attaching its active source.

        Any previous binding is torn down unconditionally: in-flight work
        is cancelled, the old session closed and the attempted set cleared.
        """
        channel = self.catalog.get(channel_id)
        await self._teardown()

        self._channel = channel
        self._session = self.engine.open_session()
        self.state = FailoverSlotState(bound_channel_id=channel.id)
        self._set_status(SlotStatus.IDLE)

        logger.info(f"Slot {self.slot_id}: bound to {channel.name} ({len(channel.sources)} sources)")
        self._start(self._attach_loop())

    async def unbind(self) -> None:
        """Release the slot."""
        await self._teardown()
        self.state = FailoverSlotState()
        self._set_status(SlotStatus.IDLE)

    async def next_source(self) -> None:
        """Explicit user request to play the channel's next source."""
        channel = self._require_channel()
        await self.select_source((channel.active_source_index + 1) % len(channel.sources))

    async def select_source(self, index: int) -> None:
        """Explicit user request to play a specific source."""
        channel = self._require_channel()
        if not 0 <= index < len(channel.sources):
            raise ValueError(f"Source index {index} out of range for {channel.name}")

        await self._cancel_pending()
        self._set_active_index(index)
        self.state.attempted_sources.clear()
        self.state.last_error = None
        self._set_status(SlotStatus.IDLE)
        self._start(self._attach_loop())

    async def restart(self) -> None:
        """Re-attach the current source, e.g. after the slot was exhausted."""
        channel = self._require_channel()
        await self.select_source(channel.active_source_index)

    # ---------------------------------------------------- engine events

    async def report_error(
        self, error: EngineError | EngineErrorKind, message: str = ""
    ) -> None:
        """
        Handle an error signalled by the player session during playback.

        A fatal error exhausts a bound slot whatever its state, cancelling
        any recovery in progress. Other errors are ignored unless the slot
        is attaching or playing; recovery in progress already owns the slot.
        """
        if isinstance(error, EngineErrorKind):
            error = EngineError(error, message or error.value)
        if self._channel is not None and error.kind == EngineErrorKind.FATAL:
            await self._cancel_pending()
            self._exhaust(error)
            return
        if self._channel is None or self.state.status not in (
            SlotStatus.ATTACHING,
            SlotStatus.PLAYING,
        ):
            logger.debug(
                f"Slot {self.slot_id}: ignoring {error.kind.value} error in state "
                f"{self.state.status.value}"
            )
            return

        await self._cancel_pending()
        self.state.attempted_sources.add(self._channel.active_source_index)
        self._start(self._recover_then_attach(error))

    async def wait_settled(self) -> None:
        """Wait until any in-flight attach or recovery has finished."""
        task = self._task
        if task is not None and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def close(self) -> None:
        await self.unbind()

    # --------------------------------------------------------- internals

    async def _attach_loop(self) -> None:
        while True:
            channel = self._channel
            if channel is None or not self._is_current(channel):
                await self._drop_stale_binding()
                return

            index = channel.active_source_index
            url = channel.sources[index]
            self.state.attempted_sources.add(index)
            self._set_status(SlotStatus.ATTACHING)

            result = await self._attach(url)
            if result.ready:
                self._playing()
                return

            if not await self._handle_failure(result.error):
                return

    async def _recover_then_attach(self, error: EngineError) -> None:
        if await self._handle_failure(error):
            await self._attach_loop()

    async def _handle_failure(self, error: EngineError) -> bool:
        """
        Apply the transition for a classified error.

        Returns:
            True if the slot should attach again (network failover).
        """
        self.state.last_error = error
        channel = self._channel

        if error.kind == EngineErrorKind.FATAL:
            self._exhaust(error)
            return False

        if error.kind == EngineErrorKind.MEDIA:
            await self._recover_media(error)
            return False

        self._set_status(SlotStatus.RECOVERING)
        if self.config.stop_after_full_cycle and len(self.state.attempted_sources) >= len(
            channel.sources
        ):
            logger.warning(
                f"Slot {self.slot_id}: all {len(channel.sources)} sources of "
                f"{channel.name} failed, giving up"
            )
            self._exhaust(error)
            return False

        previous = channel.active_source_index
        self._set_active_index((previous + 1) % len(channel.sources))
        logger.info(
            f"Slot {self.slot_id}: network error on {channel.name} source {previous + 1}, "
            f"switching to source {channel.active_source_index + 1}/{len(channel.sources)}"
        )

        if self.config.failover_delay:
            await asyncio.sleep(self.config.failover_delay)
        return True

    async def _recover_media(self, error: EngineError) -> None:
        self._set_status(SlotStatus.RECOVERING)
        logger.info(
            f"Slot {self.slot_id}: media error on {self._channel.name}, recovering in place"
        )

        for _ in range(self.config.media_recovery_attempts):
            result = await self._call_session(
                lambda: self._session.recover_media(self.config.attach_timeout),
                self._channel.active_source,
            )
            if result.ready:
                self._playing()
                return
            error = result.error
            self.state.last_error = error

        self._exhaust(error)

    async def _attach(self, url: str) -> AttachResult:
        return await self._call_session(
            lambda: self._session.attach(url, self.config.attach_timeout), url
        )

    async def _call_session(
        self, call: Callable[[], Coroutine[Any, Any, AttachResult]], url: str
    ) -> AttachResult:
        timeout = self.config.attach_timeout
        try:
            return await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            return AttachResult.failed(
                url, EngineError(EngineErrorKind.NETWORK, f"No response within {timeout}s", url=url)
            )
        except Exception as e:
            return AttachResult.failed(url, self.error_handler.handle_error(e, {"url": url}))

    def _playing(self) -> None:
        self.state.attempted_sources.clear()
        self.state.last_error = None
        self._set_status(SlotStatus.PLAYING)

    def _exhaust(self, error: EngineError) -> None:
        self.state.last_error = error
        logger.warning(
            f"Slot {self.slot_id}: playback stopped for "
            f"{self._channel.name if self._channel else '?'} ({error.kind.value}: {error.message})"
        )
        self._set_status(SlotStatus.EXHAUSTED)

    def _set_active_index(self, index: int) -> None:
        channel = self._require_channel()
        if self._is_current(channel):
            self.catalog.set_active_source(channel.id, index)
        else:
            channel.active_source_index = index

    def _is_current(self, channel: ChannelEntry) -> bool:
        return self.catalog.is_current(channel)

    async def _drop_stale_binding(self) -> None:
        logger.info(f"Slot {self.slot_id}: bound channel no longer in catalog, releasing slot")
        await self._close_session()
        self._channel = None
        self.state = FailoverSlotState()
        self._set_status(SlotStatus.IDLE)

    def _require_channel(self) -> ChannelEntry:
        if self._channel is None:
            raise RuntimeError(f"Slot {self.slot_id} is not bound to a channel")
        return self._channel

    def _start(self, coro: Coroutine[Any, Any, None]) -> None:
        self._task = asyncio.create_task(coro)

    async def _cancel_pending(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _teardown(self) -> None:
        await self._cancel_pending()
        await self._close_session()
        self._channel = None

    async def _close_session(self) -> None:
        session = self._session
        self._session = None
        if session is not None:
            try:
                await session.close()
            except Exception as e:
                logger.warning(f"Slot {self.slot_id}: failed to close session: {e}")

    def _set_status(self, status: SlotStatus) -> None:
        self.state.status = status
        channel = self._channel
        event = SlotEvent(
            slot_id=self.slot_id,
            status=status,
            channel_id=channel.id if channel else None,
            source_index=channel.active_source_index if channel else None,
            error=self.state.last_error if status == SlotStatus.EXHAUSTED else None,
        )
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.error(f"Slot observer failed: {e}", exc_info=True)
