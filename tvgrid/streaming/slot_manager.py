"""
Slot manager for the on-screen player grid.

Holds one FailoverController per slot and is the explicit owner of
"which channel plays where". A channel may be bound to at most one slot
at a time, because the bound slot is the only writer of that channel's
active source index.
"""

import logging
from collections.abc import Callable
from typing import Optional

from tvgrid.catalog.catalog import CatalogEvent, CatalogEventType, ChannelCatalog
from tvgrid.config import FailoverConfig
from tvgrid.streaming.engine import StreamEngine
from tvgrid.streaming.error_handler import ErrorHandler
from tvgrid.streaming.failover import FailoverController, SlotObserver, SlotStatus

logger = logging.getLogger(__name__)


class SlotConflictError(Exception):
    """Raised when a channel is already bound to another slot."""

    def __init__(self, channel_id: int, slot_id: int):
        super().__init__(f"Channel {channel_id} is already playing in slot {slot_id}")
        self.channel_id = channel_id
        self.slot_id = slot_id


class SlotManager:
    """Fixed-size grid of player slots sharing one catalog and engine."""

    def __init__(
        self,
        catalog: ChannelCatalog,
        engine: StreamEngine,
        slot_count: int = 9,
        config: FailoverConfig | None = None,
    ):
        if slot_count < 1:
            raise ValueError("slot_count must be at least 1")

        self.catalog = catalog
        self.error_handler = ErrorHandler()
        self.slots: list[FailoverController] = [
            FailoverController(
                slot_id=slot_id,
                catalog=catalog,
                engine=engine,
                config=config,
                error_handler=self.error_handler,
            )
            for slot_id in range(slot_count)
        ]
        self._unsubscribe_catalog: Optional[Callable[[], None]] = catalog.subscribe(
            self._on_catalog_event
        )
        self._stale_slots: set[int] = set()

    def __len__(self) -> int:
        return len(self.slots)

    def slot(self, slot_id: int) -> FailoverController:
        if not 0 <= slot_id < len(self.slots):
            raise IndexError(f"No slot {slot_id} (grid has {len(self.slots)} slots)")
        return self.slots[slot_id]

    def slot_for_channel(self, channel_id: int) -> FailoverController | None:
        """The slot currently bound to a channel, if any."""
        for controller in self.slots:
            channel = controller.channel
            if (
                channel is not None
                and channel.id == channel_id
                and self.catalog.is_current(channel)
            ):
                return controller
        return None

    async def bind(self, slot_id: int, channel_id: int) -> FailoverController:
        """
        Put a channel on a slot.

        Raises:
            SlotConflictError: If another slot already plays the channel.
            ChannelNotFoundError: If the channel is not in the catalog.
        """
        controller = self.slot(slot_id)
        owner = self.slot_for_channel(channel_id)
        if owner is not None and owner is not controller:
            raise SlotConflictError(channel_id, owner.slot_id)

        await controller.bind(channel_id)
        self._stale_slots.discard(slot_id)
        return controller

    async def unbind(self, slot_id: int) -> None:
        await self.slot(slot_id).unbind()
        self._stale_slots.discard(slot_id)

    async def next_source(self, slot_id: int) -> None:
        await self.slot(slot_id).next_source()

    async def fill(self, channel_ids: list[int]) -> None:
        """Bind channels to slots in order, unbinding slots left over."""
        # Release channels that move to another slot before rebinding
        for slot_id, controller in enumerate(self.slots):
            channel = controller.channel
            if channel is None or not self.catalog.is_current(channel):
                continue
            if channel.id in channel_ids and channel_ids.index(channel.id) != slot_id:
                await self.unbind(slot_id)

        for slot_id, controller in enumerate(self.slots):
            if slot_id < len(channel_ids):
                await self.bind(slot_id, channel_ids[slot_id])
            elif controller.channel is not None:
                await self.unbind(slot_id)

    def subscribe(self, observer: SlotObserver) -> Callable[[], None]:
        """Observe status changes of every slot."""
        unsubscribers = [controller.subscribe(observer) for controller in self.slots]

        def unsubscribe() -> None:
            for remove in unsubscribers:
                remove()

        return unsubscribe

    def statuses(self) -> dict[int, SlotStatus]:
        return {controller.slot_id: controller.status for controller in self.slots}

    @property
    def stale_slots(self) -> set[int]:
        """Slots whose channel belongs to a replaced catalog snapshot."""
        return set(self._stale_slots)

    async def release_stale(self) -> None:
        """Unbind every slot still playing a channel from a replaced catalog."""
        for slot_id in sorted(self._stale_slots):
            await self.slots[slot_id].unbind()
        self._stale_slots.clear()

    async def close(self) -> None:
        if self._unsubscribe_catalog is not None:
            self._unsubscribe_catalog()
            self._unsubscribe_catalog = None
        for controller in self.slots:
            await controller.close()

    def _on_catalog_event(self, event: CatalogEvent) -> None:
        if event.event_type != CatalogEventType.REPLACED:
            return
        for controller in self.slots:
            if controller.channel is not None and not self.catalog.is_current(controller.channel):
                self._stale_slots.add(controller.slot_id)
        if self._stale_slots:
            logger.info(
                f"Catalog replaced while {len(self._stale_slots)} slot(s) were bound; "
                f"they keep playing until rebound"
            )
