"""
In-memory channel catalog.

The catalog is the single source of truth for the current playlist
snapshot. It is swapped wholesale on reload and otherwise only touched
through single-field point updates, each of which is published to
registered observers.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from tvgrid.catalog.models import ChannelEntry

logger = logging.getLogger(__name__)


class ChannelNotFoundError(KeyError):
    """Raised when a channel id is not part of the current snapshot."""


class CatalogEventType(str, Enum):
    """Kinds of catalog change notifications."""

    REPLACED = "replaced"
    ACTIVE_SOURCE_CHANGED = "active_source_changed"
    VOLUME_CHANGED = "volume_changed"


@dataclass(frozen=True)
class CatalogEvent:
    """A single catalog change."""

    event_type: CatalogEventType
    generation: int
    channel_id: int | None = None


CatalogObserver = Callable[[CatalogEvent], None]


class ChannelCatalog:
    """Holds the current list of ChannelEntry records."""

    def __init__(self, entries: Iterable[ChannelEntry] | None = None):
        self._entries: list[ChannelEntry] = []
        self._by_id: dict[int, ChannelEntry] = {}
        self._observers: list[CatalogObserver] = []
        self.generation = 0
        if entries is not None:
            self._install(list(entries))

    # ------------------------------------------------------------ access

    @property
    def entries(self) -> list[ChannelEntry]:
        """Snapshot of the current entries in catalog order."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ChannelEntry]:
        return iter(list(self._entries))

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._by_id

    def get(self, channel_id: int) -> ChannelEntry:
        try:
            return self._by_id[channel_id]
        except KeyError:
            raise ChannelNotFoundError(channel_id) from None

    # --------------------------------------------------------- mutation

    def replace(self, entries: Iterable[ChannelEntry]) -> None:
        """
        Atomically replace the whole catalog.

        Args:
            entries: Fully parsed channel list. Ids must be unique and
                every entry needs at least one source.

        Raises:
            ValueError: If an entry breaks the catalog invariants. The
                current snapshot is left untouched.
        """
        new_entries = list(entries)
        self._install(new_entries)
        logger.info(
            f"Catalog replaced: {len(new_entries)} channels (generation {self.generation})"
        )
        self._notify(CatalogEvent(CatalogEventType.REPLACED, self.generation))

    def set_active_source(self, channel_id: int, index: int) -> None:
        """Point the channel at another of its sources."""
        entry = self.get(channel_id)
        if not 0 <= index < len(entry.sources):
            raise ValueError(
                f"Source index {index} out of range for channel {channel_id} "
                f"({len(entry.sources)} sources)"
            )
        if entry.active_source_index == index:
            return

        entry.active_source_index = index
        self._notify(
            CatalogEvent(CatalogEventType.ACTIVE_SOURCE_CHANGED, self.generation, channel_id)
        )

    def set_volume(self, channel_id: int, volume: float) -> None:
        """Set a channel's volume, clamped to [0, 1]. Zero mutes."""
        entry = self.get(channel_id)
        entry.volume = max(0.0, min(1.0, float(volume)))
        self._notify(CatalogEvent(CatalogEventType.VOLUME_CHANGED, self.generation, channel_id))

    def is_current(self, entry: ChannelEntry) -> bool:
        """True if this exact entry object belongs to the current snapshot."""
        return self._by_id.get(entry.id) is entry

    # --------------------------------------------------------- browsing

    def search(self, query: str) -> list[ChannelEntry]:
        """Case-insensitive substring match over channel name and group."""
        needle = query.strip().lower()
        if not needle:
            return self.entries
        return [
            entry
            for entry in self._entries
            if needle in entry.name.lower() or needle in entry.group.lower()
        ]

    def groups(self) -> list[str]:
        """Distinct group labels in order of first appearance."""
        return list(dict.fromkeys(entry.group for entry in self._entries))

    def in_group(self, group: str) -> list[ChannelEntry]:
        return [entry for entry in self._entries if entry.group == group]

    def visible(
        self, valid_ids: Iterable[int] | None, hide_invalid: bool = False
    ) -> list[ChannelEntry]:
        """
        Entries to present, optionally hiding channels that failed validation.

        Without a completed validation run (valid_ids is None) nothing is hidden.
        """
        if not hide_invalid or valid_ids is None:
            return self.entries
        keep = set(valid_ids)
        return [entry for entry in self._entries if entry.id in keep]

    # -------------------------------------------------------- observers

    def subscribe(self, observer: CatalogObserver) -> Callable[[], None]:
        """
        Register a change observer.

        Returns:
            A callable that removes the observer again.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    @staticmethod
    def _check_entries(entries: list[ChannelEntry]) -> None:
        ids = [entry.id for entry in entries]
        if len(set(ids)) != len(ids):
            raise ValueError("Channel ids must be unique within a catalog")
        for entry in entries:
            if not entry.sources:
                raise ValueError(f"Channel {entry.id} ({entry.name}) has no sources")
            if not 0 <= entry.active_source_index < len(entry.sources):
                raise ValueError(
                    f"Channel {entry.id} ({entry.name}) active source index "
                    f"{entry.active_source_index} out of range"
                )

    def _install(self, entries: list[ChannelEntry]) -> None:
        self._check_entries(entries)
        self._entries = entries
        self._by_id = {entry.id: entry for entry in entries}
        self.generation += 1

    def _notify(self, event: CatalogEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.error(f"Catalog observer failed: {e}", exc_info=True)
