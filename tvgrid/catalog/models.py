"""Channel data model shared by the parser, catalog, validator and slots"""

from dataclasses import dataclass, field
from typing import Any

UNKNOWN_CHANNEL = "Unknown Channel"
UNCATEGORIZED = "Undefined"


@dataclass
class ChannelEntry:
    """A named channel with one or more candidate stream sources"""

    id: int
    name: str
    group: str = UNCATEGORIZED
    logo: str = ""
    sources: list[str] = field(default_factory=list)
    active_source_index: int = 0
    volume: float = 0.0

    @property
    def active_source(self) -> str:
        """URL of the source currently selected for playback"""
        return self.sources[self.active_source_index]

    @property
    def is_muted(self) -> bool:
        return self.volume == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "id": self.id,
            "name": self.name,
            "group": self.group,
            "logo": self.logo,
            "sources": list(self.sources),
            "active_source_index": self.active_source_index,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class ValidationRecord:
    """Outcome of validating one channel in one validation run"""

    channel_id: int
    is_valid: bool
    error: str | None = None
