"""
Streaming module for tvgrid.

Provides:
- The stream engine contract and an HTTP/HLS manifest engine
- Error classification into network, media and fatal kinds
- Per-slot failover controllers and the slot grid
"""

from tvgrid.streaming.engine import (
    AttachResult,
    HttpManifestEngine,
    ManifestSession,
    PlayerSession,
    StreamEngine,
)
from tvgrid.streaming.error_handler import (
    EngineError,
    EngineErrorKind,
    ErrorClassifier,
    ErrorHandler,
    PlaylistLoadError,
)
from tvgrid.streaming.failover import (
    FailoverController,
    FailoverSlotState,
    SlotEvent,
    SlotStatus,
)
from tvgrid.streaming.slot_manager import SlotConflictError, SlotManager

__all__ = [
    # Engine
    "AttachResult",
    "HttpManifestEngine",
    "ManifestSession",
    "PlayerSession",
    "StreamEngine",
    # Errors
    "EngineError",
    "EngineErrorKind",
    "ErrorClassifier",
    "ErrorHandler",
    "PlaylistLoadError",
    # Failover
    "FailoverController",
    "FailoverSlotState",
    "SlotEvent",
    "SlotStatus",
    # Slots
    "SlotConflictError",
    "SlotManager",
]
