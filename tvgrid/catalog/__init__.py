"""Channel catalog and data model."""

from tvgrid.catalog.catalog import (
    CatalogEvent,
    CatalogEventType,
    ChannelCatalog,
    ChannelNotFoundError,
)
from tvgrid.catalog.models import UNCATEGORIZED, UNKNOWN_CHANNEL, ChannelEntry, ValidationRecord

__all__ = [
    "CatalogEvent",
    "CatalogEventType",
    "ChannelCatalog",
    "ChannelEntry",
    "ChannelNotFoundError",
    "UNCATEGORIZED",
    "UNKNOWN_CHANNEL",
    "ValidationRecord",
]
