"""Tolerant extended-M3U parser building multi-source channels"""

import logging
import re
from dataclasses import dataclass, field

from ..catalog.models import UNCATEGORIZED, UNKNOWN_CHANNEL, ChannelEntry

logger = logging.getLogger(__name__)

MANIFEST_EXTENSION = ".m3u8"


@dataclass
class ExtinfDescriptor:
    """Metadata from one #EXTINF line, pending its URL line"""

    name: str
    logo: str = ""
    group: str = UNCATEGORIZED
    tvg_id: str | None = None
    extra_attrs: dict[str, str] = field(default_factory=dict)


@dataclass
class _PendingChannel:
    name: str
    logo: str
    group: str
    sources: list[str] = field(default_factory=list)


class M3UParser:
    """Line-oriented parser for #EXTINF/URL pairs"""

    # Compiled regex patterns for performance
    ATTR_PATTERN = re.compile(r'([\w-]+)="([^"]*)"')

    EXTINF_PREFIX = "#EXTINF:"

    @staticmethod
    def parse_extinf_line(line: str) -> ExtinfDescriptor:
        """
        Parse an #EXTINF line.

        Format: #EXTINF:-1 tvg-id="..." tvg-name="..." tvg-logo="..." group-title="...",Channel Name

        Each attribute is looked up independently, so order and absence do
        not matter. Empty attribute values count as absent.
        """
        attrs: dict[str, str] = {}
        for key, value in M3UParser.ATTR_PATTERN.findall(line):
            attrs.setdefault(key.lower(), value)

        # Display name is the free text after the last comma
        display_name = line.rsplit(",", 1)[1].strip() if "," in line else ""

        name = attrs.pop("tvg-name", "") or display_name or UNKNOWN_CHANNEL
        logo = attrs.pop("tvg-logo", "")
        group = attrs.pop("group-title", "") or UNCATEGORIZED
        tvg_id = attrs.pop("tvg-id", "") or None

        return ExtinfDescriptor(
            name=name, logo=logo, group=group, tvg_id=tvg_id, extra_attrs=attrs
        )

    @staticmethod
    def is_manifest_url(url: str) -> bool:
        return MANIFEST_EXTENSION in url

    @staticmethod
    def parse(text: str) -> list[ChannelEntry]:
        """
        Convert playlist text into deduplicated channel entries.

        Channels are keyed by display name; each repeated name contributes
        another source. A URL already listed for the same channel is not
        appended a second time, so a channel never fails over onto the
        source that just failed. Never raises on malformed input.

        Args:
            text: Raw extended-M3U document

        Returns:
            Channels with at least one manifest source, ids 1..N in
            order of first appearance
        """
        channels: dict[str, _PendingChannel] = {}
        pending: ExtinfDescriptor | None = None
        skipped = 0

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line:
                continue

            if line.startswith(M3UParser.EXTINF_PREFIX):
                if pending is not None:
                    logger.debug(f"Discarding #EXTINF without URL: {pending.name}")
                    skipped += 1
                pending = M3UParser.parse_extinf_line(line)

            elif line.startswith("http"):
                if pending is None:
                    logger.debug(f"Ignoring URL without #EXTINF: {line}")
                    skipped += 1
                    continue

                channel = channels.get(pending.name)
                if channel is None:
                    channel = _PendingChannel(
                        name=pending.name, logo=pending.logo, group=pending.group
                    )
                    channels[pending.name] = channel

                if not M3UParser.is_manifest_url(line):
                    logger.debug(f"Dropping non-manifest source for {pending.name}: {line}")
                    skipped += 1
                elif line not in channel.sources:
                    channel.sources.append(line)

                pending = None

        entries = [
            ChannelEntry(
                id=position,
                name=channel.name,
                group=channel.group,
                logo=channel.logo,
                sources=channel.sources,
            )
            for position, channel in enumerate(
                (c for c in channels.values() if c.sources), start=1
            )
        ]

        logger.info(
            f"Parsed {len(entries)} channels "
            f"({sum(len(e.sources) for e in entries)} sources, {skipped} lines skipped)"
        )
        return entries


def parse_playlist(text: str) -> list[ChannelEntry]:
    """Parse extended-M3U text into channel entries."""
    return M3UParser.parse(text)
