#!/usr/bin/env python3
"""
tvgrid command line

Usage:
    python -m tvgrid list [URL] [--search TEXT] [--group NAME]
    python -m tvgrid check [URL] [--concurrency N] [--timeout SECONDS] [--hide-invalid]

URL defaults to playlist.url from config.yaml (or TVGRID_PLAYLIST_URL).
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from tvgrid.catalog.catalog import ChannelCatalog
from tvgrid.catalog.models import ChannelEntry
from tvgrid.config import TVGridConfig, load_config
from tvgrid.importers.playlist_loader import PlaylistLoader
from tvgrid.services.catalog_service import CatalogService
from tvgrid.streaming.engine import HttpManifestEngine
from tvgrid.streaming.error_handler import PlaylistLoadError
from tvgrid.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tvgrid",
        description="Load live TV playlists and check which channels play",
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--log-level", help="Override logging level (DEBUG, INFO, ...)")
    parser.add_argument("--log-file", help="Write logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List channels in a playlist")
    list_parser.add_argument("url", nargs="?", help="Playlist URL")
    list_parser.add_argument("--search", default="", help="Filter by name or group")
    list_parser.add_argument("--group", help="Only show this group")

    check_parser = subparsers.add_parser("check", help="Validate channel sources")
    check_parser.add_argument("url", nargs="?", help="Playlist URL")
    check_parser.add_argument("--concurrency", type=int, help="Channels probed in parallel")
    check_parser.add_argument("--timeout", type=float, help="Per-probe timeout in seconds")
    check_parser.add_argument(
        "--hide-invalid", action="store_true", help="Only print channels that validated"
    )

    return parser


def format_channel(entry: ChannelEntry, status: Optional[str] = None) -> str:
    sources = f"{len(entry.sources)} source{'s' if len(entry.sources) != 1 else ''}"
    line = f"{entry.id:>5}  {entry.name}  [{entry.group}]  ({sources})"
    if status:
        line = f"{line}  {status}"
    return line


async def run_list(args: argparse.Namespace, cfg: TVGridConfig) -> int:
    catalog = ChannelCatalog()
    async with PlaylistLoader(
        timeout=cfg.playlist.fetch_timeout, user_agent=cfg.playlist.user_agent
    ) as loader, HttpManifestEngine(user_agent=cfg.playlist.user_agent) as engine:
        service = CatalogService(catalog, loader, engine, cfg)
        await service.refresh(args.url)

    entries = catalog.search(args.search)
    if args.group:
        entries = [entry for entry in entries if entry.group == args.group]

    for entry in entries:
        print(format_channel(entry))
    print(f"{len(entries)} of {len(catalog)} channels, groups: {', '.join(catalog.groups())}")
    return 0


async def run_check(args: argparse.Namespace, cfg: TVGridConfig) -> int:
    if args.concurrency is not None:
        cfg.validation.concurrency_limit = max(1, args.concurrency)
    if args.timeout is not None:
        cfg.validation.probe_timeout = args.timeout

    catalog = ChannelCatalog()

    def on_progress(checked: int, total: int) -> None:
        print(f"Checked {checked}/{total} channels", file=sys.stderr)

    async with PlaylistLoader(
        timeout=cfg.playlist.fetch_timeout, user_agent=cfg.playlist.user_agent
    ) as loader, HttpManifestEngine(user_agent=cfg.playlist.user_agent) as engine:
        service = CatalogService(catalog, loader, engine, cfg)
        await service.refresh(args.url)
        report = await service.validate(on_progress)

    valid_ids = report.valid_ids
    for entry in service.visible_channels(hide_invalid=args.hide_invalid):
        print(format_channel(entry, "OK" if entry.id in valid_ids else "KO"))

    print(f"{report.valid_count}/{report.total} channels valid")
    for record in report.errors:
        print(f"Channel {record.channel_id}: {record.error}", file=sys.stderr)
    return 0 if report.valid_count else 1


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)

    setup_logging(
        log_level=args.log_level or cfg.logging.level,
        log_file=args.log_file or cfg.logging.file,
        max_bytes=cfg.logging.max_bytes,
        backup_count=cfg.logging.backup_count,
        log_format=cfg.logging.format,
    )

    runner = run_list if args.command == "list" else run_check
    try:
        return asyncio.run(runner(args, cfg))
    except PlaylistLoadError as e:
        logger.error(f"Channel list failed to load: {e}")
        return 2
    except ValueError as e:
        logger.error(str(e))
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
