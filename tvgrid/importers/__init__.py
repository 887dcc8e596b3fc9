"""
Playlist importers.

Parses extended-M3U playlists into multi-source channel entries and
fetches them from remote URLs.
"""

from tvgrid.importers.m3u_parser import ExtinfDescriptor, M3UParser, parse_playlist
from tvgrid.importers.playlist_loader import PlaylistLoader

__all__ = [
    "ExtinfDescriptor",
    "M3UParser",
    "PlaylistLoader",
    "parse_playlist",
]
