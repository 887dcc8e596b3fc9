"""
tvgrid Test Configuration

Shared fixtures and configuration for all tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from tests.fixtures import FakeEngine
from tvgrid.catalog.catalog import ChannelCatalog
from tvgrid.config import FailoverConfig
from tvgrid.importers.m3u_parser import parse_playlist


# ============ Sample Data Fixtures ============


SAMPLE_PLAYLIST = """#EXTM3U
#EXTINF:-1 tvg-id="news24.za" tvg-logo="https://logos.example/news24.png" group-title="News",News24
http://a.example/x.m3u8
#EXTINF:-1 tvg-name="Sport One" group-title="Sports",Sport 1 HD
https://sport.example/live/index.m3u8?token=abc
#EXTINF:-1 group-title="News",News24
http://b.example/y.m3u8
#EXTINF:-1,Movies Direct
http://movies.example/film.mp4
#EXTINF:-1 tvg-logo="https://logos.example/kids.png",Kids Zone
#EXTVLCOPT:http-user-agent=VLC
http://kids.example/stream.m3u8
#EXTINF:-1 group-title="Sports",Sport One
http://sport-backup.example/live.m3u8
"""


@pytest.fixture
def sample_playlist_text() -> str:
    """A small playlist with duplicates, a non-manifest source and VLC options."""
    return SAMPLE_PLAYLIST


@pytest.fixture
def catalog(sample_playlist_text: str) -> ChannelCatalog:
    """Catalog loaded from the sample playlist."""
    return ChannelCatalog(parse_playlist(sample_playlist_text))


@pytest.fixture
def fake_engine() -> FakeEngine:
    """Scripted engine; every URL is ready unless scripted otherwise."""
    return FakeEngine()


@pytest.fixture
def failover_config() -> FailoverConfig:
    """Failover settings without delays for fast tests."""
    return FailoverConfig(attach_timeout=1.0, failover_delay=0)


# ============ Temporary File Fixtures ============


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="function")
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_file = temp_dir / "config.yaml"
    config_content = """
playlist:
  url: "https://lists.example/main.m3u"
  fallback_url: "https://lists.example/backup.m3u"

validation:
  concurrency_limit: 3
  probe_timeout: 4.5

failover:
  stop_after_full_cycle: true

logging:
  level: "DEBUG"
"""
    config_file.write_text(config_content)
    return config_file


# ============ Environment Fixtures ============


@pytest.fixture(autouse=True)
def clean_environment():
    """Clean environment variables for each test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("TVGRID_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============ Markers ============


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "slow: Slow tests")
