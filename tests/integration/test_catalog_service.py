"""
Integration tests for playlist refresh and validation runs.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio

from tests.conftest import SAMPLE_PLAYLIST
from tests.fixtures import HANG, FakeEngine
from tvgrid.catalog import ChannelCatalog, ChannelEntry
from tvgrid.config import TVGridConfig
from tvgrid.importers import PlaylistLoader
from tvgrid.services import CatalogService, ValidationSupersededError
from tvgrid.streaming import EngineErrorKind, PlaylistLoadError

SMALL_PLAYLIST = """#EXTM3U
#EXTINF:-1,Only One
http://one.example/live.m3u8
"""


def playlist_server(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/main.m3u":
        return httpx.Response(200, text=SAMPLE_PLAYLIST)
    if request.url.path == "/small.m3u":
        return httpx.Response(200, text=SMALL_PLAYLIST)
    return httpx.Response(503)


@pytest.fixture
def service_config() -> TVGridConfig:
    return TVGridConfig(
        playlist={
            "url": "http://lists.example/main.m3u",
            "fallback_url": "http://lists.example/small.m3u",
        },
        validation={"concurrency_limit": 2, "probe_timeout": 0.1},
    )


@pytest_asyncio.fixture
async def loader():
    async with httpx.AsyncClient(transport=httpx.MockTransport(playlist_server)) as client:
        yield PlaylistLoader(client=client)


@pytest.fixture
def service(loader, fake_engine, service_config) -> CatalogService:
    return CatalogService(ChannelCatalog(), loader, fake_engine, service_config)


@pytest.mark.integration
class TestRefresh:
    """Tests for CatalogService.refresh."""

    @pytest.mark.asyncio
    async def test_refresh_configured_url(self, service):
        """Test loading the configured playlist into the catalog."""
        count = await service.refresh()

        assert count == 3
        assert len(service.catalog) == 3
        assert service.loaded_url == "http://lists.example/main.m3u"

    @pytest.mark.asyncio
    async def test_refresh_falls_back(self, service):
        """Test falling back when the requested playlist is unavailable."""
        count = await service.refresh("http://lists.example/missing.m3u")

        assert count == 1
        assert service.loaded_url == "http://lists.example/small.m3u"

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_catalog(self, loader, fake_engine):
        """Test that a failed load leaves the previous catalog in place."""
        config = TVGridConfig(playlist={"url": "http://lists.example/main.m3u"})
        service = CatalogService(ChannelCatalog(), loader, fake_engine, config)
        await service.refresh()
        generation = service.catalog.generation

        with pytest.raises(PlaylistLoadError):
            await service.refresh("http://lists.example/missing.m3u")

        assert len(service.catalog) == 3
        assert service.catalog.generation == generation

    @pytest.mark.asyncio
    async def test_refresh_without_url(self, loader, fake_engine):
        """Test that a URL is required."""
        service = CatalogService(ChannelCatalog(), loader, fake_engine, TVGridConfig())

        with pytest.raises(ValueError):
            await service.refresh()

    @pytest.mark.asyncio
    async def test_refresh_clears_validation(self, service):
        """Test that reloading forgets the previous run's results."""
        await service.refresh()
        await service.validate()
        assert service.valid_ids is not None

        await service.refresh()

        assert service.valid_ids is None
        assert len(service.visible_channels(hide_invalid=True)) == 3


@pytest.mark.integration
class TestValidate:
    """Tests for CatalogService.validate."""

    @pytest.mark.asyncio
    async def test_validate_and_hide_invalid(self, service, fake_engine):
        """Test that invalid channels can be hidden after a run."""
        await service.refresh()
        fake_engine.script("http://kids.example/stream.m3u8", EngineErrorKind.NETWORK)
        progress = []

        report = await service.validate(on_progress=lambda c, t: progress.append((c, t)))

        assert report.valid_ids == frozenset({1, 2})
        assert progress == [(2, 3), (3, 3)]
        assert [c.name for c in service.visible_channels(hide_invalid=True)] == [
            "News24",
            "Sport One",
        ]
        assert len(service.visible_channels()) == 3
        assert not service.is_validating

    @pytest.mark.asyncio
    async def test_uses_configured_timeout(self, service, fake_engine):
        """Test that the configured probe timeout applies."""
        await service.refresh()
        fake_engine.script("http://a.example/x.m3u8", HANG)
        fake_engine.script("http://b.example/y.m3u8", HANG)

        report = await service.validate()

        assert 1 not in report.valid_ids
        assert fake_engine.open_sessions == 0

    @pytest.mark.asyncio
    async def test_new_run_supersedes_old(self, loader, service_config):
        """Test that starting a run cancels the one in flight."""
        engine = FakeEngine(delay=0.05)
        service = CatalogService(ChannelCatalog(), loader, engine, service_config)
        await service.refresh()

        first = asyncio.create_task(service.validate())
        await asyncio.sleep(0.01)
        assert service.is_validating

        report = await service.validate()

        with pytest.raises(ValidationSupersededError):
            await first
        assert service.last_report is report
        assert engine.open_sessions == 0

    @pytest.mark.asyncio
    async def test_refresh_cancels_validation(self, loader, service_config):
        """Test that reloading abandons the running validation."""
        engine = FakeEngine(delay=0.05)
        service = CatalogService(ChannelCatalog(), loader, engine, service_config)
        await service.refresh()

        run = asyncio.create_task(service.validate())
        await asyncio.sleep(0.01)
        await service.refresh()

        with pytest.raises(ValidationSupersededError):
            await run
        assert service.last_report is None

    @pytest.mark.asyncio
    async def test_results_for_replaced_catalog_are_discarded(self, loader, service_config):
        """Test that a run over an outdated snapshot does not publish results."""
        engine = FakeEngine(delay=0.05)
        service = CatalogService(ChannelCatalog(), loader, engine, service_config)
        await service.refresh()

        run = asyncio.create_task(service.validate())
        await asyncio.sleep(0.01)
        service.catalog.replace([ChannelEntry(id=1, name="Other", sources=["http://o.example/a.m3u8"])])
        report = await run

        assert report.total == 3
        assert service.last_report is None

    @pytest.mark.asyncio
    async def test_cancel_validation_when_idle(self, service):
        """Test that cancelling with nothing running is a no-op."""
        await service.cancel_validation()

        assert not service.is_validating
