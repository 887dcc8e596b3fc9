"""Test fixtures for tvgrid."""

from tests.fixtures.fake_engine import HANG, READY, FakeEngine, FakeSession

__all__ = ["FakeEngine", "FakeSession", "HANG", "READY"]
