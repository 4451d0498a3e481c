import pytest

from turf_engine.territory import TerritoryCache
from turf_sync import MemoryBlobStore

from helpers import FakeClock, FakeTerritoryStore


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache():
    return TerritoryCache()


@pytest.fixture
def store():
    return FakeTerritoryStore()


@pytest.fixture
def blob_store():
    return MemoryBlobStore()
