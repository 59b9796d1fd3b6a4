"""Integration test fixtures: real disk cache and parser, mocked HTTP."""

from __future__ import annotations

import pytest

from price_intel.core.config import PriceIntelConfig
from price_intel.prices.cache import DiskCache
from price_intel.prices.service import PriceService
from price_intel.prices.snapshot import IndexSnapshot, now_millis


@pytest.fixture
def disk_cache(price_config: PriceIntelConfig) -> DiskCache:
    return DiskCache(price_config.cache.cache_path)


@pytest.fixture
def fresh_cache(disk_cache: DiskCache, valuation_snapshot: IndexSnapshot) -> IndexSnapshot:
    """The valuation snapshot on disk, refreshed just now."""
    snapshot = IndexSnapshot(
        prices=valuation_snapshot.prices,
        bridge=valuation_snapshot.bridge,
        refreshed_at=now_millis(),
    )
    disk_cache.save(snapshot)
    return snapshot


@pytest.fixture
def stale_cache(disk_cache: DiskCache, valuation_snapshot: IndexSnapshot) -> IndexSnapshot:
    """The valuation snapshot on disk, refreshed long ago."""
    disk_cache.save(valuation_snapshot)
    return valuation_snapshot


@pytest.fixture
async def service(price_config: PriceIntelConfig) -> PriceService:
    """A PriceService that has not loaded anything yet."""
    svc = PriceService(price_config)
    yield svc
    await svc.shutdown()
