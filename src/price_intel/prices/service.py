"""PriceService: the process-wide price cache with an explicit lifecycle."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

import httpx

from price_intel.core.config import PriceIntelConfig
from price_intel.core.models import (
    CatalogId,
    PriceSource,
    RefreshOutcome,
    ServiceStatus,
    UpstreamId,
)
from price_intel.ingestion.client import UpstreamClient
from price_intel.prices.cache import DiskCache
from price_intel.prices.coordinator import RefreshCoordinator
from price_intel.prices.lookup import PriceLookup, SourcePrices

logger = logging.getLogger(__name__)


class PriceService:
    """Constructed once per process and handed to its collaborators.

    Typical use::

        async with PriceService(config) as service:
            prices = service.prices_by_catalog_id(scryfall_id)

    ``initialize()`` publishes the disk cache and, when it is stale, starts a
    background refresh. The embedding process owns the schedule and calls
    ``refresh()`` or ``refresh_if_stale()`` when it sees fit.
    """

    def __init__(
        self,
        config: PriceIntelConfig,
        client: UpstreamClient | None = None,
        cache: DiskCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = client or UpstreamClient(config.upstream, transport=transport)
        self._cache = cache or DiskCache(config.cache.cache_path)
        self._coordinator = RefreshCoordinator(config, self._client, self._cache)
        self._lookup = PriceLookup(lambda: self._coordinator.snapshot)
        self._background: asyncio.Task[RefreshOutcome] | None = None

    async def __aenter__(self) -> PriceService:
        await self.initialize()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.shutdown()

    # --- Lifecycle ---

    async def initialize(self) -> None:
        """Load the disk cache and refresh in the background if stale."""
        logger.info("Initializing price service (cache: %s)", self._cache.path)
        await self.load_cache()
        snapshot = self._coordinator.snapshot
        if not self._coordinator.is_stale():
            logger.info(
                "Price cache is fresh: %d prices, %d mappings",
                len(snapshot.prices), len(snapshot.bridge),
            )
            return
        logger.info("Price cache is stale or missing, refreshing in background")
        self._background = self._coordinator.start_background_refresh()

    async def load_cache(self) -> bool:
        """Publish the disk snapshot without scheduling any refresh."""
        return await asyncio.to_thread(self._coordinator.load_cache)

    async def shutdown(self) -> None:
        """Cancel any in-flight refresh and close the HTTP client."""
        await self._coordinator.close()
        await self._client.close()

    async def wait_until_idle(self) -> RefreshOutcome | None:
        """Await the startup background refresh, if one was launched."""
        task = self._background
        if task is None:
            return None
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return None
            raise

    # --- Refresh ---

    async def refresh(self) -> RefreshOutcome:
        return await self._coordinator.refresh()

    async def refresh_if_stale(self) -> RefreshOutcome | None:
        """Refresh only when the cached prices have outlived the TTL."""
        if not self._coordinator.is_stale():
            return None
        return await self.refresh()

    # --- Health ---

    def is_ready(self) -> bool:
        """True once any prices are loaded, regardless of staleness."""
        return len(self._coordinator.snapshot.prices) > 0

    def is_stale(self) -> bool:
        return self._coordinator.is_stale()

    def status(self) -> ServiceStatus:
        snapshot = self._coordinator.snapshot
        return ServiceStatus(
            state=self._coordinator.state,
            ready=len(snapshot.prices) > 0,
            stale=snapshot.is_stale(self._config.cache.cache_ttl_millis),
            refreshing=self._coordinator.refreshing,
            last_refreshed=snapshot.last_refreshed,
            price_count=len(snapshot.prices),
            mapping_count=len(snapshot.bridge),
            cache_path=str(self._cache.path),
            last_outcome=self._coordinator.last_outcome,
        )

    # --- Lookups ---

    @property
    def lookup(self) -> PriceLookup:
        return self._lookup

    def price_by_upstream_id(
        self, upstream_id: UpstreamId, source: PriceSource
    ) -> Decimal | None:
        return self._lookup.price_by_upstream_id(upstream_id, source)

    def price_by_catalog_id(
        self, catalog_id: CatalogId, source: PriceSource
    ) -> Decimal | None:
        return self._lookup.price_by_catalog_id(catalog_id, source)

    def prices_by_catalog_id(self, catalog_id: CatalogId) -> SourcePrices:
        return self._lookup.prices_by_catalog_id(catalog_id)
