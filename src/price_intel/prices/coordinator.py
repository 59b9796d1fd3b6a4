"""Refresh coordinator: the single writer of the published price snapshot.

Refresh protocol
----------------
1. Fetch and parse the price document into a candidate PriceIndex. On
   failure the existing PriceIndex stays authoritative.
2. Fetch and parse the identifier document into a candidate BridgeIndex,
   filtered against whichever PriceIndex is now authoritative. On failure
   the existing BridgeIndex is kept, minus links to uuids no longer priced.
3. Publish both with one reference swap. The timestamp moves only when
   step 1 succeeded.
4. Persist the published snapshot to disk, best effort.

At most one refresh runs at a time; callers arriving mid-refresh await the
same task and receive the same ``RefreshOutcome``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from datetime import datetime, timezone

from price_intel.core.config import PriceIntelConfig
from price_intel.core.exceptions import CacheLoadError, CachePersistError, IngestionError
from price_intel.core.models import RefreshOutcome, RefreshState
from price_intel.ingestion.client import UpstreamClient
from price_intel.ingestion.parser import ParseStats, iter_entries
from price_intel.prices.bridge import BridgeIndex, build_bridge_index
from price_intel.prices.cache import DiskCache
from price_intel.prices.index import PriceIndex, build_price_index
from price_intel.prices.snapshot import IndexSnapshot, now_millis

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Owns the published ``IndexSnapshot`` and every transition of it.

    Readers call ``snapshot`` and get an immutable pair of indices; they
    never take a lock. Only this class replaces the reference.
    """

    def __init__(
        self,
        config: PriceIntelConfig,
        client: UpstreamClient,
        cache: DiskCache,
    ) -> None:
        self._config = config
        self._client = client
        self._cache = cache
        self._snapshot = IndexSnapshot()
        self._state = RefreshState.COLD
        self._inflight: asyncio.Task[RefreshOutcome] | None = None
        self._last_outcome: RefreshOutcome | None = None

    # --- Read side ---

    @property
    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def last_outcome(self) -> RefreshOutcome | None:
        return self._last_outcome

    def is_stale(self, now: int | None = None) -> bool:
        return self._snapshot.is_stale(self._config.cache.cache_ttl_millis, now)

    # --- Startup ---

    def load_cache(self) -> bool:
        """Publish the disk snapshot, if there is a readable one.

        A missing file is not an error. A corrupt file is logged and the
        coordinator keeps its empty indices. A loaded snapshot with prices
        makes the coordinator READY even when it is stale. Returns True if a
        snapshot was published.
        """
        try:
            loaded = self._cache.load()
        except CacheLoadError as e:
            logger.warning("Ignoring unreadable price cache at %s: %s", self._cache.path, e)
            return False
        if loaded is None:
            logger.info("No price cache at %s", self._cache.path)
            return False

        self._snapshot = loaded
        if loaded.prices:
            self._state = RefreshState.READY
        return True

    # --- Write side ---

    async def refresh(self) -> RefreshOutcome:
        """Run a refresh, or join the one already in flight."""
        return await asyncio.shield(self._ensure_refresh(background=False))

    def start_background_refresh(self) -> asyncio.Task[RefreshOutcome]:
        """Fire-and-forget refresh; failures are logged, never raised."""
        task = self._ensure_refresh(background=True)
        task.add_done_callback(_log_background_failure)
        return task

    async def close(self) -> None:
        """Cancel an in-flight refresh. Published indices are unaffected."""
        task = self._inflight
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info("Cancelled in-flight price refresh")

    def _ensure_refresh(self, background: bool) -> asyncio.Task[RefreshOutcome]:
        # No await between the check and the assignment: single flight holds.
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(
                self._run(background), name="price-refresh"
            )
        return self._inflight

    async def _run(self, background: bool) -> RefreshOutcome:
        previous = self._state
        if background and self._snapshot.prices:
            self._state = RefreshState.WARM
        else:
            self._state = RefreshState.REFRESHING

        started_at = datetime.now(timezone.utc)
        try:
            outcome = await self._refresh_once(started_at)
        except asyncio.CancelledError:
            self._state = previous
            raise
        except Exception as e:
            logger.exception("Unexpected error during price refresh")
            outcome = RefreshOutcome(
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                price_count=len(self._snapshot.prices),
                mapping_count=len(self._snapshot.bridge),
                errors=[f"unexpected: {e}"],
            )

        self._state = RefreshState.READY
        self._last_outcome = outcome
        return outcome

    async def _refresh_once(self, started_at: datetime) -> RefreshOutcome:
        current = self._snapshot
        errors: list[str] = []

        price_stats = ParseStats()
        prices: PriceIndex | None = None
        try:
            prices = await self._fetch_prices(price_stats)
        except IngestionError as e:
            errors.append(f"prices: {e}")
            logger.warning(
                "Price refresh failed, keeping %d cached prices: %s",
                len(current.prices), e,
            )

        authoritative = prices if prices is not None else current.prices

        identifier_stats = ParseStats()
        bridge: BridgeIndex | None = None
        try:
            bridge = await self._fetch_bridge(authoritative, identifier_stats)
        except IngestionError as e:
            errors.append(f"identifiers: {e}")
            logger.warning(
                "Identifier refresh failed, keeping %d cached mappings: %s",
                len(current.bridge), e,
            )

        if prices is not None or bridge is not None:
            refreshed_at = current.refreshed_at
            if prices is not None:
                refreshed_at = max(now_millis(), current.refreshed_at or 0)
            published = IndexSnapshot(
                prices=authoritative,
                bridge=bridge if bridge is not None else current.bridge.restricted_to(authoritative),
                refreshed_at=refreshed_at,
            )
            self._snapshot = published
            await self._persist(published)
        else:
            published = current

        outcome = RefreshOutcome(
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            prices_updated=prices is not None,
            bridge_updated=bridge is not None,
            price_count=len(published.prices),
            mapping_count=len(published.bridge),
            malformed_entries=price_stats.malformed + identifier_stats.malformed,
            identifier_entries_seen=identifier_stats.entries,
            errors=errors,
        )
        logger.info(
            "Price refresh finished: prices %s, identifiers %s (%d prices, %d mappings)",
            "updated" if outcome.prices_updated else "kept",
            "updated" if outcome.bridge_updated else "kept",
            outcome.price_count, outcome.mapping_count,
        )
        return outcome

    async def _fetch_prices(self, stats: ParseStats) -> PriceIndex:
        async with self._client.price_document() as document:
            async with aclosing(
                iter_entries(document, stats=stats, url=document.url)
            ) as entries:
                return await build_price_index(entries, stats)

    async def _fetch_bridge(self, priced: PriceIndex, stats: ParseStats) -> BridgeIndex:
        async with self._client.identifier_document() as document:
            async with aclosing(
                iter_entries(document, stats=stats, url=document.url)
            ) as entries:
                return await build_bridge_index(
                    entries,
                    priced,
                    stats,
                    progress_interval=self._config.ingestion.progress_interval,
                )

    async def _persist(self, snapshot: IndexSnapshot) -> None:
        try:
            await asyncio.to_thread(self._cache.save, snapshot)
        except CachePersistError as e:
            logger.warning("Price cache not saved, in-memory prices unaffected: %s", e)


def _log_background_failure(task: asyncio.Task[RefreshOutcome]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background price refresh failed: %s", exc, exc_info=exc)
