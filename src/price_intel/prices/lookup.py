"""Synchronous price lookups against the currently published snapshot."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from price_intel.core.models import CatalogId, PriceSource, UpstreamId
from price_intel.prices.snapshot import IndexSnapshot


@dataclass(frozen=True, slots=True)
class SourcePrices:
    """Current price from each retail source; None means unavailable."""

    cardkingdom: Decimal | None = None
    tcgplayer: Decimal | None = None

    def get(self, source: PriceSource) -> Decimal | None:
        if source == PriceSource.CARDKINGDOM:
            return self.cardkingdom
        return self.tcgplayer

    @property
    def has_any(self) -> bool:
        return self.cardkingdom is not None or self.tcgplayer is not None

    def as_dict(self) -> dict[PriceSource, Decimal | None]:
        return {
            PriceSource.CARDKINGDOM: self.cardkingdom,
            PriceSource.TCGPLAYER: self.tcgplayer,
        }


NO_PRICES = SourcePrices()


class PriceLookup:
    """O(1) price queries that never block and never raise for missing data.

    Every call reads the snapshot reference exactly once, so a call sees
    one consistent pair of indices even while a refresh publishes a new
    pair. Use ``pinned()`` to run many queries against the same snapshot.
    """

    def __init__(self, current: Callable[[], IndexSnapshot]) -> None:
        self._current = current

    @classmethod
    def of(cls, snapshot: IndexSnapshot) -> PriceLookup:
        """A lookup permanently bound to ``snapshot``."""
        return cls(lambda: snapshot)

    def pinned(self) -> PriceLookup:
        return PriceLookup.of(self._current())

    def resolve(self, catalog_id: CatalogId | None) -> UpstreamId | None:
        """Map a catalog id to its priced upstream uuid, if known."""
        if not catalog_id:
            return None
        return self._current().bridge.get(catalog_id)

    def price_by_upstream_id(
        self, upstream_id: UpstreamId, source: PriceSource
    ) -> Decimal | None:
        return self._current().prices.price(upstream_id, source)

    def price_by_catalog_id(
        self, catalog_id: CatalogId, source: PriceSource
    ) -> Decimal | None:
        snapshot = self._current()
        upstream_id = snapshot.bridge.get(catalog_id) if catalog_id else None
        if upstream_id is None:
            return None
        return snapshot.prices.price(upstream_id, source)

    def prices_by_catalog_id(self, catalog_id: CatalogId) -> SourcePrices:
        """Both sources for one catalog id in a single lookup."""
        snapshot = self._current()
        upstream_id = snapshot.bridge.get(catalog_id) if catalog_id else None
        if upstream_id is None:
            return NO_PRICES
        record = snapshot.prices.get(upstream_id)
        if record is None:
            return NO_PRICES
        return SourcePrices(
            cardkingdom=record.current(PriceSource.CARDKINGDOM),
            tcgplayer=record.current(PriceSource.TCGPLAYER),
        )
