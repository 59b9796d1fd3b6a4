"""The unit of publication: both indices plus their refresh timestamp."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from price_intel.prices.bridge import BridgeIndex
from price_intel.prices.index import PriceIndex


def now_millis() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class IndexSnapshot:
    """Immutable pair of indices published by a single reference swap.

    ``refreshed_at`` is epoch milliseconds of the last successful price
    build, or None when prices have never been fetched.
    """

    prices: PriceIndex = field(default_factory=PriceIndex)
    bridge: BridgeIndex = field(default_factory=BridgeIndex)
    refreshed_at: int | None = None

    @property
    def is_empty(self) -> bool:
        return not self.prices and not self.bridge

    @property
    def last_refreshed(self) -> datetime | None:
        if self.refreshed_at is None:
            return None
        return datetime.fromtimestamp(self.refreshed_at / 1000, tz=timezone.utc)

    def is_stale(self, ttl_millis: int, now: int | None = None) -> bool:
        """True when never refreshed or older than ``ttl_millis``."""
        if self.refreshed_at is None:
            return True
        current = now_millis() if now is None else now
        return current - self.refreshed_at > ttl_millis
