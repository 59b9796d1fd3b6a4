"""Core data models: the system's type contracts."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

# --- Type Aliases ---

UpstreamId = str
CatalogId = str
DateKey = str

# --- Enumerations ---


class PriceSource(StrEnum):
    """The two retail channels tracked upstream.

    Both are sourced independently; one is never derived from the other.
    """

    CARDKINGDOM = "cardkingdom"
    TCGPLAYER = "tcgplayer"

    @property
    def other(self) -> PriceSource:
        if self is PriceSource.CARDKINGDOM:
            return PriceSource.TCGPLAYER
        return PriceSource.CARDKINGDOM


class RefreshState(StrEnum):
    """Lifecycle states of the refresh coordinator.

    COLD means no prices are loaded yet. READY means prices are published,
    possibly from a stale cache; staleness is reported by ``is_stale``.
    """

    COLD = "cold"
    WARM = "warm"
    READY = "ready"
    REFRESHING = "refreshing"


# --- Price Records ---

_DATE_KEY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_date_key(value: object) -> bool:
    """True for a well-formed, calendar-valid ``YYYY-MM-DD`` string."""
    if not isinstance(value, str) or not _DATE_KEY.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def coerce_price(value: object) -> Decimal | None:
    """Normalize an upstream price value.

    Returns None for anything that is not a finite number greater than zero.
    Numeric strings are accepted because older caches stored prices as text.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = repr(value)
    elif isinstance(value, str):
        value = value.strip().lstrip("$")
    try:
        price = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


@dataclass(frozen=True, slots=True)
class PriceRecord:
    """Price history for one printing, keyed by retail source.

    ``history`` maps each present source to its ``date -> price`` map. A
    price of None marks an observation that was missing, non-numeric or
    non-positive upstream. The current price of a source is the value at
    the lexicographically greatest date key, precomputed at construction.
    """

    history: dict[PriceSource, dict[DateKey, Decimal | None]]
    _latest: dict[PriceSource, Decimal | None] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        latest: dict[PriceSource, Decimal | None] = {}
        for source, points in self.history.items():
            if points:
                latest[source] = points[max(points)]
        object.__setattr__(self, "_latest", latest)

    def current(self, source: PriceSource) -> Decimal | None:
        return self._latest.get(source)

    @property
    def has_price(self) -> bool:
        """True if any observation in any source is a usable price."""
        return any(
            price is not None
            for points in self.history.values()
            for price in points.values()
        )


# --- Refresh Reporting ---


class RefreshOutcome(BaseModel):
    """Summary of a single refresh run, shared by all concurrent callers."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime
    finished_at: datetime
    prices_updated: bool = False
    bridge_updated: bool = False
    price_count: int = 0
    mapping_count: int = 0
    malformed_entries: int = 0
    identifier_entries_seen: int = 0
    errors: list[str] = []

    @property
    def succeeded(self) -> bool:
        return self.prices_updated and self.bridge_updated


class ServiceStatus(BaseModel):
    """Diagnostics snapshot for health checks."""

    model_config = ConfigDict(frozen=True)

    state: RefreshState
    ready: bool
    stale: bool
    refreshing: bool
    last_refreshed: datetime | None = None
    price_count: int = 0
    mapping_count: int = 0
    cache_path: str
    last_outcome: RefreshOutcome | None = None
