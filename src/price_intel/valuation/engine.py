"""Inventory valuation against the two retail sources.

Lookups never fail: a missing price is a normal outcome that is counted,
not raised. All rows of one valuation are priced from the same snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from price_intel.core.models import CatalogId, PriceSource, coerce_price
from price_intel.prices.lookup import PriceLookup
from price_intel.valuation.models import (
    FALLBACK,
    BestAvailableValuation,
    CardValue,
    InventoryRow,
    InventoryValuation,
)

logger = logging.getLogger(__name__)

RowLike = InventoryRow | tuple[CatalogId | None, int]


def as_row(row: RowLike) -> InventoryRow:
    """Accept ``InventoryRow`` or a plain ``(catalog_id, quantity)`` pair."""
    if isinstance(row, InventoryRow):
        return row
    catalog_id, quantity = row
    return InventoryRow(catalog_id=catalog_id, quantity=quantity)


def value_inventory(rows: Iterable[RowLike], lookup: PriceLookup) -> InventoryValuation:
    """Sum ``price x quantity`` per source.

    A row whose catalog id is absent or unknown to the bridge counts as
    missing an identifier. A row that resolves but has no price in either
    source counts as missing a price. Sources are summed independently.
    """
    pinned = lookup.pinned()
    totals = {source: Decimal("0") for source in PriceSource}
    count = missing_price = missing_identifier = 0

    for raw in rows:
        row = as_row(raw)
        count += 1
        if pinned.resolve(row.catalog_id) is None:
            missing_identifier += 1
            continue
        prices = pinned.prices_by_catalog_id(row.catalog_id)
        if not prices.has_any:
            missing_price += 1
            continue
        for source in PriceSource:
            price = prices.get(source)
            if price is not None:
                totals[source] += price * row.quantity

    logger.debug(
        "Valued %d rows (%d missing identifier, %d missing price)",
        count, missing_identifier, missing_price,
    )
    return InventoryValuation(
        cardkingdom_total=totals[PriceSource.CARDKINGDOM],
        tcgplayer_total=totals[PriceSource.TCGPLAYER],
        rows=count,
        rows_missing_price=missing_price,
        rows_missing_identifier=missing_identifier,
    )


def value_best_available(
    rows: Iterable[RowLike],
    lookup: PriceLookup,
    preferred: PriceSource = PriceSource.CARDKINGDOM,
    fallback_prices: Mapping[CatalogId, Decimal | float | str] | None = None,
) -> BestAvailableValuation:
    """Price every row with one representative unit price.

    Per row: the preferred source if priced, else the other source, else
    the row's own ``fallback_price``, else ``fallback_prices[catalog_id]``.
    Rows with none of these contribute nothing and are counted as unpriced.
    """
    pinned = lookup.pinned()
    preferred = PriceSource(preferred)
    fallback_prices = fallback_prices or {}
    cards: list[CardValue] = []
    total = Decimal("0")
    using_fallback = unpriced = 0

    for raw in rows:
        row = as_row(raw)
        prices = pinned.prices_by_catalog_id(row.catalog_id) if row.catalog_id else None

        unit: Decimal | None = None
        chosen: str | None = None
        if prices is not None:
            for source in (preferred, preferred.other):
                unit = prices.get(source)
                if unit is not None:
                    chosen = source.value
                    break
        if unit is None:
            unit = row.fallback_price
            if unit is None and row.catalog_id is not None:
                unit = coerce_price(fallback_prices.get(row.catalog_id))
            if unit is not None:
                chosen = FALLBACK
                using_fallback += 1

        if unit is None:
            unpriced += 1
            cards.append(CardValue(catalog_id=row.catalog_id, quantity=row.quantity))
            continue

        line_total = unit * row.quantity
        total += line_total
        cards.append(
            CardValue(
                catalog_id=row.catalog_id,
                quantity=row.quantity,
                unit_price=unit,
                price_source=chosen,
                line_total=line_total,
            )
        )

    return BestAvailableValuation(
        preferred_source=preferred,
        total=total,
        cards=cards,
        rows_using_fallback=using_fallback,
        rows_unpriced=unpriced,
    )
