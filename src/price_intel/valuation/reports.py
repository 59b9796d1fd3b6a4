"""Per-card reports built on the valuation engine."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from price_intel.core.models import PriceSource
from price_intel.prices.lookup import PriceLookup
from price_intel.valuation.engine import RowLike, as_row
from price_intel.valuation.models import (
    BestAvailableValuation,
    CardListQuote,
    CardQuote,
    CardValue,
)


def top_cards(valuation: BestAvailableValuation, n: int = 10) -> list[CardValue]:
    """The ``n`` most valuable priced rows, by line total then unit price."""
    if n <= 0:
        return []
    priced = [card for card in valuation.cards if card.unit_price is not None]
    priced.sort(key=lambda c: (c.line_total, c.unit_price), reverse=True)
    return priced[:n]


def price_card_list(rows: Iterable[RowLike], lookup: PriceLookup) -> CardListQuote:
    """Quote both sources for every card of a list (deck cost estimate)."""
    pinned = lookup.pinned()
    totals = {source: Decimal("0") for source in PriceSource}
    quotes: list[CardQuote] = []
    unpriced = []

    for raw in rows:
        row = as_row(raw)
        prices = pinned.prices_by_catalog_id(row.catalog_id) if row.catalog_id else None
        if prices is None or not prices.has_any:
            unpriced.append(row.catalog_id)
            quotes.append(CardQuote(catalog_id=row.catalog_id, quantity=row.quantity))
            continue
        for source in PriceSource:
            price = prices.get(source)
            if price is not None:
                totals[source] += price * row.quantity
        quotes.append(
            CardQuote(
                catalog_id=row.catalog_id,
                quantity=row.quantity,
                cardkingdom=prices.cardkingdom,
                tcgplayer=prices.tcgplayer,
            )
        )

    return CardListQuote(
        cards=quotes,
        cardkingdom_total=totals[PriceSource.CARDKINGDOM],
        tcgplayer_total=totals[PriceSource.TCGPLAYER],
        unpriced=unpriced,
    )
