"""Inventory valuation and per-card price reports."""

from price_intel.valuation.engine import as_row, value_best_available, value_inventory
from price_intel.valuation.models import (
    FALLBACK,
    BestAvailableValuation,
    CardListQuote,
    CardQuote,
    CardValue,
    InventoryRow,
    InventoryValuation,
)
from price_intel.valuation.reports import price_card_list, top_cards

__all__ = [
    "FALLBACK",
    "BestAvailableValuation",
    "CardListQuote",
    "CardQuote",
    "CardValue",
    "InventoryRow",
    "InventoryValuation",
    "as_row",
    "price_card_list",
    "top_cards",
    "value_best_available",
    "value_inventory",
]
