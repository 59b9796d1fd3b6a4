"""Valuation input rows and result models."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator

from price_intel.core.models import CatalogId, PriceSource, coerce_price

FALLBACK = "fallback"


class InventoryRow(BaseModel):
    """One inventory line: a printing and how many copies are held.

    ``fallback_price`` is the caller's own unit price for the row (usually
    the recorded purchase price), used only by best-available valuation.
    """

    model_config = ConfigDict(frozen=True)

    catalog_id: CatalogId | None = None
    quantity: int = 1
    fallback_price: Decimal | None = None

    @field_validator("catalog_id", mode="before")
    @classmethod
    def blank_id_is_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("quantity")
    @classmethod
    def quantity_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"quantity must be >= 0, got {v}")
        return v

    @field_validator("fallback_price", mode="before")
    @classmethod
    def fallback_must_be_positive(cls, v: object) -> Decimal | None:
        return coerce_price(v)


class InventoryValuation(BaseModel):
    """Per-source totals over an inventory."""

    model_config = ConfigDict(frozen=True)

    cardkingdom_total: Decimal = Decimal("0")
    tcgplayer_total: Decimal = Decimal("0")
    rows: int = 0
    rows_missing_price: int = 0
    rows_missing_identifier: int = 0

    def total(self, source: PriceSource) -> Decimal:
        if source == PriceSource.CARDKINGDOM:
            return self.cardkingdom_total
        return self.tcgplayer_total


class CardValue(BaseModel):
    """A single representative price for one inventory row."""

    model_config = ConfigDict(frozen=True)

    catalog_id: CatalogId | None
    quantity: int
    unit_price: Decimal | None = None
    price_source: str | None = None
    line_total: Decimal = Decimal("0")


class BestAvailableValuation(BaseModel):
    """Inventory total where each row contributes one chosen price."""

    model_config = ConfigDict(frozen=True)

    preferred_source: PriceSource
    total: Decimal = Decimal("0")
    cards: list[CardValue] = []
    rows_using_fallback: int = 0
    rows_unpriced: int = 0


class CardQuote(BaseModel):
    """Both retail prices for one card in a card list."""

    model_config = ConfigDict(frozen=True)

    catalog_id: CatalogId | None
    quantity: int
    cardkingdom: Decimal | None = None
    tcgplayer: Decimal | None = None


class CardListQuote(BaseModel):
    """Per-card quotes plus per-source totals for a deck or wishlist."""

    model_config = ConfigDict(frozen=True)

    cards: list[CardQuote] = []
    cardkingdom_total: Decimal = Decimal("0")
    tcgplayer_total: Decimal = Decimal("0")
    unpriced: list[CatalogId | None] = []
