"""Shared pytest fixtures for card-price-intel."""

from __future__ import annotations

import io
import json
from decimal import Decimal
from pathlib import Path

import pytest

from price_intel.core.config import (
    CacheConfig,
    IngestionConfig,
    PriceIntelConfig,
    UpstreamConfig,
)
from price_intel.core.models import PriceRecord, PriceSource
from price_intel.prices.bridge import BridgeIndex
from price_intel.prices.index import PriceIndex
from price_intel.prices.snapshot import IndexSnapshot

PRICE_URL = "https://prices.test/AllPricesToday.json"
IDENTIFIER_URL = "https://prices.test/AllIdentifiers.json"


class BytesSource:
    """In-memory stand-in for an UpstreamDocument."""

    def __init__(self, payload: bytes, chunk: int = 7) -> None:
        self._buffer = io.BytesIO(payload)
        self._chunk = chunk

    async def read(self, size: int = -1) -> bytes:
        # Short reads exercise the parser's buffering.
        limit = self._chunk if size < 0 else min(size, self._chunk)
        return self._buffer.read(limit)


def price_entry(
    cardkingdom: dict | None = None,
    tcgplayer: dict | None = None,
) -> dict:
    """One raw price document entry in MTGJSON's shape."""
    paper: dict = {}
    if cardkingdom is not None:
        paper["cardkingdom"] = {"retail": {"normal": cardkingdom}, "currency": "USD"}
    if tcgplayer is not None:
        paper["tcgplayer"] = {"retail": {"normal": tcgplayer}, "currency": "USD"}
    return {"paper": paper}


def document(data: dict) -> bytes:
    return json.dumps(
        {"meta": {"date": "2024-01-02", "version": "5.2.2"}, "data": data}
    ).encode()


def identifier_entry(catalog_id: str | None) -> dict:
    identifiers = {"mtgjsonV4Id": "legacy"}
    if catalog_id is not None:
        identifiers["scryfallId"] = catalog_id
    return {"identifiers": identifiers, "name": "Some Card"}


def record(cardkingdom: str | None = None, tcgplayer: str | None = None) -> PriceRecord:
    history = {}
    if cardkingdom is not None:
        history[PriceSource.CARDKINGDOM] = {"2024-01-02": Decimal(cardkingdom)}
    if tcgplayer is not None:
        history[PriceSource.TCGPLAYER] = {"2024-01-02": Decimal(tcgplayer)}
    return PriceRecord(history)


@pytest.fixture
def make_price_entry():
    return price_entry


@pytest.fixture
def make_identifier_entry():
    return identifier_entry


@pytest.fixture
def make_document():
    return document


@pytest.fixture
def make_record():
    return record


@pytest.fixture
def byte_source():
    return BytesSource


@pytest.fixture
def price_config(tmp_path: Path) -> PriceIntelConfig:
    return PriceIntelConfig(
        upstream=UpstreamConfig(
            price_url=PRICE_URL,
            identifier_url=IDENTIFIER_URL,
            price_fetch_timeout_millis=5_000,
            identifier_fetch_timeout_millis=5_000,
        ),
        cache=CacheConfig(cache_path=str(tmp_path / "cache" / "prices.json")),
        ingestion=IngestionConfig(progress_interval=2),
    )


@pytest.fixture
def valuation_snapshot() -> IndexSnapshot:
    """C1 -> U1 (CK 2.00, TCG 1.50); C2 -> U2 (TCG 5.00 only)."""
    return IndexSnapshot(
        prices=PriceIndex(
            {
                "U1": record(cardkingdom="2.00", tcgplayer="1.50"),
                "U2": record(tcgplayer="5.00"),
            }
        ),
        bridge=BridgeIndex({"C1": "U1", "C2": "U2"}),
        refreshed_at=1_700_000_000_000,
    )
