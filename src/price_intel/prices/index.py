"""Price Index: upstream uuid -> PriceRecord, built from the price document."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator, Mapping
from decimal import Decimal
from typing import Any

from price_intel.core.exceptions import IngestionError, MalformedEntryError
from price_intel.core.models import (
    PriceRecord,
    PriceSource,
    UpstreamId,
    coerce_price,
    is_date_key,
)
from price_intel.ingestion.parser import ParseStats, iter_decoded

logger = logging.getLogger(__name__)

# paper -> <source> -> retail -> normal -> {date: price}
_MARKET = "paper"
_PRICE_PATH = ("retail", "normal")


class PriceIndex(Mapping[UpstreamId, PriceRecord]):
    """Read-only mapping of upstream uuid to its price record.

    Built once per refresh and never mutated afterwards; a refresh produces
    a new instance that replaces this one wholesale.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Mapping[UpstreamId, PriceRecord] | None = None) -> None:
        self._records: dict[UpstreamId, PriceRecord] = dict(records or {})

    def __getitem__(self, upstream_id: UpstreamId) -> PriceRecord:
        return self._records[upstream_id]

    def __iter__(self) -> Iterator[UpstreamId]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, upstream_id: object) -> bool:
        return upstream_id in self._records

    def __repr__(self) -> str:
        return f"PriceIndex({len(self._records)} records)"

    def price(self, upstream_id: UpstreamId, source: PriceSource) -> Decimal | None:
        """Current price of ``source`` for ``upstream_id``, or None."""
        record = self._records.get(upstream_id)
        if record is None:
            return None
        return record.current(source)


def decode_price_record(upstream_id: str, raw: dict[str, Any]) -> PriceRecord | None:
    """Decode one raw price document entry.

    Returns:
        A PriceRecord, or None when the entry has no usable paper retail
        price in either source.

    Raises:
        MalformedEntryError: A node on the price path is not an object, or
            a history key is not a ``YYYY-MM-DD`` date.
    """
    paper = raw.get(_MARKET)
    if paper is None:
        return None
    _require_object(upstream_id, _MARKET, paper)

    history: dict[PriceSource, dict[str, Decimal | None]] = {}
    for source in PriceSource:
        node = paper.get(source.value)
        path = f"{_MARKET}.{source.value}"
        for step in _PRICE_PATH:
            if node is None:
                break
            _require_object(upstream_id, path, node)
            node = node.get(step)
            path = f"{path}.{step}"
        if node is None:
            continue
        _require_object(upstream_id, path, node)

        points: dict[str, Decimal | None] = {}
        for day, value in node.items():
            if not is_date_key(day):
                raise MalformedEntryError(
                    f"Invalid date key {day!r} in {path}",
                    context={"key": upstream_id, "reason": "date_key"},
                )
            points[day] = coerce_price(value)
        if points:
            history[source] = points

    record = PriceRecord(history)
    return record if record.has_price else None


def _require_object(upstream_id: str, path: str, node: object) -> None:
    if not isinstance(node, dict):
        raise MalformedEntryError(
            f"Expected an object at {path}, got {type(node).__name__}",
            context={"key": upstream_id, "reason": "structure"},
        )


async def build_price_index(
    entries: AsyncIterator[tuple[str, dict[str, Any]]],
    stats: ParseStats,
) -> PriceIndex:
    """Consume the whole price document into a fresh PriceIndex.

    Raises:
        IngestionError: The document produced no priced records at all. An
            empty index is never published over a populated one.
    """
    records: dict[UpstreamId, PriceRecord] = {}
    async for upstream_id, record in iter_decoded(entries, decode_price_record, stats):
        records[upstream_id] = record

    if stats.malformed:
        logger.warning("Skipped %d malformed price entries", stats.malformed)
    if not records:
        raise IngestionError(
            "Price document contained no priced entries",
            context={"entries_seen": stats.entries},
        )

    logger.info(
        "Built price index: %d priced of %d entries", len(records), stats.entries
    )
    return PriceIndex(records)
