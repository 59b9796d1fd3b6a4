"""Bridge Index: catalog (Scryfall) id -> upstream (MTGJSON) uuid."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator, Mapping
from typing import Any

from price_intel.core.exceptions import IngestionError, MalformedEntryError
from price_intel.core.models import CatalogId, UpstreamId
from price_intel.ingestion.parser import ParseStats

logger = logging.getLogger(__name__)

# MTGJSON publishes the Scryfall id as "scryfallId"; the prefixed name is
# checked first for feeds that namespace their catalog identifiers.
_CATALOG_ID_FIELDS = ("catalogScryfallId", "scryfallId")


class BridgeIndex(Mapping[CatalogId, UpstreamId]):
    """Read-only mapping of catalog id to upstream uuid.

    Only holds entries whose upstream uuid is priced, so its size is bounded
    by the Price Index rather than by the identifier corpus.
    """

    __slots__ = ("_links",)

    def __init__(self, links: Mapping[CatalogId, UpstreamId] | None = None) -> None:
        self._links: dict[CatalogId, UpstreamId] = dict(links or {})

    def __getitem__(self, catalog_id: CatalogId) -> UpstreamId:
        return self._links[catalog_id]

    def __iter__(self) -> Iterator[CatalogId]:
        return iter(self._links)

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, catalog_id: object) -> bool:
        return catalog_id in self._links

    def __repr__(self) -> str:
        return f"BridgeIndex({len(self._links)} links)"

    def restricted_to(self, priced: Mapping[UpstreamId, Any]) -> BridgeIndex:
        """Copy without links whose upstream uuid is missing from ``priced``."""
        kept = {c: u for c, u in self._links.items() if u in priced}
        if len(kept) == len(self._links):
            return self
        return BridgeIndex(kept)


def extract_catalog_id(upstream_id: str, raw: dict[str, Any]) -> CatalogId | None:
    """Pull the catalog id out of one identifier document entry.

    Raises:
        MalformedEntryError: ``identifiers`` is present but not an object.
    """
    identifiers = raw.get("identifiers")
    if identifiers is None:
        return None
    if not isinstance(identifiers, dict):
        raise MalformedEntryError(
            "identifiers is not an object",
            context={"key": upstream_id, "reason": "structure"},
        )
    for field in _CATALOG_ID_FIELDS:
        value = identifiers.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


async def build_bridge_index(
    entries: AsyncIterator[tuple[str, dict[str, Any]]],
    priced: Mapping[UpstreamId, Any],
    stats: ParseStats,
    progress_interval: int = 50_000,
) -> BridgeIndex:
    """Consume the identifier document into a fresh BridgeIndex.

    A link is kept only when the entry carries a catalog id and its upstream
    uuid is in ``priced``. Progress is logged each time another
    ``progress_interval`` entries have been read, skipped ones included.

    Raises:
        IngestionError: The document had no entries at all, which means the
            response was not an identifier document.
    """
    links: dict[CatalogId, UpstreamId] = {}
    next_report = progress_interval
    async for upstream_id, raw in entries:
        if stats.entries >= next_report:
            logger.info(
                "Identifier progress: %d entries processed, %d kept",
                stats.entries, len(links),
            )
            next_report = (stats.entries // progress_interval + 1) * progress_interval

        if upstream_id not in priced:
            stats.skipped += 1
            continue
        try:
            catalog_id = extract_catalog_id(upstream_id, raw)
        except MalformedEntryError as e:
            stats.malformed += 1
            logger.debug("Malformed identifier entry %r: %s", upstream_id, e)
            continue
        if catalog_id is None:
            stats.skipped += 1
            continue
        links[catalog_id] = upstream_id

    if stats.entries == 0:
        raise IngestionError(
            "Identifier document contained no entries",
            context={"entries_seen": 0},
        )
    if stats.malformed:
        logger.warning("Skipped %d malformed identifier entries", stats.malformed)
    logger.info(
        "Built bridge index: kept %d of %d identifier entries",
        len(links), stats.entries,
    )
    return BridgeIndex(links)
