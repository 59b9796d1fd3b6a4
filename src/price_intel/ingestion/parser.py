"""Incremental parser for the upstream JSON documents.

Both upstream documents share the shape ``{"meta": {...}, "data": {key:
value, ...}}``. The identifier document runs to hundreds of megabytes, so
the ``data`` object is consumed one entry at a time with ijson and only
the current value is ever materialized.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

import ijson

from price_intel.core.exceptions import MalformedEntryError, StreamParseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DATA_PREFIX = "data"


class AsyncReadable(Protocol):
    """Anything with an async ``read(size)`` returning bytes."""

    async def read(self, size: int = -1) -> bytes: ...


@dataclass
class ParseStats:
    """Counters for one pass over a document."""

    entries: int = 0
    malformed: int = 0
    skipped: int = 0

    @property
    def kept(self) -> int:
        return self.entries - self.malformed - self.skipped


async def iter_entries(
    source: AsyncReadable,
    prefix: str = DATA_PREFIX,
    stats: ParseStats | None = None,
    url: str = "",
) -> AsyncIterator[tuple[str, dict[str, Any]]]:
    """Yield ``(key, value)`` pairs of the object at ``prefix``.

    Single pass, not restartable. Entries whose value is not an object are
    counted as malformed and skipped. Numbers arrive as ``int`` or
    ``Decimal``, never ``float``.

    Raises:
        StreamParseError: The byte stream is not valid JSON. Entries already
            yielded must be treated as part of an abandoned build.
    """
    stats = stats if stats is not None else ParseStats()
    try:
        async for key, value in ijson.kvitems(source, prefix):
            stats.entries += 1
            if not isinstance(value, dict):
                stats.malformed += 1
                logger.debug("Skipping non-object entry %r", key)
                continue
            yield key, value
    except ijson.JSONError as e:
        raise StreamParseError(
            f"Malformed JSON in {url or 'document'}: {e}",
            context={"url": url, "entries_seen": stats.entries},
        ) from e


async def iter_decoded(
    entries: AsyncIterator[tuple[str, dict[str, Any]]],
    decode: Callable[[str, dict[str, Any]], T | None],
    stats: ParseStats,
) -> AsyncIterator[tuple[str, T]]:
    """Apply ``decode`` to each entry, dropping rejects.

    ``decode`` returns None for entries that are well-formed but carry
    nothing worth keeping, and raises ``MalformedEntryError`` for entries
    that cannot be decoded. Both are counted in ``stats``.
    """
    async for key, raw in entries:
        try:
            decoded = decode(key, raw)
        except MalformedEntryError as e:
            stats.malformed += 1
            logger.debug("Malformed entry %r: %s", key, e)
            continue
        if decoded is None:
            stats.skipped += 1
            continue
        yield key, decoded
