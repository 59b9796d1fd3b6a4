"""Disk cache: a single JSON file holding the last published snapshot.

File layout::

    {
      "timestamp": 1717171717000,
      "prices": {"<uuid>": {"paper": {"cardkingdom": {"retail": {"normal":
                 {"2024-01-02": 1.5}}}}}},
      "catalogMap": {"<scryfall id>": "<uuid>"}
    }

Price records are stored in the upstream document's own shape so the same
decoder reads both. Unknown top-level keys are ignored.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any

from price_intel.core.exceptions import (
    CacheLoadError,
    CachePersistError,
    MalformedEntryError,
)
from price_intel.core.models import PriceRecord
from price_intel.prices.bridge import BridgeIndex
from price_intel.prices.index import PriceIndex, decode_price_record
from price_intel.prices.snapshot import IndexSnapshot

logger = logging.getLogger(__name__)


class DiskCache:
    """Reads and atomically writes the snapshot file at ``path``."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, snapshot: IndexSnapshot) -> None:
        """Write ``snapshot`` via a temp file and atomic rename.

        Raises:
            CachePersistError: The directory or file could not be written.
                Any temp file is removed; an existing cache file is left as is.
        """
        payload = {
            "timestamp": snapshot.refreshed_at,
            "prices": {
                upstream_id: _encode_record(record)
                for upstream_id, record in snapshot.prices.items()
            },
            "catalogMap": dict(snapshot.bridge),
        }

        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(payload, f, default=_encode_decimal, separators=(",", ":"))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise CachePersistError(
                f"Failed to write price cache: {e}",
                context={"path": str(self._path)},
            ) from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        logger.info(
            "Saved price cache with %d prices and %d mappings to %s",
            len(snapshot.prices), len(snapshot.bridge), self._path,
        )

    def load(self) -> IndexSnapshot | None:
        """Read the cache file.

        Returns:
            The stored snapshot, or None if no cache file exists.

        Raises:
            CacheLoadError: The file is unreadable, not JSON, or has the
                wrong top-level shape.
        """
        if not self._path.exists():
            return None

        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f, parse_float=Decimal)
        except (OSError, ValueError) as e:
            raise CacheLoadError(
                f"Failed to read price cache: {e}",
                context={"path": str(self._path)},
            ) from e

        if not isinstance(data, dict):
            raise CacheLoadError(
                f"Price cache must be a JSON object, got {type(data).__name__}",
                context={"path": str(self._path)},
            )

        timestamp = data.get("timestamp")
        if timestamp is not None and (
            isinstance(timestamp, bool) or not isinstance(timestamp, int)
        ):
            raise CacheLoadError(
                f"Invalid cache timestamp: {timestamp!r}",
                context={"path": str(self._path)},
            )

        raw_prices = data.get("prices") or {}
        raw_links = data.get("catalogMap") or {}
        if not isinstance(raw_prices, dict) or not isinstance(raw_links, dict):
            raise CacheLoadError(
                "Cache 'prices' and 'catalogMap' must be objects",
                context={"path": str(self._path)},
            )

        records: dict[str, PriceRecord] = {}
        dropped = 0
        for upstream_id, raw in raw_prices.items():
            try:
                record = (
                    decode_price_record(upstream_id, raw)
                    if isinstance(raw, dict)
                    else None
                )
            except MalformedEntryError:
                record = None
            if record is None:
                dropped += 1
                continue
            records[upstream_id] = record

        links = {
            catalog_id: upstream_id
            for catalog_id, upstream_id in raw_links.items()
            if isinstance(upstream_id, str) and upstream_id in records
        }
        if dropped:
            logger.warning("Dropped %d unusable price records from cache", dropped)

        snapshot = IndexSnapshot(
            prices=PriceIndex(records),
            bridge=BridgeIndex(links),
            refreshed_at=timestamp,
        )
        logger.info(
            "Loaded %d prices and %d mappings from %s",
            len(snapshot.prices), len(snapshot.bridge), self._path,
        )
        return snapshot


def _encode_record(record: PriceRecord) -> dict[str, Any]:
    return {
        "paper": {
            source.value: {"retail": {"normal": dict(points)}}
            for source, points in record.history.items()
        }
    }


def _encode_decimal(value: object) -> float | str:
    """JSON numbers for prices a float holds exactly, strings for the rest."""
    if isinstance(value, Decimal):
        as_float = float(value)
        if Decimal(repr(as_float)) == value:
            return as_float
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
