"""Tests for price_intel.prices.bridge."""

import logging

import pytest

from price_intel.core.exceptions import IngestionError, MalformedEntryError
from price_intel.ingestion.parser import ParseStats, iter_entries
from price_intel.prices.bridge import BridgeIndex, build_bridge_index, extract_catalog_id


class TestExtractCatalogId:
    def test_scryfall_id(self):
        assert extract_catalog_id("U1", {"identifiers": {"scryfallId": "C1"}}) == "C1"

    def test_catalog_field_preferred(self):
        raw = {"identifiers": {"scryfallId": "C1", "catalogScryfallId": "C9"}}
        assert extract_catalog_id("U1", raw) == "C9"

    def test_blank_falls_through(self):
        raw = {"identifiers": {"catalogScryfallId": "  ", "scryfallId": "C1"}}
        assert extract_catalog_id("U1", raw) == "C1"

    def test_missing_identifiers(self):
        assert extract_catalog_id("U1", {"name": "x"}) is None

    def test_missing_scryfall(self):
        assert extract_catalog_id("U1", {"identifiers": {"mtgjsonV4Id": "x"}}) is None

    def test_non_string_ignored(self):
        assert extract_catalog_id("U1", {"identifiers": {"scryfallId": 12}}) is None

    def test_identifiers_not_object(self):
        with pytest.raises(MalformedEntryError):
            extract_catalog_id("U1", {"identifiers": "C1"})


class TestBridgeIndex:
    def test_mapping(self):
        bridge = BridgeIndex({"C1": "U1"})
        assert bridge["C1"] == "U1"
        assert bridge.get("C2") is None
        assert len(bridge) == 1

    def test_restricted_to_drops_dangling(self):
        bridge = BridgeIndex({"C1": "U1", "C2": "U2"})
        pruned = bridge.restricted_to({"U1": object()})
        assert dict(pruned) == {"C1": "U1"}
        assert dict(bridge) == {"C1": "U1", "C2": "U2"}

    def test_restricted_to_returns_self_when_nothing_dropped(self):
        bridge = BridgeIndex({"C1": "U1"})
        assert bridge.restricted_to({"U1": object(), "U2": object()}) is bridge


class TestBuildBridgeIndex:
    async def test_filters_by_priced(self, byte_source, make_document, make_identifier_entry):
        payload = make_document(
            {
                "U1": make_identifier_entry("C1"),
                "U2": make_identifier_entry("C2"),
                "U3": make_identifier_entry(None),
                "U4": make_identifier_entry("C4"),
            }
        )
        stats = ParseStats()
        bridge = await build_bridge_index(
            iter_entries(byte_source(payload), stats=stats),
            priced={"U1": object(), "U3": object(), "U4": object()},
            stats=stats,
        )
        assert dict(bridge) == {"C1": "U1", "C4": "U4"}
        assert stats.entries == 4
        assert stats.skipped == 2

    async def test_malformed_entry_skipped(self, byte_source, make_document, make_identifier_entry):
        payload = make_document(
            {"U1": {"identifiers": ["nope"]}, "U2": make_identifier_entry("C2")}
        )
        stats = ParseStats()
        bridge = await build_bridge_index(
            iter_entries(byte_source(payload), stats=stats),
            priced={"U1": object(), "U2": object()},
            stats=stats,
        )
        assert dict(bridge) == {"C2": "U2"}
        assert stats.malformed == 1

    async def test_empty_priced_gives_empty_bridge(self, byte_source, make_document, make_identifier_entry):
        payload = make_document({"U1": make_identifier_entry("C1")})
        stats = ParseStats()
        bridge = await build_bridge_index(
            iter_entries(byte_source(payload), stats=stats), priced={}, stats=stats
        )
        assert len(bridge) == 0

    async def test_progress_logged(self, byte_source, make_document, make_identifier_entry, caplog):
        payload = make_document({f"U{i}": make_identifier_entry(f"C{i}") for i in range(5)})
        stats = ParseStats()
        with caplog.at_level(logging.INFO, logger="price_intel.prices.bridge"):
            await build_bridge_index(
                iter_entries(byte_source(payload), stats=stats),
                priced={f"U{i}": object() for i in range(5)},
                stats=stats,
                progress_interval=2,
            )
        progress = [r for r in caplog.records if "Identifier progress" in r.getMessage()]
        assert len(progress) == 2
        assert "kept 5 of 5" in caplog.text

    async def test_progress_counts_skipped_non_objects(
        self, byte_source, make_document, make_identifier_entry, caplog
    ):
        # Every second entry is not an object and is never yielded.
        data = {
            f"U{i}": make_identifier_entry(f"C{i}") if i % 2 == 0 else [1]
            for i in range(5)
        }
        stats = ParseStats()
        with caplog.at_level(logging.INFO, logger="price_intel.prices.bridge"):
            await build_bridge_index(
                iter_entries(byte_source(make_document(data)), stats=stats),
                priced={f"U{i}": object() for i in range(5)},
                stats=stats,
                progress_interval=2,
            )
        progress = [r for r in caplog.records if "Identifier progress" in r.getMessage()]
        assert len(progress) == 2
        assert stats.malformed == 2

    async def test_document_without_entries_rejected(self, byte_source):
        stats = ParseStats()
        with pytest.raises(IngestionError, match="no entries"):
            await build_bridge_index(
                iter_entries(byte_source(b'{"error": "maintenance"}'), stats=stats),
                priced={"U1": object()},
                stats=stats,
            )

    async def test_empty_data_object_rejected(self, byte_source, make_document):
        stats = ParseStats()
        with pytest.raises(IngestionError) as exc_info:
            await build_bridge_index(
                iter_entries(byte_source(make_document({})), stats=stats),
                priced={"U1": object()},
                stats=stats,
            )
        assert exc_info.value.context["entries_seen"] == 0
