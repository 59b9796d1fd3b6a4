"""Upstream document ingestion: streaming client and incremental parser."""

from price_intel.ingestion.client import UpstreamClient, UpstreamDocument
from price_intel.ingestion.parser import ParseStats, iter_decoded, iter_entries

__all__ = [
    "ParseStats",
    "UpstreamClient",
    "UpstreamDocument",
    "iter_decoded",
    "iter_entries",
]
