"""Price cache: indices, disk persistence, refresh coordination and lookups.

Data flow
---------
::

    UpstreamClient -> iter_entries -> PriceIndex + BridgeIndex -> DiskCache
    PriceLookup -> IndexSnapshot (PriceIndex, via BridgeIndex for catalog ids)

``RefreshCoordinator`` is the only writer; it publishes a new
``IndexSnapshot`` by swapping a single reference. ``PriceService`` bundles
the pieces behind an ``initialize()`` / ``shutdown()`` lifecycle.
"""

from price_intel.prices.bridge import BridgeIndex, build_bridge_index, extract_catalog_id
from price_intel.prices.cache import DiskCache
from price_intel.prices.coordinator import RefreshCoordinator
from price_intel.prices.index import PriceIndex, build_price_index, decode_price_record
from price_intel.prices.lookup import NO_PRICES, PriceLookup, SourcePrices
from price_intel.prices.service import PriceService
from price_intel.prices.snapshot import IndexSnapshot, now_millis

__all__ = [
    # Indices
    "PriceIndex",
    "BridgeIndex",
    "IndexSnapshot",
    "build_price_index",
    "build_bridge_index",
    "decode_price_record",
    "extract_catalog_id",
    # Persistence
    "DiskCache",
    # Coordination
    "RefreshCoordinator",
    "PriceService",
    # Lookups
    "PriceLookup",
    "SourcePrices",
    "NO_PRICES",
    "now_millis",
]
