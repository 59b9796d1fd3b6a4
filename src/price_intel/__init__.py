"""card-price-intel: cached MTGJSON price lookups and inventory valuation."""

__version__ = "0.1.0"
