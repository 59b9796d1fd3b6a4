"""price_intel.core: foundation types, config, and exceptions."""

from price_intel.core.config import (
    CacheConfig,
    IngestionConfig,
    LoggingConfig,
    PriceIntelConfig,
    UpstreamConfig,
    load_config,
)
from price_intel.core.exceptions import (
    CacheLoadError,
    CachePersistError,
    ConfigError,
    FetchError,
    IngestionError,
    MalformedEntryError,
    PriceIntelError,
    StreamParseError,
)
from price_intel.core.models import (
    CatalogId,
    DateKey,
    PriceRecord,
    PriceSource,
    RefreshOutcome,
    RefreshState,
    ServiceStatus,
    UpstreamId,
    coerce_price,
    is_date_key,
)

__all__ = [
    # Type aliases
    "CatalogId",
    "DateKey",
    "UpstreamId",
    # Enums
    "PriceSource",
    "RefreshState",
    # Models
    "PriceRecord",
    "RefreshOutcome",
    "ServiceStatus",
    "coerce_price",
    "is_date_key",
    # Config
    "PriceIntelConfig",
    "UpstreamConfig",
    "CacheConfig",
    "IngestionConfig",
    "LoggingConfig",
    "load_config",
    # Exceptions
    "PriceIntelError",
    "ConfigError",
    "IngestionError",
    "FetchError",
    "StreamParseError",
    "MalformedEntryError",
    "CachePersistError",
    "CacheLoadError",
]
