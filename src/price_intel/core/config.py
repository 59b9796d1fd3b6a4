"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from price_intel.core.exceptions import ConfigError

DEFAULT_PRICE_URL = "https://mtgjson.com/api/v5/AllPricesToday.json"
DEFAULT_IDENTIFIER_URL = "https://mtgjson.com/api/v5/AllIdentifiers.json"

_DAY_MILLIS = 24 * 60 * 60 * 1000

# camelCase option names (priceUrl, cacheTtlMillis, ...) are accepted
# alongside the snake_case field names.
_SECTION_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


def _require_positive(name: str, v: int) -> int:
    if v < 1:
        raise ValueError(f"{name} must be >= 1")
    return v


class UpstreamConfig(BaseModel):
    """Upstream price authority endpoints and fetch deadlines."""

    model_config = _SECTION_CONFIG

    price_url: str = DEFAULT_PRICE_URL
    identifier_url: str = DEFAULT_IDENTIFIER_URL
    price_fetch_timeout_millis: int = 120_000
    identifier_fetch_timeout_millis: int = 300_000
    user_agent: str = "card-price-intel/0.1"

    @field_validator("price_url", "identifier_url")
    @classmethod
    def url_is_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"upstream URL must be http(s), got {v!r}")
        return v

    @field_validator("price_fetch_timeout_millis", "identifier_fetch_timeout_millis")
    @classmethod
    def timeout_positive(cls, v: int) -> int:
        return _require_positive("fetch timeout", v)

    @property
    def price_timeout_seconds(self) -> float:
        return self.price_fetch_timeout_millis / 1000

    @property
    def identifier_timeout_seconds(self) -> float:
        return self.identifier_fetch_timeout_millis / 1000


class CacheConfig(BaseModel):
    """Disk cache location and freshness window."""

    model_config = _SECTION_CONFIG

    cache_path: str = "./.cache/price-intel.json"
    cache_ttl_millis: int = _DAY_MILLIS

    @field_validator("cache_ttl_millis")
    @classmethod
    def ttl_positive(cls, v: int) -> int:
        return _require_positive("cache_ttl_millis", v)


class IngestionConfig(BaseModel):
    """Stream ingestion tuning."""

    model_config = _SECTION_CONFIG

    progress_interval: int = 50_000

    @field_validator("progress_interval")
    @classmethod
    def interval_positive(cls, v: int) -> int:
        return _require_positive("progress_interval", v)


class LoggingConfig(BaseModel):
    """Root log level used by the CLI."""

    model_config = _SECTION_CONFIG

    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def level_known(cls, v: str) -> str:
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v!r}")
        return upper


class PriceIntelConfig(BaseModel):
    """Root configuration for the price intelligence core."""

    model_config = _SECTION_CONFIG

    upstream: UpstreamConfig = UpstreamConfig()
    cache: CacheConfig = CacheConfig()
    ingestion: IngestionConfig = IngestionConfig()
    logging: LoggingConfig = LoggingConfig()


CONFIG_FILE_ENV = "PRICE_INTEL_CONFIG"
DEFAULT_CONFIG_FILE = "price-intel.yml"


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PRICE_INTEL_",
) -> PriceIntelConfig:
    """Build the service configuration.

    Values come from ``PRICE_INTEL_<SECTION>__<FIELD>`` environment
    variables, then the YAML file, then field defaults. The file is
    ``config_path``, else the one named by ``PRICE_INTEL_CONFIG``, else
    ``price-intel.yml`` in the working directory if present.

    Raises:
        ConfigError: The file is missing or unreadable, or a value fails
            validation.
    """
    path = _config_file(config_path)
    options = _read_yaml(path) if path is not None else {}
    options = _merge_env_vars(options, env_prefix)
    try:
        return PriceIntelConfig.model_validate(options)
    except ValidationError as e:
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _config_file(explicit: str | None) -> Path | None:
    if explicit is not None:
        return _existing(explicit, "Config file not found", "config_path")
    from_env = os.environ.get(CONFIG_FILE_ENV)
    if from_env:
        return _existing(
            from_env, f"Config file from {CONFIG_FILE_ENV} not found", CONFIG_FILE_ENV
        )
    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.is_file() else None


def _existing(raw: str, message: str, field: str) -> Path:
    path = Path(raw)
    if not path.exists():
        raise ConfigError(f"{message}: {raw}", context={"field": field, "value": raw})
    return path


def _read_yaml(path: Path) -> dict:
    context = {"field": "config_file", "value": str(path)}
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config: {e}", context=context) from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}", context=context) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"YAML config must be a mapping, got {type(data).__name__}", context=context
        )
    return data


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Return ``base`` with matching environment variables laid over it.

    ``PRICE_INTEL_CACHE__CACHE_TTL_MILLIS=60000`` sets
    ``cache.cache_ttl_millis``. ``base`` is not modified.
    """
    merged = dict(base)
    for name, raw in os.environ.items():
        if not name.startswith(prefix):
            continue
        keys = name[len(prefix):].lower().split("__")
        if keys == ["config"]:
            continue
        _set_nested(merged, keys, _auto_cast(raw))
    return merged


def _set_nested(options: dict, keys: list[str], value: object) -> None:
    *sections, leaf = keys
    for key in sections:
        child = options.get(key)
        # Copy sections on the way down so the caller's mapping stays intact.
        options[key] = dict(child) if isinstance(child, dict) else {}
        options = options[key]
    options[leaf] = value


def _auto_cast(value: str) -> str | int | float | bool:
    """Read an environment string as a bool, int or float where it is one."""
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for parse in (int, float):
        try:
            return parse(value)
        except ValueError:
            continue
    return value
