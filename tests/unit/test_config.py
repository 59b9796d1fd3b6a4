"""Tests for price_intel.core.config."""

import os

import pytest
from pydantic import ValidationError

from price_intel.core.config import (
    DEFAULT_IDENTIFIER_URL,
    DEFAULT_PRICE_URL,
    CacheConfig,
    IngestionConfig,
    LoggingConfig,
    PriceIntelConfig,
    UpstreamConfig,
    _auto_cast,
    _merge_env_vars,
    load_config,
)
from price_intel.core.exceptions import ConfigError


@pytest.fixture
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("PRICE_INTEL_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestDefaults:
    def test_upstream_defaults(self):
        c = UpstreamConfig()
        assert c.price_url == DEFAULT_PRICE_URL
        assert c.identifier_url == DEFAULT_IDENTIFIER_URL
        assert c.price_fetch_timeout_millis == 120_000
        assert c.identifier_fetch_timeout_millis == 300_000

    def test_timeouts_in_seconds(self):
        c = UpstreamConfig()
        assert c.price_timeout_seconds == 120.0
        assert c.identifier_timeout_seconds == 300.0

    def test_cache_ttl_is_one_day(self):
        assert CacheConfig().cache_ttl_millis == 24 * 60 * 60 * 1000

    def test_progress_interval(self):
        assert IngestionConfig().progress_interval == 50_000


class TestValidation:
    def test_rejects_non_http_url(self):
        with pytest.raises(ValidationError, match="http"):
            UpstreamConfig(price_url="ftp://mtgjson.com/AllPrices.json")

    def test_rejects_zero_timeout(self):
        with pytest.raises(ValidationError, match=">= 1"):
            UpstreamConfig(price_fetch_timeout_millis=0)

    def test_rejects_zero_ttl(self):
        with pytest.raises(ValidationError, match=">= 1"):
            CacheConfig(cache_ttl_millis=0)

    def test_rejects_zero_progress_interval(self):
        with pytest.raises(ValidationError, match=">= 1"):
            IngestionConfig(progress_interval=0)

    def test_log_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_log_level_unknown(self):
        with pytest.raises(ValidationError, match="unknown log level"):
            LoggingConfig(level="chatty")

    def test_camel_case_options_accepted(self):
        c = PriceIntelConfig.model_validate(
            {
                "upstream": {"priceUrl": "https://a.test/p.json"},
                "cache": {"cachePath": "/tmp/p.json", "cacheTtlMillis": 1000},
                "ingestion": {"progressInterval": 10},
            }
        )
        assert c.upstream.price_url == "https://a.test/p.json"
        assert c.cache.cache_path == "/tmp/p.json"
        assert c.cache.cache_ttl_millis == 1000
        assert c.ingestion.progress_interval == 10

    def test_frozen(self):
        c = CacheConfig()
        with pytest.raises(ValidationError):
            c.cache_path = "/elsewhere"


class TestLoadConfig:
    def test_defaults_without_file(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        config = load_config()
        assert config.upstream.price_url == DEFAULT_PRICE_URL

    def test_yaml_loading(self, tmp_path, clean_env):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text(
            "cache:\n  cache_path: /var/cache/prices.json\n"
            "upstream:\n  identifierFetchTimeoutMillis: 60000\n"
        )
        config = load_config(config_path=str(yaml_file))
        assert config.cache.cache_path == "/var/cache/prices.json"
        assert config.upstream.identifier_fetch_timeout_millis == 60_000

    def test_env_overrides_yaml(self, tmp_path, clean_env):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("cache:\n  cache_ttl_millis: 5000\n")
        clean_env.setenv("PRICE_INTEL_CACHE__CACHE_TTL_MILLIS", "9000")
        config = load_config(config_path=str(yaml_file))
        assert config.cache.cache_ttl_millis == 9000

    def test_config_env_var_points_to_file(self, tmp_path, clean_env):
        yaml_file = tmp_path / "elsewhere.yml"
        yaml_file.write_text("ingestion:\n  progress_interval: 7\n")
        clean_env.setenv("PRICE_INTEL_CONFIG", str(yaml_file))
        config = load_config()
        assert config.ingestion.progress_interval == 7

    def test_default_file_in_cwd(self, tmp_path, clean_env):
        (tmp_path / "price-intel.yml").write_text("logging:\n  level: warning\n")
        clean_env.chdir(tmp_path)
        assert load_config().logging.level == "WARNING"

    def test_missing_explicit_file(self, clean_env):
        with pytest.raises(ConfigError, match="not found"):
            load_config(config_path="/nonexistent/price-intel.yml")

    def test_missing_env_file(self, clean_env):
        clean_env.setenv("PRICE_INTEL_CONFIG", "/nonexistent/x.yml")
        with pytest.raises(ConfigError, match="PRICE_INTEL_CONFIG"):
            load_config()

    def test_yaml_must_be_mapping(self, tmp_path, clean_env):
        yaml_file = tmp_path / "list.yml"
        yaml_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_path=str(yaml_file))

    def test_invalid_yaml(self, tmp_path, clean_env):
        yaml_file = tmp_path / "bad.yml"
        yaml_file.write_text("cache: [unclosed\n")
        with pytest.raises(ConfigError, match="parse YAML"):
            load_config(config_path=str(yaml_file))

    def test_validation_error_wrapped(self, tmp_path, clean_env):
        yaml_file = tmp_path / "bad.yml"
        yaml_file.write_text("cache:\n  cache_ttl_millis: -1\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(config_path=str(yaml_file))
        assert exc_info.value.context["source"] == "load_config"

    def test_directory_as_config_file(self, tmp_path, clean_env):
        with pytest.raises(ConfigError, match="Cannot read") as exc_info:
            load_config(config_path=str(tmp_path))
        assert exc_info.value.context["field"] == "config_file"


class TestEnvHelpers:
    def test_auto_cast(self):
        assert _auto_cast("true") is True
        assert _auto_cast("False") is False
        assert _auto_cast("42") == 42
        assert _auto_cast("1.5") == 1.5
        assert _auto_cast("https://x.test") == "https://x.test"

    def test_merge_nests_on_double_underscore(self, clean_env):
        clean_env.setenv("PRICE_INTEL_UPSTREAM__PRICE_URL", "https://env.test/p.json")
        merged = _merge_env_vars({"upstream": {"user_agent": "ua"}}, "PRICE_INTEL_")
        assert merged["upstream"] == {
            "user_agent": "ua",
            "price_url": "https://env.test/p.json",
        }

    def test_merge_does_not_mutate_base(self, clean_env):
        base = {"cache": {"cache_ttl_millis": 1}}
        clean_env.setenv("PRICE_INTEL_CACHE__CACHE_TTL_MILLIS", "2")
        _merge_env_vars(base, "PRICE_INTEL_")
        assert base == {"cache": {"cache_ttl_millis": 1}}

    def test_merge_skips_config_var(self, clean_env):
        clean_env.setenv("PRICE_INTEL_CONFIG", "/tmp/x.yml")
        assert _merge_env_vars({}, "PRICE_INTEL_") == {}

    def test_merge_replaces_scalar_with_section(self, clean_env):
        clean_env.setenv("PRICE_INTEL_CACHE__CACHE_PATH", "/tmp/p.json")
        merged = _merge_env_vars({"cache": "flat"}, "PRICE_INTEL_")
        assert merged == {"cache": {"cache_path": "/tmp/p.json"}}

    def test_merge_skips_config_var_for_custom_prefix(self, clean_env):
        clean_env.setenv("CARDS_CONFIG", "/tmp/x.yml")
        clean_env.setenv("CARDS_LOGGING__LEVEL", "debug")
        assert _merge_env_vars({}, "CARDS_") == {"logging": {"level": "debug"}}
