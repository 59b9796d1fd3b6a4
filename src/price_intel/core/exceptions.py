"""Custom exception hierarchy for card-price-intel."""

from typing import Any


class PriceIntelError(Exception):
    """Base exception for all card-price-intel errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(PriceIntelError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field (str): the config field that failed validation
        value (Any): the invalid value
    """


class IngestionError(PriceIntelError):
    """Failed to fetch or parse an upstream document.

    Policy: the refresh coordinator logs it and keeps the previous indices.

    Context keys:
        url (str): the document that was being fetched
    """


class FetchError(IngestionError):
    """Transport failure, deadline expiry, or non-2xx upstream response.

    Policy: no retry inside the client. The coordinator preserves the
    existing index and tries again on the next scheduled refresh.

    Context keys:
        url (str): the URL that was being fetched
        status_code (int | None): HTTP status if a response arrived
        reason (str): "http_status", "transport", or "timeout"
    """


class StreamParseError(IngestionError):
    """Unrecoverable JSON syntax error in an upstream document.

    Policy: abandon the current build. Entries parsed so far are discarded.

    Context keys:
        url (str): the document being parsed
        entries_seen (int): how far the parser got
    """


class MalformedEntryError(PriceIntelError):
    """A single document entry could not be decoded.

    Policy: skip the entry and increment the malformed counter.

    Context keys:
        key (str): the entry key (upstream uuid)
        reason (str): why the entry was rejected
    """


class CachePersistError(PriceIntelError):
    """Writing the disk cache failed.

    Policy: log it. In-memory indices stay authoritative.

    Context keys:
        path (str): the cache file path
    """


class CacheLoadError(PriceIntelError):
    """Reading or decoding the disk cache failed.

    Policy: log it and start with empty indices.

    Context keys:
        path (str): the cache file path
    """
