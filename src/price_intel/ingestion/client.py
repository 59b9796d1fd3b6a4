"""Async streaming HTTP client for the upstream price authority."""

from __future__ import annotations

import asyncio
import logging
import zlib
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, aclosing, asynccontextmanager

import httpx

from price_intel.core.config import UpstreamConfig
from price_intel.core.exceptions import FetchError, StreamParseError

logger = logging.getLogger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"
_CHUNK_SIZE = 64 * 1024


class UpstreamDocument:
    """An open upstream response body, readable incrementally.

    Exposes an async ``read(size)`` so it can be handed straight to an
    incremental JSON parser. Bodies stored as ``.gz`` files (as opposed to
    gzip transfer encoding, which httpx already undoes) are detected by
    their magic bytes and inflated chunk by chunk.

    Only valid inside the ``UpstreamClient.fetch()`` block that produced it.
    """

    def __init__(self, response: httpx.Response, url: str) -> None:
        self.url = url
        self._response = response
        self._chunks = self._decoded_chunks()
        self._buffer = b""
        self.bytes_read = 0
        self.compressed = False

    @property
    def content_length(self) -> int | None:
        value = self._response.headers.get("Content-Length")
        return int(value) if value and value.isdigit() else None

    async def read(self, size: int = -1) -> bytes:
        """Return up to ``size`` decoded bytes; ``b""`` signals end of body."""
        while size < 0 or len(self._buffer) < size:
            chunk = await anext(self._chunks, None)
            if chunk is None:
                break
            self._buffer += chunk
        if size < 0 or len(self._buffer) <= size:
            data, self._buffer = self._buffer, b""
        else:
            data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data

    async def aclose(self) -> None:
        """Stop reading and release the chunk generators."""
        await self._chunks.aclose()

    async def _decoded_chunks(self) -> AsyncIterator[bytes]:
        async with aclosing(self._raw_chunks()) as raw:
            head = b""
            async for chunk in raw:
                head += chunk
                if len(head) >= len(_GZIP_MAGIC):
                    break

            if not head.startswith(_GZIP_MAGIC):
                if head:
                    yield head
                async for chunk in raw:
                    yield chunk
                return

            self.compressed = True
            inflater = zlib.decompressobj(wbits=zlib.MAX_WBITS | 16)
            try:
                yield inflater.decompress(head)
                async for chunk in raw:
                    data = inflater.decompress(chunk)
                    if data:
                        yield data
                tail = inflater.flush()
                if tail:
                    yield tail
            except zlib.error as e:
                raise StreamParseError(
                    f"Corrupt gzip body from {self.url}: {e}",
                    context={"url": self.url, "bytes_read": self.bytes_read},
                ) from e

    async def _raw_chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes(_CHUNK_SIZE):
                self.bytes_read += len(chunk)
                yield chunk
        except httpx.HTTPError as e:
            raise FetchError(
                f"Transport error while reading {self.url}: {e}",
                context={"url": self.url, "reason": "transport", "status_code": None},
            ) from e


class UpstreamClient:
    """Streaming GET client for the price and identifier documents.

    No retries happen here: a failed fetch raises ``FetchError`` and the
    caller decides what to do next. Use via
    ``async with UpstreamClient(...) as client:``.
    """

    def __init__(
        self,
        config: UpstreamConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            headers={
                "User-Agent": config.user_agent,
                "Accept": "application/json",
                "Accept-Encoding": "gzip, deflate",
            },
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> UpstreamClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    @asynccontextmanager
    async def fetch(self, url: str, timeout: float) -> AsyncIterator[UpstreamDocument]:
        """Open ``url`` and yield its body as an ``UpstreamDocument``.

        Args:
            url: Document URL.
            timeout: Overall deadline in seconds covering connect, headers
                and the whole body read performed inside the block.

        Raises:
            FetchError: Non-2xx status, transport failure or deadline expiry.
                The response is closed on every exit path.
        """
        logger.info("Fetching %s (deadline %.0fs)", url, timeout)
        try:
            async with asyncio.timeout(timeout):
                async with self._client.stream(
                    "GET", url, timeout=httpx.Timeout(timeout)
                ) as response:
                    if not response.is_success:
                        raise FetchError(
                            f"HTTP {response.status_code} from {url}",
                            context={
                                "url": url,
                                "status_code": response.status_code,
                                "reason": "http_status",
                            },
                        )
                    document = UpstreamDocument(response, url)
                    try:
                        yield document
                    finally:
                        await document.aclose()
                    logger.debug(
                        "Closed %s after %d bytes (gzip file: %s)",
                        url, document.bytes_read, document.compressed,
                    )
        except TimeoutError as e:
            raise FetchError(
                f"Deadline of {timeout:.0f}s exceeded fetching {url}",
                context={"url": url, "status_code": None, "reason": "timeout"},
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timed out fetching {url}: {e}",
                context={"url": url, "status_code": None, "reason": "timeout"},
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                f"Transport error fetching {url}: {e}",
                context={"url": url, "status_code": None, "reason": "transport"},
            ) from e

    def price_document(self) -> AbstractAsyncContextManager[UpstreamDocument]:
        """Open the configured price document with its deadline."""
        return self.fetch(self._config.price_url, self._config.price_timeout_seconds)

    def identifier_document(self) -> AbstractAsyncContextManager[UpstreamDocument]:
        """Open the configured identifier document with its deadline."""
        return self.fetch(
            self._config.identifier_url, self._config.identifier_timeout_seconds
        )
