"""
Probe Client - Shared HTTP client with retry, size cap and no redirects.

Every scanner stage receives the same ProbeClient instance. It owns one
aiohttp session (and therefore one connection pool) for the whole run;
its settings are fixed when the session opens.

Behaviour:
1. Fixed User-Agent, TLS verification disabled unless configured
2. Redirects are never followed (the 3xx response itself is returned)
3. Transport failures are retried with linear backoff
4. Response bodies are truncated at a fixed ceiling
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import aiohttp
import structlog

from .config import PipelineConfig


@dataclass(frozen=True)
class ProbeResponse:
    """Status, headers and (possibly truncated) body of one response"""
    status: int
    headers: Mapping[str, str]
    body: bytes

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400

    @property
    def is_html(self) -> bool:
        """A missing Content-Type counts as HTML"""
        content_type = self.headers.get("Content-Type")
        return not content_type or "html" in content_type

    def contains(self, text: str) -> bool:
        """Literal substring check against the raw body"""
        return text.encode("utf-8") in self.body


class ProbeClient:
    """
    Async HTTP client shared by all pipeline workers.

    Example:
        >>> async with ProbeClient(PipelineConfig()) as client:
        ...     response = await client.fetch("https://example.com/?q=1")
        ...     print(response.status)
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        Initialize the probe client.

        Args:
            config: Pipeline configuration (uses defaults if None)
        """
        self.config = config or PipelineConfig()
        self._session: Optional[aiohttp.ClientSession] = None

        # Statistics
        self.request_count = 0
        self.retry_count = 0
        self.failure_count = 0

        self.logger = structlog.get_logger(__name__)

    async def open(self):
        """Create the underlying session"""
        if self._session is not None:
            return

        connector = aiohttp.TCPConnector(
            limit=0,  # Concurrency is bounded by the worker pools
            ssl=self.config.verify_tls,
        )
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
            headers={"User-Agent": self.config.user_agent},
        )

        self.logger.debug(
            "probe_client_opened",
            timeout=self.config.request_timeout,
            verify_tls=self.config.verify_tls,
        )

    async def close(self):
        """Close the underlying session"""
        if self._session is not None:
            await self._session.close()
            self._session = None
            self.logger.debug("probe_client_closed", requests=self.request_count)

    async def __aenter__(self) -> "ProbeClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def fetch(self, url: str, method: str = "GET") -> ProbeResponse:
        """
        Issue a request, retrying transport failures.

        Args:
            url: Absolute URL to request
            method: HTTP method

        Returns:
            ProbeResponse for the first attempt that got any HTTP response

        Raises:
            ParseError: If aiohttp rejects the URL
            TransportError: If every attempt failed at the transport level
        """
        if self._session is None:
            raise RuntimeError("ProbeClient is not open")

        max_retries = self.config.max_retries
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_retries + 1):
            self.request_count += 1
            try:
                return await self._request_once(method, url)

            except aiohttp.InvalidURL as e:
                raise ParseError(f"invalid URL {url}: {e}") from e

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                self.logger.debug(
                    "request_attempt_failed",
                    url=url,
                    attempt=attempt,
                    error=repr(e),
                )

            if attempt < max_retries:
                self.retry_count += 1
                await asyncio.sleep(attempt * self.config.retry_delay)

        self.failure_count += 1
        raise TransportError(url, max_retries, last_error) from last_error

    async def _request_once(self, method: str, url: str) -> ProbeResponse:
        async with self._session.request(method, url, allow_redirects=False) as response:
            body = await self._read_capped(response)
            return ProbeResponse(
                status=response.status,
                headers=response.headers,
                body=body,
            )

    async def _read_capped(self, response: aiohttp.ClientResponse) -> bytes:
        """Read at most max_body_size bytes, dropping the rest"""
        limit = self.config.max_body_size
        chunks = []
        size = 0

        while size < limit:
            chunk = await response.content.read(limit - size)
            if not chunk:
                break
            chunks.append(chunk)
            size += len(chunk)

        return b"".join(chunks)

    def get_statistics(self) -> dict:
        """
        Get client statistics.

        Returns:
            Dictionary with request, retry and failure counts
        """
        return {
            "requests": self.request_count,
            "retries": self.retry_count,
            "failures": self.failure_count,
        }


class ProbeError(Exception):
    """Base exception for per-item probe errors"""
    pass


class ParseError(ProbeError):
    """Raised when a URL cannot be parsed"""
    pass


class TransportError(ProbeError):
    """Raised when a request still fails after all retries"""

    def __init__(self, url: str, retries: int, cause: Optional[Any] = None):
        self.url = url
        self.retries = retries
        self.cause = cause
        super().__init__(f"{url}: failed after {retries} retries: {cause!r}")
