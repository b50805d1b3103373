"""
HTTP transport for the crawler.

Any object exposing ``async fetch(url) -> FetchResult`` can stand in for
``WebFetcher``; the scheduler and the robots policy only rely on that call.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientResponse, ClientSession, ClientTimeout, ClientError


DEFAULT_MAX_CONTENT_SIZE = 10 * 1024 * 1024

# Bodies of these types are downloaded; anything else only reports status and headers
TEXT_CONTENT_TYPES = (
    'text/',
    'application/xml',
    'application/xhtml+xml',
    'application/json',
    'application/ld+json',
)

FALLBACK_ENCODINGS = ('utf-8', 'cp1252')


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    content: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None
    encoding: Optional[str] = None

    @property
    def location(self) -> Optional[str]:
        """Redirect target advertised by the response, if any."""
        for name, value in (self.headers or {}).items():
            if name.lower() == 'location':
                return value
        return None


class WebFetcher:
    """
    Fetches single URLs over aiohttp. Redirects are surfaced, not followed,
    so the crawler can record every hop of a redirect chain.
    """

    def __init__(self, user_agent: str, request_timeout: int = 30,
                 max_concurrent_requests: int = 10,
                 max_content_size: int = DEFAULT_MAX_CONTENT_SIZE):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.max_content_size = max_content_size

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'bodies_skipped': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Open the shared client session; a no-op if it is already open."""
        if self.session is not None:
            return

        self.session = aiohttp.ClientSession(
            timeout=ClientTimeout(total=self.request_timeout),
            headers={'User-Agent': self.user_agent},
            connector=aiohttp.TCPConnector(
                limit=self.max_concurrent_requests * 2,
                limit_per_host=self.max_concurrent_requests,
                ttl_dns_cache=300
            )
        )
        self.logger.info(f"WebFetcher session started (user agent: {self.user_agent})")

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        GET one URL without following redirects.

        Network failures and timeouts are reported through ``FetchResult.error``
        with status 0; HTTP error statuses are returned as ordinary results.
        """
        if self.session is None:
            await self.start()

        started = time.time()
        async with self.semaphore:
            self.stats['total_requests'] += 1
            try:
                async with self.session.get(url, allow_redirects=False) as response:
                    result = await self._result_from_response(url, response, started)
            except asyncio.TimeoutError:
                return self._failure(url, "Request timeout", started)
            except ClientError as e:
                return self._failure(url, f"Client error: {e}", started)

        self.stats['successful_requests'] += 1
        self.logger.debug(
            f"Fetched {url}: {result.status_code} "
            f"({len(result.content) if result.content else 0} chars, {result.fetch_time:.3f}s)"
        )
        return result

    async def _result_from_response(self, url: str, response: ClientResponse, started: float) -> FetchResult:
        # Media type only; the charset parameter is kept in ``encoding``
        content_type = response.headers.get('content-type', '').split(';')[0].strip().lower()
        content = None

        if self._wants_body(content_type):
            content = await self._read_limited(response)
            if content:
                self.stats['total_bytes_downloaded'] += len(content)
        else:
            self.stats['bodies_skipped'] += 1
            self.logger.debug(f"Not downloading body of {url} ({content_type})")

        return FetchResult(
            url=url,
            status_code=response.status,
            content=content,
            headers=dict(response.headers),
            content_type=content_type,
            encoding=response.charset,
            fetch_time=time.time() - started
        )

    def _failure(self, url: str, error: str, started: float) -> FetchResult:
        self.stats['failed_requests'] += 1
        self.logger.warning(f"Failed to fetch {url}: {error}")
        return FetchResult(url=url, status_code=0, error=error, fetch_time=time.time() - started)

    @staticmethod
    def _wants_body(content_type: str) -> bool:
        # A missing content type is left for the parser to sniff
        return not content_type or any(t in content_type for t in TEXT_CONTENT_TYPES)

    async def _read_limited(self, response: ClientResponse) -> Optional[str]:
        """
        Read and decode the body, or return None once it exceeds max_content_size.
        """
        declared = response.content_length
        if declared is not None and declared > self.max_content_size:
            self.logger.warning(f"Declared body too large ({declared} bytes): {response.url}")
            return None

        body = bytearray()
        async for chunk in response.content.iter_chunked(8192):
            body.extend(chunk)
            if len(body) > self.max_content_size:
                self.logger.warning(f"Body exceeded {self.max_content_size} bytes: {response.url}")
                return None

        return self._decode(bytes(body), response.charset)

    @staticmethod
    def _decode(body: bytes, charset: Optional[str]) -> str:
        if charset:
            try:
                return body.decode(charset)
            except (UnicodeDecodeError, LookupError):
                pass

        for encoding in FALLBACK_ENCODINGS:
            try:
                return body.decode(encoding)
            except UnicodeDecodeError:
                continue
        return body.decode('latin-1')

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()
