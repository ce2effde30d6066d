"""HTTP fetcher for docsift.

Performs a single bounded-time, retrying GET per URL and surfaces failures as
structured ``FetchError`` values so retry and logging can key off the cause.
"""

import asyncio
import logging
import random
from enum import Enum
from typing import Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "DocSift-Scraper/1.0.0"

# Retryable HTTP status codes
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class FetchErrorKind(str, Enum):
    """Cause of a failed fetch."""
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    HTTP_STATUS = "http_status"
    CANCELLED = "cancelled"


class FetchError(Exception):
    """Raised when a URL could not be fetched after all retry attempts."""

    def __init__(self, kind: FetchErrorKind, url: str, status: Optional[int] = None,
                 message: Optional[str] = None, attempts: int = 1):
        self.kind = kind
        self.url = url
        self.status = status
        self.attempts = attempts
        detail = message or (f"HTTP {status}" if status is not None else kind.value)
        super().__init__(f"Fetch error for {url} ({kind.value}): {detail}")

    @property
    def retryable(self) -> bool:
        if self.kind in (FetchErrorKind.TIMEOUT, FetchErrorKind.CONNECTION):
            return True
        if self.kind == FetchErrorKind.HTTP_STATUS:
            return self.status in RETRYABLE_STATUS_CODES
        return False


class Fetcher:
    """Asynchronous page fetcher with timeout, retries and a cookie jar."""

    def __init__(self,
                 request_timeout: float = 10.0,
                 max_retries: int = 3,
                 user_agent: str = None,
                 headers: Optional[Dict[str, str]] = None,
                 cookies: Optional[Dict[str, str]] = None,
                 follow_cookies: bool = True,
                 retry_delay: float = 0.5,
                 max_retry_delay: float = 8.0,
                 connection_limit: int = 40):
        """Initialize fetcher.

        Args:
            request_timeout: Total timeout per attempt in seconds
            max_retries: Retry attempts after the first one
            user_agent: User agent string
            headers: Extra request headers
            cookies: Session cookies sent with every request
            follow_cookies: Keep cookies set by responses across requests
            retry_delay: Base delay between retries (seconds)
            max_retry_delay: Maximum delay between retries (seconds)
            connection_limit: Connector pool size
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.headers = dict(headers or {})
        self.cookies = dict(cookies or {})
        self.follow_cookies = follow_cookies
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.connection_limit = connection_limit
        self.session: Optional[aiohttp.ClientSession] = None
        self._closed = False

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def open(self):
        """Create the underlying HTTP session."""
        if self.session is not None:
            return
        connector = aiohttp.TCPConnector(limit=self.connection_limit)
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        headers = {'User-Agent': self.user_agent, **self.headers}

        if self.follow_cookies:
            cookie_jar = aiohttp.CookieJar()
            cookie_jar.update_cookies(self.cookies)
        else:
            # a dummy jar discards everything, configured cookies included
            cookie_jar = aiohttp.DummyCookieJar()
            if self.cookies:
                headers['Cookie'] = '; '.join(f"{k}={v}" for k, v in self.cookies.items())

        self.session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            cookie_jar=cookie_jar,
            headers=headers
        )
        self._closed = False

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
        self._closed = True

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay with jitter."""
        base_delay = self.retry_delay * (2 ** attempt)
        jitter = random.uniform(0.1, 0.3) * base_delay
        return min(base_delay + jitter, self.max_retry_delay)

    async def _get_once(self, url: str, attempt: int) -> str:
        try:
            async with self.session.get(url, allow_redirects=True) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(FetchErrorKind.HTTP_STATUS, url,
                                     status=response.status, attempts=attempt + 1)
                return await response.text(errors="replace")
        except asyncio.TimeoutError as e:
            raise FetchError(FetchErrorKind.TIMEOUT, url, message=str(e) or "timed out",
                             attempts=attempt + 1) from e
        except aiohttp.ClientError as e:
            raise FetchError(FetchErrorKind.CONNECTION, url, message=str(e),
                             attempts=attempt + 1) from e

    async def fetch(self, url: str) -> str:
        """Fetch a single URL and return its body as text.

        Raises:
            FetchError: When every attempt failed or the fetcher was closed
        """
        if self._closed:
            raise FetchError(FetchErrorKind.CANCELLED, url, message="fetcher closed")
        if self.session is None:
            await self.open()

        last_error: Optional[FetchError] = None
        for attempt in range(self.max_retries + 1):
            logger.debug(f"Fetching {url} (attempt {attempt + 1}/{self.max_retries + 1})")
            try:
                return await self._get_once(url, attempt)
            except FetchError as e:
                last_error = e
                if not e.retryable or attempt >= self.max_retries:
                    break
                delay = self._calculate_retry_delay(attempt)
                logger.warning(f"{e}, retrying in {delay:.2f}s "
                               f"(attempt {attempt + 1}/{self.max_retries + 1})")
                await asyncio.sleep(delay)

        raise last_error
