"""
Page Fetchers

Loads vendor pages and returns the rendered document as a FetchResult.
Two implementations share one retry policy: a crawl4ai headless browser for
client-side rendered storefronts and a plain aiohttp fetcher for vendors
that render on the server. Failures never raise across the fetch boundary;
they come back as TIMEOUT or ERROR results after the retry budget is spent.
"""

import asyncio
import time
from abc import abstractmethod
from typing import Dict, Any, Optional

import aiohttp
from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig, CacheMode

from partscraper.core.base import (
    PageFetcherInterface,
    FetchResult,
    FetchStatus,
    CrawlingError,
    ConfigurationError
)
from partscraper.core.config import CrawlConfig
from partscraper.core.logging import get_logger


# 4xx answers that are worth asking again
RETRYABLE_CLIENT_STATUSES = {408, 425, 429}


class PageFetcher(PageFetcherInterface):
    """
    Base fetcher implementing the retry policy.

    Subclasses implement _fetch_once(); fetch() retries it up to
    max_retries times after the first attempt, sleeping
    attempt * retry_backoff seconds before each retry.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.logger = get_logger()
        crawl_data = config.get('crawl', {})
        self.crawl_config = crawl_data if isinstance(crawl_data, CrawlConfig) else CrawlConfig(**crawl_data)

        self.stats = {
            'total_fetches': 0,
            'successful_fetches': 0,
            'failed_fetches': 0,
            'timeouts': 0,
            'retries': 0,
            'total_time': 0.0
        }

    @abstractmethod
    async def _fetch_once(self, url: str) -> FetchResult:
        """Make a single attempt at loading url"""
        pass

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a URL with retries

        Args:
            url: Absolute URL to load

        Returns:
            FetchResult; OK with the document, or the last TIMEOUT/ERROR
            result once the retry budget is exhausted
        """
        if not self._initialized:
            raise CrawlingError(f"{type(self).__name__} not initialized")

        start_time = time.time()
        max_attempts = 1 + self.crawl_config.max_retries
        result: Optional[FetchResult] = None

        for attempt in range(1, max_attempts + 1):
            try:
                result = await self._fetch_once(url)
            except asyncio.TimeoutError:
                result = FetchResult.timeout(url, f"Timed out after {self.crawl_config.timeout}s")
            except (aiohttp.ClientError, OSError) as e:
                result = FetchResult.failure(url, f"{type(e).__name__}: {e}")
            except Exception as e:
                self.logger.exception(f"Unexpected error fetching {url}")
                result = FetchResult.failure(url, f"{type(e).__name__}: {e}")
            result.attempts = attempt

            if result.ok:
                break

            if result.status == FetchStatus.TIMEOUT:
                self.stats['timeouts'] += 1

            if not self._is_retryable(result) or attempt == max_attempts:
                break

            delay = attempt * self.crawl_config.retry_backoff
            self.stats['retries'] += 1
            self.logger.warning(
                f"Fetch attempt {attempt}/{max_attempts} failed for {url}: {result.error}; "
                f"retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)

        result.elapsed = time.time() - start_time
        self.stats['total_fetches'] += 1
        self.stats['total_time'] += result.elapsed

        if result.ok:
            self.stats['successful_fetches'] += 1
            self.logger.debug(f"Fetched {url} in {result.elapsed:.2f}s ({result.attempts} attempts)")
        else:
            self.stats['failed_fetches'] += 1
            self.logger.error(
                f"Abandoning {url} after {result.attempts} attempts: "
                f"{result.status.value} - {result.error}"
            )

        return result

    def _is_retryable(self, result: FetchResult) -> bool:
        code = result.status_code
        if code is not None and 400 <= code < 500:
            return code in RETRYABLE_CLIENT_STATUSES
        return True

    def get_stats(self) -> Dict[str, Any]:
        stats = dict(self.stats)
        total = stats['total_fetches']
        stats['success_rate'] = (stats['successful_fetches'] / total) * 100 if total else 0.0
        return stats


class BrowserPageFetcher(PageFetcher):
    """
    crawl4ai headless browser fetcher.

    One browser is started in initialize() and reused for every fetch of
    the run; cleanup() closes it.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.crawler: Optional[AsyncWebCrawler] = None
        self.browser_config: Optional[BrowserConfig] = None
        self.run_config: Optional[CrawlerRunConfig] = None

    async def initialize(self) -> None:
        """Start the browser"""
        if self._initialized:
            return
        try:
            self.logger.info("Starting headless browser for page fetching")

            self.browser_config = BrowserConfig(
                headless=self.crawl_config.headless,
                user_agent=self.crawl_config.user_agent,
                extra_args=[
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu"
                ]
            )

            self.run_config = CrawlerRunConfig(
                cache_mode=CacheMode.BYPASS,
                wait_until=self.crawl_config.wait_until,
                page_timeout=self.crawl_config.timeout * 1000  # milliseconds
            )

            self.crawler = AsyncWebCrawler(config=self.browser_config)
            await self.crawler.start()

            self._initialized = True
            self.logger.info("Browser fetcher initialized")

        except Exception as e:
            self.logger.error(f"Failed to start browser: {e}")
            raise CrawlingError(f"Browser initialization failed: {e}") from e

    async def cleanup(self) -> None:
        """Close the browser"""
        if self.crawler:
            try:
                await self.crawler.close()
            finally:
                self.crawler = None
        self._initialized = False
        self.logger.info("Browser fetcher cleaned up")

    async def _fetch_once(self, url: str) -> FetchResult:
        # Outer guard in case the page hangs past crawl4ai's own timeout
        result = await asyncio.wait_for(
            self.crawler.arun(url=url, config=self.run_config),
            timeout=self.crawl_config.timeout + 5
        )

        status_code = getattr(result, 'status_code', None)
        if result.success and result.html:
            return FetchResult.success(url, result.html, status_code)

        error = result.error_message or "Empty document"
        if 'timeout' in error.lower():
            return FetchResult.timeout(url, error)
        return FetchResult.failure(url, error, status_code)


class HttpPageFetcher(PageFetcher):
    """
    aiohttp fetcher for server-rendered vendor pages.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Open the HTTP session"""
        if self._initialized:
            return

        timeout = aiohttp.ClientTimeout(total=self.crawl_config.timeout)
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            headers={
                'User-Agent': self.crawl_config.user_agent,
                'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
                'Accept-Language': 'en-US,en;q=0.9'
            }
        )

        self._initialized = True
        self.logger.info("HTTP fetcher initialized")

    async def cleanup(self) -> None:
        """Close the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None
        self._initialized = False
        self.logger.info("HTTP fetcher cleaned up")

    async def _fetch_once(self, url: str) -> FetchResult:
        async with self.session.get(url, allow_redirects=True) as response:
            if response.status >= 400:
                return FetchResult.failure(url, f"HTTP {response.status}: {response.reason}", response.status)
            # Vendors mislabel charsets; undecodable bytes become U+FFFD
            html = await response.text(errors='replace')
            return FetchResult.success(url, html, response.status)


def create_page_fetcher(config: Dict[str, Any]) -> PageFetcher:
    """
    Create the fetcher selected by scraper.fetcher

    Args:
        config: Full configuration dictionary

    Returns:
        Uninitialized page fetcher
    """
    kind = config.get('scraper', {}).get('fetcher', 'browser')
    if kind == 'browser':
        return BrowserPageFetcher(config)
    if kind == 'http':
        return HttpPageFetcher(config)
    raise ConfigurationError(f"Unknown fetcher: {kind}")
