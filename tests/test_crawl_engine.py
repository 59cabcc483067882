"""
Tests for the page fetchers

Tests the crawl4ai browser fetcher with a mocked AsyncWebCrawler, the
aiohttp fetcher against aioresponses, and the shared retry policy.
"""

import asyncio
from unittest.mock import Mock, AsyncMock, patch

import aiohttp
import pytest
import pytest_asyncio
from aioresponses import aioresponses

from partscraper.core.base import (
    FetchResult,
    FetchStatus,
    FetchError,
    FetchTimeout,
    CrawlingError,
    ConfigurationError
)
from partscraper.core.crawl_engine import (
    BrowserPageFetcher,
    HttpPageFetcher,
    create_page_fetcher
)


URL = "https://shop.example.com/products/f60-pro"


def crawl_result(success: bool = True, html: str = "<html><body>ok</body></html>",
                 status_code: int = 200, error_message: str = None) -> Mock:
    """Stand-in for a crawl4ai CrawlResult"""
    return Mock(success=success, html=html, status_code=status_code, error_message=error_message)


@pytest.fixture
def fetch_config(fast_config):
    return fast_config


class TestBrowserPageFetcher:
    """Test suite for BrowserPageFetcher"""

    @pytest.fixture
    def mock_crawler(self):
        with patch('partscraper.core.crawl_engine.AsyncWebCrawler') as mock_crawler_class:
            crawler = AsyncMock()
            mock_crawler_class.return_value = crawler
            yield crawler

    @pytest_asyncio.fixture
    async def fetcher(self, fetch_config, mock_crawler):
        fetcher = BrowserPageFetcher(fetch_config)
        await fetcher.initialize()
        yield fetcher
        await fetcher.cleanup()

    @pytest.mark.asyncio
    async def test_initialization(self, fetch_config, mock_crawler):
        fetcher = BrowserPageFetcher(fetch_config)

        await fetcher.initialize()

        assert fetcher.is_initialized()
        mock_crawler.start.assert_awaited_once()
        assert fetcher.run_config.page_timeout == 5000

    @pytest.mark.asyncio
    async def test_initialization_failure(self, fetch_config, mock_crawler):
        mock_crawler.start.side_effect = RuntimeError("no browser binary")
        fetcher = BrowserPageFetcher(fetch_config)

        with pytest.raises(CrawlingError, match="Browser initialization failed"):
            await fetcher.initialize()
        assert not fetcher.is_initialized()

    @pytest.mark.asyncio
    async def test_cleanup_closes_browser(self, fetch_config, mock_crawler):
        fetcher = BrowserPageFetcher(fetch_config)
        await fetcher.initialize()

        await fetcher.cleanup()

        mock_crawler.close.assert_awaited_once()
        assert fetcher.crawler is None
        assert not fetcher.is_initialized()

    @pytest.mark.asyncio
    async def test_fetch_requires_initialize(self, fetch_config):
        fetcher = BrowserPageFetcher(fetch_config)

        with pytest.raises(CrawlingError):
            await fetcher.fetch(URL)

    @pytest.mark.asyncio
    async def test_fetch_success(self, fetcher, mock_crawler):
        mock_crawler.arun.return_value = crawl_result()

        result = await fetcher.fetch(URL)

        assert result.ok
        assert result.html == "<html><body>ok</body></html>"
        assert result.attempts == 1
        assert fetcher.get_stats()['success_rate'] == 100.0

    @pytest.mark.asyncio
    async def test_retry_then_success(self, fetcher, mock_crawler):
        mock_crawler.arun.side_effect = [
            crawl_result(False, "", 500, "net::ERR_CONNECTION_RESET"),
            crawl_result()
        ]

        result = await fetcher.fetch(URL)

        assert result.ok
        assert result.attempts == 2
        assert fetcher.stats['retries'] == 1

    @pytest.mark.asyncio
    async def test_timeout_after_retries(self, fetcher, mock_crawler):
        mock_crawler.arun.return_value = crawl_result(False, "", None, "Timeout 5000ms exceeded")

        result = await fetcher.fetch(URL)

        assert result.status == FetchStatus.TIMEOUT
        assert result.attempts == 3
        assert mock_crawler.arun.await_count == 3
        assert fetcher.stats['timeouts'] == 3

    @pytest.mark.asyncio
    async def test_outer_timeout_reported(self, fetcher, mock_crawler):
        mock_crawler.arun.side_effect = asyncio.TimeoutError()

        result = await fetcher.fetch(URL)

        assert result.status == FetchStatus.TIMEOUT
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, fetcher, mock_crawler):
        mock_crawler.arun.return_value = crawl_result(False, "", 404, "Not Found")

        result = await fetcher.fetch(URL)

        assert result.status == FetchStatus.ERROR
        assert result.status_code == 404
        assert mock_crawler.arun.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_document_is_failure(self, fetcher, mock_crawler):
        mock_crawler.arun.return_value = crawl_result(True, "", 200)

        result = await fetcher.fetch(URL)

        assert not result.ok
        assert result.error == "Empty document"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failure(self, fetcher, mock_crawler):
        mock_crawler.arun.side_effect = RuntimeError("Target page, context or browser has been closed")

        result = await fetcher.fetch(URL)

        assert result.status == FetchStatus.ERROR
        assert result.error.startswith("RuntimeError")
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_linear_backoff_schedule(self, fetch_config, mock_crawler):
        fetch_config['crawl'].update({'max_retries': 3, 'retry_backoff': 0.5})
        fetcher = BrowserPageFetcher(fetch_config)
        await fetcher.initialize()
        mock_crawler.arun.return_value = crawl_result(False, "", 503, "Service Unavailable")

        with patch('partscraper.core.crawl_engine.asyncio.sleep', new_callable=AsyncMock) as sleep:
            result = await fetcher.fetch(URL)
        await fetcher.cleanup()

        assert result.attempts == 4
        assert [call.args[0] for call in sleep.await_args_list] == [0.5, 1.0, 1.5]

    @pytest.mark.asyncio
    async def test_no_backoff_after_final_attempt(self, fetch_config, mock_crawler):
        fetch_config['crawl'].update({'max_retries': 1, 'retry_backoff': 2})
        fetcher = BrowserPageFetcher(fetch_config)
        await fetcher.initialize()
        mock_crawler.arun.return_value = crawl_result(False, "", 500, "Server Error")

        with patch('partscraper.core.crawl_engine.asyncio.sleep', new_callable=AsyncMock) as sleep:
            await fetcher.fetch(URL)
        await fetcher.cleanup()

        sleep.assert_awaited_once_with(2)


class TestHttpPageFetcher:
    """Test suite for HttpPageFetcher"""

    @pytest_asyncio.fixture
    async def fetcher(self, fetch_config):
        fetcher = HttpPageFetcher(fetch_config)
        await fetcher.initialize()
        yield fetcher
        await fetcher.cleanup()

    @pytest.mark.asyncio
    async def test_fetch_success(self, fetcher):
        with aioresponses() as mocked:
            mocked.get(URL, status=200, body="<html>motor</html>")

            result = await fetcher.fetch(URL)

        assert result.ok
        assert result.html == "<html>motor</html>"
        assert result.status_code == 200

    @pytest.mark.asyncio
    async def test_server_error_retried(self, fetcher):
        with aioresponses() as mocked:
            mocked.get(URL, status=503)
            mocked.get(URL, status=200, body="<html>motor</html>")

            result = await fetcher.fetch(URL)

        assert result.ok
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, fetcher):
        with aioresponses() as mocked:
            mocked.get(URL, status=404)

            result = await fetcher.fetch(URL)

        assert result.status == FetchStatus.ERROR
        assert result.status_code == 404
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_too_many_requests_retried(self, fetcher):
        with aioresponses() as mocked:
            mocked.get(URL, status=429, repeat=True)

            result = await fetcher.fetch(URL)

        assert result.attempts == 3
        assert fetcher.stats['failed_fetches'] == 1

    @pytest.mark.asyncio
    async def test_connection_error(self, fetcher):
        with aioresponses() as mocked:
            mocked.get(URL, exception=aiohttp.ClientConnectionError("connection refused"), repeat=True)

            result = await fetcher.fetch(URL)

        assert result.status == FetchStatus.ERROR
        assert "ClientConnectionError" in result.error
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_timeout(self, fetcher):
        with aioresponses() as mocked:
            mocked.get(URL, exception=asyncio.TimeoutError(), repeat=True)

            result = await fetcher.fetch(URL)

        assert result.status == FetchStatus.TIMEOUT

    @pytest.mark.asyncio
    async def test_invalid_utf8_body_is_decoded(self, fetcher):
        with aioresponses() as mocked:
            mocked.get(URL, status=200, body=b"<html>\xff\xfe caf\xe9</html>",
                       content_type="text/html; charset=utf-8")

            result = await fetcher.fetch(URL)

        assert result.ok
        assert result.html.startswith("<html>")
        assert "\ufffd" in result.html

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failure(self, fetcher):
        with aioresponses() as mocked:
            mocked.get(URL, exception=ValueError("malformed response"), repeat=True)

            result = await fetcher.fetch(URL)

        assert result.status == FetchStatus.ERROR
        assert result.error == "ValueError: malformed response"
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_cleanup_closes_session(self, fetch_config):
        fetcher = HttpPageFetcher(fetch_config)
        await fetcher.initialize()
        session = fetcher.session

        await fetcher.cleanup()

        assert session.closed
        assert fetcher.session is None


class TestFetchResult:
    """Test suite for the FetchResult tagged value"""

    def test_as_exception(self):
        assert FetchResult.success(URL, "<html></html>").as_exception() is None
        assert isinstance(FetchResult.timeout(URL, "slow").as_exception(), FetchTimeout)

        error = FetchResult.failure(URL, "HTTP 500: Server Error", 500).as_exception()
        assert type(error) is FetchError
        assert error.url == URL
        assert str(error) == f"Failed to fetch {URL}: HTTP 500: Server Error"


class TestCreatePageFetcher:
    """Test suite for create_page_fetcher"""

    def test_browser_is_default(self):
        assert isinstance(create_page_fetcher({}), BrowserPageFetcher)

    def test_http(self):
        assert isinstance(create_page_fetcher({'scraper': {'fetcher': 'http'}}), HttpPageFetcher)

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            create_page_fetcher({'scraper': {'fetcher': 'curl'}})
