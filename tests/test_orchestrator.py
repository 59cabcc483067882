"""
Tests for RunOrchestrator

Runs whole vendor crawls against a static in-memory site and checks the
page budget, deduplication, product assembly and failure handling.
"""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from partscraper.core.base import (
    ComponentCategory,
    ConfigurationError,
    CrawlingError,
    FetchResult,
    RunState
)
from partscraper.core.vendors import VendorRegistry
from partscraper.storage.dev_storage import JsonProductStore
from partscraper.utils.component_factory import create_orchestrator


BASE = "https://shop.example.com"


@pytest.fixture
def site(make_product_page, make_collection_page):
    """Two seed collections, one paginated collection and seven product links"""
    return {
        f"{BASE}/collections/motors": make_collection_page(
            ["/products/m1", "/products/m2", "/products/bad-price"],
            ["/collections/motors-2"]
        ),
        f"{BASE}/collections/motors-2": make_collection_page(["/products/m3", "/products/m1"]),
        f"{BASE}/collections/frames": make_collection_page(
            ["/products/f1", "/products/widget", "/products/missing"]
        ),
        f"{BASE}/products/m1": make_product_page(
            "TestShop T-Motor F60 Pro III 2207 Motor", "$29.99",
            specs_html="<table><tr><td>KV</td><td>2450KV</td></tr></table>"
        ),
        f"{BASE}/products/m2": make_product_page("Tattu 1550mAh 4S 75C LiPo Battery", "$34.99"),
        f"{BASE}/products/bad-price": make_product_page("Gemfan 5152 3-Blade Propellers", "Call for price"),
        f"{BASE}/products/f1": make_product_page("SpeedyBee Mario 5 Frame Kit - DC O4", "$89.99"),
        f"{BASE}/products/widget": make_product_page("Widget 123", "$5.00"),
        f"{BASE}/products/m3": make_product_page("RunCam Phoenix 2 FPV Camera", "$39.99"),
    }


@pytest.fixture
def fetcher(make_fetcher, site):
    return make_fetcher(site)


@pytest_asyncio.fixture
async def orchestrator(fast_config, registry, fetcher):
    orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=fetcher, with_storage=False)
    yield orchestrator
    await orchestrator.cleanup()


def by_url(products):
    return {product.url.rsplit('/', 1)[-1]: product for product in products}


class TestRunOrchestrator:
    """Test suite for RunOrchestrator"""

    @pytest.mark.parametrize("max_pages, expected", [
        (1000, 10),
        (50, 10),
        (20, 4),
        (4, 3),
        (2, 2),
    ])
    def test_collection_budget(self, fast_config, registry, fetcher, max_pages, expected):
        orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=fetcher, with_storage=False)

        assert orchestrator.collection_budget(max_pages) == expected

    @pytest.mark.asyncio
    async def test_full_crawl(self, orchestrator, fetcher):
        products = await orchestrator.crawl_vendor("TestShop")

        found = by_url(products)
        assert set(found) == {"m1", "m2", "f1", "widget", "m3"}
        assert found["m1"].category == "motor"
        assert found["m2"].category == "battery"
        assert found["f1"].category == "frame"
        assert found["m3"].category == "camera"

        for product in products:
            assert ComponentCategory.is_valid(product.category)
            assert product.price > 0
            assert product.vendor == "TestShop"

        report = orchestrator.last_report
        assert report.state == RunState.COMPLETED
        assert orchestrator.state == RunState.COMPLETED
        assert report.collection_pages == 3
        assert report.product_pages == 7
        assert report.pages_fetched == 10
        assert report.products_emitted == 5
        assert report.items_dropped == 1
        assert report.failed_urls == [f"{BASE}/products/missing"]

    @pytest.mark.asyncio
    async def test_every_url_fetched_once(self, orchestrator, fetcher):
        await orchestrator.crawl_vendor("TestShop")

        assert len(fetcher.calls) == 10
        assert len(set(fetcher.calls)) == len(fetcher.calls)
        assert f"{BASE}/" not in fetcher.calls

    @pytest.mark.asyncio
    async def test_budget_of_twenty(self, orchestrator, fetcher):
        products = await orchestrator.crawl_vendor("TestShop", max_pages=20)

        assert len(fetcher.calls) <= 20
        assert len(orchestrator.frontier.visited) == len(fetcher.calls)
        assert set(orchestrator.frontier.visited) == set(fetcher.calls)
        assert all(ComponentCategory.is_valid(product.category) for product in products)

    @pytest.mark.asyncio
    async def test_fresh_frontier_per_run(self, orchestrator, fetcher):
        await orchestrator.crawl_vendor("TestShop")
        first_frontier = orchestrator.frontier
        await orchestrator.crawl_vendor("TestShop")

        assert orchestrator.frontier is not first_frontier
        assert len(fetcher.calls) == 20

    @pytest.mark.asyncio
    async def test_product_assembly(self, orchestrator):
        found = by_url(await orchestrator.crawl_vendor("TestShop"))

        motor = found["m1"]
        assert motor.name == "T-Motor F60 Pro III 2207 Motor"
        assert motor.specifications['kv'] == "2450KV"
        assert motor.image_url == f"{BASE}/images/item.jpg"
        assert motor.classification_method == "brand-default"
        assert motor.classification_confidence == 95

        assert found["m2"].brand == "Tattu"
        assert found["m2"].specifications['capacity'] == "1550mAh"

    @pytest.mark.asyncio
    async def test_url_category_used_when_classifier_has_no_signal(self, orchestrator):
        widget = by_url(await orchestrator.crawl_vendor("TestShop"))["widget"]

        assert widget.classification_method == "fallback-default"
        assert widget.category == "frame"

    @pytest.mark.asyncio
    async def test_page_budget_respected(self, orchestrator, fetcher):
        products = await orchestrator.crawl_vendor("TestShop", max_pages=4)

        assert len(fetcher.calls) == 4
        assert orchestrator.last_report.pages_fetched == 4
        assert len(products) <= 1

    @pytest.mark.asyncio
    async def test_depth_limit(self, fast_config, vendor_profile, fetcher):
        registry = VendorRegistry([replace(vendor_profile, max_depth=0)])
        orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=fetcher, with_storage=False)
        try:
            products = await orchestrator.crawl_vendor("TestShop")
        finally:
            await orchestrator.cleanup()

        assert products == []
        assert sorted(fetcher.calls) == [f"{BASE}/collections/frames", f"{BASE}/collections/motors"]

    @pytest.mark.asyncio
    async def test_fetcher_lifecycle(self, orchestrator, fetcher):
        await orchestrator.crawl_vendor("TestShop")

        assert fetcher.initialize_count == 1
        assert fetcher.cleanup_count == 1
        assert not fetcher.is_initialized()

    @pytest.mark.asyncio
    async def test_seed_failure_is_recorded(self, make_fetcher, site, orchestrator):
        orchestrator.fetcher = make_fetcher(site, failures={
            f"{BASE}/collections/motors": FetchResult.timeout(f"{BASE}/collections/motors", "Timed out after 5s")
        })

        products = await orchestrator.crawl_vendor("TestShop")

        assert f"{BASE}/collections/motors" in orchestrator.last_report.failed_urls
        assert set(by_url(products)) == {"f1", "widget"}

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_run(self, orchestrator, fetcher):
        with patch.object(orchestrator.discoverer, 'discover', side_effect=RuntimeError("parser exploded")):
            with pytest.raises(CrawlingError, match="discovering_product_links"):
                await orchestrator.crawl_vendor("TestShop")

        assert orchestrator.state == RunState.FAILED
        assert orchestrator.last_report.error_message == "parser exploded"
        assert fetcher.cleanup_count == 1

    @pytest.mark.asyncio
    async def test_no_usable_seeds(self, fast_config, vendor_profile, fetcher):
        registry = VendorRegistry([replace(vendor_profile, seed_urls=(f"{BASE}/cart",))])
        orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=fetcher, with_storage=False)
        try:
            with pytest.raises(CrawlingError, match="No usable seed URLs"):
                await orchestrator.crawl_vendor("TestShop")
        finally:
            await orchestrator.cleanup()

        assert orchestrator.state == RunState.FAILED
        assert fetcher.calls == []
        assert fetcher.cleanup_count == 1

    @pytest.mark.asyncio
    async def test_unknown_vendor(self, orchestrator):
        with pytest.raises(ConfigurationError):
            await orchestrator.crawl_vendor("Nowhere")

    @pytest.mark.asyncio
    async def test_invalid_budget(self, orchestrator):
        with pytest.raises(ConfigurationError):
            await orchestrator.crawl_vendor("TestShop", max_pages=0)

    @pytest.mark.asyncio
    async def test_crawl_all_vendors_continues_past_failure(self, fast_config, vendor_profile, fetcher):
        broken = replace(vendor_profile, vendor="BrokenShop", seed_urls=(f"{BASE}/cart",))
        registry = VendorRegistry([broken, vendor_profile])
        orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=fetcher, with_storage=False)
        try:
            results = await orchestrator.crawl_all_vendors()
        finally:
            await orchestrator.cleanup()

        assert results["BrokenShop"] == []
        assert len(results["TestShop"]) == 5
        assert orchestrator.reports["BrokenShop"].state == RunState.FAILED
        assert orchestrator.reports["TestShop"].state == RunState.COMPLETED

    @pytest.mark.asyncio
    async def test_products_saved_to_sink(self, fast_config, registry, fetcher, tmp_path):
        fast_config['storage'] = {'output_path': str(tmp_path)}
        sink = JsonProductStore(fast_config)
        orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=fetcher, sink=sink)
        try:
            await orchestrator.crawl_vendor("TestShop")
        finally:
            await orchestrator.cleanup()

        stats = sink.get_storage_stats()
        assert stats['total_products'] == 5
        assert stats['categories']['frame'] == 2

    @pytest.mark.asyncio
    async def test_classifications_recorded_for_analytics(self, orchestrator):
        await orchestrator.crawl_vendor("TestShop")

        events = list(orchestrator.classifier.analytics.events)
        assert len(events) == 5
        assert all(event.source == "crawl" for event in events)


class TestBatchFetching:
    """Test suite for batch isolation, pacing and concurrency"""

    @pytest.mark.asyncio
    async def test_failing_product_page_does_not_discard_batch(self, fast_config, registry, make_fetcher, site):
        class FlakyFetcher(make_fetcher):
            async def fetch(self, url):
                if url.endswith("/products/m2"):
                    self.calls.append(url)
                    raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
                return await super().fetch(url)

        orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=FlakyFetcher(site),
                                           with_storage=False)
        try:
            products = await orchestrator.crawl_vendor("TestShop")
        finally:
            await orchestrator.cleanup()

        assert set(by_url(products)) == {"m1", "f1", "widget", "m3"}
        assert orchestrator.last_report.state == RunState.COMPLETED
        assert f"{BASE}/products/m2" in orchestrator.last_report.failed_urls

    @pytest.mark.asyncio
    async def test_extraction_error_drops_only_that_page(self, orchestrator):
        extract = orchestrator.extractor.extract

        def failing_extract(html, url, profile):
            if url.endswith("/products/f1"):
                raise RuntimeError("malformed markup")
            return extract(html, url, profile)

        with patch.object(orchestrator.extractor, 'extract', side_effect=failing_extract):
            products = await orchestrator.crawl_vendor("TestShop")

        assert set(by_url(products)) == {"m1", "m2", "widget", "m3"}
        assert f"{BASE}/products/f1" in orchestrator.last_report.failed_urls
        assert orchestrator.state == RunState.COMPLETED

    @pytest.mark.asyncio
    async def test_rate_limit_and_batch_delay(self, fast_config, vendor_profile, fetcher):
        fast_config['scraper']['batch_delay'] = 1.5
        # no cache sweep task while sleep is patched
        fast_config['cache'] = {'enabled': False}
        registry = VendorRegistry([replace(vendor_profile, rate_limit_ms=250)])
        orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=fetcher, with_storage=False)

        try:
            with patch('partscraper.core.orchestrator.asyncio.sleep', new_callable=AsyncMock) as sleep:
                await orchestrator.crawl_vendor("TestShop")
        finally:
            await orchestrator.cleanup()

        delays = [call.args[0] for call in sleep.await_args_list]
        # 3 collection pages, then product batches of 3, 3 and 1
        assert delays == [0.25] * 3 + [0.25] * 3 + [1.5] + [0.25] * 3 + [1.5] + [0.25]
        assert delays.count(0.25) == len(fetcher.calls)

    @pytest.mark.asyncio
    async def test_batch_size_bounds_concurrency(self, fast_config, registry, make_fetcher, site):
        class TrackingFetcher(make_fetcher):
            def __init__(self, pages):
                super().__init__(pages)
                self.in_flight = 0
                self.peak = 0
                self.waves = []

            async def fetch(self, url):
                if self.in_flight == 0:
                    self.waves.append(0)
                self.in_flight += 1
                self.waves[-1] += 1
                self.peak = max(self.peak, self.in_flight)
                try:
                    await asyncio.sleep(0.01)
                    return await super().fetch(url)
                finally:
                    self.in_flight -= 1

        fetcher = TrackingFetcher(site)
        orchestrator = create_orchestrator(fast_config, registry=registry, fetcher=fetcher, with_storage=False)
        try:
            await orchestrator.crawl_vendor("TestShop")
        finally:
            await orchestrator.cleanup()

        assert fetcher.peak == 3
        # collection pages one at a time, then each batch drains before the next starts
        assert fetcher.waves == [1, 1, 1, 3, 3, 1]
