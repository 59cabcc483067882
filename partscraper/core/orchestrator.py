"""
Run Orchestrator

Drives one vendor crawl from seeds to accepted products: walks collection
pages to discover product links, fetches product pages in fixed-size
batches, extracts and classifies each product and hands the accepted ones
to the product sink.
"""

import asyncio
import math
from collections import Counter
from datetime import datetime
from typing import Dict, Any, List, Optional

from partscraper.core.base import (
    BaseComponent,
    PageFetcherInterface,
    ProductSinkInterface,
    ScrapedProduct,
    CrawlRunReport,
    FrontierItem,
    FetchResult,
    RunState,
    ScraperError,
    CrawlingError,
    ConfigurationError
)
from partscraper.core.config import ScraperConfig
from partscraper.core.frontier import CrawlFrontier
from partscraper.core.logging import get_logger, logging_manager
from partscraper.core.vendors import VendorRegistry, VendorProfile
from partscraper.processors.fields import FieldExtractor
from partscraper.processors.links import LinkDiscoverer
from partscraper.processors.service import ProductClassifier


class RunOrchestrator(BaseComponent):
    """
    Vendor crawl state machine.

    IDLE -> SEEDING_COLLECTION_PAGES -> DISCOVERING_PRODUCT_LINKS ->
    BATCH_FETCHING_PRODUCTS -> COMPLETED, or FAILED on an unexpected error.
    A fresh frontier is built for every run, and the page fetcher is
    initialized at the start of a run and cleaned up on every exit path.
    """

    def __init__(self, config: Dict[str, Any], registry: VendorRegistry,
                 fetcher: PageFetcherInterface, classifier: ProductClassifier,
                 extractor: Optional[FieldExtractor] = None,
                 discoverer: Optional[LinkDiscoverer] = None,
                 sink: Optional[ProductSinkInterface] = None):
        super().__init__(config)
        self.logger = get_logger()
        scraper_data = config.get('scraper', {})
        self.scraper_config = scraper_data if isinstance(scraper_data, ScraperConfig) else ScraperConfig(**scraper_data)

        self.registry = registry
        self.fetcher = fetcher
        self.classifier = classifier
        self.extractor = extractor or FieldExtractor()
        self.discoverer = discoverer or LinkDiscoverer()
        self.sink = sink

        self.state = RunState.IDLE
        self.frontier: Optional[CrawlFrontier] = None
        self.last_report: Optional[CrawlRunReport] = None
        self.reports: Dict[str, CrawlRunReport] = {}

    async def initialize(self) -> None:
        """Initialize the classifier and the product sink"""
        self.logger.info("Initializing run orchestrator")
        await self.classifier.initialize()
        if self.sink:
            await self.sink.initialize()
        self._initialized = True

    async def cleanup(self) -> None:
        """Clean up the classifier and the product sink"""
        self.logger.info("Cleaning up run orchestrator")
        await self.classifier.cleanup()
        if self.sink:
            await self.sink.cleanup()
        self._initialized = False

    def collection_budget(self, max_pages: int) -> int:
        """Number of collection pages walked before product fetching starts"""
        scraper = self.scraper_config
        budget = math.floor(scraper.collection_page_ratio * max_pages)
        budget = max(scraper.min_collection_pages, min(scraper.max_collection_pages, budget))
        return min(budget, max_pages)

    async def crawl_vendor(self, vendor_name: str, max_pages: Optional[int] = None) -> List[ScrapedProduct]:
        """
        Crawl one vendor

        Args:
            vendor_name: Name of a configured vendor
            max_pages: Page budget for this run; defaults to the smaller of
                the configured budget and the vendor's own limit

        Returns:
            Accepted products in the order they were processed

        Raises:
            ConfigurationError: If the vendor is unknown or the budget is invalid
            CrawlingError: If the run failed
        """
        profile = self.registry.get(vendor_name)
        if max_pages is None:
            max_pages = min(self.scraper_config.max_pages, profile.max_pages)
        if max_pages <= 0:
            raise ConfigurationError(f"max_pages must be greater than 0, got {max_pages}")

        report = CrawlRunReport(vendor=profile.vendor, max_pages=max_pages, started_at=datetime.now())
        self.last_report = report
        self.reports[profile.vendor] = report
        self._set_state(report, RunState.IDLE)

        if not self._initialized:
            await self.initialize()

        self.logger.info(f"Starting crawl of {profile.vendor} (budget {max_pages} pages)")
        products: List[ScrapedProduct] = []

        try:
            await self.fetcher.initialize()
            try:
                await self._run(profile, report, products)
            finally:
                await self.fetcher.cleanup()

            self._set_state(report, RunState.COMPLETED)

        except CrawlingError as e:
            self._fail(report, e)
            raise
        except Exception as e:
            stage = report.state.value
            self._fail(report, e)
            raise CrawlingError(f"Crawl of {profile.vendor} failed during {stage}: {e}") from e
        finally:
            report.finished_at = datetime.now()

        stats = report.to_stats()
        stats['category_stats'] = dict(Counter(product.category for product in products))
        logging_manager.generate_summary_report(stats)
        return products

    async def crawl_all_vendors(self, max_pages_per_vendor: Optional[int] = None) -> Dict[str, List[ScrapedProduct]]:
        """
        Crawl every configured vendor in turn

        A failing vendor is logged and skipped; the remaining vendors still run.

        Returns:
            Mapping of vendor name to its accepted products
        """
        results: Dict[str, List[ScrapedProduct]] = {}
        vendors = self.registry.list_vendors()

        for index, vendor in enumerate(vendors):
            if index > 0 and self.scraper_config.vendor_delay > 0:
                await asyncio.sleep(self.scraper_config.vendor_delay)
            try:
                results[vendor] = await self.crawl_vendor(vendor, max_pages_per_vendor)
            except ScraperError as e:
                logging_manager.log_error(e, {'vendor': vendor})
                results[vendor] = []

        total = sum(len(products) for products in results.values())
        self.logger.info(f"Crawled {len(vendors)} vendors, {total} products accepted")
        return results

    async def _run(self, profile: VendorProfile, report: CrawlRunReport,
                   products: List[ScrapedProduct]) -> None:
        frontier = CrawlFrontier(profile)
        self.frontier = frontier

        self._set_state(report, RunState.SEEDING_COLLECTION_PAGES)
        if frontier.seed(profile.seed_urls) == 0:
            raise CrawlingError(f"No usable seed URLs for {profile.vendor}")

        self._set_state(report, RunState.DISCOVERING_PRODUCT_LINKS)
        collection_budget = self.collection_budget(report.max_pages)
        while report.pages_fetched < collection_budget:
            item = frontier.next(product_pages=False)
            if item is None:
                break
            await self._process_collection_page(item, profile, frontier, report)

        self.logger.info(
            f"{profile.vendor}: walked {report.collection_pages} collection pages, "
            f"{frontier.pending_count(product_pages=True)} product pages queued"
        )

        self._set_state(report, RunState.BATCH_FETCHING_PRODUCTS)
        batch_size = self.scraper_config.batch_size
        while report.pages_fetched < report.max_pages:
            remaining = report.max_pages - report.pages_fetched
            batch = frontier.take(min(batch_size, remaining), product_pages=True)
            if not batch:
                break
            report.pages_fetched += len(batch)

            results = await asyncio.gather(*[self._guarded_product_page(item, profile, report) for item in batch])
            accepted = [product for product in results if product is not None]
            products.extend(accepted)
            if self.sink and accepted:
                await self.sink.save_products(accepted)

            logging_manager.log_progress(report.pages_fetched, report.max_pages, f"{profile.vendor} products")

            more_pending = frontier.pending_count(product_pages=True) > 0
            if more_pending and report.pages_fetched < report.max_pages and self.scraper_config.batch_delay > 0:
                await asyncio.sleep(self.scraper_config.batch_delay)

    async def _process_collection_page(self, item: FrontierItem, profile: VendorProfile,
                                       frontier: CrawlFrontier, report: CrawlRunReport) -> None:
        result = await self.fetcher.fetch(item.url)
        report.pages_fetched += 1
        report.collection_pages += 1

        if result.ok:
            links = self.discoverer.discover(result.html, item.url, profile)
            accepted = sum(
                1 for link in links
                if frontier.offer(link.url, item.depth + 1, link.is_product_page, discovered_from=item.url) is None
            )
            self.logger.debug(f"{item.url}: {accepted}/{len(links)} links accepted by frontier")
        else:
            self._record_failure(report, item, result)

        await self._rate_limit(profile)

    async def _guarded_product_page(self, item: FrontierItem, profile: VendorProfile,
                                    report: CrawlRunReport) -> Optional[ScrapedProduct]:
        """Process one product page; an error drops that URL, not the batch"""
        try:
            return await self._process_product_page(item, profile, report)
        except Exception as e:
            report.failed_urls.append(item.url)
            logging_manager.log_error(e, {
                'vendor': report.vendor,
                'url': item.url,
                'depth': item.depth
            })
            return None

    async def _process_product_page(self, item: FrontierItem, profile: VendorProfile,
                                    report: CrawlRunReport) -> Optional[ScrapedProduct]:
        result = await self.fetcher.fetch(item.url)
        report.product_pages += 1
        await self._rate_limit(profile)

        if not result.ok:
            self._record_failure(report, item, result)
            return None

        fields = self.extractor.extract(result.html, item.url, profile)
        if fields is None:
            report.items_dropped += 1
            return None

        description = fields.description or ""
        classification = self.classifier.classify_product(
            fields.name, description, context={'vendor': profile.vendor, 'source': 'crawl'}
        )

        category = classification.category
        specifications = dict(classification.specifications)
        miner = self.classifier.engine.miner

        if classification.method == 'fallback-default':
            mapped = profile.category_for_url(item.url)
            if mapped is None and item.discovered_from:
                mapped = profile.category_for_url(item.discovered_from)
            if mapped and mapped != category:
                self.logger.debug(f"{item.url}: no classification signal, using URL category {mapped}")
                category = mapped
                specifications = miner.mine(f"{fields.name} {description}", category)

        for key, value in fields.table_specifications.items():
            specifications.setdefault(key, value)

        product = ScrapedProduct(
            name=fields.name,
            price=fields.price,
            vendor=profile.vendor,
            category=category,
            url=item.url,
            in_stock=fields.in_stock,
            image_url=fields.image_url,
            sku=fields.sku,
            brand=fields.brand or miner.detect_brand(f"{fields.name} {description}"),
            description=fields.description,
            specifications=specifications,
            classification_confidence=classification.confidence,
            classification_method=classification.method
        )
        report.products_emitted += 1
        return product

    def _record_failure(self, report: CrawlRunReport, item: FrontierItem, result: FetchResult) -> None:
        report.failed_urls.append(item.url)
        logging_manager.log_warning(str(result.as_exception()), {
            'vendor': report.vendor,
            'depth': item.depth,
            'attempts': result.attempts
        })

    async def _rate_limit(self, profile: VendorProfile) -> None:
        if profile.rate_limit > 0:
            await asyncio.sleep(profile.rate_limit)

    def _set_state(self, report: CrawlRunReport, state: RunState) -> None:
        self.state = state
        report.state = state
        self.logger.debug(f"{report.vendor}: state -> {state.value}")

    def _fail(self, report: CrawlRunReport, error: Exception) -> None:
        report.error_message = str(error)
        logging_manager.log_error(error, {
            'vendor': report.vendor,
            'stage': report.state.value,
            'pages_fetched': report.pages_fetched
        })
        self._set_state(report, RunState.FAILED)
