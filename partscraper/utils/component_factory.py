"""
Component Factory for the Drone Parts Scraper

This module builds the run orchestrator and its collaborators from a
configuration dictionary. The engine, cache and analytics log are built
once here and shared by reference.
"""

from typing import Dict, Any, Optional

from partscraper.core.base import PageFetcherInterface, ProductSinkInterface
from partscraper.core.config import ClassifierConfig, CacheConfig, AnalyticsConfig, ScraperConfig
from partscraper.core.crawl_engine import create_page_fetcher
from partscraper.core.logging import get_logger
from partscraper.core.orchestrator import RunOrchestrator
from partscraper.core.vendors import VendorRegistry
from partscraper.processors.analytics import ClassificationAnalytics
from partscraper.processors.classifier import ClassificationEngine
from partscraper.processors.service import ProductClassifier
from partscraper.processors.specs import SpecificationMiner
from partscraper.storage.cache import ResultCache
from partscraper.storage.dev_storage import JsonProductStore


def create_classifier(config: Dict[str, Any]) -> ProductClassifier:
    """
    Create the classification service with its engine, cache and analytics

    Args:
        config: Configuration dictionary

    Returns:
        Uninitialized ProductClassifier
    """
    engine = ClassificationEngine(
        ClassifierConfig(**config.get('classifier', {})),
        SpecificationMiner()
    )
    cache = ResultCache(CacheConfig(**config.get('cache', {})))
    analytics = ClassificationAnalytics(AnalyticsConfig(**config.get('analytics', {})))
    return ProductClassifier(config, engine, cache=cache, analytics=analytics)


def create_orchestrator(config: Dict[str, Any], registry: Optional[VendorRegistry] = None,
                        fetcher: Optional[PageFetcherInterface] = None,
                        sink: Optional[ProductSinkInterface] = None,
                        with_storage: bool = True) -> RunOrchestrator:
    """
    Create the run orchestrator and all of its components.

    Args:
        config: Configuration dictionary
        registry: Vendor registry; loaded from scraper.vendors_file when omitted
        fetcher: Page fetcher; chosen by scraper.fetcher when omitted
        sink: Product sink; a JsonProductStore when omitted and with_storage is set
        with_storage: Whether to persist accepted products

    Returns:
        Uninitialized RunOrchestrator
    """
    logger = get_logger()

    if registry is None:
        vendors_file = ScraperConfig(**config.get('scraper', {})).vendors_file
        registry = VendorRegistry.from_file(vendors_file)

    if fetcher is None:
        fetcher = create_page_fetcher(config)

    if sink is None and with_storage:
        sink = JsonProductStore(config)

    logger.debug(
        f"Created components: fetcher={type(fetcher).__name__}, "
        f"sink={type(sink).__name__ if sink else None}, vendors={registry.list_vendors()}"
    )

    return RunOrchestrator(
        config,
        registry=registry,
        fetcher=fetcher,
        classifier=create_classifier(config),
        sink=sink
    )
