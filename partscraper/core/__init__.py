"""
Core components for the Drone Parts Scraper

This package contains the core components for the scraper including:
- Base classes, data model and error taxonomy
- Configuration management
- Logging system
- Vendor profiles, crawl frontier and page fetchers

The run orchestrator lives in partscraper.core.orchestrator; it depends on
the processors package and is not re-exported here.
"""

from partscraper.core.base import (
    ComponentCategory,
    RunState,
    FetchStatus,
    FeedbackVerdict,
    FrontierItem,
    FetchResult,
    ClassificationResult,
    ScrapedProduct,
    CrawlRunReport,
    BaseComponent,
    PageFetcherInterface,
    ProductSinkInterface,
    ScraperError,
    ConfigurationError,
    CrawlingError,
    FetchError,
    FetchTimeout,
    ProcessingError,
    ParseError,
    InvalidProduct,
    ClassificationAmbiguous,
    StorageError
)

from partscraper.core.config import (
    ConfigManager,
    CrawlConfig,
    ScraperConfig,
    ClassifierConfig,
    CacheConfig,
    AnalyticsConfig,
    StorageConfig,
    LoggingConfig
)

from partscraper.core.logging import (
    LoggingManager,
    get_logger,
    setup_logging
)

from partscraper.core.vendors import (
    FieldSelectors,
    VendorProfile,
    VendorRegistry
)

from partscraper.core.frontier import (
    CrawlFrontier,
    OfferRejection
)

from partscraper.core.crawl_engine import (
    PageFetcher,
    BrowserPageFetcher,
    HttpPageFetcher,
    create_page_fetcher
)

__all__ = [
    # Base classes
    'ComponentCategory',
    'RunState',
    'FetchStatus',
    'FeedbackVerdict',
    'FrontierItem',
    'FetchResult',
    'ClassificationResult',
    'ScrapedProduct',
    'CrawlRunReport',
    'BaseComponent',
    'PageFetcherInterface',
    'ProductSinkInterface',
    'ScraperError',
    'ConfigurationError',
    'CrawlingError',
    'FetchError',
    'FetchTimeout',
    'ProcessingError',
    'ParseError',
    'InvalidProduct',
    'ClassificationAmbiguous',
    'StorageError',

    # Configuration
    'ConfigManager',
    'CrawlConfig',
    'ScraperConfig',
    'ClassifierConfig',
    'CacheConfig',
    'AnalyticsConfig',
    'StorageConfig',
    'LoggingConfig',

    # Logging
    'LoggingManager',
    'get_logger',
    'setup_logging',

    # Vendors
    'FieldSelectors',
    'VendorProfile',
    'VendorRegistry',

    # Frontier
    'CrawlFrontier',
    'OfferRejection',

    # Page fetching
    'PageFetcher',
    'BrowserPageFetcher',
    'HttpPageFetcher',
    'create_page_fetcher'
]
