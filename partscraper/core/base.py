"""
Base Classes and Interfaces for the Drone Parts Scraper

Defines the shared data model, abstract component interfaces and the error
taxonomy used by the crawler, the extractors and the classification engine.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ComponentCategory(Enum):
    """The six catalog categories a product can be assigned to"""
    MOTOR = "motor"
    FRAME = "frame"
    STACK = "stack"
    CAMERA = "camera"
    PROP = "prop"
    BATTERY = "battery"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def is_valid(cls, value: Optional[str]) -> bool:
        return value in cls.values()


class RunState(Enum):
    """States of a single vendor crawl run"""
    IDLE = "idle"
    SEEDING_COLLECTION_PAGES = "seeding_collection_pages"
    DISCOVERING_PRODUCT_LINKS = "discovering_product_links"
    BATCH_FETCHING_PRODUCTS = "batch_fetching_products"
    COMPLETED = "completed"
    FAILED = "failed"


class FetchStatus(Enum):
    """Outcome of a page fetch"""
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


class FeedbackVerdict(Enum):
    """Reviewer verdict attached to a classification"""
    CORRECT = "correct"
    INCORRECT = "incorrect"
    IMPROVED = "improved"


@dataclass
class FrontierItem:
    """A unit of crawl work waiting in the frontier"""
    url: str
    depth: int
    is_product_page: bool
    discovered_from: Optional[str] = None


@dataclass
class FetchResult:
    """
    Result of fetching a page.

    A tagged value: ``status`` says which variant this is; ``html`` is only
    meaningful for OK results and ``error`` only for TIMEOUT/ERROR results.
    """
    url: str
    status: FetchStatus
    html: str = ""
    error: Optional[str] = None
    status_code: Optional[int] = None
    attempts: int = 1
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.OK

    @classmethod
    def success(cls, url: str, html: str, status_code: Optional[int] = None) -> "FetchResult":
        return cls(url=url, status=FetchStatus.OK, html=html, status_code=status_code)

    @classmethod
    def timeout(cls, url: str, error: str) -> "FetchResult":
        return cls(url=url, status=FetchStatus.TIMEOUT, error=error)

    @classmethod
    def failure(cls, url: str, error: str, status_code: Optional[int] = None) -> "FetchResult":
        return cls(url=url, status=FetchStatus.ERROR, error=error, status_code=status_code)

    def as_exception(self) -> Optional["FetchError"]:
        """Exception equivalent of a failed result, None for OK results"""
        if self.ok:
            return None
        if self.status == FetchStatus.TIMEOUT:
            return FetchTimeout(self.url, self.error or "timed out")
        return FetchError(self.url, self.error or "unknown error")


@dataclass
class ClassificationResult:
    """Result of classifying a single product"""
    category: str
    confidence: float
    method: str
    reasoning: List[str] = field(default_factory=list)
    specifications: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'confidence': self.confidence,
            'method': self.method,
            'reasoning': list(self.reasoning),
            'specifications': dict(self.specifications),
            'warnings': list(self.warnings)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassificationResult":
        return cls(
            category=data['category'],
            confidence=data['confidence'],
            method=data['method'],
            reasoning=list(data.get('reasoning', [])),
            specifications=dict(data.get('specifications', {})),
            warnings=list(data.get('warnings', []))
        )


@dataclass
class ScrapedProduct:
    """Data model for a product accepted from a vendor page"""
    name: str
    price: float
    vendor: str
    category: str
    url: str
    in_stock: bool = True
    image_url: Optional[str] = None
    sku: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    specifications: Dict[str, str] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=datetime.now)
    classification_confidence: float = 0.0
    classification_method: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'price': self.price,
            'vendor': self.vendor,
            'category': self.category,
            'url': self.url,
            'in_stock': self.in_stock,
            'image_url': self.image_url,
            'sku': self.sku,
            'brand': self.brand,
            'description': self.description,
            'specifications': self.specifications,
            'last_updated': self.last_updated.isoformat(),
            'classification_confidence': self.classification_confidence,
            'classification_method': self.classification_method
        }


@dataclass
class CrawlRunReport:
    """Counters collected during one vendor crawl run"""
    vendor: str
    max_pages: int
    state: RunState = RunState.IDLE
    pages_fetched: int = 0
    collection_pages: int = 0
    product_pages: int = 0
    products_emitted: int = 0
    items_dropped: int = 0
    failed_urls: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def to_stats(self) -> Dict[str, Any]:
        duration = None
        if self.started_at and self.finished_at:
            duration = f"{(self.finished_at - self.started_at).total_seconds():.1f}s"
        return {
            'vendor': self.vendor,
            'state': self.state.value,
            'start_time': self.started_at.isoformat() if self.started_at else None,
            'end_time': self.finished_at.isoformat() if self.finished_at else None,
            'duration': duration,
            'max_pages': self.max_pages,
            'pages_fetched': self.pages_fetched,
            'collection_pages': self.collection_pages,
            'product_pages': self.product_pages,
            'products_emitted': self.products_emitted,
            'items_dropped': self.items_dropped,
            'errors': list(self.failed_urls)
        }


class BaseComponent(ABC):
    """Base class for all scraper components"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the component"""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources"""
        pass

    def is_initialized(self) -> bool:
        """Check if component is initialized"""
        return self._initialized


class PageFetcherInterface(BaseComponent):
    """Interface for loading a page and returning its rendered document"""

    @abstractmethod
    async def fetch(self, url: str) -> FetchResult:
        """Fetch a URL, retrying per the configured policy"""
        pass


class ProductSinkInterface(BaseComponent):
    """Interface for the collaborator that persists accepted products"""

    @abstractmethod
    async def save_products(self, products: List[ScrapedProduct]) -> List[str]:
        """Persist products, returning their storage ids"""
        pass

    @abstractmethod
    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage statistics"""
        pass


class ScraperError(Exception):
    """Base exception for scraper errors"""
    pass


class ConfigurationError(ScraperError):
    """Configuration-related errors"""
    pass


class CrawlingError(ScraperError):
    """Crawling-related errors"""
    pass


class FetchError(CrawlingError):
    """A page could not be loaded"""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class FetchTimeout(FetchError):
    """A page did not settle within the fetch timeout"""
    pass


class ProcessingError(ScraperError):
    """Content processing errors"""
    pass


class ParseError(ProcessingError):
    """A selector found no match in the document"""
    pass


class InvalidProduct(ProcessingError):
    """Extracted item has an empty name or a non-positive price"""
    pass


class ClassificationAmbiguous(ProcessingError):
    """No classification stage reached its acceptance threshold"""
    pass


class StorageError(ScraperError):
    """Storage-related errors"""
    pass
