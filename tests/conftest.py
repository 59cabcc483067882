"""
Shared fixtures for the scraper test suite
"""

from typing import Dict, Any, List, Optional

import pytest

from partscraper.core.base import PageFetcherInterface, FetchResult, CrawlingError
from partscraper.core.vendors import VendorRegistry, parse_vendor_profile


BASE_URL = "https://shop.example.com"


class StaticPageFetcher(PageFetcherInterface):
    """Page fetcher serving canned HTML and recording every request"""

    def __init__(self, pages: Dict[str, str], failures: Optional[Dict[str, FetchResult]] = None):
        super().__init__({})
        self.pages = pages
        self.failures = failures or {}
        self.calls: List[str] = []
        self.initialize_count = 0
        self.cleanup_count = 0

    async def initialize(self) -> None:
        self.initialize_count += 1
        self._initialized = True

    async def cleanup(self) -> None:
        self.cleanup_count += 1
        self._initialized = False

    async def fetch(self, url: str) -> FetchResult:
        if not self._initialized:
            raise CrawlingError("StaticPageFetcher not initialized")
        self.calls.append(url)
        if url in self.failures:
            return self.failures[url]
        if url in self.pages:
            return FetchResult.success(url, self.pages[url], 200)
        return FetchResult.failure(url, "HTTP 404: Not Found", 404)


def product_page(name: str, price: str, description: str = "", stock: str = "In stock",
                 specs_html: str = "", image: str = '<img src="/images/item.jpg">') -> str:
    return f"""
    <html><body>
      <h1 class="product-title">{name}</h1>
      <div class="price-box"><span class="price">{price}</span></div>
      <div class="product-image">{image}</div>
      <span class="stock">{stock}</span>
      <div class="description">{description}</div>
      <div class="specs">{specs_html}</div>
    </body></html>
    """


def collection_page(product_paths: List[str], extra_links: List[str] = ()) -> str:
    cards = "\n".join(
        f'<div class="product-card"><a href="{path}">Item</a></div>' for path in product_paths
    )
    extras = "\n".join(f'<a class="pagination" href="{path}">More</a>' for path in extra_links)
    return f"""
    <html><body>
      <nav><a href="/">Home</a><a href="mailto:sales@shop.example.com">Mail</a></nav>
      {cards}
      {extras}
    </body></html>
    """


@pytest.fixture
def vendor_entry() -> Dict[str, Any]:
    """Raw vendor mapping as it appears in a vendors file"""
    return {
        'vendor': 'TestShop',
        'base_url': BASE_URL,
        'seed_urls': [
            f"{BASE_URL}/collections/motors",
            f"{BASE_URL}/collections/frames"
        ],
        'link_selectors': ['.product-card a', 'a.pagination'],
        'product_indicators': ['/products/'],
        'exclude_patterns': ['/cart', '/account'],
        'max_pages': 100,
        'max_depth': 2,
        'rate_limit_ms': 0,
        'field_selectors': {
            'name': '.product-title',
            'price': '.price',
            'description': '.description',
            'in_stock': '.stock',
            'image': '.product-image img',
            'specifications': '.specs'
        },
        'category_mapping': {
            '/collections/frames': 'frame',
            '/collections/motors': 'motor'
        },
        'title_prefixes': ['TestShop']
    }


@pytest.fixture
def vendor_profile(vendor_entry):
    return parse_vendor_profile(vendor_entry)


@pytest.fixture
def registry(vendor_profile):
    return VendorRegistry([vendor_profile])


@pytest.fixture
def fast_config() -> Dict[str, Any]:
    """Configuration with every delay switched off"""
    return {
        'scraper': {
            'max_pages': 50,
            'batch_size': 3,
            'batch_delay': 0,
            'vendor_delay': 0
        },
        'crawl': {
            'timeout': 5,
            'max_retries': 2,
            'retry_backoff': 0
        },
        'classifier': {},
        'cache': {},
        'analytics': {},
        'storage': {}
    }


@pytest.fixture
def make_product_page():
    return product_page


@pytest.fixture
def make_collection_page():
    return collection_page


@pytest.fixture
def make_fetcher():
    """Factory for StaticPageFetcher instances"""
    return StaticPageFetcher
