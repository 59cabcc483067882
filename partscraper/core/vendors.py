"""
Vendor Profile Registry

Loads the static per-vendor crawl configuration (seed URLs, link selectors,
product-page indicators, exclusions, budgets, field selectors and category
URL mapping) from YAML or JSON and validates it before any crawl starts.
"""

import json
import yaml
import validators
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple
from urllib.parse import urlparse

from partscraper.core.base import ConfigurationError, ComponentCategory
from partscraper.core.logging import get_logger


@dataclass(frozen=True)
class FieldSelectors:
    """CSS selectors used to pull product fields from a product page"""
    name: str
    price: str
    brand: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    in_stock: Optional[str] = None
    specifications: Optional[str] = None


@dataclass(frozen=True)
class VendorProfile:
    """Immutable crawl configuration for one vendor site"""
    vendor: str
    base_url: str
    seed_urls: Tuple[str, ...]
    field_selectors: FieldSelectors
    link_selectors: Tuple[str, ...] = ()
    product_indicators: Tuple[str, ...] = ()
    exclude_patterns: Tuple[str, ...] = ()
    max_pages: int = 1000
    max_depth: int = 3
    rate_limit_ms: int = 2000
    category_mapping: Tuple[Tuple[str, str], ...] = ()
    title_prefixes: Tuple[str, ...] = ()
    strip_query: bool = True

    @property
    def origin(self) -> str:
        parsed = urlparse(self.base_url)
        return f"{parsed.scheme}://{parsed.netloc.lower()}"

    @property
    def rate_limit(self) -> float:
        """Delay after each fetch, in seconds"""
        return self.rate_limit_ms / 1000.0

    def is_product_url(self, url: str) -> bool:
        return any(indicator in url for indicator in self.product_indicators)

    def is_excluded(self, url: str) -> bool:
        return any(pattern in url for pattern in self.exclude_patterns)

    def category_for_url(self, url: str) -> Optional[str]:
        for fragment, category in self.category_mapping:
            if fragment in url:
                return category
        return None


class VendorRegistry:
    """
    Registry of vendor profiles keyed by case-insensitive vendor name.
    """

    def __init__(self, profiles: Optional[List[VendorProfile]] = None):
        self.logger = get_logger()
        self._profiles: Dict[str, VendorProfile] = {}
        for profile in profiles or []:
            self.register(profile)

    @classmethod
    def from_file(cls, vendors_file: str) -> "VendorRegistry":
        """
        Load vendor profiles from a YAML or JSON file

        Args:
            vendors_file: Path to the vendors file; the root is either a list
                of vendor mappings or a mapping with a 'vendors' list

        Returns:
            Populated registry

        Raises:
            ConfigurationError: If the file is missing or a profile is invalid
        """
        path = Path(vendors_file)
        if not path.is_file():
            raise ConfigurationError(f"Vendors file not found: {vendors_file}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                if path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load vendors from {vendors_file}: {e}")

        if isinstance(data, dict):
            data = data.get('vendors')
        if not isinstance(data, list):
            raise ConfigurationError(f"Vendors file must contain a list of vendors: {vendors_file}")

        return cls.from_dicts(data)

    @classmethod
    def from_dicts(cls, entries: List[Dict[str, Any]]) -> "VendorRegistry":
        return cls([parse_vendor_profile(entry) for entry in entries])

    def register(self, profile: VendorProfile) -> None:
        key = profile.vendor.lower()
        if key in self._profiles:
            raise ConfigurationError(f"Duplicate vendor profile: {profile.vendor}")
        self._profiles[key] = profile
        self.logger.debug(f"Registered vendor profile: {profile.vendor}")

    def get(self, vendor_name: str) -> VendorProfile:
        profile = self._profiles.get((vendor_name or '').lower())
        if profile is None:
            raise ConfigurationError(f"Vendor {vendor_name} not configured")
        return profile

    def list_vendors(self) -> List[str]:
        return [profile.vendor for profile in self._profiles.values()]

    def __contains__(self, vendor_name: str) -> bool:
        return (vendor_name or '').lower() in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)


def _as_tuple(value: Any, field_name: str, vendor: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"{vendor}: '{field_name}' must be a list of strings")
    return tuple(value)


def parse_vendor_profile(entry: Dict[str, Any]) -> VendorProfile:
    """
    Validate a raw vendor mapping and build a VendorProfile

    Args:
        entry: Raw mapping as read from the vendors file

    Returns:
        Immutable vendor profile

    Raises:
        ConfigurationError: If a required field is missing or malformed
    """
    if not isinstance(entry, dict):
        raise ConfigurationError("Vendor profile must be a mapping")

    vendor = entry.get('vendor')
    if not vendor or not isinstance(vendor, str):
        raise ConfigurationError("Vendor profile is missing 'vendor'")

    base_url = entry.get('base_url', '')
    if not base_url or not validators.url(base_url):
        raise ConfigurationError(f"{vendor}: invalid base_url '{base_url}'")

    seed_urls = _as_tuple(entry.get('seed_urls'), 'seed_urls', vendor)
    if not seed_urls:
        raise ConfigurationError(f"{vendor}: at least one seed URL is required")
    base_host = urlparse(base_url).netloc.lower()
    for seed in seed_urls:
        if urlparse(seed).netloc.lower() != base_host:
            raise ConfigurationError(f"{vendor}: seed URL {seed} is not on {base_host}")

    selectors = entry.get('field_selectors') or {}
    if not isinstance(selectors, dict):
        raise ConfigurationError(f"{vendor}: 'field_selectors' must be a mapping")
    if not selectors.get('name') or not selectors.get('price'):
        raise ConfigurationError(f"{vendor}: 'name' and 'price' field selectors are required")
    unknown = set(selectors) - set(FieldSelectors.__dataclass_fields__)
    if unknown:
        raise ConfigurationError(f"{vendor}: unknown field selectors: {', '.join(sorted(unknown))}")

    mapping = entry.get('category_mapping') or {}
    if not isinstance(mapping, dict):
        raise ConfigurationError(f"{vendor}: 'category_mapping' must be a mapping")
    for fragment, category in mapping.items():
        if not ComponentCategory.is_valid(category):
            raise ConfigurationError(f"{vendor}: unknown category '{category}' for '{fragment}'")

    try:
        max_pages = int(entry.get('max_pages', 1000))
        max_depth = int(entry.get('max_depth', 3))
        rate_limit_ms = int(entry.get('rate_limit_ms', 2000))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{vendor}: numeric settings are invalid: {e}")
    if max_pages <= 0:
        raise ConfigurationError(f"{vendor}: max_pages must be greater than 0")
    if max_depth < 0 or rate_limit_ms < 0:
        raise ConfigurationError(f"{vendor}: max_depth and rate_limit_ms must be non-negative")

    return VendorProfile(
        vendor=vendor,
        base_url=base_url.rstrip('/'),
        seed_urls=seed_urls,
        field_selectors=FieldSelectors(**selectors),
        link_selectors=_as_tuple(entry.get('link_selectors'), 'link_selectors', vendor),
        product_indicators=_as_tuple(entry.get('product_indicators'), 'product_indicators', vendor),
        exclude_patterns=_as_tuple(entry.get('exclude_patterns'), 'exclude_patterns', vendor),
        max_pages=max_pages,
        max_depth=max_depth,
        rate_limit_ms=rate_limit_ms,
        category_mapping=tuple(mapping.items()),
        title_prefixes=_as_tuple(entry.get('title_prefixes'), 'title_prefixes', vendor),
        strip_query=bool(entry.get('strip_query', True))
    )
