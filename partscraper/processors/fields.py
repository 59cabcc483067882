"""
Product Field Extraction

Pulls the structured product fields out of a fetched product page using the
vendor's CSS selectors, then cleans them up: title normalization, price
parsing, stock detection and specification tables.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from partscraper.core.base import ParseError, InvalidProduct
from partscraper.core.vendors import VendorProfile
from partscraper.utils.url import resolve_url


MAX_TITLE_LENGTH = 80

OUT_OF_STOCK_PHRASES = ('out of stock', 'sold out', 'unavailable', 'backorder')

PACK_PATTERN = re.compile(
    r'\b(\d+)\s*[x×]\s*pack\b'
    r'|\b(\d+)\s*-?\s*pack(?:\s*of\s*\d+)?\b'
    r'|\b(\d+)\s*pieces?\b'
    r'|\b(\d+)\s*pcs\b'
    r'|\b(\d+)\s*count\b'
    r'|\bset\s*of\s*(\d+)\b',
    re.IGNORECASE
)

# "pro" and "max" are left alone: they are model designations on FPV parts
MARKETING_PATTERNS = (
    re.compile(
        r'\b(?:brand\s+new|new|original|genuine|authentic|official|latest|updated|improved|'
        r'enhanced|premium|professional|high-quality|top-quality|best|super|ultra)\b',
        re.IGNORECASE
    ),
    re.compile(r'\bfree\s+shipping\b[^,;|]*', re.IGNORECASE),
    re.compile(r'\bfor\s+(?:fpv|rc)(?:\s+(?:racing|freestyle))?\s+(?:drones?|quadcopters?|quads?)\b', re.IGNORECASE),
)

INCLUDED_PARENTHETICAL = re.compile(r'\([^)]*\binclude[sd]?\b[^)]*\)', re.IGNORECASE)

TITLE_SEPARATOR = re.compile(r'\s+[-–|]\s+')

PRICE_PATTERNS = (
    re.compile(r'sale\s*price\s*:?\s*[$€£]?\s*(\d+(?:\.\d+)?)', re.IGNORECASE),
    re.compile(r'price\s*:?\s*[$€£]?\s*(\d+(?:\.\d+)?)', re.IGNORECASE),
    re.compile(r'[$€£]\s*(\d+(?:\.\d+)?)'),
    re.compile(r'(\d+(?:\.\d+)?)'),
)


def _collapse(text: str) -> str:
    return re.sub(r'\s+', ' ', text or '').strip()


def parse_price(text: Optional[str]) -> Optional[float]:
    """
    Parse a price string

    Tries a labelled sale/regular price first, then a currency-prefixed
    amount, then the first number in the text.

    Args:
        text: Raw text of the price element

    Returns:
        Positive price, or None if nothing usable was found
    """
    if not text:
        return None

    # 1,299.00 -> 1299.00
    cleaned = re.sub(r'(?<=\d),(?=\d{3}\b)', '', text)

    for pattern in PRICE_PATTERNS:
        match = pattern.search(cleaned)
        if match:
            price = float(match.group(1))
            return price if price > 0 else None
    return None


def normalize_product_title(title: str, prefixes: Tuple[str, ...] = ()) -> str:
    """
    Clean a product title scraped from a vendor page

    Args:
        title: Raw title text
        prefixes: Vendor names to strip from the start of the title

    Returns:
        Normalized title, at most 80 characters
    """
    normalized = _collapse(title)

    for prefix in prefixes:
        normalized = re.sub(
            r'^' + re.escape(prefix) + r'\s*[-:|]?\s*', '', normalized, flags=re.IGNORECASE
        )

    pack = PACK_PATTERN.search(normalized)
    if pack:
        quantity = int(next(group for group in pack.groups() if group))
        remainder = _collapse(PACK_PATTERN.sub('', normalized, count=1)).strip(' -,')
        if quantity > 1 and len(remainder) > 20:
            normalized = f"{remainder} ({quantity}-Pack)"

    for pattern in MARKETING_PATTERNS:
        normalized = pattern.sub('', normalized)
    normalized = INCLUDED_PARENTHETICAL.sub('', normalized)
    normalized = re.sub(r'\(\s*\)', '', normalized)
    normalized = _collapse(normalized).strip(' -|,:')
    normalized = re.sub(r'\s+([,)])', r'\1', normalized)

    if len(normalized) > MAX_TITLE_LENGTH:
        parts = TITLE_SEPARATOR.split(normalized)
        shortened = parts[0]
        if len(shortened) < 30 and len(parts) > 1:
            shortened = f"{shortened} - {parts[1]}"
        normalized = shortened
        if len(normalized) > MAX_TITLE_LENGTH:
            normalized = normalized[:MAX_TITLE_LENGTH - 3].rstrip() + '...'

    return normalized


def is_in_stock(text: Optional[str]) -> bool:
    """Missing stock information counts as in stock"""
    if not text:
        return True
    lowered = text.lower()
    return not any(phrase in lowered for phrase in OUT_OF_STOCK_PHRASES)


def normalize_spec_key(key: str) -> str:
    return re.sub(r'[^a-z0-9]+', '_', key.lower()).strip('_')


@dataclass
class ExtractedFields:
    """Fields read from a single product page"""
    name: str
    price: float
    url: str
    in_stock: bool = True
    brand: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    table_specifications: Dict[str, str] = field(default_factory=dict)


class FieldExtractor:
    """
    Selector-driven product field extraction.

    Required fields are the name and the price; every other field degrades
    to None on its own when its selector is missing or matches nothing.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.stats = {
            'extracted': 0,
            'invalid': 0,
            'degraded_fields': 0
        }

    def extract(self, html: str, url: str, profile: VendorProfile) -> Optional[ExtractedFields]:
        """
        Extract product fields from a product page

        Args:
            html: Product page document
            url: URL the document was loaded from
            profile: Vendor profile holding the field selectors

        Returns:
            ExtractedFields, or None when the page does not yield a valid
            product (empty name or non-positive price)
        """
        soup = BeautifulSoup(html or '', 'html.parser')
        selectors = profile.field_selectors

        try:
            fields = self._extract_required(soup, url, profile)
        except InvalidProduct as e:
            self.stats['invalid'] += 1
            self.logger.debug(f"Dropping {url}: {e}")
            return None

        fields.brand = self._optional_text(soup, selectors.brand, 'brand', url)
        fields.sku = self._optional_text(soup, selectors.sku, 'sku', url)
        fields.description = self._optional_text(soup, selectors.description, 'description', url)
        fields.in_stock = is_in_stock(self._optional_text(soup, selectors.in_stock, 'in_stock', url))
        fields.image_url = self._extract_image(soup, selectors.image, url)
        fields.table_specifications = self._extract_table_specifications(soup, selectors.specifications, url)

        self.stats['extracted'] += 1
        return fields

    def _extract_required(self, soup: BeautifulSoup, url: str, profile: VendorProfile) -> ExtractedFields:
        selectors = profile.field_selectors
        try:
            raw_name = self._select_text(soup, selectors.name, 'name')
            raw_price = self._select_text(soup, selectors.price, 'price')
        except ParseError as e:
            raise InvalidProduct(str(e)) from e

        name = normalize_product_title(raw_name, profile.title_prefixes)
        if not name:
            raise InvalidProduct("empty product name")

        price = parse_price(raw_price)
        if price is None:
            raise InvalidProduct(f"unusable price '{raw_price}'")

        return ExtractedFields(name=name, price=price, url=url)

    def _select_text(self, soup: BeautifulSoup, selector: Optional[str], field_name: str) -> str:
        """
        Text of the first element matching selector

        Raises:
            ParseError: If the selector is missing, invalid or matches nothing
        """
        if not selector:
            raise ParseError(f"no selector configured for {field_name}")
        try:
            element = soup.select_one(selector)
        except SelectorSyntaxError as e:
            raise ParseError(f"invalid {field_name} selector '{selector}': {e}") from e
        if element is None:
            raise ParseError(f"{field_name} selector '{selector}' matched nothing")

        # Prices are often only in a content attribute (schema.org markup)
        text = _collapse(element.get_text(' ')) or _collapse(element.get('content', ''))
        if not text:
            raise ParseError(f"{field_name} selector '{selector}' matched an empty element")
        return text

    def _optional_text(self, soup: BeautifulSoup, selector: Optional[str], field_name: str,
                       url: str) -> Optional[str]:
        if not selector:
            return None
        try:
            return self._select_text(soup, selector, field_name)
        except ParseError as e:
            self.stats['degraded_fields'] += 1
            self.logger.debug(f"{url}: {e}")
            return None

    def _extract_image(self, soup: BeautifulSoup, selector: Optional[str], url: str) -> Optional[str]:
        if not selector:
            return None
        try:
            element = soup.select_one(selector)
        except SelectorSyntaxError as e:
            self.logger.debug(f"{url}: invalid image selector '{selector}': {e}")
            return None
        if element is None:
            self.stats['degraded_fields'] += 1
            return None

        if element.name != 'img':
            element = element.find('img') or element

        src = element.get('src') or element.get('data-src')
        if not src or src.startswith('data:'):
            src = element.get('data-src')
        if not src:
            return None
        return resolve_url(src.strip(), url)

    def _extract_table_specifications(self, soup: BeautifulSoup, selector: Optional[str],
                                      url: str) -> Dict[str, str]:
        """
        Read key/value pairs from specification tables

        Understands table rows, dt/dd pairs and "key: value" list items.
        """
        if not selector:
            return {}
        try:
            containers = soup.select(selector)
        except SelectorSyntaxError as e:
            self.logger.debug(f"{url}: invalid specification selector '{selector}': {e}")
            return {}

        specs: Dict[str, str] = {}

        def add(key: str, value: str) -> None:
            key = normalize_spec_key(key)
            value = _collapse(value)
            if key and value and key not in specs:
                specs[key] = value

        for container in containers:
            for row in container.find_all('tr'):
                cells = row.find_all(['th', 'td'])
                if len(cells) >= 2:
                    add(cells[0].get_text(' '), cells[-1].get_text(' '))

            for term in container.find_all('dt'):
                definition = term.find_next_sibling('dd')
                if definition is not None:
                    add(term.get_text(' '), definition.get_text(' '))

            items = container.find_all('li') + container.select('.spec-item')
            for item in items:
                text = _collapse(item.get_text(' '))
                if ':' in text:
                    key, value = text.split(':', 1)
                elif ' - ' in text:
                    key, value = text.split(' - ', 1)
                else:
                    continue
                add(key, value)

        return specs
