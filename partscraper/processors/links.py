"""
Link Discovery

Extracts candidate outbound links from a fetched page using the vendor's
configured selectors plus a catch-all anchor scan, and labels each as a
product or collection link.
"""

import logging
from dataclasses import dataclass
from typing import List, Set

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from partscraper.core.vendors import VendorProfile
from partscraper.utils.url import is_navigable_href, normalize_url


@dataclass(frozen=True)
class DiscoveredLink:
    """A link found on a page"""
    url: str
    is_product_page: bool


class LinkDiscoverer:
    """
    Pure link extraction: a function of the document and the vendor profile.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def discover(self, html: str, page_url: str, profile: VendorProfile) -> List[DiscoveredLink]:
        """
        Extract links from a page

        Args:
            html: Page document
            page_url: URL the document was loaded from
            profile: Vendor profile with link selectors and product indicators

        Returns:
            Links in document order, deduplicated within the page
        """
        if not html:
            return []

        soup = BeautifulSoup(html, 'html.parser')
        links: List[DiscoveredLink] = []
        seen: Set[str] = set()

        for selector in profile.link_selectors:
            try:
                elements = soup.select(selector)
            except SelectorSyntaxError as e:
                self.logger.warning(f"Invalid link selector for {profile.vendor} '{selector}': {e}")
                continue

            for element in elements:
                href = element.get('href')
                if href is None:
                    # Selector matched a container; use its first anchor
                    anchor = element.find('a', href=True)
                    href = anchor.get('href') if anchor else None
                self._collect(href, page_url, profile, links, seen, product_only=False)

        # Catch-all scan only contributes links that look like products
        for anchor in soup.find_all('a', href=True):
            self._collect(anchor['href'], page_url, profile, links, seen, product_only=True)

        self.logger.debug(
            f"Discovered {len(links)} links on {page_url} "
            f"({sum(1 for link in links if link.is_product_page)} product)"
        )
        return links

    def _collect(self, href, page_url: str, profile: VendorProfile,
                 links: List[DiscoveredLink], seen: Set[str], product_only: bool) -> None:
        if not is_navigable_href(href):
            return

        url = normalize_url(href, base_url=page_url, strip_query=profile.strip_query)
        if not url or url in seen:
            return

        is_product = profile.is_product_url(url)
        if product_only and not is_product:
            return

        seen.add(url)
        links.append(DiscoveredLink(url=url, is_product_page=is_product))
