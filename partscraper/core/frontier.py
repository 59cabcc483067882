"""
Crawl Frontier

Pending work queues plus the visited-URL set for one vendor crawl run.
Every URL is normalized and checked at offer time (scheme, exclusions,
origin, depth, duplicates) so that no URL is ever handed out twice and no
request is wasted on a link the run would discard anyway.
"""

import threading
from collections import deque, Counter
from typing import Deque, Dict, Any, Iterable, List, Optional, Set

import validators

from partscraper.core.base import FrontierItem
from partscraper.core.logging import get_logger
from partscraper.core.vendors import VendorProfile
from partscraper.utils.url import normalize_url, is_same_site


class OfferRejection:
    """Reasons an offered URL was not enqueued"""
    INVALID = "invalid"
    EXCLUDED = "excluded"
    OFF_ORIGIN = "off_origin"
    TOO_DEEP = "too_deep"
    DUPLICATE = "duplicate"


class CrawlFrontier:
    """
    Frontier for a single crawl run.

    Product and collection items are kept in separate FIFO queues so the
    orchestrator can drain collection pages first. The enqueued set covers
    every URL ever accepted this run and the visited set every URL handed
    out by next(); both are guarded by one lock and no operation awaits
    while holding it.
    """

    def __init__(self, profile: VendorProfile):
        self.logger = get_logger()
        self.profile = profile
        self.max_depth = profile.max_depth

        self._lock = threading.Lock()
        self._collection_queue: Deque[FrontierItem] = deque()
        self._product_queue: Deque[FrontierItem] = deque()
        self._enqueued: Set[str] = set()
        self._visited: Set[str] = set()

        self.stats = {
            'offered': 0,
            'accepted': 0,
            'dispatched': 0
        }
        self.rejections: Counter = Counter()

    def normalize(self, url: str) -> str:
        """Normalize a URL the way this vendor's frontier compares them"""
        return normalize_url(url, base_url=self.profile.origin, strip_query=self.profile.strip_query)

    def seed(self, urls: Iterable[str]) -> int:
        """
        Enqueue depth-0 items

        Args:
            urls: Seed URLs, usually the vendor's collection pages

        Returns:
            Number of seeds accepted
        """
        accepted = 0
        for url in urls:
            if self.offer(url, depth=0, is_product_page=False) is None:
                accepted += 1
        self.logger.info(f"Seeded frontier for {self.profile.vendor} with {accepted} URLs")
        return accepted

    def offer(self, url: str, depth: int, is_product_page: Optional[bool] = None,
              discovered_from: Optional[str] = None) -> Optional[str]:
        """
        Offer a URL to the frontier

        Args:
            url: Absolute or origin-relative URL
            depth: Hop count from the seeds
            is_product_page: Page kind; decided from the vendor's product
                indicators when omitted
            discovered_from: URL of the page the link was found on

        Returns:
            None if the URL was enqueued, otherwise the rejection reason
        """
        normalized = self.normalize(url)

        with self._lock:
            self.stats['offered'] += 1
            reason = self._rejection_reason(normalized, depth)
            if reason:
                self.rejections[reason] += 1
                return reason

            if is_product_page is None:
                is_product_page = self.profile.is_product_url(normalized)

            item = FrontierItem(
                url=normalized,
                depth=depth,
                is_product_page=is_product_page,
                discovered_from=discovered_from
            )
            self._enqueued.add(normalized)
            if is_product_page:
                self._product_queue.append(item)
            else:
                self._collection_queue.append(item)
            self.stats['accepted'] += 1

        self.logger.debug(f"Enqueued {normalized} (depth={depth}, product={is_product_page})")
        return None

    def _rejection_reason(self, normalized: str, depth: int) -> Optional[str]:
        if not normalized or not validators.url(normalized):
            return OfferRejection.INVALID
        if self.profile.is_excluded(normalized):
            return OfferRejection.EXCLUDED
        if not is_same_site(normalized, self.profile.origin):
            return OfferRejection.OFF_ORIGIN
        if depth > self.max_depth:
            return OfferRejection.TOO_DEEP
        if normalized in self._enqueued or normalized in self._visited:
            return OfferRejection.DUPLICATE
        return None

    def next(self, product_pages: Optional[bool] = None) -> Optional[FrontierItem]:
        """
        Pop the next pending item and mark it visited

        Args:
            product_pages: True for product items only, False for collection
                items only, None for collection items first then products

        Returns:
            The next item, or None when the selected queue is empty
        """
        with self._lock:
            if product_pages is None:
                queue = self._collection_queue or self._product_queue
            elif product_pages:
                queue = self._product_queue
            else:
                queue = self._collection_queue

            while queue:
                item = queue.popleft()
                if item.url in self._visited:
                    continue
                self._visited.add(item.url)
                self.stats['dispatched'] += 1
                return item

        return None

    def take(self, count: int, product_pages: Optional[bool] = None) -> List[FrontierItem]:
        """Pop up to count items in one go"""
        items = []
        while len(items) < count:
            item = self.next(product_pages)
            if item is None:
                break
            items.append(item)
        return items

    def pending_count(self, product_pages: Optional[bool] = None) -> int:
        with self._lock:
            if product_pages is None:
                return len(self._collection_queue) + len(self._product_queue)
            if product_pages:
                return len(self._product_queue)
            return len(self._collection_queue)

    def is_visited(self, url: str) -> bool:
        with self._lock:
            return self.normalize(url) in self._visited

    @property
    def visited(self) -> Set[str]:
        """Snapshot of URLs handed out by next()"""
        with self._lock:
            return set(self._visited)

    def get_queue_status(self) -> Dict[str, Any]:
        """Get current queue status and statistics"""
        with self._lock:
            return {
                'vendor': self.profile.vendor,
                'pending_collection': len(self._collection_queue),
                'pending_product': len(self._product_queue),
                'visited': len(self._visited),
                'offered': self.stats['offered'],
                'accepted': self.stats['accepted'],
                'dispatched': self.stats['dispatched'],
                'rejected': dict(self.rejections)
            }
