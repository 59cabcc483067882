"""
Classification Result Cache

In-memory cache for classification results keyed by a hash of the product
text. Only confident results are kept; high-confidence results live longer.
A background task sweeps expired entries while the component is running.
"""

import asyncio
import hashlib
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Union

from partscraper.core.base import BaseComponent, ClassificationResult
from partscraper.core.config import CacheConfig
from partscraper.core.logging import get_logger


@dataclass
class CacheEntry:
    """A cached classification"""
    key: str
    name: str
    result: ClassificationResult
    created_at: float
    expires_at: float
    hit_count: int = 0
    last_accessed: float = 0.0


def make_cache_key(name: str, description: str = "", context: Optional[Dict[str, Any]] = None) -> str:
    """SHA-256 of the lower-cased name, description and context"""
    serialized_context = json.dumps(context or {}, sort_keys=True, default=str)
    raw = f"{name}|{description}|{serialized_context}".lower()
    return hashlib.sha256(raw.encode('utf-8')).hexdigest()


class ResultCache(BaseComponent):
    """
    TTL cache for ClassificationResult values.

    At capacity the entry with the lowest hit count is evicted, the oldest
    one on ties. Expired entries are dropped when read and by the periodic
    sweep.
    """

    def __init__(self, config: Union[Dict[str, Any], CacheConfig, None] = None,
                 clock: Callable[[], float] = time.time):
        config = config or {}
        super().__init__(config if isinstance(config, dict) else {})
        if isinstance(config, CacheConfig):
            self.cache_config = config
        else:
            cache_data = config.get('cache', config)
            self.cache_config = cache_data if isinstance(cache_data, CacheConfig) else CacheConfig(**cache_data)

        self.clock = clock
        self.logger = get_logger()
        self._entries: Dict[str, CacheEntry] = {}
        self._sweep_task: Optional[asyncio.Task] = None
        self.stats = {
            'requests': 0,
            'hits': 0,
            'misses': 0,
            'stores': 0,
            'rejected': 0,
            'evictions': 0,
            'expired': 0
        }

    async def initialize(self) -> None:
        """Start the periodic sweep of expired entries"""
        if self._initialized:
            return
        if self.cache_config.enabled and self.cache_config.sweep_interval > 0:
            self._sweep_task = asyncio.create_task(self._sweep_loop())
        self._initialized = True
        self.logger.info(f"Result cache initialized (max {self.cache_config.max_entries} entries)")

    async def cleanup(self) -> None:
        """Stop the sweep task"""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        self._initialized = False
        self.logger.info("Result cache cleaned up")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cache_config.sweep_interval)
            removed = self.purge_expired()
            if removed:
                self.logger.debug(f"Cache sweep removed {removed} expired entries")

    def get(self, name: str, description: str = "",
            context: Optional[Dict[str, Any]] = None) -> Optional[ClassificationResult]:
        """
        Look up a cached classification

        Returns:
            A copy of the cached result, or None on a miss
        """
        if not self.cache_config.enabled:
            return None

        self.stats['requests'] += 1
        key = make_cache_key(name, description, context)
        entry = self._entries.get(key)
        now = self.clock()

        if entry is not None and entry.expires_at <= now:
            del self._entries[key]
            self.stats['expired'] += 1
            entry = None

        if entry is None:
            self.stats['misses'] += 1
            return None

        entry.hit_count += 1
        entry.last_accessed = now
        self.stats['hits'] += 1
        return ClassificationResult.from_dict(entry.result.to_dict())

    def set(self, name: str, result: ClassificationResult, confidence: Optional[float] = None,
            description: str = "", context: Optional[Dict[str, Any]] = None) -> bool:
        """
        Store a classification if it is confident enough

        Args:
            name: Product name
            result: Classification to cache
            confidence: Confidence used for the storage decision; defaults
                to the result's own confidence
            description: Product description
            context: Extra context that was part of the request

        Returns:
            True if the result was stored
        """
        if not self.cache_config.enabled:
            return False

        confidence = result.confidence if confidence is None else confidence
        if confidence < self.cache_config.min_confidence:
            self.stats['rejected'] += 1
            return False

        key = make_cache_key(name, description, context)
        if key not in self._entries and len(self._entries) >= self.cache_config.max_entries:
            self._evict()

        if confidence >= self.cache_config.high_confidence:
            ttl_hours = self.cache_config.high_confidence_ttl_hours
        else:
            ttl_hours = self.cache_config.default_ttl_hours

        now = self.clock()
        self._entries[key] = CacheEntry(
            key=key,
            name=name.lower(),
            result=ClassificationResult.from_dict(result.to_dict()),
            created_at=now,
            expires_at=now + ttl_hours * 3600,
            last_accessed=now
        )
        self.stats['stores'] += 1
        return True

    def _evict(self) -> None:
        victim = min(self._entries.values(), key=lambda entry: (entry.hit_count, entry.created_at))
        del self._entries[victim.key]
        self.stats['evictions'] += 1
        self.logger.debug(f"Evicted cache entry for '{victim.name}' ({victim.hit_count} hits)")

    def purge_expired(self) -> int:
        """Drop expired entries, returning how many were removed"""
        now = self.clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self.stats['expired'] += len(expired)
        return len(expired)

    def invalidate_by_keywords(self, keywords: Iterable[str]) -> int:
        """
        Drop entries whose product name contains any of the keywords

        Returns:
            Number of entries removed
        """
        lowered = [keyword.lower() for keyword in keywords if keyword]
        matching = [
            key for key, entry in self._entries.items()
            if any(keyword in entry.name for keyword in lowered)
        ]
        for key in matching:
            del self._entries[key]
        if matching:
            self.logger.info(f"Invalidated {len(matching)} cache entries for {lowered}")
        return len(matching)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        stats = dict(self.stats)
        stats['entries'] = len(self._entries)
        stats['hit_ratio'] = (stats['hits'] / stats['requests']) * 100 if stats['requests'] else 0.0
        return stats
