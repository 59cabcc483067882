"""
Product Classification Service

Front door for classifying a product: consults the result cache, runs the
classification engine on a miss and records every call for analytics.
"""

import time
from typing import Any, Dict, Optional

from partscraper.core.base import BaseComponent, ClassificationResult, FeedbackVerdict
from partscraper.core.logging import get_logger
from partscraper.processors.analytics import ClassificationAnalytics, ClassificationEvent
from partscraper.processors.classifier import ClassificationEngine
from partscraper.storage.cache import ResultCache


class ProductClassifier(BaseComponent):
    """
    Cached classification with an analytics trail.

    The engine, cache and analytics log are built once by the component
    factory and shared by reference.
    """

    def __init__(self, config: Dict[str, Any], engine: ClassificationEngine,
                 cache: Optional[ResultCache] = None,
                 analytics: Optional[ClassificationAnalytics] = None):
        super().__init__(config)
        self.logger = get_logger()
        self.engine = engine
        self.cache = cache
        self.analytics = analytics or ClassificationAnalytics()

    async def initialize(self) -> None:
        """Initialize the cache"""
        if self.cache:
            await self.cache.initialize()
        self._initialized = True

    async def cleanup(self) -> None:
        """Clean up the cache"""
        if self.cache:
            await self.cache.cleanup()
        self._initialized = False

    def classify_product(self, name: str, description: str = "",
                         context: Optional[Dict[str, Any]] = None) -> ClassificationResult:
        """
        Classify a product, using the cache when possible

        Args:
            name: Product title
            description: Product description
            context: Extra request context, part of the cache key

        Returns:
            ClassificationResult
        """
        start_time = time.time()
        description = description or ""

        result = self.cache.get(name, description, context) if self.cache else None
        cache_hit = result is not None

        if result is None:
            result = self.engine.classify(name, description)
            if self.cache:
                self.cache.set(name, result, result.confidence, description, context)

        self.analytics.record(ClassificationEvent(
            name=name,
            predicted_category=result.category,
            confidence=result.confidence,
            method=result.method,
            processing_time=time.time() - start_time,
            cache_hit=cache_hit,
            source=(context or {}).get('source', 'engine')
        ))
        return result

    def record_feedback(self, name: str, predicted_category: str, actual_category: str,
                        verdict: FeedbackVerdict = FeedbackVerdict.INCORRECT) -> ClassificationEvent:
        """
        Record reviewer feedback on a classification

        A correction also drops any cached result for the product so the
        next request is classified afresh.
        """
        if self.cache and predicted_category != actual_category:
            self.cache.invalidate_by_keywords([name])
        return self.analytics.record_feedback(name, predicted_category, actual_category, verdict)

    def generate_report(self, hours: float = 24) -> Dict[str, Any]:
        report = self.analytics.generate_report(hours)
        if self.cache:
            report['cache'] = self.cache.get_stats()
        report['methods'] = self.engine.get_stats()
        return report
