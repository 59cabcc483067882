"""
Classification Analytics

Keeps a bounded, time-pruned log of classification events, lets reviewers
attach feedback to them and summarizes accuracy over a time window.
"""

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, List, Optional

from partscraper.core.base import FeedbackVerdict
from partscraper.core.config import AnalyticsConfig


CONFIDENCE_BUCKETS = (
    ('0-50', 0, 50),
    ('50-70', 50, 70),
    ('70-85', 70, 85),
    ('85-95', 85, 95),
    ('95-100', 95, 100.01),
)


@dataclass
class ClassificationEvent:
    """One classification, optionally annotated with reviewer feedback"""
    name: str
    predicted_category: str
    confidence: float
    method: str
    processing_time: float = 0.0
    cache_hit: bool = False
    source: str = "engine"
    actual_category: Optional[str] = None
    is_correct: Optional[bool] = None
    user_feedback: Optional[FeedbackVerdict] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'predicted_category': self.predicted_category,
            'actual_category': self.actual_category,
            'confidence': self.confidence,
            'method': self.method,
            'processing_time': self.processing_time,
            'cache_hit': self.cache_hit,
            'is_correct': self.is_correct,
            'user_feedback': self.user_feedback.value if self.user_feedback else None,
            'source': self.source,
            'timestamp': self.timestamp.isoformat()
        }


class ClassificationAnalytics:
    """
    In-memory classification event log.

    The log holds at most max_events entries and events older than
    retention_days are pruned whenever a new event is recorded.
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.config = config or AnalyticsConfig()
        self.clock = clock
        self.logger = logging.getLogger(__name__)
        self.events: Deque[ClassificationEvent] = deque(maxlen=self.config.max_events)

    def record(self, event: ClassificationEvent) -> None:
        """Append an event to the log"""
        event.timestamp = self.clock()
        self.events.append(event)
        self._prune()

    def record_feedback(self, name: str, predicted_category: str, actual_category: str,
                        verdict: FeedbackVerdict) -> ClassificationEvent:
        """
        Attach reviewer feedback to the latest matching event

        Args:
            name: Product name as classified
            predicted_category: Category the classifier produced
            actual_category: Category the reviewer says is right
            verdict: Reviewer verdict

        Returns:
            The annotated event; a new feedback-only event when no
            classification of this product is in the log
        """
        is_correct = predicted_category == actual_category
        event = self._find_event(name, predicted_category)

        if event is None:
            event = ClassificationEvent(
                name=name,
                predicted_category=predicted_category,
                confidence=0.0,
                method='user_feedback',
                source='feedback'
            )
            self.record(event)

        event.actual_category = actual_category
        event.is_correct = is_correct
        event.user_feedback = verdict

        self.logger.info(
            f"Feedback for '{name}': predicted {predicted_category}, actual {actual_category} "
            f"({verdict.value})"
        )
        return event

    def _find_event(self, name: str, predicted_category: str) -> Optional[ClassificationEvent]:
        lowered = name.lower()
        for event in reversed(self.events):
            if event.name.lower() == lowered and event.predicted_category == predicted_category:
                return event
        return None

    def _prune(self) -> None:
        cutoff = self.clock() - timedelta(days=self.config.retention_days)
        while self.events and self.events[0].timestamp < cutoff:
            self.events.popleft()

    def generate_report(self, hours: float = 24) -> Dict[str, Any]:
        """
        Summarize classifications from the last hours

        Args:
            hours: Size of the reporting window

        Returns:
            Report with accuracy, confidence distribution, per-category and
            per-method accuracy, cache hit rate and the most common errors
        """
        cutoff = self.clock() - timedelta(hours=hours)
        window = [event for event in self.events if event.timestamp >= cutoff]
        reviewed = [event for event in window if event.is_correct is not None]

        distribution = {label: 0 for label, _, _ in CONFIDENCE_BUCKETS}
        for event in window:
            for label, low, high in CONFIDENCE_BUCKETS:
                if low <= event.confidence < high:
                    distribution[label] += 1
                    break

        errors = Counter(
            f"{event.predicted_category} -> {event.actual_category}"
            for event in reviewed if not event.is_correct
        )

        cache_hits = sum(1 for event in window if event.cache_hit)

        return {
            'window_hours': hours,
            'total_classifications': len(window),
            'reviewed': len(reviewed),
            'accuracy': self._accuracy(reviewed),
            'confidence_distribution': distribution,
            'category_accuracy': self._grouped_accuracy(reviewed, lambda e: e.predicted_category),
            'method_accuracy': self._grouped_accuracy(reviewed, lambda e: e.method),
            'cache_hit_rate': (cache_hits / len(window)) * 100 if window else 0.0,
            'common_errors': errors.most_common(10)
        }

    def _accuracy(self, events: List[ClassificationEvent]) -> Optional[float]:
        if not events:
            return None
        correct = sum(1 for event in events if event.is_correct)
        return (correct / len(events)) * 100

    def _grouped_accuracy(self, events: List[ClassificationEvent],
                          key: Callable[[ClassificationEvent], str]) -> Dict[str, Dict[str, Any]]:
        groups: Dict[str, List[ClassificationEvent]] = {}
        for event in events:
            groups.setdefault(key(event), []).append(event)
        return {
            group: {'total': len(members), 'accuracy': self._accuracy(members)}
            for group, members in groups.items()
        }
