"""
Product Classification Engine

Assigns each scraped product to one of the six component categories with a
five-stage cascade: brand lookup, definitive patterns, weighted keywords,
semantic signals and a weighted fallback. The first stage whose confidence
clears its threshold decides; the fallback always produces an answer.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from partscraper.core.base import ClassificationResult, ClassificationAmbiguous, ComponentCategory
from partscraper.core.config import ClassifierConfig
from partscraper.processors.rules import (
    BRAND_TABLE,
    BRAND_ALIAS_CONFIDENCE,
    BRAND_DEFAULT_CONFIDENCE,
    BRAND_DEFINITIVE_CONFIDENCE,
    BRAND_DISAMBIGUATED_CONFIDENCE,
    CONTEXT_MULTIPLIERS,
    EXCLUSION_TABLE,
    KEYWORD_TABLE,
    NAME_SIGNALS,
    PATTERN_TABLE,
    STATEMENT_CONFIDENCE,
    STATEMENT_NOUNS,
    STATEMENT_PATTERN,
    BrandEntry,
    keyword_pattern,
    term_pattern,
)
from partscraper.processors.specs import SpecificationMiner


@dataclass
class _StageOutcome:
    """Best candidate produced by one stage"""
    category: str
    confidence: float
    method: str
    reasoning: List[str] = field(default_factory=list)


@dataclass
class _ClassificationContext:
    """Per-call view of the product text shared by all stages"""
    name: str
    description: str
    text: str
    excluded: Dict[str, List[str]] = field(default_factory=dict)

    def is_excluded(self, category: str) -> bool:
        return category in self.excluded


def _prepare(text: Optional[str]) -> str:
    return re.sub(r'\s+', ' ', (text or '').lower()).strip()


class ClassificationEngine:
    """
    Five-stage product classification cascade.

    Stages are pure functions of the product text, so classifying the same
    input twice gives the same result.
    """

    STAGES = ('brand', 'pattern', 'keyword', 'semantic')

    def __init__(self, config: Optional[ClassifierConfig] = None,
                 miner: Optional[SpecificationMiner] = None):
        """
        Initialize the classification engine.

        Args:
            config: Thresholds, stage weights, fallback cap and default category
            miner: Specification miner applied to the winning category
        """
        self.config = config or ClassifierConfig()
        self.miner = miner or SpecificationMiner()
        self.logger = logging.getLogger(__name__)

        if not ComponentCategory.is_valid(self.config.default_category):
            raise ValueError(f"Default category '{self.config.default_category}' is not a valid category")

        self._brand_patterns: List[Tuple[BrandEntry, object, List[object]]] = [
            (entry, term_pattern(entry.name), [term_pattern(alias) for alias in entry.aliases])
            for entry in BRAND_TABLE
        ]
        self._keyword_patterns = [
            (rule, keyword_pattern(rule.word))
            for rule in KEYWORD_TABLE
        ]
        self.stats: Counter = Counter()

    def classify(self, name: str, description: str = "", url: Optional[str] = None,
                 vendor: Optional[str] = None, price: Optional[float] = None) -> ClassificationResult:
        """
        Classify a product

        Args:
            name: Product title
            description: Product description
            url: Product page URL, only reported in debug logs
            vendor: Vendor name, only reported in debug logs
            price: Product price, only reported in debug logs

        Returns:
            ClassificationResult from the first stage that clears its
            threshold, or from the weighted fallback
        """
        context = self._build_context(name, description)
        warnings = [
            f"Excluded from {category}: {reason}"
            for category, reasons in context.excluded.items()
            for reason in reasons
        ]
        reasoning: List[str] = []
        outcomes: Dict[str, Optional[_StageOutcome]] = {}

        try:
            for stage_name, stage, threshold in self._stages():
                outcome = stage(context)
                outcomes[stage_name] = outcome
                if outcome is None:
                    reasoning.append(f"{stage_name} stage: no candidate")
                    continue
                reasoning.extend(outcome.reasoning)
                if outcome.confidence >= threshold:
                    return self._finalize(outcome, context, reasoning, warnings, url, vendor, price)
                reasoning.append(
                    f"{stage_name} stage: {outcome.category} at {outcome.confidence:.1f} "
                    f"below threshold {threshold}"
                )
            raise ClassificationAmbiguous(f"No stage cleared its threshold for '{name}'")
        except ClassificationAmbiguous as e:
            self.logger.debug(str(e))
            outcome = self._classify_by_weighted_fallback(context, outcomes)
            reasoning.extend(outcome.reasoning)
            return self._finalize(outcome, context, reasoning, warnings, url, vendor, price)

    def validate(self, name: str, description: str, expected: str) -> Dict[str, object]:
        """
        Classify a labelled sample and compare against its expected category

        Returns:
            Dictionary with the expected and actual category, confidence,
            method and whether the prediction was correct
        """
        result = self.classify(name, description)
        return {
            'name': name,
            'expected': expected,
            'actual': result.category,
            'confidence': result.confidence,
            'method': result.method,
            'correct': result.category == expected
        }

    def get_stats(self) -> Dict[str, int]:
        """Number of results produced per method"""
        return dict(self.stats)

    def _stages(self) -> List[Tuple[str, Callable[[_ClassificationContext], Optional[_StageOutcome]], float]]:
        return [
            ('brand', self._classify_by_brand, self.config.brand_threshold),
            ('pattern', self._classify_by_pattern, self.config.pattern_threshold),
            ('keyword', self._classify_by_keywords, self.config.keyword_threshold),
            ('semantic', self._classify_by_semantics, self.config.semantic_threshold),
        ]

    def _build_context(self, name: str, description: str) -> _ClassificationContext:
        context = _ClassificationContext(
            name=_prepare(name),
            description=_prepare(description),
            text=_prepare(f"{name or ''} {description or ''}")
        )
        for rule in EXCLUSION_TABLE:
            match = rule.pattern.search(context.text)
            if match:
                context.excluded.setdefault(rule.category, []).append(
                    f"{rule.rationale} ('{match.group(0)}')"
                )
        return context

    def _finalize(self, outcome: _StageOutcome, context: _ClassificationContext,
                  reasoning: List[str], warnings: List[str], url: Optional[str],
                  vendor: Optional[str], price: Optional[float]) -> ClassificationResult:
        self.stats[outcome.method] += 1
        self.logger.debug(
            f"Classified '{context.name}' as {outcome.category} ({outcome.confidence:.1f}, "
            f"{outcome.method}) vendor={vendor} url={url} price={price}"
        )
        return ClassificationResult(
            category=outcome.category,
            confidence=outcome.confidence,
            method=outcome.method,
            reasoning=reasoning,
            specifications=self.miner.mine(context.text, outcome.category),
            warnings=list(warnings)
        )

    def _classify_by_brand(self, context: _ClassificationContext) -> Optional[_StageOutcome]:
        best: Optional[_StageOutcome] = None

        for entry, name_pattern, alias_patterns in self._brand_patterns:
            if name_pattern.search(context.text):
                matched_as = 'name'
            elif any(pattern.search(context.text) for pattern in alias_patterns):
                matched_as = 'alias'
            else:
                continue

            candidate = self._resolve_brand(entry, matched_as, context)
            if candidate and (best is None or candidate.confidence > best.confidence):
                best = candidate

        return best

    def _resolve_brand(self, entry: BrandEntry, matched_as: str,
                       context: _ClassificationContext) -> Optional[_StageOutcome]:
        if entry.is_multi_category:
            for rule in entry.rules:
                if rule.pattern.search(context.text):
                    return _StageOutcome(
                        rule.category, BRAND_DISAMBIGUATED_CONFIDENCE, 'brand-disambiguated',
                        [f"Brand '{entry.name}' with {rule.label} indicates {rule.category}"]
                    )
            if entry.category is None:
                return None
            return _StageOutcome(
                entry.category, BRAND_DEFAULT_CONFIDENCE, 'brand-default',
                [f"Brand '{entry.name}' defaults to {entry.category}"]
            )

        if matched_as == 'name':
            return _StageOutcome(
                entry.category, BRAND_DEFINITIVE_CONFIDENCE, 'brand-definitive',
                [f"Brand '{entry.name}' makes only {entry.category} products"]
            )
        return _StageOutcome(
            entry.category, BRAND_ALIAS_CONFIDENCE, 'brand-alias',
            [f"Brand alias of '{entry.name}' indicates {entry.category}"]
        )

    def _classify_by_pattern(self, context: _ClassificationContext) -> Optional[_StageOutcome]:
        best: Optional[_StageOutcome] = None

        for rule in PATTERN_TABLE:
            if context.is_excluded(rule.category):
                continue
            if not rule.pattern.search(context.text):
                continue
            if best is None or rule.confidence > best.confidence:
                best = _StageOutcome(rule.category, rule.confidence, 'definitive-pattern', [rule.rationale])

        return best

    def _classify_by_keywords(self, context: _ClassificationContext) -> Optional[_StageOutcome]:
        scores: Dict[str, float] = {}
        matched: Dict[str, List[str]] = {}

        for rule, pattern in self._keyword_patterns:
            if context.is_excluded(rule.category) or not pattern.search(context.text):
                continue
            multiplier = CONTEXT_MULTIPLIERS.get(rule.context, 1.0)
            scores[rule.category] = scores.get(rule.category, 0.0) + rule.weight * multiplier
            matched.setdefault(rule.category, []).append(rule.word)

        if not scores:
            return None

        # max() keeps the first category on ties, which is table order
        category = max(scores, key=lambda c: scores[c])
        confidence = round(min(self.config.keyword_cap, scores[category]), 1)
        return _StageOutcome(
            category, confidence, 'weighted-keywords',
            [f"Keywords {', '.join(matched[category])} score {scores[category]:.1f} for {category}"]
        )

    def _classify_by_semantics(self, context: _ClassificationContext) -> Optional[_StageOutcome]:
        for signal in NAME_SIGNALS:
            if context.is_excluded(signal.category):
                continue
            if signal.pattern.search(context.name):
                return _StageOutcome(signal.category, signal.confidence, 'semantic-name', [signal.rationale])

        for sentence in re.split(r'[.!?]+', context.description):
            for match in STATEMENT_PATTERN.finditer(sentence):
                for word in match.group(1).split():
                    category = STATEMENT_NOUNS.get(word.strip('"\'.-'))
                    if category and not context.is_excluded(category):
                        return _StageOutcome(
                            category, STATEMENT_CONFIDENCE, 'semantic-statement',
                            [f"Description identifies the product as a {word}"]
                        )
        return None

    def _classify_by_weighted_fallback(self, context: _ClassificationContext,
                                       outcomes: Dict[str, Optional[_StageOutcome]]) -> _StageOutcome:
        scores: Dict[str, float] = {}
        for stage_name, outcome in outcomes.items():
            if outcome is None:
                continue
            weight = self.config.stage_weights.get(stage_name, 0.0)
            scores[outcome.category] = scores.get(outcome.category, 0.0) + outcome.confidence * weight

        if not scores or max(scores.values()) <= 0:
            return _StageOutcome(
                self.config.default_category, 0.0, 'fallback-default',
                [f"No signals found, defaulting to {self.config.default_category}"]
            )

        category = max(scores, key=lambda c: scores[c])
        confidence = round(min(self.config.fallback_cap, scores[category]), 1)
        return _StageOutcome(
            category, confidence, 'weighted-combination',
            [f"Weighted combination of stage scores favours {category} ({scores[category]:.1f})"]
        )
