"""
Product processing components for the Drone Parts Scraper

This package contains components for processing product pages including:
- Link discovery
- Product field extraction
- Specification mining
- Product classification, analytics and the classification service
"""

from partscraper.processors.links import LinkDiscoverer, DiscoveredLink
from partscraper.processors.fields import FieldExtractor, ExtractedFields
from partscraper.processors.specs import SpecificationMiner
from partscraper.processors.classifier import ClassificationEngine
from partscraper.processors.analytics import ClassificationAnalytics, ClassificationEvent
from partscraper.processors.service import ProductClassifier

__all__ = [
    'LinkDiscoverer',
    'DiscoveredLink',
    'FieldExtractor',
    'ExtractedFields',
    'SpecificationMiner',
    'ClassificationEngine',
    'ClassificationAnalytics',
    'ClassificationEvent',
    'ProductClassifier'
]
