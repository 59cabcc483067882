"""
Storage components for the Drone Parts Scraper

This package contains components for storage including:
- Classification result cache
- Local JSON product store
"""

from .cache import ResultCache
from .dev_storage import JsonProductStore

__all__ = ['ResultCache', 'JsonProductStore']
