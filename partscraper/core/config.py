"""
Configuration Manager for the Drone Parts Scraper

Handles YAML/JSON configuration files and environment variable integration
with validation of crawl, classification and cache settings.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict
from pathlib import Path

from partscraper.core.base import ConfigurationError, ComponentCategory


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


@dataclass
class CrawlConfig:
    """Configuration for the page fetcher"""
    headless: bool = True
    timeout: int = 30
    max_retries: int = 3
    retry_backoff: float = 1.0
    wait_until: str = "networkidle"
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class ScraperConfig:
    """Main crawl run configuration"""
    max_pages: int = 500
    batch_size: int = 3
    batch_delay: float = 1.0
    vendor_delay: float = 10.0
    min_collection_pages: int = 3
    max_collection_pages: int = 10
    collection_page_ratio: float = 0.2
    fetcher: str = "browser"
    vendors_file: str = "config/vendors.yaml"


@dataclass
class ClassifierConfig:
    """Thresholds and weights of the classification cascade"""
    brand_threshold: float = 95
    pattern_threshold: float = 90
    keyword_threshold: float = 85
    semantic_threshold: float = 80
    keyword_cap: float = 95
    fallback_cap: float = 79
    default_category: str = "motor"
    stage_weights: Dict[str, float] = field(default_factory=lambda: {
        'brand': 0.4,
        'pattern': 0.3,
        'keyword': 0.2,
        'semantic': 0.1
    })


@dataclass
class CacheConfig:
    """Classification result cache configuration"""
    enabled: bool = True
    min_confidence: float = 70
    high_confidence: float = 90
    high_confidence_ttl_hours: float = 168
    default_ttl_hours: float = 24
    max_entries: int = 10000
    sweep_interval: float = 3600


@dataclass
class AnalyticsConfig:
    """Classification analytics configuration"""
    max_events: int = 50000
    retention_days: int = 7


@dataclass
class StorageConfig:
    """Local product storage configuration"""
    output_path: str = "./products"


@dataclass
class LoggingConfig:
    """Logging system configuration"""
    level: str = "INFO"
    file: str = "./logs/partscraper.log"
    max_size: str = "100MB"
    backup_count: int = 5


class ConfigManager:
    """
    Centralized configuration manager with support for YAML/JSON files
    and environment variable integration.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or "config/config.yaml"
        self._config_data: Dict[str, Any] = {}
        self.scraper_config: Optional[ScraperConfig] = None
        self.crawl_config: Optional[CrawlConfig] = None
        self.classifier_config: Optional[ClassifierConfig] = None
        self.cache_config: Optional[CacheConfig] = None
        self.analytics_config: Optional[AnalyticsConfig] = None
        self.storage_config: Optional[StorageConfig] = None
        self.logging_config: Optional[LoggingConfig] = None

    def load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """Load configuration from file with environment variable override"""
        if config_path:
            self.config_path = config_path

        config_file = Path(self.config_path)

        # Load default configuration if file doesn't exist
        if not config_file.exists():
            self._config_data = self._get_default_config()
            self._create_default_config_file()
        else:
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    if config_file.suffix.lower() == '.json':
                        self._config_data = json.load(f)
                    else:  # Assume YAML
                        self._config_data = yaml.safe_load(f) or {}
            except (OSError, ValueError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {config_file}: {e}")

        if not isinstance(self._config_data, dict):
            raise ConfigurationError(f"Config root must be a mapping: {config_file}")

        self._apply_env_overrides()
        self._parse_config()

        return self._config_data

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration dictionary"""
        return {
            'scraper': asdict(ScraperConfig()),
            'crawl': asdict(CrawlConfig()),
            'classifier': asdict(ClassifierConfig()),
            'cache': asdict(CacheConfig()),
            'analytics': asdict(AnalyticsConfig()),
            'storage': asdict(StorageConfig()),
            'logging': asdict(LoggingConfig())
        }

    def _create_default_config_file(self) -> None:
        """Create default configuration file"""
        config_dir = Path(self.config_path).parent
        config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, 'w', encoding='utf-8') as f:
            yaml.dump(self._config_data, f, default_flow_style=False, indent=2)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides"""
        if os.getenv('SCRAPER_MAX_PAGES'):
            try:
                self._config_data.setdefault('scraper', {})['max_pages'] = int(os.getenv('SCRAPER_MAX_PAGES'))
            except ValueError:
                raise ConfigurationError("SCRAPER_MAX_PAGES must be an integer")

        if os.getenv('SCRAPER_BATCH_SIZE'):
            try:
                self._config_data.setdefault('scraper', {})['batch_size'] = int(os.getenv('SCRAPER_BATCH_SIZE'))
            except ValueError:
                raise ConfigurationError("SCRAPER_BATCH_SIZE must be an integer")

        if os.getenv('SCRAPER_FETCHER'):
            self._config_data.setdefault('scraper', {})['fetcher'] = os.getenv('SCRAPER_FETCHER')

        if os.getenv('SCRAPER_VENDORS_FILE'):
            self._config_data.setdefault('scraper', {})['vendors_file'] = os.getenv('SCRAPER_VENDORS_FILE')

        if os.getenv('LOG_LEVEL'):
            self._config_data.setdefault('logging', {})['level'] = os.getenv('LOG_LEVEL')

    def _parse_config(self) -> None:
        """Parse configuration into dataclass objects"""
        self.scraper_config = self._build(ScraperConfig, 'scraper')
        self.crawl_config = self._build(CrawlConfig, 'crawl')
        self.classifier_config = self._build(ClassifierConfig, 'classifier')
        self.cache_config = self._build(CacheConfig, 'cache')
        self.analytics_config = self._build(AnalyticsConfig, 'analytics')
        self.storage_config = self._build(StorageConfig, 'storage')
        self.logging_config = self._build(LoggingConfig, 'logging')

    def _build(self, config_class, section: str):
        """Build a config dataclass from a section, rejecting unknown keys"""
        data = self._config_data.get(section) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config section '{section}' must be a mapping")

        known = set(config_class.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown keys in '{section}' section: {', '.join(unknown)}")

        if config_class is ClassifierConfig and 'stage_weights' in data:
            weights = dict(ClassifierConfig().stage_weights)
            weights.update(data['stage_weights'] or {})
            data = {**data, 'stage_weights': weights}

        return config_class(**data)

    def validate_config(self) -> bool:
        """Validate loaded configuration values"""
        if not self.scraper_config:
            raise ConfigurationError("Configuration not loaded")

        scraper = self.scraper_config
        if scraper.max_pages <= 0:
            raise ConfigurationError("scraper.max_pages must be greater than 0")
        if scraper.batch_size <= 0:
            raise ConfigurationError("scraper.batch_size must be greater than 0")
        if scraper.batch_delay < 0 or scraper.vendor_delay < 0:
            raise ConfigurationError("scraper delays must be non-negative")
        if scraper.min_collection_pages > scraper.max_collection_pages:
            raise ConfigurationError("scraper.min_collection_pages exceeds max_collection_pages")
        if not 0 < scraper.collection_page_ratio <= 1:
            raise ConfigurationError("scraper.collection_page_ratio must be in (0, 1]")
        if scraper.fetcher not in ('browser', 'http'):
            raise ConfigurationError(f"Invalid fetcher: {scraper.fetcher}")

        crawl = self.crawl_config
        if crawl.timeout <= 0:
            raise ConfigurationError("crawl.timeout must be greater than 0")
        if crawl.max_retries < 0 or crawl.retry_backoff < 0:
            raise ConfigurationError("crawl retry settings must be non-negative")

        classifier = self.classifier_config
        if not ComponentCategory.is_valid(classifier.default_category):
            raise ConfigurationError(f"Invalid default category: {classifier.default_category}")
        for name in ('brand_threshold', 'pattern_threshold', 'keyword_threshold',
                     'semantic_threshold', 'keyword_cap', 'fallback_cap'):
            value = getattr(classifier, name)
            if not 0 <= value <= 100:
                raise ConfigurationError(f"classifier.{name} must be within 0-100")
        missing = {'brand', 'pattern', 'keyword', 'semantic'} - set(classifier.stage_weights)
        if missing:
            raise ConfigurationError(f"Missing stage weights: {', '.join(sorted(missing))}")

        cache = self.cache_config
        if cache.max_entries <= 0:
            raise ConfigurationError("cache.max_entries must be greater than 0")
        if cache.sweep_interval <= 0:
            raise ConfigurationError("cache.sweep_interval must be greater than 0")

        return True

    def as_dict(self) -> Dict[str, Any]:
        """Get the parsed configuration as a plain dictionary"""
        if not self.scraper_config:
            raise ConfigurationError("Configuration not loaded")

        return {
            'scraper': asdict(self.scraper_config),
            'crawl': asdict(self.crawl_config),
            'classifier': asdict(self.classifier_config),
            'cache': asdict(self.cache_config),
            'analytics': asdict(self.analytics_config),
            'storage': asdict(self.storage_config),
            'logging': asdict(self.logging_config)
        }
