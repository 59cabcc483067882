"""
Tests for configuration loading, vendor profiles and the logging manager
"""

import json
import logging
from pathlib import Path

import pytest

from partscraper.core.base import ConfigurationError
from partscraper.core.config import ConfigManager
from partscraper.core.logging import LoggingManager, LOGGER_NAME
from partscraper.core.vendors import VendorRegistry, parse_vendor_profile


CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

ENV_VARS = ('SCRAPER_MAX_PAGES', 'SCRAPER_BATCH_SIZE', 'SCRAPER_FETCHER',
            'SCRAPER_VENDORS_FILE', 'LOG_LEVEL')


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfigManager:
    """Test suite for ConfigManager"""

    def write(self, tmp_path, text: str, name: str = "config.yaml") -> str:
        path = tmp_path / name
        path.write_text(text, encoding='utf-8')
        return str(path)

    def test_shipped_config_is_valid(self):
        manager = ConfigManager(str(CONFIG_DIR / "config.yaml"))
        manager.load_config()

        assert manager.validate_config() is True
        assert manager.scraper_config.fetcher == "browser"
        assert manager.classifier_config.default_category == "motor"
        assert manager.cache_config.high_confidence_ttl_hours == 168

    def test_missing_file_creates_defaults(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        manager = ConfigManager(str(path))

        data = manager.load_config()

        assert path.exists()
        assert data['scraper']['max_pages'] == 500
        assert manager.crawl_config.max_retries == 3

    def test_json_config(self, tmp_path):
        path = self.write(tmp_path, json.dumps({'scraper': {'batch_size': 7}}), "config.json")
        manager = ConfigManager(path)
        manager.load_config()

        assert manager.scraper_config.batch_size == 7
        assert manager.scraper_config.max_pages == 500

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv('SCRAPER_MAX_PAGES', '42')
        monkeypatch.setenv('SCRAPER_FETCHER', 'http')
        monkeypatch.setenv('LOG_LEVEL', 'DEBUG')
        manager = ConfigManager(self.write(tmp_path, "scraper:\n  max_pages: 10\n"))
        manager.load_config()

        assert manager.scraper_config.max_pages == 42
        assert manager.scraper_config.fetcher == "http"
        assert manager.logging_config.level == "DEBUG"

    def test_invalid_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv('SCRAPER_BATCH_SIZE', 'many')
        manager = ConfigManager(self.write(tmp_path, "scraper: {}\n"))

        with pytest.raises(ConfigurationError):
            manager.load_config()

    def test_unknown_key_rejected(self, tmp_path):
        manager = ConfigManager(self.write(tmp_path, "scraper:\n  bogus: 1\n"))

        with pytest.raises(ConfigurationError, match="bogus"):
            manager.load_config()

    def test_non_mapping_root_rejected(self, tmp_path):
        manager = ConfigManager(self.write(tmp_path, "- one\n- two\n"))

        with pytest.raises(ConfigurationError):
            manager.load_config()

    def test_partial_stage_weights_merged(self, tmp_path):
        manager = ConfigManager(self.write(tmp_path, "classifier:\n  stage_weights:\n    brand: 0.5\n"))
        manager.load_config()

        assert manager.classifier_config.stage_weights == {
            'brand': 0.5, 'pattern': 0.3, 'keyword': 0.2, 'semantic': 0.1
        }

    @pytest.mark.parametrize("text", [
        "scraper:\n  batch_size: 0\n",
        "scraper:\n  fetcher: curl\n",
        "scraper:\n  collection_page_ratio: 0\n",
        "crawl:\n  timeout: 0\n",
        "classifier:\n  default_category: widget\n",
        "classifier:\n  keyword_cap: 120\n",
        "cache:\n  max_entries: 0\n",
    ])
    def test_validation_errors(self, tmp_path, text):
        manager = ConfigManager(self.write(tmp_path, text))
        manager.load_config()

        with pytest.raises(ConfigurationError):
            manager.validate_config()

    def test_as_dict_requires_load(self):
        with pytest.raises(ConfigurationError):
            ConfigManager("unused.yaml").as_dict()

    def test_as_dict_round_trips_sections(self, tmp_path):
        manager = ConfigManager(self.write(tmp_path, "storage:\n  output_path: /tmp/out\n"))
        manager.load_config()

        data = manager.as_dict()

        assert set(data) == {'scraper', 'crawl', 'classifier', 'cache', 'analytics', 'storage', 'logging'}
        assert data['storage']['output_path'] == "/tmp/out"


class TestVendorProfiles:
    """Test suite for vendor profile parsing and the registry"""

    def test_profile_helpers(self, vendor_profile):
        assert vendor_profile.origin == "https://shop.example.com"
        assert vendor_profile.rate_limit == 0.0
        assert vendor_profile.is_product_url("https://shop.example.com/products/a")
        assert vendor_profile.is_excluded("https://shop.example.com/cart")
        assert vendor_profile.category_for_url("https://shop.example.com/collections/frames") == "frame"
        assert vendor_profile.category_for_url("https://shop.example.com/pages/about") is None

    @pytest.mark.parametrize("change, message", [
        ({'vendor': ''}, "vendor"),
        ({'base_url': 'not a url'}, "base_url"),
        ({'seed_urls': []}, "seed"),
        ({'seed_urls': ['https://elsewhere.example.org/collections/all']}, "not on"),
        ({'field_selectors': {'name': 'h1'}}, "required"),
        ({'field_selectors': {'name': 'h1', 'price': '.price', 'colour': '.c'}}, "unknown field"),
        ({'category_mapping': {'/collections/esc': 'esc'}}, "unknown category"),
        ({'max_pages': 0}, "max_pages"),
        ({'rate_limit_ms': -5}, "non-negative"),
        ({'link_selectors': [1, 2]}, "list of strings"),
    ])
    def test_invalid_profiles(self, vendor_entry, change, message):
        vendor_entry.update(change)

        with pytest.raises(ConfigurationError, match=message):
            parse_vendor_profile(vendor_entry)

    def test_registry_lookup_is_case_insensitive(self, registry):
        assert registry.get("testshop").vendor == "TestShop"
        assert "TESTSHOP" in registry
        assert len(registry) == 1

    def test_unknown_vendor(self, registry):
        with pytest.raises(ConfigurationError):
            registry.get("Nowhere")

    def test_duplicate_vendor(self, registry, vendor_profile):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            registry.register(vendor_profile)

    def test_shipped_vendors_file(self):
        registry = VendorRegistry.from_file(str(CONFIG_DIR / "vendors.yaml"))

        assert registry.list_vendors() == ["GetFPV", "RDQ"]
        assert registry.get("rdq").category_for_url(
            "https://www.racedayquads.com/collections/all-props"
        ) == "prop"

    def test_json_vendors_file(self, tmp_path, vendor_entry):
        path = tmp_path / "vendors.json"
        path.write_text(json.dumps([vendor_entry]), encoding='utf-8')

        assert VendorRegistry.from_file(str(path)).list_vendors() == ["TestShop"]

    def test_missing_vendors_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            VendorRegistry.from_file(str(tmp_path / "missing.yaml"))

    def test_vendors_file_must_hold_list(self, tmp_path):
        path = tmp_path / "vendors.yaml"
        path.write_text("vendors: nope\n", encoding='utf-8')

        with pytest.raises(ConfigurationError, match="list of vendors"):
            VendorRegistry.from_file(str(path))


class TestLoggingManager:
    """Test suite for LoggingManager"""

    @pytest.fixture
    def manager(self):
        manager = LoggingManager()
        yield manager
        manager.close()
        logger = logging.getLogger(LOGGER_NAME)
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    def test_parse_size(self, manager):
        assert manager._parse_size("10KB") == 10 * 1024
        assert manager._parse_size("100MB") == 100 * 1024 * 1024
        assert manager._parse_size("2048") == 2048

    def test_setup_writes_log_file(self, manager, tmp_path):
        log_file = tmp_path / "logs" / "run.log"

        manager.setup_logging("DEBUG", str(log_file))
        manager.get_logger().debug("classifier ready")
        manager.file_handler.flush()

        assert manager.is_configured()
        assert "classifier ready" in log_file.read_text(encoding='utf-8')

    def test_repeated_setup_does_not_duplicate_handlers(self, manager, tmp_path):
        manager.setup_logging("INFO", str(tmp_path / "a.log"))
        manager.setup_logging("INFO", str(tmp_path / "b.log"))

        assert len(manager.get_logger().handlers) == 2

    def test_summary_report(self, manager):
        report = manager.generate_summary_report({
            'vendor': 'TestShop',
            'state': 'completed',
            'pages_fetched': 10,
            'max_pages': 20,
            'products_emitted': 6,
            'category_stats': {'motor': 4, 'frame': 2},
            'errors': [f"https://shop.example.com/products/{i}" for i in range(12)]
        })

        assert "CRAWL SUMMARY: TestShop" in report
        assert "Fetched: 10 of 20 (50.0% of budget)" in report
        assert "Motor: 4 products" in report
        assert "... and 2 more" in report
