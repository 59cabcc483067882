#!/usr/bin/env python3
"""
Drone Parts Scraper - Main Entry Point

This module serves as the main entry point for the scraper application.
It loads the configuration, sets up logging and runs the selected action.
"""

import sys
import json
import asyncio
from typing import List, Optional

from partscraper.core.base import ScraperError, RunState
from partscraper.core.config import ConfigManager
from partscraper.core.logging import setup_logging, get_logger
from partscraper.core.vendors import VendorRegistry
from partscraper.cli.arguments import CLIManager
from partscraper.utils.component_factory import create_classifier, create_orchestrator


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the scraper"""
    # Parse command line arguments
    cli_manager = CLIManager()
    args = cli_manager.parse_arguments(argv)

    # Handle special flags
    if args.examples:
        print("\nDrone Parts Scraper - Usage Examples\n")
        print(cli_manager.get_usage_examples())
        return 0

    # Load configuration
    config_manager = ConfigManager(args.config)
    try:
        config_manager.load_config()
    except ScraperError as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        return 1

    # Apply command line overrides to configuration
    if args.vendors_file:
        config_manager.scraper_config.vendors_file = args.vendors_file

    if args.max_pages is not None:
        config_manager.scraper_config.max_pages = args.max_pages

    if args.batch_size is not None:
        config_manager.scraper_config.batch_size = args.batch_size

    if args.fetcher:
        config_manager.scraper_config.fetcher = args.fetcher

    if args.timeout is not None:
        config_manager.crawl_config.timeout = args.timeout

    if args.output:
        config_manager.storage_config.output_path = args.output

    # Set up logging
    logging_config = config_manager.logging_config
    setup_logging(
        level=args.log_level or logging_config.level,
        log_file=logging_config.file,
        max_size=logging_config.max_size,
        backup_count=logging_config.backup_count
    )
    logger = get_logger()

    try:
        config_manager.validate_config()
    except ScraperError as e:
        logger.error(f"Configuration validation failed: {e}")
        return 1

    config = config_manager.as_dict()

    if args.classify:
        classifier = create_classifier(config)
        result = classifier.classify_product(args.classify, args.description)
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    try:
        registry = VendorRegistry.from_file(config_manager.scraper_config.vendors_file)
    except ScraperError as e:
        logger.error(f"Failed to load vendor profiles: {e}")
        return 1

    if args.list_vendors:
        print("\nConfigured vendors:")
        for i, vendor in enumerate(registry.list_vendors(), 1):
            profile = registry.get(vendor)
            print(f"{i}. {vendor} ({profile.base_url}, {len(profile.seed_urls)} seeds)")
        return 0

    # Initialize and run the crawler
    try:
        orchestrator = create_orchestrator(config, registry=registry)
        await orchestrator.initialize()
        try:
            if args.vendor:
                products = await orchestrator.crawl_vendor(args.vendor, args.max_pages)
                logger.info(f"Crawl completed: {len(products)} products from {args.vendor}")
                return 0

            results = await orchestrator.crawl_all_vendors(args.max_pages)
        finally:
            await orchestrator.cleanup()

        completed = [
            vendor for vendor, report in orchestrator.reports.items()
            if report.state == RunState.COMPLETED
        ]
        total = sum(len(products) for products in results.values())
        logger.info(f"Crawl completed: {total} products, {len(completed)}/{len(results)} vendors successful")
        return 0 if completed else 1

    except ScraperError as e:
        logger.error(f"Scraper execution failed: {e}")
        return 1


def run() -> None:
    """Console script entry point"""
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nScraper interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    run()
