"""
Command Line Argument Parsing for the Drone Parts Scraper

Handles command line arguments for choosing what to run (one vendor, all
vendors, a single classification), configuration overrides and run limits.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from partscraper import __version__


class CLIManager:
    """
    Command line interface manager for the scraper

    Handles command line arguments for action selection and configuration
    overrides. Provides validation and help documentation.
    """

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all options

        Returns:
            Configured argument parser
        """
        parser = argparse.ArgumentParser(
            prog="partscraper",
            description="Drone parts vendor crawler and product classifier",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
            epilog=self._get_epilog()
        )

        # Action selection
        action_group = parser.add_argument_group("Actions")
        action = action_group.add_mutually_exclusive_group()
        action.add_argument(
            "--vendor",
            help="Crawl a single configured vendor"
        )
        action.add_argument(
            "--all-vendors",
            action="store_true",
            help="Crawl every configured vendor in turn"
        )
        action.add_argument(
            "--list-vendors",
            action="store_true",
            help="List configured vendors and exit"
        )
        action.add_argument(
            "--classify",
            metavar="NAME",
            help="Classify a single product name and print the result as JSON"
        )
        action_group.add_argument(
            "--description",
            default="",
            help="Product description used together with --classify"
        )

        # Configuration options
        config_group = parser.add_argument_group("Configuration")
        config_group.add_argument(
            "--config",
            help="Path to configuration file (default: config/config.yaml, created if missing)"
        )
        config_group.add_argument(
            "--vendors-file",
            help="Path to vendor profiles file (YAML or JSON)"
        )
        config_group.add_argument(
            "--log-level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Logging level"
        )
        config_group.add_argument(
            "--output",
            help="Directory for saved product JSON files"
        )

        # Run limits
        run_group = parser.add_argument_group("Run Options")
        run_group.add_argument(
            "--max-pages",
            type=int,
            help="Page budget per vendor run"
        )
        run_group.add_argument(
            "--batch-size",
            type=int,
            help="Number of product pages fetched concurrently"
        )
        run_group.add_argument(
            "--fetcher",
            choices=["browser", "http"],
            help="Page fetcher: headless browser or plain HTTP"
        )
        run_group.add_argument(
            "--timeout",
            type=int,
            help="Page load timeout in seconds"
        )

        # Version and examples
        parser.add_argument(
            "--version",
            action="version",
            version=f"partscraper v{__version__}"
        )

        parser.add_argument(
            "--examples",
            action="store_true",
            help="Show usage examples and exit"
        )

        return parser

    def _get_epilog(self) -> str:
        """
        Get epilog text for help message

        Returns:
            Formatted epilog text
        """
        return """
Examples:
  # List configured vendors
  python -m partscraper --list-vendors

  # Crawl one vendor with a 50 page budget
  python -m partscraper --vendor GetFPV --max-pages 50

  # Crawl every vendor with the plain HTTP fetcher
  python -m partscraper --all-vendors --fetcher http

  # Classify a single product
  python -m partscraper --classify "Tattu 1550mAh 4S 75C LiPo Battery"

  # Run with custom configuration and output directory
  python -m partscraper --config my_config.yaml --vendor RDQ --output ./catalog

Notes:
  - Products are saved to <output>/<category>/<name>_<timestamp>.json
  - Vendor profiles are read from config/vendors.yaml unless --vendors-file is given
  - SCRAPER_MAX_PAGES, SCRAPER_BATCH_SIZE, SCRAPER_FETCHER and LOG_LEVEL override the config file
"""

    def parse_arguments(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """
        Parse command line arguments

        Args:
            args: Command line arguments (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        parsed_args = self.parser.parse_args(args)
        self.validate_arguments(parsed_args)
        return parsed_args

    def validate_arguments(self, args: argparse.Namespace) -> bool:
        """
        Validate parsed arguments for consistency

        Args:
            args: Parsed arguments namespace

        Returns:
            True if arguments are valid
        """
        if args.examples:
            return True

        if not (args.vendor or args.all_vendors or args.list_vendors or args.classify):
            self.parser.error("One of --vendor, --all-vendors, --list-vendors or --classify is required")

        if args.description and not args.classify:
            self.parser.error("--description can only be used with --classify")

        if args.config and not Path(args.config).is_file():
            self.parser.error(f"Configuration file not found: {args.config}")

        if args.vendors_file and not Path(args.vendors_file).is_file():
            self.parser.error(f"Vendors file not found: {args.vendors_file}")

        if args.max_pages is not None and args.max_pages <= 0:
            self.parser.error("Maximum pages must be greater than 0")

        if args.batch_size is not None and args.batch_size <= 0:
            self.parser.error("Batch size must be greater than 0")

        if args.timeout is not None and args.timeout <= 0:
            self.parser.error("Timeout must be greater than 0")

        return True

    def print_help(self) -> None:
        """Print help message"""
        self.parser.print_help()

    def get_usage_examples(self) -> str:
        """
        Get usage examples for documentation

        Returns:
            Formatted usage examples
        """
        return self._get_epilog()
