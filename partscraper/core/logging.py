"""
Logging System for the Drone Parts Scraper

Provides logging with file rotation, console output and structured
context for crawl runs and classification diagnostics.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict, Any
import json


LOGGER_NAME = 'partscraper'


class LoggingManager:
    """
    Centralized logging manager with file rotation and structured logging
    """

    def __init__(self):
        self.logger: Optional[logging.Logger] = None
        self.file_handler: Optional[logging.handlers.RotatingFileHandler] = None
        self.console_handler: Optional[logging.StreamHandler] = None
        self._setup_complete = False

    def setup_logging(self, level: str = "INFO", log_file: str = "./logs/partscraper.log",
                      max_size: str = "100MB", backup_count: int = 5) -> None:
        """
        Set up logging system with file rotation and console output

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Path to log file
            max_size: Maximum size before rotation (e.g., "100MB")
            backup_count: Number of backup files to keep
        """
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        max_bytes = self._parse_size(max_size)

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(getattr(logging, level.upper()))

        # Handlers from an earlier setup would duplicate every line
        self.close()
        self.logger.handlers.clear()

        detailed_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )

        self.file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
        )
        self.file_handler.setLevel(logging.DEBUG)
        self.file_handler.setFormatter(detailed_formatter)
        self.logger.addHandler(self.file_handler)

        self.console_handler = logging.StreamHandler(sys.stdout)
        self.console_handler.setLevel(getattr(logging, level.upper()))
        self.console_handler.setFormatter(console_formatter)
        self.logger.addHandler(self.console_handler)

        self._setup_complete = True
        self.logger.info("Logging system initialized")

    def _parse_size(self, size_str: str) -> int:
        """Parse size string like '100MB' to bytes"""
        size_str = size_str.upper().strip()

        if size_str.endswith('KB'):
            return int(size_str[:-2]) * 1024
        elif size_str.endswith('MB'):
            return int(size_str[:-2]) * 1024 * 1024
        elif size_str.endswith('GB'):
            return int(size_str[:-2]) * 1024 * 1024 * 1024
        else:
            return int(size_str)

    def get_logger(self) -> logging.Logger:
        """
        Get the package logger.

        Before setup_logging() runs this is the plain 'partscraper' logger,
        which propagates to whatever the host application configured.
        """
        if not self._setup_complete or not self.logger:
            return logging.getLogger(LOGGER_NAME)
        return self.logger

    def is_configured(self) -> bool:
        return self._setup_complete

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        """Log an error with context information"""
        context_str = ""
        if context:
            context_str = f" | Context: {json.dumps(context, default=str)}"

        self.get_logger().error(f"Error: {str(error)}{context_str}", exc_info=True)

    def log_warning(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Log a warning with optional context"""
        context_str = ""
        if context:
            context_str = f" | Context: {json.dumps(context, default=str)}"

        self.get_logger().warning(f"{message}{context_str}")

    def log_progress(self, current: int, total: int, message: str = "") -> None:
        """Log progress information"""
        percentage = (current / total) * 100 if total > 0 else 0
        progress_msg = f"Progress: {current}/{total} ({percentage:.1f}%)"
        if message:
            progress_msg += f" - {message}"

        self.get_logger().info(progress_msg)

    def generate_summary_report(self, stats: Dict[str, Any]) -> str:
        """Generate and log a summary report for a crawl run"""
        pages_fetched = stats.get('pages_fetched', 0)
        max_pages = stats.get('max_pages', 0)
        budget_used = (pages_fetched / max_pages) * 100 if max_pages else 0

        report_lines = [
            "=" * 60,
            f"CRAWL SUMMARY: {stats.get('vendor', 'Unknown')}",
            "=" * 60,
            f"State: {stats.get('state', 'Unknown')}",
            f"Start Time: {stats.get('start_time', 'Unknown')}",
            f"End Time: {stats.get('end_time', 'Unknown')}",
            f"Total Duration: {stats.get('duration', 'Unknown')}",
            "",
            "PAGES:",
            f"  Fetched: {pages_fetched} of {max_pages} ({budget_used:.1f}% of budget)",
            f"  Collection Pages: {stats.get('collection_pages', 0)}",
            f"  Product Pages: {stats.get('product_pages', 0)}",
            "",
            "PRODUCTS:",
            f"  Emitted: {stats.get('products_emitted', 0)}",
            f"  Dropped: {stats.get('items_dropped', 0)}",
        ]

        category_stats = stats.get('category_stats', {})
        if category_stats:
            report_lines.extend(["", "CATEGORIES:"])
            for category, count in sorted(category_stats.items()):
                report_lines.append(f"  {category.capitalize()}: {count} products")

        errors = stats.get('errors', [])
        if errors:
            report_lines.extend([
                "",
                "FAILED URLS:",
            ])
            for error in errors[:10]:
                report_lines.append(f"  - {error}")

            if len(errors) > 10:
                report_lines.append(f"  ... and {len(errors) - 10} more")

        report_lines.append("=" * 60)

        report = "\n".join(report_lines)
        self.get_logger().info(f"Crawl Summary:\n{report}")

        return report

    def close(self) -> None:
        """Close logging handlers"""
        if self.file_handler:
            self.file_handler.close()
        if self.console_handler:
            self.console_handler.close()


# Global logging manager instance
logging_manager = LoggingManager()


def get_logger() -> logging.Logger:
    """Get the global logger instance"""
    return logging_manager.get_logger()


def setup_logging(level: str = "INFO", log_file: str = "./logs/partscraper.log",
                  max_size: str = "100MB", backup_count: int = 5) -> None:
    """Set up global logging system"""
    logging_manager.setup_logging(level, log_file, max_size, backup_count)
