"""
Command Line Interface for the Drone Parts Scraper

This package provides command line argument parsing and validation
for the scraper application. It handles action selection and
configuration overrides.

Classes:
    CLIManager: Command line interface manager for the scraper
"""

from partscraper.cli.arguments import CLIManager

__all__ = ['CLIManager']
