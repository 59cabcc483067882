"""
Utilities for the Drone Parts Scraper: URL normalization and the
component factory.
"""
