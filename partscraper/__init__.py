"""
Drone Parts Scraper

Crawls FPV drone parts vendors and turns their product pages into
categorized catalog records. Built on crawl4ai for page rendering, with a
multi-stage product classifier and a result cache.

Features:
- Budgeted, deduplicated crawling of vendor collection and product pages
- Selector-driven product field extraction with title and price cleanup
- Five-stage classification into motor, frame, stack, camera, prop and battery
- Category-specific specification mining
- Classification result cache and accuracy analytics
- Configurable via YAML/JSON and environment variables
"""

__version__ = "0.1.0"
