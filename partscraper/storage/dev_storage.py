"""
Local JSON Product Store

Writes accepted products to the local file system, one JSON file per
product, grouped in a directory per component category.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List

import aiofiles

from partscraper.core.base import ProductSinkInterface, ScrapedProduct, ComponentCategory, StorageError
from partscraper.core.logging import get_logger


class JsonProductStore(ProductSinkInterface):
    """
    Product sink writing <output>/<category>/<slug>_<timestamp>.json
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.logger = get_logger()
        storage = config.get('storage', {})
        output_path = storage.get('output_path', './products') if isinstance(storage, dict) else storage.output_path
        self.base_path = Path(output_path)
        self.categories = ComponentCategory.values()
        self.saved_count = 0

    async def initialize(self) -> None:
        """Initialize the component"""
        self.logger.info(f"Initializing product store at {self.base_path}")
        self.create_category_structure()
        self._initialized = True

    async def cleanup(self) -> None:
        """Clean up resources"""
        self.logger.info(f"Product store wrote {self.saved_count} products")

    def create_category_structure(self) -> None:
        """Create one directory per category"""
        for category in self.categories:
            (self.base_path / category).mkdir(parents=True, exist_ok=True)

    async def save_product(self, product: ScrapedProduct) -> str:
        """
        Save a single product

        Args:
            product: Product to save

        Returns:
            Product id (file stem)
        """
        if product.category not in self.categories:
            raise StorageError(f"Unknown category '{product.category}' for {product.url}")

        category_dir = self.base_path / product.category
        category_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
        product_id = f"{self._create_safe_filename(product.name)}_{timestamp}"
        product_path = category_dir / f"{product_id}.json"

        try:
            async with aiofiles.open(product_path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(product.to_dict(), indent=2, ensure_ascii=False))
        except OSError as e:
            raise StorageError(f"Failed to write {product_path}: {e}") from e

        self.saved_count += 1
        self.logger.debug(f"Saved product to {product_path}")
        return product_id

    async def save_products(self, products: List[ScrapedProduct]) -> List[str]:
        """Save products in order, returning their ids"""
        ids = []
        for product in products:
            ids.append(await self.save_product(product))
        if ids:
            self.logger.info(f"Saved {len(ids)} products to {self.base_path}")
        return ids

    def get_storage_stats(self) -> Dict[str, Any]:
        """
        Get storage statistics

        Returns:
            Storage statistics
        """
        stats = {
            'base_path': str(self.base_path),
            'categories': {},
            'total_products': 0
        }

        for category in self.categories:
            category_dir = self.base_path / category
            count = len(list(category_dir.glob('*.json'))) if category_dir.exists() else 0
            stats['categories'][category] = count
            stats['total_products'] += count

        return stats

    def _create_safe_filename(self, text: str) -> str:
        """Create safe filename from text"""
        safe = "".join(c if c.isalnum() else "_" for c in text.lower())
        # Collapse runs of underscores left by punctuation
        safe = "_".join(part for part in safe.split("_") if part)
        safe = safe[:50]
        if not safe:
            safe = "product"
        return safe
