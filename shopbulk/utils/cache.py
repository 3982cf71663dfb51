"""Product snapshot cache for shopbulk.

The cache stores the product universe (products, variants and inventory
item ids) as a JSON file so workflows do not refetch it on every call.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from shopbulk.core.exceptions import CacheMissingError

logger = logging.getLogger("shopbulk.cache")


class SnapshotCache:
    """JSON file cache of product snapshots."""

    def __init__(self, path: Union[str, Path], max_age_seconds: float = 3600.0) -> None:
        self.path = Path(path)
        self.max_age_seconds = max_age_seconds

    def exists(self) -> bool:
        return self.path.exists()

    def _age_seconds(self) -> Optional[float]:
        if not self.path.exists():
            return None
        return time.time() - self.path.stat().st_mtime

    def is_valid(self) -> bool:
        """True if the cache exists and is younger than ``max_age_seconds``."""

        age = self._age_seconds()
        return age is not None and age < self.max_age_seconds

    def age_minutes(self) -> Optional[float]:
        age = self._age_seconds()
        if age is None:
            return None
        return round(age / 60, 1)

    def load(self) -> List[Dict[str, Any]]:
        """Load cached products.

        Raises:
            CacheMissingError: If the cache file does not exist.
        """

        if not self.path.exists():
            raise CacheMissingError("Inventory cache not found. Please refresh cache first.")

        products = json.loads(self.path.read_text(encoding="utf-8"))
        logger.info("Cache loaded: %d products (age: %s min)", len(products), self.age_minutes())
        return products

    def save(self, products: List[Dict[str, Any]]) -> int:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(products, indent=2), encoding="utf-8")
        logger.info("Cache saved: %d products", len(products))
        return len(products)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info("Cache cleared")
