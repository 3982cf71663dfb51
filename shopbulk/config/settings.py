"""Runtime settings for shopbulk, read from the environment.

Values come from process environment variables; ``load_dotenv()`` is called
by the application entrypoint so a local ``.env`` file works as well.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict


@dataclass(frozen=True)
class Settings:
    """Shopify connection and local file settings."""

    shop: str
    access_token: str
    api_version: str
    cache_file: str
    cache_max_age_seconds: float
    csv_file: str
    http_timeout: float

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            shop=os.getenv("SHOPIFY_SHOP", "your-shop.myshopify.com"),
            access_token=os.getenv("SHOPIFY_ACCESS_TOKEN", "your-access-token"),
            api_version=os.getenv("SHOPIFY_API_VERSION", "2025-07"),
            cache_file=os.getenv("SHOPBULK_CACHE_FILE", "inventory_cache.json"),
            cache_max_age_seconds=float(os.getenv("SHOPBULK_CACHE_MAX_AGE_SECONDS", "3600")),
            csv_file=os.getenv("SHOPBULK_CSV_FILE", "inventory_update.csv"),
            http_timeout=float(os.getenv("SHOPBULK_HTTP_TIMEOUT", "60")),
        )

    @property
    def graphql_url(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read once from the environment."""

    return Settings.from_env()
