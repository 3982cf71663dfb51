"""Dummy product creation through remote bulk jobs."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from shopbulk.adapters.remote_api import RemoteMutationAPI
from shopbulk.controllers.bulk_job import run_bulk_job
from shopbulk.models.bulk_job import BulkJob
from shopbulk.services.mutations import PRODUCT_CREATE_MUTATION
from shopbulk.utils.logger import get_logger


logger = get_logger("shopbulk.products")

DEFAULT_PRODUCT_COUNT = 30000
DUMMY_TITLE_PATTERN = re.compile(r"Dummy Product (\d+)")


def dummy_product_records(count: int, start: int = 1) -> List[Dict[str, Any]]:
    """One ``productCreate`` variables record per product, numbered from ``start``."""

    return [
        {
            "input": {
                "title": f"Dummy Product {n}",
                "descriptionHtml": f"<strong>Dummy description for product {n}</strong>",
                "vendor": "DummyVendor",
                "productType": "DummyType",
            }
        }
        for n in range(start, start + count)
    ]


def highest_dummy_number(products: Sequence[Mapping[str, Any]]) -> int:
    """Largest N among ``Dummy Product N`` titles, or 0 when there are none."""

    highest = 0
    for product in products:
        match = DUMMY_TITLE_PATTERN.search(str(product.get("title") or ""))
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


async def create_products(
    remote: RemoteMutationAPI,
    count: int = DEFAULT_PRODUCT_COUNT,
    start: int = 1,
    staging_dir: Optional[Path] = None,
) -> BulkJob:
    logger.info("Creating %d dummy product(s) starting at %d", count, start)
    return await run_bulk_job(
        dummy_product_records(count, start),
        PRODUCT_CREATE_MUTATION,
        remote,
        filename="bulk_product_create.jsonl",
        staging_dir=staging_dir,
    )


async def create_more_products(
    products: Sequence[Mapping[str, Any]],
    remote: RemoteMutationAPI,
    count: int = DEFAULT_PRODUCT_COUNT,
    staging_dir: Optional[Path] = None,
) -> Dict[str, Any]:
    """Create ``count`` more products, continuing after the highest number seen.

    Returns:
        A dict with the started ``job`` and the ``start`` and ``end``
        numbers (inclusive) of the new products.
    """

    start = highest_dummy_number(products) + 1
    job = await create_products(remote, count=count, start=start, staging_dir=staging_dir)
    return {"job": job, "start": start, "end": start + count - 1}


async def get_bulk_operation_status(remote: RemoteMutationAPI) -> Optional[BulkJob]:
    return await remote.get_job_status()
