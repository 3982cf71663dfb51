"""Variant price workflows.

Two paths update every cached variant to one price:

- ``update_prices``: live, through the adaptive batch engine, one aliased
  ``productVariantsBulkUpdate`` per product segment per call.
- ``update_prices_bulk``: a single remote bulk job, one JSONL line per
  product per at most 250 variants.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from shopbulk.adapters.remote_api import RemoteMutationAPI
from shopbulk.controllers.adaptive_batch import EngineConfig, run_adaptive_batch
from shopbulk.controllers.bulk_job import run_bulk_job
from shopbulk.core.partitioner import partition
from shopbulk.core.scheduler import Scheduler
from shopbulk.models.batch import Operation, RunResult
from shopbulk.models.bulk_job import BulkJob
from shopbulk.services.inventory import iter_variants
from shopbulk.services.mutations import VARIANT_PRICE_UPDATE, price_operation
from shopbulk.utils.logger import get_logger


logger = get_logger("shopbulk.prices")

DEFAULT_PRICE = "100.00"


def build_price_operations(products: Sequence[Mapping[str, Any]], price: str = DEFAULT_PRICE) -> List[Operation]:
    return [
        price_operation(str(product.get("id")), str(variant.get("id")), price)
        for product, variant in iter_variants(products)
        if product.get("id") and variant.get("id")
    ]


def build_price_records(operations: Sequence[Operation]) -> List[Dict[str, Any]]:
    """Group price operations into bulk mutation variable records."""

    records: List[Dict[str, Any]] = []
    for batch in partition(operations, VARIANT_PRICE_UPDATE.max_per_call, 1):
        records.append(
            {
                "productId": batch.operations[0].payload["productId"],
                "variants": [{"id": op.target_id, "price": op.payload["price"]} for op in batch.operations],
            }
        )
    return records


async def update_prices(
    products: Sequence[Mapping[str, Any]],
    remote: RemoteMutationAPI,
    price: str = DEFAULT_PRICE,
    config: Optional[EngineConfig] = None,
    scheduler: Optional[Scheduler] = None,
) -> RunResult:
    """Set every variant's price through adaptive concurrent rounds."""

    operations = build_price_operations(products, price)
    logger.info("Updating %d variant price(s) to %s", len(operations), price)
    return await run_adaptive_batch(
        operations,
        remote,
        VARIANT_PRICE_UPDATE.max_per_call,
        VARIANT_PRICE_UPDATE.max_aliases,
        VARIANT_PRICE_UPDATE.per_call_cost,
        config=config,
        scheduler=scheduler,
        label="PRICE_UPDATE",
    )


async def update_prices_bulk(
    products: Sequence[Mapping[str, Any]],
    remote: RemoteMutationAPI,
    price: str = DEFAULT_PRICE,
    staging_dir: Optional[Path] = None,
) -> Dict[str, Any]:
    """Submit every variant price as one remote bulk job.

    Returns:
        A dict with the started ``job``, ``total_variants`` and
        ``total_lines``.

    Raises:
        BulkJobError: Staging, upload or job start failed, or there is
                      nothing to update.
    """

    operations = build_price_operations(products, price)
    records = build_price_records(operations)
    logger.info("Bulk price update: %d variant(s) in %d line(s)", len(operations), len(records))

    job: BulkJob = await run_bulk_job(
        records,
        VARIANT_PRICE_UPDATE.bulk_template,
        remote,
        filename="bulk_price_update.jsonl",
        staging_dir=staging_dir,
    )
    return {"job": job, "total_variants": len(operations), "total_lines": len(records)}
