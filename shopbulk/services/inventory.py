"""Inventory workflows: tracking, quantities, and CSV-driven updates."""

from __future__ import annotations

import csv
import io
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from shopbulk.adapters.remote_api import RemoteMutationAPI
from shopbulk.config import bulk_limits
from shopbulk.controllers.adaptive_batch import EngineConfig, run_adaptive_batch
from shopbulk.core.scheduler import Scheduler
from shopbulk.models.batch import Operation, RunResult
from shopbulk.services.mutations import (
    INVENTORY_ENABLE_TRACKING,
    INVENTORY_SET_AVAILABLE,
    INVENTORY_SET_ON_HAND,
    MutationKind,
    enable_tracking_operation,
    set_quantity_operation,
)
from shopbulk.services.shopify import ShopifyClient
from shopbulk.utils.cache import SnapshotCache
from shopbulk.utils.logger import get_logger


logger = get_logger("shopbulk.inventory")

PRODUCT_GID_PREFIX = "gid://shopify/Product/"
CSV_PRODUCT_COLUMNS = ("product_number", "product", "id", "Product", "productNumber")


def iter_variants(products: Sequence[Mapping[str, Any]]) -> Iterator[Tuple[Mapping[str, Any], Mapping[str, Any]]]:
    """Yield ``(product, variant_node)`` pairs from cached product snapshots."""

    for product in products:
        for edge in ((product.get("variants") or {}).get("edges")) or []:
            node = edge.get("node") if isinstance(edge, Mapping) else None
            if node:
                yield product, node


def _inventory_item_id(variant: Mapping[str, Any]) -> Optional[str]:
    return (variant.get("inventoryItem") or {}).get("id")


def count_variants(products: Sequence[Mapping[str, Any]]) -> int:
    return sum(1 for _ in iter_variants(products))


def random_quantity(rng: Optional[random.Random] = None) -> int:
    rng = rng or random
    return rng.randint(bulk_limits.MIN_RANDOM_QUANTITY, bulk_limits.MAX_RANDOM_QUANTITY)


def prepare_quantity_operations(
    products: Sequence[Mapping[str, Any]],
    location_id: str,
    kind: MutationKind = INVENTORY_SET_ON_HAND,
    rng: Optional[random.Random] = None,
) -> List[Operation]:
    """One quantity operation per variant, with a random quantity."""

    operations: List[Operation] = []
    for _product, variant in iter_variants(products):
        item_id = _inventory_item_id(variant)
        if item_id:
            operations.append(set_quantity_operation(kind.name, item_id, location_id, random_quantity(rng)))
    return operations


async def refresh_cache(cache: SnapshotCache, client: ShopifyClient) -> int:
    """Refetch every product from Shopify and overwrite the snapshot cache."""

    logger.info("Refreshing inventory cache")
    products = await client.fetch_all_products()
    return cache.save(products)


async def load_products(
    cache: SnapshotCache,
    client: ShopifyClient,
    use_cache: bool = True,
) -> List[Dict[str, Any]]:
    """Products from a fresh cache, or fetched (and cached) from Shopify."""

    if use_cache and cache.is_valid():
        return cache.load()

    logger.info("Cache unavailable or stale; fetching products from Shopify")
    products = await client.fetch_all_products()
    cache.save(products)
    return products


async def _run_kind(
    operations: List[Operation],
    kind: MutationKind,
    remote: RemoteMutationAPI,
    label: str,
    config: Optional[EngineConfig],
    scheduler: Optional[Scheduler],
) -> RunResult:
    return await run_adaptive_batch(
        operations,
        remote,
        kind.max_per_call,
        kind.max_aliases,
        kind.per_call_cost,
        config=config,
        scheduler=scheduler,
        label=label,
    )


async def enable_tracking(
    products: Sequence[Mapping[str, Any]],
    remote: RemoteMutationAPI,
    config: Optional[EngineConfig] = None,
    scheduler: Optional[Scheduler] = None,
) -> RunResult:
    """Turn on inventory tracking for every cached inventory item.

    A round is only sized when the budget covers at least one full aliased
    call, so by default this workflow waits in the stuck state rather than
    overdrawing the bucket.
    """

    logger.info("Starting inventory tracking enablement")
    operations = [
        enable_tracking_operation(item_id)
        for _product, variant in iter_variants(products)
        if (item_id := _inventory_item_id(variant))
    ]
    return await _run_kind(
        operations,
        INVENTORY_ENABLE_TRACKING,
        remote,
        "ENABLE_TRACKING",
        config or EngineConfig(require_full_budget=True),
        scheduler,
    )


async def update_on_hand_quantities(
    products: Sequence[Mapping[str, Any]],
    location_id: str,
    remote: RemoteMutationAPI,
    config: Optional[EngineConfig] = None,
    scheduler: Optional[Scheduler] = None,
    rng: Optional[random.Random] = None,
) -> RunResult:
    logger.info("Starting on-hand quantity updates")
    operations = prepare_quantity_operations(products, location_id, INVENTORY_SET_ON_HAND, rng)
    return await _run_kind(operations, INVENTORY_SET_ON_HAND, remote, "SET_ONHAND", config, scheduler)


async def set_available_quantities(
    products: Sequence[Mapping[str, Any]],
    location_id: str,
    remote: RemoteMutationAPI,
    config: Optional[EngineConfig] = None,
    scheduler: Optional[Scheduler] = None,
    rng: Optional[random.Random] = None,
) -> RunResult:
    logger.info("Starting available quantity updates")
    operations = prepare_quantity_operations(products, location_id, INVENTORY_SET_AVAILABLE, rng)
    return await _run_kind(operations, INVENTORY_SET_AVAILABLE, remote, "SET_AVAILABLE", config, scheduler)


@dataclass
class FullUpdateResult:
    """Both phases of a full inventory update."""

    total_products: int
    total_variants: int
    location_id: str
    enable_tracking: RunResult
    update_quantities: RunResult


async def full_inventory_update(
    cache: SnapshotCache,
    client: ShopifyClient,
    remote: RemoteMutationAPI,
    use_cache: bool = True,
    config: Optional[EngineConfig] = None,
    scheduler: Optional[Scheduler] = None,
) -> FullUpdateResult:
    """Enable tracking, then set random on-hand quantities, for every variant.

    The two phases run back to back; the second starts only after every
    tracking batch has reached its final result.
    """

    products = await load_products(cache, client, use_cache)
    location_id = await client.get_first_location_id()
    logger.info("Full inventory update over %d products", len(products))

    tracking = await enable_tracking(products, remote, scheduler=scheduler)
    quantities = await update_on_hand_quantities(products, location_id, remote, config, scheduler)

    return FullUpdateResult(
        total_products=len(products),
        total_variants=count_variants(products),
        location_id=location_id,
        enable_tracking=tracking,
        update_quantities=quantities,
    )


@dataclass
class CsvUpdatePlan:
    """Outcome of matching CSV rows against the product snapshot.

    Attributes:
        total_records: Rows read from the CSV.
        products_found: Rows whose product exists in the snapshot.
        products_not_found: Rows whose product is unknown.
        skipped_rows: Rows without a product reference or integer quantity.
        updates: Per-row and per-variant status entries for the response.
        operations: Quantity operations to dispatch.
    """

    total_records: int = 0
    products_found: int = 0
    products_not_found: int = 0
    skipped_rows: int = 0
    updates: List[Dict[str, Any]] = field(default_factory=list)
    operations: List[Operation] = field(default_factory=list)


def parse_inventory_csv(text: str) -> List[Dict[str, str]]:
    """Parse CSV text with a header row, skipping empty lines."""

    reader = csv.DictReader(io.StringIO(text))
    return [row for row in reader if any(isinstance(value, str) and value.strip() for value in row.values())]


def _product_gid(reference: str) -> str:
    reference = reference.strip()
    if reference.startswith(PRODUCT_GID_PREFIX):
        return reference
    return f"{PRODUCT_GID_PREFIX}{reference}"


def plan_csv_updates(
    records: Sequence[Mapping[str, str]],
    products: Sequence[Mapping[str, Any]],
    location_id: str,
) -> CsvUpdatePlan:
    """Match CSV rows to cached products and expand them to variant operations."""

    by_id = {p.get("id"): p for p in products}
    plan = CsvUpdatePlan(total_records=len(records))

    for row in records:
        reference = next((row.get(col) for col in CSV_PRODUCT_COLUMNS if row.get(col)), None)
        try:
            quantity = int(str(row.get("quantity", "")).strip())
        except ValueError:
            quantity = None

        if not reference or quantity is None:
            logger.warning("Skipping invalid row: productId=%s, quantity=%s", reference, row.get("quantity"))
            plan.skipped_rows += 1
            continue

        product = by_id.get(_product_gid(reference))
        if product is None:
            logger.warning("Product not found: %s", reference)
            plan.updates.append(
                {
                    "productId": reference,
                    "status": "not found",
                    "message": f"Product ID {reference} not found in cache",
                }
            )
            plan.products_not_found += 1
            continue

        plan.products_found += 1
        for _product, variant in iter_variants([product]):
            item_id = _inventory_item_id(variant)
            if not item_id:
                continue
            plan.updates.append(
                {
                    "inventoryItemId": item_id,
                    "productId": reference,
                    "productTitle": product.get("title"),
                    "quantity": quantity,
                    "locationId": location_id,
                    "status": "to update",
                }
            )
            plan.operations.append(
                set_quantity_operation(INVENTORY_SET_ON_HAND.name, item_id, location_id, quantity)
            )

    logger.info(
        "CSV processing summary: %d found, %d not found, %d skipped",
        plan.products_found,
        plan.products_not_found,
        plan.skipped_rows,
    )
    return plan


async def update_from_csv(
    csv_text: str,
    products: Sequence[Mapping[str, Any]],
    location_id: str,
    remote: RemoteMutationAPI,
    config: Optional[EngineConfig] = None,
    scheduler: Optional[Scheduler] = None,
) -> Tuple[CsvUpdatePlan, RunResult]:
    """Apply on-hand quantities listed in a CSV to every matching variant."""

    records = parse_inventory_csv(csv_text)
    logger.info("Processing CSV with %d records", len(records))

    plan = plan_csv_updates(records, products, location_id)
    result = await _run_kind(plan.operations, INVENTORY_SET_ON_HAND, remote, "CSV_UPDATE", config, scheduler)
    return plan, result
