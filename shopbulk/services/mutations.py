"""Shopify mutation kinds driven by the batch engine.

Each ``MutationKind`` knows how to turn one ``Batch`` into one GraphQL
request and how to find item-level ``userErrors`` in the response. Limits
and cost estimates are declared here and handed to the engine by the
workflows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from shopbulk.config import bulk_limits
from shopbulk.models.batch import Batch, Operation

RequestBuilder = Callable[[Batch], Tuple[str, Optional[Dict[str, Any]]]]
UserErrorExtractor = Callable[[Dict[str, Any]], List[Dict[str, Any]]]


INVENTORY_SET_ON_HAND_MUTATION = """
mutation inventorySetOnHandQuantities($input: InventorySetOnHandQuantitiesInput!) {
  inventorySetOnHandQuantities(input: $input) {
    userErrors { field message }
  }
}
"""

INVENTORY_SET_QUANTITIES_MUTATION = """
mutation inventorySetQuantities($input: InventorySetQuantitiesInput!) {
  inventorySetQuantities(input: $input) {
    inventoryAdjustmentGroup { createdAt reason }
    userErrors { field message }
  }
}
"""

PRODUCT_VARIANTS_BULK_UPDATE_MUTATION = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants { id price }
    userErrors { field message }
  }
}
"""

PRODUCT_CREATE_MUTATION = """
mutation productCreate($input: ProductInput!) {
  productCreate(input: $input) {
    product { id }
    userErrors { field message }
  }
}
"""


@dataclass(frozen=True)
class MutationKind:
    """A remote mutation the engine can drive.

    Attributes:
        name: Registry name, matched against ``Operation.kind``.
        max_per_call: Item limit of one call.
        max_aliases: Aliased sub-mutations allowed in one call.
        per_call_cost: Fixed cost estimate per call, or None to estimate
                       from the operations' own costs.
        build_request: Batch -> (GraphQL document, variables).
        extract_user_errors: Response ``data`` -> item-level errors.
        bulk_template: Mutation document used for bulk jobs, if supported.
    """

    name: str
    max_per_call: int
    max_aliases: int
    per_call_cost: Optional[float]
    build_request: RequestBuilder
    extract_user_errors: UserErrorExtractor
    bulk_template: Optional[str] = None


def _field_user_errors(field: str) -> UserErrorExtractor:
    def _extract(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        result = (data or {}).get(field) or {}
        return [e for e in (result.get("userErrors") or []) if isinstance(e, dict)]

    return _extract


def _aliased_user_errors(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    errors: List[Dict[str, Any]] = []
    for alias, result in (data or {}).items():
        if not isinstance(result, dict):
            continue
        for err in result.get("userErrors") or []:
            if isinstance(err, dict):
                errors.append({"alias": alias, **err})
    return errors


def _quantity_input(op: Operation) -> Dict[str, Any]:
    return {
        "inventoryItemId": op.payload["inventoryItemId"],
        "locationId": op.payload["locationId"],
        "quantity": op.payload["quantity"],
    }


def build_set_on_hand_request(batch: Batch) -> Tuple[str, Dict[str, Any]]:
    variables = {
        "input": {
            "reason": "correction",
            "setQuantities": [_quantity_input(op) for op in batch.operations],
        }
    }
    return INVENTORY_SET_ON_HAND_MUTATION, variables


def build_set_available_request(batch: Batch) -> Tuple[str, Dict[str, Any]]:
    variables = {
        "input": {
            "name": "available",
            "reason": "correction",
            "quantities": [_quantity_input(op) for op in batch.operations],
            "ignoreCompareQuantity": True,
        }
    }
    return INVENTORY_SET_QUANTITIES_MUTATION, variables


def build_enable_tracking_request(batch: Batch) -> Tuple[str, Dict[str, Any]]:
    """One aliased ``inventoryItemUpdate`` per operation."""

    params: List[str] = []
    parts: List[str] = []
    variables: Dict[str, Any] = {}
    for idx, op in enumerate(batch.operations):
        params.append(f"$id{idx}: ID!")
        parts.append(
            f"  t{idx}: inventoryItemUpdate(id: $id{idx}, input: {{tracked: true}}) {{\n"
            f"    inventoryItem {{ id tracked }}\n"
            f"    userErrors {{ field message }}\n"
            f"  }}"
        )
        variables[f"id{idx}"] = op.target_id

    document = f"mutation enableTracking({', '.join(params)}) {{\n" + "\n".join(parts) + "\n}"
    return document, variables


def build_price_update_request(batch: Batch) -> Tuple[str, Dict[str, Any]]:
    """One aliased ``productVariantsBulkUpdate`` per product segment."""

    params: List[str] = []
    parts: List[str] = []
    variables: Dict[str, Any] = {}
    for idx, segment in enumerate(batch.aliases):
        params.append(f"$productId{idx}: ID!")
        params.append(f"$variants{idx}: [ProductVariantsBulkInput!]!")
        parts.append(
            f"  p{idx}: productVariantsBulkUpdate(productId: $productId{idx}, variants: $variants{idx}) {{\n"
            f"    productVariants {{ id price }}\n"
            f"    userErrors {{ field message }}\n"
            f"  }}"
        )
        variables[f"productId{idx}"] = segment[0].payload["productId"]
        variables[f"variants{idx}"] = [
            {"id": op.target_id, "price": op.payload["price"]} for op in segment
        ]

    document = f"mutation updatePrices({', '.join(params)}) {{\n" + "\n".join(parts) + "\n}"
    return document, variables


INVENTORY_SET_ON_HAND = MutationKind(
    name="inventory_set_on_hand",
    max_per_call=bulk_limits.MAX_ITEMS_PER_CALL,
    max_aliases=1,
    per_call_cost=bulk_limits.SET_QUANTITIES_CALL_COST,
    build_request=build_set_on_hand_request,
    extract_user_errors=_field_user_errors("inventorySetOnHandQuantities"),
)

INVENTORY_SET_AVAILABLE = MutationKind(
    name="inventory_set_available",
    max_per_call=bulk_limits.MAX_ITEMS_PER_CALL,
    max_aliases=1,
    per_call_cost=bulk_limits.SET_QUANTITIES_CALL_COST,
    build_request=build_set_available_request,
    extract_user_errors=_field_user_errors("inventorySetQuantities"),
)

INVENTORY_ENABLE_TRACKING = MutationKind(
    name="inventory_enable_tracking",
    max_per_call=bulk_limits.MAX_ITEMS_PER_CALL,
    max_aliases=bulk_limits.MAX_ALIASES_PER_CALL,
    per_call_cost=None,
    build_request=build_enable_tracking_request,
    extract_user_errors=_aliased_user_errors,
)

VARIANT_PRICE_UPDATE = MutationKind(
    name="variant_price_update",
    max_per_call=bulk_limits.MAX_ITEMS_PER_CALL,
    max_aliases=1,
    per_call_cost=bulk_limits.PRICE_UPDATE_CALL_COST,
    build_request=build_price_update_request,
    extract_user_errors=_aliased_user_errors,
    bulk_template=PRODUCT_VARIANTS_BULK_UPDATE_MUTATION,
)


def set_quantity_operation(kind: str, inventory_item_id: str, location_id: str, quantity: int) -> Operation:
    return Operation(
        kind=kind,
        target_id=inventory_item_id,
        payload={"inventoryItemId": inventory_item_id, "locationId": location_id, "quantity": quantity},
        cost=bulk_limits.SET_QUANTITIES_CALL_COST,
    )


def enable_tracking_operation(inventory_item_id: str) -> Operation:
    return Operation(
        kind=INVENTORY_ENABLE_TRACKING.name,
        target_id=inventory_item_id,
        cost=bulk_limits.TRACKING_ALIAS_COST,
        group=inventory_item_id,
    )


def price_operation(product_id: str, variant_id: str, price: str) -> Operation:
    return Operation(
        kind=VARIANT_PRICE_UPDATE.name,
        target_id=variant_id,
        payload={"productId": product_id, "price": price},
        cost=bulk_limits.PRICE_UPDATE_CALL_COST,
        group=product_id,
    )
