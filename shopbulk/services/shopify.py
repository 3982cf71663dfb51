"""Shopify Admin GraphQL client for shopbulk.

A thin async wrapper around the Admin GraphQL endpoint. It logs throttle
feedback on every response and turns failed calls into the engine's error
taxonomy (throttled vs. transport) so callers never inspect raw envelopes
to decide whether a call failed.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from shopbulk.config.settings import Settings, get_settings
from shopbulk.core.exceptions import ShopbulkError, ThrottledError, TransportError
from shopbulk.models.batch import ThrottleState
from shopbulk.utils.logger import log_throttle


logger = logging.getLogger("shopbulk.shopify")


class ShopifyThrottledError(ThrottledError):
    """Shopify answered with a THROTTLED error or HTTP 429."""

    pass


class ShopifyTransportError(TransportError):
    """Network failure or non-2xx HTTP status."""

    pass


class ShopifyGraphQLError(TransportError):
    """Shopify rejected the whole document with top-level GraphQL errors."""

    pass


class ShopifyDataError(ShopbulkError):
    """A response was well-formed but did not contain what the call needs."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.details = details


SHOP_PROBE_QUERY = "{ shop { id } }"

FIRST_LOCATION_QUERY = """
{
  locations(first: 1) {
    edges {
      node {
        id
        name
      }
    }
  }
}
"""

PRODUCTS_PAGE_QUERY = """
query products($query: String!, $after: String) {
  products(first: 100, query: $query, after: $after) {
    pageInfo { hasNextPage }
    edges {
      cursor
      node {
        id
        title
        variants(first: 100) {
          edges {
            node {
              id
              inventoryItem { id }
            }
          }
        }
      }
    }
  }
}
"""

CURRENT_BULK_OPERATION_QUERY = """
{
  currentBulkOperation(type: MUTATION) {
    id
    status
    type
    createdAt
    completedAt
    errorCode
    objectCount
    rootObjectCount
    fileSize
    url
    partialDataUrl
  }
}
"""

STAGED_UPLOADS_CREATE_MUTATION = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets {
      url
      resourceUrl
      parameters { name value }
    }
    userErrors { field message }
  }
}
"""

BULK_OPERATION_RUN_MUTATION = """
mutation bulkOperationRunMutation($mutation: String!, $stagedUploadPath: String!) {
  bulkOperationRunMutation(mutation: $mutation, stagedUploadPath: $stagedUploadPath) {
    bulkOperation { id status }
    userErrors { field message }
  }
}
"""


def extract_throttle(body: Any) -> Optional[ThrottleState]:
    """Return the ``extensions.cost.throttleStatus`` snapshot of a response body."""

    if not isinstance(body, dict):
        return None
    cost = (body.get("extensions") or {}).get("cost") or {}
    return ThrottleState.from_payload(cost.get("throttleStatus"))


def _is_throttled(errors: Any) -> bool:
    if not isinstance(errors, list):
        return "throttle" in str(errors).lower()
    for err in errors:
        if not isinstance(err, dict):
            continue
        code = (err.get("extensions") or {}).get("code")
        if code == "THROTTLED":
            return True
        if "throttle" in str(err.get("message") or "").lower():
            return True
    return False


class ShopifyClient:
    """Async Shopify Admin GraphQL client.

    One ``httpx.AsyncClient`` is shared by every call the client makes, so
    a round of concurrent calls reuses pooled connections. Close it with
    ``aclose()`` or use the client as an async context manager.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http = http_client or httpx.AsyncClient(timeout=self._settings.http_timeout)
        self._owns_http = http_client is None

    async def __aenter__(self) -> "ShopifyClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute one GraphQL document and return the decoded envelope.

        Raises:
            ShopifyThrottledError: HTTP 429 or a THROTTLED GraphQL error.
            ShopifyTransportError: Network failure or non-2xx status.
            ShopifyGraphQLError: Any other top-level GraphQL error.
        """

        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            resp = await self._http.post(
                self._settings.graphql_url,
                json=payload,
                headers=self._settings.headers,
            )
        except httpx.RequestError as exc:
            raise ShopifyTransportError(f"HTTP_ERROR: {exc!r}") from exc

        body: Any
        try:
            body = resp.json()
        except ValueError:
            body = resp.text

        throttle = extract_throttle(body)

        if resp.status_code == 429:
            raise ShopifyThrottledError("API_ERROR: 429", throttle=throttle, details=body)
        if not resp.is_success:
            raise ShopifyTransportError(
                f"API_ERROR: {resp.status_code}", throttle=throttle, details=body
            )
        if not isinstance(body, dict):
            raise ShopifyTransportError("Unexpected non-JSON response", details=body)

        log_throttle("GRAPHQL", throttle)

        errors = body.get("errors")
        if errors:
            if _is_throttled(errors):
                raise ShopifyThrottledError("Throttled", throttle=throttle, details=errors)
            raise ShopifyGraphQLError(
                f"GraphQL errors: {json.dumps(errors, default=str)}",
                throttle=throttle,
                details=errors,
            )

        return body

    async def get_throttle_status(self) -> Optional[ThrottleState]:
        """Probe the throttle bucket with the cheapest possible query."""

        try:
            body = await self.graphql(SHOP_PROBE_QUERY)
        except ShopbulkError as exc:
            if isinstance(exc, ThrottledError) and exc.throttle is not None:
                return exc.throttle
            logger.error("Failed to get throttle status: %s", exc)
            return None
        return extract_throttle(body)

    async def get_first_location_id(self) -> str:
        body = await self.graphql(FIRST_LOCATION_QUERY)
        edges = (((body.get("data") or {}).get("locations") or {}).get("edges")) or []
        if not edges:
            raise ShopifyDataError("No locations found")

        location = edges[0].get("node") or {}
        logger.info("Using location: %s (%s)", location.get("name"), location.get("id"))
        return str(location.get("id"))

    async def fetch_all_products(self, search_query: str = "title:Dummy Product*") -> List[Dict[str, Any]]:
        """Fetch every product matching ``search_query`` with its variants."""

        products: List[Dict[str, Any]] = []
        after: Optional[str] = None

        while True:
            body = await self.graphql(PRODUCTS_PAGE_QUERY, {"query": search_query, "after": after})
            page = (body.get("data") or {}).get("products") or {}
            edges = page.get("edges") or []
            products.extend(edge["node"] for edge in edges if isinstance(edge, dict) and edge.get("node"))

            if not (page.get("pageInfo") or {}).get("hasNextPage") or not edges:
                break
            after = edges[-1].get("cursor")

        logger.info("Fetched %d products from Shopify", len(products))
        return products

    async def get_bulk_operation_status(self) -> Optional[Dict[str, Any]]:
        body = await self.graphql(CURRENT_BULK_OPERATION_QUERY)
        return (body.get("data") or {}).get("currentBulkOperation")

    async def create_staged_upload(self, filename: str, mime_type: str = "text/jsonl") -> Dict[str, Any]:
        """Request a staged upload target for bulk mutation variables.

        Raises:
            ShopifyDataError: On userErrors or a missing target.
        """

        variables = {
            "input": [
                {
                    "resource": "BULK_MUTATION_VARIABLES",
                    "filename": filename,
                    "mimeType": mime_type,
                    "httpMethod": "POST",
                }
            ]
        }
        body = await self.graphql(STAGED_UPLOADS_CREATE_MUTATION, variables)
        result = (body.get("data") or {}).get("stagedUploadsCreate") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyDataError(f"Staged upload error: {json.dumps(user_errors)}", details=user_errors)

        targets = result.get("stagedTargets") or []
        if not targets:
            raise ShopifyDataError("Staged upload returned no targets", details=result)
        return targets[0]

    async def upload_staged_file(
        self,
        url: str,
        parameters: Sequence[Tuple[str, str]],
        path: Path,
        mime_type: str = "text/jsonl",
    ) -> None:
        """POST a file to a staged upload target as multipart form data.

        Form fields are sent before the file part. Repeated field names keep
        every value.

        Raises:
            ShopifyTransportError: On network failure or non-2xx status.
        """

        form: Dict[str, List[str]] = {}
        for name, value in parameters:
            form.setdefault(name, []).append(value)
        files = {"file": (path.name, path.read_bytes(), mime_type)}

        try:
            resp = await self._http.post(url, data=form, files=files)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ShopifyTransportError(
                f"API_ERROR: {exc.response.status_code}", details=exc.response.text
            ) from exc
        except httpx.RequestError as exc:
            raise ShopifyTransportError(f"HTTP_ERROR: {exc!r}") from exc

    async def start_bulk_operation(self, mutation: str, staged_upload_path: str) -> Dict[str, Any]:
        """Start a bulk mutation over an uploaded JSONL file.

        Raises:
            ShopifyDataError: On userErrors or a missing operation.
        """

        body = await self.graphql(
            BULK_OPERATION_RUN_MUTATION,
            {"mutation": mutation, "stagedUploadPath": staged_upload_path},
        )
        result = (body.get("data") or {}).get("bulkOperationRunMutation") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyDataError(f"Bulk operation error: {json.dumps(user_errors)}", details=user_errors)

        operation = result.get("bulkOperation")
        if not operation:
            raise ShopifyDataError("Bulk operation was not created", details=result)
        return operation
