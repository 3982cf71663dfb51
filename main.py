"""Main entrypoint for the shopbulk FastAPI application.

This module initializes the FastAPI app and exposes the inventory, product
and price endpoints. Every endpoint reads its products from the snapshot
cache; ``POST /inventory/refresh-cache`` fills it.
"""

from pathlib import Path
from typing import AsyncIterator, Optional

from dotenv import load_dotenv
from fastapi import Depends
from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse

from shopbulk.adapters.registry import list_available_kinds
from shopbulk.adapters.shopify_adapter import ShopifyRemoteAPI
from shopbulk.config.settings import Settings
from shopbulk.config.settings import get_settings
from shopbulk.core.exceptions import AllBatchesFailedError
from shopbulk.core.exceptions import BulkJobError
from shopbulk.core.exceptions import CacheMissingError
from shopbulk.core.exceptions import FatalStuckError
from shopbulk.core.exceptions import RemoteCallError
from shopbulk.models.requests import CacheOptions
from shopbulk.models.requests import CreateProductsRequest
from shopbulk.models.requests import PriceUpdateRequest
from shopbulk.presenters.run_presenter import present_bulk_job
from shopbulk.presenters.run_presenter import present_run
from shopbulk.services import inventory
from shopbulk.services import prices
from shopbulk.services import products
from shopbulk.services.shopify import ShopifyClient
from shopbulk.services.shopify import ShopifyDataError
from shopbulk.utils.cache import SnapshotCache
from shopbulk.utils.logger import generate_request_id
from shopbulk.utils.logger import log_error
from shopbulk.utils.logger import log_info
from shopbulk.utils.logger import log_warn


load_dotenv()

app = FastAPI(title="Shopify Bulk Inventory API", version="0.1.0")


async def get_client() -> AsyncIterator[ShopifyClient]:
    async with ShopifyClient(get_settings()) as client:
        yield client


def get_remote(client: ShopifyClient = Depends(get_client)) -> ShopifyRemoteAPI:
    return ShopifyRemoteAPI(client)


def get_cache() -> SnapshotCache:
    settings = get_settings()
    return SnapshotCache(settings.cache_file, max_age_seconds=settings.cache_max_age_seconds)


def get_app_settings() -> Settings:
    return get_settings()


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "error": message})


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    # Correlation id shared by every log line of this request.
    request.state.request_id = generate_request_id()
    log_info("Request received", request_id=request.state.request_id, path=request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> dict:
    """Health check endpoint to verify that the service is running."""

    return {"status": "ok", "mutationKinds": list_available_kinds()}


# Inventory


@app.post("/inventory/refresh-cache")
async def refresh_cache(
    cache: SnapshotCache = Depends(get_cache),
    client: ShopifyClient = Depends(get_client),
) -> dict:
    total = await inventory.refresh_cache(cache, client)
    return {"success": True, "message": f"Cache refreshed with {total} products", "totalProducts": total}


@app.post("/inventory/enable-tracking")
async def enable_tracking(
    cache: SnapshotCache = Depends(get_cache),
    remote: ShopifyRemoteAPI = Depends(get_remote),
) -> dict:
    run = await inventory.enable_tracking(cache.load(), remote)
    return {"message": "Inventory tracking enablement finished", **present_run(run)}


@app.post("/inventory/update-quantities")
async def update_quantities(
    cache: SnapshotCache = Depends(get_cache),
    client: ShopifyClient = Depends(get_client),
    remote: ShopifyRemoteAPI = Depends(get_remote),
) -> dict:
    cached = cache.load()
    location_id = await client.get_first_location_id()
    run = await inventory.update_on_hand_quantities(cached, location_id, remote)
    return {"message": "On-hand quantity update finished", "locationId": location_id, **present_run(run)}


@app.post("/inventory/set-available-quantities")
async def set_available_quantities(
    cache: SnapshotCache = Depends(get_cache),
    client: ShopifyClient = Depends(get_client),
    remote: ShopifyRemoteAPI = Depends(get_remote),
) -> dict:
    cached = cache.load()
    location_id = await client.get_first_location_id()
    run = await inventory.set_available_quantities(cached, location_id, remote)
    return {"message": "Available quantity update finished", "locationId": location_id, **present_run(run)}


@app.post("/inventory/update-from-csv")
async def update_from_csv(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    cache: SnapshotCache = Depends(get_cache),
    client: ShopifyClient = Depends(get_client),
    remote: ShopifyRemoteAPI = Depends(get_remote),
):
    csv_path = Path(settings.csv_file)
    if not csv_path.exists():
        log_warn("CSV file not found", request_id=_request_id(request), path=str(csv_path))
        return _bad_request(f"CSV file not found: {csv_path.name}")
    try:
        csv_text = csv_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        log_warn("CSV file is not UTF-8", request_id=_request_id(request), path=str(csv_path))
        return _bad_request(f"CSV file is not valid UTF-8: {csv_path.name}")

    cached = cache.load()
    location_id = await client.get_first_location_id()
    plan, run = await inventory.update_from_csv(csv_text, cached, location_id, remote)
    return {
        "message": "CSV inventory update finished",
        "totalRecords": plan.total_records,
        "productsFound": plan.products_found,
        "productsNotFound": plan.products_not_found,
        "skippedRows": plan.skipped_rows,
        "updates": plan.updates,
        **present_run(run),
    }


@app.post("/inventory/update")
async def full_inventory_update(
    body: Optional[CacheOptions] = None,
    cache: SnapshotCache = Depends(get_cache),
    client: ShopifyClient = Depends(get_client),
    remote: ShopifyRemoteAPI = Depends(get_remote),
) -> dict:
    use_cache = body.use_cache if body else True
    result = await inventory.full_inventory_update(cache, client, remote, use_cache=use_cache)
    return {
        "success": result.enable_tracking.failed_count == 0 and result.update_quantities.failed_count == 0,
        "totalProducts": result.total_products,
        "totalVariants": result.total_variants,
        "locationId": result.location_id,
        "enableTracking": present_run(result.enable_tracking),
        "updateQuantities": present_run(result.update_quantities),
    }


# Products


@app.post("/products/create")
async def create_products(
    body: Optional[CreateProductsRequest] = None,
    remote: ShopifyRemoteAPI = Depends(get_remote),
) -> dict:
    count = body.count if body else products.DEFAULT_PRODUCT_COUNT
    job = await products.create_products(remote, count=count)
    return {
        "success": True,
        "message": f"Bulk operation started to create {count} products",
        "bulkOperation": present_bulk_job(job),
    }


@app.post("/products/create-more")
async def create_more_products(
    body: Optional[CreateProductsRequest] = None,
    cache: SnapshotCache = Depends(get_cache),
    client: ShopifyClient = Depends(get_client),
    remote: ShopifyRemoteAPI = Depends(get_remote),
) -> dict:
    count = body.count if body else products.DEFAULT_PRODUCT_COUNT
    existing = await inventory.load_products(cache, client)
    result = await products.create_more_products(existing, remote, count=count)
    return {
        "success": True,
        "message": f"Bulk operation started to create products {result['start']} to {result['end']}",
        "start": result["start"],
        "end": result["end"],
        "bulkOperation": present_bulk_job(result["job"]),
    }


@app.get("/products/bulk-operation-status")
async def bulk_operation_status(remote: ShopifyRemoteAPI = Depends(get_remote)) -> dict:
    job = await products.get_bulk_operation_status(remote)
    return {"success": True, "bulkOperation": present_bulk_job(job)}


# Prices


@app.post("/prices/update")
async def update_prices(
    body: Optional[PriceUpdateRequest] = None,
    cache: SnapshotCache = Depends(get_cache),
    remote: ShopifyRemoteAPI = Depends(get_remote),
) -> dict:
    price = body.price if body else prices.DEFAULT_PRICE
    run = await prices.update_prices(cache.load(), remote, price=price)
    return {"message": f"Price update to {price} finished", "price": price, **present_run(run)}


@app.post("/prices/update-bulk")
async def update_prices_bulk(
    body: Optional[PriceUpdateRequest] = None,
    cache: SnapshotCache = Depends(get_cache),
    remote: ShopifyRemoteAPI = Depends(get_remote),
) -> dict:
    price = body.price if body else prices.DEFAULT_PRICE
    result = await prices.update_prices_bulk(cache.load(), remote, price=price)
    return {
        "success": True,
        "message": f"Bulk price update to {price} started",
        "price": price,
        "totalVariants": result["total_variants"],
        "totalLines": result["total_lines"],
        "bulkOperation": present_bulk_job(result["job"]),
    }


# Error handling


def _error_response(request: Request, status_code: int, exc: Exception, **extra: object) -> JSONResponse:
    log_error(type(exc).__name__, request_id=_request_id(request), error=str(exc))
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc), **extra})


@app.exception_handler(CacheMissingError)
async def cache_missing_handler(request: Request, exc: CacheMissingError):
    return _error_response(request, status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(FatalStuckError)
async def fatal_stuck_handler(request: Request, exc: FatalStuckError):
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        exc,
        cycles=exc.cycles,
        throttle=exc.throttle.to_dict() if exc.throttle else None,
    )


@app.exception_handler(AllBatchesFailedError)
async def all_batches_failed_handler(request: Request, exc: AllBatchesFailedError):
    return _error_response(request, status.HTTP_502_BAD_GATEWAY, exc, result=present_run(exc.result))


@app.exception_handler(BulkJobError)
async def bulk_job_error_handler(request: Request, exc: BulkJobError):
    return _error_response(request, status.HTTP_502_BAD_GATEWAY, exc, stage=type(exc).__name__)


@app.exception_handler(RemoteCallError)
async def remote_call_error_handler(request: Request, exc: RemoteCallError):
    return _error_response(request, status.HTTP_502_BAD_GATEWAY, exc)


@app.exception_handler(ShopifyDataError)
async def shopify_data_error_handler(request: Request, exc: ShopifyDataError):
    return _error_response(request, status.HTTP_502_BAD_GATEWAY, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for uncaught exceptions.

    Ensures the service returns a 500 JSON error rather than crashing, and
    logs the error together with the request_id of the request.
    """

    log_error("Unhandled exception", request_id=_request_id(request), error=str(exc))

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error"},
    )
