"""Request models for the shopbulk HTTP API.

All bodies are optional; defaults reproduce the behaviour of calling the
endpoint with no body at all.
"""

from pydantic import BaseModel, Field


class CacheOptions(BaseModel):
    """Shared option for endpoints that read the snapshot cache."""

    use_cache: bool = True


class PriceUpdateRequest(BaseModel):
    """Body for the price update endpoints."""

    price: str = Field(default="100.00", pattern=r"^\d{1,12}(\.\d{1,2})?$")


class CreateProductsRequest(BaseModel):
    """Body for the product creation endpoints."""

    count: int = Field(default=30000, ge=1, le=1_000_000)
