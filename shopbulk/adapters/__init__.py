"""Adapters package for shopbulk.

This package contains the remote API contract consumed by the engine and
its Shopify implementation.
"""

from shopbulk.adapters.registry import get_mutation_kind, list_available_kinds
from shopbulk.adapters.remote_api import RemoteMutationAPI
from shopbulk.adapters.shopify_adapter import ShopifyRemoteAPI

__all__ = [
    "RemoteMutationAPI",
    "ShopifyRemoteAPI",
    "get_mutation_kind",
    "list_available_kinds",
]
