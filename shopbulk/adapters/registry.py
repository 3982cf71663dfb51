"""Mutation kind registry for shopbulk.

This module provides a central registry of every mutation kind the engine
can drive.
"""

from typing import Dict

from shopbulk.services.mutations import (
    INVENTORY_ENABLE_TRACKING,
    INVENTORY_SET_AVAILABLE,
    INVENTORY_SET_ON_HAND,
    VARIANT_PRICE_UPDATE,
    MutationKind,
)


# Central registry of all mutation kinds
MUTATION_KINDS: Dict[str, MutationKind] = {
    kind.name: kind
    for kind in (
        INVENTORY_SET_ON_HAND,
        INVENTORY_SET_AVAILABLE,
        INVENTORY_ENABLE_TRACKING,
        VARIANT_PRICE_UPDATE,
    )
}


def get_mutation_kind(name: str) -> MutationKind:
    """Get a mutation kind by name.

    Raises:
        ValueError: If no kind is registered under ``name``.

    Example:
        >>> get_mutation_kind("inventory_set_on_hand").max_per_call
        250
    """

    kind = MUTATION_KINDS.get(name)
    if not kind:
        available = ", ".join(MUTATION_KINDS.keys())
        raise ValueError(
            f"No mutation kind registered under: {name}. "
            f"Available kinds: {available}"
        )
    return kind


def list_available_kinds() -> list[str]:
    """List all registered mutation kind names."""

    return list(MUTATION_KINDS.keys())
