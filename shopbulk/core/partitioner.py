"""Split operation lists into size-bounded batches."""

from __future__ import annotations

from typing import List, Sequence

from shopbulk.models.batch import Batch, Operation


def partition(
    operations: Sequence[Operation],
    max_per_call: int,
    max_aliases: int,
) -> List[Batch]:
    """Split ``operations`` into batches, preserving order.

    A batch holds at most ``max_per_call`` operations and at most
    ``max_aliases`` alias segments, where a segment is a run of consecutive
    operations sharing the same ``group``. Concatenating the returned
    batches yields the input exactly.

    Args:
        operations: Operations in dispatch order.
        max_per_call: Item limit of a single call.
        max_aliases: Limit of aliased sub-mutations in a single call.

    Returns:
        Batches indexed from 0. Empty input gives an empty list.

    Raises:
        ValueError: If either limit is not positive.
    """

    if max_per_call < 1:
        raise ValueError(f"max_per_call must be positive, got {max_per_call}")
    if max_aliases < 1:
        raise ValueError(f"max_aliases must be positive, got {max_aliases}")

    batches: List[Batch] = []
    current: List[Operation] = []
    alias_count = 0

    for op in operations:
        starts_alias = not current or op.group != current[-1].group
        if current and (
            len(current) >= max_per_call or (starts_alias and alias_count >= max_aliases)
        ):
            batches.append(Batch(index=len(batches), operations=tuple(current)))
            current = []
            alias_count = 0
            starts_alias = True

        if starts_alias:
            alias_count += 1
        current.append(op)

    if current:
        batches.append(Batch(index=len(batches), operations=tuple(current)))

    return batches
