"""Sequence number allocation for drag-and-drop reordering.

Products carry an integer ``sequence_number`` that orders them inside their
location group. Moving a product only rewrites that one number: it takes the
midpoint of its new neighbours, or steps a gap past the group's ends. When
the neighbours are adjacent integers there is no free value between them and
the group has to be renumbered before the move can be placed.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, TypeVar, Union

from weekshop.config.settings import get_settings


class Sequenced(Protocol):
    """Anything ordered by a sequence number."""
    sequence_number: int


S = TypeVar('S', bound=Sequenced)


@dataclass(frozen=True)
class Allocated:
    """A collision-free sequence number for the requested position."""
    sequence: int


@dataclass(frozen=True)
class NeedsRenumber:
    """No free integer exists between the neighbours at the position."""
    index: int
    lower: int
    upper: int


Allocation = Union[Allocated, NeedsRenumber]


@dataclass(frozen=True)
class RenumberPlan:
    """New sequence numbers for a group, in group order."""
    sequences: List[int]
    changed: List[int]  # positions whose number differs from before


def _gap(gap: Optional[int]) -> int:
    step = gap if gap is not None else get_settings().SEQUENCE_GAP
    if step < 2:
        raise ValueError("sequence gap must be at least 2")
    return step


def allocate(group: Sequence[Sequenced], target_index: int, gap: Optional[int] = None) -> Allocation:
    """
    Compute a sequence number for an item inserted at target_index.

    Args:
        group: Destination group ordered ascending by sequence number, without
            the item being moved
        target_index: Position the item will occupy, 0..len(group)
        gap: Spacing used at the ends of the group (default from settings)

    Returns:
        Allocated with the new number, or NeedsRenumber when the neighbours
        leave no room
    """
    step = _gap(gap)
    if not 0 <= target_index <= len(group):
        raise IndexError(f"target index {target_index} outside 0..{len(group)}")

    if not group:
        return Allocated(step)
    if target_index == 0:
        return Allocated(group[0].sequence_number - step)
    if target_index == len(group):
        return Allocated(group[-1].sequence_number + step)

    lower = group[target_index - 1].sequence_number
    upper = group[target_index].sequence_number
    candidate = (lower + upper) // 2
    if candidate in (lower, upper):
        return NeedsRenumber(index=target_index, lower=lower, upper=upper)
    return Allocated(candidate)


def renumber(group: Sequence[Sequenced], gap: Optional[int] = None) -> RenumberPlan:
    """Spread a group over fresh multiples of the gap, keeping its order."""
    step = _gap(gap)
    sequences = [step * (position + 1) for position in range(len(group))]
    changed = [
        position for position, item in enumerate(group)
        if item.sequence_number != sequences[position]
    ]
    return RenumberPlan(sequences=sequences, changed=changed)


@dataclass(frozen=True)
class _Slot:
    sequence_number: int


def allocate_with_renumber(
    group: Sequence[Sequenced],
    target_index: int,
    gap: Optional[int] = None
) -> Tuple[int, Optional[RenumberPlan]]:
    """
    Allocate a sequence number, renumbering the group first if required.

    Returns:
        The new sequence number and the renumber plan that must be applied to
        the group before it (None when the group could stay as it was)
    """
    result = allocate(group, target_index, gap)
    if isinstance(result, Allocated):
        return result.sequence, None

    plan = renumber(group, gap)
    retried = allocate([_Slot(sequence) for sequence in plan.sequences], target_index, gap)
    # Gaps of at least 2 always leave a midpoint
    if not isinstance(retried, Allocated):
        raise RuntimeError("renumbered group still has no room")
    return retried.sequence, plan
