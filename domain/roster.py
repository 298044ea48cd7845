"""
Domain: Broker roster.

A RosterEntry enrolls one broker in the lead rotation.

Rules implemented here:
- Rotation order is order_position ascending, ties broken by entry_id.
  Positions need not be contiguous.
- Only active entries take part in selection.
- Entries are never deleted; disabling flips is_active so that the broker's
  history (last_assigned, total_assigned) survives reinstatement.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from .time import require_optional_utc_timestamp, require_utc_timestamp


@dataclass(frozen=True, slots=True)
class RosterEntry:
    entry_id: int
    broker_id: UUID
    order_position: int
    is_active: bool = True
    last_assigned: Optional[datetime] = None
    total_assigned: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.total_assigned < 0:
            raise ValueError("total_assigned must be non-negative")
        require_optional_utc_timestamp("last_assigned", self.last_assigned)
        require_optional_utc_timestamp("created_at", self.created_at)
        require_optional_utc_timestamp("updated_at", self.updated_at)

    @property
    def never_assigned(self) -> bool:
        return self.last_assigned is None

    def sort_key(self) -> Tuple[int, int]:
        return (self.order_position, self.entry_id)

    def record_assignment(self, at: datetime) -> "RosterEntry":
        """Return a new entry reflecting one more lead handed to this broker."""

        require_utc_timestamp("last_assigned", at)
        return replace(
            self,
            last_assigned=at,
            total_assigned=self.total_assigned + 1,
            updated_at=at,
        )

    def deactivated(self, at: datetime) -> "RosterEntry":
        if not self.is_active:
            return self
        return replace(self, is_active=False, updated_at=at)

    def reactivated(self, order_position: int, at: datetime) -> "RosterEntry":
        return replace(self, is_active=True, order_position=order_position, updated_at=at)

    def moved_to(self, order_position: int, at: datetime) -> "RosterEntry":
        return replace(self, order_position=order_position, updated_at=at)


@dataclass(frozen=True, slots=True)
class PositionChange:
    """One item of a reorder batch."""

    entry_id: int
    order_position: int


@dataclass(frozen=True, slots=True)
class ReorderResult:
    applied: List[int]
    skipped: List[int]


def ordered(entries: Iterable[RosterEntry]) -> List[RosterEntry]:
    return sorted(entries, key=RosterEntry.sort_key)


def next_order_position(entries: Sequence[RosterEntry]) -> int:
    """Position for a newly enrolled (or reinstated) broker: current max + 1."""

    if not entries:
        return 1
    return max(entry.order_position for entry in entries) + 1


__all__ = [
    "PositionChange",
    "ReorderResult",
    "RosterEntry",
    "next_order_position",
    "ordered",
]
