"""
Domain: Distribution ledger.

Append-only audit trail of assignment decisions. One entry is written per
successful assignment, inside the same atomic unit as the lead and roster
updates. Entries are never updated or deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from .roster import RosterEntry
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class DistributionLedgerEntry:
    """
    Immutable record of a single assignment.

    order_position is the roster position the broker held when chosen, so the
    ledger can be replayed against the roster order of that moment.
    """

    entry_id: int
    lead_id: UUID
    broker_id: UUID
    order_position: int
    assigned_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("assigned_at", self.assigned_at)


@dataclass(frozen=True, slots=True)
class BrokerDistribution:
    broker_id: UUID
    is_active: bool
    order_position: int
    total_assigned: int
    ledger_count: int
    last_assigned: Optional[datetime]


@dataclass(frozen=True, slots=True)
class DistributionSummary:
    """
    Fairness view over the roster and the ledger.

    spread is max - min ledger_count across active brokers; a warmed roster in
    strict round robin keeps it at 0 or 1.
    """

    brokers: List[BrokerDistribution]
    total_assignments: int
    spread: int


def summarize_distribution(
    roster: Iterable[RosterEntry],
    ledger: Iterable[DistributionLedgerEntry],
) -> DistributionSummary:
    counts: Dict[UUID, int] = {}
    total = 0
    for entry in ledger:
        counts[entry.broker_id] = counts.get(entry.broker_id, 0) + 1
        total += 1

    brokers = [
        BrokerDistribution(
            broker_id=r.broker_id,
            is_active=r.is_active,
            order_position=r.order_position,
            total_assigned=r.total_assigned,
            ledger_count=counts.get(r.broker_id, 0),
            last_assigned=r.last_assigned,
        )
        for r in roster
    ]

    active_counts = [b.ledger_count for b in brokers if b.is_active]
    spread = max(active_counts) - min(active_counts) if active_counts else 0

    return DistributionSummary(brokers=brokers, total_assignments=total, spread=spread)


__all__ = [
    "BrokerDistribution",
    "DistributionLedgerEntry",
    "DistributionSummary",
    "summarize_distribution",
]
