"""
Distribution ledger queries.

The ledger has no write path here: entries are appended only by the assignment
engine inside its atomic unit.
"""

from __future__ import annotations

from typing import List
from uuid import UUID

from domain.ledger import DistributionLedgerEntry, DistributionSummary, summarize_distribution
from repositories.store import RotationStore


def list_for_lead(store: RotationStore, lead_id: UUID) -> List[DistributionLedgerEntry]:
    return store.list_ledger(lead_id=lead_id)


def list_for_broker(store: RotationStore, broker_id: UUID) -> List[DistributionLedgerEntry]:
    return store.list_ledger(broker_id=broker_id)


def distribution_summary(store: RotationStore) -> DistributionSummary:
    """Per-broker assignment counts and the spread across active brokers."""

    return summarize_distribution(store.list_roster(), store.list_ledger())


__all__ = ["distribution_summary", "list_for_broker", "list_for_lead"]
