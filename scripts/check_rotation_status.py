"""
Check rotation status - broker order, pending leads and fairness spread.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.lead import LeadStatus
from repositories.client import get_supabase
from repositories.supabase_store import SupabaseRotationStore
from services.ledger_service import distribution_summary


def check_rotation_status():
    """Print the roster in rotation order and the distribution spread."""

    store = SupabaseRotationStore(get_supabase())

    roster = store.list_roster()
    profiles = {p.profile_id: p for p in store.list_profiles([e.broker_id for e in roster])}
    pending = store.list_leads(status=LeadStatus.PENDING)

    print("=" * 60)
    print("BROKER ROTATION STATUS")
    print("=" * 60)
    print(f"Roster entries:            {len(roster)}")
    print(f"Active brokers:            {sum(1 for e in roster if e.is_active)}")
    print(f"Pending leads:             {len(pending)}")
    print("=" * 60)

    print("\nRotation order:")
    print("-" * 60)
    for entry in roster:
        profile = profiles.get(entry.broker_id)
        name = (profile.full_name if profile else None) or str(entry.broker_id)
        state = "active" if entry.is_active else "disabled"
        last = entry.last_assigned.isoformat() if entry.last_assigned else "never"
        print(f"{entry.order_position:>4}  {name:<30} {state:<9} total={entry.total_assigned:<5} last={last}")
    print("-" * 60)

    summary = distribution_summary(store)
    print(f"\nLedger entries:            {summary.total_assignments}")
    print(f"Spread (active brokers):   {summary.spread}")


if __name__ == "__main__":
    check_rotation_status()
