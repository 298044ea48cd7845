"""
Tests for `services/assignment_service.py` on the in-memory rotation store.

Covers:
- first K leads go to K never-assigned brokers, in order_position order
- warmed roster cycles strictly by oldest last_assigned
- concurrent assignment of the same lead writes exactly once
- no active brokers leaves the lead pending
- disable/re-enroll and reorder effects on selection
- lock contention raises ContentionTimeout with no partial writes
"""

from __future__ import annotations

import threading
from uuid import uuid4

import pytest

from domain.assignment import AssignmentStatus
from domain.errors import ContentionTimeout, LeadNotAssigned, NotFound
from domain.lead import LeadStatus, LeadUpdate, NewLead
from domain.profile import Profile, ProfileRole
from domain.roster import PositionChange
from repositories.memory_store import InMemoryRotationStore
from services.assignment_service import assign_lead, assign_pending_leads


def test_first_k_leads_go_to_each_new_broker_in_order(store, enrolled_broker, submit) -> None:
    brokers = [enrolled_broker(f"Broker {i}") for i in range(4)]

    winners = [assign_lead(store, submit().lead_id).broker_id for _ in brokers]

    assert winners == brokers


def test_warmed_roster_cycles_strictly(store, enrolled_broker, submit) -> None:
    brokers = [enrolled_broker(f"Broker {i}") for i in range(3)]

    winners = [assign_lead(store, submit().lead_id).broker_id for _ in range(9)]

    assert winners == brokers * 3


def test_two_brokers_alternate(store, enrolled_broker, submit) -> None:
    a = enrolled_broker("A")
    b = enrolled_broker("B")

    l1 = assign_lead(store, submit("L1").lead_id)
    l2 = assign_lead(store, submit("L2").lead_id)
    l3 = assign_lead(store, submit("L3").lead_id)

    assert (l1.broker_id, l2.broker_id, l3.broker_id) == (a, b, a)
    assert store.get_roster_entry(a).total_assigned == 2
    assert store.get_roster_entry(b).total_assigned == 1


def test_assignment_writes_lead_roster_and_ledger(store, enrolled_broker, submit) -> None:
    broker = enrolled_broker()
    lead = submit()

    result = assign_lead(store, lead.lead_id)

    assert result.status == AssignmentStatus.ASSIGNED
    stored = store.get_lead(lead.lead_id)
    entry = store.get_roster_entry(broker)
    ledger = store.list_ledger(lead_id=lead.lead_id)

    assert stored.status == LeadStatus.ASSIGNED
    assert stored.handled_by == broker
    assert entry.last_assigned == stored.handled_at
    assert entry.total_assigned == 1
    assert len(ledger) == 1
    assert ledger[0].broker_id == broker
    assert ledger[0].order_position == entry.order_position
    assert ledger[0].assigned_at == stored.handled_at
    assert result.ledger_entry == ledger[0]


def test_no_active_brokers_leaves_lead_pending(store, submit) -> None:
    lead = submit()

    result = assign_lead(store, lead.lead_id)

    assert result.status == AssignmentStatus.NO_ELIGIBLE_BROKER
    stored = store.get_lead(lead.lead_id)
    assert stored.status == LeadStatus.PENDING
    assert stored.handled_by is None
    assert store.list_ledger() == []


def test_second_assignment_of_same_lead_is_already_assigned(store, enrolled_broker, submit) -> None:
    first = enrolled_broker("A")
    enrolled_broker("B")
    lead = submit()

    assign_lead(store, lead.lead_id)
    again = assign_lead(store, lead.lead_id)

    assert again.status == AssignmentStatus.ALREADY_ASSIGNED
    assert again.broker_id == first
    assert len(store.list_ledger(lead_id=lead.lead_id)) == 1


def test_unknown_lead_raises_not_found(store, enrolled_broker) -> None:
    enrolled_broker()
    with pytest.raises(NotFound):
        assign_lead(store, uuid4())


def test_concurrent_assignment_of_same_lead_has_one_winner(store, enrolled_broker, submit) -> None:
    for i in range(3):
        enrolled_broker(f"Broker {i}")
    lead = submit()
    barrier = threading.Barrier(8)
    results = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        result = assign_lead(store, lead.lead_id)
        with results_lock:
            results.append(result.status)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(AssignmentStatus.ASSIGNED) == 1
    assert results.count(AssignmentStatus.ALREADY_ASSIGNED) == 7
    assert len(store.list_ledger(lead_id=lead.lead_id)) == 1
    assert sum(e.total_assigned for e in store.list_roster()) == 1


def test_concurrent_assignment_of_different_leads_never_doubles_a_new_broker(
    store, enrolled_broker, submit
) -> None:
    brokers = [enrolled_broker(f"Broker {i}") for i in range(6)]
    leads = [submit(f"Lead {i}") for i in range(6)]
    barrier = threading.Barrier(len(leads))

    def worker(lead_id) -> None:
        barrier.wait()
        assign_lead(store, lead_id)

    threads = [threading.Thread(target=worker, args=(lead.lead_id,)) for lead in leads]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    handled_by = sorted(str(store.get_lead(lead.lead_id).handled_by) for lead in leads)
    assert handled_by == sorted(str(b) for b in brokers)


def test_disabled_broker_is_skipped_and_keeps_history(store, enrolled_broker, submit) -> None:
    a = enrolled_broker("A")
    b = enrolled_broker("B")
    assign_lead(store, submit().lead_id)
    assign_lead(store, submit().lead_id)

    store.disable_broker(a)
    winners = [assign_lead(store, submit().lead_id).broker_id for _ in range(2)]

    assert winners == [b, b]
    disabled = store.get_roster_entry(a)
    assert not disabled.is_active
    assert disabled.total_assigned == 1
    assert len(store.list_ledger(broker_id=a)) == 1


def test_reenrolled_broker_gets_fresh_position_and_keeps_history(store, enrolled_broker, submit) -> None:
    a = enrolled_broker("A")
    b = enrolled_broker("B")
    assign_lead(store, submit().lead_id)
    old = store.get_roster_entry(a)

    store.disable_broker(a)
    back = store.enroll_broker(a)

    assert back.entry_id == old.entry_id
    assert back.is_active
    assert back.order_position > store.get_roster_entry(b).order_position
    assert back.total_assigned == 1
    assert back.last_assigned == old.last_assigned


def test_reorder_changes_tie_preference_only(store, enrolled_broker, submit) -> None:
    a = enrolled_broker("A")
    b = enrolled_broker("B")
    entry_a = store.get_roster_entry(a)
    entry_b = store.get_roster_entry(b)

    result = store.reorder_roster(
        [
            PositionChange(entry_id=entry_b.entry_id, order_position=1),
            PositionChange(entry_id=entry_a.entry_id, order_position=2),
        ]
    )

    assert result.applied == [entry_b.entry_id, entry_a.entry_id]
    assert result.skipped == []
    assert assign_lead(store, submit().lead_id).broker_id == b
    assert store.get_roster_entry(a).total_assigned == 0
    assert store.get_roster_entry(a).last_assigned is None


def test_contention_timeout_writes_nothing(clock) -> None:
    store = InMemoryRotationStore(lock_timeout_seconds=0.05, clock=clock)
    broker = store.add_profile(Profile(profile_id=uuid4(), role=ProfileRole.BROKER))
    store.enroll_broker(broker.profile_id)
    lead = store.create_lead(NewLead(name="Maria", email="maria@example.com", phone="123"))

    # Hold the roster lock the way a long-running admin operation would.
    store._roster_lock.acquire()
    try:
        with pytest.raises(ContentionTimeout) as exc:
            assign_lead(store, lead.lead_id)
    finally:
        store._roster_lock.release()

    assert exc.value.retryable
    assert store.get_lead(lead.lead_id).handled_by is None
    assert store.list_ledger() == []
    assert store.list_roster()[0].total_assigned == 0


def test_pending_sweep_assigns_oldest_first(store, enrolled_broker, submit) -> None:
    first = submit("first")
    second = submit("second")
    a = enrolled_broker("A")
    b = enrolled_broker("B")

    sweep = assign_pending_leads(store)

    assert sweep.examined == 2
    assert sweep.assigned == [first.lead_id, second.lead_id]
    assert store.get_lead(first.lead_id).handled_by == a
    assert store.get_lead(second.lead_id).handled_by == b
    assert not sweep.no_eligible_broker


def test_pending_sweep_stops_without_brokers(store, submit) -> None:
    submit("first")
    submit("second")

    sweep = assign_pending_leads(store)

    assert sweep.no_eligible_broker
    assert sweep.examined == 1
    assert sweep.assigned == []


def test_status_change_cannot_strand_a_pending_lead(store, enrolled_broker, submit) -> None:
    lead = submit()

    with pytest.raises(LeadNotAssigned):
        store.update_lead(lead.lead_id, LeadUpdate(status=LeadStatus.CONTACTED))
    assert store.get_lead(lead.lead_id).status == LeadStatus.PENDING

    broker = enrolled_broker("A")
    sweep = assign_pending_leads(store)

    assert sweep.assigned == [lead.lead_id]
    assert store.get_lead(lead.lead_id).handled_by == broker
