"""
Tests for `services/roster_service.py`: enrollment, promotion, disable and
reorder as seen by the admin screen.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from domain.errors import AlreadyEnrolled, BrokerNotEligible, NotFound
from domain.profile import ProfileRole
from domain.roster import PositionChange
from services import roster_service


def test_enroll_appends_at_max_position_plus_one(store, add_profile) -> None:
    a = add_profile("A")
    b = add_profile("B")

    first = roster_service.enroll_broker(store, a)
    store.reorder_roster([PositionChange(first.entry_id, 10)])
    second = roster_service.enroll_broker(store, b)

    assert first.order_position == 1
    assert second.order_position == 11


def test_enroll_active_broker_twice_is_rejected(store, add_profile) -> None:
    broker = add_profile()
    roster_service.enroll_broker(store, broker)

    with pytest.raises(AlreadyEnrolled):
        roster_service.enroll_broker(store, broker)


def test_enroll_requires_existing_active_broker_profile(store, add_profile) -> None:
    with pytest.raises(NotFound):
        roster_service.enroll_broker(store, uuid4())

    client = add_profile("Client", role=ProfileRole.CLIENT)
    with pytest.raises(BrokerNotEligible):
        roster_service.enroll_broker(store, client)

    inactive = add_profile("Gone", is_active=False)
    with pytest.raises(BrokerNotEligible):
        roster_service.enroll_broker(store, inactive)

    assert store.list_roster() == []


def test_ensure_enrolled_is_idempotent(store, add_profile) -> None:
    broker = add_profile()

    first = roster_service.ensure_enrolled(store, broker)
    second = roster_service.ensure_enrolled(store, broker)

    assert first == second
    assert len(store.list_roster()) == 1


def test_ensure_enrolled_reactivates_disabled_broker(store, add_profile) -> None:
    broker = add_profile()
    entry = roster_service.enroll_broker(store, broker)
    roster_service.disable_broker(store, broker)

    back = roster_service.ensure_enrolled(store, broker)

    assert back.entry_id == entry.entry_id
    assert back.is_active


def test_promote_sets_role_and_enrolls_once(store, add_profile) -> None:
    user = add_profile("Joana", role=ProfileRole.CLIENT)

    profile, entry = roster_service.promote_to_broker(store, user)
    again_profile, again_entry = roster_service.promote_to_broker(store, user)

    assert profile.role == ProfileRole.BROKER
    assert store.get_profile(user).role == ProfileRole.BROKER
    assert entry.broker_id == user
    assert again_entry == entry
    assert again_profile.role == ProfileRole.BROKER
    assert len(store.list_roster()) == 1


def test_promote_unknown_profile(store) -> None:
    with pytest.raises(NotFound):
        roster_service.promote_to_broker(store, uuid4())


def test_promote_inactive_profile_leaves_role_unchanged(store, add_profile) -> None:
    user = add_profile("Gone", role=ProfileRole.CLIENT, is_active=False)

    with pytest.raises(BrokerNotEligible):
        roster_service.promote_to_broker(store, user)

    assert store.get_profile(user).role == ProfileRole.CLIENT
    assert store.list_roster() == []


def test_disable_is_idempotent_and_requires_enrollment(store, add_profile) -> None:
    broker = add_profile()
    roster_service.enroll_broker(store, broker)

    first = roster_service.disable_broker(store, broker)
    second = roster_service.disable_broker(store, broker)

    assert not first.is_active
    assert second == first

    with pytest.raises(NotFound):
        roster_service.disable_broker(store, add_profile("Never enrolled"))


def test_reorder_skips_unknown_entries_and_applies_the_rest(store, enrolled_broker) -> None:
    a = enrolled_broker("A")
    entry = store.get_roster_entry(a)

    result = roster_service.reorder_roster(
        store,
        [PositionChange(entry.entry_id, 5), PositionChange(9999, 1)],
    )

    assert result.applied == [entry.entry_id]
    assert result.skipped == [9999]
    assert store.get_roster_entry(a).order_position == 5


def test_roster_listing_joins_profiles_in_rotation_order(store, enrolled_broker) -> None:
    a = enrolled_broker("Ana")
    b = enrolled_broker("Bruno")
    entries = {e.broker_id: e for e in store.list_roster()}
    store.reorder_roster(
        [PositionChange(entries[b].entry_id, 1), PositionChange(entries[a].entry_id, 2)]
    )

    listing = roster_service.list_roster_with_brokers(store)

    assert [item.broker.full_name for item in listing] == ["Bruno", "Ana"]
