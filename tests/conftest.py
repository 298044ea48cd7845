"""
Pytest configuration.

Adds the project root to the Python path so that tests can import the
domain, repositories, services and api packages, and provides an in-memory
rotation store driven by a deterministic clock.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.lead import NewLead  # noqa: E402
from domain.profile import Profile, ProfileRole  # noqa: E402
from repositories.memory_store import InMemoryRotationStore  # noqa: E402


class StepClock:
    """Clock that moves forward one second on every call."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def store(clock: StepClock) -> InMemoryRotationStore:
    return InMemoryRotationStore(lock_timeout_seconds=5.0, clock=clock)


@pytest.fixture
def add_profile(store):
    """Seed a profile; brokers by default."""

    def _add(name: str = "Broker", role: ProfileRole = ProfileRole.BROKER, is_active: bool = True):
        profile = Profile(profile_id=uuid4(), role=role, full_name=name, is_active=is_active)
        store.add_profile(profile)
        return profile.profile_id

    return _add


@pytest.fixture
def enrolled_broker(store, add_profile):
    """Seed a broker profile and enroll it at the end of the rotation."""

    def _enroll(name: str = "Broker"):
        broker_id = add_profile(name)
        store.enroll_broker(broker_id)
        return broker_id

    return _enroll


@pytest.fixture
def submit(store):
    """Create a pending lead directly in the store."""

    def _submit(name: str = "Maria Souza"):
        return store.create_lead(
            NewLead(name=name, email="maria@example.com", phone="+55 11 99999-0000")
        )

    return _submit
