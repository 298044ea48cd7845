"""
Background assignment dispatch.

Lead intake hands each new lead id to an AssignmentDispatcher instead of
assigning inline. The dispatcher owns its own error channel: failures are
logged, kept in `failures`, and passed to an optional `on_failure` callback.
They are never raised back to the code that captured the lead.

Retry policy: ContentionTimeout is retried up to `attempts` times with
exponential backoff (backoff_seconds * 2**n). Any other error fails at once.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, List, Optional
from uuid import UUID

from domain.assignment import AssignmentResult
from domain.errors import ContentionTimeout
from domain.time import utc_now
from repositories.store import RotationStore
from services.assignment_service import assign_lead

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssignmentFailure:
    lead_id: UUID
    error: str
    attempts: int
    retryable: bool
    failed_at: datetime


class AssignmentDispatcher:
    def __init__(
        self,
        store: RotationStore,
        attempts: int = 3,
        backoff_seconds: float = 0.2,
        on_failure: Optional[Callable[[AssignmentFailure], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_failures_kept: int = 500,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self._store = store
        self._attempts = attempts
        self._backoff = backoff_seconds
        self._on_failure = on_failure
        self._sleep = sleep
        self._failures: Deque[AssignmentFailure] = deque(maxlen=max_failures_kept)
        self._failures_lock = threading.Lock()

    @property
    def failures(self) -> List[AssignmentFailure]:
        with self._failures_lock:
            return list(self._failures)

    def run(self, lead_id: UUID) -> Optional[AssignmentResult]:
        """
        Assign `lead_id`, retrying on contention.

        Returns the AssignmentResult, or None when the assignment failed (the
        failure is recorded, not raised).
        """

        for attempt in range(1, self._attempts + 1):
            try:
                return assign_lead(self._store, lead_id)
            except ContentionTimeout as e:
                if attempt < self._attempts:
                    delay = self._backoff * (2 ** (attempt - 1))
                    logger.info(
                        "Assignment of lead %s contended (attempt %d/%d); retrying in %.2fs",
                        lead_id, attempt, self._attempts, delay,
                    )
                    self._sleep(delay)
                    continue
                self._record(lead_id, e, attempt, retryable=True)
                return None
            except Exception as e:
                logger.exception("Assignment of lead %s failed", lead_id)
                self._record(lead_id, e, attempt, retryable=False)
                return None
        return None

    def _record(self, lead_id: UUID, error: Exception, attempts: int, retryable: bool) -> None:
        failure = AssignmentFailure(
            lead_id=lead_id,
            error=str(error),
            attempts=attempts,
            retryable=retryable,
            failed_at=utc_now(),
        )
        logger.warning(
            "Lead %s left pending after %d attempt(s): %s", lead_id, attempts, failure.error
        )
        with self._failures_lock:
            self._failures.append(failure)
        if self._on_failure is not None:
            try:
                self._on_failure(failure)
            except Exception:
                logger.exception("Assignment failure callback raised for lead %s", lead_id)


__all__ = ["AssignmentDispatcher", "AssignmentFailure"]
