"""
Run State Machine

States a search run passes through:

    pending -> filtering -> analyzing -> completed
       \\__________\\____________\\______-> failed

Transitions only move forward. Any non-terminal state may fail.
completed and failed are terminal. Every change is persisted immediately
so polling clients always see the latest progress.
"""

import logging
from datetime import datetime
from typing import List, Optional

from core.exceptions import InvalidTransitionError
from core.models import RunStatus, SearchRun
from core.repository import SearchRunRepository


logger = logging.getLogger(__name__)


_ORDER = {
    RunStatus.PENDING: 0,
    RunStatus.FILTERING: 1,
    RunStatus.ANALYZING: 2,
    RunStatus.COMPLETED: 3,
}

_COUNTERS = ("total_matched", "candidates_count", "analyzed_count")


def can_transition(current: RunStatus, target: RunStatus) -> bool:
    """Whether a run in `current` may move to `target`."""
    if current.is_terminal:
        return False
    if target == RunStatus.FAILED:
        return True
    return _ORDER[target] > _ORDER[current]


class RunStateMachine:
    """Drives one SearchRun through its lifecycle and persists every step."""

    def __init__(self, run: SearchRun, repository: SearchRunRepository):
        self._run = run
        self._repository = repository

    @property
    def run(self) -> SearchRun:
        return self._run

    @property
    def status(self) -> RunStatus:
        return self._run.status

    def advance(self, target: RunStatus, **counters: int) -> SearchRun:
        """
        Move to a later state, optionally updating progress counters.

        Raises:
            InvalidTransitionError: If the move goes backwards, repeats a
                state or leaves a terminal state
        """
        if target in (RunStatus.FAILED, RunStatus.COMPLETED):
            raise ValueError(f"Use fail() or complete() to reach {target.value}")
        self._check(target)
        self._apply_counters(counters)
        logger.info("Search %s: %s -> %s", self._run.id, self._run.status.value, target.value)
        self._run.status = target
        return self._repository.update(self._run)

    def update_progress(self, **counters: int) -> SearchRun:
        """Update progress counters without changing state."""
        if self._run.status.is_terminal:
            raise InvalidTransitionError(self._run.status.value, self._run.status.value)
        self._apply_counters(counters)
        return self._repository.update(self._run)

    def complete(self, result_ids: List[str], **counters: int) -> SearchRun:
        """Mark the run completed with its ordered result ids."""
        self._check(RunStatus.COMPLETED)
        self._apply_counters(counters)
        self._run.status = RunStatus.COMPLETED
        self._run.result_listing_ids = list(result_ids)
        self._run.completed_at = datetime.utcnow()
        logger.info("Search %s completed: %d results", self._run.id, len(result_ids))
        return self._repository.update(self._run)

    def fail(self, message: Optional[str]) -> SearchRun:
        """Mark the run failed with a human-readable message."""
        self._check(RunStatus.FAILED)
        self._run.status = RunStatus.FAILED
        self._run.error_message = message or "Unknown error"
        self._run.completed_at = datetime.utcnow()
        logger.error("Search %s failed: %s", self._run.id, self._run.error_message)
        return self._repository.update(self._run)

    def _check(self, target: RunStatus) -> None:
        if not can_transition(self._run.status, target):
            raise InvalidTransitionError(self._run.status.value, target.value)

    def _apply_counters(self, counters: dict) -> None:
        for name, value in counters.items():
            if name not in _COUNTERS:
                raise ValueError(f"Unknown progress counter: {name}")
            setattr(self._run, name, value)
