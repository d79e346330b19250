"""Schedule clock — decides which payout cadences are due at a height.

The clock owns no state of its own. It reads and advances an injected
ScheduleState, so each service (and each test) can run an isolated
schedule.

Cadence periods, in logical heights:
    daily   = heights_per_day
    weekly  = weekly_days  × heights_per_day
    monthly = monthly_days × heights_per_day

Immediate is always due and has no counter.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, Optional

from affiliate_payout.config import PayoutParams
from affiliate_payout.models.payout import (
    SCHEDULED_CADENCES,
    PayoutSchedule,
    ScheduleState,
)


class ScheduleClock:
    """Cadence due-ness over an explicit ScheduleState.

    Usage:
        clock = ScheduleClock(ScheduleState(), params)
        clock.initialize(now=1000)
        due = clock.advance(now)   # cadences that elapsed, now re-armed
    """

    def __init__(
        self,
        state: ScheduleState,
        params: Optional[PayoutParams] = None,
    ) -> None:
        self._state = state
        self._params = params or PayoutParams()

    @property
    def state(self) -> ScheduleState:
        return self._state

    def period_length(self, cadence: PayoutSchedule) -> int:
        day = self._params.heights_per_day
        if cadence == PayoutSchedule.DAILY:
            return day
        if cadence == PayoutSchedule.WEEKLY:
            return self._params.weekly_days * day
        if cadence == PayoutSchedule.MONTHLY:
            return self._params.monthly_days * day
        return 0

    def is_due(self, cadence: PayoutSchedule, now: int) -> bool:
        if cadence == PayoutSchedule.IMMEDIATE:
            return True
        return now >= self._state.next_for(cadence)

    def due_cadences(self, now: int) -> FrozenSet[PayoutSchedule]:
        """Scheduled cadences due at now, without advancing anything."""
        return frozenset(c for c in SCHEDULED_CADENCES if self.is_due(c, now))

    def advance(
        self,
        now: int,
        cadences: Optional[Iterable[PayoutSchedule]] = None,
    ) -> FrozenSet[PayoutSchedule]:
        """Re-arm every cadence whose next height has been reached.

        Each due cadence moves to now + period_length. Cadences not yet
        due are left alone, so calling twice at the same height is a
        no-op the second time. When cadences is given, only those are
        considered.

        Returns:
            The cadences that were due at now (before re-arming).
        """
        due = self.due_cadences(now)
        if cadences is not None:
            due = due & frozenset(cadences)
        for cadence in due:
            self._state.set_next(cadence, now + self.period_length(cadence))
        return due

    def initialize(self, now: int) -> None:
        """Arm all cadences one full period after now.

        Calling again resets every schedule. Authorization is the
        caller's responsibility.
        """
        for cadence in SCHEDULED_CADENCES:
            self._state.set_next(cadence, now + self.period_length(cadence))
        self._state.initialized = True
