"""Tests for the schedule clock — proves cadence due-ness and advancement."""

from affiliate_payout.config import PayoutParams
from affiliate_payout.models.payout import PayoutSchedule, ScheduleState
from affiliate_payout.payout.schedule import ScheduleClock

DAY = 144
WEEK = 7 * DAY
MONTH = 30 * DAY


def _clock(state: ScheduleState | None = None, **params: int) -> ScheduleClock:
    return ScheduleClock(state or ScheduleState(), PayoutParams(**params))


class TestPeriods:
    def test_default_periods(self) -> None:
        clock = _clock()
        assert clock.period_length(PayoutSchedule.DAILY) == DAY
        assert clock.period_length(PayoutSchedule.WEEKLY) == WEEK
        assert clock.period_length(PayoutSchedule.MONTHLY) == MONTH
        assert clock.period_length(PayoutSchedule.IMMEDIATE) == 0

    def test_configurable_periods(self) -> None:
        clock = _clock(heights_per_day=24, weekly_days=5, monthly_days=20)
        assert clock.period_length(PayoutSchedule.DAILY) == 24
        assert clock.period_length(PayoutSchedule.WEEKLY) == 120
        assert clock.period_length(PayoutSchedule.MONTHLY) == 480


class TestInitialize:
    def test_arms_all_cadences(self) -> None:
        clock = _clock()
        clock.initialize(100)
        assert clock.state.next_daily == 100 + DAY
        assert clock.state.next_weekly == 100 + WEEK
        assert clock.state.next_monthly == 100 + MONTH
        assert clock.state.initialized

    def test_reinitialize_resets(self) -> None:
        clock = _clock()
        clock.initialize(0)
        clock.initialize(500)
        assert clock.state.next_weekly == 500 + WEEK


class TestDueness:
    def test_immediate_always_due(self) -> None:
        clock = _clock()
        clock.initialize(1000)
        assert clock.is_due(PayoutSchedule.IMMEDIATE, 0)

    def test_weekly_boundary(self) -> None:
        clock = _clock(ScheduleState(next_weekly=2000))
        assert not clock.is_due(PayoutSchedule.WEEKLY, 1999)
        assert clock.is_due(PayoutSchedule.WEEKLY, 2000)

    def test_uninitialized_counters_are_due(self) -> None:
        clock = _clock()
        assert clock.due_cadences(0) == {
            PayoutSchedule.DAILY, PayoutSchedule.WEEKLY, PayoutSchedule.MONTHLY,
        }


class TestAdvance:
    def test_advance_rearms_weekly(self) -> None:
        state = ScheduleState(next_daily=5000, next_weekly=2000, next_monthly=9000)
        clock = _clock(state)
        due = clock.advance(2000)
        assert due == {PayoutSchedule.WEEKLY}
        assert state.next_weekly == 2000 + WEEK

    def test_not_due_left_unchanged(self) -> None:
        state = ScheduleState(next_daily=5000, next_weekly=2000, next_monthly=9000)
        _clock(state).advance(1999)
        assert state.to_dict() == {
            "next_daily": 5000, "next_weekly": 2000,
            "next_monthly": 9000, "initialized": False,
        }

    def test_second_advance_same_height_is_noop(self) -> None:
        clock = _clock()
        clock.initialize(0)
        first = clock.advance(WEEK)
        snapshot = clock.state.to_dict()
        second = clock.advance(WEEK)
        assert PayoutSchedule.WEEKLY in first
        assert second == frozenset()
        assert clock.state.to_dict() == snapshot

    def test_advance_restricted_to_cadences(self) -> None:
        clock = _clock()
        clock.initialize(0)
        due = clock.advance(WEEK, [PayoutSchedule.WEEKLY])
        assert due == {PayoutSchedule.WEEKLY}
        # Daily was also due but not requested: left armed at its old height.
        assert clock.state.next_daily == DAY

    def test_independent_states(self) -> None:
        a, b = ScheduleState(), ScheduleState()
        _clock(a).initialize(0)
        _clock(b).initialize(1000)
        assert a.next_daily == DAY
        assert b.next_daily == 1000 + DAY
