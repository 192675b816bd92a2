"""
Unit tests for recurring slot resolution.
"""

from datetime import datetime, timezone

from api.routes.auto_schedule_slots import day_of_week, next_available_time
from infrastructure.database.models import AutoScheduleSlot

# Wednesday
NOW = datetime(2030, 1, 2, 10, 30, tzinfo=timezone.utc)


def _slot(day: int, time_of_day: str, is_active: bool = True) -> AutoScheduleSlot:
    return AutoScheduleSlot(user_id="u", day_of_week=day, time_of_day=time_of_day, is_active=is_active)


def test_day_of_week_is_sunday_based():
    assert day_of_week(datetime(2030, 1, 6)) == 0  # Sunday
    assert day_of_week(datetime(2030, 1, 7)) == 1  # Monday
    assert day_of_week(datetime(2030, 1, 5)) == 6  # Saturday


def test_later_today():
    slots = [_slot(3, "09:00"), _slot(3, "18:00")]
    assert next_available_time(slots, set(), NOW) == datetime(2030, 1, 2, 18, 0, tzinfo=timezone.utc)


def test_taken_slot_is_skipped():
    slots = [_slot(3, "18:00"), _slot(4, "08:15")]
    taken = {datetime(2030, 1, 2, 18, 0, tzinfo=timezone.utc)}
    assert next_available_time(slots, taken, NOW) == datetime(2030, 1, 3, 8, 15, tzinfo=timezone.utc)


def test_wraps_to_next_week():
    slots = [_slot(3, "09:00")]
    assert next_available_time(slots, set(), NOW) == datetime(2030, 1, 9, 9, 0, tzinfo=timezone.utc)


def test_inactive_slots_ignored():
    assert next_available_time([_slot(3, "18:00", is_active=False)], set(), NOW) is None


def test_nothing_within_lookahead():
    slots = [_slot(3, "18:00")]
    taken = {datetime(2030, 1, 2, 18, 0, tzinfo=timezone.utc)}
    assert next_available_time(slots, taken, NOW, days=3) is None
