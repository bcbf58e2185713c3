"""Tests for due-reminder detection."""

from datetime import timedelta

from conftest import NOW

from duebell.db.models import Reminder, Schedule
from duebell.engine.detector import is_due, select_due


def _reminder(id: str, offset: timedelta, status: str = "scheduled") -> Reminder:
    return Reminder(
        id=id,
        user_id="user-1",
        title=f"Reminder {id}",
        schedule=Schedule(NOW + offset),
        channel=("push",),
        status=status,  # type: ignore[arg-type]
    )


def test_due_when_scheduled_and_time_passed():
    assert is_due(_reminder("a", timedelta(seconds=-1)), NOW)
    assert is_due(_reminder("b", timedelta(0)), NOW)  # boundary is inclusive


def test_not_due_in_future():
    assert not is_due(_reminder("a", timedelta(seconds=1)), NOW)


def test_not_due_once_retired_or_cancelled():
    assert not is_due(_reminder("a", timedelta(hours=-1), status="sent"), NOW)
    assert not is_due(_reminder("b", timedelta(hours=-1), status="cancelled"), NOW)


def test_select_due_partitions_candidates():
    """Every scheduled past reminder is selected and nothing else."""
    candidates = [
        _reminder("past", timedelta(minutes=-5)),
        _reminder("future", timedelta(minutes=5)),
        _reminder("sent", timedelta(minutes=-5), status="sent"),
        _reminder("cancelled", timedelta(minutes=-5), status="cancelled"),
        _reminder("now", timedelta(0)),
        _reminder("long-overdue", timedelta(days=-30)),
    ]

    due = select_due(candidates, NOW)

    assert [r.id for r in due] == ["past", "now", "long-overdue"]


def test_select_due_empty():
    assert select_due([], NOW) == []
