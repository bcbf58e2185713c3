"""Due-reminder detection, shared by the poller and the realtime listener."""

from datetime import datetime
from typing import Iterable, List

from duebell.db.models import Reminder
from duebell.utils.constants import STATUS_SCHEDULED


def is_due(reminder: Reminder, now: datetime) -> bool:
    """A reminder is due when it is still scheduled and its time has come."""
    return reminder.status == STATUS_SCHEDULED and reminder.schedule.date_time <= now


def select_due(candidates: Iterable[Reminder], now: datetime) -> List[Reminder]:
    """Filter candidates down to the due ones, keeping input order."""
    return [r for r in candidates if is_due(r, now)]
