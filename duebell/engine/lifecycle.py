"""Reminder lifecycle - claims due reminders, dispatches them, retires them.

States::

    scheduled --dispatch attempt--> sent
    scheduled --user cancel-------> cancelled
    scheduled|sent --reschedule---> scheduled

A reminder is retired (moved to sent) after a dispatch *attempt*, whatever
the per-channel outcome, when RETIRE_ON_ATTEMPT is set. A permanently broken
channel therefore cannot keep a reminder firing forever, at the cost of a
notification that may never have arrived.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Set

from duebell.db.models import DispatchResult, NewReminder, Reminder, Schedule
from duebell.db.repository import ReminderStore
from duebell.dispatch.gateway import NotificationGateway
from duebell.engine.detector import is_due
from duebell.errors import InvalidTransition, ReminderNotFound, StoreError
from duebell.utils.constants import STATUS_CANCELLED, STATUS_SCHEDULED, STATUS_SENT
from duebell.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

RETIRE_ON_ATTEMPT = True


@dataclass
class ProcessResult:
    """What happened to one due reminder."""

    reminder_id: str
    dispatch: DispatchResult
    retired: bool  # this call moved the reminder from scheduled to sent


@dataclass
class BatchReport:
    """Summary of one trigger's batch."""

    results: List[ProcessResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: Dict[str, BaseException] = field(default_factory=dict)

    @property
    def retired(self) -> List[str]:
        return [r.reminder_id for r in self.results if r.retired]


class LifecycleController:
    """Owns every status transition of a reminder."""

    def __init__(
        self,
        store: ReminderStore,
        gateway: NotificationGateway,
        clock: Callable[[], datetime] = utcnow,
        retire_on_attempt: bool = RETIRE_ON_ATTEMPT,
    ):
        self.store = store
        self.gateway = gateway
        self.clock = clock
        self.retire_on_attempt = retire_on_attempt
        self._in_flight: Set[str] = set()

    async def prepare(self, user_id: str) -> None:
        """Check channel readiness for a user before triggers start."""
        try:
            await self.gateway.prepare(user_id)
        except StoreError as e:
            logger.warning(f"Could not check channels for user {user_id}: {e}")

    async def process(self, candidate: Reminder) -> ProcessResult | None:
        """Claim, dispatch and retire one reminder believed to be due.

        Returns None when the reminder was skipped: already being processed
        in this process, no longer scheduled, or not due yet. A StoreError
        from the retiring write propagates; the reminder then stays
        scheduled and is picked up again by the next trigger.
        """
        if candidate.id in self._in_flight:
            logger.debug(f"Reminder {candidate.id} already in flight, skipping")
            return None

        self._in_flight.add(candidate.id)
        try:
            # Another trigger may have retired it since detection
            current = await self.store.get(candidate.id)
            if current is None or not is_due(current, self.clock()):
                logger.debug(f"Reminder {candidate.id} no longer due, skipping")
                return None

            result = await self.gateway.dispatch(current)

            if result.all_failed:
                logger.warning(
                    f"Reminder {current.id} ('{current.title}'): every channel failed "
                    f"[{result.summary()}]"
                )
            else:
                logger.info(
                    f"Reminder {current.id} ('{current.title}') dispatched "
                    f"[{result.summary()}]"
                )

            if not self.retire_on_attempt and not result.delivered:
                logger.warning(f"Reminder {current.id} left scheduled for retry")
                return ProcessResult(current.id, result, retired=False)

            # Only a still-scheduled reminder retires; a cancel during dispatch wins
            retired = await self.store.transition(
                current.id, [STATUS_SCHEDULED], STATUS_SENT, self.clock()
            )
            if not retired:
                logger.info(f"Reminder {current.id} was retired or cancelled elsewhere")
            return ProcessResult(current.id, result, retired=retired)
        finally:
            self._in_flight.discard(candidate.id)

    async def process_batch(self, candidates: Iterable[Reminder]) -> BatchReport:
        """Process reminders independently; one failure never stops the others."""
        unique = list({r.id: r for r in candidates}.values())
        outcomes = await asyncio.gather(
            *(self.process(r) for r in unique), return_exceptions=True
        )

        report = BatchReport()
        for reminder, outcome in zip(unique, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, StoreError):
                logger.error(
                    f"Reminder {reminder.id} not retired, will retry next cycle: {outcome}"
                )
                report.errors[reminder.id] = outcome
            elif isinstance(outcome, BaseException):
                logger.error(
                    f"Error processing reminder {reminder.id}",
                    exc_info=(type(outcome), outcome, outcome.__traceback__),
                )
                report.errors[reminder.id] = outcome
            elif outcome is None:
                report.skipped.append(reminder.id)
            else:
                report.results.append(outcome)
        return report

    # User operations

    async def create(self, new: NewReminder) -> str:
        """Store a new reminder. Entry point for the domain write paths."""
        return await self.store.create(new, self.clock())

    async def cancel(self, reminder_id: str) -> bool:
        """scheduled -> cancelled. Returns False if it was already cancelled."""
        if await self.store.transition(
            reminder_id, [STATUS_SCHEDULED], STATUS_CANCELLED, self.clock()
        ):
            logger.info(f"Cancelled reminder {reminder_id}")
            return True

        current = await self._require(reminder_id)
        if current.status == STATUS_CANCELLED:
            return False
        raise InvalidTransition(reminder_id, current.status, STATUS_CANCELLED)

    async def reschedule(self, reminder_id: str, date_time: datetime | str) -> None:
        """Move a reminder to a new time and make it scheduled again.

        Works on scheduled and already-sent reminders, so a sent reminder
        can be revived. Cancelled reminders stay cancelled.
        """
        when = Schedule(date_time).date_time
        if await self.store.transition(
            reminder_id,
            [STATUS_SCHEDULED, STATUS_SENT],
            STATUS_SCHEDULED,
            self.clock(),
            date_time=when,
        ):
            logger.info(f"Rescheduled reminder {reminder_id} to {when.isoformat()}")
            return

        current = await self._require(reminder_id)
        raise InvalidTransition(reminder_id, current.status, STATUS_SCHEDULED)

    async def _require(self, reminder_id: str) -> Reminder:
        reminder = await self.store.get(reminder_id)
        if reminder is None:
            raise ReminderNotFound(reminder_id)
        return reminder
