"""Polling & realtime coordinator.

Two triggers feed the lifecycle controller for one user:

- an interval poller that queries the store for due reminders, and
- a realtime listener on the store's change feed.

The listener only reacts to data changes; reminders that become due by the
passage of time are found by the poller. Both triggers can see the same
reminder. The controller's re-validation and the conditional status write
keep it from being retired twice, but two processes polling one store can
still dispatch it twice.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List

from duebell.db.models import Reminder
from duebell.db.repository import ReminderStore, Subscription
from duebell.engine.detector import select_due
from duebell.engine.lifecycle import BatchReport, LifecycleController
from duebell.errors import StoreError
from duebell.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0  # seconds


class ReminderCoordinator:
    """Runs the poller and the realtime listener for one user."""

    def __init__(
        self,
        store: ReminderStore,
        controller: LifecycleController,
        user_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], datetime] = utcnow,
        realtime: bool = True,
    ):
        self.store = store
        self.controller = controller
        self.user_id = user_id
        self.poll_interval = poll_interval
        self.clock = clock
        self.realtime = realtime
        self.last_tick_at: datetime | None = None
        self._stopping = asyncio.Event()
        self._start_lock = asyncio.Lock()
        self._poll_task: asyncio.Task | None = None
        self._subscription: Subscription | None = None

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self) -> None:
        """Start both triggers. The first poll runs immediately."""
        # Overlapping calls must not each open a poll task and a feed
        async with self._start_lock:
            if self.running:
                return

            await self.controller.prepare(self.user_id)

            self._stopping.clear()
            self._poll_task = asyncio.create_task(
                self._poll_loop(), name=f"poll:{self.user_id}"
            )
            if self.realtime:
                self._subscription = self.store.subscribe_scheduled(
                    self.user_id, self.handle_snapshot
                )

        logger.info(
            f"Reminder coordinator started for user {self.user_id} "
            f"(interval: {self.poll_interval}s, realtime: {self.realtime})"
        )

    async def stop(self) -> None:
        """Stop both triggers and wait for in-progress work to finish."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription()

        self._stopping.set()
        task, self._poll_task = self._poll_task, None
        if task is not None:
            await task
        if subscription is not None:
            await subscription.wait_closed()

        logger.info(f"Reminder coordinator stopped for user {self.user_id}")

    async def poll_once(self) -> BatchReport | None:
        """One poll tick. Returns None if the store query failed."""
        now = self.clock()
        self.last_tick_at = now
        try:
            candidates = await self.store.query_due_scheduled(self.user_id, now)
        except StoreError as e:
            logger.error(f"Poll for user {self.user_id} failed, retrying next tick: {e}")
            return None

        due = select_due(candidates, now)
        if not due:
            return BatchReport()

        logger.info(f"Poll: {len(due)} reminder(s) due for user {self.user_id}")
        return await self.controller.process_batch(due)

    async def handle_snapshot(self, snapshot: List[Reminder]) -> BatchReport:
        """Realtime trigger: process whatever in the snapshot is due."""
        due = select_due(snapshot, self.clock())
        if not due:
            return BatchReport()

        logger.info(f"Realtime: {len(due)} reminder(s) due for user {self.user_id}")
        return await self.controller.process_batch(due)

    async def _poll_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception(f"Poll tick for user {self.user_id} failed")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass


class CoordinatorGroup:
    """One coordinator per user, started on demand."""

    def __init__(
        self,
        store: ReminderStore,
        controller: LifecycleController,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.controller = controller
        self.poll_interval = poll_interval
        self.clock = clock
        self.coordinators: Dict[str, ReminderCoordinator] = {}

    async def ensure(self, user_id: str) -> ReminderCoordinator:
        """Get the user's coordinator, starting it if needed."""
        coordinator = self.coordinators.get(user_id)
        if coordinator is None:
            coordinator = ReminderCoordinator(
                self.store,
                self.controller,
                user_id,
                poll_interval=self.poll_interval,
                clock=self.clock,
            )
            self.coordinators[user_id] = coordinator
        await coordinator.start()
        return coordinator

    async def stop_all(self) -> None:
        for coordinator in list(self.coordinators.values()):
            await coordinator.stop()
        self.coordinators.clear()
