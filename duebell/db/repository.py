"""Database repository - all SQL queries."""

import asyncio
import functools
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Set

import aiosqlite

from duebell.db.models import Contact, NewReminder, Reminder, Schedule
from duebell.errors import ReminderNotFound, StoreError
from duebell.utils.constants import STATUS_SCHEDULED, STATUSES
from duebell.utils.time_utils import from_storage, to_storage, utcnow

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[List[Reminder]], Awaitable[None]]


def _wrap_errors(func):
    """Re-raise driver errors from a store call as StoreError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except StoreError:
            raise
        except (aiosqlite.Error, RuntimeError) as e:
            raise StoreError(f"{func.__name__} failed: {e}") from e

    return wrapper


class Subscription:
    """Live feed of one user's scheduled reminders.

    Calling the subscription unsubscribes it. After the call returns no
    further snapshots are delivered; a snapshot callback already running
    is allowed to finish.
    """

    def __init__(self, store: "ReminderStore", user_id: str, on_change: SnapshotCallback):
        self.user_id = user_id
        self.closed = False
        self._store = store
        self._on_change = on_change
        self._dirty = asyncio.Event()
        self._dirty.set()  # initial snapshot
        self._task = asyncio.create_task(self._pump(), name=f"feed:{user_id}")

    def notify(self) -> None:
        self._dirty.set()

    def __call__(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._store._remove_subscription(self)
        self._dirty.set()  # wake the pump so it exits

    async def wait_closed(self) -> None:
        """Wait for the feed task to exit after unsubscribing."""
        await asyncio.shield(self._task)

    async def _pump(self) -> None:
        while not self.closed:
            await self._dirty.wait()
            self._dirty.clear()
            if self.closed:
                return

            try:
                snapshot = await self._store.list_by_user(self.user_id, STATUS_SCHEDULED)
            except StoreError as e:
                logger.error(f"Snapshot query failed for user {self.user_id}: {e}")
                continue

            if self.closed:
                return

            try:
                await self._on_change(snapshot)
            except Exception:
                logger.exception(f"Snapshot callback failed for user {self.user_id}")


class ReminderStore:
    """Persistence for reminders and notification contacts."""

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._subscriptions: Dict[str, Set[Subscription]] = {}

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection and stop all feeds."""
        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                sub()
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    # Reminder operations

    @_wrap_errors
    async def create(self, new: NewReminder, now: datetime | None = None) -> str:
        """Persist a validated reminder as scheduled and return its id."""
        now = now or utcnow()
        reminder_id = uuid.uuid4().hex
        stamp = to_storage(now)

        await self._write(
            """
            INSERT INTO reminders (
                id, user_id, title, description, type, channel, priority,
                schedule_at, schedule_repeat, status, document_id,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                reminder_id,
                new.user_id,
                new.title,
                new.description,
                new.type,
                ",".join(new.channel),
                new.priority,
                to_storage(new.schedule.date_time),
                new.schedule.repeat,
                STATUS_SCHEDULED,
                new.document_id,
                stamp,
                stamp,
            ),
        )

        logger.info(f"Created reminder {reminder_id} for user {new.user_id}")
        self._publish(new.user_id)
        return reminder_id

    @_wrap_errors
    async def get(self, reminder_id: str) -> Reminder | None:
        """Get a reminder by ID."""
        async with self.db.execute(
            "SELECT * FROM reminders WHERE id = ?", (reminder_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_reminder(row)
            return None

    @_wrap_errors
    async def list_by_user(self, user_id: str, status: str | None = None) -> List[Reminder]:
        """Get all reminders for a user, optionally filtered by status."""
        if status:
            query = (
                "SELECT * FROM reminders WHERE user_id = ? AND status = ? "
                "ORDER BY schedule_at"
            )
            params: tuple = (user_id, status)
        else:
            query = "SELECT * FROM reminders WHERE user_id = ? ORDER BY schedule_at"
            params = (user_id,)

        async with self.db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_reminder(row) for row in rows]

    @_wrap_errors
    async def query_due_scheduled(self, user_id: str, now: datetime) -> List[Reminder]:
        """Get a user's scheduled reminders whose time has come. Unordered."""
        async with self.db.execute(
            """
            SELECT * FROM reminders
            WHERE user_id = ?
            AND status = ?
            AND schedule_at <= ?
            """,
            (user_id, STATUS_SCHEDULED, to_storage(now)),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_reminder(row) for row in rows]

    @_wrap_errors
    async def update_status(
        self, reminder_id: str, status: str, now: datetime | None = None
    ) -> bool:
        """Set a reminder's status.

        Returns True when the stored status changed and False when it was
        already in the target status. Of several callers racing to the same
        status exactly one sees True.
        """
        if status not in STATUSES:
            raise ValueError(f"Unknown status: {status}")

        row = await self._write(
            """
            UPDATE reminders SET status = ?, updated_at = ?
            WHERE id = ? AND status != ?
            RETURNING user_id
            """,
            (status, to_storage(now or utcnow()), reminder_id, status),
        )

        if row is None:
            await self._ensure_exists(reminder_id)
            return False

        self._publish(row["user_id"])
        return True

    @_wrap_errors
    async def transition(
        self,
        reminder_id: str,
        allowed_from: Iterable[str],
        status: str,
        now: datetime | None = None,
        date_time: datetime | None = None,
    ) -> bool:
        """Move a reminder to `status` only if it is currently in `allowed_from`.

        Optionally rewrites the scheduled time in the same statement.
        Returns False when the current status is not allowed.
        """
        allowed = tuple(allowed_from)
        placeholders = ", ".join("?" for _ in allowed)
        assignments = ["status = ?", "updated_at = ?"]
        params: list = [status, to_storage(now or utcnow())]
        if date_time is not None:
            assignments.append("schedule_at = ?")
            params.append(to_storage(date_time))
        params.append(reminder_id)
        params.extend(allowed)

        row = await self._write(
            f"""
            UPDATE reminders SET {', '.join(assignments)}
            WHERE id = ? AND status IN ({placeholders})
            RETURNING user_id
            """,
            params,
        )

        if row is None:
            await self._ensure_exists(reminder_id)
            return False

        self._publish(row["user_id"])
        return True

    @_wrap_errors
    async def delete(self, reminder_id: str) -> None:
        """Delete a reminder."""
        row = await self._write(
            "DELETE FROM reminders WHERE id = ? RETURNING user_id", (reminder_id,)
        )

        if row is None:
            raise ReminderNotFound(reminder_id)
        self._publish(row["user_id"])

    # Change feed

    def subscribe_scheduled(self, user_id: str, on_change: SnapshotCallback) -> Subscription:
        """Push a snapshot of the user's scheduled reminders on every change.

        Must be called from a running event loop. The first snapshot is
        delivered right away.
        """
        sub = Subscription(self, user_id, on_change)
        self._subscriptions.setdefault(user_id, set()).add(sub)
        logger.debug(f"Feed opened for user {user_id}")
        return sub

    def _remove_subscription(self, sub: Subscription) -> None:
        subs = self._subscriptions.get(sub.user_id)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subscriptions[sub.user_id]
        logger.debug(f"Feed closed for user {sub.user_id}")

    def _publish(self, user_id: str) -> None:
        for sub in self._subscriptions.get(user_id, ()):
            sub.notify()

    # Contact operations

    @_wrap_errors
    async def get_contact(self, user_id: str) -> Contact | None:
        """Get a user's notification contact."""
        async with self.db.execute(
            "SELECT * FROM contacts WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_contact(row)
            return None

    @_wrap_errors
    async def get_contact_by_chat(self, chat_id: int) -> Contact | None:
        """Get the contact linked to a Telegram chat."""
        async with self.db.execute(
            "SELECT * FROM contacts WHERE telegram_chat_id = ?", (chat_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_contact(row)
            return None

    @_wrap_errors
    async def list_contacts(self) -> List[Contact]:
        """Get every registered contact."""
        async with self.db.execute("SELECT * FROM contacts ORDER BY user_id") as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_contact(row) for row in rows]

    @_wrap_errors
    async def upsert_contact(self, contact: Contact) -> None:
        """Create or replace a user's notification contact."""
        await self._write(
            """
            INSERT INTO contacts (
                user_id, email, phone, telegram_chat_id, push_enabled, timezone
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                email = excluded.email,
                phone = excluded.phone,
                telegram_chat_id = excluded.telegram_chat_id,
                push_enabled = excluded.push_enabled,
                timezone = excluded.timezone,
                updated_at = ?
            """,
            (
                contact.user_id,
                contact.email,
                contact.phone,
                contact.telegram_chat_id,
                1 if contact.push_enabled else 0,
                contact.timezone,
                to_storage(utcnow()),
            ),
        )

    # Helper methods

    async def _write(self, sql: str, params: Iterable) -> aiosqlite.Row | None:
        """Run one write statement and commit it. Writes never interleave."""
        async with self._write_lock:
            async with self.db.execute(sql, tuple(params)) as cursor:
                row = await cursor.fetchone()
            await self.db.commit()
        return row

    async def _ensure_exists(self, reminder_id: str) -> None:
        async with self.db.execute(
            "SELECT 1 FROM reminders WHERE id = ?", (reminder_id,)
        ) as cursor:
            if await cursor.fetchone() is None:
                raise ReminderNotFound(reminder_id)

    def _row_to_reminder(self, row: aiosqlite.Row) -> Reminder:
        """Convert a database row to a Reminder object."""
        return Reminder(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            type=row["type"],
            channel=tuple(c for c in row["channel"].split(",") if c),
            priority=row["priority"],
            schedule=Schedule(
                date_time=from_storage(row["schedule_at"]),
                repeat=row["schedule_repeat"],
            ),
            status=row["status"],  # type: ignore
            document_id=row["document_id"],
            created_at=from_storage(row["created_at"]),
            updated_at=from_storage(row["updated_at"]),
        )

    def _row_to_contact(self, row: aiosqlite.Row) -> Contact:
        """Convert a database row to a Contact object."""
        return Contact(
            user_id=row["user_id"],
            email=row["email"],
            phone=row["phone"],
            telegram_chat_id=row["telegram_chat_id"],
            push_enabled=bool(row["push_enabled"]),
            timezone=row["timezone"],
        )
