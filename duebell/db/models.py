"""Data models."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Literal, Tuple

from duebell.errors import ValidationError
from duebell.utils.constants import (
    CHANNELS,
    DEFAULT_PRIORITY,
    DEFAULT_TYPE,
    KNOWN_REPEATS,
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    PRIORITIES,
    REPEAT_NONE,
)
from duebell.utils.time_utils import parse_timestamp

ReminderStatus = Literal["scheduled", "sent", "cancelled"]


@dataclass
class Schedule:
    """When a reminder fires."""

    date_time: datetime  # UTC
    repeat: str = REPEAT_NONE

    def __post_init__(self) -> None:
        try:
            self.date_time = parse_timestamp(self.date_time)
        except ValueError as e:
            raise ValidationError(f"schedule.date_time: {e}") from e


@dataclass
class NewReminder:
    """Caller-supplied fields for a reminder that has not been stored yet."""

    user_id: str
    title: str
    schedule: Schedule
    channel: Tuple[str, ...]
    description: str | None = None
    type: str = DEFAULT_TYPE
    priority: str = DEFAULT_PRIORITY
    document_id: str | None = None

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValidationError("user_id is required")

        if not self.title or not self.title.strip():
            raise ValidationError("title is required")
        self.title = self.title.strip()
        if len(self.title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"title exceeds {MAX_TITLE_LENGTH} characters")

        if self.description and len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"description exceeds {MAX_DESCRIPTION_LENGTH} characters"
            )

        if not isinstance(self.schedule, Schedule):
            raise ValidationError("schedule is required")

        if self.schedule.repeat not in KNOWN_REPEATS:
            raise ValidationError(f"unknown repeat policy: {self.schedule.repeat!r}")
        if self.schedule.repeat != REPEAT_NONE:
            raise ValidationError("recurrence is not supported")

        if isinstance(self.channel, str):
            self.channel = (self.channel,)
        # Keep first occurrence order, drop duplicates
        channels = tuple(dict.fromkeys(self.channel or ()))
        if not channels:
            raise ValidationError("at least one channel is required")
        unknown = [c for c in channels if c not in CHANNELS]
        if unknown:
            raise ValidationError(f"unknown channel(s): {', '.join(map(str, unknown))}")
        self.channel = channels

        if self.priority not in PRIORITIES:
            raise ValidationError(f"unknown priority: {self.priority!r}")

    @classmethod
    def before_due(
        cls,
        user_id: str,
        title: str,
        due_at: datetime | str,
        days_before: int = 1,
        **fields,
    ) -> "NewReminder":
        """Reminder that fires `days_before` days ahead of a due date.

        Used by write paths such as loan and bill records.
        """
        if days_before < 0:
            raise ValidationError("days_before must not be negative")
        due = Schedule(due_at).date_time
        return cls(
            user_id=user_id,
            title=title,
            schedule=Schedule(due - timedelta(days=days_before)),
            **fields,
        )


@dataclass
class Reminder:
    """A stored reminder."""

    id: str
    user_id: str
    title: str
    schedule: Schedule
    channel: Tuple[str, ...]
    status: ReminderStatus
    description: str | None = None
    type: str = DEFAULT_TYPE
    priority: str = DEFAULT_PRIORITY
    document_id: str | None = None
    created_at: datetime | None = None  # UTC
    updated_at: datetime | None = None  # UTC


@dataclass
class Contact:
    """Where a user's notifications are delivered."""

    user_id: str
    email: str | None = None
    phone: str | None = None  # WhatsApp number, international format
    telegram_chat_id: int | None = None
    push_enabled: bool = True
    timezone: str = "UTC"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one channel's delivery attempt."""

    delivered: bool
    reason: str | None = None  # error class name when failed
    detail: str | None = None

    @classmethod
    def ok(cls) -> "DeliveryOutcome":
        return cls(delivered=True)

    @classmethod
    def failed(cls, error: BaseException) -> "DeliveryOutcome":
        return cls(delivered=False, reason=type(error).__name__, detail=str(error))

    def __str__(self) -> str:
        if self.delivered:
            return "Delivered"
        return f"Failed({self.reason}: {self.detail})" if self.detail else f"Failed({self.reason})"


@dataclass
class DispatchResult:
    """Per-channel outcomes of one dispatch call."""

    reminder_id: str
    outcomes: Dict[str, DeliveryOutcome] = field(default_factory=dict)

    @property
    def delivered(self) -> list[str]:
        return [c for c, o in self.outcomes.items() if o.delivered]

    @property
    def failed(self) -> list[str]:
        return [c for c, o in self.outcomes.items() if not o.delivered]

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and not self.delivered

    def summary(self) -> str:
        return ", ".join(f"{c}={o}" for c, o in self.outcomes.items())
