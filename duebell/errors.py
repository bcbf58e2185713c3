"""Exception hierarchy."""


class DuebellError(Exception):
    """Base class for all duebell errors."""


class ValidationError(DuebellError):
    """A reminder was rejected before being persisted."""


class StoreError(DuebellError):
    """A persistence call failed."""


class ReminderNotFound(StoreError):
    """No reminder exists with the given id."""

    def __init__(self, reminder_id: str):
        super().__init__(f"Reminder {reminder_id} not found")
        self.reminder_id = reminder_id


class InvalidTransition(DuebellError):
    """A user operation was requested on a reminder in the wrong state."""

    def __init__(self, reminder_id: str, current: str, target: str):
        super().__init__(
            f"Cannot move reminder {reminder_id} from '{current}' to '{target}'"
        )
        self.reminder_id = reminder_id
        self.current = current
        self.target = target


# Channel errors never leave the dispatch gateway; they end up as Failed outcomes.


class ChannelError(DuebellError):
    """A single delivery channel failed."""


class Unsupported(ChannelError):
    """The runtime has no notification capability for this channel."""


class PermissionDenied(ChannelError):
    """The user has not granted permission to be notified on this channel."""


class TransportError(ChannelError):
    """The outbound transport (SMTP, messaging API) rejected or lost the message."""


class DispatchTimeout(ChannelError):
    """The channel did not finish within the dispatch timeout."""
