"""Constants and default values."""

# Lifecycle states
STATUS_SCHEDULED = "scheduled"
STATUS_SENT = "sent"
STATUS_CANCELLED = "cancelled"
STATUSES = (STATUS_SCHEDULED, STATUS_SENT, STATUS_CANCELLED)

# Delivery channels
CHANNEL_PUSH = "push"
CHANNEL_EMAIL = "email"
CHANNEL_WHATSAPP = "whatsapp"
CHANNELS = (CHANNEL_PUSH, CHANNEL_EMAIL, CHANNEL_WHATSAPP)

# Priorities, lowest first
PRIORITIES = ("Low", "Medium", "High", "Urgent")
DEFAULT_PRIORITY = "Medium"

# Notifications at these priorities stay on screen until the user acts
INTERACTIVE_PRIORITIES = frozenset({"High", "Urgent"})

# Free-form category tag, e.g. Finance or Task
DEFAULT_TYPE = "General"

# Recurrence: only one-shot reminders are dispatched. The other names are
# known so they can be rejected with a clear message.
REPEAT_NONE = "none"
KNOWN_REPEATS = (REPEAT_NONE, "daily", "weekly", "monthly")

# Limits
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000

# Push body used when a reminder has no description
DEFAULT_PUSH_BODY = "You have a reminder due!"
