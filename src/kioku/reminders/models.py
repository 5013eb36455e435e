"""Data models for reminders."""

from dataclasses import dataclass
from datetime import datetime


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware time to naive local time; naive times pass through.

    Reminders are stored and compared as naive local time.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


@dataclass(frozen=True)
class ReminderDirective:
    """A reminder requested in an assistant reply, not yet stored."""

    description: str
    due_at: datetime


@dataclass(frozen=True)
class Reminder:
    """A stored reminder.

    Attributes:
        id: Database ID.
        text: What to be reminded of.
        due_at: When it is due, as naive local time.
        completed: Whether the user marked it done.
    """

    id: int
    text: str
    due_at: datetime
    completed: bool = False

    def is_overdue(self, now: datetime | None = None) -> bool:
        """Pending and past its due time."""
        if self.completed:
            return False
        now = to_local_naive(now) if now else datetime.now()
        return to_local_naive(self.due_at) <= now
