"""Reminders created from assistant replies."""

from .models import Reminder, ReminderDirective, to_local_naive
from .parser import REMINDER_TAG, parse_reminder
from .store import ReminderStore

__all__ = [
    "REMINDER_TAG",
    "Reminder",
    "ReminderDirective",
    "ReminderStore",
    "parse_reminder",
    "to_local_naive",
]
