"""Reminder tag parsing for completed assistant replies."""

import logging
import re

import dateparser

from .models import ReminderDirective, to_local_naive

logger = logging.getLogger(__name__)

REMINDER_TAG = re.compile(r'\[REMINDER:\s*"(.*?)"\s*AT\s*"(.*?)"\]')


def parse_reminder(
    text: str, locales: list[str] | None = None
) -> ReminderDirective | None:
    """Find a ``[REMINDER: "..." AT "..."]`` tag and parse its time.

    Only call this on a finished reply, never on partial stream output.
    Past times are accepted; the reminder is simply overdue. Times naming a
    zone are converted to naive local time.

    Args:
        text: Completed assistant message.
        locales: Optional locales (e.g. ``["en-GB"]``) to guide date parsing.

    Returns:
        The directive, or None if there is no tag or its time can't be parsed.
    """
    match = REMINDER_TAG.search(text)
    if not match:
        return None

    description, time_text = match.group(1).strip(), match.group(2).strip()
    if not description or not time_text:
        return None

    due_at = dateparser.parse(time_text, locales=locales or None)
    if due_at is None:
        logger.debug(f"Discarding reminder with unparseable time: {time_text!r}")
        return None

    return ReminderDirective(description=description, due_at=to_local_naive(due_at))
