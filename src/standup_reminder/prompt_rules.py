from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from .slack_client import SlackMessage


# Message subtypes a Workflow Builder post can carry. Anything else with a
# bot_id (channel_join, bot_add, ...) is not a prompt.
WORKFLOW_SUBTYPES = {None, "bot_message"}


def text_contains_any(text: str, needles: Iterable[str]) -> bool:
    """Case-insensitive substring check against a list of keywords."""
    if not text:
        return False

    lowered = text.lower()
    for needle in needles:
        needle = needle.strip().lower()
        if needle and needle in lowered:
            return True
    return False


def is_workflow_message(message: SlackMessage, workflow_bot_id: Optional[str] = None) -> bool:
    """True for posts made by an automated workflow rather than a person."""
    if not message.bot_id:
        return False
    if message.subtype not in WORKFLOW_SUBTYPES:
        return False
    if workflow_bot_id and message.bot_id != workflow_bot_id:
        return False
    return True


def is_prompt_message(
    message: SlackMessage,
    keywords: List[str],
    today: date,
    workflow_bot_id: Optional[str] = None,
) -> bool:
    try:
        posted_on = message.local_date
    except (TypeError, ValueError, OverflowError):
        return False
    if posted_on != today:
        return False
    if not is_workflow_message(message, workflow_bot_id):
        return False
    return text_contains_any(message.text, keywords)


def is_non_working_leave(leave_type: str, non_working_types: Iterable[str]) -> bool:
    """Leave labels like "Holiday (half day)" still count as Holiday."""
    return text_contains_any(leave_type or "", non_working_types)


def leave_category(leave_type: Optional[str]) -> str:
    """Bucket a leave label for the end-of-run summary."""
    lowered = (leave_type or "").lower()
    if "holiday" in lowered:
        return "holiday"
    if "sick" in lowered:
        return "sick_leave"
    if "day off" in lowered:
        return "day_off"
    return "other"
