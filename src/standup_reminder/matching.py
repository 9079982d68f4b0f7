"""Identity matching between Slack profiles and leave-calendar users.

Email is the join key. When a Slack profile has no email, or the email is not
known to the leave calendar, the Slack display name is matched against the
calendar's first/last names. The name heuristic tolerates small spelling
differences between the two systems (e.g. "Bogatyreva" vs "Bogatyrkova") and
can produce false positives; see DESIGN.md.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

# Number of leading last-name characters that must agree for a fuzzy match.
LAST_NAME_PREFIX = 6


@dataclass
class LeaveUser:
    id: str
    email: Optional[str]
    first_name: str
    last_name: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def find_leave_user_by_email(users: Iterable[LeaveUser], email: Optional[str]) -> Optional[LeaveUser]:
    if not email:
        return None
    wanted = email.strip().lower()
    for user in users:
        if user.email and user.email.strip().lower() == wanted:
            return user
    return None


def find_leave_user_by_name(users: Sequence[LeaveUser], display_name: Optional[str]) -> Optional[LeaveUser]:
    """Match a Slack display name against leave-calendar names.

    Pass 1: every name token appears in the user's "first last".
    Pass 2: the first token appears in the first name, and the last names
    share their first six characters in either direction.
    """
    if not display_name or not display_name.strip():
        return None

    parts = display_name.lower().split()

    for user in users:
        full_name = f"{user.first_name} {user.last_name}".lower()
        if all(part in full_name for part in parts):
            return user

    wanted_first = parts[0] if parts else ""
    wanted_last = parts[1] if len(parts) > 1 else ""
    for user in users:
        first = (user.first_name or "").lower()
        last = (user.last_name or "").lower()
        if wanted_first in first and (
            wanted_last[:LAST_NAME_PREFIX] in last or last[:LAST_NAME_PREFIX] in wanted_last
        ):
            return user

    return None


def find_leave_user(
    users: Sequence[LeaveUser],
    email: Optional[str],
    display_name: Optional[str],
) -> Optional[LeaveUser]:
    """Exact email match first, then the name heuristic."""
    user = find_leave_user_by_email(users, email)
    if user is not None:
        return user
    return find_leave_user_by_name(users, display_name)
