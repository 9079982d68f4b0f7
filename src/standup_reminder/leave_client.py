"""Timetastic leave-calendar client.

Answers "is this person expected to work today?" for the reminder run. Every
failure mode answers "yes": an unknown user, an unreachable API or an
unexpected payload never removes anyone from the reminder.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from .cache import TTLCache
from .config import DEFAULT_NON_WORKING_LEAVE_TYPES
from .matching import LeaveUser, find_leave_user
from .prompt_rules import is_non_working_leave
from .rate_limit import SlidingWindowLimiter


TIMETASTIC_API_BASE = "https://app.timetastic.co.uk/api"
CACHE_TTL_SECONDS = 3600

USERS_CACHE_KEY = "timetastic_users"

# LeaveStatus.reason values
NO_IDENTIFICATION = "no_identification"
NOT_FOUND = "not_in_timetastic"
NO_ABSENCE = "no_absence"
ON_LEAVE = "on_leave"
WORKING_WITH_LEAVE = "working_remotely"
API_ERROR = "api_error"


class LeaveServiceError(RuntimeError):
    """The leave service could not be reached or returned something unusable."""


@dataclass
class LeaveRecord:
    user_id: str
    leave_type: str
    start: Optional[date] = None
    end: Optional[date] = None

    def covers(self, day: date) -> bool:
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True


@dataclass
class LeaveStatus:
    working: bool
    reason: str
    leave_type: Optional[str] = None
    matched_name: Optional[str] = None


@dataclass
class LeaveSummary:
    total: int
    by_type: Dict[str, int] = field(default_factory=dict)


def _parse_date(value: Any) -> Optional[date]:
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _unwrap_list(payload: Any, *keys: str) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise LeaveServiceError(f"Unexpected payload shape: {type(payload).__name__}")


def parse_leave_users(payload: Any) -> List[LeaveUser]:
    """Normalize a /users response (bare list or wrapped in "users")."""
    users: List[LeaveUser] = []
    for item in _unwrap_list(payload, "users", "data"):
        if not isinstance(item, dict) or item.get("id") is None:
            continue
        users.append(
            LeaveUser(
                id=str(item["id"]),
                email=item.get("email") or None,
                first_name=item.get("firstname") or item.get("firstName") or "",
                last_name=item.get("surname") or item.get("lastName") or "",
            )
        )
    return users


def _leave_type_label(item: Dict[str, Any]) -> str:
    label = item.get("leaveTypeName") or item.get("leaveType") or ""
    if isinstance(label, dict):
        label = label.get("name") or label.get("leaveTypeName") or ""
    return str(label)


def parse_absences(payload: Any) -> List[LeaveRecord]:
    """Normalize a /holidays response.

    Absences arrive either under a "holidays" key or as a bare list, and the
    leave type is either a plain label or an object with a "name".
    """
    records: List[LeaveRecord] = []
    for item in _unwrap_list(payload, "holidays", "data"):
        if not isinstance(item, dict):
            continue
        user_id = item.get("userId", item.get("user_id"))
        if user_id is None:
            continue
        records.append(
            LeaveRecord(
                user_id=str(user_id),
                leave_type=_leave_type_label(item),
                start=_parse_date(item.get("startDate") or item.get("start")),
                end=_parse_date(item.get("endDate") or item.get("end")),
            )
        )
    return records


class LeaveClient:
    """Read-only Timetastic client with cached users/absences and request pacing."""

    def __init__(
        self,
        api_key: str,
        non_working_types: Optional[List[str]] = None,
        base_url: str = TIMETASTIC_API_BASE,
        timeout: float = 10.0,
        http: Optional[httpx.Client] = None,
        cache: Optional[TTLCache] = None,
        limiter: Optional[SlidingWindowLimiter] = None,
    ) -> None:
        self.non_working_types = list(non_working_types or DEFAULT_NON_WORKING_LEAVE_TYPES)
        self._http = http or httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout,
        )
        self._cache = cache or TTLCache(CACHE_TTL_SECONDS)
        self._limiter = limiter or SlidingWindowLimiter(max_requests=60, soft_limit=55)

    def close(self) -> None:
        self._http.close()

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        self._limiter.acquire()
        try:
            resp = self._http.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise LeaveServiceError(
                f"GET {path} returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise LeaveServiceError(f"GET {path} failed: {e}") from e
        except ValueError as e:
            raise LeaveServiceError(f"GET {path} returned invalid JSON: {e}") from e

    def get_users(self) -> List[LeaveUser]:
        cached = self._cache.get(USERS_CACHE_KEY)
        if cached is not None:
            return cached

        users = parse_leave_users(self._get("/users"))
        self._cache.set(USERS_CACHE_KEY, users)
        print(f"[LEAVE] Fetched {len(users)} users from Timetastic", flush=True)
        return users

    def get_absences(self, day: date) -> List[LeaveRecord]:
        day_str = day.isoformat()
        cache_key = f"absences_{day_str}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        payload = self._get("/holidays", params={"Start": day_str, "End": day_str})
        absences = [record for record in parse_absences(payload) if record.covers(day)]
        self._cache.set(cache_key, absences)
        print(f"[LEAVE] Found {len(absences)} absences for {day_str}", flush=True)
        return absences

    def check_user(
        self,
        email: Optional[str],
        name: Optional[str],
        today: Optional[date] = None,
    ) -> LeaveStatus:
        """Decide whether a person is working on ``today``."""
        if not email and not name:
            return LeaveStatus(working=True, reason=NO_IDENTIFICATION)

        today = today or date.today()
        try:
            user = find_leave_user(self.get_users(), email, name)
            if user is None:
                print(f"[WARNING] User not found in Timetastic: {email or name}", flush=True)
                return LeaveStatus(working=True, reason=NOT_FOUND)

            absence = next(
                (record for record in self.get_absences(today) if record.user_id == user.id),
                None,
            )
        except LeaveServiceError as e:
            print(f"[WARNING] Leave check failed for {email or name}: {e}", flush=True)
            return LeaveStatus(working=True, reason=API_ERROR)

        if absence is None:
            return LeaveStatus(working=True, reason=NO_ABSENCE, matched_name=user.full_name)

        if is_non_working_leave(absence.leave_type, self.non_working_types):
            return LeaveStatus(
                working=False,
                reason=ON_LEAVE,
                leave_type=absence.leave_type,
                matched_name=user.full_name,
            )

        # Remote, office and similar labels still mean the person is working.
        return LeaveStatus(
            working=True,
            reason=WORKING_WITH_LEAVE,
            leave_type=absence.leave_type,
            matched_name=user.full_name,
        )

    def leave_summary(self, today: Optional[date] = None) -> Optional[LeaveSummary]:
        try:
            absences = self.get_absences(today or date.today())
        except LeaveServiceError as e:
            print(f"[WARNING] Could not build leave summary: {e}", flush=True)
            return None

        counts = Counter(record.leave_type or "Unknown" for record in absences)
        return LeaveSummary(total=len(absences), by_type=dict(counts))
