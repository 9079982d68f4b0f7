from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, List, Optional

import httpx
import pytest

from standup_reminder.config import Config
from standup_reminder.holiday_checker import HolidayStatus
from standup_reminder.leave_client import LeaveClient
from standup_reminder.slack_client import SlackMessage, SlackRequestError, SlackUser

TODAY = date(2025, 6, 10)  # a Tuesday, not a holiday in England
CHANNEL = "C123"
WORKFLOW_BOT = "B0WORKFLOW"


def ts_for(day: date, hour: int = 9, minute: int = 0) -> str:
    return f"{datetime.combine(day, time(hour, minute)).timestamp():.6f}"


def prompt_message(text: str = "Daily standup time!", day: date = TODAY, hour: int = 9, **kwargs) -> SlackMessage:
    fields = dict(channel=CHANNEL, ts=ts_for(day, hour), user=None, text=text, bot_id=WORKFLOW_BOT)
    fields.update(kwargs)
    return SlackMessage(**fields)


def reply(user: Optional[str], minute: int = 30) -> SlackMessage:
    return SlackMessage(channel=CHANNEL, ts=ts_for(TODAY, 10, minute), user=user, text="done")


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeSlack:
    """In-memory stand-in for SlackAPI."""

    def __init__(
        self,
        history: Optional[List[SlackMessage]] = None,
        thread: Optional[List[SlackMessage]] = None,
        members: Optional[List[str]] = None,
        users: Optional[List[SlackUser]] = None,
    ) -> None:
        self.history = history or []
        self.thread = thread or []
        self.members = members or []
        self.users = users or []
        self.errors: Dict[str, str] = {}  # method name -> Slack error code
        self.fail_post_numbers: set = set()  # 1-based post_message calls that fail
        self.calls: List[str] = []
        self.posts: List[dict] = []
        self._post_count = 0

    def _maybe_fail(self, method: str) -> None:
        self.calls.append(method)
        if method in self.errors:
            raise SlackRequestError(method, self.errors[method])

    def fetch_recent_messages(self, channel_id: str, limit: int = 100) -> List[SlackMessage]:
        self._maybe_fail("fetch_recent_messages")
        return self.history[:limit]

    def get_thread_messages(self, channel_id: str, thread_ts: str, limit: int = 1000) -> List[SlackMessage]:
        self._maybe_fail("get_thread_messages")
        return self.thread

    def list_usergroup_members(self, usergroup_id: str) -> List[str]:
        self._maybe_fail("list_usergroup_members")
        return list(self.members)

    def list_users(self) -> List[SlackUser]:
        self._maybe_fail("list_users")
        return list(self.users)

    def post_message(self, channel_id: str, text: str, thread_ts: Optional[str] = None, unfurl: bool = False) -> str:
        self._maybe_fail("post_message")
        self._post_count += 1
        if self._post_count in self.fail_post_numbers:
            raise SlackRequestError("chat.postMessage", "channel_not_found")
        self.posts.append({"channel": channel_id, "text": text, "thread_ts": thread_ts, "unfurl": unfurl})
        return f"1700000000.{self._post_count:06d}"


class FakeHolidayChecker:
    def __init__(self, status: Optional[HolidayStatus] = None) -> None:
        self.status = status or HolidayStatus(is_holiday=False)
        self.checked: List[date] = []

    def is_non_working_day(self, today: Optional[date] = None) -> HolidayStatus:
        self.checked.append(today)
        return self.status

    def next_holiday(self, today: Optional[date] = None):
        return None


class TimetasticStub:
    """httpx.MockTransport handler serving /users and /holidays."""

    def __init__(self, users: Optional[list] = None, holidays: Optional[list] = None) -> None:
        self.users = users or []
        self.holidays = holidays or []
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self.raise_transport_error = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_transport_error:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_with:
            return httpx.Response(self.fail_with, text="upstream error")
        if request.url.path.endswith("/users"):
            return httpx.Response(200, json=self.users)
        if request.url.path.endswith("/holidays"):
            return httpx.Response(200, json={"holidays": self.holidays})
        return httpx.Response(404, text="not found")

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


def make_leave_client(stub: TimetasticStub, **kwargs) -> LeaveClient:
    http = httpx.Client(base_url="https://app.timetastic.co.uk/api", transport=httpx.MockTransport(stub))
    return LeaveClient("test-key", http=http, **kwargs)


@pytest.fixture
def cfg() -> Config:
    return Config(
        slack_bot_token="xoxb-test",
        channel_id=CHANNEL,
        usergroup_id="S0GROUP",
        standup_keywords=["standup", "daily"],
        reminder_text="Please post your standup update",
        all_clear_text="Everyone has replied",
        reminder_pause_seconds=0.0,
    )


@pytest.fixture
def timetastic() -> TimetasticStub:
    return TimetasticStub()
