from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional
import time

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError


class SlackRequestError(RuntimeError):
    """A Slack Web API call failed.

    ``error_code`` is Slack's ``error`` field, or ``transport_error`` when the
    request never got a response (timeout, connection refused).
    """

    def __init__(self, method: str, error_code: str) -> None:
        super().__init__(f"Slack API call {method} failed: {error_code}")
        self.method = method
        self.error_code = error_code


@dataclass
class SlackMessage:
    channel: str
    ts: str
    user: Optional[str]
    text: str
    thread_ts: Optional[str] = None
    bot_id: Optional[str] = None
    subtype: Optional[str] = None

    @property
    def local_date(self) -> date:
        # Slack timestamps are like "1701985150.000200" (seconds.micros)
        return datetime.fromtimestamp(float(self.ts)).date()


@dataclass
class SlackUser:
    id: str
    email: Optional[str]
    name: Optional[str]


def _to_message(channel_id: str, m: dict) -> SlackMessage:
    return SlackMessage(
        channel=channel_id,
        ts=m.get("ts", "0"),
        user=m.get("user"),
        text=m.get("text", "") or "",
        thread_ts=m.get("thread_ts"),
        bot_id=m.get("bot_id"),
        subtype=m.get("subtype"),
    )


TRANSPORT_ERROR = "transport_error"  # timeout, DNS or connection failure below the Web API


def _error_code(e: SlackApiError) -> str:
    return e.response.get("error", "") or "unknown_error"


class SlackAPI:
    """Thin wrapper over Slack WebClient for the operations the reminder run needs."""

    def __init__(self, token: str, timeout: int = 10, client: Optional[WebClient] = None) -> None:
        self.client = client or WebClient(token=token, timeout=timeout)

    def fetch_recent_messages(self, channel_id: str, limit: int = 100) -> List[SlackMessage]:
        """Return the most recent ``limit`` channel messages, newest first (one page)."""
        try:
            resp = self.client.conversations_history(channel=channel_id, limit=limit)
        except SlackApiError as e:
            raise SlackRequestError("conversations.history", _error_code(e)) from e
        except OSError as e:
            raise SlackRequestError("conversations.history", TRANSPORT_ERROR) from e

        return [_to_message(channel_id, m) for m in resp.get("messages", [])[:limit]]

    def get_thread_messages(
        self,
        channel_id: str,
        thread_ts: str,
        limit: int = 1000,
        max_retries: int = 3,
    ) -> List[SlackMessage]:
        """Return all messages in a thread, the parent first.

        Rate-limited calls are retried after Slack's Retry-After; any other
        error, or exhausting the retries, raises SlackRequestError.
        """

        for attempt in range(max_retries):
            try:
                resp = self.client.conversations_replies(channel=channel_id, ts=thread_ts, limit=limit)
                return [_to_message(channel_id, m) for m in resp.get("messages", [])]
            except SlackApiError as e:
                error_code = _error_code(e)
                if error_code == "ratelimited" and attempt < max_retries - 1:
                    retry_after = int(e.response.headers.get("Retry-After", "30"))
                    wait_time = retry_after + (attempt * 2)
                    print(
                        f"[RATE LIMIT] Waiting {wait_time} seconds before retry {attempt + 2}/{max_retries}...",
                        flush=True,
                    )
                    time.sleep(wait_time)
                    continue
                raise SlackRequestError("conversations.replies", error_code) from e
            except OSError as e:
                raise SlackRequestError("conversations.replies", TRANSPORT_ERROR) from e

        raise SlackRequestError("conversations.replies", "ratelimited")

    def list_usergroup_members(self, usergroup_id: str) -> List[str]:
        try:
            resp = self.client.usergroups_users_list(usergroup=usergroup_id)
        except SlackApiError as e:
            raise SlackRequestError("usergroups.users.list", _error_code(e)) from e
        except OSError as e:
            raise SlackRequestError("usergroups.users.list", TRANSPORT_ERROR) from e
        return list(resp.get("users", []) or [])

    def list_users(self) -> List[SlackUser]:
        """Return active human workspace members with their email and display name."""

        users: List[SlackUser] = []
        cursor: Optional[str] = None
        while True:
            try:
                resp = self.client.users_list(limit=200, cursor=cursor)
            except SlackApiError as e:
                raise SlackRequestError("users.list", _error_code(e)) from e
            except OSError as e:
                raise SlackRequestError("users.list", TRANSPORT_ERROR) from e

            for member in resp.get("members", []):
                if not member.get("id") or member.get("deleted") or member.get("is_bot"):
                    continue
                profile = member.get("profile", {}) or {}
                users.append(
                    SlackUser(
                        id=member["id"],
                        email=profile.get("email") or None,
                        name=member.get("real_name") or profile.get("real_name") or member.get("name") or None,
                    )
                )

            cursor = resp.get("response_metadata", {}).get("next_cursor") or None
            if not cursor:
                break

        return users

    def post_message(
        self,
        channel_id: str,
        text: str,
        thread_ts: Optional[str] = None,
        unfurl: bool = False,
    ) -> str:
        """Post a message (or a thread reply when ``thread_ts`` is set). Returns its ts."""
        try:
            resp = self.client.chat_postMessage(
                channel=channel_id,
                text=text,
                thread_ts=thread_ts,
                unfurl_links=unfurl,
                unfurl_media=unfurl,
            )
        except SlackApiError as e:
            raise SlackRequestError("chat.postMessage", _error_code(e)) from e
        except OSError as e:
            raise SlackRequestError("chat.postMessage", TRANSPORT_ERROR) from e
        return resp.get("ts", "")
