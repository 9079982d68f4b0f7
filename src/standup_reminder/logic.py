from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Set

from .leave_client import LeaveClient, LeaveStatus
from .prompt_rules import is_prompt_message
from .slack_client import SlackAPI, SlackMessage, SlackRequestError, SlackUser


@dataclass
class SkippedMember:
    user_id: str
    name: str
    leave_type: str


@dataclass
class FilterResult:
    to_remind: List[str]
    skipped: List[SkippedMember] = field(default_factory=list)
    unverifiable: List[str] = field(default_factory=list)  # user ids with no email or name
    errors: List[str] = field(default_factory=list)  # user ids whose leave check raised


def find_todays_prompt(
    slack: SlackAPI,
    channel_id: str,
    keywords: List[str],
    history_limit: int = 100,
    today: Optional[date] = None,
    workflow_bot_id: Optional[str] = None,
) -> Optional[SlackMessage]:
    """Find today's standup prompt posted by the workflow, or None.

    History comes back newest first, so the first match is the latest prompt.
    """
    today = today or date.today()
    messages = slack.fetch_recent_messages(channel_id, limit=history_limit)

    for message in messages:
        if is_prompt_message(message, keywords, today, workflow_bot_id):
            preview = (message.text or "")[:50]
            print(f"[INFO] Found today's standup message from workflow: {message.ts}", flush=True)
            print(f"[INFO]   Message preview: {preview}...", flush=True)
            return message

    print("[WARNING] No standup message from workflow found for today", flush=True)
    print(f"[INFO]   Looking for keywords: {', '.join(keywords)}", flush=True)
    return None


def resolve_group_members(
    member_slack: Optional[SlackAPI],
    bot_slack: SlackAPI,
    usergroup_id: str,
) -> List[str]:
    """List usergroup members with the broad-scope client, falling back to the bot.

    Raises the first client's error when both attempts fail.
    """
    if member_slack is None:
        members = bot_slack.list_usergroup_members(usergroup_id)
        print(f"[INFO] Found {len(members)} members in user group {usergroup_id}", flush=True)
        return members

    try:
        members = member_slack.list_usergroup_members(usergroup_id)
    except SlackRequestError as e:
        print(f"[ERROR] Error fetching user group members: {e.error_code}", flush=True)
        print("[INFO]   Attempting with bot token as fallback...", flush=True)
        try:
            members = bot_slack.list_usergroup_members(usergroup_id)
        except SlackRequestError as fallback_error:
            print(f"[ERROR] Fallback also failed: {fallback_error.error_code}", flush=True)
            raise e from fallback_error
        print(f"[INFO] Fallback successful: found {len(members)} members", flush=True)
        return members

    print(f"[INFO] Found {len(members)} members in user group {usergroup_id}", flush=True)
    return members


def list_responders(
    slack: SlackAPI,
    channel_id: str,
    thread_ts: str,
    limit: int = 1000,
) -> Set[str]:
    """Distinct authors of thread replies. The first message is the prompt itself."""
    messages = slack.get_thread_messages(channel_id, thread_ts, limit=limit)
    responders = {m.user for m in messages[1:] if m.user}
    print(f"[INFO] Found {len(responders)} users who replied to the thread", flush=True)
    return responders


def compute_gap(members: Iterable[str], responders: Iterable[str]) -> List[str]:
    """Members who have not replied, without duplicates, in member order."""
    replied = set(responders)
    gap: List[str] = []
    seen: Set[str] = set()
    for user_id in members:
        if user_id in replied or user_id in seen:
            continue
        seen.add(user_id)
        gap.append(user_id)
    return gap


def load_identity_directory(slack: SlackAPI) -> Dict[str, SlackUser]:
    """Map Slack user id -> profile. An empty map on failure (everyone unverifiable)."""
    try:
        users = slack.list_users()
    except SlackRequestError as e:
        print(f"[ERROR] Error fetching Slack users: {e.error_code}", flush=True)
        return {}
    print(f"[INFO] Loaded {len(users)} Slack users with profiles", flush=True)
    return {user.id: user for user in users}


def filter_working_members(
    gap_ids: List[str],
    directory: Dict[str, SlackUser],
    leave_client: Optional[LeaveClient],
    today: Optional[date] = None,
) -> FilterResult:
    """Drop gap members whose leave calendar says they are off today.

    Never adds anyone: the result is always a subset of ``gap_ids``, and every
    doubt (no profile, unknown user, API error) keeps the member in.
    """
    if leave_client is None:
        print("[WARNING] Timetastic integration not configured, skipping leave checks", flush=True)
        return FilterResult(to_remind=list(gap_ids))

    today = today or date.today()
    result = FilterResult(to_remind=[])

    for user_id in gap_ids:
        profile = directory.get(user_id)
        email = profile.email if profile else None
        name = profile.name if profile else None
        label = name or user_id

        if not email and not name:
            print(f"[WARNING]   No email or name for {user_id}, including in reminders", flush=True)
            result.unverifiable.append(user_id)
            result.to_remind.append(user_id)
            continue

        try:
            status: LeaveStatus = leave_client.check_user(email, name, today)
        except Exception as e:
            print(f"[ERROR]   Leave check failed for {label}: {e}; including in reminders", flush=True)
            result.errors.append(user_id)
            result.to_remind.append(user_id)
            continue

        if status.working:
            result.to_remind.append(user_id)
            if status.leave_type:
                print(f"[LEAVE]   {label} is working ({status.leave_type})", flush=True)
            continue

        leave_type = status.leave_type or status.reason
        print(f"[LEAVE]   Skipping {label}: {leave_type}", flush=True)
        result.skipped.append(SkippedMember(user_id=user_id, name=label, leave_type=leave_type))

    return result
