"""Standup reminder run.

This module provides the logic for:
1. Skipping the run on public holidays
2. Finding today's standup thread and who has not replied yet
3. Leaving out people who are on leave today
4. Posting batched mention reminders (or an all-clear) in the thread
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from .config import Config
from .holiday_checker import HolidayChecker
from .leave_client import LeaveClient
from .logic import (
    compute_gap,
    filter_working_members,
    find_todays_prompt,
    list_responders,
    load_identity_directory,
    resolve_group_members,
)
from .slack_client import SlackAPI, SlackRequestError

REMINDER_BATCH_SIZE = 20
REMINDER_PAUSE_SECONDS = 1.0


@dataclass
class DispatchResult:
    batches_sent: int = 0
    batches_failed: int = 0
    reminded: int = 0
    all_clear_sent: bool = False


def chunk_user_ids(user_ids: List[str], size: int = REMINDER_BATCH_SIZE) -> List[List[str]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    return [user_ids[i:i + size] for i in range(0, len(user_ids), size)]


def build_reminder_message(reminder_text: str, batch: List[str]) -> str:
    mentions = " ".join(f"<@{user_id}>" for user_id in batch)
    return f"{reminder_text}\n\n{mentions}"


def send_reminders(
    slack: SlackAPI,
    channel_id: str,
    thread_ts: str,
    user_ids: List[str],
    reminder_text: str,
    all_clear_text: str,
    batch_size: int = REMINDER_BATCH_SIZE,
    pause_seconds: float = REMINDER_PAUSE_SECONDS,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> DispatchResult:
    """Post reminder batches in the standup thread.

    A failed batch is logged and counted; later batches are still sent.
    """
    result = DispatchResult()

    if not user_ids:
        if dry_run:
            print(f"[DRY RUN] Would post all-clear message: {all_clear_text}", flush=True)
            return result
        try:
            slack.post_message(channel_id, all_clear_text, thread_ts=thread_ts)
            result.all_clear_sent = True
            print("[NUDGE] All working group members have responded", flush=True)
        except SlackRequestError as e:
            print(f"[ERROR] Failed to post all-clear message: {e.error_code}", flush=True)
        return result

    batches = chunk_user_ids(user_ids, batch_size)
    print(f"[NUDGE] Sending reminders to {len(user_ids)} users in {len(batches)} batch(es)", flush=True)

    for index, batch in enumerate(batches, start=1):
        message = build_reminder_message(reminder_text, batch)
        if dry_run:
            print(f"[DRY RUN] Batch {index}: would remind {len(batch)} users: {' '.join(batch)}", flush=True)
        else:
            try:
                slack.post_message(channel_id, message, thread_ts=thread_ts, unfurl=False)
                result.batches_sent += 1
                result.reminded += len(batch)
                print(f"[NUDGE]   Batch {index}: reminded {len(batch)} users", flush=True)
            except SlackRequestError as e:
                result.batches_failed += 1
                print(f"[ERROR] Error sending reminder batch {index}: {e.error_code}", flush=True)

            if index < len(batches) and pause_seconds > 0:
                sleep(pause_seconds)

    return result


def run_reminder_check(
    cfg: Config,
    slack: Optional[SlackAPI] = None,
    member_slack: Optional[SlackAPI] = None,
    leave_client: Optional[LeaveClient] = None,
    holiday_checker: Optional[HolidayChecker] = None,
    dry_run: bool = False,
    today: Optional[date] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """Run one full reminder check.

    Args:
        cfg: Configuration object
        slack: Bot-token SlackAPI (created if not provided)
        member_slack: User-token SlackAPI for usergroup listing (created from
            SLACK_USER_TOKEN if not provided)
        leave_client: Timetastic client (created when TIMETASTIC_API_KEY is set)
        holiday_checker: Holiday gate (created if not provided)
        dry_run: If True, don't post anything, just report what would be sent

    Returns:
        Dict with the outcome and counts for the run summary.

    Raises:
        SlackRequestError: a required Slack call (history, membership, replies) failed.
    """
    today = today or date.today()

    if slack is None:
        slack = SlackAPI(cfg.slack_bot_token)
        print("[INFO] Slack client initialized", flush=True)
    if member_slack is None and cfg.slack_user_token:
        member_slack = SlackAPI(cfg.slack_user_token)
    owned: List[Any] = []
    if leave_client is None and cfg.leave_check_enabled:
        leave_client = LeaveClient(cfg.timetastic_api_key, non_working_types=cfg.non_working_leave_types)
        owned.append(leave_client)
    if holiday_checker is None:
        holiday_checker = HolidayChecker(
            country=cfg.holiday_country,
            subdivision=cfg.holiday_subdivision,
            calendar_url=cfg.holiday_calendar_url,
            calendar_division=cfg.holiday_calendar_division,
        )
        owned.append(holiday_checker)

    try:
        return _check(cfg, slack, member_slack, leave_client, holiday_checker, dry_run, today, sleep)
    finally:
        for client in owned:
            client.close()


def _check(
    cfg: Config,
    slack: SlackAPI,
    member_slack: Optional[SlackAPI],
    leave_client: Optional[LeaveClient],
    holiday_checker: HolidayChecker,
    dry_run: bool,
    today: date,
    sleep: Callable[[float], None],
) -> Dict[str, Any]:
    results: Dict[str, Any] = {
        "outcome": None,
        "dry_run": dry_run,
        "holiday_name": None,
        "next_holiday": None,
        "thread_ts": None,
        "group_members": 0,
        "responders": 0,
        "gap_before_filter": 0,
        "to_remind": [],
        "skipped": [],
        "unverifiable": [],
        "leave_errors": [],
        "leave_summary": None,
        "batches_sent": 0,
        "batches_failed": 0,
    }

    # 1. Public holiday gate
    holiday = holiday_checker.is_non_working_day(today)
    if holiday.is_holiday:
        print(f"[HOLIDAY] Today is a public holiday: {holiday.name}. Skipping standup reminders.", flush=True)
        results["outcome"] = "holiday"
        results["holiday_name"] = holiday.name
        upcoming = holiday_checker.next_holiday(today)
        if upcoming:
            print(f"[HOLIDAY]   Next holiday: {upcoming.name} in {upcoming.days_until} days", flush=True)
            results["next_holiday"] = upcoming
        return results

    # 2. Today's prompt
    prompt = find_todays_prompt(
        slack,
        cfg.channel_id,
        cfg.standup_keywords,
        history_limit=cfg.history_limit,
        today=today,
        workflow_bot_id=cfg.workflow_bot_id,
    )
    if prompt is None:
        print("[INFO] No standup message found for today. Exiting.", flush=True)
        results["outcome"] = "no_prompt"
        return results
    results["thread_ts"] = prompt.ts

    # 3. Group members and responders
    members = resolve_group_members(member_slack, slack, cfg.usergroup_id)
    results["group_members"] = len(set(members))
    if not members:
        print("[WARNING] User group has no members. Exiting.", flush=True)
        results["outcome"] = "empty_group"
        return results

    responders = list_responders(slack, cfg.channel_id, prompt.ts)
    results["responders"] = len(responders)

    # 4. Gap, then leave filtering
    gap = compute_gap(members, responders)
    results["gap_before_filter"] = len(gap)
    print(
        f"[INFO] Group members: {results['group_members']}, already responded: {len(responders)}, "
        f"need reminder (before filtering): {len(gap)}",
        flush=True,
    )

    to_remind = gap
    if gap and leave_client is not None:
        summary = leave_client.leave_summary(today)
        if summary:
            results["leave_summary"] = summary
            print(f"[LEAVE] Total absences today: {summary.total}", flush=True)
            for leave_type, count in summary.by_type.items():
                print(f"[LEAVE]   - {leave_type}: {count}", flush=True)

        directory = load_identity_directory(slack)
        filtered = filter_working_members(gap, directory, leave_client, today)
        to_remind = filtered.to_remind
        results["skipped"] = filtered.skipped
        results["unverifiable"] = filtered.unverifiable
        results["leave_errors"] = filtered.errors
    elif gap:
        print("[INFO] Timetastic integration disabled, reminding everyone who has not replied", flush=True)

    results["to_remind"] = to_remind
    print(f"[INFO] Need reminder (after filtering): {len(to_remind)}", flush=True)

    # 5. Dispatch
    dispatch = send_reminders(
        slack,
        cfg.channel_id,
        prompt.ts,
        to_remind,
        cfg.reminder_text,
        cfg.all_clear_text,
        batch_size=REMINDER_BATCH_SIZE,
        pause_seconds=cfg.reminder_pause_seconds,
        dry_run=dry_run,
        sleep=sleep,
    )
    results["batches_sent"] = dispatch.batches_sent
    results["batches_failed"] = dispatch.batches_failed
    results["outcome"] = "reminded" if to_remind else "all_clear"
    return results
