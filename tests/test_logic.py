"""Tests for standup_reminder.logic."""

from __future__ import annotations

from datetime import timedelta
import itertools
from unittest.mock import MagicMock

import pytest

from conftest import CHANNEL, TODAY, WORKFLOW_BOT, FakeSlack, TimetasticStub, make_leave_client, prompt_message, reply
from standup_reminder.leave_client import LeaveStatus
from standup_reminder.logic import (
    compute_gap,
    filter_working_members,
    find_todays_prompt,
    list_responders,
    load_identity_directory,
    resolve_group_members,
)
from standup_reminder.slack_client import SlackAPI, SlackRequestError, SlackUser

KEYWORDS = ["standup", "daily"]


# ---------------------------------------------------------------------------
# find_todays_prompt
# ---------------------------------------------------------------------------


class TestFindTodaysPrompt:
    def test_finds_workflow_prompt(self):
        slack = FakeSlack(history=[prompt_message("Time for STANDUP, reply in thread")])
        found = find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY)
        assert found is not None
        assert found.bot_id == WORKFLOW_BOT

    def test_first_match_wins(self):
        latest = prompt_message("daily standup (reposted)", hour=11)
        earlier = prompt_message("daily standup", hour=9)
        slack = FakeSlack(history=[latest, earlier])
        assert find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY) is latest

    def test_ignores_yesterdays_prompt(self):
        slack = FakeSlack(history=[prompt_message(day=TODAY - timedelta(days=1))])
        assert find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY) is None

    def test_ignores_human_messages(self):
        human = prompt_message(bot_id=None, user="U1")
        slack = FakeSlack(history=[human])
        assert find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY) is None

    def test_ignores_other_bot_subtypes(self):
        joined = prompt_message(subtype="channel_join")
        slack = FakeSlack(history=[joined])
        assert find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY) is None

    def test_bot_message_subtype_accepted(self):
        slack = FakeSlack(history=[prompt_message(subtype="bot_message")])
        assert find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY) is not None

    def test_requires_keyword(self):
        slack = FakeSlack(history=[prompt_message("Lunch order is open")])
        assert find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY) is None

    def test_non_latin_keyword(self):
        slack = FakeSlack(history=[prompt_message("Ежедневный СТЕНДАП")])
        assert find_todays_prompt(slack, CHANNEL, ["стендап"], today=TODAY) is not None

    def test_pinned_workflow_bot(self):
        other_bot = prompt_message(bot_id="B0OTHER", hour=11)
        ours = prompt_message(hour=9)
        slack = FakeSlack(history=[other_bot, ours])
        assert find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY, workflow_bot_id=WORKFLOW_BOT) is ours

    def test_only_scans_history_limit(self):
        filler = [prompt_message("chit chat", hour=12) for _ in range(100)]
        slack = FakeSlack(history=filler + [prompt_message()])
        assert find_todays_prompt(slack, CHANNEL, KEYWORDS, history_limit=100, today=TODAY) is None

    def test_history_failure_propagates(self):
        slack = FakeSlack()
        slack.errors["fetch_recent_messages"] = "not_in_channel"
        with pytest.raises(SlackRequestError) as exc:
            find_todays_prompt(slack, CHANNEL, KEYWORDS, today=TODAY)
        assert exc.value.error_code == "not_in_channel"


# ---------------------------------------------------------------------------
# resolve_group_members
# ---------------------------------------------------------------------------


class TestResolveGroupMembers:
    def test_uses_member_client(self):
        member_slack = FakeSlack(members=["U1", "U2"])
        bot_slack = FakeSlack(members=["U9"])
        assert resolve_group_members(member_slack, bot_slack, "S1") == ["U1", "U2"]
        assert bot_slack.calls == []

    def test_falls_back_to_bot_client(self):
        member_slack = FakeSlack()
        member_slack.errors["list_usergroup_members"] = "missing_scope"
        bot_slack = FakeSlack(members=["U9"])
        assert resolve_group_members(member_slack, bot_slack, "S1") == ["U9"]

    def test_both_failing_raises_first_error(self):
        member_slack = FakeSlack()
        member_slack.errors["list_usergroup_members"] = "missing_scope"
        bot_slack = FakeSlack()
        bot_slack.errors["list_usergroup_members"] = "not_allowed_token_type"
        with pytest.raises(SlackRequestError) as exc:
            resolve_group_members(member_slack, bot_slack, "S1")
        assert exc.value.error_code == "missing_scope"

    def test_without_member_client(self):
        bot_slack = FakeSlack(members=["U1"])
        assert resolve_group_members(None, bot_slack, "S1") == ["U1"]


# ---------------------------------------------------------------------------
# list_responders
# ---------------------------------------------------------------------------


class TestListResponders:
    def test_excludes_prompt_and_dedups(self):
        thread = [prompt_message(user="U_PROMPT"), reply("U1"), reply("U2"), reply("U1"), reply(None)]
        slack = FakeSlack(thread=thread)
        assert list_responders(slack, CHANNEL, "123.456") == {"U1", "U2"}

    def test_thread_with_only_prompt(self):
        slack = FakeSlack(thread=[prompt_message()])
        assert list_responders(slack, CHANNEL, "123.456") == set()

    def test_failure_propagates(self):
        slack = FakeSlack()
        slack.errors["get_thread_messages"] = "thread_not_found"
        with pytest.raises(SlackRequestError):
            list_responders(slack, CHANNEL, "123.456")


# ---------------------------------------------------------------------------
# compute_gap
# ---------------------------------------------------------------------------


class TestComputeGap:
    MEMBER_SETS = [[], ["U1"], ["U1", "U2", "U3"], ["U3", "U1", "U3", "U2"]]
    RESPONDER_SETS = [set(), {"U1"}, {"U2", "U9"}, {"U1", "U2", "U3"}]

    def test_equals_set_difference(self):
        for members, responders in itertools.product(self.MEMBER_SETS, self.RESPONDER_SETS):
            gap = compute_gap(members, responders)
            assert set(gap) == set(members) - responders
            assert len(gap) == len(set(gap))

    def test_idempotent(self):
        members, responders = ["U1", "U2", "U3", "U4"], {"U2"}
        assert compute_gap(members, responders) == compute_gap(members, responders)

    def test_keeps_member_order(self):
        assert compute_gap(["U5", "U1", "U3"], {"U1"}) == ["U5", "U3"]


# ---------------------------------------------------------------------------
# filter_working_members
# ---------------------------------------------------------------------------


class StaticLeaveClient:
    def __init__(self, statuses=None, raise_for=()):
        self.statuses = statuses or {}
        self.raise_for = set(raise_for)
        self.checked = []

    def check_user(self, email, name, today=None):
        self.checked.append((email, name))
        if email in self.raise_for:
            raise RuntimeError("boom")
        return self.statuses.get(email, LeaveStatus(working=True, reason="no_absence"))


DIRECTORY = {
    "U1": SlackUser(id="U1", email="one@example.com", name="One Person"),
    "U2": SlackUser(id="U2", email="two@example.com", name="Two Person"),
    "U3": SlackUser(id="U3", email=None, name=None),
}


class TestFilterWorkingMembers:
    def test_disabled_passes_through(self):
        result = filter_working_members(["U1", "U2"], DIRECTORY, None, TODAY)
        assert result.to_remind == ["U1", "U2"]
        assert result.skipped == []

    def test_removes_people_on_leave(self):
        client = StaticLeaveClient(
            {"two@example.com": LeaveStatus(working=False, reason="on_leave", leave_type="Holiday")}
        )
        result = filter_working_members(["U1", "U2"], DIRECTORY, client, TODAY)
        assert result.to_remind == ["U1"]
        assert result.skipped[0].user_id == "U2"
        assert result.skipped[0].name == "Two Person"
        assert result.skipped[0].leave_type == "Holiday"

    def test_unverifiable_kept_without_lookup(self):
        client = StaticLeaveClient()
        result = filter_working_members(["U3", "U_UNKNOWN"], DIRECTORY, client, TODAY)
        assert result.to_remind == ["U3", "U_UNKNOWN"]
        assert result.unverifiable == ["U3", "U_UNKNOWN"]
        assert client.checked == []

    def test_error_for_one_member_fails_open(self):
        client = StaticLeaveClient(
            {"two@example.com": LeaveStatus(working=False, reason="on_leave", leave_type="Sick Leave")},
            raise_for={"one@example.com"},
        )
        result = filter_working_members(["U1", "U2"], DIRECTORY, client, TODAY)
        assert result.to_remind == ["U1"]
        assert result.errors == ["U1"]

    def test_result_is_subset_of_gap(self):
        client = StaticLeaveClient(
            {
                "one@example.com": LeaveStatus(working=False, reason="on_leave", leave_type="Day off"),
                "two@example.com": LeaveStatus(working=True, reason="working_remotely", leave_type="Remote"),
            }
        )
        gap = ["U1", "U2", "U3"]
        result = filter_working_members(gap, DIRECTORY, client, TODAY)
        assert set(result.to_remind) <= set(gap)
        assert result.to_remind == ["U2", "U3"]

    def test_unreachable_leave_service_keeps_everyone(self):
        stub = TimetasticStub()
        stub.raise_transport_error = True
        result = filter_working_members(["U1", "U2"], DIRECTORY, make_leave_client(stub), TODAY)
        assert result.to_remind == ["U1", "U2"]

    def test_name_only_profile_matched_fuzzily(self):
        stub = TimetasticStub(
            users=[{"id": 5, "email": "anna@corp.example", "firstname": "Anna", "surname": "Bogatyrkova"}],
            holidays=[{"userId": 5, "leaveType": "Holiday"}],
        )
        directory = {"U7": SlackUser(id="U7", email=None, name="Anna Bogatyreva")}
        result = filter_working_members(["U7"], directory, make_leave_client(stub), TODAY)
        assert result.to_remind == []
        assert result.skipped[0].leave_type == "Holiday"


class TestLoadIdentityDirectory:
    def test_maps_by_id(self):
        slack = FakeSlack(users=list(DIRECTORY.values()))
        assert load_identity_directory(slack)["U1"].email == "one@example.com"

    def test_failure_returns_empty(self):
        slack = FakeSlack()
        slack.errors["list_users"] = "missing_scope"
        assert load_identity_directory(slack) == {}

    def test_timeout_returns_empty(self):
        web = MagicMock()
        web.users_list.side_effect = TimeoutError("read timed out")
        assert load_identity_directory(SlackAPI("xoxb-test", client=web)) == {}
