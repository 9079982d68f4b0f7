"""Daily standup reminder package."""

from .config import Config, ConfigError, load_config
from .slack_client import SlackAPI, SlackMessage, SlackRequestError, SlackUser
from .holiday_checker import HolidayChecker, HolidayStatus
from .leave_client import LeaveClient, LeaveStatus
from .logic import compute_gap, filter_working_members, find_todays_prompt
from .nudge import run_reminder_check, send_reminders

__all__ = [
    "Config",
    "ConfigError",
    "load_config",
    "SlackAPI",
    "SlackMessage",
    "SlackRequestError",
    "SlackUser",
    "HolidayChecker",
    "HolidayStatus",
    "LeaveClient",
    "LeaveStatus",
    "compute_gap",
    "filter_working_members",
    "find_todays_prompt",
    "run_reminder_check",
    "send_reminders",
]
