from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import List, Optional

from dotenv import load_dotenv


DEFAULT_KEYWORDS: List[str] = ["standup", "стендап", "daily"]
DEFAULT_NON_WORKING_LEAVE_TYPES: List[str] = ["Holiday", "Sick Leave", "Day off"]

DEFAULT_REMINDER_TEXT = (
    "Коллеги, напоминаю про стендап! Пожалуйста, отпишитесь в треде до 13:00 📝"
)
DEFAULT_ALL_CLEAR_TEXT = (
    "✅ Все участники группы (кто сегодня работает) уже отписались в стендапе! 👍"
)
DEFAULT_STANDUP_TEXT = (
    "[:mega:] [STANDUP] Ежедневный стендап — ответьте в треде:\n"
    "• *Yesterday:* Что было сделано вчера?\n"
    "• *Today:* Что планируете сделать сегодня?\n"
    "• *Blockers:* Есть ли блокеры?"
)


class ConfigError(RuntimeError):
    """Raised when required settings are missing."""

    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Missing required environment variables: " + ", ".join(self.missing)
        )


@dataclass
class Config:
    slack_bot_token: str
    channel_id: str
    usergroup_id: Optional[str] = None
    slack_user_token: Optional[str] = None  # Broader scope, used for usergroup membership
    timetastic_api_key: Optional[str] = None  # Absent -> leave filtering disabled
    standup_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_KEYWORDS))
    reminder_text: str = DEFAULT_REMINDER_TEXT
    all_clear_text: str = DEFAULT_ALL_CLEAR_TEXT
    standup_text: str = DEFAULT_STANDUP_TEXT
    history_limit: int = 100
    reminder_pause_seconds: float = 1.0
    non_working_leave_types: List[str] = field(
        default_factory=lambda: list(DEFAULT_NON_WORKING_LEAVE_TYPES)
    )
    workflow_bot_id: Optional[str] = None  # Pin the prompt author to one workflow bot
    holiday_country: str = "GB"
    holiday_subdivision: Optional[str] = "ENG"
    holiday_calendar_url: str = "https://www.gov.uk/bank-holidays.json"
    holiday_calendar_division: str = "england-and-wales"

    @property
    def leave_check_enabled(self) -> bool:
        return bool(self.timetastic_api_key)


def _split_list(raw: Optional[str], default: List[str], lower: bool = False) -> List[str]:
    if not raw:
        return list(default)
    items = [part.strip() for part in raw.split(",")]
    items = [item for item in items if item]
    if lower:
        items = [item.lower() for item in items]
    return items or list(default)


def load_config(require_usergroup: bool = True) -> Config:
    """Load configuration from environment variables / .env file.

    ``require_usergroup`` is False for the prompt-posting command, which only
    needs the bot token and channel.
    """

    load_dotenv()

    def _int_env(name: str, default: int) -> int:
        val = os.getenv(name)
        if not val:
            return default
        try:
            return int(val)
        except ValueError:
            return default

    def _float_env(name: str, default: float) -> float:
        val = os.getenv(name)
        if not val:
            return default
        try:
            return float(val)
        except ValueError:
            return default

    slack_bot_token = os.getenv("SLACK_BOT_TOKEN")
    channel_id = os.getenv("CHANNEL_ID")
    usergroup_id = os.getenv("USERGROUP_ID") or None

    required = {"SLACK_BOT_TOKEN": slack_bot_token, "CHANNEL_ID": channel_id}
    if require_usergroup:
        required["USERGROUP_ID"] = usergroup_id
    missing = [name for name, value in required.items() if not value]
    if missing:
        raise ConfigError(missing)

    history_limit = _int_env("HISTORY_LIMIT", 100)
    if history_limit <= 0:
        history_limit = 100

    subdivision = os.getenv("HOLIDAY_SUBDIVISION", "ENG") or None

    return Config(
        slack_bot_token=slack_bot_token,
        channel_id=channel_id,
        usergroup_id=usergroup_id,
        slack_user_token=os.getenv("SLACK_USER_TOKEN") or None,
        timetastic_api_key=os.getenv("TIMETASTIC_API_KEY") or None,
        standup_keywords=_split_list(os.getenv("STANDUP_KEYWORDS"), DEFAULT_KEYWORDS, lower=True),
        reminder_text=os.getenv("REMINDER_TEXT") or DEFAULT_REMINDER_TEXT,
        all_clear_text=os.getenv("ALL_CLEAR_TEXT") or DEFAULT_ALL_CLEAR_TEXT,
        standup_text=os.getenv("STANDUP_TEXT") or DEFAULT_STANDUP_TEXT,
        history_limit=history_limit,
        reminder_pause_seconds=max(_float_env("REMINDER_PAUSE_SECONDS", 1.0), 0.0),
        non_working_leave_types=_split_list(
            os.getenv("NON_WORKING_LEAVE_TYPES"), DEFAULT_NON_WORKING_LEAVE_TYPES
        ),
        workflow_bot_id=os.getenv("WORKFLOW_BOT_ID") or None,
        holiday_country=os.getenv("HOLIDAY_COUNTRY", "GB") or "GB",
        holiday_subdivision=subdivision,
        holiday_calendar_url=os.getenv("HOLIDAY_CALENDAR_URL")
        or "https://www.gov.uk/bank-holidays.json",
        holiday_calendar_division=os.getenv("HOLIDAY_CALENDAR_DIVISION") or "england-and-wales",
    )
