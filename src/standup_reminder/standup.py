"""Posts the daily standup prompt that the reminder run later looks for."""

from __future__ import annotations

from .config import Config
from .slack_client import SlackAPI


def post_standup_message(cfg: Config, slack: SlackAPI | None = None) -> str:
    """Post ``cfg.standup_text`` to the channel. Returns the message ts.

    Raises SlackRequestError when Slack rejects the post.
    """
    if slack is None:
        slack = SlackAPI(cfg.slack_bot_token)

    ts = slack.post_message(cfg.channel_id, cfg.standup_text, unfurl=False)
    print(f"[INFO] Standup message posted to {cfg.channel_id} (ts {ts})", flush=True)
    return ts
