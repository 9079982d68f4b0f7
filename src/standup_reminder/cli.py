from __future__ import annotations

import argparse
import sys
from datetime import datetime

from rich.console import Console

from .config import ConfigError, load_config
from .nudge import run_reminder_check
from .reporting import print_run_summary
from .slack_client import SlackRequestError
from .standup import post_standup_message


def main(argv: list[str] | None = None) -> int:
    """Run the standup reminder (CLI entry point).

    Exit code 0 for every completed run, including holidays and days without
    a prompt; 1 for missing configuration or a failed required Slack call.
    """
    parser = argparse.ArgumentParser(description="Remind standup group members who have not replied yet")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Don't post reminders, just show what would be sent",
    )
    args = parser.parse_args(argv)

    console = Console()
    try:
        cfg = load_config()
    except ConfigError as e:
        console.print(f"[bold red]{e}[/bold red]")
        console.print("Optional: SLACK_USER_TOKEN (usergroup access), TIMETASTIC_API_KEY (leave checks), "
                      "STANDUP_KEYWORDS, REMINDER_TEXT")
        return 1

    console.print("[bold]Standup Reminder[/bold]")
    console.print(f"[dim]{datetime.now().isoformat(timespec='seconds')}[/dim]")
    console.print(f"  Channel:    {cfg.channel_id}")
    console.print(f"  User group: {cfg.usergroup_id}")
    console.print(f"  Timetastic: {'enabled' if cfg.leave_check_enabled else 'disabled'}")
    if not cfg.slack_user_token:
        console.print("[yellow]SLACK_USER_TOKEN not provided; using the bot token for usergroup access, "
                      "which may fail depending on workspace settings.[/yellow]")
    if args.dry_run:
        console.print("[yellow]Mode: dry run (nothing will be posted)[/yellow]")
    console.print()

    try:
        results = run_reminder_check(cfg, dry_run=args.dry_run)
    except SlackRequestError as e:
        console.print(f"[bold red]Fatal error in reminder process: {e.method} -> {e.error_code}[/bold red]")
        return 1

    print_run_summary(results, console)
    return 0


def post_standup(argv: list[str] | None = None) -> int:
    """Post today's standup prompt (CLI entry point)."""
    parser = argparse.ArgumentParser(description="Post the daily standup prompt")
    parser.parse_args(argv)

    console = Console()
    try:
        cfg = load_config(require_usergroup=False)
    except ConfigError as e:
        console.print(f"[bold red]{e}[/bold red]")
        return 1

    try:
        ts = post_standup_message(cfg)
    except SlackRequestError as e:
        console.print(f"[bold red]Error posting standup message: {e.error_code}[/bold red]")
        return 1

    console.print(f"[green]Standup message posted[/green] [dim](channel {cfg.channel_id}, ts {ts})[/dim]")
    return 0


def run() -> None:
    sys.exit(main())


def run_post_standup() -> None:
    sys.exit(post_standup())


if __name__ == "__main__":
    run()
