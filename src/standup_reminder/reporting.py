from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List

from rich.console import Console

from .logic import SkippedMember
from .prompt_rules import leave_category


CATEGORY_TITLES = {
    "holiday": "On Holiday",
    "sick_leave": "Sick Leave",
    "day_off": "Day Off",
    "other": "Other Leave",
}


def group_skipped(skipped: List[SkippedMember]) -> Dict[str, List[SkippedMember]]:
    grouped: Dict[str, List[SkippedMember]] = defaultdict(list)
    for member in skipped:
        grouped[leave_category(member.leave_type)].append(member)
    # Stable output in CATEGORY_TITLES order
    return {key: grouped[key] for key in CATEGORY_TITLES if grouped.get(key)}


def print_run_summary(results: Dict[str, Any], console: Console | None = None) -> None:
    console = console or Console()

    console.print()
    console.print("[bold underline]Standup Reminder Summary[/bold underline]")

    outcome = results.get("outcome")
    if outcome == "holiday":
        console.print(f"[yellow]Skipped: public holiday ({results.get('holiday_name')})[/yellow]")
        upcoming = results.get("next_holiday")
        if upcoming:
            console.print(f"[dim]Next holiday: {upcoming.name} on {upcoming.date.isoformat()}[/dim]")
        return
    if outcome == "no_prompt":
        console.print("[yellow]No standup message found for today; nothing to do.[/yellow]")
        return
    if outcome == "empty_group":
        console.print("[yellow]User group has no members; nothing to do.[/yellow]")
        return

    console.print(f"  Group members:            {results.get('group_members', 0)}")
    console.print(f"  Already responded:        {results.get('responders', 0)}")
    console.print(f"  Need reminder (raw):      {results.get('gap_before_filter', 0)}")
    console.print(f"  Need reminder (filtered): {len(results.get('to_remind', []))}")

    if results.get("dry_run"):
        console.print("  Batches sent:             [dim](dry run - none sent)[/dim]")
    else:
        console.print(f"  Batches sent:             {results.get('batches_sent', 0)}")
        if results.get("batches_failed"):
            console.print(f"  [red]Batches failed:           {results['batches_failed']}[/red]")

    console.print()
    console.print("[bold]Skipped Users[/bold]")
    grouped = group_skipped(results.get("skipped", []))
    for key, members in grouped.items():
        names = ", ".join(m.name for m in members)
        console.print(f"  {CATEGORY_TITLES[key]} ({len(members)}): {names}")

    unverifiable = results.get("unverifiable", [])
    if unverifiable:
        console.print(f"  No email or name, reminded anyway ({len(unverifiable)}): {', '.join(unverifiable)}")
    leave_errors = results.get("leave_errors", [])
    if leave_errors:
        console.print(f"  Leave check failed, reminded anyway ({len(leave_errors)}): {', '.join(leave_errors)}")

    total_skipped = sum(len(members) for members in grouped.values())
    if total_skipped:
        console.print(f"  Total skipped: {total_skipped}")
    else:
        console.print("  No users were skipped")
