"""Public-holiday gate for the reminder run.

The local ruleset from the ``holidays`` package is consulted first. When it
reports a normal day, the published government calendar is checked as well and
wins if it lists the date (substitute days and one-off bank holidays show up
there first). Neither source failing can block the run.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

import holidays
import httpx

from .cache import TTLCache

GOV_UK_BANK_HOLIDAYS_URL = "https://www.gov.uk/bank-holidays.json"
CACHE_TTL_SECONDS = 86400

REMOTE_CALENDAR_CACHE_KEY = "remote_holiday_calendar"


@dataclass
class HolidayStatus:
    is_holiday: bool
    name: Optional[str] = None
    source: Optional[str] = None  # "local" / "remote"


@dataclass
class RemoteHoliday:
    date: date
    title: str


@dataclass
class UpcomingHoliday:
    name: str
    date: date
    days_until: int


def parse_remote_calendar(payload: Any, division: str) -> List[RemoteHoliday]:
    """Extract one division's events from a gov.uk style bank-holidays payload.

    Shape: ``{"england-and-wales": {"events": [{"date": "2025-12-25", "title": ...}]}}``.
    Events with unparseable dates are skipped.
    """
    if not isinstance(payload, dict):
        return []
    section = payload.get(division)
    if not isinstance(section, dict):
        return []

    events: List[RemoteHoliday] = []
    for event in section.get("events", []) or []:
        if not isinstance(event, dict):
            continue
        try:
            day = date.fromisoformat(str(event.get("date", ""))[:10])
        except ValueError:
            continue
        events.append(RemoteHoliday(date=day, title=event.get("title") or "Bank holiday"))
    return events


class HolidayChecker:
    """Decides whether today is a non-working day for the organization's jurisdiction."""

    def __init__(
        self,
        country: str = "GB",
        subdivision: Optional[str] = "ENG",
        calendar_url: str = GOV_UK_BANK_HOLIDAYS_URL,
        calendar_division: str = "england-and-wales",
        timeout: float = 5.0,
        http: Optional[httpx.Client] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.country = country
        self.subdivision = subdivision
        self.calendar_url = calendar_url
        self.calendar_division = calendar_division
        self._http = http or httpx.Client(timeout=timeout)
        self._cache = cache or TTLCache(CACHE_TTL_SECONDS)
        self._local_by_year: Dict[int, Any] = {}

    def _local_calendar(self, year: int):
        if year not in self._local_by_year:
            self._local_by_year[year] = holidays.country_holidays(
                self.country, subdiv=self.subdivision, years=year
            )
        return self._local_by_year[year]

    def check_local(self, day: date) -> HolidayStatus:
        try:
            name = self._local_calendar(day.year).get(day)
        except Exception as e:
            print(f"[WARNING] Error checking holidays with local ruleset: {e}", flush=True)
            return HolidayStatus(is_holiday=False)

        if name:
            return HolidayStatus(is_holiday=True, name=name, source="local")
        return HolidayStatus(is_holiday=False)

    def fetch_remote_calendar(self) -> List[RemoteHoliday]:
        cached = self._cache.get(REMOTE_CALENDAR_CACHE_KEY)
        if cached is not None:
            return cached

        print("[HOLIDAY] Fetching holidays from remote calendar...", flush=True)
        resp = self._http.get(self.calendar_url)
        resp.raise_for_status()
        events = parse_remote_calendar(resp.json(), self.calendar_division)
        self._cache.set(REMOTE_CALENDAR_CACHE_KEY, events)
        return events

    def check_remote(self, day: date) -> HolidayStatus:
        try:
            events = self.fetch_remote_calendar()
        except (httpx.HTTPError, ValueError) as e:
            print(f"[WARNING] Error checking remote holiday calendar: {e}", flush=True)
            return HolidayStatus(is_holiday=False)

        for event in events:
            if event.date == day:
                return HolidayStatus(is_holiday=True, name=event.title, source="remote")
        return HolidayStatus(is_holiday=False)

    def is_non_working_day(self, today: Optional[date] = None) -> HolidayStatus:
        today = today or date.today()
        cache_key = f"holiday_{today.isoformat()}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            print(
                f"[HOLIDAY] Using cached status for {today.isoformat()}: "
                f"{cached.name if cached.is_holiday else 'working day'}",
                flush=True,
            )
            return cached

        result = self.check_local(today)
        if not result.is_holiday:
            remote = self.check_remote(today)
            if remote.is_holiday:
                result = remote

        self._cache.set(cache_key, result)
        if result.is_holiday:
            print(f"[HOLIDAY] Today is a public holiday: {result.name}", flush=True)
        else:
            print("[HOLIDAY] Today is a working day", flush=True)
        return result

    def next_holiday(self, today: Optional[date] = None) -> Optional[UpcomingHoliday]:
        """Next holiday after ``today`` from the local ruleset, for the run log."""
        today = today or date.today()
        try:
            upcoming = []
            for year in (today.year, today.year + 1):
                upcoming.extend(
                    (day, name) for day, name in self._local_calendar(year).items() if day > today
                )
        except Exception as e:
            print(f"[WARNING] Error getting next holiday: {e}", flush=True)
            return None

        if not upcoming:
            return None
        day, name = min(upcoming, key=lambda item: item[0])
        return UpcomingHoliday(name=name, date=day, days_until=(day - today).days)

    def close(self) -> None:
        self._http.close()
