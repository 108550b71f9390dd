from __future__ import annotations

import re
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Any

from formbuilder.errors import NotFoundError
from formbuilder.protocols import Storage
from formbuilder.schema import submission_output
from formbuilder.utils import now_utc, round_half_up

TABLET_PATTERN = re.compile(r"iPad|Tablet")
MOBILE_PATTERN = re.compile(r"Mobile|Android|iPhone|iPad")
DEVICE_TYPES = ("Desktop", "Mobile", "Tablet", "Unknown")
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
RECENT_LIMIT = 10


def classify_device(user_agent: str | None) -> str:
    # iPad matches both patterns, so tablets are checked first.
    agent = user_agent or ""
    if TABLET_PATTERN.search(agent):
        return "Tablet"
    if MOBILE_PATTERN.search(agent):
        return "Mobile"
    if agent.strip():
        return "Desktop"
    return "Unknown"


def completion_rate(this_week: int, total: int) -> str:
    """Share of all submissions that arrived in the last seven days.

    Kept under its historical name; there is no abandonment signal, so this is
    not a completion rate in the usual sense.
    """
    if total <= 0:
        return "0%"
    return f"{round_half_up(this_week / total * 100)}%"


def growth_percentage(this_week: int, previous_week: int) -> str:
    if previous_week > 0:
        growth = round_half_up((this_week - previous_week) / previous_week * 100)
    elif this_week > 0:
        growth = 100
    else:
        return "0%"
    return f"+{growth}%" if growth >= 0 else f"{growth}%"


def device_breakdown(user_agents: list[str | None]) -> list[dict[str, Any]]:
    counts = dict.fromkeys(DEVICE_TYPES, 0)
    for agent in user_agents:
        counts[classify_device(agent)] += 1
    return [{"name": name, "value": value} for name, value in counts.items() if value > 0]


def form_analytics(
    storage: Storage,
    form_id: str,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> dict[str, Any]:
    form = storage.forms.get_form(form_id)
    if not form:
        raise NotFoundError("Form not found")
    now = now or now_utc()
    submissions = storage.submissions

    total = submissions.count_submissions(form_id=form_id)
    this_week = submissions.count_submissions(form_id=form_id, since=now - timedelta(days=7))
    by_day = submissions.count_by_day(tz, form_id=form_id, since=now - timedelta(days=30))
    recent, _ = submissions.list_submissions(form_id, page=1, page_size=RECENT_LIMIT)

    return {
        "totalSubmissions": total,
        "thisWeek": this_week,
        "completionRate": completion_rate(this_week, total),
        "submissionsOverTime": [
            {"date": day, "submissions": count} for day, count in sorted(by_day.items())
        ],
        "deviceTypes": device_breakdown(submissions.list_user_agents(form_id)),
        "recentSubmissions": [submission_output(item) for item in recent],
    }


def dashboard_analytics(
    storage: Storage,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> dict[str, Any]:
    """Submission counts for the seven calendar days ending today.

    Days are calendar dates in ``tz`` and every day appears, with zero for
    days without submissions. The previous week is the seven days before
    the window starts.
    """
    now = now or now_utc()
    today = now.astimezone(tz).date()
    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    window_start = datetime.combine(days[0], time.min, tzinfo=tz)

    by_day = storage.submissions.count_by_day(tz, since=window_start)
    chart_data = [
        {
            "name": WEEKDAYS[day.weekday()],
            "submissions": by_day.get(day.isoformat(), 0),
            "date": day.isoformat(),
        }
        for day in days
    ]
    total_this_week = sum(entry["submissions"] for entry in chart_data)
    previous_start = datetime.combine(days[0] - timedelta(days=7), time.min, tzinfo=tz)
    previous_week = storage.submissions.count_submissions(
        since=previous_start, until=window_start
    )
    return {
        "chartData": chart_data,
        "totalThisWeek": total_this_week,
        "previousWeek": previous_week,
        "growthPercentage": growth_percentage(total_this_week, previous_week),
    }
