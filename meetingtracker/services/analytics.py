"""Productivity analytics derived from the current store contents."""

from __future__ import annotations

import math
from datetime import datetime, time, timedelta
from typing import Iterable, Optional

from meetingtracker.services.models import (
    ActionItem,
    ActionItemStatus,
    Analytics,
    Meeting,
    utcnow,
)

FREQUENCY_DAYS = 30
RECENT_WINDOW_DAYS = 30
SUNDAY = 6


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a calculator does (0.5 goes up), not banker's rounding."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def week_bounds(now: datetime, week_start: int = SUNDAY) -> tuple[datetime, datetime]:
    """Return [start, end) of the calendar week containing ``now``.

    ``week_start`` uses ``datetime.weekday()`` numbering (Monday=0 .. Sunday=6).
    """
    offset = (now.weekday() - week_start) % 7
    start_day = now.date() - timedelta(days=offset)
    start = datetime.combine(start_day, time.min, tzinfo=now.tzinfo)
    return start, start + timedelta(days=7)


def meeting_frequency(meetings: Iterable[Meeting], now: datetime) -> list[dict]:
    counts: dict = {}
    for meeting in meetings:
        day = meeting.date.astimezone(now.tzinfo).date()
        counts[day] = counts.get(day, 0) + 1
    points: list[dict] = []
    for offset in range(FREQUENCY_DAYS - 1, -1, -1):
        day = (now - timedelta(days=offset)).date()
        points.append(
            {
                "date": day.isoformat(),
                "label": day.strftime("%b %d"),
                "count": counts.get(day, 0),
            }
        )
    return points


def compute_analytics(
    meetings: list[Meeting],
    action_items: list[ActionItem],
    now: Optional[datetime] = None,
    week_start: int = SUNDAY,
) -> Analytics:
    now = now or utcnow()

    total_meetings = len(meetings)
    total_items = len(action_items)
    total_minutes = sum(m.duration or 0 for m in meetings)
    completed = sum(1 for item in action_items if item.status == ActionItemStatus.COMPLETED)
    pending = sum(1 for item in action_items if item.status == ActionItemStatus.PENDING)

    start, end = week_bounds(now, week_start)
    weekly = sum(1 for m in meetings if start <= m.date < end)

    recent_cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)
    recent = sum(1 for m in meetings if m.date >= recent_cutoff)

    avg_duration = int(round_half_up(total_minutes / total_meetings)) if total_meetings else 0
    score = int(round_half_up(completed / total_items * 100)) if total_items else 0
    per_meeting = round_half_up(total_items / total_meetings, 1) if total_meetings else 0.0

    return Analytics(
        total_meetings=total_meetings,
        total_hours=round_half_up(total_minutes / 60, 1),
        completed_actions=completed,
        avg_duration=avg_duration,
        productivity_score=max(0, min(100, score)),
        weekly_meetings=weekly,
        meeting_frequency=meeting_frequency(meetings, now),
        action_item_completion={"completed": completed, "pending": pending},
        meetings_per_week=round_half_up(recent / 4, 1),
        action_items_per_meeting=per_meeting,
    )
