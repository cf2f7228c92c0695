"""
Analytics over a user's study session history.

``compute_analytics()`` is a pure function of (sessions, time range, now): it
never mutates its input and returns an immutable AnalyticsSnapshot, so two calls
with the same arguments produce equal results.

Metrics:
- totals: minutes and session count inside the window
- focus score per session: max(0, 1 - 0.1 * focus losses); average is 0.0 when empty
- daily buckets: one per local calendar day, oldest first (7 / 30 / 90 days)
- subject distribution in first-seen order
- streak over the whole history, tolerating an empty today
- the most recent sessions, newest first
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import StudySession


class TimeRange(str, Enum):
    WEEK = "week"
    MONTH = "month"
    ALL = "all"

    @property
    def window(self) -> Optional[timedelta]:
        return {TimeRange.WEEK: timedelta(days=7), TimeRange.MONTH: timedelta(days=30)}.get(self)

    @property
    def bucket_days(self) -> int:
        return {TimeRange.WEEK: 7, TimeRange.MONTH: 30, TimeRange.ALL: 90}[self]


@dataclass(frozen=True)
class DailyBucket:
    date: date
    label: str
    minutes: int


@dataclass(frozen=True)
class SubjectTotal:
    name: str
    minutes: int


@dataclass(frozen=True)
class RecentSession:
    session_id: str
    date: datetime
    subject: str
    duration: int
    focus_score: float


@dataclass(frozen=True)
class AnalyticsSnapshot:
    time_range: TimeRange
    total_minutes: int
    total_sessions: int
    average_focus: float
    current_streak: int
    daily: Tuple[DailyBucket, ...]
    subjects: Tuple[SubjectTotal, ...]
    recent: Tuple[RecentSession, ...]
    sessions: Tuple[StudySession, ...]


def _local(ts: datetime) -> datetime:
    return ts.astimezone()


def focus_score(session: StudySession) -> float:
    """Each focus loss costs 10 points, never below zero."""
    return max(0.0, 1.0 - 0.1 * len(session.focus_losses))


def filter_sessions(sessions: Iterable[StudySession], time_range: TimeRange, now: datetime) -> List[StudySession]:
    """Finalized sessions whose end falls within [now - window, now]; ALL keeps every one."""
    finished = [s for s in sessions if s.end_time is not None and s.duration is not None]
    window = time_range.window
    if window is None:
        return finished
    upper = _local(now)
    lower = upper - window
    return [s for s in finished if lower <= _local(s.end_time) <= upper]  # type: ignore[arg-type]


def daily_buckets(sessions: Sequence[StudySession], days: int, now: datetime) -> List[DailyBucket]:
    today = _local(now).date()
    minutes_by_day: Dict[date, int] = {}
    for s in sessions:
        assert s.end_time is not None
        day = _local(s.end_time).date()
        minutes_by_day[day] = minutes_by_day.get(day, 0) + (s.duration or 0)
    buckets: List[DailyBucket] = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        buckets.append(DailyBucket(date=day, label=f"{day:%b} {day.day}", minutes=minutes_by_day.get(day, 0)))
    return buckets


def subject_distribution(sessions: Sequence[StudySession]) -> List[SubjectTotal]:
    totals: Dict[str, int] = {}
    for s in sessions:
        totals[s.subject] = totals.get(s.subject, 0) + (s.duration or 0)
    return [SubjectTotal(name=name, minutes=minutes) for name, minutes in totals.items()]


def current_streak(sessions: Iterable[StudySession], now: datetime, max_days: int = 365) -> int:
    """Consecutive days with a finished session, counting back from today.

    Today may be empty without breaking the run; any earlier gap ends it.
    """
    days = {_local(s.end_time).date() for s in sessions if s.end_time is not None}
    if not days:
        return 0
    today = _local(now).date()
    streak = 0
    for offset in range(max_days):
        if today - timedelta(days=offset) in days:
            streak += 1
        elif offset > 0:
            break
    return streak


def compute_analytics(
    sessions: Sequence[StudySession],
    time_range: TimeRange = TimeRange.WEEK,
    now: Optional[datetime] = None,
    *,
    recent_limit: int = 10,
    streak_max_days: int = 365,
) -> AnalyticsSnapshot:
    now = now or datetime.now()
    time_range = TimeRange(time_range)
    filtered = filter_sessions(sessions, time_range, now)
    scores = [focus_score(s) for s in filtered]

    chronological = sorted(filtered, key=lambda s: _local(s.end_time))  # type: ignore[arg-type]
    tail = chronological[-recent_limit:] if recent_limit > 0 else []
    recent = tuple(
        RecentSession(
            session_id=s.id,
            date=s.end_time,  # type: ignore[arg-type]
            subject=s.subject,
            duration=s.duration or 0,
            focus_score=focus_score(s),
        )
        for s in reversed(tail)
    )

    return AnalyticsSnapshot(
        time_range=time_range,
        total_minutes=sum(s.duration or 0 for s in filtered),
        total_sessions=len(filtered),
        average_focus=sum(scores) / len(scores) if scores else 0.0,
        current_streak=current_streak(sessions, now, streak_max_days),
        daily=tuple(daily_buckets(filtered, time_range.bucket_days, now)),
        subjects=tuple(subject_distribution(filtered)),
        recent=recent,
        sessions=tuple(filtered),
    )


EXPORT_HEADER = ("Date", "Subject", "Duration (minutes)", "Focus Score")


def export_rows(snapshot: AnalyticsSnapshot) -> List[Tuple[str, str, int, str]]:
    """One ``(date, subject, minutes, focus%)`` row per session in the window."""
    rows: List[Tuple[str, str, int, str]] = []
    for s in sorted(snapshot.sessions, key=lambda s: _local(s.end_time)):  # type: ignore[arg-type]
        percent = int(focus_score(s) * 100 + 0.5)
        rows.append((_local(s.end_time).date().isoformat(), s.subject, s.duration or 0, f"{percent}%"))  # type: ignore[union-attr]
    return rows


def export_csv(snapshot: AnalyticsSnapshot, file_path: str) -> int:
    """Write the export rows to ``file_path``; returns the number of data rows."""
    rows = export_rows(snapshot)
    with open(file_path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(EXPORT_HEADER)
        writer.writerows(rows)
    return len(rows)


__all__ = [
    "TimeRange",
    "DailyBucket",
    "SubjectTotal",
    "RecentSession",
    "AnalyticsSnapshot",
    "focus_score",
    "filter_sessions",
    "daily_buckets",
    "subject_distribution",
    "current_streak",
    "compute_analytics",
    "export_rows",
    "export_csv",
]
