import csv
from datetime import datetime, timedelta

import pytest

from studytrack.analytics import (
    EXPORT_HEADER,
    TimeRange,
    compute_analytics,
    current_streak,
    export_csv,
    focus_score,
)
from studytrack.models import StudySession

NOW = datetime(2026, 3, 10, 14, 30)


def _session(sid, end, minutes=25, subject="Math", losses=0):
    return StudySession(
        id=sid,
        subject=subject,
        start_time=end - timedelta(minutes=minutes),
        end_time=end,
        duration=minutes,
        focus_losses=[end - timedelta(minutes=1)] * losses,
    )


def test_empty_history():
    snap = compute_analytics([], TimeRange.WEEK, NOW)
    assert snap.total_minutes == 0
    assert snap.total_sessions == 0
    assert snap.average_focus == 0.0
    assert snap.current_streak == 0
    assert len(snap.daily) == 7
    assert all(b.minutes == 0 for b in snap.daily)
    assert snap.recent == ()


def test_week_buckets_place_minutes_on_end_day():
    sessions = [
        _session("a", NOW - timedelta(days=2), 25),
        _session("b", NOW - timedelta(hours=1), 15),
    ]
    snap = compute_analytics(sessions, TimeRange.WEEK, NOW)
    assert snap.total_minutes == 40
    assert snap.total_sessions == 2
    assert [b.minutes for b in snap.daily] == [0, 0, 0, 0, 25, 0, 15]
    assert snap.daily[-1].label == "Mar 10"
    assert snap.daily[0].label == "Mar 4"


def test_bucket_counts_per_range():
    assert len(compute_analytics([], TimeRange.MONTH, NOW).daily) == 30
    assert len(compute_analytics([], TimeRange.ALL, NOW).daily) == 90


def test_window_excludes_old_and_open_sessions():
    old = _session("old", NOW - timedelta(days=8))
    open_session = StudySession(id="open", subject="Math", start_time=NOW - timedelta(minutes=5))
    fresh = _session("fresh", NOW - timedelta(days=1))
    week = compute_analytics([old, open_session, fresh], TimeRange.WEEK, NOW)
    assert [s.id for s in week.sessions] == ["fresh"]
    everything = compute_analytics([old, open_session, fresh], TimeRange.ALL, NOW)
    assert {s.id for s in everything.sessions} == {"old", "fresh"}


def test_focus_score_floors_at_zero():
    assert focus_score(_session("a", NOW, losses=3)) == pytest.approx(0.7)
    assert focus_score(_session("b", NOW, losses=12)) == 0.0


def test_average_focus():
    snap = compute_analytics(
        [_session("a", NOW - timedelta(hours=2), losses=2), _session("b", NOW - timedelta(hours=1))],
        TimeRange.WEEK,
        NOW,
    )
    assert abs(snap.average_focus - 0.9) < 1e-9


def test_subjects_in_first_seen_order():
    sessions = [
        _session("a", NOW - timedelta(hours=5), 30, "Physics"),
        _session("b", NOW - timedelta(hours=4), 20, "Chemistry"),
        _session("c", NOW - timedelta(hours=3), 10, "Physics"),
    ]
    snap = compute_analytics(sessions, TimeRange.WEEK, NOW)
    assert [(s.name, s.minutes) for s in snap.subjects] == [("Physics", 40), ("Chemistry", 20)]


def test_streak_counts_consecutive_days():
    sessions = [_session(str(i), NOW - timedelta(days=i)) for i in range(3)]
    assert current_streak(sessions, NOW) == 3


def test_streak_tolerates_empty_today_but_not_gaps():
    sessions = [_session("y", NOW - timedelta(days=1)), _session("g", NOW - timedelta(days=3))]
    assert current_streak(sessions, NOW) == 1


def test_streak_ignores_time_range():
    sessions = [_session(str(i), NOW - timedelta(days=i)) for i in range(10)]
    snap = compute_analytics(sessions, TimeRange.WEEK, NOW)
    assert snap.current_streak == 10
    assert current_streak(sessions, NOW, max_days=4) == 4


def test_recent_is_newest_first_and_limited():
    sessions = [_session(f"s{i}", NOW - timedelta(hours=12 - i)) for i in range(12)]
    snap = compute_analytics(sessions, TimeRange.WEEK, NOW, recent_limit=10)
    assert len(snap.recent) == 10
    assert snap.recent[0].session_id == "s11"
    assert snap.recent[-1].session_id == "s2"


def test_compute_is_deterministic_and_does_not_mutate():
    sessions = [_session("b", NOW - timedelta(hours=1)), _session("a", NOW - timedelta(hours=3))]
    first = compute_analytics(sessions, TimeRange.WEEK, NOW)
    second = compute_analytics(sessions, TimeRange.WEEK, NOW)
    assert first == second
    assert [s.id for s in sessions] == ["b", "a"]


def test_export_csv(tmp_path):
    sessions = [
        _session("b", NOW - timedelta(hours=1), 15, "Physics", losses=1),
        _session("a", NOW - timedelta(days=2), 25, "Math"),
    ]
    out = tmp_path / "export.csv"
    count = export_csv(compute_analytics(sessions, TimeRange.WEEK, NOW), str(out))
    assert count == 2
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert tuple(rows[0]) == EXPORT_HEADER
    assert rows[1] == ["2026-03-08", "Math", "25", "100%"]
    assert rows[2] == ["2026-03-10", "Physics", "15", "90%"]
