from datetime import datetime

import pytest

from studytrack.errors import ValidationError
from studytrack.models import (
    BROADCAST_USER,
    NotificationPreferences,
    NotificationType,
    Priority,
    QuizResult,
    ScheduledNotification,
    StudySession,
    Task,
    UserPreferences,
    new_id,
)


def test_new_id_uses_prefix_and_is_unique():
    a, b = new_id("task_"), new_id("task_")
    assert a.startswith("task_")
    assert a != b


def test_task_from_dict_requires_fields():
    with pytest.raises(ValidationError):
        Task.from_dict({"id": "t1", "title": "Essay"})


def test_task_from_dict_rejects_bad_priority_and_timestamp():
    base = {"id": "t1", "title": "Essay", "subject": "English", "deadline": "2026-03-12T09:00:00"}
    with pytest.raises(ValidationError):
        Task.from_dict(dict(base, priority="urgent"))
    with pytest.raises(ValidationError):
        Task.from_dict(dict(base, deadline="next tuesday"))


def test_session_survives_serialization():
    session = StudySession(
        id="s1",
        subject="Math",
        start_time=datetime(2026, 3, 10, 9, 0),
        end_time=datetime(2026, 3, 10, 9, 25),
        duration=25,
        focus_losses=[datetime(2026, 3, 10, 9, 5)],
        quiz_results=[QuizResult("q1", True, datetime(2026, 3, 10, 9, 10))],
    )
    raw = session.to_dict()
    assert raw["start_time"] == "2026-03-10T09:00:00"
    assert StudySession.from_dict(raw) == session
    assert session.is_finalized


def test_open_session_is_not_finalized():
    assert not StudySession(id="s1", subject="Math", start_time=datetime(2026, 3, 10)).is_finalized


def test_scheduled_notification_broadcast_flag():
    n = ScheduledNotification(id="tip_1", type=NotificationType.MOTIVATIONAL_TIP, title="Tip", body="b",
                              scheduled_for=datetime(2026, 3, 11, 9), user_id=BROADCAST_USER)
    assert n.is_broadcast
    with pytest.raises(ValidationError):
        ScheduledNotification.from_dict(dict(n.to_dict(), type="pager"))


def test_allows_respects_master_switch():
    prefs = NotificationPreferences(enabled=False)
    assert not any(prefs.allows(t) for t in NotificationType)
    prefs = NotificationPreferences(deadline_alerts=False)
    assert prefs.allows(NotificationType.STUDY_REMINDER)
    assert not prefs.allows(NotificationType.DEADLINE_ALERT)


def test_merged_keeps_untouched_keys():
    prefs = UserPreferences().merged({"notifications": {"sound": False}})
    merged = prefs.merged({"notifications": {"vibration": False}})
    assert merged.notifications.sound is False
    assert merged.notifications.vibration is False
    assert merged.notifications.enabled is True


def test_merged_coerces_study_numbers():
    prefs = UserPreferences().merged({"study": {"break_minutes": "10"}})
    assert prefs.study.break_minutes == 10
    with pytest.raises(ValidationError):
        UserPreferences().merged({"study": {"break_minutes": "ten"}})


def test_merged_rejects_bad_theme_and_shapes():
    with pytest.raises(ValidationError):
        UserPreferences().merged({"theme": "neon"})
    with pytest.raises(ValidationError):
        UserPreferences().merged({"notifications": True})


def test_preferences_from_dict_ignores_foreign_keys():
    prefs = UserPreferences.from_dict({"theme": "light", "legacy": 1, "study": {"default_session_minutes": 45}})
    assert prefs.theme == "light"
    assert prefs.study.default_session_minutes == 45


def test_priority_values():
    assert [p.value for p in Priority] == ["low", "medium", "high"]


def test_merged_requires_real_booleans():
    for value in ("0", "no", "off", 0, 1):
        with pytest.raises(ValidationError):
            UserPreferences().merged({"notifications": {"study_reminders": value}})
    with pytest.raises(ValidationError):
        UserPreferences().merged({"study": {"break_minutes": True}})


def test_from_dict_rejects_non_objects():
    with pytest.raises(ValidationError):
        Task.from_dict(["t1", "Essay"])
    with pytest.raises(ValidationError):
        QuizResult.from_dict("x")
