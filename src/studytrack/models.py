"""
Record types for StudyTrack.

Every persisted record is a dataclass with a ``to_dict()`` producing plain
JSON-compatible data (timestamps as ISO-8601 strings) and a ``from_dict()``
that validates required fields and raises ValidationError on malformed input.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ValidationError


BROADCAST_USER = "all"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationType(str, Enum):
    STUDY_REMINDER = "study_reminder"
    DEADLINE_ALERT = "deadline_alert"
    MOTIVATIONAL_TIP = "motivational_tip"
    BREAK_REMINDER = "break_reminder"


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def _require(raw: Any, names: List[str], kind: str) -> None:
    if not isinstance(raw, dict):
        raise ValidationError(f"{kind}: expected an object, found {type(raw).__name__}")
    missing = [name for name in names if raw.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"{kind}: missing required fields {missing}")


def _parse_ts(value: Any, kind: str, name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{kind}: malformed timestamp in '{name}'") from exc


def _parse_ts_list(values: Any, kind: str, name: str) -> List[datetime]:
    if values is None:
        return []
    if not isinstance(values, list):
        raise ValidationError(f"{kind}: '{name}' must be a list")
    return [_parse_ts(v, kind, name) for v in values]


def _new_ts_list() -> List[datetime]:
    return []


def _new_str_list() -> List[str]:
    return []


def _new_quiz_list() -> List["QuizResult"]:
    return []


# ---------------------------- Tasks ----------------------------


@dataclass
class Task:
    id: str
    title: str
    subject: str
    deadline: datetime
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "subject": self.subject,
            "deadline": self.deadline.isoformat(),
            "priority": self.priority.value,
            "completed": self.completed,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Task":
        _require(raw, ["id", "title", "deadline"], "Task")
        try:
            priority = Priority(str(raw.get("priority") or "medium").lower())
        except ValueError as exc:
            raise ValidationError(f"Task: invalid priority '{raw.get('priority')}'") from exc
        created_raw = raw.get("created_at")
        return cls(
            id=str(raw["id"]),
            title=str(raw["title"]).strip(),
            subject=str(raw.get("subject") or "").strip(),
            deadline=_parse_ts(raw["deadline"], "Task", "deadline"),
            priority=priority,
            completed=bool(raw.get("completed", False)),
            created_at=_parse_ts(created_raw, "Task", "created_at") if created_raw else datetime.now(),
        )


# ---------------------------- Sessions ----------------------------


@dataclass
class QuizResult:
    question_id: str
    correct: bool
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "correct": self.correct,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "QuizResult":
        _require(raw, ["question_id", "timestamp"], "QuizResult")
        return cls(
            question_id=str(raw["question_id"]),
            correct=bool(raw.get("correct", False)),
            timestamp=_parse_ts(raw["timestamp"], "QuizResult", "timestamp"),
        )


@dataclass
class StudySession:
    """A study interval and the events recorded while it was open.

    ``end_time`` and ``duration`` stay ``None`` until the session is finalized.
    """

    id: str
    subject: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None  # minutes
    focus_losses: List[datetime] = field(default_factory=_new_ts_list)
    focus_returns: List[datetime] = field(default_factory=_new_ts_list)
    quiz_results: List[QuizResult] = field(default_factory=_new_quiz_list)
    artifact_ids: List[str] = field(default_factory=_new_str_list)

    @property
    def is_finalized(self) -> bool:
        return self.end_time is not None and self.duration is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "duration": self.duration,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "focus_losses": [t.isoformat() for t in self.focus_losses],
            "focus_returns": [t.isoformat() for t in self.focus_returns],
            "quiz_results": [q.to_dict() for q in self.quiz_results],
            "artifact_ids": list(self.artifact_ids),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "StudySession":
        _require(raw, ["id", "subject", "start_time"], "StudySession")
        end_raw = raw.get("end_time")
        duration_raw = raw.get("duration")
        try:
            duration = int(duration_raw) if duration_raw is not None else None
        except (TypeError, ValueError) as exc:
            raise ValidationError("StudySession: invalid duration") from exc
        quiz_raw = raw.get("quiz_results") or []
        if not isinstance(quiz_raw, list):
            raise ValidationError("StudySession: 'quiz_results' must be a list")
        artifacts_raw = raw.get("artifact_ids") or []
        if not isinstance(artifacts_raw, list):
            raise ValidationError("StudySession: 'artifact_ids' must be a list")
        return cls(
            id=str(raw["id"]),
            subject=str(raw["subject"]),
            start_time=_parse_ts(raw["start_time"], "StudySession", "start_time"),
            end_time=_parse_ts(end_raw, "StudySession", "end_time") if end_raw else None,
            duration=duration,
            focus_losses=_parse_ts_list(raw.get("focus_losses"), "StudySession", "focus_losses"),
            focus_returns=_parse_ts_list(raw.get("focus_returns"), "StudySession", "focus_returns"),
            quiz_results=[QuizResult.from_dict(q) for q in quiz_raw],
            artifact_ids=[str(a) for a in artifacts_raw],
        )


@dataclass
class Artifact:
    """Something captured during study, e.g. a webcam snapshot as a data URL."""

    id: str
    data: str
    timestamp: datetime
    session_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "session_id": self.session_id,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Artifact":
        _require(raw, ["id", "data", "timestamp"], "Artifact")
        return cls(
            id=str(raw["id"]),
            data=str(raw["data"]),
            timestamp=_parse_ts(raw["timestamp"], "Artifact", "timestamp"),
            session_id=raw.get("session_id"),
        )


# ---------------------------- Notifications ----------------------------


@dataclass
class ScheduledNotification:
    id: str
    type: NotificationType
    title: str
    body: str
    scheduled_for: datetime
    user_id: str
    data: Optional[Dict[str, Any]] = None

    @property
    def is_broadcast(self) -> bool:
        return self.user_id == BROADCAST_USER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "body": self.body,
            "scheduled_for": self.scheduled_for.isoformat(),
            "user_id": self.user_id,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ScheduledNotification":
        _require(raw, ["id", "type", "scheduled_for", "user_id"], "ScheduledNotification")
        try:
            ntype = NotificationType(str(raw["type"]))
        except ValueError as exc:
            raise ValidationError(f"ScheduledNotification: invalid type '{raw['type']}'") from exc
        data = raw.get("data")
        return cls(
            id=str(raw["id"]),
            type=ntype,
            title=str(raw.get("title") or ""),
            body=str(raw.get("body") or ""),
            scheduled_for=_parse_ts(raw["scheduled_for"], "ScheduledNotification", "scheduled_for"),
            user_id=str(raw["user_id"]),
            data=data if isinstance(data, dict) else None,
        )


# ---------------------------- Preferences ----------------------------


@dataclass
class NotificationPreferences:
    enabled: bool = True
    study_reminders: bool = True
    deadline_alerts: bool = True
    motivational_tips: bool = True
    break_reminders: bool = True
    sound: bool = True
    vibration: bool = True

    def allows(self, ntype: NotificationType) -> bool:
        """Return True if notifications of this type may be shown."""
        if not self.enabled:
            return False
        return {
            NotificationType.STUDY_REMINDER: self.study_reminders,
            NotificationType.DEADLINE_ALERT: self.deadline_alerts,
            NotificationType.MOTIVATIONAL_TIP: self.motivational_tips,
            NotificationType.BREAK_REMINDER: self.break_reminders,
        }[ntype]


@dataclass
class StudySettings:
    default_session_minutes: int = 25
    break_minutes: int = 5
    long_break_minutes: int = 15
    sessions_before_long_break: int = 4


_THEMES = {"light", "dark", "system"}


@dataclass
class UserPreferences:
    theme: str = "system"
    notifications: NotificationPreferences = field(default_factory=NotificationPreferences)
    study: StudySettings = field(default_factory=StudySettings)

    def merged(self, partial: Dict[str, Any]) -> "UserPreferences":
        """Return a copy with ``partial`` applied.

        Named sub-sections (``notifications``, ``study``) are merged key by key,
        so updating one flag keeps the others. Unknown keys are rejected.
        """
        theme = self.theme
        notifications = self.notifications
        study = self.study
        for key, value in partial.items():
            if key == "theme":
                if value not in _THEMES:
                    raise ValidationError(f"UserPreferences: invalid theme '{value}'")
                theme = value
            elif key == "notifications":
                notifications = _merge_section(notifications, value, "notifications")
            elif key == "study":
                study = _merge_section(study, value, "study")
            else:
                raise ValidationError(f"UserPreferences: unknown section '{key}'")
        return UserPreferences(theme=theme, notifications=notifications, study=study)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "theme": self.theme,
            "notifications": dict(self.notifications.__dict__),
            "study": dict(self.study.__dict__),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "UserPreferences":
        partial = {k: v for k, v in raw.items() if k in ("theme", "notifications", "study")}
        return cls().merged(partial)


@dataclass
class SettingsEntry:
    """One named settings blob in a user's ``settings`` collection."""

    id: str
    values: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "values": dict(self.values)}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SettingsEntry":
        _require(raw, ["id"], "SettingsEntry")
        values = raw.get("values") or {}
        if not isinstance(values, dict):
            raise ValidationError("SettingsEntry: 'values' must be a mapping")
        return cls(id=str(raw["id"]), values=values)


def _merge_section(current: Any, update: Any, name: str) -> Any:
    if not isinstance(update, dict):
        raise ValidationError(f"UserPreferences: section '{name}' must be a mapping")
    known = {f.name for f in fields(current)}
    unknown = [k for k in update if k not in known]
    if unknown:
        raise ValidationError(f"UserPreferences: unknown keys {unknown} in '{name}'")
    cleaned: Dict[str, Any] = {}
    for key, value in update.items():
        default = getattr(current, key)
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ValidationError(f"UserPreferences: '{name}.{key}' must be true or false")
            cleaned[key] = value
        else:
            if isinstance(value, bool):
                raise ValidationError(f"UserPreferences: '{name}.{key}' must be an integer")
            try:
                cleaned[key] = int(value)
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"UserPreferences: '{name}.{key}' must be an integer") from exc
    return replace(current, **cleaned)


__all__ = [
    "BROADCAST_USER",
    "Priority",
    "NotificationType",
    "Task",
    "QuizResult",
    "StudySession",
    "Artifact",
    "ScheduledNotification",
    "NotificationPreferences",
    "StudySettings",
    "UserPreferences",
    "SettingsEntry",
    "new_id",
]
