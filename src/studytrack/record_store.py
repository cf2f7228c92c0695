"""
Record Store for StudyTrack

Provides:
- User-namespaced JSON persistence of tasks, sessions, settings and artifacts
- Atomic writes (temp file + replace), one file per collection and user
- Fail-open reads: a corrupted file reads as an empty collection
- The unnamespaced notification queue used by the scheduler

Layout under ``data_dir``:

    tasks-<user>.json        [ {task}, ... ]
    sessions-<user>.json     [ {session}, ... ]
    settings-<user>.json     [ {"id": "preferences", "values": {...}} ]
    artifacts-<user>.json    [ {artifact}, ... ]
    notifications.json       [ {scheduled notification}, ... ]

Usage:
    store = RecordStore("/path/to/data")
    store.set_active_user("alice")
    store.add_task(task)
    for session in store.sessions():
        ...
"""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .errors import StorageCorruption, ValidationError
from .models import (
    Artifact,
    ScheduledNotification,
    SettingsEntry,
    StudySession,
    Task,
    UserPreferences,
    NotificationPreferences,
    new_id,
)

logger = logging.getLogger(__name__)


TASKS = "tasks"
SESSIONS = "sessions"
SETTINGS = "settings"
ARTIFACTS = "artifacts"

COLLECTIONS: Dict[str, Any] = {
    TASKS: Task,
    SESSIONS: StudySession,
    SETTINGS: SettingsEntry,
    ARTIFACTS: Artifact,
}

QUEUE_FILE = "notifications.json"
PREFERENCES_ID = "preferences"

_SAFE_USER = re.compile(r"[^A-Za-z0-9_.@-]")


def _read_blob(path: str) -> List[Dict[str, Any]]:
    """Read a JSON list of objects; raise StorageCorruption if it is unusable."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        raise StorageCorruption(path, str(exc)) from exc
    if not isinstance(raw, list):
        raise StorageCorruption(path, f"expected a list, found {type(raw).__name__}")
    return [item for item in raw if isinstance(item, dict)]


def _write_blob(path: str, items: List[Dict[str, Any]]) -> None:
    # Atomic write: write to temp and replace
    tmp = path + ".tmp"
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(items, f, indent=2, ensure_ascii=False)
    os.replace(tmp, path)


class RecordStore:
    """Durable CRUD over the four per-user collections."""

    def __init__(self, data_dir: str, now: Optional[Callable[[], datetime]] = None) -> None:
        self.data_dir = data_dir
        self._now = now or datetime.now
        self._user_id: Optional[str] = None

    # ---------------- Namespace ----------------
    @property
    def active_user(self) -> Optional[str]:
        return self._user_id

    def set_active_user(self, user_id: str) -> None:
        if not user_id or not str(user_id).strip():
            raise ValidationError("user id must be a non-empty string")
        self._user_id = str(user_id).strip()
        logger.debug("Active user set to %s", self._user_id)

    def _path(self, collection: str, user_id: Optional[str] = None) -> str:
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection '{collection}'")
        uid = user_id if user_id is not None else self._user_id
        if uid is None:
            raise RuntimeError("set_active_user() must be called before accessing records")
        return os.path.join(self.data_dir, f"{collection}-{_SAFE_USER.sub('_', uid)}.json")

    # ---------------- Generic collection access ----------------
    def list(self, collection: str) -> List[Any]:
        """Return every record of ``collection`` in insertion order."""
        return self._load(collection, self._path(collection))

    def get(self, collection: str, record_id: str) -> Optional[Any]:
        for record in self.list(collection):
            if record.id == record_id:
                return record
        return None

    def upsert(self, collection: str, record: Any) -> None:
        """Insert ``record`` or replace the stored record with the same id."""
        path = self._path(collection)
        if not isinstance(record, COLLECTIONS[collection]):
            raise ValidationError(
                f"{collection} holds {COLLECTIONS[collection].__name__}, not {type(record).__name__}"
            )
        records = self._load(collection, path)
        for i, existing in enumerate(records):
            if existing.id == record.id:
                records[i] = record
                break
        else:
            records.append(record)
        self._save(path, records)

    def remove(self, collection: str, record_id: str) -> None:
        """Delete a record by id; does nothing if it does not exist."""
        path = self._path(collection)
        records = self._load(collection, path)
        kept = [r for r in records if r.id != record_id]
        if len(kept) != len(records):
            self._save(path, kept)

    def clear_user_data(self) -> None:
        """Drop every collection of the active user and start them empty."""
        for collection in COLLECTIONS:
            path = self._path(collection)
            if os.path.exists(path):
                os.remove(path)
            self._load(collection, path)

    def _load(self, collection: str, path: str, create: bool = True) -> List[Any]:
        if not os.path.exists(path):
            # First access initializes an empty collection
            if create:
                _write_blob(path, [])
            return []
        try:
            raw_items = _read_blob(path)
        except StorageCorruption as exc:
            logger.warning("Treating %s as empty: %s", collection, exc.reason)
            return []
        record_type = COLLECTIONS[collection]
        records: List[Any] = []
        for item in raw_items:
            try:
                records.append(record_type.from_dict(item))
            except ValidationError as exc:
                # Skip invalid entry
                logger.warning("Skipping malformed %s record: %s", collection, exc)
        return records

    def _save(self, path: str, records: List[Any]) -> None:
        _write_blob(path, [r.to_dict() for r in records])

    # ---------------- Tasks ----------------
    def tasks(self) -> List[Task]:
        return self.list(TASKS)

    def add_task(self, task: Task) -> None:
        if self.get(TASKS, task.id) is not None:
            raise ValidationError(f"Task '{task.id}' already exists")
        self.upsert(TASKS, task)

    def update_task(self, task: Task) -> None:
        """Replace an existing task; unknown ids are ignored."""
        if self.get(TASKS, task.id) is not None:
            self.upsert(TASKS, task)

    def delete_task(self, task_id: str) -> None:
        self.remove(TASKS, task_id)

    def toggle_task(self, task_id: str) -> Optional[Task]:
        task = self.get(TASKS, task_id)
        if task is None:
            return None
        task.completed = not task.completed
        self.upsert(TASKS, task)
        return task

    def sorted_tasks(self) -> List[Task]:
        """Incomplete tasks first, each group ordered by deadline (past deadlines first)."""
        return sorted(self.tasks(), key=lambda t: (t.completed, _sort_key(t.deadline)))

    # ---------------- Sessions ----------------
    def sessions(self) -> List[StudySession]:
        return self.list(SESSIONS)

    def append_session(self, session: StudySession) -> None:
        if not session.is_finalized:
            raise ValidationError("Only finalized sessions can be stored")
        assert session.end_time is not None
        if _sort_key(session.end_time) < _sort_key(session.start_time):
            raise ValidationError("Session ends before it starts")
        self.upsert(SESSIONS, session)

    # ---------------- Artifacts ----------------
    def artifacts(self) -> List[Artifact]:
        return self.list(ARTIFACTS)

    def save_artifact(self, data: str, session_id: Optional[str] = None) -> Artifact:
        if not data:
            raise ValidationError("Artifact data must not be empty")
        artifact = Artifact(id=new_id("art_"), data=data, timestamp=self._now(), session_id=session_id)
        self.upsert(ARTIFACTS, artifact)
        return artifact

    # ---------------- Settings ----------------
    def get_preferences(self) -> UserPreferences:
        return self._preferences_at(self._path(SETTINGS))

    def update_preferences(self, partial: Dict[str, Any]) -> UserPreferences:
        """Merge ``partial`` into the stored preferences section by section."""
        updated = self.get_preferences().merged(partial)
        self.upsert(SETTINGS, SettingsEntry(id=PREFERENCES_ID, values=updated.to_dict()))
        return updated

    def preferences_for(self, user_id: str) -> NotificationPreferences:
        """Notification flags of any user, without switching the active user."""
        return self._preferences_at(self._path(SETTINGS, user_id), create=False).notifications

    def _preferences_at(self, path: str, create: bool = True) -> UserPreferences:
        for entry in self._load(SETTINGS, path, create):
            if entry.id == PREFERENCES_ID:
                try:
                    return UserPreferences.from_dict(entry.values)
                except ValidationError as exc:
                    logger.warning("Ignoring malformed preferences: %s", exc)
                    break
        return UserPreferences()

    # ---------------- Notification queue ----------------
    def _queue_path(self) -> str:
        return os.path.join(self.data_dir, QUEUE_FILE)

    def load_queue(self) -> List[ScheduledNotification]:
        path = self._queue_path()
        if not os.path.exists(path):
            return []
        try:
            raw_items = _read_blob(path)
        except StorageCorruption as exc:
            logger.warning("Treating notification queue as empty: %s", exc.reason)
            return []
        items: List[ScheduledNotification] = []
        for item in raw_items:
            try:
                items.append(ScheduledNotification.from_dict(item))
            except ValidationError as exc:
                logger.warning("Dropping malformed queued notification: %s", exc)
        return items

    def save_queue(self, items: List[ScheduledNotification]) -> None:
        _write_blob(self._queue_path(), [n.to_dict() for n in items])


def _sort_key(ts: datetime) -> datetime:
    # Normalize naive and aware timestamps to aware local time so they compare
    return ts.astimezone()


__all__ = [
    "RecordStore",
    "TASKS",
    "SESSIONS",
    "SETTINGS",
    "ARTIFACTS",
    "COLLECTIONS",
]
