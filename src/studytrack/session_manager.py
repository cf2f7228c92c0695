"""
Study session lifecycle for StudyTrack.

Tracks the single open session, accumulates its events, and commits it to the
RecordStore when it ends.

States:
    IDLE -> OPEN -> IDLE
    start() opens a session; finalize_by_stop() or finalize_by_completion()
    commits it and returns to IDLE.

Duration rule (both finalize paths): duration counts study time only, so
paused intervals are excluded. The stop path measures wall-clock time minus
pauses; the completion path trusts the countdown's planned minutes, which do
not advance while the countdown is paused.

Edge cases handled:
- Focus and quiz events that arrive while IDLE are dropped silently; visibility
  changes can fire before a session starts or after it ends.
- finalize_by_completion() works from IDLE as well and then carries no events.
- Invalid finalize arguments raise ValidationError and leave state untouched.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from .errors import ConflictError, ValidationError
from .models import Artifact, QuizResult, StudySession, new_id
from .record_store import RecordStore

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, store: RecordStore, now: Optional[Callable[[], datetime]] = None) -> None:
        self.store = store
        self._now = now or datetime.now

        self._current: Optional[StudySession] = None
        self._paused_at: Optional[datetime] = None
        self._paused_s: float = 0.0

    # ---------- State ----------
    @property
    def current(self) -> Optional[StudySession]:
        """The open session, or None while idle. Read-only view; use the methods to change it."""
        return copy.deepcopy(self._current)

    @property
    def is_open(self) -> bool:
        return self._current is not None

    @property
    def is_paused(self) -> bool:
        return self._paused_at is not None

    # ---------- Transitions ----------
    def start(self, subject: str) -> StudySession:
        if self._current is not None:
            raise ConflictError(f"Session '{self._current.id}' is already open")
        subject = (subject or "").strip()
        if not subject:
            raise ValidationError("Session subject must not be empty")
        self._current = StudySession(id=new_id("ses_"), subject=subject, start_time=self._now())
        self._paused_at = None
        self._paused_s = 0.0
        logger.info("Session %s started (%s)", self._current.id, subject)
        return copy.deepcopy(self._current)

    def pause(self) -> None:
        if self._current is not None and self._paused_at is None:
            self._paused_at = self._now()

    def resume(self) -> None:
        if self._current is not None and self._paused_at is not None:
            self._paused_s += max(0.0, (self._now() - self._paused_at).total_seconds())
            self._paused_at = None

    def finalize_by_stop(self) -> Optional[StudySession]:
        """End the open session now and commit it; returns None if nothing was open."""
        if self._current is None:
            return None
        end = self._now()
        paused_s = self._paused_s
        if self._paused_at is not None:
            paused_s += max(0.0, (end - self._paused_at).total_seconds())
        active_s = max(0.0, (end - self._current.start_time).total_seconds() - paused_s)
        session = replace(self._current, end_time=end, duration=int(active_s / 60 + 0.5))
        return self._commit(session)

    def finalize_by_completion(
        self, subject: str, duration_minutes: int, completed_at: Optional[datetime] = None
    ) -> StudySession:
        """Commit a countdown that reached zero, trusting its planned duration.

        The committed start is ``completed_at - duration_minutes``. Events logged on
        the open session, if any, are carried over.
        """
        subject = (subject or "").strip()
        if not subject:
            raise ValidationError("Session subject must not be empty")
        try:
            minutes = int(duration_minutes)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Duration must be a whole number of minutes") from exc
        if minutes < 0:
            raise ValidationError("Duration must not be negative")
        end = completed_at or self._now()
        open_session = self._current or StudySession(id=new_id("ses_"), subject=subject, start_time=end)
        session = replace(
            open_session,
            subject=subject,
            start_time=end - timedelta(minutes=minutes),
            end_time=end,
            duration=minutes,
        )
        return self._commit(session)

    def abandon(self) -> Optional[StudySession]:
        """Discard the open session without committing it; returns what was dropped."""
        dropped = self._current
        self._current = None
        self._paused_at = None
        self._paused_s = 0.0
        if dropped is not None:
            logger.info("Session %s abandoned", dropped.id)
        return dropped

    # ---------- Events ----------
    def log_focus_loss(self, ts: Optional[datetime] = None) -> None:
        if self._current is not None:
            self._current.focus_losses.append(ts or self._now())

    def log_focus_return(self, ts: Optional[datetime] = None) -> None:
        if self._current is not None:
            self._current.focus_returns.append(ts or self._now())

    def log_quiz_result(self, result: QuizResult) -> None:
        if self._current is not None:
            self._current.quiz_results.append(result)

    def capture_artifact(self, data: str) -> Artifact:
        """Persist a captured artifact and link it to the open session, if any."""
        artifact = self.store.save_artifact(data, self._current.id if self._current else None)
        if self._current is not None:
            self._current.artifact_ids.append(artifact.id)
        return artifact

    # ---------- Internals ----------
    def _commit(self, session: StudySession) -> StudySession:
        self.store.append_session(session)
        self._current = None
        self._paused_at = None
        self._paused_s = 0.0
        logger.info("Session %s committed: %s, %d min", session.id, session.subject, session.duration or 0)
        return session


__all__ = ["SessionManager"]
