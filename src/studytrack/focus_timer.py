"""
Focus Timer (Pomodoro-style countdown) for StudyTrack

Features:
- Countdown state machine driven by a TimerHost, no ticker thread
- Remaining time computed from clock snapshots, not per-tick counters
- Pause/resume that keeps the remaining time and pauses the open session
- On completion the session is committed with its planned duration
- Optional break reminder armed on the scheduler for the end of the block

States:
    IDLE -> WORKING <-> PAUSED -> IDLE
    start_work() opens a session and arms completion; stop() ends it early
    (measured duration), natural completion commits the planned duration.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from .models import StudySession
from .scheduler import NotificationScheduler
from .session_manager import SessionManager
from .timers import TimerHandle, TimerHost

logger = logging.getLogger(__name__)


@dataclass
class FocusTimerConfig:
    work_minutes_default: int = 25
    break_reminders: bool = True


class FocusTimer:
    def __init__(
        self,
        sessions: SessionManager,
        timers: TimerHost,
        cfg: Optional[FocusTimerConfig] = None,
        scheduler: Optional[NotificationScheduler] = None,
        user_id: Optional[str] = None,
        on_complete: Optional[Callable[[StudySession], None]] = None,
        clock: Optional[Callable[[], float]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.cfg = cfg or FocusTimerConfig()
        self.sessions = sessions
        self.timers = timers
        self.scheduler = scheduler
        self.user_id = user_id
        self.on_complete = on_complete
        self._clock = clock or time.monotonic
        self._now = now or datetime.now

        # Public stats
        self.completed_sessions: int = 0

        # Internal state
        self._state: str = "IDLE"  # IDLE | WORKING | PAUSED
        self._subject: str = ""
        self._target_s: int = self.cfg.work_minutes_default * 60
        self._started_mono: Optional[float] = None
        self._paused_remaining_s: Optional[float] = None
        self._completion: Optional[TimerHandle] = None
        self._break_reminder_id: Optional[str] = None

    # ---------- Public API ----------
    def start_work(self, subject: str, minutes: Optional[int] = None) -> StudySession:
        """Open a session for ``subject`` and count down ``minutes`` (default from config)."""
        session = self.sessions.start(subject)
        self._subject = session.subject
        if minutes is not None and minutes > 0:
            self._target_s = int(minutes * 60)
        else:
            self._target_s = self.cfg.work_minutes_default * 60
        self._state = "WORKING"
        self._started_mono = self._clock()
        self._paused_remaining_s = None
        self._arm(self._target_s)
        return session

    def pause(self) -> None:
        if self._state != "WORKING" or self._started_mono is None:
            return
        self._paused_remaining_s = self._remaining()
        self._started_mono = None
        self._state = "PAUSED"
        self._disarm()
        self.sessions.pause()

    def resume(self) -> None:
        if self._state != "PAUSED" or self._paused_remaining_s is None:
            return
        remaining = self._paused_remaining_s
        self._started_mono = self._clock() - (self._target_s - remaining)
        self._paused_remaining_s = None
        self._state = "WORKING"
        self.sessions.resume()
        self._arm(remaining)

    def stop(self) -> Optional[StudySession]:
        """End the block early; the session keeps its measured duration."""
        if self._state == "IDLE":
            return None
        self._disarm()
        self._reset_state()
        return self.sessions.finalize_by_stop()

    def abandon(self) -> None:
        """Drop the running block without committing anything."""
        self._disarm()
        self._reset_state()
        self.sessions.abandon()

    def get_state(self) -> Tuple[str, int, int]:
        """Return (state, remaining_s, total_s)."""
        if self._state == "IDLE":
            return (self._state, self._target_s, self._target_s)
        return (self._state, max(0, int(round(self._remaining()))), self._target_s)

    # ---------- Internals ----------
    def _remaining(self) -> float:
        if self._started_mono is None:
            return float(self._paused_remaining_s if self._paused_remaining_s is not None else self._target_s)
        return max(0.0, self._target_s - (self._clock() - self._started_mono))

    def _arm(self, remaining_s: float) -> None:
        self._completion = self.timers.call_later(remaining_s, self._complete)
        if self.cfg.break_reminders and self.scheduler is not None and self.user_id:
            minutes = self._target_s // 60
            self._break_reminder_id = self.scheduler.schedule_break_reminder(
                minutes, self.user_id, at=self._now() + timedelta(seconds=remaining_s)
            )

    def _disarm(self) -> None:
        if self._completion is not None:
            self._completion.cancel()
            self._completion = None
        if self._break_reminder_id is not None and self.scheduler is not None:
            self.scheduler.cancel(self._break_reminder_id)
        self._break_reminder_id = None

    def _complete(self) -> None:
        if self._state != "WORKING":
            return
        minutes = self._target_s // 60
        subject = self._subject
        self._completion = None
        # The break reminder fires on its own at this same moment
        self._break_reminder_id = None
        self._reset_state()
        self.completed_sessions += 1
        session = self.sessions.finalize_by_completion(subject, minutes, self._now())
        logger.info("Focus block complete: %s, %d min", subject, minutes)
        cb = self.on_complete
        if cb:
            cb(session)

    def _reset_state(self) -> None:
        self._state = "IDLE"
        self._started_mono = None
        self._paused_remaining_s = None


__all__ = ["FocusTimerConfig", "FocusTimer"]
