from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from .analytics import AnalyticsSnapshot, TimeRange, compute_analytics
from .config import StudyTrackConfig
from .focus_timer import FocusTimer, FocusTimerConfig
from .models import NotificationType, Priority, Task, new_id
from .notifier import DesktopNotifier
from .record_store import RecordStore
from .scheduler import DeliverySurface, NotificationScheduler
from .session_manager import SessionManager
from .timers import TimerHost, TimerLoop

logger = logging.getLogger(__name__)


class StudyTrackApp:
    """Composition root: one store, session manager, scheduler and focus timer per process."""

    def __init__(
        self,
        cfg: Optional[StudyTrackConfig] = None,
        *,
        surface: Optional[DeliverySurface] = None,
        timers: Optional[TimerHost] = None,
        now: Optional[Callable[[], datetime]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.cfg = cfg or StudyTrackConfig.from_env()
        self._now = now or datetime.now
        self.timers: TimerHost = timers or TimerLoop()
        self.surface: DeliverySurface = surface or DesktopNotifier(
            app_name=self.cfg.app_name, timeout_s=self.cfg.notification_timeout_s
        )
        self.store = RecordStore(self.cfg.data_dir, now=self._now)
        self.sessions = SessionManager(self.store, now=self._now)
        self.scheduler = NotificationScheduler(self.store, self.surface, self.timers, self.cfg, now=self._now)
        self.timer: Optional[FocusTimer] = None
        self._clock = clock

    # ---------- Users ----------
    @property
    def user_id(self) -> str:
        uid = self.store.active_user
        if uid is None:
            raise RuntimeError("No user is logged in")
        return uid

    def login(self, user_id: str) -> None:
        self.store.set_active_user(user_id)
        prefs = self.store.get_preferences()
        self.timer = FocusTimer(
            self.sessions,
            self.timers,
            FocusTimerConfig(work_minutes_default=prefs.study.default_session_minutes),
            scheduler=self.scheduler,
            user_id=user_id,
            clock=self._clock,
            now=self._now,
        )
        logger.info("Logged in as %s", user_id)

    def logout(self) -> None:
        """Abandon any open session and cancel the user's pending notifications."""
        if self.timer is not None:
            self.timer.abandon()
            self.timer = None
        self.sessions.abandon()
        self.scheduler.cancel_all_for_user(self.user_id)

    def start(self) -> None:
        self.scheduler.start()

    # ---------- Tasks ----------
    def add_task(
        self,
        title: str,
        subject: str,
        deadline: datetime,
        priority: Priority = Priority.MEDIUM,
    ) -> Task:
        task = Task(id=new_id("task_"), title=title.strip(), subject=subject.strip(), deadline=deadline,
                    priority=priority, created_at=self._now())
        self.store.add_task(task)
        self.scheduler.schedule_deadline_alert(task, self.user_id)
        return task

    def update_task(self, task: Task) -> None:
        self.store.update_task(task)
        self._cancel_deadline_alerts(task.id)
        if not task.completed:
            self.scheduler.schedule_deadline_alert(task, self.user_id)

    def toggle_task(self, task_id: str) -> Optional[Task]:
        task = self.store.toggle_task(task_id)
        if task is not None:
            self._cancel_deadline_alerts(task_id)
            if not task.completed:
                self.scheduler.schedule_deadline_alert(task, self.user_id)
        return task

    def delete_task(self, task_id: str) -> None:
        self.store.delete_task(task_id)
        self._cancel_deadline_alerts(task_id)

    def _cancel_deadline_alerts(self, task_id: str) -> None:
        for item in self.scheduler.pending(self.user_id):
            if item.type == NotificationType.DEADLINE_ALERT and (item.data or {}).get("task_id") == task_id:
                self.scheduler.cancel(item.id)

    # ---------- Analytics ----------
    def analytics(self, time_range: TimeRange = TimeRange.WEEK) -> AnalyticsSnapshot:
        return compute_analytics(
            self.store.sessions(),
            time_range,
            self._now(),
            recent_limit=self.cfg.recent_limit,
            streak_max_days=self.cfg.streak_max_days,
        )


__all__ = ["StudyTrackApp"]
