"""
Deferred notification scheduling for StudyTrack.

Features:
- Durable queue of future deliveries (persisted through the RecordStore)
- Deferred callbacks armed on a single-threaded TimerHost, one per queued item
- Startup replay: overdue items fire immediately, the rest are re-armed
- Per-user preference gating and a global permission check at delivery time
- At-most-once delivery: an item leaves the queue before it is shown

Usage:

    scheduler = NotificationScheduler(store, DesktopNotifier(), TimerLoop())
    scheduler.start()
    scheduler.schedule_deadline_alert(task, user_id="alice")
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol

from .config import StudyTrackConfig
from .errors import DeliveryDenied
from .models import (
    BROADCAST_USER,
    NotificationPreferences,
    NotificationType,
    ScheduledNotification,
    Task,
    new_id,
)
from .record_store import RecordStore
from .timers import TimerHandle, TimerHost

logger = logging.getLogger(__name__)


MOTIVATIONAL_TIPS: List[str] = [
    "Every expert was once a beginner. Keep going!",
    "Small progress is still progress. You've got this!",
    "Focus on progress, not perfection.",
    "Your future self will thank you for studying today!",
    "Knowledge is power. Keep building yours!",
    "Believe in yourself and your ability to learn.",
    "Consistency beats perfection every time.",
    "Growth happens outside your comfort zone.",
]

_ID_PREFIX = {
    NotificationType.STUDY_REMINDER: "study_",
    NotificationType.DEADLINE_ALERT: "deadline_",
    NotificationType.MOTIVATIONAL_TIP: "tip_",
    NotificationType.BREAK_REMINDER: "break_",
}


class DeliverySurface(Protocol):
    def request_permission(self) -> Any: ...

    def has_permission(self) -> bool: ...

    def deliver(self, title: str, body: str, options: Optional[Dict[str, Any]] = None) -> Any: ...


def _aware(ts: datetime) -> datetime:
    return ts.astimezone()


class NotificationScheduler:
    def __init__(
        self,
        store: RecordStore,
        surface: DeliverySurface,
        timers: TimerHost,
        cfg: Optional[StudyTrackConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
        preferences_for: Optional[Callable[[str], NotificationPreferences]] = None,
    ) -> None:
        self.store = store
        self.surface = surface
        self.timers = timers
        self.cfg = cfg or StudyTrackConfig()
        self._now = now or datetime.now
        self._preferences_for = preferences_for or store.preferences_for

        self._queue: List[ScheduledNotification] = store.load_queue()
        self._handles: Dict[str, TimerHandle] = {}
        self._started = False

    # -------- Lifecycle --------
    def start(self) -> None:
        """Load the queue, replay overdue items, arm the rest, queue the daily tip."""
        self._queue = self.store.load_queue()
        if not self.surface.has_permission():
            self.surface.request_permission()

        now = _aware(self._now())
        overdue = [n for n in self._queue if _aware(n.scheduled_for) <= now]
        for item in overdue:
            logger.info("Replaying overdue notification %s", item.id)
            self._fire(item.id)
        for item in list(self._queue):
            self._arm(item)
        self._started = True

        if not any(n.type == NotificationType.MOTIVATIONAL_TIP for n in self._queue):
            self.schedule_daily_tip()

    def shutdown(self) -> None:
        """Disarm callbacks; the durable queue is left intact for the next start."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        self._started = False

    # -------- Scheduling --------
    def schedule(
        self,
        ntype: NotificationType,
        title: str,
        body: str,
        fires_at: datetime,
        user_id: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Queue a delivery and return its id.

        An item whose ``fires_at`` has already passed is still queued and fires
        on the next timer pass (or at the next ``start()``).
        """
        item = ScheduledNotification(
            id=new_id(_ID_PREFIX[ntype]),
            type=ntype,
            title=title,
            body=body,
            scheduled_for=fires_at,
            user_id=user_id,
            data=data,
        )
        self._queue.append(item)
        self._persist()
        self._arm(item)
        logger.debug("Scheduled %s %s at %s", ntype.value, item.id, fires_at.isoformat())
        return item.id

    def schedule_study_reminder(self, subject: str, duration: int, when: datetime, user_id: str) -> str:
        return self.schedule(
            NotificationType.STUDY_REMINDER,
            "Study Time!",
            f"Time to study {subject} for {duration} minutes",
            when,
            user_id,
            {"subject": subject, "duration": duration, "scheduled_for": when.isoformat()},
        )

    def schedule_deadline_alert(self, task: Task, user_id: str) -> Optional[str]:
        """Alert ``deadline_lead_hours`` before the deadline; None if that moment has passed."""
        alert_time = task.deadline - timedelta(hours=self.cfg.deadline_lead_hours)
        if _aware(alert_time) <= _aware(self._now()):
            logger.debug("No deadline alert for %s: alert time %s already passed", task.id, alert_time)
            return None
        return self.schedule(
            NotificationType.DEADLINE_ALERT,
            "Deadline Approaching!",
            f'"{task.title}" is due tomorrow in {task.subject}',
            alert_time,
            user_id,
            {"task_id": task.id, "title": task.title, "subject": task.subject, "deadline": task.deadline.isoformat()},
        )

    def schedule_break_reminder(self, minutes: int, user_id: str, at: Optional[datetime] = None) -> str:
        """Remind ``user_id`` to take a break after ``minutes`` of study (or at ``at``)."""
        return self.schedule(
            NotificationType.BREAK_REMINDER,
            "Break Time!",
            f"You've been studying for {minutes} minutes. Time for a well-deserved break!",
            at or self._now() + timedelta(minutes=minutes),
            user_id,
            {"duration": minutes},
        )

    def schedule_daily_tip(self) -> str:
        """Queue tomorrow's broadcast tip at the configured local hour."""
        tomorrow = (self._now() + timedelta(days=1)).replace(
            hour=self.cfg.daily_tip_hour, minute=0, second=0, microsecond=0
        )
        tip = MOTIVATIONAL_TIPS[tomorrow.date().toordinal() % len(MOTIVATIONAL_TIPS)]
        return self.schedule(NotificationType.MOTIVATIONAL_TIP, "Daily Study Tip", tip, tomorrow, BROADCAST_USER)

    def send_test(self) -> bool:
        """Show a notification right away; False if permission cannot be obtained."""
        if not self.surface.has_permission():
            self.surface.request_permission()
            if not self.surface.has_permission():
                logger.info("Test notification skipped: no notification permission")
                return False
        self.surface.deliver(
            "Test Notification",
            "Notifications are working correctly!",
            {"tag": "test", "timeout": 5},
        )
        return True

    # -------- Cancellation --------
    def cancel(self, notification_id: str) -> None:
        handle = self._handles.pop(notification_id, None)
        if handle is not None:
            handle.cancel()
        before = len(self._queue)
        self._queue = [n for n in self._queue if n.id != notification_id]
        if len(self._queue) != before:
            self._persist()
            logger.debug("Cancelled notification %s", notification_id)

    def cancel_all_for_user(self, user_id: str) -> None:
        for item in [n for n in self._queue if n.user_id == user_id]:
            self.cancel(item.id)

    # -------- Queries --------
    def pending(self, user_id: Optional[str] = None) -> List[ScheduledNotification]:
        if user_id is None:
            return list(self._queue)
        return [n for n in self._queue if n.user_id in (user_id, BROADCAST_USER)]

    def stats(self, user_id: str) -> Dict[str, Any]:
        items = self.pending(user_id)
        return {"scheduled": len(items), "types": dict(Counter(n.type.value for n in items))}

    # -------- Internals --------
    def _arm(self, item: ScheduledNotification) -> None:
        if item.id in self._handles:
            return
        delay = (_aware(item.scheduled_for) - _aware(self._now())).total_seconds()
        self._handles[item.id] = self.timers.call_later(delay, lambda nid=item.id: self._fire(nid))

    def _fire(self, notification_id: str) -> None:
        item = next((n for n in self._queue if n.id == notification_id), None)
        self._handles.pop(notification_id, None)
        if item is None:
            return
        # Consume first so a failing delivery can never repeat
        self._queue = [n for n in self._queue if n.id != notification_id]
        self._persist()

        if item.type == NotificationType.MOTIVATIONAL_TIP and item.is_broadcast and self._started:
            self.schedule_daily_tip()

        if not item.is_broadcast and not self._preferences_for(item.user_id).allows(item.type):
            logger.info("Skipped %s for %s: disabled in preferences", item.type.value, item.user_id)
            return
        try:
            if not self.surface.has_permission():
                raise DeliveryDenied(item.title)
            self.surface.deliver(item.title, item.body, self._options_for(item))
        except DeliveryDenied:
            logger.info("Skipped %s %s: no notification permission", item.type.value, item.id)
            return
        logger.info("Delivered %s %s", item.type.value, item.id)

    def _options_for(self, item: ScheduledNotification) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "tag": item.type.value,
            "require_interaction": item.type == NotificationType.DEADLINE_ALERT,
            "data": item.data,
            "timeout": self.cfg.notification_timeout_s,
        }
        if item.type == NotificationType.STUDY_REMINDER:
            options["actions"] = [
                {"action": "start", "title": "Start Now"},
                {"action": "snooze", "title": "Snooze 10min"},
            ]
        return options

    def _persist(self) -> None:
        self.store.save_queue(self._queue)


__all__ = ["NotificationScheduler", "DeliverySurface", "MOTIVATIONAL_TIPS"]
