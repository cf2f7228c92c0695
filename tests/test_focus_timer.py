from datetime import timedelta
from unittest.mock import Mock

import pytest

from studytrack.errors import ConflictError
from studytrack.focus_timer import FocusTimer, FocusTimerConfig
from studytrack.models import NotificationType
from studytrack.scheduler import NotificationScheduler
from studytrack.session_manager import SessionManager
from studytrack.timers import TimerLoop


@pytest.fixture
def surface():
    s = Mock()
    s.has_permission.return_value = True
    return s


@pytest.fixture
def loop(clock):
    return TimerLoop(clock=clock.monotonic)


@pytest.fixture
def scheduler(store, surface, loop, clock):
    return NotificationScheduler(store, surface, loop, now=clock.now)


@pytest.fixture
def on_complete():
    return Mock()


@pytest.fixture
def timer(store, loop, scheduler, clock, on_complete):
    return FocusTimer(
        SessionManager(store, now=clock.now),
        loop,
        FocusTimerConfig(work_minutes_default=25),
        scheduler=scheduler,
        user_id="alice",
        on_complete=on_complete,
        clock=clock.monotonic,
        now=clock.now,
    )


def test_initial_state():
    t = FocusTimer(Mock(), Mock())
    assert t.get_state() == ("IDLE", 1500, 1500)
    assert t.completed_sessions == 0


def test_completion_commits_planned_duration(timer, store, loop, clock, surface, on_complete):
    timer.start_work("Math")
    clock.advance(minutes=10)
    assert timer.get_state() == ("WORKING", 900, 1500)

    clock.advance(minutes=15)
    loop.run_pending()

    state, _, _ = timer.get_state()
    assert state == "IDLE"
    assert timer.completed_sessions == 1
    sessions = store.sessions()
    assert len(sessions) == 1
    assert sessions[0].duration == 25
    assert sessions[0].end_time == clock.now()
    on_complete.assert_called_once()
    assert on_complete.call_args[0][0].id == sessions[0].id
    assert surface.deliver.call_args[0][0] == "Break Time!"


def test_custom_minutes(timer, store, loop, clock):
    timer.start_work("Physics", minutes=50)
    assert timer.get_state()[2] == 3000
    clock.advance(minutes=49)
    loop.run_pending()
    assert store.sessions() == []
    clock.advance(minutes=1)
    loop.run_pending()
    assert store.sessions()[0].duration == 50


def test_break_reminder_is_scheduled_for_block_end(timer, scheduler, clock):
    timer.start_work("Math")
    items = scheduler.pending("alice")
    assert [n.type for n in items] == [NotificationType.BREAK_REMINDER]
    assert items[0].scheduled_for == clock.now() + timedelta(minutes=25)


def test_pause_keeps_remaining_time(timer, store, loop, scheduler, clock):
    timer.start_work("Math")
    clock.advance(minutes=10)
    timer.pause()
    assert timer.get_state() == ("PAUSED", 900, 1500)
    assert scheduler.pending() == []

    clock.advance(hours=1)
    loop.run_pending()
    assert store.sessions() == []
    assert timer.get_state() == ("PAUSED", 900, 1500)

    timer.resume()
    assert scheduler.pending()[0].scheduled_for == clock.now() + timedelta(minutes=15)
    clock.advance(minutes=15)
    loop.run_pending()

    session = store.sessions()[0]
    assert session.duration == 25
    assert session.start_time == session.end_time - timedelta(minutes=25)


def test_stop_commits_measured_duration(timer, store, loop, scheduler, clock, on_complete):
    timer.start_work("Math")
    clock.advance(minutes=12)
    session = timer.stop()
    assert session.duration == 12
    assert timer.get_state()[0] == "IDLE"
    assert scheduler.pending() == []
    assert loop.pending() == 0
    on_complete.assert_not_called()
    assert timer.stop() is None


def test_start_while_working_conflicts(timer):
    timer.start_work("Math")
    with pytest.raises(ConflictError):
        timer.start_work("Art")
    assert timer.get_state()[0] == "WORKING"


def test_abandon_commits_nothing(timer, store, loop, clock):
    timer.start_work("Math")
    timer.abandon()
    clock.advance(minutes=30)
    loop.run_pending()
    assert store.sessions() == []
    assert timer.get_state()[0] == "IDLE"
