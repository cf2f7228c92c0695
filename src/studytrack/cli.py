"""Command-line entry point for StudyTrack."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from datetime import datetime
from typing import List, Optional

from .analytics import TimeRange, export_csv
from .app import StudyTrackApp
from .config import StudyTrackConfig
from .errors import StudyTrackError
from .models import Priority
from .timers import TimerLoop


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="studytrack", description="Study session tracking and reminders")
    parser.add_argument("--data-dir", help="storage directory (default: $STUDYTRACK_HOME or ~/.studytrack)")
    parser.add_argument("--user", help="user namespace (default: $STUDYTRACK_USER or 'local')")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    ranges = [r.value for r in TimeRange]

    p = sub.add_parser("stats", help="print analytics for a time range")
    p.add_argument("--range", choices=ranges, default="week")

    p = sub.add_parser("export", help="write analytics rows as CSV")
    p.add_argument("--range", choices=ranges, default="week")
    p.add_argument("--output", default=None, help="CSV path (default: study-analytics-<range>.csv)")

    p = sub.add_parser("chart", help="show or save the analytics chart")
    p.add_argument("--range", choices=ranges, default="week")
    p.add_argument("--save", default=None, help="write the chart to this image file instead of showing it")

    sub.add_parser("tasks", help="list tasks, incomplete first")

    p = sub.add_parser("add-task", help="create a task and its deadline alert")
    p.add_argument("title")
    p.add_argument("--subject", default="General")
    p.add_argument("--deadline", required=True, help="ISO-8601 timestamp, e.g. 2026-05-01T18:00")
    p.add_argument("--priority", choices=[p.value for p in Priority], default="medium")

    sub.add_parser("notifications", help="list pending notifications for the user")
    sub.add_parser("test-notification", help="show a notification now to check delivery")

    p = sub.add_parser("prefs", help="show or update preferences")
    p.add_argument("--set", dest="updates", action="append", default=[],
                   help="section.key=value, e.g. notifications.study_reminders=false")

    p = sub.add_parser("run", help="serve scheduled notifications until interrupted")
    p.add_argument("--for", dest="seconds", type=float, default=None, help="stop after this many seconds")
    return parser


def _parse_update(text: str) -> dict:
    key, _, value = text.partition("=")
    section, _, name = key.partition(".")
    if not name:
        if section == "theme":
            return {"theme": value}
        raise StudyTrackError(f"Expected section.key=value, got '{text}'")
    lowered = value.strip().lower()
    parsed: object = value
    if lowered in ("true", "false"):
        parsed = lowered == "true"
    return {section: {name: parsed}}


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    level_name = "DEBUG" if args.verbose else os.environ.get("STUDYTRACK_LOG_LEVEL", "WARNING")
    logging.basicConfig(level=getattr(logging, level_name.upper(), logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    cfg = StudyTrackConfig.from_env()
    if args.data_dir:
        cfg.data_dir = os.path.expanduser(args.data_dir)
    loop = TimerLoop()
    app = StudyTrackApp(cfg, timers=loop)
    app.login(args.user or cfg.default_user)

    try:
        return _dispatch(app, loop, args)
    except StudyTrackError as e:
        print(f"studytrack: {e}", file=sys.stderr)
        return 1


def _dispatch(app: StudyTrackApp, loop: TimerLoop, args: argparse.Namespace) -> int:
    if args.command == "stats":
        snap = app.analytics(TimeRange(args.range))
        print(f"Total: {snap.total_minutes} min in {snap.total_sessions} sessions")
        print(f"Average focus: {snap.average_focus * 100:.0f}%")
        print(f"Current streak: {snap.current_streak} days")
        for s in snap.subjects:
            print(f"  {s.name}: {s.minutes} min")
        for r in snap.recent:
            print(f"  {r.date:%Y-%m-%d %H:%M}  {r.subject}  {r.duration} min  focus {r.focus_score * 100:.0f}%")
        return 0

    if args.command == "export":
        out = args.output or f"study-analytics-{args.range}.csv"
        count = export_csv(app.analytics(TimeRange(args.range)), out)
        print(f"Wrote {count} rows to {out}")
        return 0

    if args.command == "chart":
        from . import plotter

        snap = app.analytics(TimeRange(args.range))
        if args.save:
            plotter.save_summary(snap, args.save)
        else:
            plotter.show_summary(snap)
        return 0

    if args.command == "tasks":
        for t in app.store.sorted_tasks():
            mark = "x" if t.completed else " "
            print(f"[{mark}] {t.deadline:%Y-%m-%d %H:%M}  {t.priority.value:<6}  {t.subject}: {t.title}  ({t.id})")
        return 0

    if args.command == "add-task":
        try:
            deadline = datetime.fromisoformat(args.deadline)
        except ValueError:
            raise StudyTrackError(f"Malformed deadline '{args.deadline}'") from None
        task = app.add_task(args.title, args.subject, deadline, Priority(args.priority))
        print(task.id)
        return 0

    if args.command == "notifications":
        for n in app.scheduler.pending(app.user_id):
            print(f"{n.scheduled_for:%Y-%m-%d %H:%M}  {n.type.value:<16}  {n.title}  ({n.id})")
        return 0

    if args.command == "test-notification":
        if not app.scheduler.send_test():
            raise StudyTrackError("Notifications are not available on this system")
        print("Test notification sent")
        return 0

    if args.command == "prefs":
        prefs = app.store.get_preferences()
        for update in args.updates:
            prefs = app.store.update_preferences(_parse_update(update))
        print(json.dumps(prefs.to_dict(), indent=2))
        return 0

    if args.command == "run":
        app.start()
        until = time.monotonic() + args.seconds if args.seconds is not None else None
        try:
            while True:
                # An empty queue returns immediately; keep waiting in one-minute slices
                loop.run(until=until if until is not None else time.monotonic() + 60)
                if until is not None and time.monotonic() >= until:
                    break
        except KeyboardInterrupt:
            pass
        finally:
            app.scheduler.shutdown()
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
