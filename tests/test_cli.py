import csv
import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from studytrack import cli


@pytest.fixture
def run(tmp_path):
    def _run(*args):
        return cli.main(["--data-dir", str(tmp_path), "--user", "alice", *args])
    return _run


def test_add_task_then_list(run, capsys):
    assert run("add-task", "Essay", "--subject", "English", "--deadline", "2030-01-01T10:00", "--priority", "high") == 0
    task_id = capsys.readouterr().out.strip()
    assert task_id.startswith("task_")

    assert run("tasks") == 0
    out = capsys.readouterr().out
    assert "English: Essay" in out
    assert task_id in out

    assert run("notifications") == 0
    assert "deadline_alert" in capsys.readouterr().out


def test_malformed_deadline_is_reported(run, capsys):
    assert run("add-task", "Essay", "--deadline", "soon") == 1
    assert "Malformed deadline" in capsys.readouterr().err


def test_prefs_update(run, capsys):
    assert run("prefs", "--set", "notifications.study_reminders=false", "--set", "theme=dark") == 0
    prefs = json.loads(capsys.readouterr().out)
    assert prefs["theme"] == "dark"
    assert prefs["notifications"]["study_reminders"] is False
    assert prefs["notifications"]["deadline_alerts"] is True


def test_prefs_rejects_non_boolean_flag(run, capsys):
    assert run("prefs", "--set", "notifications.study_reminders=0") == 1
    assert "must be true or false" in capsys.readouterr().err
    assert run("prefs") == 0
    assert json.loads(capsys.readouterr().out)["notifications"]["study_reminders"] is True


def test_prefs_rejects_unknown_key(run, capsys):
    assert run("prefs", "--set", "notifications.pager=true") == 1
    assert "unknown keys" in capsys.readouterr().err


def test_stats_on_empty_history(run, capsys):
    assert run("stats", "--range", "month") == 0
    out = capsys.readouterr().out
    assert "Total: 0 min in 0 sessions" in out
    assert "Current streak: 0 days" in out


def test_export_writes_header(run, tmp_path, capsys):
    out = tmp_path / "out.csv"
    assert run("export", "--output", str(out)) == 0
    assert "Wrote 0 rows" in capsys.readouterr().out
    with open(out, newline="", encoding="utf-8") as f:
        assert next(csv.reader(f)) == ["Date", "Subject", "Duration (minutes)", "Focus Score"]


def test_users_are_separate(tmp_path, capsys):
    cli.main(["--data-dir", str(tmp_path), "--user", "alice", "add-task", "Essay", "--deadline", "2030-01-01T10:00"])
    capsys.readouterr()
    cli.main(["--data-dir", str(tmp_path), "--user", "bob", "tasks"])
    assert capsys.readouterr().out == ""


@patch("studytrack.notifier.plyer_notification")
def test_test_notification(mock_plyer, run, capsys):
    assert run("test-notification") == 0
    assert "Test notification sent" in capsys.readouterr().out


@patch("studytrack.notifier.plyer_notification", new=SimpleNamespace(notify=None))
def test_test_notification_unavailable(run, capsys):
    assert run("test-notification") == 1
    assert "not available" in capsys.readouterr().err
