"""Cooldown tracker tests (in-memory window + JSON state file)."""

import json
from datetime import datetime, timedelta, timezone

from cooldown import CooldownTracker, cooldown_key, load_state

T = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)
WINDOW = timedelta(hours=1)
SECOND = timedelta(seconds=1)


def test_key_combines_job_and_row():
    assert cooldown_key("notify-overdue-stock-vehicles", 12) == "notify-overdue-stock-vehicles::12"


def test_suppresses_inside_window():
    tracker = CooldownTracker(window=WINDOW)
    tracker.record_sent("job::5", T)

    assert tracker.should_suppress("job::5", T + WINDOW - SECOND)
    assert not tracker.should_suppress("job::5", T + WINDOW + SECOND)


def test_window_end_is_exclusive():
    tracker = CooldownTracker(window=WINDOW)
    tracker.record_sent("job::5", T)
    assert not tracker.should_suppress("job::5", T + WINDOW)


def test_unknown_key_is_never_suppressed():
    tracker = CooldownTracker(window=WINDOW)
    tracker.record_sent("job::5", T)
    assert not tracker.should_suppress("job::6", T)
    assert not tracker.should_suppress("other::5", T)


def test_earlier_record_does_not_hide_later_one():
    tracker = CooldownTracker(window=WINDOW)
    tracker.record_sent("job::5", T + timedelta(minutes=30))
    tracker.record_sent("job::5", T)
    assert tracker.should_suppress("job::5", T + timedelta(minutes=80))


def test_in_memory_tracker_save_is_noop(tmp_path):
    tracker = CooldownTracker(window=WINDOW)
    tracker.record_sent("job::5", T)
    tracker.save()
    assert list(tmp_path.iterdir()) == []


def test_state_survives_restart(tmp_path):
    path = str(tmp_path / "cooldown_state.json")
    first = CooldownTracker(window=WINDOW, state_path=path)
    first.record_sent("job::5", T)
    first.save()

    second = CooldownTracker(window=WINDOW, state_path=path)
    assert second.should_suppress("job::5", T + timedelta(minutes=10))


def test_save_keeps_newer_timestamp_on_disk(tmp_path):
    path = str(tmp_path / "cooldown_state.json")
    stale = CooldownTracker(window=WINDOW, state_path=path)

    fresh = CooldownTracker(window=WINDOW, state_path=path)
    fresh.record_sent("job::5", T + timedelta(minutes=30))
    fresh.save()

    stale.record_sent("job::5", T)
    stale.record_sent("job::9", T)
    stale.save()

    on_disk = load_state(path)
    assert on_disk["job::5"] == T + timedelta(minutes=30)
    assert on_disk["job::9"] == T


def test_bad_state_entries_are_ignored(tmp_path):
    path = tmp_path / "cooldown_state.json"
    path.write_text(json.dumps({"job::1": "yesterday", "job::2": T.isoformat()}))

    assert load_state(str(path)) == {"job::2": T}


def test_missing_or_corrupt_state_file(tmp_path):
    assert load_state(str(tmp_path / "missing.json")) == {}
    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{not json")
    assert load_state(str(corrupt)) == {}
