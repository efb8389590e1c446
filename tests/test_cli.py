from __future__ import annotations

import json

import pytest

from conftest import fixed_prayer_times
from prayer_reminder import cli
from prayer_reminder.settings_store import JsonSettingsStore


def _run(tmp_path, *argv: str) -> int:
    return cli.main(["--settings", str(tmp_path / "settings.json"), *argv])


def test_set_home_and_status(tmp_path, capsys):
    assert _run(tmp_path, "set-home", "--lat", "40.7128", "--lon", "-74.0060", "--name", "NYC", "--enable") == 0
    settings = JsonSettingsStore(tmp_path / "settings.json").load()
    assert settings.travel.enabled
    assert settings.travel.home_base is not None and settings.travel.home_base.name == "NYC"
    assert settings.previous_locations[0].name == "NYC"

    capsys.readouterr()
    assert _run(tmp_path, "status", "--lat", "39.9526", "--lon", "-75.1652", "--now", "2026-03-04 10:00:00") == 0
    out = capsys.readouterr().out
    assert "state=pending_confirmation" in out
    assert "confirm-travel" in out


def test_confirm_override_and_clear(tmp_path, capsys):
    _run(tmp_path, "set-home", "--lat", "40.7128", "--lon", "-74.0060", "--name", "NYC", "--enable")
    assert _run(tmp_path, "confirm-travel", "--now", "2026-03-04 10:00:00") == 0
    travel = JsonSettingsStore(tmp_path / "settings.json").load().travel
    assert travel.auto_confirmed
    assert travel.travel_start_date is not None and travel.travel_start_date.isoformat() == "2026-03-04"

    assert _run(tmp_path, "override", "force_off") == 0
    assert _run(tmp_path, "toggle-combine", "maghrib_isha") == 0
    travel = JsonSettingsStore(tmp_path / "settings.json").load().travel
    assert travel.override.value == "force_off"
    assert travel.combine_maghrib_isha

    assert _run(tmp_path, "clear-home") == 0
    travel = JsonSettingsStore(tmp_path / "settings.json").load().travel
    assert travel.home_base is None and not travel.auto_confirmed

    assert _run(tmp_path, "toggle-travel") == 0
    assert not JsonSettingsStore(tmp_path / "settings.json").load().travel.enabled


def test_reconcile_then_pending(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr(cli, "AdhanPrayerTimes", lambda tz_name: fixed_prayer_times)
    pending = str(tmp_path / "pending.json")
    code = _run(
        tmp_path, "reconcile", "--lat", "40.7128", "--lon", "-74.0060", "--pending", pending,
        "--now", "2026-03-04 10:00:00",
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "prayers: status=scheduled, scheduled=68" in out
    assert "jumuah: status=disabled" in out
    assert len(json.loads((tmp_path / "pending.json").read_text(encoding="utf-8"))) == 68

    assert _run(tmp_path, "pending", "--pending", pending) == 0
    out = capsys.readouterr().out
    assert "pending=68" in out
    assert "dhuhr/day0/reminder" in out


def test_replay_trip(tmp_path, capsys):
    _run(tmp_path, "set-home", "--lat", "40.7128", "--lon", "-74.0060", "--name", "NYC", "--enable")
    trip = tmp_path / "trip.csv"
    trip.write_text(
        "time,latitude,longitude\n"
        "2026-03-04 08:00:00,40.7128,-74.0060\n"
        "2026-03-04 12:00:00,39.9526,-75.1652\n"
        "2026-03-05 12:00:00,39.9526,-75.1652\n"
        "2026-03-06 18:00:00,40.7130,-74.0062\n",
        encoding="utf-8",
    )
    capsys.readouterr()
    assert _run(tmp_path, "replay-trip", "--csv", str(trip), "--auto-confirm") == 0
    out = capsys.readouterr().out
    assert "state=monitoring" in out
    assert "state=confirmed_traveling" in out
    assert "状态变化 3 次" in out


def test_replay_requires_home(tmp_path, capsys):
    trip = tmp_path / "trip.csv"
    trip.write_text("time,latitude,longitude\n", encoding="utf-8")
    assert _run(tmp_path, "replay-trip", "--csv", str(trip)) == 2


def test_bad_timezone_is_reported(tmp_path, capsys):
    assert _run(tmp_path, "--tz", "Mars/Olympus", "status", "--lat", "1", "--lon", "2") == 2
    assert "无效时区" in capsys.readouterr().err


def test_status_and_reconcile_help_explain_session_scope(capsys):
    for command in ("status", "reconcile"):
        with pytest.raises(SystemExit) as exc:
            cli.main([command, "--help"])
        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "replay-trip" in out
        assert "clear-home" in out
