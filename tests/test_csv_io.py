from __future__ import annotations

from datetime import datetime

import pytest

from conftest import NY
from prayer_reminder.csv_io import iter_location_fixes, load_location_fixes


def _write(path, text: str):
    path.write_text(text, encoding="utf-8")
    return path


def test_load_sorts_and_skips_bad_rows(tmp_path):
    p = _write(
        tmp_path / "trip.csv",
        "time,latitude,longitude\n"
        "2026-03-04 12:00:00,39.9526,-75.1652\n"
        "2026-03-04 08:00:00,40.7128,-74.0060\n"
        "not a time,1,2\n"
        "2026-03-04 09:00:00,abc,2\n",
    )
    fixes, summary = load_location_fixes(p, "America/New_York")
    assert summary.rows_total == 4
    assert summary.rows_parsed == 2
    assert summary.rows_skipped == 2
    assert fixes[0].at == datetime(2026, 3, 4, 8, 0, tzinfo=NY)
    assert fixes[1].coordinates.latitude == pytest.approx(39.9526)


def test_explicit_offset_is_respected(tmp_path):
    p = _write(tmp_path / "trip.csv", "time,latitude,longitude\n2026-03-04T13:00:00+00:00,1,2\n")
    (fix,) = list(iter_location_fixes(p, "America/New_York"))
    assert fix.at == datetime(2026, 3, 4, 8, 0, tzinfo=NY)


def test_missing_column(tmp_path):
    p = _write(tmp_path / "trip.csv", "time,lat,lon\n2026-03-04 08:00:00,1,2\n")
    with pytest.raises(KeyError):
        list(iter_location_fixes(p, "America/New_York"))
