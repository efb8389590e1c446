"""Location-trace CSV reader used to replay trips through the travel monitor.

Expected columns: ``time`` (ISO-8601, naive values are local to the replay
timezone), ``latitude``, ``longitude``.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, Sequence

from prayer_reminder.models import Coordinates
from prayer_reminder.timeutils import parse_dt

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("time", "latitude", "longitude")


@dataclass(frozen=True, slots=True)
class LocationFix:
    """One row of a location trace."""

    at: datetime
    coordinates: Coordinates


@dataclass(frozen=True, slots=True)
class CsvSummary:
    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_row(row: dict[str, str], tz_name: str) -> LocationFix:
    return LocationFix(
        at=parse_dt(row["time"].strip(), tz_name),
        coordinates=Coordinates(
            latitude=float(row["latitude"].strip()),
            longitude=float(row["longitude"].strip()),
        ),
    )


def iter_location_fixes(csv_path: str | Path, tz_name: str) -> Iterator[LocationFix]:
    """Yield parsed fixes in file order, skipping rows that fail to parse.

    Raises:
        KeyError: If a required column is missing from the header.
    """

    p = Path(csv_path)
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            return
        missing = [c for c in REQUIRED_FIELDS if c not in reader.fieldnames]
        if missing:
            raise KeyError(f"CSV缺少必要字段：{missing}. 实际字段：{reader.fieldnames}")
        for row in reader:
            try:
                yield _parse_row(row, tz_name)
            except (ValueError, TypeError, AttributeError):
                # 损坏行/空行直接跳过
                continue


def load_location_fixes(csv_path: str | Path, tz_name: str) -> tuple[list[LocationFix], CsvSummary]:
    """Load a whole trace, sorted by time.

    Returns:
        (fixes, summary)
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[LocationFix] = []
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames: Sequence[str] = reader.fieldnames or ()
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_parse_row(row, tz_name))
            except (KeyError, ValueError, TypeError, AttributeError):
                continue

    parsed.sort(key=lambda fix: fix.at)
    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return parsed, summary
