from __future__ import annotations

from datetime import date, datetime, time
from typing import Sequence

import pytest
from zoneinfo import ZoneInfo

from prayer_reminder.collaborators import Notification
from prayer_reminder.models import (
    AsrRule,
    CalculationMethod,
    Coordinates,
    PendingNotification,
    Prayer,
    PrayerInstant,
)

NY = ZoneInfo("America/New_York")

HOME = Coordinates(40.7128, -74.0060)  # New York
NEAR_HOME = Coordinates(40.7357, -74.1724)  # Newark, ~14 km
PHILADELPHIA = Coordinates(39.9526, -75.1652)  # ~130 km

# Wednesday; the following Friday is 2026-03-06.
WEDNESDAY_10AM = datetime(2026, 3, 4, 10, 0, tzinfo=NY)

FIXED_TIMES = {
    Prayer.FAJR: time(5, 0),
    Prayer.SUNRISE: time(6, 30),
    Prayer.DHUHR: time(12, 30),
    Prayer.ASR: time(15, 45),
    Prayer.MAGHRIB: time(18, 15),
    Prayer.ISHA: time(19, 45),
}


def fixed_prayer_times(
    coordinates: Coordinates,
    day: date,
    method: CalculationMethod,
    asr_rule: AsrRule,
) -> list[PrayerInstant]:
    return [PrayerInstant(p, datetime.combine(day, t).replace(tzinfo=NY)) for p, t in FIXED_TIMES.items()]


class FakeSchedulingService:
    """In-memory scheduler recording every call in order."""

    def __init__(self) -> None:
        self.pending: dict[int, Notification] = {}
        self.calls: list[tuple[str, tuple[int, ...]]] = []
        self.fail_on: str | None = None

    async def schedule(self, events: Sequence[Notification]) -> None:
        self.calls.append(("schedule", tuple(e.id for e in events)))
        if self.fail_on == "schedule":
            raise RuntimeError("scheduler unavailable")
        for e in events:
            self.pending[e.id] = e

    async def cancel(self, ids: Sequence[int]) -> None:
        self.calls.append(("cancel", tuple(ids)))
        if self.fail_on == "cancel":
            raise RuntimeError("scheduler unavailable")
        for i in ids:
            self.pending.pop(i, None)

    async def list_pending(self) -> list[PendingNotification]:
        self.calls.append(("list", ()))
        return [PendingNotification(id=e.id, fires_at=e.fires_at) for e in self.pending.values()]


class FakePermissionGate:
    def __init__(self, granted: bool = True, grant_on_request: bool = False) -> None:
        self.granted = granted
        self.grant_on_request = grant_on_request
        self.requests = 0

    async def has_permission(self) -> bool:
        return self.granted

    async def request_permission(self) -> bool:
        self.requests += 1
        if self.grant_on_request:
            self.granted = True
        return self.granted


@pytest.fixture()
def scheduling() -> FakeSchedulingService:
    return FakeSchedulingService()


@pytest.fixture()
def permission() -> FakePermissionGate:
    return FakePermissionGate()
