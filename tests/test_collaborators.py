from __future__ import annotations

import json
from datetime import timedelta

import pytest

from conftest import WEDNESDAY_10AM
from prayer_reminder.collaborators import AlwaysGranted, JsonFileSchedulingService
from prayer_reminder.models import EventKind, Prayer, ScheduledEvent


def _event(event_id: int, minutes: int) -> ScheduledEvent:
    return ScheduledEvent(
        id=event_id,
        prayer=Prayer.DHUHR,
        day_offset=0,
        kind=EventKind.AT_TIME,
        fires_at=WEDNESDAY_10AM + timedelta(minutes=minutes),
        title="Dhuhr",
        body="Time for Dhuhr prayer - now",
    )


@pytest.mark.asyncio
async def test_file_service_schedule_cancel_list(tmp_path):
    service = JsonFileSchedulingService(tmp_path / "pending.json")
    assert await service.list_pending() == []

    await service.schedule([_event(301, 60), _event(300, 30)])
    pending = await service.list_pending()
    assert [p.id for p in pending] == [300, 301]
    assert pending[0].fires_at == WEDNESDAY_10AM + timedelta(minutes=30)

    await service.cancel([300, 999])
    assert [p.id for p in await service.list_pending()] == [301]
    assert [e["id"] for e in service.entries()] == [301]


@pytest.mark.asyncio
async def test_file_service_recovers_from_corruption(tmp_path):
    path = tmp_path / "pending.json"
    path.write_text("{broken", encoding="utf-8")
    service = JsonFileSchedulingService(path)
    assert await service.list_pending() == []
    assert (tmp_path / "pending.json.broken").exists()
    await service.schedule([_event(300, 30)])
    assert json.loads(path.read_text(encoding="utf-8"))["300"]["title"] == "Dhuhr"


@pytest.mark.asyncio
async def test_always_granted():
    gate = AlwaysGranted()
    assert await gate.has_permission()
    assert await gate.request_permission()
