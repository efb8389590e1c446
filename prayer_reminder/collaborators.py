"""Interfaces of the external collaborators plus small local implementations.

The reminder core never talks to an OS notification API directly. It only
needs something that can schedule, cancel and list pending notifications,
something that answers "may we notify?", and a prayer-time source.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Protocol, Sequence

from prayer_reminder.errors import TransientIOFailure
from prayer_reminder.models import (
    AsrRule,
    CalculationMethod,
    Coordinates,
    PendingNotification,
    PrayerInstant,
    ScheduledEvent,
    WeeklyEvent,
)

logger = logging.getLogger(__name__)

Notification = ScheduledEvent | WeeklyEvent


class PrayerTimesFn(Protocol):
    def __call__(
        self,
        coordinates: Coordinates,
        day: date,
        method: CalculationMethod,
        asr_rule: AsrRule,
    ) -> Sequence[PrayerInstant]: ...


class SchedulingService(Protocol):
    async def schedule(self, events: Sequence[Notification]) -> None: ...

    async def cancel(self, ids: Sequence[int]) -> None: ...

    async def list_pending(self) -> list[PendingNotification]: ...


class PermissionGate(Protocol):
    async def has_permission(self) -> bool: ...

    async def request_permission(self) -> bool: ...


class AlwaysGranted:
    """Permission gate for hosts without a permission model (CLI, tests)."""

    async def has_permission(self) -> bool:
        return True

    async def request_permission(self) -> bool:
        return True


def notification_to_dict(event: Notification) -> dict[str, Any]:
    return {
        "id": event.id,
        "fires_at": event.fires_at.isoformat(),
        "title": event.title,
        "body": event.body,
        "sound": event.sound,
        "channel_id": event.channel_id,
    }


class JsonFileSchedulingService:
    """Pending notifications kept in a JSON file (id -> notification dict).

    Stands in for the OS scheduler when running from the command line: what a
    reconciliation pass leaves behind can be inspected with ``pending``.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def schedule(self, events: Sequence[Notification]) -> None:
        data = self._read()
        for ev in events:
            data[str(ev.id)] = notification_to_dict(ev)
        self._write(data)

    async def cancel(self, ids: Sequence[int]) -> None:
        data = self._read()
        for i in ids:
            data.pop(str(i), None)
        self._write(data)

    async def list_pending(self) -> list[PendingNotification]:
        return [
            PendingNotification(id=int(k), fires_at=datetime.fromisoformat(v["fires_at"]))
            for k, v in sorted(self._read().items(), key=lambda kv: int(kv[0]))
        ]

    def entries(self) -> list[dict[str, Any]]:
        """Full stored records, sorted by fire time."""

        return sorted(self._read().values(), key=lambda v: v["fires_at"])

    def _read(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise TransientIOFailure(f"cannot read pending file {self._path}") from exc
        if not text:
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Corrupted: keep a backup and start fresh; the next pass rebuilds everything.
            backup = self._path.with_suffix(self._path.suffix + ".broken")
            backup.write_text(text, encoding="utf-8")
            logger.warning("Pending file %s was corrupted, moved to %s", self._path, backup)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, dict[str, Any]]) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            raise TransientIOFailure(f"cannot write pending file {self._path}") from exc
