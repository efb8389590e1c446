"""Full-replace reconciliation shared by the daily and weekly schedulers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Sequence, TypeVar

from prayer_reminder.collaborators import Notification, PermissionGate, SchedulingService
from prayer_reminder.errors import PermissionDenied, TransientIOFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReconcileStatus(str, Enum):
    SCHEDULED = "scheduled"
    DISABLED = "disabled"
    PERMISSION_DENIED = "permission_denied"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    """Result of one reconciliation pass."""

    status: ReconcileStatus
    scheduled_ids: tuple[int, ...] = ()
    canceled_ids: tuple[int, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ReconcileStatus.SCHEDULED, ReconcileStatus.DISABLED)

    def raise_for_status(self) -> None:
        if self.status is ReconcileStatus.PERMISSION_DENIED:
            raise PermissionDenied("notification permission not granted")
        if self.status is ReconcileStatus.FAILED:
            raise TransientIOFailure(self.error or "reconciliation failed")


async def call_collaborator(what: str, call: Callable[[], Awaitable[T]]) -> T:
    """Await a collaborator call, normalizing any failure to TransientIOFailure."""

    try:
        return await call()
    except TransientIOFailure:
        raise
    except Exception as exc:
        raise TransientIOFailure(f"{what} failed: {exc}") from exc


async def ensure_permission(gate: PermissionGate) -> bool:
    """Check notification permission, asking once if not yet granted."""

    if await call_collaborator("permission check", gate.has_permission):
        return True
    return bool(await call_collaborator("permission request", gate.request_permission))


async def replace_band(
    service: SchedulingService,
    owns: Callable[[int], bool],
    events: Sequence[Notification],
) -> tuple[tuple[int, ...], tuple[int, ...]]:
    """Cancel every pending ID in the band, then schedule ``events`` in one batch.

    Returns:
        (canceled_ids, scheduled_ids)
    """

    pending = await call_collaborator("list pending", service.list_pending)
    owned = tuple(sorted(p.id for p in pending if owns(p.id)))
    if owned:
        await call_collaborator("cancel", lambda: service.cancel(list(owned)))
    scheduled = tuple(ev.id for ev in events)
    if events:
        await call_collaborator("schedule", lambda: service.schedule(list(events)))
    return owned, scheduled


def failed(scope: str, exc: Exception) -> ReconcileOutcome:
    logger.error("%s reconciliation aborted: %s", scope, exc, exc_info=exc)
    return ReconcileOutcome(status=ReconcileStatus.FAILED, error=str(exc))
