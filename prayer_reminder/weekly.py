"""Weekly Jumu'ah reminders, kept in their own ID band."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from prayer_reminder.collaborators import PermissionGate, SchedulingService
from prayer_reminder.errors import TransientIOFailure
from prayer_reminder.ids import MAX_SLOT_INDEX, MAX_WEEK_OFFSET, is_weekly_event_id, weekly_event_id
from prayer_reminder.models import DEFAULT_TZ, JumuahSettings, WeeklyEvent
from prayer_reminder.reconcile import ReconcileOutcome, ReconcileStatus, ensure_permission, failed, replace_band
from prayer_reminder.timeutils import (
    FRIDAY,
    at_local_time,
    days_until_weekday,
    local_date,
    parse_hhmm,
    to_utc,
    tzinfo_from_name,
)

logger = logging.getLogger(__name__)

JUMUAH_TITLE = "Jumu'ah Prayer"


@dataclass(frozen=True, slots=True)
class WeeklyConfig:
    week_window: int = 4
    tz_name: str = DEFAULT_TZ

    def __post_init__(self) -> None:
        if not 1 <= self.week_window <= MAX_WEEK_OFFSET + 1:
            raise ValueError(f"week_window must be within 1..{MAX_WEEK_OFFSET + 1}, got {self.week_window}")
        tzinfo_from_name(self.tz_name)


def plan_weekly_events(
    jumuah: JumuahSettings,
    *,
    now: datetime,
    config: WeeklyConfig = WeeklyConfig(),
) -> list[WeeklyEvent]:
    """Jumu'ah reminders for the coming ``week_window`` Fridays.

    Week 0 is this week's Friday (today when today is Friday). A reminder
    whose time has already passed is skipped, which can only happen in week 0.
    A khutbah time that is not ``HH:MM`` is logged and skipped; the other
    slots keep their indices and are still scheduled.

    Raises:
        ValueError: If there are more slots than the weekly band can hold.
    """

    if not jumuah.enabled or not jumuah.times:
        return []
    if len(jumuah.times) > MAX_SLOT_INDEX + 1:
        raise ValueError(f"at most {MAX_SLOT_INDEX + 1} Jumu'ah slots are supported, got {len(jumuah.times)}")

    tz = tzinfo_from_name(config.tz_name)
    now_utc = to_utc(now)
    today = local_date(now, tz)
    first_friday = today + timedelta(days=days_until_weekday(today, FRIDAY))
    masjid_text = f" at {jumuah.masjid_name}" if jumuah.masjid_name else ""
    slot_times: list[tuple[int, time]] = []
    for slot_index, slot in enumerate(jumuah.times):
        try:
            slot_times.append((slot_index, parse_hhmm(slot.khutbah)))
        except ValueError as exc:
            logger.warning("Skipping Jumu'ah slot %d: %s", slot_index, exc)

    events: list[WeeklyEvent] = []
    for week_offset in range(config.week_window):
        friday = first_friday + timedelta(weeks=week_offset)
        for slot_index, khutbah in slot_times:
            fires_at = at_local_time(friday, khutbah, tz) - timedelta(minutes=jumuah.reminder_minutes)
            if to_utc(fires_at) <= now_utc:
                continue
            events.append(
                WeeklyEvent(
                    id=weekly_event_id(week_offset, slot_index),
                    week_offset=week_offset,
                    slot_index=slot_index,
                    fires_at=to_utc(fires_at),
                    title=JUMUAH_TITLE,
                    body=f"Khutbah starts in {jumuah.reminder_minutes} min{masjid_text}",
                )
            )
    return events


class WeeklyScheduler:
    """Owns the weekly ID band. Independent of travel status."""

    def __init__(
        self,
        service: SchedulingService,
        permission: PermissionGate,
        config: WeeklyConfig = WeeklyConfig(),
    ) -> None:
        self._service = service
        self._permission = permission
        self.config = config

    async def reconcile(self, jumuah: JumuahSettings, *, now: datetime | None = None) -> ReconcileOutcome:
        now = now or datetime.now(tzinfo_from_name(self.config.tz_name))
        try:
            if not jumuah.enabled or not jumuah.times:
                canceled, _ = await replace_band(self._service, is_weekly_event_id, [])
                return ReconcileOutcome(status=ReconcileStatus.DISABLED, canceled_ids=canceled)

            if not await ensure_permission(self._permission):
                logger.warning("Notification permission not granted, skipping Jumu'ah reconciliation")
                return ReconcileOutcome(status=ReconcileStatus.PERMISSION_DENIED)

            events = plan_weekly_events(jumuah, now=now, config=self.config)
            canceled, scheduled = await replace_band(self._service, is_weekly_event_id, events)
        except (TransientIOFailure, ValueError) as exc:
            return failed("Jumu'ah", exc)

        logger.info("Scheduled %d Jumu'ah notifications for %d weeks", len(scheduled), self.config.week_window)
        return ReconcileOutcome(status=ReconcileStatus.SCHEDULED, scheduled_ids=scheduled, canceled_ids=canceled)
