"""Rolling window of daily prayer notifications.

Each pass rebuilds the whole window from settings: every pending ID in the
prayer bands is canceled, then the fresh generation is scheduled in one batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Final, Sequence

from prayer_reminder.collaborators import PermissionGate, PrayerTimesFn, SchedulingService
from prayer_reminder.errors import TransientIOFailure
from prayer_reminder.ids import MAX_DAY_OFFSET, is_prayer_event_id, prayer_event_id, prayer_for_event_id
from prayer_reminder.models import (
    DEFAULT_TZ,
    AppSettings,
    AthanSettings,
    Coordinates,
    EventKind,
    Prayer,
    PrayerInstant,
    ReminderSpec,
    ScheduledEvent,
)
from prayer_reminder.reconcile import (
    ReconcileOutcome,
    ReconcileStatus,
    call_collaborator,
    ensure_permission,
    failed,
    replace_band,
)
from prayer_reminder.timeutils import iter_days, local_date, to_utc, tzinfo_from_name
from prayer_reminder.travel import TravelStatus

logger = logging.getLogger(__name__)

ATHAN_SOUND_PREFIX: Final[str] = "athan:"

# Built-in sound names -> bundled sound files (None = system default).
BUILT_IN_SOUNDS: Final[dict[str, str | None]] = {
    "default": None,
    "adhan": "adhan.wav",
    "adhan_fajr": "adhan_fajr.wav",
    "silent": "silent.wav",
}

_MESSAGES: Final[dict[Prayer, tuple[str, str]]] = {
    Prayer.FAJR: ("Fajr prayer coming soon", "Time for Fajr prayer"),
    Prayer.SUNRISE: ("Sunrise is approaching", "The sun has risen"),
    Prayer.DHUHR: ("Dhuhr prayer coming soon", "Time for Dhuhr prayer"),
    Prayer.ASR: ("Asr prayer coming soon", "Time for Asr prayer"),
    Prayer.MAGHRIB: ("Maghrib prayer coming soon", "Time for Maghrib prayer"),
    Prayer.ISHA: ("Isha prayer coming soon", "Time for Isha prayer"),
}


@dataclass(frozen=True, slots=True)
class SchedulerConfig:
    """Parameters for the daily notification window."""

    window_days: int = 7
    tz_name: str = DEFAULT_TZ

    def __post_init__(self) -> None:
        if not 1 <= self.window_days <= MAX_DAY_OFFSET + 1:
            raise ValueError(f"window_days must be within 1..{MAX_DAY_OFFSET + 1}, got {self.window_days}")
        tzinfo_from_name(self.tz_name)


def is_downloaded_athan(sound: str) -> bool:
    return sound.startswith(ATHAN_SOUND_PREFIX)


def sound_for_notification(sound: str) -> str:
    """Sound attribute for the scheduling service.

    Downloaded athans play through their channel, so the notification itself
    carries the default sound; unknown names also degrade to the default.
    """

    if is_downloaded_athan(sound):
        return "default"
    return BUILT_IN_SOUNDS.get(sound) or "default"


def resolve_channel_id(prayer: Prayer, sound: str, athan: AthanSettings) -> str | None:
    """Pick the notification channel for a prayer's configured sound.

    Returns None when no channel applies; delivery then uses the plain sound.
    """

    is_fajr = prayer is Prayer.FAJR
    if is_downloaded_athan(sound):
        athan_id = sound[len(ATHAN_SOUND_PREFIX):]
        if is_fajr and athan.selected_fajr_athan_id == athan_id and athan.current_fajr_channel_id:
            return athan.current_fajr_channel_id
        # Falls back to the main channel whichever athan it was built for.
        return athan.current_channel_id or None

    if sound in ("adhan", "adhan_fajr"):
        if is_fajr and athan.current_fajr_channel_id:
            return athan.current_fajr_channel_id
        return athan.current_channel_id or None
    return None


def notification_text(
    prayer: Prayer,
    kind: EventKind,
    minutes_before: int,
    travel: TravelStatus | None = None,
) -> tuple[str, str]:
    """Title and body for one event.

    While traveling the body notes the shortened (qasr) form and combined
    pairs share a title. Only the fard prayer is described.
    """

    reminder_text, at_time_text = _MESSAGES[prayer]
    title = prayer.label
    if kind is EventKind.REMINDER:
        body = f"{reminder_text} - in {minutes_before} min"
    else:
        body = f"{at_time_text} - now"

    if travel is not None and travel.is_traveling:
        if travel.combine_dhuhr_asr and prayer in (Prayer.DHUHR, Prayer.ASR):
            title = "Dhuhr + Asr (combined)"
        elif travel.combine_maghrib_isha and prayer in (Prayer.MAGHRIB, Prayer.ISHA):
            title = "Maghrib + Isha (combined)"
        if travel.shortened_prayers.for_prayer(prayer):
            body = f"{body} · shortened to 2 rak'ah"
    return title, body


def _event(
    spec: ReminderSpec,
    day_offset: int,
    kind: EventKind,
    fires_at: datetime,
    athan: AthanSettings,
    travel: TravelStatus | None,
) -> ScheduledEvent:
    title, body = notification_text(spec.prayer, kind, spec.reminder_minutes_before, travel)
    return ScheduledEvent(
        id=prayer_event_id(spec.prayer, day_offset, kind),
        prayer=spec.prayer,
        day_offset=day_offset,
        kind=kind,
        fires_at=to_utc(fires_at),
        title=title,
        body=body,
        sound=sound_for_notification(spec.sound),
        channel_id=resolve_channel_id(spec.prayer, spec.sound, athan),
    )


def events_for_day(
    instants: Sequence[PrayerInstant],
    settings: AppSettings,
    day_offset: int,
    now: datetime,
    travel: TravelStatus | None = None,
) -> list[ScheduledEvent]:
    """Turn one day's prayer instants into the events still ahead of ``now``."""

    now_utc = to_utc(now)
    out: list[ScheduledEvent] = []
    for item in instants:
        spec = settings.notifications.spec_for(item.prayer)
        if not spec.enabled:
            continue
        instant = to_utc(item.instant)

        if spec.reminder_minutes_before > 0:
            fires_at = instant - timedelta(minutes=spec.reminder_minutes_before)
            if fires_at > now_utc:
                out.append(_event(spec, day_offset, EventKind.REMINDER, fires_at, settings.athan, travel))

        if spec.notify_at_prayer_time and instant > now_utc:
            out.append(_event(spec, day_offset, EventKind.AT_TIME, instant, settings.athan, travel))
    return out


def plan_prayer_events(
    coordinates: Coordinates,
    settings: AppSettings,
    prayer_times_fn: PrayerTimesFn,
    *,
    now: datetime,
    config: SchedulerConfig = SchedulerConfig(),
    travel: TravelStatus | None = None,
) -> list[ScheduledEvent]:
    """Compute the full window of events without touching any scheduler.

    Raises:
        TransientIOFailure: If the prayer-time source fails for any day.
    """

    tz = tzinfo_from_name(config.tz_name)
    today = local_date(now, tz)
    events: list[ScheduledEvent] = []
    for day_offset, day in enumerate(iter_days(today, config.window_days)):
        instants = _prayer_times(prayer_times_fn, coordinates, day, settings)
        events.extend(events_for_day(instants, settings, day_offset, now, travel))
    events.sort(key=lambda e: (e.fires_at, e.id))
    return events


def _prayer_times(
    fn: PrayerTimesFn,
    coordinates: Coordinates,
    day: date,
    settings: AppSettings,
) -> Sequence[PrayerInstant]:
    try:
        return fn(coordinates, day, settings.calculation_method, settings.asr_rule)
    except Exception as exc:
        raise TransientIOFailure(f"prayer times for {day.isoformat()} failed: {exc}") from exc


class NotificationScheduler:
    """Owns the prayer ID bands of one scheduling service.

    Callers must not run two ``reconcile`` passes concurrently; wrap the
    scheduler in ``CoalescingRunner`` when triggers can overlap.
    """

    def __init__(
        self,
        service: SchedulingService,
        permission: PermissionGate,
        prayer_times_fn: PrayerTimesFn,
        config: SchedulerConfig = SchedulerConfig(),
    ) -> None:
        self._service = service
        self._permission = permission
        self._prayer_times_fn = prayer_times_fn
        self.config = config

    async def reconcile(
        self,
        coordinates: Coordinates,
        settings: AppSettings,
        travel: TravelStatus | None = None,
        *,
        now: datetime | None = None,
    ) -> ReconcileOutcome:
        """Rebuild the pending prayer notifications from current inputs.

        Returns:
            ReconcileOutcome. Permission and collaborator failures are
            reported there instead of being raised.
        """

        now = now or datetime.now(tzinfo_from_name(self.config.tz_name))
        try:
            if not settings.notifications.enabled:
                canceled, _ = await replace_band(self._service, is_prayer_event_id, [])
                logger.info("Notifications disabled, canceled %d pending", len(canceled))
                return ReconcileOutcome(status=ReconcileStatus.DISABLED, canceled_ids=canceled)

            if not await ensure_permission(self._permission):
                logger.warning("Notification permission not granted, skipping prayer reconciliation")
                return ReconcileOutcome(status=ReconcileStatus.PERMISSION_DENIED)

            events = plan_prayer_events(
                coordinates,
                settings,
                self._prayer_times_fn,
                now=now,
                config=self.config,
                travel=travel,
            )
            canceled, scheduled = await replace_band(self._service, is_prayer_event_id, events)
        except TransientIOFailure as exc:
            return failed("Prayer", exc)

        logger.info(
            "Scheduled %d notifications for %d days (canceled %d)",
            len(scheduled),
            self.config.window_days,
            len(canceled),
        )
        return ReconcileOutcome(status=ReconcileStatus.SCHEDULED, scheduled_ids=scheduled, canceled_ids=canceled)

    async def cancel_prayer(self, prayer: Prayer) -> list[int]:
        """Cancel one prayer's pending notifications across every day."""

        pending = await call_collaborator("list pending", self._service.list_pending)
        ids = [p.id for p in pending if prayer_for_event_id(p.id) is prayer]
        if ids:
            await call_collaborator("cancel", lambda: self._service.cancel(ids))
        return ids

    async def pending_count(self) -> int:
        pending = await call_collaborator("list pending", self._service.list_pending)
        return sum(1 for p in pending if is_prayer_event_id(p.id))
