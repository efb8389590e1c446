"""Wiring of travel monitor and schedulers for a single host process.

Location and settings updates go through ``ReminderService``; each update
re-derives the travel status and triggers a coalesced reconciliation of the
affected scheduler(s).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable

from prayer_reminder.coalesce import CoalescingRunner
from prayer_reminder.collaborators import PermissionGate, PrayerTimesFn, SchedulingService
from prayer_reminder.models import AppSettings, CombinePair, Coordinates, HomeBase, TravelOverride
from prayer_reminder.notifications import NotificationScheduler, SchedulerConfig
from prayer_reminder.reconcile import ReconcileOutcome
from prayer_reminder.timeutils import local_date, tzinfo_from_name
from prayer_reminder.travel import TravelMonitor, TravelSession, TravelStatus
from prayer_reminder.weekly import WeeklyConfig, WeeklyScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PrayerPassInputs:
    coordinates: Coordinates
    settings: AppSettings
    travel: TravelStatus
    now: datetime


@dataclass(frozen=True, slots=True)
class WeeklyPassInputs:
    settings: AppSettings
    now: datetime


class ReminderService:
    """Single logical owner of settings, location and both schedulers."""

    def __init__(
        self,
        settings: AppSettings,
        location: Coordinates,
        *,
        scheduling: SchedulingService,
        permission: PermissionGate,
        prayer_times_fn: PrayerTimesFn,
        scheduler_config: SchedulerConfig = SchedulerConfig(),
        weekly_config: WeeklyConfig = WeeklyConfig(),
        session: TravelSession | None = None,
        on_settings_changed: Callable[[AppSettings], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self.location = location
        self.monitor = TravelMonitor(settings.travel, session)
        self.prayers = NotificationScheduler(scheduling, permission, prayer_times_fn, scheduler_config)
        self.weekly = WeeklyScheduler(scheduling, permission, weekly_config)
        self._tz = tzinfo_from_name(scheduler_config.tz_name)
        self._clock = clock or (lambda: datetime.now(self._tz))
        self._on_settings_changed = on_settings_changed
        self._prayer_runner: CoalescingRunner[PrayerPassInputs, ReconcileOutcome] = CoalescingRunner(
            self._run_prayers, name="prayers"
        )
        self._weekly_runner: CoalescingRunner[WeeklyPassInputs, ReconcileOutcome] = CoalescingRunner(
            self._run_weekly, name="jumuah"
        )

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def today(self) -> date:
        return local_date(self._clock(), self._tz)

    def travel_status(self) -> TravelStatus:
        return self.monitor.status(self.location, self._clock())

    async def update_location(self, location: Coordinates) -> ReconcileOutcome:
        self.location = location
        self.monitor.observe(location, self._clock())
        self._sync_travel()
        return await self.refresh_prayers()

    async def update_settings(self, settings: AppSettings) -> tuple[ReconcileOutcome, ReconcileOutcome]:
        self._settings = settings
        self.monitor.settings = settings.travel
        self._notify_settings()
        return await self.refresh_prayers(), await self.refresh_jumuah()

    async def confirm_travel(self) -> ReconcileOutcome:
        self.monitor.confirm(self.today())
        self._sync_travel()
        return await self.refresh_prayers()

    async def dismiss_travel(self) -> ReconcileOutcome:
        self.monitor.dismiss()
        return await self.refresh_prayers()

    async def toggle_travel_enabled(self) -> ReconcileOutcome:
        self.monitor.toggle_enabled()
        self._sync_travel()
        return await self.refresh_prayers()

    async def set_home_base(self, home: HomeBase) -> ReconcileOutcome:
        self.monitor.set_home_base(home)
        self._sync_travel()
        return await self.refresh_prayers()

    async def clear_home_base(self) -> ReconcileOutcome:
        self.monitor.clear_home_base()
        self._sync_travel()
        return await self.refresh_prayers()

    async def set_override(self, override: TravelOverride) -> ReconcileOutcome:
        self.monitor.set_override(override, self.today())
        self._sync_travel()
        return await self.refresh_prayers()

    async def toggle_combine(self, pair: CombinePair) -> ReconcileOutcome:
        self.monitor.toggle_combine(pair)
        self._sync_travel()
        return await self.refresh_prayers()

    async def refresh_prayers(self) -> ReconcileOutcome:
        inputs = PrayerPassInputs(
            coordinates=self.location,
            settings=self._settings,
            travel=self.travel_status(),
            now=self._clock(),
        )
        return await self._prayer_runner.submit(inputs)

    async def refresh_jumuah(self) -> ReconcileOutcome:
        return await self._weekly_runner.submit(WeeklyPassInputs(settings=self._settings, now=self._clock()))

    async def _run_prayers(self, inputs: PrayerPassInputs) -> ReconcileOutcome:
        return await self.prayers.reconcile(inputs.coordinates, inputs.settings, inputs.travel, now=inputs.now)

    async def _run_weekly(self, inputs: WeeklyPassInputs) -> ReconcileOutcome:
        return await self.weekly.reconcile(inputs.settings.jumuah, now=inputs.now)

    def _sync_travel(self) -> None:
        if self.monitor.settings == self._settings.travel:
            return
        self._settings = replace(self._settings, travel=self.monitor.settings)
        self._notify_settings()

    def _notify_settings(self) -> None:
        if self._on_settings_changed is not None:
            self._on_settings_changed(self._settings)
