from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from conftest import HOME, NY, WEDNESDAY_10AM, FakePermissionGate, fixed_prayer_times
from prayer_reminder.ids import is_prayer_event_id
from prayer_reminder.models import (
    AppSettings,
    AthanSettings,
    EventKind,
    NotificationSettings,
    Prayer,
    ReminderSpec,
    ShortenedPrayers,
    WeeklyEvent,
    default_reminder_specs,
)
from prayer_reminder.notifications import (
    NotificationScheduler,
    SchedulerConfig,
    notification_text,
    plan_prayer_events,
    resolve_channel_id,
    sound_for_notification,
)
from prayer_reminder.reconcile import ReconcileStatus
from prayer_reminder.travel import TravelState, TravelStatus


def _traveling(**kw) -> TravelStatus:
    base = TravelStatus(
        state=TravelState.CONFIRMED_TRAVELING,
        is_traveling=True,
        travel_pending=False,
        distance_from_home_km=130.0,
        is_auto_detected=True,
        shortened_prayers=ShortenedPrayers(dhuhr=True, asr=True, isha=True),
        combine_dhuhr_asr=False,
        combine_maghrib_isha=False,
    )
    return replace(base, **kw)


def _with_spec(settings: AppSettings, spec: ReminderSpec) -> AppSettings:
    prayers = dict(settings.notifications.prayers)
    prayers[spec.prayer] = spec
    return replace(settings, notifications=replace(settings.notifications, prayers=prayers))


def _plan(settings: AppSettings | None = None, now: datetime = WEDNESDAY_10AM, **kw):
    return plan_prayer_events(HOME, settings or AppSettings(), fixed_prayer_times, now=now, **kw)


def test_default_window_counts():
    events = _plan()
    # Today: Fajr is past, Sunrise disabled, four prayers x2 left. Six more days x5 prayers x2.
    assert len(events) == 8 + 6 * 10
    assert all(is_prayer_event_id(e.id) for e in events)
    assert len({e.id for e in events}) == len(events)
    assert [e.fires_at for e in events] == sorted(e.fires_at for e in events)


def test_reminder_and_at_time_instants():
    events = {e.id: e for e in _plan()}
    dhuhr_at = datetime(2026, 3, 4, 12, 30, tzinfo=NY)
    assert events[301].fires_at == dhuhr_at
    assert events[300].fires_at == dhuhr_at - timedelta(minutes=15)
    assert events[300].kind is EventKind.REMINDER
    assert events[300].fires_at.utcoffset() == timedelta(0)


def test_past_instants_skipped_for_today_only():
    now = datetime(2026, 3, 4, 12, 20, tzinfo=NY)
    ids = {e.id for e in _plan(now=now)}
    assert 300 not in ids  # 12:15 reminder already past
    assert 301 in ids
    assert 100 not in ids and 101 not in ids
    assert 110 in ids and 111 in ids


def test_window_crosses_dst_in_local_time():
    events = {e.id: e for e in _plan()}
    # 2026-03-08 is the spring-forward day; Dhuhr stays at 12:30 local.
    assert events[341].fires_at.astimezone(NY).hour == 12
    assert events[341].fires_at.astimezone(NY).minute == 30


def test_disabling_one_prayer_removes_only_its_events():
    before = _plan()
    settings = _with_spec(AppSettings(), ReminderSpec(prayer=Prayer.ASR, enabled=False))
    after = _plan(settings)
    assert not [e for e in after if e.prayer is Prayer.ASR]
    assert [e for e in before if e.prayer is not Prayer.ASR] == after


def test_zero_minutes_means_no_reminder():
    settings = _with_spec(AppSettings(), ReminderSpec(prayer=Prayer.MAGHRIB, reminder_minutes_before=0))
    maghrib = [e for e in _plan(settings) if e.prayer is Prayer.MAGHRIB]
    assert maghrib and all(e.kind is EventKind.AT_TIME for e in maghrib)


def test_window_days_config():
    events = _plan(config=SchedulerConfig(window_days=1))
    assert len(events) == 8
    with pytest.raises(ValueError):
        SchedulerConfig(window_days=11)
    with pytest.raises(ValueError):
        SchedulerConfig(window_days=0)


def test_text_at_home():
    title, body = notification_text(Prayer.DHUHR, EventKind.REMINDER, 15)
    assert title == "Dhuhr"
    assert body == "Dhuhr prayer coming soon - in 15 min"
    _, body = notification_text(Prayer.ISHA, EventKind.AT_TIME, 15)
    assert body == "Time for Isha prayer - now"
    _, body = notification_text(Prayer.SUNRISE, EventKind.AT_TIME, 15)
    assert body == "The sun has risen - now"


def test_text_while_traveling():
    travel = _traveling(combine_dhuhr_asr=True)
    title, body = notification_text(Prayer.ASR, EventKind.AT_TIME, 15, travel)
    assert title == "Dhuhr + Asr (combined)"
    assert "shortened to 2 rak'ah" in body
    title, body = notification_text(Prayer.MAGHRIB, EventKind.AT_TIME, 15, travel)
    assert title == "Maghrib"
    assert "shortened" not in body
    _, body = notification_text(Prayer.FAJR, EventKind.REMINDER, 15, travel)
    assert "shortened" not in body


def test_pending_travel_does_not_change_text():
    pending = _traveling(state=TravelState.PENDING_CONFIRMATION, is_traveling=False, travel_pending=True)
    assert notification_text(Prayer.DHUHR, EventKind.AT_TIME, 15, pending) == notification_text(
        Prayer.DHUHR, EventKind.AT_TIME, 15
    )


def test_travel_changes_text_not_event_set():
    home_ids = [e.id for e in _plan()]
    away = _plan(travel=_traveling(combine_maghrib_isha=True))
    assert [e.id for e in away] == home_ids
    isha = next(e for e in away if e.prayer is Prayer.ISHA)
    assert isha.title == "Maghrib + Isha (combined)"


def test_sound_and_channel_resolution():
    athan = AthanSettings(
        selected_athan_id="mecca",
        selected_fajr_athan_id="medina",
        current_channel_id="athan_main_1",
        current_fajr_channel_id="athan_fajr_1",
    )
    assert sound_for_notification("athan:mecca") == "default"
    assert sound_for_notification("adhan") == "adhan.wav"
    assert sound_for_notification("no-such-sound") == "default"

    assert resolve_channel_id(Prayer.FAJR, "athan:medina", athan) == "athan_fajr_1"
    assert resolve_channel_id(Prayer.FAJR, "athan:mecca", athan) == "athan_main_1"
    assert resolve_channel_id(Prayer.DHUHR, "athan:mecca", athan) == "athan_main_1"
    assert resolve_channel_id(Prayer.FAJR, "adhan_fajr", athan) == "athan_fajr_1"
    assert resolve_channel_id(Prayer.ASR, "adhan", athan) == "athan_main_1"
    assert resolve_channel_id(Prayer.ASR, "default", athan) is None
    assert resolve_channel_id(Prayer.ASR, "athan:mecca", AthanSettings()) is None


def test_default_fajr_event_uses_fajr_adhan():
    fajr = next(e for e in _plan() if e.prayer is Prayer.FAJR)
    assert fajr.sound == "adhan_fajr.wav"
    assert fajr.channel_id is None


@pytest.mark.asyncio
async def test_reconcile_cancels_before_scheduling(scheduling, permission):
    scheduler = NotificationScheduler(scheduling, permission, fixed_prayer_times)
    first = await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    assert first.status is ReconcileStatus.SCHEDULED
    assert len(first.scheduled_ids) == 68

    scheduling.calls.clear()
    second = await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    ops = [name for name, _ in scheduling.calls]
    assert ops == ["list", "cancel", "schedule"]
    assert set(second.canceled_ids) == set(first.scheduled_ids)
    assert second.scheduled_ids == first.scheduled_ids


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(scheduling, permission):
    scheduler = NotificationScheduler(scheduling, permission, fixed_prayer_times)
    await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    first = dict(scheduling.pending)
    await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    assert scheduling.pending == first


@pytest.mark.asyncio
async def test_reconcile_leaves_weekly_band_alone(scheduling, permission):
    weekly = WeeklyEvent(id=700, week_offset=0, slot_index=0, fires_at=WEDNESDAY_10AM, title="J", body="b")
    scheduling.pending[700] = weekly
    scheduler = NotificationScheduler(scheduling, permission, fixed_prayer_times)
    await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    assert scheduling.pending[700] is weekly

    disabled = replace(AppSettings(), notifications=NotificationSettings(enabled=False))
    outcome = await scheduler.reconcile(HOME, disabled, now=WEDNESDAY_10AM)
    assert outcome.status is ReconcileStatus.DISABLED
    assert len(outcome.canceled_ids) == 68
    assert list(scheduling.pending) == [700]


@pytest.mark.asyncio
async def test_permission_denied_skips_pass(scheduling):
    gate = FakePermissionGate(granted=False)
    scheduler = NotificationScheduler(scheduling, gate, fixed_prayer_times)
    outcome = await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    assert outcome.status is ReconcileStatus.PERMISSION_DENIED
    assert not outcome.ok
    assert gate.requests == 1
    assert scheduling.calls == []


@pytest.mark.asyncio
async def test_permission_granted_on_request(scheduling):
    gate = FakePermissionGate(granted=False, grant_on_request=True)
    scheduler = NotificationScheduler(scheduling, gate, fixed_prayer_times)
    outcome = await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    assert outcome.status is ReconcileStatus.SCHEDULED


@pytest.mark.asyncio
async def test_prayer_time_failure_aborts_before_cancel(scheduling, permission):
    def broken(*args, **kwargs):
        raise RuntimeError("no ephemeris")

    scheduling.pending[300] = _plan()[0]
    scheduler = NotificationScheduler(scheduling, permission, broken)
    outcome = await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    assert outcome.status is ReconcileStatus.FAILED
    assert "no ephemeris" in (outcome.error or "")
    assert ("cancel", (300,)) not in scheduling.calls
    assert 300 in scheduling.pending


@pytest.mark.asyncio
async def test_scheduling_failure_reported(scheduling, permission):
    scheduling.fail_on = "schedule"
    scheduler = NotificationScheduler(scheduling, permission, fixed_prayer_times)
    outcome = await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    assert outcome.status is ReconcileStatus.FAILED
    from prayer_reminder.errors import TransientIOFailure

    with pytest.raises(TransientIOFailure):
        outcome.raise_for_status()


@pytest.mark.asyncio
async def test_cancel_prayer_and_pending_count(scheduling, permission):
    scheduler = NotificationScheduler(scheduling, permission, fixed_prayer_times)
    await scheduler.reconcile(HOME, AppSettings(), now=WEDNESDAY_10AM)
    canceled = await scheduler.cancel_prayer(Prayer.ISHA)
    assert len(canceled) == 14
    assert all(600 <= i < 700 for i in canceled)
    assert await scheduler.pending_count() == 68 - 14


def test_default_specs():
    specs = default_reminder_specs()
    assert not specs[Prayer.SUNRISE].enabled
    assert specs[Prayer.FAJR].sound == "adhan_fajr"
    assert specs[Prayer.ASR].reminder_minutes_before == 15
