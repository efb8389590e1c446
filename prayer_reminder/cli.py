"""Command-line interface for prayer_reminder.

Run:
    python -m prayer_reminder status --lat 40.71 --lon -74.00
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from datetime import datetime

from prayer_reminder.collaborators import AlwaysGranted, JsonFileSchedulingService
from prayer_reminder.csv_io import load_location_fixes
from prayer_reminder.geo import format_distance
from prayer_reminder.ids import decode_prayer_event_id, decode_weekly_event_id
from prayer_reminder.models import (
    DEFAULT_TZ,
    AppSettings,
    CombinePair,
    Coordinates,
    HomeBase,
    SavedLocation,
    TravelOverride,
)
from prayer_reminder.notifications import SchedulerConfig
from prayer_reminder.prayertimes import AdhanPrayerTimes
from prayer_reminder.service import ReminderService
from prayer_reminder.settings_store import JsonSettingsStore, add_previous_location
from prayer_reminder.timeutils import local_date, parse_dt, tzinfo_from_name
from prayer_reminder.travel import TravelMonitor, TravelState, TravelStatus
from prayer_reminder.weekly import WeeklyConfig

logger = logging.getLogger(__name__)


def _now(args: argparse.Namespace) -> datetime:
    if getattr(args, "now", None):
        return parse_dt(args.now, args.tz)
    return datetime.now(tzinfo_from_name(args.tz))


def _describe(status: TravelStatus, unit: str) -> str:
    dist = (
        format_distance(status.distance_from_home_km, unit)
        if status.distance_from_home_km is not None
        else "-"
    )
    parts = [f"state={status.state.value}", f"distance={dist}", f"traveling={status.is_traveling}"]
    if status.travel_pending:
        parts.append("pending=True")
    if status.is_traveling:
        s = status.shortened_prayers
        parts.append(f"shortened=dhuhr:{s.dhuhr},asr:{s.asr},isha:{s.isha}")
        parts.append(f"combine=dhuhr_asr:{status.combine_dhuhr_asr},maghrib_isha:{status.combine_maghrib_isha}")
    return ", ".join(parts)


def _update_travel(args: argparse.Namespace, settings: AppSettings, monitor: TravelMonitor) -> AppSettings:
    updated = replace(settings, travel=monitor.settings)
    JsonSettingsStore(args.settings).save(updated)
    return updated


def _cmd_status(args: argparse.Namespace) -> int:
    settings = JsonSettingsStore(args.settings).load()
    t = settings.travel
    print("### 出行设置")
    home = "-"
    if t.home_base is not None:
        c = t.home_base.coordinates
        home = f"{t.home_base.name} ({c.latitude:.4f}, {c.longitude:.4f})"
    print(f"enabled={t.enabled}, home={home}, override={t.override.value}")
    print(
        f"threshold={format_distance(t.distance_threshold_km, settings.distance_unit)}, "
        f"max_travel_days={t.max_travel_days}, start={t.travel_start_date or '-'}, auto_confirmed={t.auto_confirmed}"
    )
    if args.lat is None or args.lon is None:
        return 0

    location = Coordinates(args.lat, args.lon)
    status = TravelMonitor(t).status(location, _now(args))
    print()
    print("### 当前状态")
    print(_describe(status, settings.distance_unit))
    if status.state is TravelState.PENDING_CONFIRMATION:
        print("距离已超过出行阈值：运行 confirm-travel 确认出行。")
    return 0


def _cmd_set_home(args: argparse.Namespace) -> int:
    store = JsonSettingsStore(args.settings)
    settings = store.load()
    coords = Coordinates(args.lat, args.lon)

    home: HomeBase
    if args.geocode and not args.name:
        from prayer_reminder.geocode import JsonDiskCache, NominatimConfig, NominatimReverseGeocoder

        geocoder = NominatimReverseGeocoder(
            NominatimConfig(accept_language=args.geocode_lang, user_agent=args.geocode_user_agent),
            cache=JsonDiskCache(args.geocode_cache),
        )
        home = geocoder.home_base(coords)
    else:
        from prayer_reminder.geocode import fallback_name

        home = HomeBase(coordinates=coords, name=args.name or fallback_name(coords))

    monitor = TravelMonitor(settings.travel)
    monitor.set_home_base(home)
    if args.enable and not monitor.settings.enabled:
        monitor.toggle_enabled()
    settings = _update_travel(args, settings, monitor)
    saved = SavedLocation(coordinates=coords, name=home.name, saved_at=_now(args), country_code=home.country_code)
    store.save(add_previous_location(settings, saved))
    print(f"已设置家庭位置：{home.name}（{coords.latitude:.4f}, {coords.longitude:.4f}）")
    return 0


def _cmd_clear_home(args: argparse.Namespace) -> int:
    settings = JsonSettingsStore(args.settings).load()
    monitor = TravelMonitor(settings.travel)
    monitor.clear_home_base()
    _update_travel(args, settings, monitor)
    print("已清除家庭位置。")
    return 0


def _cmd_override(args: argparse.Namespace) -> int:
    settings = JsonSettingsStore(args.settings).load()
    monitor = TravelMonitor(settings.travel)
    monitor.set_override(TravelOverride(args.mode), local_date(_now(args), tzinfo_from_name(args.tz)))
    _update_travel(args, settings, monitor)
    print(f"override={args.mode}")
    return 0


def _cmd_toggle_travel(args: argparse.Namespace) -> int:
    settings = JsonSettingsStore(args.settings).load()
    monitor = TravelMonitor(settings.travel)
    monitor.toggle_enabled()
    _update_travel(args, settings, monitor)
    print(f"出行检测 enabled={monitor.settings.enabled}")
    return 0


def _cmd_toggle_combine(args: argparse.Namespace) -> int:
    settings = JsonSettingsStore(args.settings).load()
    monitor = TravelMonitor(settings.travel)
    monitor.toggle_combine(CombinePair(args.pair))
    _update_travel(args, settings, monitor)
    t = monitor.settings
    print(f"combine_dhuhr_asr={t.combine_dhuhr_asr}, combine_maghrib_isha={t.combine_maghrib_isha}")
    return 0


def _cmd_confirm_travel(args: argparse.Namespace) -> int:
    settings = JsonSettingsStore(args.settings).load()
    monitor = TravelMonitor(settings.travel)
    monitor.confirm(local_date(_now(args), tzinfo_from_name(args.tz)))
    _update_travel(args, settings, monitor)
    print(f"已确认出行，start={monitor.settings.travel_start_date}")
    return 0


def _cmd_reconcile(args: argparse.Namespace) -> int:
    store = JsonSettingsStore(args.settings)
    settings = store.load()
    now = _now(args)
    service = ReminderService(
        settings,
        Coordinates(args.lat, args.lon),
        scheduling=JsonFileSchedulingService(args.pending),
        permission=AlwaysGranted(),
        prayer_times_fn=AdhanPrayerTimes(args.tz),
        scheduler_config=SchedulerConfig(window_days=args.window_days, tz_name=args.tz),
        weekly_config=WeeklyConfig(week_window=args.weeks, tz_name=args.tz),
        on_settings_changed=store.save,
        clock=lambda: now,
    )

    async def run() -> int:
        status = service.travel_status()
        print(_describe(status, settings.distance_unit), file=sys.stderr, flush=True)
        prayers = await service.refresh_prayers()
        jumuah = await service.refresh_jumuah()
        for label, outcome in (("prayers", prayers), ("jumuah", jumuah)):
            print(
                f"{label}: status={outcome.status.value}, "
                f"scheduled={len(outcome.scheduled_ids)}, canceled={len(outcome.canceled_ids)}"
            )
            if outcome.error:
                print(f"错误：{outcome.error}", file=sys.stderr)
        return 0 if prayers.ok and jumuah.ok else 1

    return asyncio.run(run())


def _cmd_pending(args: argparse.Namespace) -> int:
    service = JsonFileSchedulingService(args.pending)
    tz = tzinfo_from_name(args.tz)
    entries = service.entries()
    print(f"pending={len(entries)}")
    for e in entries:
        event_id = int(e["id"])
        fires = datetime.fromisoformat(e["fires_at"]).astimezone(tz)
        prayer_key = decode_prayer_event_id(event_id)
        weekly_key = decode_weekly_event_id(event_id)
        if prayer_key is not None:
            tag = f"{prayer_key.prayer.value}/day{prayer_key.day_offset}/{prayer_key.kind.value}"
        elif weekly_key is not None:
            tag = f"jumuah/week{weekly_key.week_offset}/slot{weekly_key.slot_index}"
        else:
            tag = "?"
        print(f"{event_id:>4}  {fires.isoformat(sep=' ', timespec='minutes')}  {tag:<24}  {e['title']}: {e['body']}")
    return 0


def _cmd_replay_trip(args: argparse.Namespace) -> int:
    settings = JsonSettingsStore(args.settings).load()
    if settings.travel.home_base is None:
        print("未设置家庭位置：请先运行 set-home。", file=sys.stderr)
        return 2
    fixes, summary = load_location_fixes(args.csv, args.tz)
    print(f"total_rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")

    tz = tzinfo_from_name(args.tz)
    monitor = TravelMonitor(settings.travel)
    last: TravelState | None = None
    transitions = 0
    for fix in fixes:
        today = local_date(fix.at, tz)
        status = monitor.observe(fix.coordinates, fix.at)
        if status.state is TravelState.PENDING_CONFIRMATION and args.auto_confirm:
            monitor.confirm(today)
            status = monitor.status(fix.coordinates, fix.at)
        if status.state is not last:
            transitions += 1
            stamp = fix.at.astimezone(tz).isoformat(sep=" ", timespec="minutes")
            print(f"{stamp}  {_describe(status, settings.distance_unit)}")
            last = status.state
    print(f"状态变化 {transitions} 次")
    return 0


_SESSION_NOTE = (
    "每次运行都是新的会话：上一次的距离和“暂不”都不会保存，\n"
    "因此“回到家附近自动清除出行确认”只会在 replay-trip 中触发。\n"
    "回家后如需结束已确认的出行，请运行 clear-home 再 set-home。"
)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="prayer-reminder")
    p.add_argument("--settings", type=str, default="prayer_settings.json", help="设置文件路径（JSON）")
    p.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 America/New_York")
    p.add_argument("--log-level", type=str, default="WARNING", help="日志级别（DEBUG/INFO/WARNING）")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_st = sub.add_parser(
        "status",
        help="显示出行设置与当前出行状态",
        description=_SESSION_NOTE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_st.add_argument("--lat", type=float, default=None, help="当前位置纬度")
    p_st.add_argument("--lon", type=float, default=None, help="当前位置经度")
    p_st.add_argument("--now", type=str, default=None, help="当前时间（默认系统时间），例如 2026-03-06 09:30:00")
    p_st.set_defaults(func=_cmd_status)

    p_home = sub.add_parser("set-home", help="设置家庭位置（出行距离的参考点）")
    p_home.add_argument("--lat", type=float, required=True, help="家庭位置纬度")
    p_home.add_argument("--lon", type=float, required=True, help="家庭位置经度")
    p_home.add_argument("--name", type=str, default=None, help="显示名称（不填则用坐标或逆地理编码）")
    p_home.add_argument("--enable", action="store_true", help="同时开启出行检测")
    p_home.add_argument("--geocode", action="store_true", help="用 Nominatim 逆地理编码得到城市名")
    p_home.add_argument("--geocode-cache", type=str, default="geocode_cache.json", help="逆地理编码缓存文件")
    p_home.add_argument("--geocode-lang", type=str, default="en", help="逆地理编码语言（如 en/ar）")
    p_home.add_argument(
        "--geocode-user-agent",
        type=str,
        default="prayer-reminder/0.1.0 (home-base naming; please set your own UA)",
        help="请求头 User-Agent（请填写可联系的信息）",
    )
    p_home.add_argument("--now", type=str, default=None, help="记录时间（默认系统时间）")
    p_home.set_defaults(func=_cmd_set_home)

    p_clear = sub.add_parser("clear-home", help="清除家庭位置（同时清除出行确认）")
    p_clear.set_defaults(func=_cmd_clear_home)

    p_ov = sub.add_parser("override", help="手动覆盖出行状态")
    p_ov.add_argument("mode", choices=[o.value for o in TravelOverride], help="auto / force_on / force_off")
    p_ov.add_argument("--now", type=str, default=None, help="当前时间（默认系统时间）")
    p_ov.set_defaults(func=_cmd_override)

    p_tt = sub.add_parser("toggle-travel", help="开关出行检测")
    p_tt.set_defaults(func=_cmd_toggle_travel)

    p_tc = sub.add_parser("toggle-combine", help="开关出行时的合并礼拜")
    p_tc.add_argument("pair", choices=[c.value for c in CombinePair], help="dhuhr_asr / maghrib_isha")
    p_tc.set_defaults(func=_cmd_toggle_combine)

    p_ct = sub.add_parser("confirm-travel", help="确认自动检测到的出行")
    p_ct.add_argument("--now", type=str, default=None, help="当前时间（默认系统时间）")
    p_ct.set_defaults(func=_cmd_confirm_travel)

    p_rc = sub.add_parser(
        "reconcile",
        help="重建礼拜提醒与主麻提醒（写入 pending 文件）",
        description=_SESSION_NOTE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_rc.add_argument("--lat", type=float, required=True, help="当前位置纬度")
    p_rc.add_argument("--lon", type=float, required=True, help="当前位置经度")
    p_rc.add_argument("--pending", type=str, default="pending_notifications.json", help="待发通知文件")
    p_rc.add_argument("--window-days", type=int, default=7, help="提前排几天的礼拜提醒（1..10）")
    p_rc.add_argument("--weeks", type=int, default=4, help="提前排几周的主麻提醒（1..10）")
    p_rc.add_argument("--now", type=str, default=None, help="当前时间（默认系统时间）")
    p_rc.set_defaults(func=_cmd_reconcile)

    p_pd = sub.add_parser("pending", help="列出待发通知（按触发时间）")
    p_pd.add_argument("--pending", type=str, default="pending_notifications.json", help="待发通知文件")
    p_pd.set_defaults(func=_cmd_pending)

    p_rp = sub.add_parser("replay-trip", help="用位置轨迹 CSV 回放出行状态变化")
    p_rp.add_argument("--csv", type=str, required=True, help="轨迹CSV（time, latitude, longitude）")
    p_rp.add_argument("--auto-confirm", action="store_true", help="出现待确认时自动确认（模拟用户点击）")
    p_rp.set_defaults(func=_cmd_replay_trip)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except ValueError as exc:
        print(f"错误：{exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
