from __future__ import annotations

from dataclasses import replace
from datetime import datetime, time

import streamlit as st

from prayer_reminder.geo import format_distance
from prayer_reminder.models import DEFAULT_TZ, AppSettings, CombinePair, Coordinates, TravelOverride
from prayer_reminder.notifications import SchedulerConfig, plan_prayer_events
from prayer_reminder.prayertimes import AdhanPrayerTimes
from prayer_reminder.settings_store import JsonSettingsStore
from prayer_reminder.timeutils import local_date, tzinfo_from_name
from prayer_reminder.travel import TravelMonitor, TravelSession, TravelState
from prayer_reminder.weekly import WeeklyConfig, plan_weekly_events


def _session() -> TravelSession:
    # Streamlit reruns the script on every interaction; the dismissed flag
    # lives in session_state so it lasts for the browser session only.
    if "travel_session" not in st.session_state:
        st.session_state["travel_session"] = TravelSession()
    return st.session_state["travel_session"]


def _save(store: JsonSettingsStore, settings: AppSettings, monitor: TravelMonitor) -> None:
    store.save(replace(settings, travel=monitor.settings))
    st.session_state["travel_session"] = monitor.session


def _event_rows(events, tz) -> list[dict[str, object]]:
    return [
        {
            "id": e.id,
            "fires_at": e.fires_at.astimezone(tz).isoformat(sep=" ", timespec="minutes"),
            "title": e.title,
            "body": e.body,
            "sound": e.sound,
            "channel": e.channel_id or "",
        }
        for e in events
    ]


def main() -> None:
    st.set_page_config(page_title="礼拜提醒：出行与提醒预览", layout="wide")
    st.title("礼拜提醒：出行状态与提醒预览")

    with st.sidebar:
        st.subheader("设置与时区")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)
        settings_path = st.text_input("设置文件路径", value="prayer_settings.json")

        st.subheader("当前位置")
        lat = st.number_input("纬度 latitude", value=40.7128, format="%.5f")
        lon = st.number_input("经度 longitude", value=-74.0060, format="%.5f")

        st.subheader("当前时间")
        tz = tzinfo_from_name(tz_name)
        real_now = datetime.now(tz)
        day = st.date_input("日期", value=real_now.date())
        clock = st.time_input("时刻", value=time(real_now.hour, real_now.minute))
        window_days = st.slider("礼拜提醒天数", min_value=1, max_value=10, value=7)

    now = datetime.combine(day, clock).replace(tzinfo=tz)
    today = local_date(now, tz)
    location = Coordinates(float(lat), float(lon))

    store = JsonSettingsStore(settings_path)
    settings = store.load()
    monitor = TravelMonitor(settings.travel, _session())
    status = monitor.observe(location, now)
    if monitor.settings != settings.travel:
        _save(store, settings, monitor)
        settings = replace(settings, travel=monitor.settings)
    else:
        st.session_state["travel_session"] = monitor.session

    st.subheader("出行状态")
    home = settings.travel.home_base
    c1, c2, c3 = st.columns(3)
    c1.metric("状态", status.state.value)
    c2.metric(
        "距家距离",
        format_distance(status.distance_from_home_km, settings.distance_unit)
        if status.distance_from_home_km is not None
        else "-",
    )
    c3.metric("家庭位置", home.name if home else "-")

    if home is None:
        st.info("尚未设置家庭位置：可用命令行 `prayer-reminder set-home --lat ... --lon ... --enable`。")

    if status.state is TravelState.PENDING_CONFIRMATION:
        st.warning(
            f"你已离家 {format_distance(status.distance_from_home_km or 0.0, settings.distance_unit)}，"
            "是否按旅行者缩短礼拜？"
        )
        b1, b2 = st.columns(2)
        if b1.button("确认出行", type="primary", use_container_width=True):
            monitor.confirm(today)
            _save(store, settings, monitor)
            st.rerun()
        if b2.button("暂不", use_container_width=True):
            monitor.dismiss()
            st.session_state["travel_session"] = monitor.session
            st.rerun()
    elif status.state is TravelState.EXPIRED_BY_DURATION:
        st.info(f"出行已超过 {settings.travel.max_travel_days} 天，缩短/合并已停止。")

    with st.expander("出行设置", expanded=False):
        overrides = [o.value for o in TravelOverride]
        mode = st.radio(
            "覆盖模式",
            overrides,
            index=overrides.index(settings.travel.override.value),
            horizontal=True,
        )
        if mode != settings.travel.override.value:
            monitor.set_override(TravelOverride(mode), today)
            _save(store, settings, monitor)
            st.rerun()
        col_a, col_b, col_c = st.columns(3)
        if col_a.button(f"出行检测：{'开' if settings.travel.enabled else '关'}", use_container_width=True):
            monitor.toggle_enabled()
            _save(store, settings, monitor)
            st.rerun()
        if col_b.button(
            f"合并 Dhuhr+Asr：{'开' if settings.travel.combine_dhuhr_asr else '关'}", use_container_width=True
        ):
            monitor.toggle_combine(CombinePair.DHUHR_ASR)
            _save(store, settings, monitor)
            st.rerun()
        if col_c.button(
            f"合并 Maghrib+Isha：{'开' if settings.travel.combine_maghrib_isha else '关'}", use_container_width=True
        ):
            monitor.toggle_combine(CombinePair.MAGHRIB_ISHA)
            _save(store, settings, monitor)
            st.rerun()

    st.subheader("礼拜提醒预览")
    try:
        events = plan_prayer_events(
            location,
            settings,
            AdhanPrayerTimes(tz_name),
            now=now,
            config=SchedulerConfig(window_days=window_days, tz_name=tz_name),
            travel=status,
        )
    except Exception as exc:
        st.exception(exc)
        return
    st.metric("待排提醒数", str(len(events)))
    st.dataframe(_event_rows(events, tz), use_container_width=True, height=420)

    st.subheader("主麻提醒预览")
    if not settings.jumuah.enabled:
        st.caption("主麻提醒未开启。")
    else:
        weekly = plan_weekly_events(settings.jumuah, now=now, config=WeeklyConfig(tz_name=tz_name))
        st.dataframe(_event_rows(weekly, tz), use_container_width=True, height=240)

    st.caption("说明：该界面只预览，不会真正发出通知；出行“暂不”只在本次浏览会话内有效。")


if __name__ == "__main__":
    main()
