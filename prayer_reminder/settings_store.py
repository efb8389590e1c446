"""Persistence of the single settings blob as JSON on disk."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Final

from prayer_reminder.errors import TransientIOFailure
from prayer_reminder.models import (
    AppSettings,
    AsrRule,
    AthanFile,
    AthanSettings,
    CalculationMethod,
    Coordinates,
    HomeBase,
    JumuahSettings,
    JumuahTime,
    NotificationSettings,
    Prayer,
    ReminderSpec,
    SavedLocation,
    TravelOverride,
    TravelSettings,
    default_reminder_specs,
)

logger = logging.getLogger(__name__)

MAX_PREVIOUS_LOCATIONS: Final[int] = 20
# Same-name locations closer than this (degrees on both axes) count as duplicates.
DUPLICATE_LOCATION_DEGREES: Final[float] = 0.01


def _coords_to_dict(c: Coordinates) -> dict[str, float]:
    return {"latitude": c.latitude, "longitude": c.longitude}


def _coords_from_dict(d: dict[str, Any]) -> Coordinates:
    return Coordinates(latitude=float(d["latitude"]), longitude=float(d["longitude"]))


def _home_to_dict(home: HomeBase | None) -> dict[str, Any] | None:
    if home is None:
        return None
    return {
        "coordinates": _coords_to_dict(home.coordinates),
        "name": home.name,
        "country_code": home.country_code,
    }


def _home_from_dict(d: dict[str, Any] | None) -> HomeBase | None:
    if not d:
        return None
    return HomeBase(
        coordinates=_coords_from_dict(d["coordinates"]),
        name=str(d.get("name", "")),
        country_code=d.get("country_code"),
    )


def _spec_to_dict(spec: ReminderSpec) -> dict[str, Any]:
    return {
        "reminder_minutes_before": spec.reminder_minutes_before,
        "notify_at_prayer_time": spec.notify_at_prayer_time,
        "sound": spec.sound,
        "enabled": spec.enabled,
    }


def _spec_from_value(prayer: Prayer, value: Any, default: ReminderSpec) -> ReminderSpec:
    # Older blobs stored a bare on/off flag per prayer.
    if isinstance(value, bool):
        return replace(default, enabled=value)
    if not isinstance(value, dict):
        return default
    return ReminderSpec(
        prayer=prayer,
        reminder_minutes_before=int(value.get("reminder_minutes_before", default.reminder_minutes_before)),
        notify_at_prayer_time=bool(value.get("notify_at_prayer_time", default.notify_at_prayer_time)),
        sound=str(value.get("sound", default.sound)),
        enabled=bool(value.get("enabled", default.enabled)),
    )


def settings_to_dict(settings: AppSettings) -> dict[str, Any]:
    n = settings.notifications
    t = settings.travel
    a = settings.athan
    return {
        "calculation_method": settings.calculation_method.value,
        "asr_rule": settings.asr_rule.value,
        "notifications": {
            "enabled": n.enabled,
            "default_sound": n.default_sound,
            "default_reminder_minutes": n.default_reminder_minutes,
            "prayers": {p.value: _spec_to_dict(s) for p, s in n.prayers.items()},
        },
        "jumuah": {
            "enabled": settings.jumuah.enabled,
            "masjid_name": settings.jumuah.masjid_name,
            "times": [{"khutbah": jt.khutbah, "iqamah": jt.iqamah} for jt in settings.jumuah.times],
            "reminder_minutes": settings.jumuah.reminder_minutes,
        },
        "travel": {
            "enabled": t.enabled,
            "home_base": _home_to_dict(t.home_base),
            "override": t.override.value,
            "distance_threshold_km": t.distance_threshold_km,
            "combine_dhuhr_asr": t.combine_dhuhr_asr,
            "combine_maghrib_isha": t.combine_maghrib_isha,
            "max_travel_days": t.max_travel_days,
            "travel_start_date": t.travel_start_date.isoformat() if t.travel_start_date else None,
            "auto_confirmed": t.auto_confirmed,
        },
        "athan": {
            "downloaded_athans": [
                {
                    "id": f.id,
                    "muezzin_name": f.muezzin_name,
                    "title": f.title,
                    "filename": f.filename,
                    "duration": f.duration,
                    "source_url": f.source_url,
                    "downloaded_at": f.downloaded_at.isoformat() if f.downloaded_at else None,
                }
                for f in a.downloaded_athans
            ],
            "selected_athan_id": a.selected_athan_id,
            "selected_fajr_athan_id": a.selected_fajr_athan_id,
            "current_channel_id": a.current_channel_id,
            "current_fajr_channel_id": a.current_fajr_channel_id,
        },
        "previous_locations": [
            {
                "coordinates": _coords_to_dict(loc.coordinates),
                "name": loc.name,
                "saved_at": loc.saved_at.isoformat(),
                "country_code": loc.country_code,
            }
            for loc in settings.previous_locations
        ],
        "distance_unit": settings.distance_unit,
    }


def settings_from_dict(data: dict[str, Any]) -> AppSettings:
    """Build settings from a stored blob, filling anything missing with defaults.

    Raises:
        ValueError: If an enum value or date in the blob is not recognized.
    """

    defaults = AppSettings()

    n_raw = data.get("notifications") or {}
    default_specs = default_reminder_specs()
    prayers_raw = n_raw.get("prayers") or {}
    prayers: dict[Prayer, ReminderSpec] = {}
    for p in Prayer:
        if p.value in prayers_raw:
            prayers[p] = _spec_from_value(p, prayers_raw[p.value], default_specs[p])
        else:
            prayers[p] = default_specs[p]
    notifications = NotificationSettings(
        enabled=bool(n_raw.get("enabled", defaults.notifications.enabled)),
        default_sound=str(n_raw.get("default_sound", defaults.notifications.default_sound)),
        default_reminder_minutes=int(
            n_raw.get("default_reminder_minutes", defaults.notifications.default_reminder_minutes)
        ),
        prayers=prayers,
    )

    j_raw = data.get("jumuah") or {}
    times_raw = j_raw.get("times")
    jumuah = JumuahSettings(
        enabled=bool(j_raw.get("enabled", defaults.jumuah.enabled)),
        masjid_name=str(j_raw.get("masjid_name", defaults.jumuah.masjid_name)),
        times=(
            tuple(JumuahTime(khutbah=str(t["khutbah"]), iqamah=str(t.get("iqamah", ""))) for t in times_raw)
            if times_raw is not None
            else defaults.jumuah.times
        ),
        reminder_minutes=int(j_raw.get("reminder_minutes", defaults.jumuah.reminder_minutes)),
    )

    t_raw = data.get("travel") or {}
    start = t_raw.get("travel_start_date")
    travel = TravelSettings(
        enabled=bool(t_raw.get("enabled", defaults.travel.enabled)),
        home_base=_home_from_dict(t_raw.get("home_base")),
        override=TravelOverride(t_raw.get("override", defaults.travel.override.value)),
        distance_threshold_km=float(t_raw.get("distance_threshold_km", defaults.travel.distance_threshold_km)),
        combine_dhuhr_asr=bool(t_raw.get("combine_dhuhr_asr", False)),
        combine_maghrib_isha=bool(t_raw.get("combine_maghrib_isha", False)),
        max_travel_days=int(t_raw.get("max_travel_days", 0)),
        travel_start_date=date.fromisoformat(start) if start else None,
        auto_confirmed=bool(t_raw.get("auto_confirmed", False)),
    )

    a_raw = data.get("athan") or {}
    athan = AthanSettings(
        downloaded_athans=tuple(
            AthanFile(
                id=str(f["id"]),
                muezzin_name=str(f.get("muezzin_name", "")),
                title=str(f.get("title", "")),
                filename=str(f.get("filename", "")),
                duration=str(f.get("duration", "")),
                source_url=str(f.get("source_url", "")),
                downloaded_at=datetime.fromisoformat(f["downloaded_at"]) if f.get("downloaded_at") else None,
            )
            for f in a_raw.get("downloaded_athans") or []
        ),
        selected_athan_id=a_raw.get("selected_athan_id"),
        selected_fajr_athan_id=a_raw.get("selected_fajr_athan_id"),
        current_channel_id=a_raw.get("current_channel_id"),
        current_fajr_channel_id=a_raw.get("current_fajr_channel_id"),
    )

    previous = tuple(
        SavedLocation(
            coordinates=_coords_from_dict(loc["coordinates"]),
            name=str(loc.get("name", "")),
            saved_at=datetime.fromisoformat(loc["saved_at"]),
            country_code=loc.get("country_code"),
        )
        for loc in data.get("previous_locations") or []
    )

    return AppSettings(
        calculation_method=CalculationMethod(data.get("calculation_method", defaults.calculation_method.value)),
        asr_rule=AsrRule(data.get("asr_rule", defaults.asr_rule.value)),
        notifications=notifications,
        jumuah=jumuah,
        travel=travel,
        athan=athan,
        previous_locations=previous[:MAX_PREVIOUS_LOCATIONS],
        distance_unit=str(data.get("distance_unit", defaults.distance_unit)),
    )


def add_previous_location(settings: AppSettings, location: SavedLocation) -> AppSettings:
    """Put ``location`` first in the history unless it is already there.

    A same-name entry within ``DUPLICATE_LOCATION_DEGREES`` counts as already there.
    The history keeps at most ``MAX_PREVIOUS_LOCATIONS`` entries, newest first.
    """

    for existing in settings.previous_locations:
        if (
            existing.name == location.name
            and abs(existing.coordinates.latitude - location.coordinates.latitude) < DUPLICATE_LOCATION_DEGREES
            and abs(existing.coordinates.longitude - location.coordinates.longitude) < DUPLICATE_LOCATION_DEGREES
        ):
            return settings
    history = (location, *settings.previous_locations)[:MAX_PREVIOUS_LOCATIONS]
    return replace(settings, previous_locations=history)


def remove_previous_location(settings: AppSettings, index: int) -> AppSettings:
    if not 0 <= index < len(settings.previous_locations):
        return settings
    history = settings.previous_locations[:index] + settings.previous_locations[index + 1 :]
    return replace(settings, previous_locations=history)


class JsonSettingsStore:
    """Settings blob persisted as one JSON file.

    Writes go to a temp file first and replace the target, so a crash never
    leaves a half-written blob. An unreadable blob is kept as ``*.broken`` and
    defaults are used instead.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            text = self._path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise TransientIOFailure(f"cannot read settings file {self._path}") from exc
        if not text:
            return AppSettings()
        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("settings blob is not a JSON object")
            return settings_from_dict(data)
        except (ValueError, KeyError, TypeError) as exc:
            backup = self._path.with_suffix(self._path.suffix + ".broken")
            backup.write_text(text, encoding="utf-8")
            logger.warning("Settings file %s unreadable (%s), moved to %s", self._path, exc, backup)
            return AppSettings()

    def save(self, settings: AppSettings) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(settings_to_dict(settings), ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            raise TransientIOFailure(f"cannot write settings file {self._path}") from exc
        logger.debug("Saved settings to %s", self._path)
