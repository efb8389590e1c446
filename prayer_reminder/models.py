"""Data models for locations, travel settings, reminders and scheduled events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Final


DEFAULT_TZ: Final[str] = "America/New_York"
DEFAULT_DISTANCE_THRESHOLD_KM: Final[float] = 88.7


class Prayer(str, Enum):
    """The six fixed daily entries, in ID-band order."""

    FAJR = "fajr"
    SUNRISE = "sunrise"
    DHUHR = "dhuhr"
    ASR = "asr"
    MAGHRIB = "maghrib"
    ISHA = "isha"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class CalculationMethod(str, Enum):
    MUSLIM_WORLD_LEAGUE = "MuslimWorldLeague"
    EGYPTIAN = "Egyptian"
    KARACHI = "Karachi"
    UMM_AL_QURA = "UmmAlQura"
    DUBAI = "Dubai"
    MOONSIGHTING_COMMITTEE = "MoonsightingCommittee"
    NORTH_AMERICA = "NorthAmerica"
    KUWAIT = "Kuwait"
    QATAR = "Qatar"
    SINGAPORE = "Singapore"
    TEHRAN = "Tehran"
    TURKEY = "Turkey"


class AsrRule(str, Enum):
    STANDARD = "Standard"
    HANAFI = "Hanafi"


class TravelOverride(str, Enum):
    AUTO = "auto"
    FORCE_ON = "force_on"
    FORCE_OFF = "force_off"


class CombinePair(str, Enum):
    DHUHR_ASR = "dhuhr_asr"
    MAGHRIB_ISHA = "maghrib_isha"


class EventKind(str, Enum):
    REMINDER = "reminder"
    AT_TIME = "at_time"


@dataclass(frozen=True, slots=True)
class Coordinates:
    """A WGS84-ish position in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class HomeBase:
    """User-pinned reference location for travel distance."""

    coordinates: Coordinates
    name: str
    country_code: str | None = None


@dataclass(frozen=True, slots=True)
class SavedLocation:
    coordinates: Coordinates
    name: str
    saved_at: datetime
    country_code: str | None = None


@dataclass(frozen=True, slots=True)
class TravelSettings:
    """Persisted travel-mode settings.

    Attributes:
        enabled: Master switch for travel detection.
        home_base: Reference location; ``None`` means travel detection is off.
        override: ``auto`` follows distance, ``force_on``/``force_off`` ignore it.
        distance_threshold_km: Distance from home at which travel begins.
        combine_dhuhr_asr: Combine Dhuhr and Asr while traveling.
        combine_maghrib_isha: Combine Maghrib and Isha while traveling.
        max_travel_days: 0 means unlimited, otherwise travel effects expire after this many days.
        travel_start_date: Local date travel began (set on confirm / force on).
        auto_confirmed: User accepted an automatic travel detection. Only meaningful for ``auto``.
    """

    enabled: bool = False
    home_base: HomeBase | None = None
    override: TravelOverride = TravelOverride.AUTO
    distance_threshold_km: float = DEFAULT_DISTANCE_THRESHOLD_KM
    combine_dhuhr_asr: bool = False
    combine_maghrib_isha: bool = False
    max_travel_days: int = 0
    travel_start_date: date | None = None
    auto_confirmed: bool = False


@dataclass(frozen=True, slots=True)
class ShortenedPrayers:
    dhuhr: bool = False
    asr: bool = False
    isha: bool = False

    def for_prayer(self, prayer: Prayer) -> bool:
        if prayer is Prayer.DHUHR:
            return self.dhuhr
        if prayer is Prayer.ASR:
            return self.asr
        if prayer is Prayer.ISHA:
            return self.isha
        return False


@dataclass(frozen=True, slots=True)
class ReminderSpec:
    """Per-prayer notification preferences."""

    prayer: Prayer
    reminder_minutes_before: int = 15
    notify_at_prayer_time: bool = True
    sound: str = "default"
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class NotificationSettings:
    enabled: bool = True
    default_sound: str = "default"
    default_reminder_minutes: int = 15
    prayers: dict[Prayer, ReminderSpec] = field(default_factory=lambda: default_reminder_specs())

    def spec_for(self, prayer: Prayer) -> ReminderSpec:
        return self.prayers.get(prayer) or ReminderSpec(prayer=prayer)


def default_reminder_specs() -> dict[Prayer, ReminderSpec]:
    """Fajr defaults to the Fajr adhan, Sunrise is off, everything else is a plain reminder."""

    specs = {p: ReminderSpec(prayer=p) for p in Prayer}
    specs[Prayer.FAJR] = ReminderSpec(prayer=Prayer.FAJR, sound="adhan_fajr")
    specs[Prayer.SUNRISE] = ReminderSpec(prayer=Prayer.SUNRISE, enabled=False)
    return specs


@dataclass(frozen=True, slots=True)
class JumuahTime:
    khutbah: str
    iqamah: str


@dataclass(frozen=True, slots=True)
class JumuahSettings:
    """Friday congregational prayer settings. A masjid may hold several sessions."""

    enabled: bool = False
    masjid_name: str = ""
    times: tuple[JumuahTime, ...] = (JumuahTime(khutbah="13:00", iqamah="13:30"),)
    reminder_minutes: int = 30


@dataclass(frozen=True, slots=True)
class AthanFile:
    id: str
    muezzin_name: str
    title: str
    filename: str
    duration: str = ""
    source_url: str = ""
    downloaded_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class AthanSettings:
    """Downloaded adhan recordings and the notification channels bound to them."""

    downloaded_athans: tuple[AthanFile, ...] = ()
    selected_athan_id: str | None = None
    selected_fajr_athan_id: str | None = None
    current_channel_id: str | None = None
    current_fajr_channel_id: str | None = None


@dataclass(frozen=True, slots=True)
class AppSettings:
    """The single persisted settings blob."""

    calculation_method: CalculationMethod = CalculationMethod.NORTH_AMERICA
    asr_rule: AsrRule = AsrRule.STANDARD
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    jumuah: JumuahSettings = field(default_factory=JumuahSettings)
    travel: TravelSettings = field(default_factory=TravelSettings)
    athan: AthanSettings = field(default_factory=AthanSettings)
    previous_locations: tuple[SavedLocation, ...] = ()
    distance_unit: str = "miles"


@dataclass(frozen=True, slots=True)
class PrayerInstant:
    """One entry of a prayer-time source's daily output."""

    prayer: Prayer
    instant: datetime


@dataclass(frozen=True, slots=True)
class ScheduledEvent:
    """A materialized reminder handed to the scheduling service.

    Note:
        ``fires_at`` is always timezone-aware UTC.
    """

    id: int
    prayer: Prayer
    day_offset: int
    kind: EventKind
    fires_at: datetime
    title: str
    body: str
    sound: str = "default"
    channel_id: str | None = None


@dataclass(frozen=True, slots=True)
class WeeklyEvent:
    id: int
    week_offset: int
    slot_index: int
    fires_at: datetime
    title: str
    body: str
    sound: str = "default"
    channel_id: str | None = None


@dataclass(frozen=True, slots=True)
class PendingNotification:
    """What the scheduling service reports as still outstanding."""

    id: int
    fires_at: datetime
