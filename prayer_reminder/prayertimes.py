"""Default prayer-time source backed by adhanpy.

The schedulers accept any callable with the ``PrayerTimesFn`` signature; this
one is what the CLI and dashboard use.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Final

from adhanpy.calculation import CalculationMethod as AdhanMethod
from adhanpy.calculation.CalculationParameters import CalculationParameters
from adhanpy.calculation.Madhab import Madhab
from adhanpy.PrayerTimes import PrayerTimes

from prayer_reminder.models import AsrRule, CalculationMethod, Coordinates, Prayer, PrayerInstant
from prayer_reminder.timeutils import tzinfo_from_name

logger = logging.getLogger(__name__)

_METHOD_NAMES: Final[dict[CalculationMethod, str]] = {
    CalculationMethod.MUSLIM_WORLD_LEAGUE: "MUSLIM_WORLD_LEAGUE",
    CalculationMethod.EGYPTIAN: "EGYPTIAN",
    CalculationMethod.KARACHI: "KARACHI",
    CalculationMethod.UMM_AL_QURA: "UMM_AL_QURA",
    CalculationMethod.DUBAI: "DUBAI",
    CalculationMethod.MOONSIGHTING_COMMITTEE: "MOON_SIGHTING_COMMITTEE",
    CalculationMethod.NORTH_AMERICA: "NORTH_AMERICA",
    CalculationMethod.KUWAIT: "KUWAIT",
    CalculationMethod.QATAR: "QATAR",
    CalculationMethod.SINGAPORE: "SINGAPORE",
    CalculationMethod.TEHRAN: "TEHRAN",
    CalculationMethod.TURKEY: "TURKEY",
}


def adhan_method(method: CalculationMethod) -> AdhanMethod:
    """Map our method name onto adhanpy's enum.

    Methods this adhanpy release does not know fall back to Muslim World League.
    """

    found = getattr(AdhanMethod, _METHOD_NAMES[method], None)
    if found is None:
        logger.warning("adhanpy has no %s method, using MUSLIM_WORLD_LEAGUE", method.value)
        return AdhanMethod.MUSLIM_WORLD_LEAGUE
    return found


class AdhanPrayerTimes:
    """``PrayerTimesFn`` implementation; instants come out aware in ``tz_name``."""

    def __init__(self, tz_name: str) -> None:
        self._tz = tzinfo_from_name(tz_name)

    def __call__(
        self,
        coordinates: Coordinates,
        day: date,
        method: CalculationMethod,
        asr_rule: AsrRule,
    ) -> list[PrayerInstant]:
        params = CalculationParameters(method=adhan_method(method))
        params.madhab = Madhab.HANAFI if asr_rule is AsrRule.HANAFI else Madhab.SHAFI
        pt = PrayerTimes(
            (coordinates.latitude, coordinates.longitude),
            datetime(day.year, day.month, day.day),
            calculation_parameters=params,
            time_zone=self._tz,
        )
        return [
            PrayerInstant(Prayer.FAJR, pt.fajr),
            PrayerInstant(Prayer.SUNRISE, pt.sunrise),
            PrayerInstant(Prayer.DHUHR, pt.dhuhr),
            PrayerInstant(Prayer.ASR, pt.asr),
            PrayerInstant(Prayer.MAGHRIB, pt.maghrib),
            PrayerInstant(Prayer.ISHA, pt.isha),
        ]
