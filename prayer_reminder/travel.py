"""Travel (geofence) state machine.

Travel status is never stored. ``evaluate_travel`` re-derives it from the
persisted ``TravelSettings``, the current location and the in-memory
``TravelSession`` each time it is read. The only data-driven mutation is the
auto-reset applied by ``observe_location`` when the user comes back home.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum

from prayer_reminder.geo import distance_km
from prayer_reminder.models import (
    CombinePair,
    Coordinates,
    HomeBase,
    ShortenedPrayers,
    TravelOverride,
    TravelSettings,
)
from prayer_reminder.timeutils import elapsed_since_local_midnight

logger = logging.getLogger(__name__)


class TravelState(str, Enum):
    OFF = "off"
    FORCED_OFF = "forced_off"
    FORCED_ON = "forced_on"
    MONITORING = "monitoring"
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED_TRAVELING = "confirmed_traveling"
    EXPIRED_BY_DURATION = "expired_by_duration"


@dataclass(frozen=True, slots=True)
class TravelStatus:
    """Derived travel status. Replaced on every evaluation, never mutated."""

    state: TravelState
    is_traveling: bool
    travel_pending: bool
    distance_from_home_km: float | None
    is_auto_detected: bool
    shortened_prayers: ShortenedPrayers
    combine_dhuhr_asr: bool
    combine_maghrib_isha: bool


@dataclass(frozen=True, slots=True)
class TravelSession:
    """Process-lifetime state that is deliberately not persisted.

    Attributes:
        dismissed: The user dismissed the travel prompt in this session.
        previous_distance_km: Distance seen by the previous location update,
            used to detect the "returned home" edge.
    """

    dismissed: bool = False
    previous_distance_km: float | None = None


_NO_SHORTENING = ShortenedPrayers()
_ALL_SHORTENED = ShortenedPrayers(dhuhr=True, asr=True, isha=True)


def _not_traveling(state: TravelState, distance: float | None, *, pending: bool = False) -> TravelStatus:
    return TravelStatus(
        state=state,
        is_traveling=False,
        travel_pending=pending,
        distance_from_home_km=distance,
        is_auto_detected=False,
        shortened_prayers=_NO_SHORTENING,
        combine_dhuhr_asr=False,
        combine_maghrib_isha=False,
    )


def _traveling(state: TravelState, distance: float, settings: TravelSettings, *, auto: bool) -> TravelStatus:
    return TravelStatus(
        state=state,
        is_traveling=True,
        travel_pending=False,
        distance_from_home_km=distance,
        is_auto_detected=auto,
        shortened_prayers=_ALL_SHORTENED,
        combine_dhuhr_asr=settings.combine_dhuhr_asr,
        combine_maghrib_isha=settings.combine_maghrib_isha,
    )


def is_travel_expired(settings: TravelSettings, now: datetime) -> bool:
    """Whether more than ``max_travel_days`` have elapsed since the start date began.

    Elapsed time is measured from local midnight of ``travel_start_date`` and
    compared as a duration, so expiry can land part-way through a day.
    """

    if settings.max_travel_days <= 0 or settings.travel_start_date is None:
        return False
    elapsed = elapsed_since_local_midnight(settings.travel_start_date, now)
    return elapsed > timedelta(days=settings.max_travel_days)


def evaluate_travel(
    settings: TravelSettings,
    location: Coordinates,
    session: TravelSession,
    now: datetime,
) -> TravelStatus:
    """Derive the travel status.

    Args:
        settings: Persisted travel settings.
        location: Current location.
        session: In-memory session state (only ``dismissed`` is read here).
        now: Current time, used for duration expiry.

    Returns:
        A fresh TravelStatus. This function is total and never raises.
    """

    if not settings.enabled or settings.home_base is None:
        return _not_traveling(TravelState.OFF, None)

    distance = distance_km(settings.home_base.coordinates, location)

    if settings.override is TravelOverride.FORCE_OFF:
        return _not_traveling(TravelState.FORCED_OFF, distance)

    if settings.override is TravelOverride.FORCE_ON:
        if is_travel_expired(settings, now):
            return _not_traveling(TravelState.EXPIRED_BY_DURATION, distance)
        return _traveling(TravelState.FORCED_ON, distance, settings, auto=False)

    if distance < settings.distance_threshold_km:
        return _not_traveling(TravelState.MONITORING, distance)

    if settings.auto_confirmed:
        if is_travel_expired(settings, now):
            return _not_traveling(TravelState.EXPIRED_BY_DURATION, distance)
        return _traveling(TravelState.CONFIRMED_TRAVELING, distance, settings, auto=True)

    if session.dismissed:
        return _not_traveling(TravelState.MONITORING, distance)
    return _not_traveling(TravelState.PENDING_CONFIRMATION, distance, pending=True)


def observe_location(
    settings: TravelSettings,
    location: Coordinates,
    session: TravelSession,
) -> tuple[TravelSettings, TravelSession]:
    """Apply the returned-home auto-reset for one location update.

    When the previous update was at or beyond the threshold and this one is
    inside it, ``auto_confirmed`` and ``travel_start_date`` are cleared and the
    session's ``dismissed`` flag is reset. The current distance is remembered
    for the next update.
    """

    if not settings.enabled or settings.home_base is None:
        return settings, replace(session, previous_distance_km=None)

    distance = distance_km(settings.home_base.coordinates, location)
    previous = session.previous_distance_km
    threshold = settings.distance_threshold_km
    returned_home = previous is not None and previous >= threshold and distance < threshold

    new_session = replace(session, previous_distance_km=distance)
    if not returned_home:
        return settings, new_session

    new_session = replace(new_session, dismissed=False)
    if settings.auto_confirmed:
        logger.info("Returned within %.1f km of home, clearing confirmed travel", threshold)
        settings = replace(settings, auto_confirmed=False, travel_start_date=None)
    return settings, new_session


def confirm_travel(
    settings: TravelSettings,
    session: TravelSession,
    today: date,
) -> tuple[TravelSettings, TravelSession]:
    """Accept travel; the start date is kept if one is already set."""

    start = settings.travel_start_date or today
    return (
        replace(settings, auto_confirmed=True, travel_start_date=start),
        replace(session, dismissed=False),
    )


def dismiss_travel(session: TravelSession) -> TravelSession:
    """Hide the prompt for this session only."""

    return replace(session, dismissed=True)


def toggle_travel_enabled(settings: TravelSettings) -> TravelSettings:
    """Flip travel detection. Does not touch the start date."""

    return replace(settings, enabled=not settings.enabled)


def set_home_base(settings: TravelSettings, home: HomeBase) -> TravelSettings:
    """Replace the home base used for distance checks."""

    return replace(settings, home_base=home)


def clear_home_base(settings: TravelSettings) -> TravelSettings:
    """Remove the home base and end any confirmed travel."""

    return replace(settings, home_base=None, travel_start_date=None, auto_confirmed=False)


def set_override(settings: TravelSettings, override: TravelOverride, today: date) -> TravelSettings:
    """Set the override; forcing travel on starts the clock if it is not running."""

    if override is TravelOverride.FORCE_ON and settings.travel_start_date is None:
        return replace(settings, override=override, travel_start_date=today)
    return replace(settings, override=override)


def toggle_combine(settings: TravelSettings, pair: CombinePair) -> TravelSettings:
    """Flip one combine-prayers preference."""

    if pair is CombinePair.DHUHR_ASR:
        return replace(settings, combine_dhuhr_asr=not settings.combine_dhuhr_asr)
    return replace(settings, combine_maghrib_isha=not settings.combine_maghrib_isha)


class TravelMonitor:
    """Holds travel settings plus session state for one host process.

    Every mutator replaces ``settings``/``session`` wholesale; ``status`` is
    recomputed from them on each read. Hosts persist ``settings`` themselves.
    """

    def __init__(self, settings: TravelSettings, session: TravelSession | None = None) -> None:
        self.settings = settings
        self.session = session or TravelSession()
        self._last_state: TravelState | None = None

    def status(self, location: Coordinates, now: datetime) -> TravelStatus:
        status = evaluate_travel(self.settings, location, self.session, now)
        if status.state is not self._last_state:
            logger.info(
                "Travel state %s -> %s (distance=%s)",
                self._last_state.value if self._last_state else None,
                status.state.value,
                f"{status.distance_from_home_km:.1f}km" if status.distance_from_home_km is not None else None,
            )
            self._last_state = status.state
        return status

    def observe(self, location: Coordinates, now: datetime) -> TravelStatus:
        """Handle a location update: auto-reset, then re-derive status."""

        self.settings, self.session = observe_location(self.settings, location, self.session)
        return self.status(location, now)

    def confirm(self, today: date) -> None:
        self.settings, self.session = confirm_travel(self.settings, self.session, today)

    def dismiss(self) -> None:
        self.session = dismiss_travel(self.session)

    def toggle_enabled(self) -> None:
        self.settings = toggle_travel_enabled(self.settings)

    def set_home_base(self, home: HomeBase) -> None:
        self.settings = set_home_base(self.settings, home)

    def clear_home_base(self) -> None:
        self.settings = clear_home_base(self.settings)

    def set_override(self, override: TravelOverride, today: date) -> None:
        self.settings = set_override(self.settings, override, today)

    def toggle_combine(self, pair: CombinePair) -> None:
        self.settings = toggle_combine(self.settings, pair)
