"""Notification ID allocation.

Every scheduler builds and decodes IDs through this module only, because the
full-cancel step finds "our" pending notifications by ID band.

Layout:
    - prayer bands 100..699: ``100 * (index + 1) + day_offset * 10 + kind``
      where index follows ``Prayer`` order (fajr=1 .. isha=6) and kind is
      0 for the reminder, 1 for the at-time notification.
    - weekly band 700..799: ``700 + week_offset * 10 + slot_index``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from prayer_reminder.models import EventKind, Prayer

BAND_WIDTH: Final[int] = 100
SLOT_STRIDE: Final[int] = 10
WEEKLY_BASE_ID: Final[int] = 700

PRAYER_ORDER: Final[tuple[Prayer, ...]] = tuple(Prayer)
PRAYER_BASE_IDS: Final[dict[Prayer, int]] = {p: BAND_WIDTH * (i + 1) for i, p in enumerate(PRAYER_ORDER)}
MAX_DAY_OFFSET: Final[int] = BAND_WIDTH // SLOT_STRIDE - 1
MAX_WEEK_OFFSET: Final[int] = BAND_WIDTH // SLOT_STRIDE - 1
MAX_SLOT_INDEX: Final[int] = SLOT_STRIDE - 1

_KIND_OFFSET: Final[dict[EventKind, int]] = {EventKind.REMINDER: 0, EventKind.AT_TIME: 1}
_OFFSET_KIND: Final[dict[int, EventKind]] = {v: k for k, v in _KIND_OFFSET.items()}


@dataclass(frozen=True, slots=True)
class PrayerEventKey:
    prayer: Prayer
    day_offset: int
    kind: EventKind


@dataclass(frozen=True, slots=True)
class WeeklyEventKey:
    week_offset: int
    slot_index: int


def prayer_event_id(prayer: Prayer, day_offset: int, kind: EventKind) -> int:
    """Allocate the ID for one prayer event.

    Raises:
        ValueError: If ``day_offset`` would spill into the next band.
    """

    if not 0 <= day_offset <= MAX_DAY_OFFSET:
        raise ValueError(f"day_offset must be within 0..{MAX_DAY_OFFSET}, got {day_offset}")
    return PRAYER_BASE_IDS[prayer] + day_offset * SLOT_STRIDE + _KIND_OFFSET[kind]


def weekly_event_id(week_offset: int, slot_index: int) -> int:
    """Allocate the ID for one weekly (Jumu'ah) event.

    Raises:
        ValueError: If either index would leave the weekly band.
    """

    if not 0 <= week_offset <= MAX_WEEK_OFFSET:
        raise ValueError(f"week_offset must be within 0..{MAX_WEEK_OFFSET}, got {week_offset}")
    if not 0 <= slot_index <= MAX_SLOT_INDEX:
        raise ValueError(f"slot_index must be within 0..{MAX_SLOT_INDEX}, got {slot_index}")
    return WEEKLY_BASE_ID + week_offset * SLOT_STRIDE + slot_index


def decode_prayer_event_id(event_id: int) -> PrayerEventKey | None:
    """Inverse of ``prayer_event_id``; ``None`` for IDs outside the prayer bands."""

    band, rest = divmod(event_id, BAND_WIDTH)
    if not 1 <= band <= len(PRAYER_ORDER):
        return None
    day_offset, kind_offset = divmod(rest, SLOT_STRIDE)
    kind = _OFFSET_KIND.get(kind_offset)
    if kind is None:
        return None
    return PrayerEventKey(prayer=PRAYER_ORDER[band - 1], day_offset=day_offset, kind=kind)


def decode_weekly_event_id(event_id: int) -> WeeklyEventKey | None:
    if not WEEKLY_BASE_ID <= event_id < WEEKLY_BASE_ID + BAND_WIDTH:
        return None
    week_offset, slot_index = divmod(event_id - WEEKLY_BASE_ID, SLOT_STRIDE)
    return WeeklyEventKey(week_offset=week_offset, slot_index=slot_index)


def prayer_for_event_id(event_id: int) -> Prayer | None:
    """Which prayer a tapped notification belongs to (band only)."""

    band = event_id // BAND_WIDTH
    if 1 <= band <= len(PRAYER_ORDER):
        return PRAYER_ORDER[band - 1]
    return None


def is_prayer_event_id(event_id: int) -> bool:
    return PRAYER_BASE_IDS[PRAYER_ORDER[0]] <= event_id < WEEKLY_BASE_ID


def is_weekly_event_id(event_id: int) -> bool:
    return decode_weekly_event_id(event_id) is not None
