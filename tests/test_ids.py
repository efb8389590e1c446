from __future__ import annotations

import pytest

from prayer_reminder.ids import (
    decode_prayer_event_id,
    decode_weekly_event_id,
    is_prayer_event_id,
    is_weekly_event_id,
    prayer_event_id,
    prayer_for_event_id,
    weekly_event_id,
)
from prayer_reminder.models import EventKind, Prayer


def test_prayer_ids_follow_band_layout():
    assert prayer_event_id(Prayer.FAJR, 0, EventKind.REMINDER) == 100
    assert prayer_event_id(Prayer.FAJR, 0, EventKind.AT_TIME) == 101
    assert prayer_event_id(Prayer.DHUHR, 3, EventKind.AT_TIME) == 331
    assert prayer_event_id(Prayer.ISHA, 9, EventKind.AT_TIME) == 691


def test_weekly_ids():
    assert weekly_event_id(0, 0) == 700
    assert weekly_event_id(3, 1) == 731


def test_out_of_band_offsets_rejected():
    with pytest.raises(ValueError):
        prayer_event_id(Prayer.FAJR, 10, EventKind.REMINDER)
    with pytest.raises(ValueError):
        weekly_event_id(10, 0)
    with pytest.raises(ValueError):
        weekly_event_id(0, 10)


def test_decode_prayer_id():
    key = decode_prayer_event_id(541)
    assert key is not None
    assert (key.prayer, key.day_offset, key.kind) == (Prayer.MAGHRIB, 4, EventKind.AT_TIME)
    assert decode_prayer_event_id(705) is None
    assert decode_prayer_event_id(42) is None
    assert decode_prayer_event_id(105) is None


def test_decode_weekly_id():
    key = decode_weekly_event_id(712)
    assert key is not None
    assert (key.week_offset, key.slot_index) == (1, 2)
    assert decode_weekly_event_id(699) is None


def test_band_membership_is_disjoint():
    assert is_prayer_event_id(100) and is_prayer_event_id(699)
    assert not is_prayer_event_id(700)
    assert is_weekly_event_id(700) and is_weekly_event_id(799)
    assert not is_weekly_event_id(800)


def test_prayer_for_event_id():
    assert prayer_for_event_id(430) is Prayer.ASR
    assert prayer_for_event_id(720) is None
