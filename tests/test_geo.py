from __future__ import annotations

import pytest

from conftest import HOME, NEAR_HOME, PHILADELPHIA
from prayer_reminder.geo import distance_km, format_distance, haversine_km, is_within_radius, km_to_miles
from prayer_reminder.models import Coordinates


def test_distance_to_self_is_zero():
    assert distance_km(HOME, HOME) == 0.0


def test_distance_is_symmetric():
    assert distance_km(HOME, PHILADELPHIA) == pytest.approx(distance_km(PHILADELPHIA, HOME))


def test_known_city_distance():
    assert distance_km(HOME, PHILADELPHIA) == pytest.approx(129.6, abs=2.0)
    assert distance_km(HOME, NEAR_HOME) < 20.0


def test_one_degree_of_latitude():
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.05)


def test_antimeridian_is_short():
    a = Coordinates(0.0, 179.9)
    b = Coordinates(0.0, -179.9)
    assert distance_km(a, b) == pytest.approx(22.24, abs=0.05)


def test_is_within_radius_is_strict():
    d = distance_km(HOME, PHILADELPHIA)
    assert not is_within_radius(PHILADELPHIA, HOME, d)
    assert is_within_radius(PHILADELPHIA, HOME, d + 0.001)


def test_format_distance():
    assert km_to_miles(100.0) == pytest.approx(62.1371)
    assert format_distance(100.0, "km") == "100 km"
    assert format_distance(100.0, "miles") == "62 mi"
