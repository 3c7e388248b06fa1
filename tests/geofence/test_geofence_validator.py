from __future__ import annotations

import math

import pytest

from src.presence_system.presence_system.geofence.model import Coordinates
from src.presence_system.presence_system.geofence.validator import haversine_distance, validate

ANCHOR = Coordinates(latitude=0.0, longitude=0.0)


def north_of_anchor(meters: float) -> Coordinates:
    return Coordinates(latitude=math.degrees(meters / 6_371_000), longitude=0.0)


def test_distance_along_meridian_matches_arc_length():
    assert haversine_distance(ANCHOR, north_of_anchor(49)) == pytest.approx(49, abs=1e-6)


def test_known_city_distance():
    paris = Coordinates(latitude=48.8566, longitude=2.3522)
    london = Coordinates(latitude=51.5074, longitude=-0.1278)
    assert haversine_distance(paris, london) == pytest.approx(343_500, rel=0.01)


def test_distance_equal_to_radius_is_inside():
    subject = north_of_anchor(50)
    distance = haversine_distance(subject, ANCHOR)
    result = validate(subject, ANCHOR, distance)
    assert result.within_radius is True
    assert result.distance_meters == distance


def test_distance_just_over_radius_is_outside():
    subject = north_of_anchor(50)
    distance = haversine_distance(subject, ANCHOR)
    assert validate(subject, ANCHOR, distance - 1e-6).within_radius is False


def test_missing_coordinates_fail_closed():
    result = validate(None, ANCHOR, 1_000_000)
    assert result.within_radius is False
    assert result.distance_meters is None


def test_coordinates_from_mapping_validates_ranges():
    from src.presence_system.presence_system.core.exceptions import ValidationError

    assert Coordinates.from_mapping({"latitude": "10.5", "longitude": 20}) == Coordinates(10.5, 20.0)
    assert Coordinates.from_mapping({"latitude": None, "longitude": 1}) is None
    assert Coordinates.from_mapping(None) is None
    with pytest.raises(ValidationError):
        Coordinates.from_mapping({"latitude": 91, "longitude": 0})
