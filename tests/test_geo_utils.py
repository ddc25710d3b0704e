"""
Tests for geospatial utilities
"""
import math
import pytest

import sys
sys.path.insert(0, '.')

from src.core.geo_utils import (
    EARTH_RADIUS_KM,
    haversine_distance,
    meters_to_km,
    is_valid_coordinate,
)


class TestHaversineDistance:
    """Test suite for great-circle distance."""

    def test_same_point_is_zero(self):
        """Distance from a point to itself is zero."""
        assert haversine_distance(-23.5505, -46.6333, -23.5505, -46.6333) == 0.0

    def test_symmetry(self):
        """d(a, b) == d(b, a)."""
        a = (-23.5505, -46.6333)
        b = (-22.9068, -43.1729)
        assert haversine_distance(*a, *b) == haversine_distance(*b, *a)

    def test_one_degree_of_latitude(self):
        """One degree along a meridian is about 111.19 km."""
        distance = haversine_distance(0.0, 0.0, 1.0, 0.0)
        assert distance == pytest.approx(math.pi * EARTH_RADIUS_KM / 180, rel=1e-9)

    def test_sao_paulo_to_rio(self):
        """Known city pair is roughly 360 km apart."""
        distance = haversine_distance(-23.5505, -46.6333, -22.9068, -43.1729)
        assert 350 < distance < 365

    def test_antipodal_points(self):
        """Antipodal points are half the circumference apart."""
        distance = haversine_distance(0.0, 0.0, 0.0, 180.0)
        assert distance == pytest.approx(math.pi * EARTH_RADIUS_KM, rel=1e-9)

    def test_short_distance(self):
        """A 150 m offset is measured in the right order of magnitude."""
        distance = haversine_distance(-23.5505, -46.6333, -23.54915, -46.6333)
        assert 0.14 < distance < 0.16


class TestCoordinateHelpers:
    """Test suite for coordinate helpers."""

    def test_meters_to_km(self):
        assert meters_to_km(300) == 0.3
        assert meters_to_km(0) == 0.0

    @pytest.mark.parametrize("lat,lon", [
        (0, 0),
        (90, 180),
        (-90, -180),
        (-23.5505, -46.6333),
    ])
    def test_valid_coordinates(self, lat, lon):
        assert is_valid_coordinate(lat, lon)

    @pytest.mark.parametrize("lat,lon", [
        (90.0001, 0),
        (-91, 0),
        (0, 180.5),
        (0, -181),
        (None, 0),
        (0, None),
        (float("nan"), 0),
    ])
    def test_invalid_coordinates(self, lat, lon):
        assert not is_valid_coordinate(lat, lon)
