"""Unit tests for storyswap.utils.geo."""

from __future__ import annotations

import pytest

from storyswap.utils.geo import bounding_boxes, haversine_m


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_m(13.4, 52.5, 13.4, 52.5) == 0.0

    def test_short_distance_at_equator(self):
        # 0.001 degrees of longitude at the equator is about 111 m.
        assert haversine_m(0.0, 0.0, 0.001, 0.0) == pytest.approx(111.2, abs=0.5)

    def test_distance_across_antimeridian_is_short(self):
        assert haversine_m(179.9999, 0.0, -179.9999, 0.0) == pytest.approx(22.2, abs=0.5)


class TestBoundingBoxes:
    def test_single_box_away_from_antimeridian(self):
        boxes = bounding_boxes(13.4, 52.5, 50)
        assert len(boxes) == 1
        min_lon, max_lon, min_lat, max_lat = boxes[0]
        assert min_lon < 13.4 < max_lon
        assert min_lat < 52.5 < max_lat

    def test_split_when_crossing_east_edge(self):
        boxes = bounding_boxes(179.9999, 0.0, 50)
        assert len(boxes) == 2
        east_part, west_part = boxes
        assert east_part[0] < 179.9999 and east_part[1] == 180.0
        assert west_part[0] == -180.0 and west_part[1] > -180.0
        assert west_part[1] > -179.9999

    def test_split_when_crossing_west_edge(self):
        boxes = bounding_boxes(-179.9999, 0.0, 50)
        assert len(boxes) == 2
        east_part, west_part = boxes
        assert east_part[1] == 180.0 and east_part[0] < 179.9999
        assert west_part[0] == -180.0 and west_part[1] > -179.9999

    def test_wide_radius_near_pole_covers_all_longitudes(self):
        boxes = bounding_boxes(10.0, 89.99, 250_000)
        assert boxes[0][:2] == (-180.0, 180.0)
        assert boxes[0][3] == 90.0
