"""
Tests for geofeed.spatial.crs — EPSG registry lookups and name parsing.
"""
from __future__ import annotations

import math

import pytest

from geofeed.exceptions import UnknownCRS
from geofeed.spatial.crs import (
    coordinates_in_range,
    epsg_from_esri,
    epsg_from_name,
    is_geographic,
    is_latitude_first,
    resolve_crs,
    transformer,
    validate_crs,
)


class TestResolveCrs:
    @pytest.mark.parametrize("code", [4326, 4269, 3857, 26910])
    def test_known_codes(self, code):
        assert resolve_crs(code).to_epsg() == code

    @pytest.mark.parametrize("code", [0, -4326, 999999])
    def test_unknown_codes(self, code):
        with pytest.raises(UnknownCRS):
            resolve_crs(code)

    @pytest.mark.parametrize("code", ["4326", 4326.0, True, None])
    def test_non_integer_codes(self, code):
        with pytest.raises(UnknownCRS):
            resolve_crs(code)

    def test_validate_returns_code(self):
        assert validate_crs(4269) == 4269

    def test_unknown_crs_is_value_error(self):
        with pytest.raises(ValueError):
            validate_crs(-1)


class TestCrsProperties:
    @pytest.mark.parametrize("code,expected", [(4326, True), (4269, True), (3857, False)])
    def test_is_geographic(self, code, expected):
        assert is_geographic(code) is expected

    @pytest.mark.parametrize("code,expected", [(4326, True), (4269, True), (3857, False)])
    def test_is_latitude_first(self, code, expected):
        assert is_latitude_first(code) is expected


class TestCoordinatesInRange:
    @pytest.mark.parametrize("x,y,ok", [
        (-121.17, 45.6, True),
        (180.0, 90.0, True),        # Inclusive upper bounds
        (-180.0, -90.0, True),      # Inclusive lower bounds
        (180.1, 0.0, False),
        (0.0, -90.5, False),
        (45.6, -121.17, False),     # Swapped lon/lat
        (math.nan, 0.0, False),
        (0.0, math.inf, False),
    ])
    def test_geographic(self, x, y, ok):
        assert coordinates_in_range(4269, x, y) is ok

    def test_projected_only_needs_finite(self):
        assert coordinates_in_range(3857, -13_488_000.0, 5_715_000.0) is True
        assert coordinates_in_range(3857, math.inf, 0.0) is False


class TestEsriSpatialReference:
    def test_latest_wkid_wins(self):
        assert epsg_from_esri({"wkid": 102100, "latestWkid": 3857}) == 3857

    def test_legacy_web_mercator_alias(self):
        assert epsg_from_esri({"wkid": 102100}) == 3857

    def test_plain_wkid(self):
        assert epsg_from_esri({"wkid": 4269}) == 4269

    @pytest.mark.parametrize("sr", [None, {}, {"wkt": "GEOGCS[...]"}])
    def test_missing(self, sr):
        assert epsg_from_esri(sr) is None

    def test_garbage_wkid(self):
        with pytest.raises(UnknownCRS):
            epsg_from_esri({"wkid": "abc"})

    @pytest.mark.parametrize("sr", [4326, "EPSG:4326", [4326]])
    def test_non_object_spatial_reference(self, sr):
        with pytest.raises(UnknownCRS):
            epsg_from_esri(sr)


class TestEpsgFromName:
    @pytest.mark.parametrize("name,expected", [
        ("EPSG:4269", 4269),
        ("epsg:3857", 3857),
        ("urn:ogc:def:crs:EPSG::4269", 4269),
        ("urn:ogc:def:crs:OGC:1.3:CRS84", 4326),
        ("CRS84", 4326),
    ])
    def test_parses(self, name, expected):
        assert epsg_from_name(name) == expected

    def test_unparseable(self):
        with pytest.raises(UnknownCRS):
            epsg_from_name("NAD83 / UTM zone 10N")


class TestTransformer:
    def test_lon_lat_order(self):
        x, y = transformer(4326, 3857).transform(0.0, 0.0)
        assert abs(x) < 1e-6 and abs(y) < 1e-6

    def test_round_trip(self):
        fwd = transformer(4326, 3857)
        back = transformer(3857, 4326)
        lon, lat = back.transform(*fwd.transform(-121.17, 45.6))
        assert math.isclose(lon, -121.17, abs_tol=1e-9)
        assert math.isclose(lat, 45.6, abs_tol=1e-9)

    def test_cached(self):
        assert transformer(4326, 3857) is transformer(4326, 3857)
