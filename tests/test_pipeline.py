"""
Tests for geofeed.pipeline — end-to-end composition.
"""
from __future__ import annotations

import pytest

from geofeed.exceptions import CRSMismatch, InvalidCoordinate
from geofeed.pipeline import load_point_features, merge_collections
from geofeed.schemas.query import QuerySpec
from geofeed.services.parsers import parse_esri_json, parse_geojson
from tests.conftest import (
    ESRI_POINTS,
    GAUGE_COLUMN_MAP,
    LARGE_BASIN_IDS,
    TWO_FEATURE_GEOJSON,
    json_handler,
    make_client,
)


class TestLoadPointFeatures:
    def test_gauge_scenario(self, gauge_csv):
        fc = load_point_features(
            gauge_csv,
            "LON_SITE",
            "LAT_SITE",
            column_map=GAUGE_COLUMN_MAP,
            where="DrainAreaSqMiles > 500",
            crs=4269,
        )
        assert fc.crs == 4269
        assert [f.attributes["ID"] for f in fc] == LARGE_BASIN_IDS
        assert all(f.geom_type == "Point" and f.crs == 4269 for f in fc)
        assert (fc[0].x, fc[0].y) == (-121.1722, 45.6075)

    def test_drop_coordinates(self, gauge_csv):
        fc = load_point_features(
            gauge_csv, "LON_SITE", "LAT_SITE",
            column_map=GAUGE_COLUMN_MAP, keep_coordinates=False,
        )
        assert list(fc[0].attributes) == ["ID", "MeanFlowCFS", "DrainAreaSqMiles"]

    def test_bad_coordinate_row(self, write_csv):
        path = write_csv("id,lon,lat\n1,-121.0,45.0\n2,,45.0\n")
        with pytest.raises(InvalidCoordinate):
            load_point_features(path, "lon", "lat")
        fc = load_point_features(path, "lon", "lat", skip_invalid_rows=True)
        assert [f.attributes["id"] for f in fc] == [1]


class TestMergeCollections:
    def test_reprojects_to_first_crs(self):
        geojson = parse_geojson(TWO_FEATURE_GEOJSON)
        esri = parse_esri_json(ESRI_POINTS)
        merged = merge_collections(geojson, esri)

        assert merged.crs == 4326
        assert len(merged) == 4
        assert all(f.crs == 4326 for f in merged)
        assert [f.id for f in merged] == [1, 2, 7, 8]
        # NAD83 and WGS84 agree to within a few metres here.
        assert merged[2].x == pytest.approx(-121.94, abs=1e-4)

    def test_explicit_target_crs(self):
        merged = merge_collections(parse_geojson(TWO_FEATURE_GEOJSON), crs=3857)
        assert merged.crs == 3857
        assert abs(merged[0].x) > 1e7

    def test_single_collection_is_unchanged(self):
        fc = parse_geojson(TWO_FEATURE_GEOJSON)
        assert list(merge_collections(fc)) == list(fc)

    def test_requires_a_collection(self):
        with pytest.raises(ValueError):
            merge_collections()

    def test_union_without_reprojection_is_refused(self):
        with pytest.raises(CRSMismatch):
            parse_geojson(TWO_FEATURE_GEOJSON).union(parse_esri_json(ESRI_POINTS))

    def test_csv_and_remote_layers(self, gauge_csv):
        gauges = load_point_features(
            gauge_csv, "LON_SITE", "LAT_SITE", column_map=GAUGE_COLUMN_MAP, crs=4269,
        )
        water = make_client(json_handler(TWO_FEATURE_GEOJSON)).query(
            QuerySpec(
                base_url="https://services.arcgis.com/X/arcgis/rest/services",
                resource_path="USA_Water_Bodies/FeatureServer/0/query",
            )
        )
        merged = merge_collections(water, gauges)
        assert merged.crs == 4326
        assert len(merged) == 2 + 5
