"""
Shared fixtures for the geofeed test suite.

This conftest provides:
- A clean settings cache / environment for every test
- Sample stream-gauge CSV files written to ``tmp_path``
- GeoJSON and Esri JSON feature-service payloads
- A ``make_client`` helper wiring ``httpx.MockTransport`` into the client
"""
from __future__ import annotations

import os
import socket
from pathlib import Path
from typing import Callable

import httpx
import pytest

from geofeed.config import get_settings
from geofeed.services.feature_query import RemoteFeatureQueryClient


# ---------------------------------------------------------------------------
# Isolation from the host environment
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    for key in list(os.environ):
        if key.startswith("GEOFEED_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------
STREAM_GAUGE_CSV = """\
SOURCE_FEA,LON_SITE,LAT_SITE,AVE,DA_SQ_MILE,STATE
14105700,-121.1722,45.6075,191900.0,237000.0,OR
14138800,-122.0157,45.484,108.0,8.1,OR
14191000,-123.0431,44.9443,23470.0,7280.0,OR
14211720,-122.667,45.5175,33110.0,11100.0,OR
14206950,-122.7418,45.4276,6.3,1.76,OR
"""

GAUGE_COLUMN_MAP = {
    "ID": "SOURCE_FEA",
    "LON_SITE": "LON_SITE",
    "LAT_SITE": "LAT_SITE",
    "MeanFlowCFS": "AVE",
    "DrainAreaSqMiles": "DA_SQ_MILE",
}

LARGE_BASIN_IDS = [14105700, 14191000, 14211720]

WATER_BODIES_BASE_URL = "https://services.arcgis.com/X/arcgis/rest/services"
WATER_BODIES_PATH = "USA_Water_Bodies/FeatureServer/0/query"

TWO_FEATURE_GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "id": 1,
            "geometry": {"type": "Point", "coordinates": [-121.1722, 45.6075]},
            "properties": {"NAME": "Columbia River", "STATE": "OR"},
        },
        {
            "type": "Feature",
            "id": 2,
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-122.0, 44.0], [-121.0, 44.0], [-121.0, 45.0], [-122.0, 45.0], [-122.0, 44.0]]],
            },
            "properties": {"NAME": "Detroit Lake", "STATE": "OR"},
        },
    ],
}

ESRI_POINTS = {
    "objectIdFieldName": "OBJECTID",
    "geometryType": "esriGeometryPoint",
    "spatialReference": {"wkid": 4269, "latestWkid": 4269},
    "features": [
        {"attributes": {"OBJECTID": 7, "NAME": "Bonneville"}, "geometry": {"x": -121.94, "y": 45.64}},
        {"attributes": {"OBJECTID": 8, "NAME": "The Dalles"}, "geometry": {"x": -121.17, "y": 45.61}},
    ],
}


@pytest.fixture()
def write_csv(tmp_path) -> Callable[[str, str], Path]:
    """Write ``text`` to ``tmp_path/name`` and return the path."""

    def _write(text: str, name: str = "data.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def gauge_csv(write_csv) -> Path:
    return write_csv(STREAM_GAUGE_CSV, "gauges.csv")


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
def make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> RemoteFeatureQueryClient:
    """Return a client whose requests are answered by ``handler``."""
    return RemoteFeatureQueryClient(transport=httpx.MockTransport(handler), **kwargs)


@pytest.fixture()
def silent_server():
    """Port of a local socket that accepts connections but never answers."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(8)
        yield sock.getsockname()[1]


def json_handler(payload, status_code: int = 200, seen: list | None = None):
    """Handler answering every request with ``payload``; records requests in ``seen``."""

    def _handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return _handler
