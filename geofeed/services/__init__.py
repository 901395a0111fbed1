"""Services subpackage — tabular loading and remote feature queries."""

from geofeed.services.feature_query import RemoteFeatureQueryClient
from geofeed.services.loader import load
from geofeed.services.parsers import parse_esri_json, parse_geojson, parse_response

__all__ = [
    "RemoteFeatureQueryClient",
    "load",
    "parse_esri_json",
    "parse_geojson",
    "parse_response",
]
