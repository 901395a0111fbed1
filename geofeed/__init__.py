"""
geofeed — load point tables, promote them to features, query feature services.
"""

from geofeed.exceptions import (
    CRSMismatch,
    GeoFeedError,
    InvalidCoordinate,
    NetworkError,
    NotFound,
    ParseError,
    ResponseParseError,
    SchemaMismatch,
    UnknownCRS,
    UnsupportedFormat,
)
from geofeed.pipeline import load_point_features, merge_collections
from geofeed.schemas import QuerySpec, ResponseFormat, WmsTileLayer, XyzTileLayer
from geofeed.services import RemoteFeatureQueryClient, load
from geofeed.spatial import Feature, FeatureCollection, Record, promote

__version__ = "0.1.0"

__all__ = [
    "CRSMismatch",
    "Feature",
    "FeatureCollection",
    "GeoFeedError",
    "InvalidCoordinate",
    "NetworkError",
    "NotFound",
    "ParseError",
    "QuerySpec",
    "Record",
    "RemoteFeatureQueryClient",
    "ResponseFormat",
    "ResponseParseError",
    "SchemaMismatch",
    "UnknownCRS",
    "UnsupportedFormat",
    "WmsTileLayer",
    "XyzTileLayer",
    "load",
    "load_point_features",
    "merge_collections",
    "promote",
]
