"""Spatial subpackage — feature model, CRS registry and point promotion."""

from geofeed.spatial.crs import resolve_crs, validate_crs
from geofeed.spatial.features import Feature, FeatureCollection, Record
from geofeed.spatial.promote import promote, promote_record

__all__ = [
    "Feature",
    "FeatureCollection",
    "Record",
    "promote",
    "promote_record",
    "resolve_crs",
    "validate_crs",
]
