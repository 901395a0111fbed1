"""Schemas subpackage — Pydantic query and tile-layer models."""

from geofeed.schemas.query import QuerySpec, ResponseFormat
from geofeed.schemas.tiles import WmsTileLayer, XyzTileLayer

__all__ = [
    "QuerySpec",
    "ResponseFormat",
    "WmsTileLayer",
    "XyzTileLayer",
]
