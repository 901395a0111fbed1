"""
Coordinate Reference System Registry
====================================
Thin lookups over the pyproj EPSG database.

Features carry their CRS as a bare positive EPSG integer; anything that
needs more (validity, geographic vs. projected, axis order, reprojection)
resolves it here.  No coordinate math is done by hand.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from functools import lru_cache

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from geofeed.exceptions import UnknownCRS

# Esri publishes Web Mercator under its own legacy codes.
ESRI_WKID_ALIASES: dict[int, int] = {
    102100: 3857,
    102113: 3857,
}

_EPSG_NAME = re.compile(r"EPSG:{1,2}(\d+)$", re.IGNORECASE)
_CRS84_NAMES = frozenset({"CRS84", "OGC:CRS84", "URN:OGC:DEF:CRS:OGC:1.3:CRS84"})


@lru_cache(maxsize=64, typed=True)
def resolve_crs(code: int) -> CRS:
    """Return the pyproj ``CRS`` for an EPSG code or raise ``UnknownCRS``."""
    if isinstance(code, bool) or not isinstance(code, int) or code <= 0:
        raise UnknownCRS(code)
    try:
        return CRS.from_epsg(code)
    except CRSError as exc:
        raise UnknownCRS(code) from exc


def validate_crs(code: int) -> int:
    """Return ``code`` unchanged if the registry knows it."""
    resolve_crs(code)
    return code


def is_geographic(code: int) -> bool:
    return resolve_crs(code).is_geographic


def is_latitude_first(code: int) -> bool:
    """
    True when the authority axis order starts with latitude / northing
    (EPSG:4326 does, EPSG:3857 does not).  WMS 1.3.0 honours it in BBOX.
    """
    axes = resolve_crs(code).axis_info
    return bool(axes) and axes[0].direction.lower() == "north"


def coordinates_in_range(code: int, x: float, y: float) -> bool:
    """
    Finite check for every CRS, plus lon ∈ [-180, 180], lat ∈ [-90, 90]
    for geographic ones.  ``x`` is always longitude / easting.
    """
    if not (math.isfinite(x) and math.isfinite(y)):
        return False
    if is_geographic(code):
        return -180.0 <= x <= 180.0 and -90.0 <= y <= 90.0
    return True


def epsg_from_esri(spatial_reference: Mapping | None) -> int | None:
    """
    Read an EPSG code from an Esri ``spatialReference`` block.

    ``latestWkid`` wins over ``wkid``; legacy Web Mercator ids are mapped.
    """
    if not spatial_reference:
        return None
    if not isinstance(spatial_reference, Mapping):
        raise UnknownCRS(spatial_reference)
    wkid = spatial_reference.get("latestWkid") or spatial_reference.get("wkid")
    if wkid is None:
        return None
    try:
        wkid = int(wkid)
    except (TypeError, ValueError):
        raise UnknownCRS(wkid) from None
    return ESRI_WKID_ALIASES.get(wkid, wkid)


def epsg_from_name(name: str) -> int:
    """
    Parse legacy GeoJSON ``crs.properties.name`` values:
    ``EPSG:4269``, ``urn:ogc:def:crs:EPSG::4269``, ``urn:ogc:def:crs:OGC:1.3:CRS84``.
    """
    text = name.strip()
    if text.upper() in _CRS84_NAMES:
        return 4326
    match = _EPSG_NAME.search(text)
    if match is None:
        raise UnknownCRS(name)
    return int(match.group(1))


@lru_cache(maxsize=32)
def transformer(source: int, target: int) -> Transformer:
    """Cached lon/lat-ordered transformer between two EPSG codes."""
    return Transformer.from_crs(
        resolve_crs(source), resolve_crs(target), always_xy=True
    )
