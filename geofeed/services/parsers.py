"""
Feature-Service Response Parsers
================================
Convert query responses into a FeatureCollection.

Two wire formats are understood:

* **GeoJSON** (RFC 7946) — ``{"type": "FeatureCollection", "features": [...]}``.
  WGS84 unless a legacy ``crs`` member names another EPSG code.
* **Esri JSON** — ``{"features": [{"attributes": {...}, "geometry": {...}}],
  "spatialReference": {"wkid": ...}}`` with point, multipoint, polyline,
  polygon and envelope geometries.

Null / unreadable geometries
----------------------------
When geometry was requested, a feature without a usable geometry aborts
the parse with ``ResponseParseError`` unless ``skip_invalid_rows`` is set,
in which case it is logged and dropped.  When geometry was not requested
(``returnGeometry=false``) features carry ``geometry=None``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from shapely.errors import ShapelyError
from shapely.geometry import (
    LinearRing,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
    box,
    shape,
)
from shapely.geometry.base import BaseGeometry

from geofeed.config import get_settings
from geofeed.exceptions import (
    GeoFeedError,
    ResponseParseError,
    UnknownCRS,
)
from geofeed.schemas.query import ResponseFormat
from geofeed.spatial.crs import epsg_from_esri, epsg_from_name, validate_crs
from geofeed.spatial.features import Feature, FeatureCollection, Record

logger = logging.getLogger(__name__)

# What a malformed geometry object can raise on its way into Shapely.
_GEOMETRY_ERRORS = (ShapelyError, AttributeError, KeyError, TypeError, ValueError, IndexError)


# ═══════════════════════════════════════════════════════════════════
# Shared helpers
# ═══════════════════════════════════════════════════════════════════
def load_payload(body: str | bytes | Mapping[str, Any]) -> dict[str, Any]:
    """Decode a JSON body and reject ArcGIS error envelopes."""
    if isinstance(body, Mapping):
        payload = dict(body)
    else:
        try:
            payload = json.loads(body)
        except (TypeError, ValueError) as exc:
            raise ResponseParseError(f"Response body is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise ResponseParseError(
            f"Expected a JSON object, got {type(payload).__name__}"
        )

    # ArcGIS reports query errors with HTTP 200 and an "error" object.
    error = payload.get("error")
    if isinstance(error, dict):
        details = "; ".join(str(d) for d in error.get("details") or [])
        message = f"Service error {error.get('code', '?')}: {error.get('message', 'unknown')}"
        raise ResponseParseError(f"{message} ({details})" if details else message)
    return payload


def _feature_array(payload: dict[str, Any]) -> list:
    features = payload.get("features")
    if not isinstance(features, list):
        raise ResponseParseError("Response has no 'features' array")
    return features


def _reject_or_skip(message: str, index: int, skip: bool) -> None:
    if not skip:
        raise ResponseParseError(f"Feature {index}: {message}")
    logger.warning("Skipping feature %d: %s", index, message)


def _warn_if_truncated(payload: dict[str, Any]) -> None:
    props = payload.get("properties") if isinstance(payload.get("properties"), dict) else {}
    if payload.get("exceededTransferLimit") or props.get("exceededTransferLimit"):
        logger.warning(
            "Service truncated the result at its record limit; "
            "page with result_offset / result_record_count"
        )


def _build(
    index: int,
    attributes: Any,
    geometry: BaseGeometry | None,
    crs: int,
    feature_id: Any,
    skip: bool,
) -> Feature | None:
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, Mapping):
        _reject_or_skip(f"attributes must be a JSON object, got {type(attributes).__name__}", index, skip)
        return None
    try:
        return Feature(attributes=Record(attributes), geometry=geometry, crs=crs, id=feature_id)
    except GeoFeedError as exc:
        _reject_or_skip(str(exc), index, skip)
        return None


# ═══════════════════════════════════════════════════════════════════
# GeoJSON
# ═══════════════════════════════════════════════════════════════════
def _geojson_crs(payload: dict[str, Any], default_crs: int) -> int:
    member = payload.get("crs")
    if not member:
        return default_crs
    try:
        name = member["properties"]["name"]
        return validate_crs(epsg_from_name(str(name)))
    except (KeyError, TypeError, UnknownCRS) as exc:
        raise ResponseParseError(f"Unrecognized GeoJSON crs member: {member!r}") from exc


def parse_geojson(
    body: str | bytes | Mapping[str, Any],
    *,
    default_crs: int | None = None,
    require_geometry: bool = True,
    skip_invalid_rows: bool | None = None,
) -> FeatureCollection:
    """Parse a GeoJSON FeatureCollection."""
    settings = get_settings()
    skip = settings.skip_invalid_rows if skip_invalid_rows is None else skip_invalid_rows
    payload = load_payload(body)

    kind = payload.get("type")
    if kind is not None and kind != "FeatureCollection":
        raise ResponseParseError(f"Expected a GeoJSON FeatureCollection, got type {kind!r}")
    raw_features = _feature_array(payload)
    crs = _geojson_crs(payload, settings.default_geojson_crs if default_crs is None else default_crs)
    _warn_if_truncated(payload)

    features: list[Feature] = []
    for i, raw in enumerate(raw_features):
        if not isinstance(raw, dict):
            _reject_or_skip("not a JSON object", i, skip)
            continue

        geometry: BaseGeometry | None = None
        if raw.get("geometry"):
            try:
                geometry = shape(raw["geometry"])
            except _GEOMETRY_ERRORS as exc:
                _reject_or_skip(f"unreadable geometry: {exc}", i, skip)
                continue
            if geometry.is_empty:
                geometry = None
        if geometry is None and require_geometry:
            _reject_or_skip("null geometry", i, skip)
            continue

        feature = _build(i, raw.get("properties"), geometry, crs, raw.get("id"), skip)
        if feature is not None:
            features.append(feature)

    logger.debug("Parsed %d GeoJSON feature(s) (EPSG:%d)", len(features), crs)
    return FeatureCollection(tuple(features), crs)


# ═══════════════════════════════════════════════════════════════════
# Esri JSON
# ═══════════════════════════════════════════════════════════════════
def _xy(values) -> tuple[float, float]:
    return float(values[0]), float(values[1])


def _rings_to_polygon(rings: list) -> Polygon | MultiPolygon:
    """
    Esri polygons list outer rings clockwise and holes counter-clockwise,
    all in one flat array.  Holes are attached to the shell containing
    them; a hole with no enclosing shell is promoted to a shell.
    """
    shells: list[LinearRing] = []
    holes: list[LinearRing] = []
    for ring in rings:
        coords = [_xy(p) for p in ring]
        if len(coords) < 3:
            raise ValueError("polygon ring needs at least 3 vertices")
        lr = LinearRing(coords)
        (holes if lr.is_ccw else shells).append(lr)

    if not shells:
        # Some producers ignore the winding convention entirely.
        shells, holes = holes, []

    shell_holes: list[list[LinearRing]] = [[] for _ in shells]
    for hole in holes:
        probe = Polygon(hole).representative_point()
        for i, shell in enumerate(shells):
            if Polygon(shell).contains(probe):
                shell_holes[i].append(hole)
                break
        else:
            shells.append(hole)
            shell_holes.append([])

    polygons = [Polygon(s, h) for s, h in zip(shells, shell_holes)]
    return polygons[0] if len(polygons) == 1 else MultiPolygon(polygons)


def esri_geometry(geom: Mapping[str, Any] | None) -> BaseGeometry | None:
    """
    Convert an Esri JSON geometry to Shapely.  Returns None for null or
    empty geometries; raises ``ValueError`` for unknown or curved ones.
    """
    if not geom:
        return None
    if "x" in geom:
        x, y = geom.get("x"), geom.get("y")
        if x is None or y is None or x == "NaN" or y == "NaN":
            return None
        return Point(float(x), float(y))
    if "points" in geom:
        points = [_xy(p) for p in geom["points"] or []]
        return MultiPoint(points) if points else None
    if "paths" in geom:
        paths = [[_xy(p) for p in path] for path in geom["paths"] or []]
        if not paths:
            return None
        return LineString(paths[0]) if len(paths) == 1 else MultiLineString(paths)
    if "rings" in geom:
        rings = geom["rings"] or []
        return _rings_to_polygon(rings) if rings else None
    if "xmin" in geom:
        if geom.get("xmin") in (None, "NaN"):
            return None
        return box(float(geom["xmin"]), float(geom["ymin"]), float(geom["xmax"]), float(geom["ymax"]))
    if "curvePaths" in geom or "curveRings" in geom:
        raise ValueError("curved Esri geometries are not supported")
    raise ValueError(f"unrecognized Esri geometry with keys {sorted(geom)}")


def _esri_crs(payload: dict[str, Any], raw_features: list, default_crs: int) -> int:
    sr = payload.get("spatialReference")
    if not sr:
        # Single-feature responses sometimes only tag the geometry.
        for raw in raw_features:
            geom = raw.get("geometry") if isinstance(raw, dict) else None
            if isinstance(geom, dict) and geom.get("spatialReference"):
                sr = geom["spatialReference"]
                break
    try:
        code = epsg_from_esri(sr)
        return default_crs if code is None else validate_crs(code)
    except UnknownCRS as exc:
        raise ResponseParseError(f"Unrecognized spatialReference: {sr!r}") from exc


def parse_esri_json(
    body: str | bytes | Mapping[str, Any],
    *,
    default_crs: int | None = None,
    require_geometry: bool = True,
    skip_invalid_rows: bool | None = None,
) -> FeatureCollection:
    """Parse an Esri JSON FeatureSet."""
    settings = get_settings()
    skip = settings.skip_invalid_rows if skip_invalid_rows is None else skip_invalid_rows
    payload = load_payload(body)

    raw_features = _feature_array(payload)
    crs = _esri_crs(payload, raw_features, settings.default_esri_crs if default_crs is None else default_crs)
    oid_field = payload.get("objectIdFieldName")
    _warn_if_truncated(payload)

    features: list[Feature] = []
    for i, raw in enumerate(raw_features):
        if not isinstance(raw, dict):
            _reject_or_skip("not a JSON object", i, skip)
            continue

        try:
            geometry = esri_geometry(raw.get("geometry"))
        except _GEOMETRY_ERRORS as exc:
            _reject_or_skip(f"unreadable geometry: {exc}", i, skip)
            continue
        if geometry is None and require_geometry:
            _reject_or_skip("null geometry", i, skip)
            continue

        attributes = raw.get("attributes")
        feature_id = (
            attributes.get(oid_field) if oid_field and isinstance(attributes, Mapping) else None
        )
        feature = _build(i, attributes, geometry, crs, feature_id, skip)
        if feature is not None:
            features.append(feature)

    logger.debug("Parsed %d Esri JSON feature(s) (EPSG:%d)", len(features), crs)
    return FeatureCollection(tuple(features), crs)


# ═══════════════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════════════
def parse_response(
    body: str | bytes | Mapping[str, Any],
    response_format: str | ResponseFormat,
    **kwargs: Any,
) -> FeatureCollection:
    """Parse ``body`` as GeoJSON or Esri JSON; raises ``UnsupportedFormat``."""
    fmt = ResponseFormat.parse(response_format)
    if fmt is ResponseFormat.GEOJSON:
        return parse_geojson(body, **kwargs)
    return parse_esri_json(body, **kwargs)
