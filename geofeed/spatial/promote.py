"""
Geometry Promotion
==================
Turns tabular Records holding longitude / latitude fields into Point
Features tagged with an EPSG code.

    Record{lon, lat, …}  →  Feature(Point(lon, lat), attributes, crs)

Ordinates are always (x, y) = (longitude, latitude) regardless of the
authority axis order of the CRS.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from shapely.geometry import Point

from geofeed.config import get_settings
from geofeed.exceptions import InvalidCoordinate
from geofeed.spatial.crs import coordinates_in_range, is_geographic, validate_crs
from geofeed.spatial.features import Feature, FeatureCollection, Record

logger = logging.getLogger(__name__)


def _read_ordinate(record: Record, name: str, index: int) -> float:
    if name not in record:
        raise InvalidCoordinate(f"Missing coordinate field {name!r}", index=index)
    try:
        return record.get_float(name)
    except ValueError as exc:
        raise InvalidCoordinate(str(exc), index=index) from exc


def promote_record(
    record: Mapping[str, Any],
    lon_field: str,
    lat_field: str,
    crs: int,
    *,
    keep_coordinates: bool = True,
    index: int | None = None,
) -> Feature:
    """
    Promote a single record.  ``index`` only labels error messages.

    Raises ``InvalidCoordinate`` if either ordinate is missing,
    non-numeric, non-finite, or out of range for a geographic CRS.
    """
    if not isinstance(record, Record):
        record = Record(record)
    lon = _read_ordinate(record, lon_field, index)
    lat = _read_ordinate(record, lat_field, index)

    if not coordinates_in_range(crs, lon, lat):
        if is_geographic(crs):
            detail = "expected lon in [-180, 180] and lat in [-90, 90]"
        else:
            detail = "ordinates must be finite"
        raise InvalidCoordinate(
            f"Coordinate ({lon}, {lat}) invalid for EPSG:{crs}: {detail}",
            index=index,
        )

    attributes = record if keep_coordinates else record.without(lon_field, lat_field)
    return Feature(attributes=attributes, geometry=Point(lon, lat), crs=crs)


def promote(
    records: Iterable[Mapping[str, Any]],
    lon_field: str,
    lat_field: str,
    crs: int | None = None,
    *,
    keep_coordinates: bool | None = None,
    skip_invalid_rows: bool | None = None,
) -> FeatureCollection:
    """
    Promote a sequence of records to a FeatureCollection.

    Parameters
    ----------
    records : iterable of Record (or plain mappings)
    lon_field, lat_field : str
        Names of the longitude / latitude fields.
    crs : int, optional
        EPSG code; defaults to ``Settings.default_point_crs``.
    keep_coordinates : bool, optional
        Keep the source lon/lat fields in the attributes
        (default ``Settings.keep_coordinates``, i.e. True).
    skip_invalid_rows : bool, optional
        Drop records with bad coordinates instead of aborting
        (default ``Settings.skip_invalid_rows``, i.e. False).

    Returns
    -------
    FeatureCollection
        One Feature per accepted record, in input order.
    """
    settings = get_settings()
    crs = validate_crs(settings.default_point_crs if crs is None else crs)
    if keep_coordinates is None:
        keep_coordinates = settings.keep_coordinates
    if skip_invalid_rows is None:
        skip_invalid_rows = settings.skip_invalid_rows

    features: list[Feature] = []
    skipped = 0
    for i, record in enumerate(records):
        try:
            features.append(
                promote_record(
                    record,
                    lon_field,
                    lat_field,
                    crs,
                    keep_coordinates=keep_coordinates,
                    index=i,
                )
            )
        except InvalidCoordinate as exc:
            if not skip_invalid_rows:
                raise
            skipped += 1
            logger.warning("Skipping record: %s", exc)

    if skipped:
        logger.warning("Dropped %d record(s) with invalid coordinates", skipped)
    logger.info("Promoted %d record(s) to Point features (EPSG:%d)", len(features), crs)
    return FeatureCollection(tuple(features), crs)
