"""
Pipeline composition.

Each stage returns a new immutable value; nothing is shared between calls.

    load ─▶ promote ─▶ FeatureCollection ─┐
                                          ├─ merge_collections ─▶ map layer
    RemoteFeatureQueryClient.query ───────┘
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from os import PathLike
from typing import Any

from geofeed.services.loader import Where, load
from geofeed.spatial.features import FeatureCollection
from geofeed.spatial.promote import promote

logger = logging.getLogger(__name__)


def load_point_features(
    path: str | PathLike[str],
    lon_field: str,
    lat_field: str,
    *,
    column_map: Mapping[str, str] | None = None,
    where: Where = None,
    crs: int | None = None,
    keep_coordinates: bool | None = None,
    skip_invalid_rows: bool | None = None,
    **read_kwargs: Any,
) -> FeatureCollection:
    """
    Load a CSV and promote it to Point features in one call.

    ``lon_field`` / ``lat_field`` name fields *after* ``column_map`` is
    applied.
    """
    records = load(
        path,
        column_map,
        where,
        skip_invalid_rows=skip_invalid_rows,
        **read_kwargs,
    )
    return promote(
        records,
        lon_field,
        lat_field,
        crs,
        keep_coordinates=keep_coordinates,
        skip_invalid_rows=skip_invalid_rows,
    )


def merge_collections(*collections: FeatureCollection, crs: int | None = None) -> FeatureCollection:
    """
    Union collections in argument order, reprojecting each to ``crs``
    (default: the first collection's CRS).
    """
    if not collections:
        raise ValueError("merge_collections() needs at least one collection")
    target = collections[0].crs if crs is None else crs
    merged = FeatureCollection.empty(target)
    for collection in collections:
        merged = merged.union(collection.to_crs(target))
    logger.debug(
        "Merged %d collection(s) into %d feature(s) (EPSG:%d)",
        len(collections), len(merged), target,
    )
    return merged
