"""
Feature Model
=============
Immutable value types shared by every stage of the pipeline:

1. **Record**            — one input row: an ordered field → scalar mapping.
2. **Feature**           — a Record plus a Shapely geometry and an EPSG code.
3. **FeatureCollection** — an ordered tuple of Features sharing one CRS.

Schemas vary per dataset, so Records are generic mappings; types are
checked where a value is actually used (``Record.get_float``, promotion,
filtering) rather than up front.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np
import shapely
from geopandas import GeoDataFrame
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from geofeed.exceptions import CRSMismatch, InvalidCoordinate
from geofeed.spatial.crs import transformer, validate_crs


# ── Record ───────────────────────────────────────────────────────
class Record(Mapping[str, Any]):
    """
    Read-only, insertion-ordered mapping of field name to scalar value.

    Built from any mapping or iterable of pairs; the input is copied, so
    later changes to the source do not leak in.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | Iterable[tuple[str, Any]] = (), /, **fields: Any) -> None:
        self._data: dict[str, Any] = dict(data, **fields)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Record({self._data!r})"

    def get_float(self, name: str) -> float:
        """
        Return field ``name`` as a float.

        Raises ``KeyError`` if absent and ``ValueError`` if the value is
        None, a bool, or not numeric.  Numeric strings are accepted.
        """
        value = self._data[name]
        if value is None or isinstance(value, bool):
            raise ValueError(f"Field {name!r} is not numeric: {value!r}")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Field {name!r} is not numeric: {value!r}") from None

    def without(self, *names: str) -> Record:
        """New Record minus the given fields (absent names are ignored)."""
        drop = set(names)
        return Record((k, v) for k, v in self._data.items() if k not in drop)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


# ── Feature ──────────────────────────────────────────────────────
def _check_finite(geometry: BaseGeometry) -> None:
    coords = shapely.get_coordinates(geometry)
    if coords.size and not np.isfinite(coords).all():
        raise InvalidCoordinate(f"Non-finite ordinate in {geometry.geom_type} geometry")


@dataclass(frozen=True, slots=True)
class Feature:
    """
    A geometry with its attributes, tagged with an EPSG code.

    ``geometry`` is None only for attribute-only service queries
    (``returnGeometry=false``).
    """

    attributes: Record
    geometry: BaseGeometry | None
    crs: int
    id: str | int | None = field(default=None)

    def __post_init__(self) -> None:
        if not isinstance(self.attributes, Record):
            object.__setattr__(self, "attributes", Record(self.attributes))
        validate_crs(self.crs)
        if self.geometry is not None:
            _check_finite(self.geometry)

    @property
    def geom_type(self) -> str | None:
        return None if self.geometry is None else self.geometry.geom_type

    @property
    def x(self) -> float:
        """Longitude / easting of a Point feature."""
        return self._point().x

    @property
    def y(self) -> float:
        """Latitude / northing of a Point feature."""
        return self._point().y

    def _point(self):
        if self.geom_type != "Point":
            raise TypeError(f"Feature geometry is {self.geom_type}, not Point")
        return self.geometry

    def to_geojson(self) -> dict[str, Any]:
        """RFC 7946 Feature object."""
        out: dict[str, Any] = {
            "type": "Feature",
            "geometry": None if self.geometry is None else mapping(self.geometry),
            "properties": self.attributes.to_dict(),
        }
        if self.id is not None:
            out["id"] = self.id
        return out


# ── FeatureCollection ────────────────────────────────────────────
@dataclass(frozen=True, slots=True)
class FeatureCollection:
    """Ordered Features sharing one CRS.  Order is always preserved."""

    features: tuple[Feature, ...]
    crs: int

    def __post_init__(self) -> None:
        if not isinstance(self.features, tuple):
            object.__setattr__(self, "features", tuple(self.features))
        validate_crs(self.crs)
        for feature in self.features:
            if feature.crs != self.crs:
                raise CRSMismatch(self.crs, feature.crs)

    @classmethod
    def empty(cls, crs: int) -> FeatureCollection:
        return cls((), crs)

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return FeatureCollection(self.features[index], self.crs)
        return self.features[index]

    # ── Combination / reprojection ────────────────────────────

    def union(self, other: FeatureCollection) -> FeatureCollection:
        """Concatenate, ``self`` first.  Both sides must share the CRS."""
        if other.crs != self.crs:
            raise CRSMismatch(self.crs, other.crs)
        return FeatureCollection(self.features + other.features, self.crs)

    def to_crs(self, crs: int) -> FeatureCollection:
        """Reproject every geometry to ``crs`` through pyproj."""
        validate_crs(crs)
        if crs == self.crs:
            return self
        project = transformer(self.crs, crs).transform

        def _reproject(xy: np.ndarray) -> np.ndarray:
            return np.column_stack(project(xy[:, 0], xy[:, 1]))

        return FeatureCollection(
            tuple(
                replace(
                    f,
                    geometry=None if f.geometry is None else shapely.transform(f.geometry, _reproject),
                    crs=crs,
                )
                for f in self.features
            ),
            crs,
        )

    @property
    def bounds(self) -> tuple[float, float, float, float] | None:
        """(min_x, min_y, max_x, max_y) over all geometries, or None."""
        geoms = [f.geometry for f in self.features if f.geometry is not None]
        if not geoms:
            return None
        bounds = shapely.total_bounds(geoms)
        if any(math.isnan(b) for b in bounds):
            return None
        return tuple(float(b) for b in bounds)

    # ── Sinks for the map layer ───────────────────────────────

    def to_geojson(self) -> dict[str, Any]:
        """
        GeoJSON FeatureCollection.  Non-WGS84 collections carry the legacy
        ``crs`` member so the CRS survives a round trip.
        """
        out: dict[str, Any] = {
            "type": "FeatureCollection",
            "features": [f.to_geojson() for f in self.features],
        }
        if self.crs != 4326:
            out["crs"] = {
                "type": "name",
                "properties": {"name": f"urn:ogc:def:crs:EPSG::{self.crs}"},
            }
        return out

    def to_geodataframe(self) -> GeoDataFrame:
        """GeoDataFrame in source order, for geopandas-aware renderers."""
        return GeoDataFrame(
            [f.attributes.to_dict() for f in self.features],
            geometry=[f.geometry for f in self.features],
            crs=f"EPSG:{self.crs}",
        )
