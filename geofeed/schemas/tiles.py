"""
Tile-service descriptors handed to the map layer.

geofeed never fetches tiles; it only produces well-formed request URLs and
the option dicts a Leaflet / folium style renderer expects.
"""

from __future__ import annotations

from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from geofeed.spatial.crs import is_latitude_first, validate_crs

_WMS_VERSIONS = ("1.1.1", "1.3.0")


def _join_query(base_url: str, query: str) -> str:
    if "?" not in base_url:
        return f"{base_url}?{query}"
    if base_url.endswith(("?", "&")):
        return f"{base_url}{query}"
    return f"{base_url}&{query}"


def _split_names(v):
    if isinstance(v, str):
        v = v.split(",")
    return tuple(str(name).strip() for name in v)


# ═══════════════════════════════════════════════════════════════════
# WMS
# ═══════════════════════════════════════════════════════════════════
class WmsTileLayer(BaseModel):
    """An OGC WMS overlay, e.g. the USGS hydrography service."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    layers: tuple[str, ...]
    styles: tuple[str, ...] = ()
    format: str = "image/png"
    transparent: bool = True
    version: str = "1.3.0"
    attribution: str = ""

    @field_validator("layers", "styles", mode="before")
    @classmethod
    def split_names(cls, v):
        return _split_names(v)

    @field_validator("layers")
    @classmethod
    def at_least_one_layer(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v or not all(v):
            raise ValueError("layers must name at least one non-empty layer")
        return v

    @field_validator("version")
    @classmethod
    def supported_version(cls, v: str) -> str:
        if v not in _WMS_VERSIONS:
            raise ValueError(f"WMS version must be one of {_WMS_VERSIONS}")
        return v

    @model_validator(mode="after")
    def styles_match_layers(self) -> WmsTileLayer:
        if self.styles and len(self.styles) != len(self.layers):
            raise ValueError("styles must be empty or have one entry per layer")
        return self

    def get_map_url(
        self,
        bbox: tuple[float, float, float, float],
        width: int,
        height: int,
        crs: int = 4326,
    ) -> str:
        """
        Build a ``GetMap`` request.

        ``bbox`` is (min_x, min_y, max_x, max_y) in x = longitude/easting
        order.  For WMS 1.3.0 and a latitude-first CRS (EPSG:4326, 4269…)
        the BBOX parameter is written latitude first, as the standard
        requires.
        """
        validate_crs(crs)
        min_x, min_y, max_x, max_y = bbox
        if min_x >= max_x or min_y >= max_y:
            raise ValueError(f"Degenerate bbox: {bbox}")
        if width <= 0 or height <= 0:
            raise ValueError(f"Image size must be positive, got {width}x{height}")

        if self.version == "1.3.0" and is_latitude_first(crs):
            ordered = (min_y, min_x, max_y, max_x)
        else:
            ordered = (min_x, min_y, max_x, max_y)

        params = [
            ("SERVICE", "WMS"),
            ("VERSION", self.version),
            ("REQUEST", "GetMap"),
            ("LAYERS", ",".join(self.layers)),
            ("STYLES", ",".join(self.styles)),
            ("CRS" if self.version == "1.3.0" else "SRS", f"EPSG:{crs}"),
            ("BBOX", ",".join(repr(float(c)) for c in ordered)),
            ("WIDTH", str(width)),
            ("HEIGHT", str(height)),
            ("FORMAT", self.format),
            ("TRANSPARENT", "TRUE" if self.transparent else "FALSE"),
        ]
        return _join_query(self.base_url, urlencode(params, safe=",:/"))

    def leaflet_options(self) -> dict:
        """Options for ``L.tileLayer.wms`` / ``folium.WmsTileLayer``."""
        return {
            "layers": ",".join(self.layers),
            "styles": ",".join(self.styles),
            "format": self.format,
            "transparent": self.transparent,
            "version": self.version,
            "attribution": self.attribution,
        }


# ═══════════════════════════════════════════════════════════════════
# XYZ / slippy-map tiles
# ═══════════════════════════════════════════════════════════════════
class XyzTileLayer(BaseModel):
    """A ``{z}/{x}/{y}`` basemap such as OpenStreetMap or Esri World Imagery."""

    model_config = ConfigDict(frozen=True)

    url_template: str
    attribution: str = ""
    subdomains: tuple[str, ...] = ("a", "b", "c")
    min_zoom: int = Field(default=0, ge=0)
    max_zoom: int = Field(default=19, ge=0, le=30)

    @field_validator("url_template")
    @classmethod
    def has_placeholders(cls, v: str) -> str:
        missing = [p for p in ("{z}", "{x}", "{y}") if p not in v]
        if missing:
            raise ValueError(f"url_template is missing {missing}")
        return v

    @field_validator("subdomains", mode="before")
    @classmethod
    def split_subdomains(cls, v):
        return _split_names(v) if isinstance(v, str) and "," in v else tuple(v)

    @model_validator(mode="after")
    def zoom_range(self) -> XyzTileLayer:
        if self.min_zoom > self.max_zoom:
            raise ValueError("min_zoom must be <= max_zoom")
        if "{s}" in self.url_template and not self.subdomains:
            raise ValueError("url_template uses {s} but no subdomains are set")
        return self

    def tile_url(self, z: int, x: int, y: int) -> str:
        """URL of one tile; ``{s}`` rotates over subdomains like Leaflet."""
        if not self.min_zoom <= z <= self.max_zoom:
            raise ValueError(f"Zoom {z} outside [{self.min_zoom}, {self.max_zoom}]")
        n = 1 << z
        if not (0 <= x < n and 0 <= y < n):
            raise ValueError(f"Tile ({x}, {y}) outside the {n}x{n} grid at zoom {z}")
        url = self.url_template.replace("{z}", str(z)).replace("{x}", str(x)).replace("{y}", str(y))
        if "{s}" in url:
            url = url.replace("{s}", self.subdomains[(x + y) % len(self.subdomains)])
        return url
