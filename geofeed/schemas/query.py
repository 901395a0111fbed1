"""
Pydantic models describing a feature-service query.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from geofeed.exceptions import UnsupportedFormat


# ═══════════════════════════════════════════════════════════════════
# Response format
# ═══════════════════════════════════════════════════════════════════
class ResponseFormat(str, Enum):
    GEOJSON = "geojson"
    ESRI_JSON = "esri-json"

    @property
    def f_param(self) -> str:
        """Value of the ArcGIS REST ``f`` query parameter."""
        return "geojson" if self is ResponseFormat.GEOJSON else "json"

    @classmethod
    def parse(cls, value: str | ResponseFormat) -> ResponseFormat:
        """Resolve a format name or alias; raise ``UnsupportedFormat`` otherwise."""
        if isinstance(value, ResponseFormat):
            return value
        key = str(value).strip().lower()
        try:
            return _FORMAT_ALIASES[key]
        except KeyError:
            raise UnsupportedFormat(value) from None


_FORMAT_ALIASES: dict[str, ResponseFormat] = {
    "geojson": ResponseFormat.GEOJSON,
    "esri-json": ResponseFormat.ESRI_JSON,
    "esrijson": ResponseFormat.ESRI_JSON,
    "esri_json": ResponseFormat.ESRI_JSON,
    "json": ResponseFormat.ESRI_JSON,
}


# ═══════════════════════════════════════════════════════════════════
# Query specification
# ═══════════════════════════════════════════════════════════════════
class QuerySpec(BaseModel):
    """
    One query against an ArcGIS-style REST feature service, e.g.

        base_url      = "https://services.arcgis.com/X/arcgis/rest/services"
        resource_path = "USA_Water_Bodies/FeatureServer/0/query"

    ``response_format`` is kept as given and resolved when the URL is
    built, so an unknown value surfaces as ``UnsupportedFormat`` there.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(description="Service root, e.g. .../arcgis/rest/services")
    resource_path: str = Field(description="Layer query path below base_url")
    attribute_filter: str = Field(default="1=1", description="SQL-92 where clause")
    output_fields: tuple[str, ...] = Field(
        default=("*",),
        description="Ordered field names, or ('*',) for all fields",
    )
    return_geometry: bool = True
    response_format: str = "geojson"

    # Optional ArcGIS query parameters
    out_sr: int | None = Field(default=None, gt=0, description="Output EPSG / wkid")
    result_offset: int | None = Field(default=None, ge=0)
    result_record_count: int | None = Field(default=None, gt=0)

    @field_validator("base_url")
    @classmethod
    def http_url(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v

    @field_validator("resource_path")
    @classmethod
    def non_empty_path(cls, v: str) -> str:
        v = v.strip()
        if not v.strip("/"):
            raise ValueError("resource_path must not be empty")
        return v

    @field_validator("attribute_filter")
    @classmethod
    def non_empty_filter(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("attribute_filter must not be empty; use '1=1' for all rows")
        return v

    @field_validator("output_fields", mode="before")
    @classmethod
    def normalise_fields(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        names: list[str] = []
        for name in v:
            name = str(name).strip()
            if name and name not in names:
                names.append(name)
        if not names:
            raise ValueError("output_fields must name at least one field or '*'")
        if "*" in names:
            return ("*",)
        return tuple(names)

    @field_validator("response_format", mode="before")
    @classmethod
    def normalise_format(cls, v):
        if isinstance(v, ResponseFormat):
            return v.value
        return str(v).strip().lower()

    @property
    def format(self) -> ResponseFormat:
        return ResponseFormat.parse(self.response_format)
