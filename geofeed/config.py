"""
geofeed — Configuration via pydantic-settings.

Environment variables (``GEOFEED_*``) or a ``.env`` file override the
defaults below.  Nothing here is required: every value has a default and
every library call accepts an explicit argument that wins over settings.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import ClassVar

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


class Settings(BaseSettings):
    env_path: ClassVar[str] = str(Path.cwd() / ".env")
    model_config = SettingsConfigDict(
        env_file=env_path,
        env_file_encoding="utf-8",
        env_prefix="GEOFEED_",
        # Host environments carry plenty of unrelated variables; ignore them.
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────
    app_name: str = "geofeed"
    debug: bool = False
    log_level: str = "INFO"

    # ── Coordinate reference systems (EPSG codes) ─────────────────
    # CRS attached to promoted CSV points when the caller gives none.
    default_point_crs: int = 4326
    # RFC 7946 GeoJSON is always WGS84 unless a legacy "crs" member says otherwise.
    default_geojson_crs: int = 4326
    # Esri JSON without a spatialReference block.
    default_esri_crs: int = 4326

    # ── Remote feature services ───────────────────────────────────
    # Seconds before a query fails with NetworkError(reason="timeout").
    request_timeout: float = 30.0
    user_agent: str = "geofeed"

    # ── Row policy ────────────────────────────────────────────────
    # False: the first malformed row / coordinate / null geometry aborts
    # the whole batch.  True: offending rows are logged and dropped.
    skip_invalid_rows: bool = False
    # Keep the lon/lat source fields in promoted feature attributes.
    keep_coordinates: bool = True

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("request_timeout")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("default_point_crs", "default_geojson_crs", "default_esri_crs")
    @classmethod
    def positive_epsg(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("EPSG codes must be positive integers")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """
    Install a root handler for applications embedding geofeed.

    The library itself only creates module loggers; it never calls this
    on import.
    """
    settings = get_settings()
    resolved = (level or ("DEBUG" if settings.debug else settings.log_level)).upper()
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("geofeed").setLevel(resolved)
    # httpx logs every request at INFO; keep it quiet unless debugging.
    logging.getLogger("httpx").setLevel(
        logging.DEBUG if resolved == "DEBUG" else logging.WARNING
    )
