"""
Exception hierarchy for geofeed.

Every error raised by the library derives from ``GeoFeedError`` so callers
can catch the whole family at once.  Where a builtin category fits (missing
file, bad value) the error also inherits from that builtin, so generic
handlers written against ``FileNotFoundError`` / ``ValueError`` still work.

    GeoFeedError
    ├── NotFound            (FileNotFoundError)
    ├── SchemaMismatch      (ValueError)
    ├── ParseError          (ValueError)
    ├── InvalidCoordinate   (ValueError)
    ├── UnknownCRS          (ValueError)
    ├── CRSMismatch         (ValueError)
    ├── UnsupportedFormat   (ValueError)
    ├── ResponseParseError  (ValueError)
    └── NetworkError
"""

from __future__ import annotations


class GeoFeedError(Exception):
    """Base class for all geofeed failures."""


# ═══════════════════════════════════════════════════════════════════
# Tabular loading
# ═══════════════════════════════════════════════════════════════════
class NotFound(GeoFeedError, FileNotFoundError):
    """The input file does not exist."""

    def __init__(self, path) -> None:
        self.path = str(path)
        super().__init__(f"File not found: {self.path}")

    def __str__(self) -> str:
        return f"File not found: {self.path}"


class SchemaMismatch(GeoFeedError, ValueError):
    """A required source column is absent from the input."""

    def __init__(self, missing: list[str], available: list[str]) -> None:
        self.missing = list(missing)
        self.available = list(available)
        super().__init__(
            f"Missing required column(s) {self.missing}. "
            f"Available columns: {self.available}"
        )


class ParseError(GeoFeedError, ValueError):
    """The delimited input could not be parsed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════════
# Geometry / CRS
# ═══════════════════════════════════════════════════════════════════
class InvalidCoordinate(GeoFeedError, ValueError):
    """A coordinate is missing, non-numeric, non-finite or out of range."""

    def __init__(self, message: str, index: int | None = None) -> None:
        self.index = index
        if index is not None:
            message = f"Record {index}: {message}"
        super().__init__(message)


class UnknownCRS(GeoFeedError, ValueError):
    """The EPSG code is not positive or unknown to the CRS registry."""

    def __init__(self, code) -> None:
        self.code = code
        super().__init__(f"Unknown coordinate reference system: EPSG:{code}")


class CRSMismatch(GeoFeedError, ValueError):
    """Features with different CRSs were combined without reprojection."""

    def __init__(self, expected: int, found: int) -> None:
        self.expected = expected
        self.found = found
        super().__init__(
            f"CRS mismatch: expected EPSG:{expected}, found EPSG:{found}"
        )


# ═══════════════════════════════════════════════════════════════════
# Remote queries
# ═══════════════════════════════════════════════════════════════════
class UnsupportedFormat(GeoFeedError, ValueError):
    """The requested response format is neither GeoJSON nor Esri JSON."""

    def __init__(self, fmt) -> None:
        self.format = fmt
        super().__init__(
            f"Unsupported response format {fmt!r}; expected 'geojson' or 'esri-json'"
        )


class ResponseParseError(GeoFeedError, ValueError):
    """The response body is not JSON or holds no recognizable feature array."""


class NetworkError(GeoFeedError):
    """
    The HTTP request failed.

    ``reason`` is one of ``"connection"``, ``"timeout"`` or ``"status"``;
    ``status_code`` is set only for ``"status"``.
    """

    CONNECTION = "connection"
    TIMEOUT = "timeout"
    STATUS = "status"

    def __init__(
        self,
        reason: str,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.reason = reason
        self.url = url
        self.status_code = status_code
        super().__init__(f"[{reason}] {message}")
