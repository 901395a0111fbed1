"""
Remote Feature Query Client
===========================
Queries ArcGIS-style REST feature services (``…/FeatureServer/<n>/query``)
and returns the result as a FeatureCollection.

    QuerySpec ──build_url──▶ GET (httpx, timeout) ──parse──▶ FeatureCollection

The client is stateless: every ``query`` opens its own ``httpx.Client``,
issues exactly one request, and closes it.  There is no retry and no
caching; callers that want either wrap ``query`` themselves.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx

from geofeed.config import get_settings
from geofeed.exceptions import NetworkError, ResponseParseError
from geofeed.schemas.query import QuerySpec, ResponseFormat
from geofeed.services.parsers import parse_response
from geofeed.spatial.features import FeatureCollection

logger = logging.getLogger(__name__)


class RemoteFeatureQueryClient:
    """
    Blocking feature-service client.

    Parameters
    ----------
    timeout : float, optional
        Seconds before a request fails with ``NetworkError(reason="timeout")``
        (default ``Settings.request_timeout``).  ``query`` can override it.
    transport : httpx.BaseTransport, optional
        Custom transport, e.g. ``httpx.MockTransport`` in tests.
    headers : dict, optional
        Extra request headers; a ``User-Agent`` is always sent.
    skip_invalid_rows : bool, optional
        Drop features with null / unreadable geometry instead of failing
        (default ``Settings.skip_invalid_rows``).
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        headers: dict[str, str] | None = None,
        skip_invalid_rows: bool | None = None,
    ) -> None:
        settings = get_settings()
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.skip_invalid_rows = (
            settings.skip_invalid_rows if skip_invalid_rows is None else skip_invalid_rows
        )
        self.headers = {"User-Agent": settings.user_agent, **(headers or {})}
        self._transport = transport

    # ── URL construction ──────────────────────────────────────

    @staticmethod
    def query_params(spec: QuerySpec) -> list[tuple[str, str]]:
        """
        Query parameters in their fixed order: ``where``, ``outFields``,
        ``returnGeometry``, ``f``, then the optional paging / SR ones.
        """
        fmt = ResponseFormat.parse(spec.response_format)
        params = [
            ("where", spec.attribute_filter),
            ("outFields", ",".join(spec.output_fields)),
            ("returnGeometry", "true" if spec.return_geometry else "false"),
            ("f", fmt.f_param),
        ]
        if spec.out_sr is not None:
            params.append(("outSR", str(spec.out_sr)))
        if spec.result_offset is not None:
            params.append(("resultOffset", str(spec.result_offset)))
        if spec.result_record_count is not None:
            params.append(("resultRecordCount", str(spec.result_record_count)))
        return params

    def build_url(self, spec: QuerySpec) -> str:
        """
        Compose the request URL.  Pure: the same QuerySpec always yields the
        same string.  ``*`` and ``,`` stay literal, everything else is
        form-encoded (``STATE = 'OR'`` → ``STATE+%3D+%27OR%27``).
        """
        base = spec.base_url.rstrip("/")
        path = spec.resource_path.strip().lstrip("/")
        query = urlencode(self.query_params(spec), safe="*,")
        return f"{base}/{path}?{query}"

    # ── Query ─────────────────────────────────────────────────

    def _get(self, url: str, timeout: float) -> httpx.Response:
        logger.debug("GET %s (timeout=%ss)", url, timeout)
        try:
            with httpx.Client(
                timeout=timeout,
                transport=self._transport,
                headers=self.headers,
                follow_redirects=True,
            ) as client:
                response = client.get(url)
        except httpx.TimeoutException as exc:
            raise NetworkError(
                NetworkError.TIMEOUT,
                f"No response within {timeout}s: {url}",
                url=url,
            ) from exc
        except httpx.RequestError as exc:
            raise NetworkError(
                NetworkError.CONNECTION,
                f"{type(exc).__name__}: {exc}",
                url=url,
            ) from exc

        if not response.is_success:
            raise NetworkError(
                NetworkError.STATUS,
                f"HTTP {response.status_code} {response.reason_phrase}: {url}",
                url=url,
                status_code=response.status_code,
            )
        return response

    def query(self, spec: QuerySpec, *, timeout: float | None = None) -> FeatureCollection:
        """
        Run ``spec`` and parse the response.

        Raises
        ------
        UnsupportedFormat
            ``spec.response_format`` is neither GeoJSON nor Esri JSON
            (raised before any network traffic).
        NetworkError
            Connection failure, timeout, or non-2xx status.
        ResponseParseError
            Invalid JSON, service error envelope, or no feature array.
        """
        url = self.build_url(spec)
        response = self._get(url, self.timeout if timeout is None else timeout)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ResponseParseError(f"Response from {url} is not valid JSON: {exc}") from exc

        collection = parse_response(
            payload,
            spec.response_format,
            default_crs=spec.out_sr,
            require_geometry=spec.return_geometry,
            skip_invalid_rows=self.skip_invalid_rows,
        )
        logger.info(
            "Query returned %d feature(s) (EPSG:%d) from %s",
            len(collection), collection.crs, spec.resource_path,
        )
        return collection
