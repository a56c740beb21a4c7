"""OpenStreetMap Overpass API client for nearby POI search.

Architecture:
1. Build an Overpass QL query from a validated ``SearchRequest`` only
2. POST it form-encoded to the interpreter (30s transport timeout, 25s
   in-query timeout so the server aborts first)
3. Parse each element into a node/way/relation variant
4. Normalize the variants into ``POIResult`` records, capped at 50
"""

import asyncio
import logging
from typing import Annotated, Literal, Optional, Union

import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from mapify.models import POIResult, UpstreamError
from mapify.services.request_validator import SearchRequest

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50
RETRYABLE_STATUS_CODES = {429, 502, 503, 504}

QUERY_TEMPLATE = """[out:json][timeout:{timeout}];
(
  node{selector}(around:{radius},{lat},{lon});
  way{selector}(around:{radius},{lat},{lon});
  relation{selector}(around:{radius},{lat},{lon});
);
out center;
"""


class LatLon(BaseModel):
    lat: float
    lon: float


class _Element(BaseModel):
    id: int
    tags: dict[str, str] = Field(default_factory=dict)
    lat: Optional[float] = None
    lon: Optional[float] = None
    center: Optional[LatLon] = None

    def coordinates(self) -> tuple[float, float] | None:
        """Direct coordinates, else the centroid Overpass computed, else None."""
        if self.lat is not None and self.lon is not None:
            return self.lat, self.lon
        if self.center is not None:
            return self.center.lat, self.center.lon
        return None


class NodeElement(_Element):
    """A point; coordinates are on the element itself."""

    type: Literal["node"]


class WayElement(_Element):
    """A way; ``out center`` adds a ``center`` field."""

    type: Literal["way"]


class RelationElement(_Element):
    """A relation; ``out center`` adds a ``center`` field."""

    type: Literal["relation"]


OverpassElement = Annotated[
    Union[NodeElement, WayElement, RelationElement],
    Field(discriminator="type"),
]

_element_adapter: TypeAdapter[OverpassElement] = TypeAdapter(OverpassElement)


def _format_coordinate(value: float) -> str:
    # Overpass QL has no exponent syntax; 7 decimals is ~1cm
    text = f"{value:.7f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def build_overpass_query(request: SearchRequest, timeout_seconds: int = 25) -> str:
    """Build the Overpass QL query for a validated search.

    Only enum tokens and numbers are interpolated; anything but a
    ``SearchRequest`` is rejected.
    """
    if not isinstance(request, SearchRequest):
        raise TypeError("build_overpass_query requires a validated SearchRequest")
    poi_type = request.poi_type
    selector = f'["{poi_type.osm_key}"="{poi_type.value}"]'
    return QUERY_TEMPLATE.format(
        timeout=int(timeout_seconds),
        selector=selector,
        radius=int(request.radius_meters),
        lat=_format_coordinate(request.lat),
        lon=_format_coordinate(request.lon),
    )


def parse_elements(payload: object) -> list[OverpassElement]:
    """Parse raw Overpass elements, skipping ones that do not fit any variant."""
    if not isinstance(payload, dict):
        raise UpstreamError()
    raw_elements = payload.get("elements") or []
    if not isinstance(raw_elements, list):
        raise UpstreamError()

    elements = []
    for raw in raw_elements:
        try:
            elements.append(_element_adapter.validate_python(raw))
        except ValidationError as e:
            logger.debug(f"[OVERPASS] Skipping unparseable element: {e.error_count()} errors")
    return elements


def element_to_poi(element: OverpassElement, request: SearchRequest) -> POIResult | None:
    """Normalize one element; None if it has no usable coordinate."""
    coordinates = element.coordinates()
    if coordinates is None:
        return None
    lat, lng = coordinates
    tags = element.tags
    poi_type = request.poi_type

    try:
        return POIResult(
            id=element.id,
            name=tags.get("name") or poi_type.display_name,
            category=tags.get(poi_type.osm_key) or poi_type.value,
            lat=lat,
            lng=lng,
            address=tags.get("addr:full") or tags.get("addr:street") or "",
            phone=tags.get("phone") or "",
            website=tags.get("website") or "",
            opening_hours=tags.get("opening_hours") or "",
        )
    except ValidationError:
        logger.debug(f"[OVERPASS] Element {element.id} has out-of-range coordinates")
        return None


class OverpassPOIClient:
    """Overpass interpreter client for radius searches.

    Uses a shared httpx client with connection pooling. Retries are off by
    default; ``max_retries`` enables them for transport errors and
    429/5xx responses.
    """

    OVERPASS_URL = "https://overpass-api.de/api/interpreter"

    HEADERS = {"User-Agent": "Mapify/1.0"}

    def __init__(
        self,
        url: str | None = None,
        timeout: float = 30.0,
        query_timeout: int = 25,
        max_results: int = DEFAULT_MAX_RESULTS,
        max_retries: int = 0,
        retry_backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url or self.OVERPASS_URL
        self._timeout = timeout
        self._query_timeout = query_timeout
        self._max_results = max_results
        self._max_retries = max(0, max_retries)
        self._retry_backoff = retry_backoff
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self.HEADERS,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _post_with_retry(self, query: str) -> httpx.Response:
        client = self._get_client()
        for attempt in range(self._max_retries + 1):
            last_attempt = attempt == self._max_retries
            try:
                response = await client.post(self._url, data={"data": query})
            except httpx.TimeoutException as e:
                logger.warning(f"[OVERPASS] Timeout after {self._timeout}s (attempt {attempt + 1})")
                if last_attempt:
                    raise UpstreamError() from e
            except httpx.RequestError as e:
                logger.warning(f"[OVERPASS] Request error (attempt {attempt + 1}): {e}")
                if last_attempt:
                    raise UpstreamError() from e
            else:
                if response.status_code in RETRYABLE_STATUS_CODES and not last_attempt:
                    logger.warning(f"[OVERPASS] HTTP {response.status_code}, retrying")
                else:
                    return response
            await asyncio.sleep(self._retry_backoff * (2**attempt))
        raise UpstreamError()

    async def search(self, request: SearchRequest) -> list[POIResult]:
        """Find POIs of ``request.poi_type`` within the requested radius.

        Results keep upstream order and are truncated to ``max_results``.

        Raises:
            UpstreamError: On timeout, transport error, non-2xx status or a
                response body that is not an Overpass JSON document.
        """
        query = build_overpass_query(request, self._query_timeout)
        response = await self._post_with_retry(query)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"[OVERPASS] HTTP {response.status_code} from upstream")
            raise UpstreamError() from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"[OVERPASS] Non-JSON response: {e}")
            raise UpstreamError() from e

        if isinstance(payload, dict) and payload.get("remark"):
            logger.warning(f"[OVERPASS] Remark: {payload['remark']}")

        results: list[POIResult] = []
        for element in parse_elements(payload):
            poi = element_to_poi(element, request)
            if poi is None:
                continue
            results.append(poi)
            if len(results) >= self._max_results:
                break

        logger.info(
            f"[OVERPASS] {len(results)} {request.poi_type.value} results "
            f"within {request.radius_meters}m"
        )
        return results
