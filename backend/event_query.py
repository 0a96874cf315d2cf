from __future__ import annotations

import logging
import math
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_MILES = 10
PAGE_SIZE = 20
ALL_CATEGORIES = "All"


class SearchRequest(BaseModel):
    """Body of POST /api/events/search (field names match the frontend's camelCase)."""

    model_config = ConfigDict(populate_by_name=True)

    keyword: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    ip_address: Optional[str] = Field(default=None, alias="ipAddress")
    auto_detect: bool = Field(default=False, alias="autoDetect")
    distance: Optional[Union[int, float]] = None
    latlong: Optional[str] = None

    @field_validator("auto_detect", mode="before")
    @classmethod
    def _coerce_auto_detect(cls, value: Any) -> bool:
        if value is None or value == "":
            return False
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "on")
        return bool(value)

    @field_validator("distance", mode="before")
    @classmethod
    def _coerce_distance(cls, value: Any) -> Optional[Union[int, float]]:
        # Unusable radius values fall back to the default rather than rejecting the search.
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                number = float(text)
            except ValueError:
                return None
            return number if math.isfinite(number) else None
        return None


def build_event_query(
    request: SearchRequest,
    *,
    api_key: str,
    resolve_geohash: Callable[[str], str],
) -> dict[str, Any]:
    """
    Turn a search request into Ticketmaster `events.json` query params.

    Only the auto-detect branch touches the network (via `resolve_geohash`);
    a LookupFailed from it propagates so the request fails with 404 instead of
    silently searching without a location.
    """
    params: dict[str, Any] = {
        "apikey": api_key,
        "keyword": request.keyword or "",
        # Explicit latlong is forwarded as-is, even alongside geoPoint.
        "latlong": request.latlong or "",
        "radius": request.distance or DEFAULT_RADIUS_MILES,
        "unit": "miles",
        "sort": "relevance,desc",
        "size": PAGE_SIZE,
    }

    if request.category and request.category != ALL_CATEGORIES:
        params["classificationName"] = request.category

    if request.auto_detect and request.ip_address:
        params["geoPoint"] = resolve_geohash(request.ip_address)
    elif request.location:
        # Forward geocoding of free-text locations is disabled; the field is accepted and ignored.
        logger.info("Manual location %r supplied; no geocoding performed", request.location)

    return params
