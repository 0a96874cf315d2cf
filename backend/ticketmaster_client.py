from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional

from errors import BadRequest, NotFound, UpstreamError


TICKETMASTER_API_BASE = "https://app.ticketmaster.com/discovery/v2"

logger = logging.getLogger(__name__)


class TicketmasterClient:
    """
    Thin passthrough to the Ticketmaster Discovery API (v2).

    Auth is via API key query param (`apikey`):
    https://developer.ticketmaster.com/products-and-docs/apis/discovery-api/v2/

    No retries; every failure surfaces to the caller.
    """

    def __init__(self, api_key: str, *, base_url: str = TICKETMASTER_API_BASE, timeout: int = 10):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        query = {k: v for k, v in (params or {}).items() if v is not None}
        query.setdefault("apikey", self.api_key)
        url = f"{self.base_url}{path}?" + urllib.parse.urlencode(query)
        req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            raw = resp.read().decode("utf-8")
        try:
            data = json.loads(raw)
        except Exception as e:
            raise UpstreamError(f"Failed to parse JSON from Ticketmaster: {e}. Raw={raw[:500]}")
        if not isinstance(data, dict):
            raise UpstreamError("Ticketmaster returned a non-object payload.")
        return data

    def _request(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        try:
            return self._get_json(path, params)
        except UpstreamError:
            raise
        except Exception as e:
            logger.error("Ticketmaster request %s failed: %s", path, e)
            raise UpstreamError(f"Ticketmaster request failed: {e}")

    def suggest(self, keyword: Optional[str]) -> list[dict[str, Any]]:
        kw = (keyword or "").strip()
        if not kw:
            raise BadRequest("Missing keyword query parameter.")

        data = self._request("/suggest.json", {"keyword": kw})
        embedded = data.get("_embedded")
        if not isinstance(embedded, dict) or "events" not in embedded:
            raise UpstreamError("Ticketmaster suggest response has no embedded events.")
        return embedded["events"]

    def search(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        data = self._request("/events.json", params)
        # Ticketmaster omits `_embedded` entirely when nothing matches.
        return ((data.get("_embedded") or {}).get("events")) or []

    def get_event(self, event_id: str) -> dict[str, Any]:
        path = f"/events/{urllib.parse.quote(event_id, safe='')}.json"
        try:
            return self._get_json(path)
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise NotFound("Event not found.")
            logger.error("Ticketmaster event %s lookup failed: HTTP %s", event_id, e.code)
            raise UpstreamError(f"Ticketmaster event lookup failed: HTTP {e.code}")
        except UpstreamError:
            raise
        except Exception as e:
            logger.error("Ticketmaster event %s lookup failed: %s", event_id, e)
            raise UpstreamError(f"Ticketmaster event lookup failed: {e}")
