from __future__ import annotations

import json
import logging
import urllib.parse
import urllib.request
from typing import Callable, Tuple

from errors import LookupFailed, UpstreamError
from ticketmaster_geo import GEOHASH_PRECISION, geohash_encode

"""
IP geolocation (ipinfo.io) for "near me" searches.

ipinfo returns `loc` as "<lat>,<lng>"; we turn it into a geohash that
Ticketmaster accepts as `geoPoint`.
"""


IPINFO_BASE = "https://ipinfo.io"

logger = logging.getLogger(__name__)

# ip address -> geohash
GeohashResolver = Callable[[str], str]


def _parse_loc(loc: str) -> Tuple[float, float]:
    parts = [p.strip() for p in loc.split(",")]
    if len(parts) != 2:
        raise UpstreamError(f"Unexpected ipinfo loc format: {loc!r}")
    try:
        return (float(parts[0]), float(parts[1]))
    except ValueError:
        raise UpstreamError(f"Unexpected ipinfo loc format: {loc!r}")


def lookup_ip_location(ip_address: str, *, token: str = "", timeout: int = 10) -> Tuple[float, float]:
    """
    Return (lat, lng) for an IP address.

    Raises LookupFailed when ipinfo answers but has no `loc` for the address
    (e.g. bogon/private ranges), UpstreamError on transport or parse failures.
    """
    ip = (ip_address or "").strip()
    if not ip:
        raise LookupFailed()

    url = f"{IPINFO_BASE}/{urllib.parse.quote(ip, safe='')}"
    if token:
        url = url + "?" + urllib.parse.urlencode({"token": token})
    req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")

    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
            data = json.loads(raw or "{}")
    except Exception as e:
        logger.error("ipinfo lookup for %s failed: %s", ip, e)
        raise UpstreamError(f"ipinfo lookup failed: {e}")

    loc = str((data or {}).get("loc") or "").strip() if isinstance(data, dict) else ""
    if not loc:
        logger.info("ipinfo returned no location for %s", ip)
        raise LookupFailed()
    return _parse_loc(loc)


def resolve_geohash(ip_address: str, *, token: str = "", precision: int = GEOHASH_PRECISION) -> str:
    lat, lng = lookup_ip_location(ip_address, token=token)
    return geohash_encode(lat, lng, precision=precision)


def make_geohash_resolver(token: str) -> GeohashResolver:
    def _resolve(ip_address: str) -> str:
        return resolve_geohash(ip_address, token=token)

    return _resolve
