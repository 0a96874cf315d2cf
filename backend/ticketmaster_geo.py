from __future__ import annotations

"""
Ticketmaster Discovery API takes geo searches via `geoPoint` (a geohash).
Tiny geohash encoder, no extra dependency.
"""

_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"

# 9 chars ~ a few meters; Ticketmaster widens it with `radius` anyway.
GEOHASH_PRECISION = 9


def geohash_encode(lat: float, lng: float, *, precision: int = GEOHASH_PRECISION) -> str:
    """
    Encode a lat/lng pair into a geohash string of `precision` characters.
    Bits alternate longitude/latitude, starting with longitude.
    """
    if precision < 1:
        raise ValueError("precision must be >= 1")

    lat = max(-90.0, min(90.0, float(lat)))
    lng = max(-180.0, min(180.0, float(lng)))

    ranges = {"lat": [-90.0, 90.0], "lng": [-180.0, 180.0]}
    values = {"lat": lat, "lng": lng}
    axis = "lng"

    chars: list[str] = []
    ch = 0
    nbits = 0
    while len(chars) < precision:
        lo, hi = ranges[axis]
        mid = (lo + hi) / 2.0
        ch <<= 1
        if values[axis] >= mid:
            ch |= 1
            ranges[axis][0] = mid
        else:
            ranges[axis][1] = mid
        axis = "lat" if axis == "lng" else "lng"

        nbits += 1
        if nbits == 5:
            chars.append(_BASE32[ch])
            ch = 0
            nbits = 0
    return "".join(chars)
