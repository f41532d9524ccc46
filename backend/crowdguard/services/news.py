from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

log = logging.getLogger(__name__)

NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse")
NEWS_RSS_URL = "https://news.google.com/rss/search"
USER_AGENT = os.getenv("PUBLIC_CLIENT_USER_AGENT", "CrowdGuard/1.0")


def place_name(geo: Dict[str, Any]) -> str:
    addr = geo.get("address") or {}
    for key in ("city", "town", "village", "county"):
        if addr.get(key):
            return addr[key]
    return "Local"


async def reverse_geocode(client: httpx.AsyncClient, lat: float, lon: float) -> str:
    try:
        resp = await client.get(
            NOMINATIM_URL,
            params={"format": "json", "lat": lat, "lon": lon},
            headers={"User-Agent": USER_AGENT},
        )
        resp.raise_for_status()
        return place_name(resp.json())
    except (httpx.HTTPError, ValueError) as e:
        log.warning("Geocoding failed: %s", e)
        return "Local"


def rss_url(place: str) -> str:
    q = quote(f"{place} safety crime")
    return f"{NEWS_RSS_URL}?q={q}&hl=en-US&gl=US&ceid=US:en"


async def fetch_local_news(lat: Optional[float], lon: Optional[float]) -> str:
    """Return the raw RSS document for safety news around (lat, lon)."""
    async with httpx.AsyncClient(timeout=15.0, follow_redirects=True) as client:
        place = "Local"
        if lat is not None and lon is not None:
            place = await reverse_geocode(client, lat, lon)
        resp = await client.get(rss_url(place))
        resp.raise_for_status()
        return resp.text
