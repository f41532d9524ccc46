# backend/crowdguard/services/responders.py
from __future__ import annotations

import math
import os
from typing import Any, Dict, List

import httpx

from crowdguard.models.user import Responder

OVERPASS_URL = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
SEARCH_RADIUS_M = int(os.getenv("RESPONDER_RADIUS_M", "5000"))
MAX_RESPONDERS = 5
MINUTES_PER_KM = 3  # rough driving estimate


# ---------------- Geometry helpers ----------------
def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    R = 6371.0
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dl / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c


def build_query(lat: float, lon: float, radius_m: int = SEARCH_RADIUS_M) -> str:
    around = f"around:{radius_m},{lat},{lon}"
    return f"""
    [out:json];
    (
      node["amenity"="police"]({around});
      way["amenity"="police"]({around});
      relation["amenity"="police"]({around});
    );
    out center;
    """


def parse_elements(elements: List[Dict[str, Any]], lat: float, lon: float) -> List[Responder]:
    """
    Turn Overpass elements into responders. Ways/relations only carry a
    `center`, nodes carry lat/lon directly.
    """
    out: List[Responder] = []
    for el in elements:
        center = el.get("center") or {}
        p_lat = el.get("lat", center.get("lat"))
        p_lon = el.get("lon", center.get("lon"))
        if p_lat is None or p_lon is None:
            continue
        d = haversine_km(lat, lon, float(p_lat), float(p_lon))
        out.append(
            Responder(
                id=str(el.get("id")),
                name=(el.get("tags") or {}).get("name") or "Police Station",
                type="police",
                distance=f"{d:.1f} km",
                eta=f"{math.ceil(d * MINUTES_PER_KM)} min",
            )
        )
        if len(out) >= MAX_RESPONDERS:
            break
    return out


async def find_nearby_responders(lat: float, lon: float) -> List[Responder]:
    async with httpx.AsyncClient(timeout=20.0) as client:
        resp = await client.get(OVERPASS_URL, params={"data": build_query(lat, lon)})
        resp.raise_for_status()
        data = resp.json()
    return parse_elements(data.get("elements", []), lat, lon)
