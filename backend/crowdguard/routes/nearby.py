from __future__ import annotations

import logging
from typing import List, Optional

import httpx
from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from starlette.responses import Response

from crowdguard.models.user import Responder
from crowdguard.services import analysis, news, responders

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["nearby"])


@router.get("/nearby-responders", response_model=List[Responder])
async def nearby_responders(
    lat: Optional[float] = Query(None, description="Latitude"),
    lon: Optional[float] = Query(None, description="Longitude"),
):
    if lat is None or lon is None:
        raise HTTPException(status_code=400, detail="Latitude and longitude are required")
    try:
        return await responders.find_nearby_responders(lat, lon)
    except (httpx.HTTPError, ValueError) as e:
        log.error("Failed to fetch responders: %s", e)
        raise HTTPException(status_code=502, detail="Failed to fetch nearby responders")


@router.get("/news")
async def local_news(
    lat: Optional[float] = Query(None, description="Latitude"),
    lon: Optional[float] = Query(None, description="Longitude"),
):
    """
    Proxy for the Google News RSS search around the user's town. The XML is
    passed through untouched; the frontend parses it.
    """
    try:
        xml = await news.fetch_local_news(lat, lon)
    except httpx.HTTPError as e:
        log.error("News fetch error: %s", e)
        raise HTTPException(status_code=502, detail="Failed to fetch news")
    return Response(content=xml, media_type="application/rss+xml")


@router.post("/analyze-image")
async def analyze_image(image: UploadFile = File(...)):
    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    result = await run_in_threadpool(
        analysis.analyze_image, data, image.content_type or "image/jpeg"
    )
    return {"analysis": result}
