"""
api/v1/attractions.py
─────────────────────
GET /api/v1/attractions         — weather-aware attractions near a coordinate
GET /api/v1/attractions/all     — every attraction (client-side map building)
GET /api/v1/attractions/random  — random attractions with images (banners)
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from api.dependencies import get_retrieval_service
from core.config import get_settings
from models.attraction import Attraction, AttractionType, SearchResult
from services.retrieval import RetrievalService
from services.weather_classifier import recommended_type

router = APIRouter(
    prefix="/attractions",
    tags=["attractions"],
)

settings = get_settings()


# ── Models ──────────────────────────────────────────────────────────────────

class NearbyAttractionsResponse(BaseModel):
    """Envelope returned by the nearby-attractions endpoint."""

    weather_condition: Optional[str] = None
    recommended_type: AttractionType
    count: int = Field(..., ge=0)
    radius_km: float
    attractions: List[SearchResult]


class AttractionListResponse(BaseModel):
    """Envelope for unranked attraction listings."""

    count: int = Field(..., ge=0)
    attractions: List[Attraction]


# ── Endpoints ───────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=NearbyAttractionsResponse,
    summary="Find attractions near a coordinate",
    description=(
        "Returns attractions within a radius of the given coordinates, "
        "nearest first, filtered by the attraction type suited to the "
        "current weather condition."
    ),
)
async def nearby_attractions(
    longitude: float = Query(..., description="Longitude of the search centre"),
    latitude: float = Query(..., description="Latitude of the search centre"),
    radius_km: Optional[float] = Query(default=None, description="Search radius in km"),
    limit: Optional[int] = Query(default=None, description="Maximum number of results"),
    weather_condition: Optional[str] = Query(
        default=None,
        description="Clear, Clouds, Rain or Snow; anything else recommends every type",
    ),
    service: RetrievalService = Depends(get_retrieval_service),
) -> NearbyAttractionsResponse:
    """
    **Pipeline**

    1. Weather condition → recommended type (indoor / outdoor / both)
    2. ``$geoNear`` proximity query (bounding-region fallback without an index)
    3. Exact Haversine distances, nearest first, truncated to ``limit``
    """
    radius = radius_km if radius_km is not None else service.default_radius_km
    results = await service.find_nearby(
        longitude=longitude,
        latitude=latitude,
        radius_km=radius,
        condition=weather_condition,
        limit=limit,
    )
    return NearbyAttractionsResponse(
        weather_condition=weather_condition,
        recommended_type=recommended_type(weather_condition),
        count=len(results),
        radius_km=radius,
        attractions=results,
    )


@router.get(
    "/all",
    response_model=AttractionListResponse,
    summary="List every attraction",
)
async def all_attractions(
    service: RetrievalService = Depends(get_retrieval_service),
) -> AttractionListResponse:
    attractions = await service.list_all()
    return AttractionListResponse(count=len(attractions), attractions=attractions)


@router.get(
    "/random",
    response_model=AttractionListResponse,
    summary="Random attractions that have images",
)
async def random_attractions(
    limit: int = Query(default=settings.RANDOM_SAMPLE_SIZE, gt=0, le=100),
    service: RetrievalService = Depends(get_retrieval_service),
) -> AttractionListResponse:
    attractions = await service.sample_random(limit)
    return AttractionListResponse(count=len(attractions), attractions=attractions)
