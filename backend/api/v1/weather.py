"""
api/v1/weather.py
─────────────────
GET /api/v1/weather       — current weather at a coordinate (KMA)
GET /api/v1/weather/grid  — KMA grid cell for a coordinate

Rate-limited to 10 req/min (EXTERNAL_API_LIMIT) because the weather
endpoint triggers calls to the KMA forecast API.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_retrieval_service
from core.security import EXTERNAL_API_LIMIT, limiter
from models.attraction import GridCell
from models.weather import WeatherReport
from services.retrieval import RetrievalService
from services.weather import fetch_current_weather

router = APIRouter(
    prefix="/weather",
    tags=["weather"],
)


@router.get(
    "",
    response_model=WeatherReport,
    summary="Current weather at a coordinate",
    description=(
        "Fetches the KMA ultra-short-term forecast for the grid cell containing "
        "the coordinate. Falls back to a default report (``is_backup_data``) "
        "when the forecast service is unavailable."
    ),
)
@limiter.limit(EXTERNAL_API_LIMIT)
async def current_weather(
    request: Request,
    longitude: float = Query(..., ge=-180.0, le=180.0),
    latitude: float = Query(..., ge=-90.0, le=90.0),
) -> WeatherReport:
    return await fetch_current_weather(longitude, latitude)


@router.get(
    "/grid",
    response_model=GridCell,
    summary="KMA grid cell for a coordinate",
)
async def weather_grid(
    longitude: float = Query(..., ge=-180.0, le=180.0),
    latitude: float = Query(..., ge=-90.0, le=90.0),
    service: RetrievalService = Depends(get_retrieval_service),
) -> GridCell:
    return service.grid_cell_for(longitude, latitude)
