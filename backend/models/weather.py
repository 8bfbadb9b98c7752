"""
models/weather.py
─────────────────
Weather condition codes and the current-weather report returned by the
KMA collaborator.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from models.attraction import AttractionType, GridCell


class WeatherCondition(str, Enum):
    """Condition codes that drive the indoor / outdoor recommendation."""

    CLEAR = "Clear"
    CLOUDS = "Clouds"
    RAIN = "Rain"
    SNOW = "Snow"


class WeatherReport(BaseModel):
    """Current weather at a coordinate, as served by ``GET /api/v1/weather``."""

    temperature: float = Field(..., description="Air temperature (°C)")
    feels_like: float = Field(..., description="Apparent temperature (°C)")
    humidity: int = Field(default=0, ge=0, le=100, description="Relative humidity (%)")
    wind_speed: float = Field(default=0.0, ge=0.0, description="Wind speed (m/s)")
    condition: WeatherCondition
    sky: str = Field(default="", description="Sky state label")
    precipitation: str = Field(default="", description="Precipitation type label")
    recommended_type: AttractionType

    base_date: Optional[str] = Field(default=None, description="KMA base date (YYYYMMDD)")
    base_time: Optional[str] = Field(default=None, description="KMA base time (HHMM)")
    forecast_date: Optional[str] = None
    forecast_time: Optional[str] = None
    grid: Optional[GridCell] = None

    is_backup_data: bool = Field(
        default=False,
        description="True when live weather was unavailable and a default report was served",
    )
