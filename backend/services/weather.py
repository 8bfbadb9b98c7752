"""
services/weather.py
───────────────────
Current weather from the KMA ultra-short-term forecast API.

Pipeline:
  Phase 1 → Coordinate → grid cell (nx, ny)
  Phase 2 → Latest published base time (HH:30, available from HH:45 KST)
  Phase 3 → getUltraSrtFcst, earliest forecast slot, SKY / PTY → condition

Any failure (missing key, network, malformed payload) trips the circuit
breaker and a backup report is served with ``is_backup_data=True``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

import httpx

from core.config import get_settings
from models.attraction import GridCell
from models.weather import WeatherCondition, WeatherReport
from services.retrieval import grid_cell_for
from services.weather_classifier import (
    classify_condition,
    precipitation_text,
    recommended_type,
    sky_text,
)

logger = logging.getLogger("weathertrip.weather")

# ── KMA API ─────────────────────────────────────────────────────────────────
KMA_FORECAST_URL = (
    "https://apis.data.go.kr/1360000/VilageFcstInfoService_2.0/getUltraSrtFcst"
)
KMA_TZ = ZoneInfo("Asia/Seoul")
KMA_OK = "00"

# Forecasts are published at HH:30 and become queryable at HH:45.
_PUBLICATION_DELAY = timedelta(minutes=45)

# Wind above this speed (m/s) lowers the apparent temperature by 2 °C.
_WIND_CHILL_THRESHOLD = 1.5
_WIND_CHILL_DELTA = 2.0

_BACKUP_TEMPERATURE = 23.0
_BACKUP_HUMIDITY = 65
_BACKUP_WIND_SPEED = 2.5


class WeatherDataError(Exception):
    """The KMA response could not be turned into a weather report."""


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def base_datetime(now: Optional[datetime] = None) -> Tuple[str, str]:
    """
    Most recent forecast run available at *now* as ``(YYYYMMDD, HH30)``.

    Naive datetimes are taken to be KST already.
    """
    if now is None:
        now = datetime.now(KMA_TZ)
    elif now.tzinfo is not None:
        now = now.astimezone(KMA_TZ)

    base = now - _PUBLICATION_DELAY
    return base.strftime("%Y%m%d"), base.strftime("%H") + "30"


def _earliest_slot(items: List[Dict[str, Any]]) -> Tuple[str, str, Dict[str, str]]:
    """Group forecast items by ``fcstDate``/``fcstTime`` and return the earliest slot."""
    slots: Dict[Tuple[str, str], Dict[str, str]] = {}
    for item in items:
        try:
            key = (str(item["fcstDate"]), str(item["fcstTime"]))
            slots.setdefault(key, {})[item["category"]] = item["fcstValue"]
        except (KeyError, TypeError) as exc:
            raise WeatherDataError(f"malformed forecast item {item!r}") from exc

    if not slots:
        raise WeatherDataError("forecast response contains no items")

    first = min(slots)
    return first[0], first[1], slots[first]


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def build_report(
    items: List[Dict[str, Any]],
    grid: GridCell,
    base_date: str,
    base_time: str,
) -> WeatherReport:
    """Turn ``getUltraSrtFcst`` items into a ``WeatherReport``."""
    fcst_date, fcst_time, data = _earliest_slot(items)

    if "SKY" not in data or "PTY" not in data:
        raise WeatherDataError(f"SKY or PTY missing from forecast slot {fcst_date}{fcst_time}")

    condition = classify_condition(data["SKY"], data["PTY"])
    temperature = _as_float(data.get("T1H"))
    wind_speed = max(0.0, _as_float(data.get("WSD")))
    feels_like = temperature - (_WIND_CHILL_DELTA if wind_speed > _WIND_CHILL_THRESHOLD else 0.0)
    humidity = min(100, max(0, int(_as_float(data.get("REH")))))

    return WeatherReport(
        temperature=temperature,
        feels_like=feels_like,
        humidity=humidity,
        wind_speed=wind_speed,
        condition=condition,
        sky=sky_text(data["SKY"]),
        precipitation=precipitation_text(data["PTY"]),
        recommended_type=recommended_type(condition),
        base_date=base_date,
        base_time=base_time,
        forecast_date=fcst_date,
        forecast_time=fcst_time,
        grid=grid,
    )


def backup_report(grid: Optional[GridCell] = None) -> WeatherReport:
    """Default clear-sky report served when live weather is unavailable."""
    return WeatherReport(
        temperature=_BACKUP_TEMPERATURE,
        feels_like=_BACKUP_TEMPERATURE,
        humidity=_BACKUP_HUMIDITY,
        wind_speed=_BACKUP_WIND_SPEED,
        condition=WeatherCondition.CLEAR,
        sky=sky_text(1),
        precipitation=precipitation_text(0),
        recommended_type=recommended_type(WeatherCondition.CLEAR),
        grid=grid,
        is_backup_data=True,
    )


async def _fetch_forecast_items(params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Call getUltraSrtFcst and return ``response.body.items.item``."""
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.WEATHER_TIMEOUT_SECONDS) as client:
        resp = await client.get(KMA_FORECAST_URL, params=params)
        resp.raise_for_status()
        payload = resp.json()

    try:
        header = payload["response"]["header"]
        if header.get("resultCode") != KMA_OK:
            raise WeatherDataError(f"KMA error: {header.get('resultMsg', 'unknown error')}")
        return payload["response"]["body"]["items"]["item"]
    except (KeyError, TypeError) as exc:
        raise WeatherDataError(f"unexpected KMA payload shape: {exc}") from exc


# ═══════════════════════════════════════════════════════════════════════════
# Main entry point
# ═══════════════════════════════════════════════════════════════════════════

async def fetch_current_weather(
    longitude: float,
    latitude: float,
    now: Optional[datetime] = None,
) -> WeatherReport:
    """
    Current weather at a coordinate.

    **Guard clause**: an empty service key or ``USE_MOCK_WEATHER`` skips the
    network call and serves the backup report.
    """
    settings = get_settings()
    grid = grid_cell_for(longitude, latitude)

    if settings.USE_MOCK_WEATHER:
        logger.info("USE_MOCK_WEATHER is set — serving backup weather")
        return backup_report(grid)

    service_key = settings.KMA_SERVICE_KEY
    if not service_key or not service_key.strip():
        logger.warning("KMA_SERVICE_KEY is missing/empty — circuit breaker tripped")
        return backup_report(grid)

    base_date, base_time = base_datetime(now)
    params = {
        "serviceKey": service_key,
        "pageNo": 1,
        "numOfRows": 60,
        "dataType": "JSON",
        "base_date": base_date,
        "base_time": base_time,
        "nx": grid.nx,
        "ny": grid.ny,
    }

    try:
        items = await _fetch_forecast_items(params)
        report = build_report(items, grid, base_date, base_time)
    except (httpx.HTTPError, WeatherDataError, ValueError) as exc:
        logger.warning(
            "Live weather fetch failed (nx=%s, ny=%s, base=%s %s): %s",
            grid.nx,
            grid.ny,
            base_date,
            base_time,
            exc,
        )
        return backup_report(grid)

    logger.info(
        "Weather at grid (%d, %d): %s → %s",
        grid.nx,
        grid.ny,
        report.condition.value,
        report.recommended_type.value,
    )
    return report
