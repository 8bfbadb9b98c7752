from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import SEOUL
from core.config import Settings
from models.attraction import AttractionType, GridCell
from models.weather import WeatherCondition
from services.weather import (
    KMA_TZ,
    WeatherDataError,
    backup_report,
    base_datetime,
    build_report,
    fetch_current_weather,
)

GRID = GridCell(nx=60, ny=127, longitude=SEOUL[0], latitude=SEOUL[1])


def _items(slot_time="1500", fcst_date="20261019", **values):
    return [
        {"fcstDate": fcst_date, "fcstTime": slot_time, "category": category, "fcstValue": value}
        for category, value in values.items()
    ]


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


# ── Base time ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2026, 10, 19, 14, 50), ("20261019", "1430")),
        (datetime(2026, 10, 19, 14, 45), ("20261019", "1430")),
        (datetime(2026, 10, 19, 14, 10), ("20261019", "1330")),
        (datetime(2026, 10, 19, 0, 20), ("20261018", "2330")),
        (datetime(2026, 1, 1, 0, 5), ("20251231", "2330")),
    ],
)
def test_base_datetime(now, expected):
    assert base_datetime(now) == expected


def test_base_datetime_converts_aware_times_to_kst():
    # 05:50 UTC is 14:50 in Seoul.
    now = datetime(2026, 10, 19, 5, 50, tzinfo=timezone.utc)
    assert base_datetime(now) == ("20261019", "1430")


def test_base_datetime_defaults_to_now():
    base_date, base_time = base_datetime()
    assert len(base_date) == 8 and base_time.endswith("30")
    assert base_date <= datetime.now(KMA_TZ).strftime("%Y%m%d")


# ── Report building ────────────────────────────────────────────────────────

def test_build_report_uses_earliest_slot():
    items = _items("1600", SKY="4", PTY="1", T1H="12") + _items("1500", SKY="1", PTY="0", T1H="18")

    report = build_report(items, GRID, "20261019", "1430")

    assert report.forecast_time == "1500"
    assert report.condition is WeatherCondition.CLEAR
    assert report.recommended_type is AttractionType.OUTDOOR
    assert report.temperature == 18.0
    assert report.is_backup_data is False


def test_build_report_rain_recommends_indoor():
    report = build_report(_items(SKY="4", PTY="1", T1H="9", REH="95", WSD="0.8"), GRID, "20261019", "1430")

    assert report.condition is WeatherCondition.RAIN
    assert report.recommended_type is AttractionType.INDOOR
    assert report.precipitation == "Rain"
    assert report.sky == "Overcast"
    assert report.humidity == 95
    assert report.feels_like == 9.0


def test_build_report_wind_lowers_feels_like():
    report = build_report(_items(SKY="1", PTY="0", T1H="20", WSD="3.2"), GRID, "20261019", "1430")
    assert report.feels_like == 18.0


def test_build_report_requires_sky_and_pty():
    with pytest.raises(WeatherDataError):
        build_report(_items(PTY="0", T1H="20"), GRID, "20261019", "1430")


@pytest.mark.parametrize("items", [[], [{"category": "SKY"}], [None]])
def test_build_report_rejects_malformed_items(items):
    with pytest.raises(WeatherDataError):
        build_report(items, GRID, "20261019", "1430")


def test_backup_report():
    report = backup_report(GRID)

    assert report.is_backup_data is True
    assert report.condition is WeatherCondition.CLEAR
    assert report.temperature == 23.0
    assert report.grid == GRID


# ── Live fetch ─────────────────────────────────────────────────────────────

async def test_missing_service_key_serves_backup():
    fetch = AsyncMock()
    with patch("services.weather.get_settings", return_value=_settings(KMA_SERVICE_KEY="  ")), \
         patch("services.weather._fetch_forecast_items", fetch):
        report = await fetch_current_weather(*SEOUL)

    assert report.is_backup_data is True
    assert (report.grid.nx, report.grid.ny) == (60, 127)
    fetch.assert_not_awaited()


async def test_mock_flag_serves_backup():
    fetch = AsyncMock()
    settings = _settings(KMA_SERVICE_KEY="test-key", USE_MOCK_WEATHER=True)
    with patch("services.weather.get_settings", return_value=settings), \
         patch("services.weather._fetch_forecast_items", fetch):
        report = await fetch_current_weather(*SEOUL)

    assert report.is_backup_data is True
    fetch.assert_not_awaited()


async def test_live_report_for_seoul():
    fetch = AsyncMock(return_value=_items(SKY="3", PTY="0", T1H="16", REH="60", WSD="1.0"))
    now = datetime(2026, 10, 19, 14, 50, tzinfo=KMA_TZ)

    with patch("services.weather.get_settings", return_value=_settings(KMA_SERVICE_KEY="test-key")), \
         patch("services.weather._fetch_forecast_items", fetch):
        report = await fetch_current_weather(*SEOUL, now=now)

    assert report.is_backup_data is False
    assert report.condition is WeatherCondition.CLOUDS
    assert report.recommended_type is AttractionType.BOTH
    assert (report.base_date, report.base_time) == ("20261019", "1430")

    params = fetch.call_args.args[0]
    assert params["serviceKey"] == "test-key"
    assert (params["nx"], params["ny"]) == (60, 127)
    assert (params["base_date"], params["base_time"]) == ("20261019", "1430")
    assert params["dataType"] == "JSON"


@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
        WeatherDataError("KMA error: SERVICE_KEY_IS_NOT_REGISTERED_ERROR"),
        ValueError("Expecting value: line 1 column 1 (char 0)"),
    ],
)
async def test_upstream_failure_serves_backup(error):
    fetch = AsyncMock(side_effect=error)
    with patch("services.weather.get_settings", return_value=_settings(KMA_SERVICE_KEY="test-key")), \
         patch("services.weather._fetch_forecast_items", fetch):
        report = await fetch_current_weather(*SEOUL)

    assert report.is_backup_data is True
    assert report.grid.nx == 60
