"""
services/weather_classifier.py
──────────────────────────────
Weather → attraction-type rules.

  • classify_condition  — KMA (SKY, PTY) codes → WeatherCondition
  • recommended_type    — WeatherCondition → AttractionType (fail-open to ``both``)
  • type_predicate      — AttractionType → set of stored types to match

Every function here is total: unknown or malformed input maps to a
default, never to an exception.
"""

from __future__ import annotations

from typing import Any, FrozenSet, Optional, Union

from models.attraction import AttractionType
from models.weather import WeatherCondition

# ── KMA precipitation type (PTY) codes ──────────────────────────────────────
PTY_NONE = 0
_RAIN_PTY = frozenset({1, 4, 5})        # rain, shower, drizzle
_SNOW_PTY = frozenset({2, 3, 6, 7})     # rain/snow, snow, drizzle/flurries, flurries

# ── KMA sky state (SKY) codes ───────────────────────────────────────────────
SKY_CLEAR = 1
_CLOUDY_SKY = frozenset({3, 4})         # mostly cloudy, overcast

_SKY_TEXT = {
    1: "Clear",
    3: "Mostly cloudy",
    4: "Overcast",
}

_PTY_TEXT = {
    0: "None",
    1: "Rain",
    2: "Rain/Snow",
    3: "Snow",
    4: "Shower",
    5: "Drizzle",
    6: "Drizzle/Snow flurries",
    7: "Snow flurries",
}

_UNKNOWN_TEXT = "Unknown"


def _to_int(code: Any) -> int:
    """KMA sends codes as strings; anything non-numeric counts as 0."""
    if isinstance(code, bool):
        return int(code)
    if isinstance(code, int):
        return code
    try:
        return int(float(str(code).strip()))
    except (TypeError, ValueError, OverflowError):
        return 0


def classify_condition(sky_code: Any, precipitation_code: Any) -> WeatherCondition:
    """Precipitation dominates; otherwise the sky state decides (default Clear)."""
    sky = _to_int(sky_code)
    pty = _to_int(precipitation_code)

    if pty > PTY_NONE:
        if pty in _RAIN_PTY:
            return WeatherCondition.RAIN
        if pty in _SNOW_PTY:
            return WeatherCondition.SNOW

    if sky == SKY_CLEAR:
        return WeatherCondition.CLEAR
    if sky in _CLOUDY_SKY:
        return WeatherCondition.CLOUDS
    return WeatherCondition.CLEAR


def parse_condition(condition: Union[WeatherCondition, str, None]) -> Optional[WeatherCondition]:
    """Return the matching enum member, or ``None`` for anything unrecognised."""
    if isinstance(condition, WeatherCondition):
        return condition
    if not isinstance(condition, str):
        return None
    try:
        return WeatherCondition(condition.strip())
    except ValueError:
        return None


def recommended_type(condition: Union[WeatherCondition, str, None]) -> AttractionType:
    """Clear → outdoor, Clouds → both, Rain / Snow → indoor, anything else → both."""
    parsed = parse_condition(condition)

    if parsed is WeatherCondition.CLEAR:
        return AttractionType.OUTDOOR
    if parsed is WeatherCondition.CLOUDS:
        return AttractionType.BOTH
    if parsed is WeatherCondition.RAIN:
        return AttractionType.INDOOR
    if parsed is WeatherCondition.SNOW:
        return AttractionType.INDOOR

    # Unknown or missing condition: recommend everything.
    return AttractionType.BOTH


def type_predicate(recommended: AttractionType) -> Optional[FrozenSet[AttractionType]]:
    """
    Stored attraction types that satisfy a recommendation.

    ``both`` attractions suit either weather, so they always match.
    ``None`` means no filter at all.
    """
    if recommended is AttractionType.INDOOR:
        return frozenset({AttractionType.INDOOR, AttractionType.BOTH})
    if recommended is AttractionType.OUTDOOR:
        return frozenset({AttractionType.OUTDOOR, AttractionType.BOTH})
    return None


def sky_text(code: Any) -> str:
    return _SKY_TEXT.get(_to_int(code), _UNKNOWN_TEXT)


def precipitation_text(code: Any) -> str:
    return _PTY_TEXT.get(_to_int(code), _UNKNOWN_TEXT)
