"""
services/retrieval.py
─────────────────────
Public entry point of the attraction retrieval engine.

  • find_nearby    — weather-filtered, distance-ranked attractions
  • list_all       — every attraction, unranked
  • sample_random  — random attractions that have images (banners)
  • grid_cell_for  — KMA grid cell for a coordinate (weather lookups)
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from pydantic import ValidationError

from core.config import get_settings
from core.errors import InvalidArgument
from models.attraction import Attraction, GridCell, SearchQuery, SearchResult
from models.weather import WeatherCondition
from services.attraction_store import AttractionStore
from services.projection import project
from services.proximity_search import ProximitySearchEngine, parse_attraction
from services.weather_classifier import recommended_type, type_predicate

logger = logging.getLogger("weathertrip.retrieval")


class RetrievalService:
    """Composes the projector, classifier and search engine over one store."""

    def __init__(
        self,
        store: AttractionStore,
        timeout: Optional[float] = None,
        default_radius_km: Optional[float] = None,
        default_limit: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._store = store
        self._engine = ProximitySearchEngine(store, timeout=timeout)
        self.default_radius_km = (
            default_radius_km if default_radius_km is not None else settings.SEARCH_RADIUS_KM
        )
        self.default_limit = default_limit if default_limit is not None else settings.MAX_RESULTS

    async def find_nearby(
        self,
        longitude: Optional[float],
        latitude: Optional[float],
        radius_km: Optional[float] = None,
        condition: Union[WeatherCondition, str, None] = None,
        limit: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Attractions near ``(longitude, latitude)`` suited to *condition*.

        No condition (or an unknown one) recommends every attraction type.
        """
        try:
            query = SearchQuery(
                longitude=longitude,
                latitude=latitude,
                radius_km=radius_km if radius_km is not None else self.default_radius_km,
                limit=limit if limit is not None else self.default_limit,
                condition=_condition_code(condition),
            )
        except ValidationError as exc:
            raise InvalidArgument(str(exc)) from exc

        recommended = recommended_type(query.condition)
        logger.info(
            "Nearby search: condition=%s → recommending %s",
            query.condition,
            recommended.value,
        )
        return await self._engine.search(query, type_predicate(recommended))

    async def list_all(self) -> List[Attraction]:
        """Every attraction in store order, without distances."""
        docs = await self._engine.call_store(self._store.list_all(), "list")
        return [a for a in map(parse_attraction, docs) if a is not None]

    async def sample_random(self, n: int) -> List[Attraction]:
        """Up to *n* random attractions that have at least one image."""
        if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
            raise InvalidArgument(f"sample size must be a positive integer, got {n!r}")
        docs = await self._engine.call_store(self._store.sample(n), "sample")
        return [a for a in map(parse_attraction, docs) if a is not None][:n]

    def grid_cell_for(self, longitude: float, latitude: float) -> GridCell:
        return grid_cell_for(longitude, latitude)


def _condition_code(condition: Union[WeatherCondition, str, None]) -> Optional[str]:
    if isinstance(condition, WeatherCondition):
        return condition.value
    return condition if isinstance(condition, str) else None


def grid_cell_for(longitude: float, latitude: float) -> GridCell:
    """KMA forecast grid cell for a coordinate."""
    nx, ny = project(longitude, latitude)
    return GridCell(nx=nx, ny=ny, longitude=longitude, latitude=latitude)

