"""
services/proximity_search.py
────────────────────────────
Proximity search over the attraction store.

Pipeline per call:
  1 → Validate the query                     (InvalidArgument)
  2 → Indexed path      store.near()          ($geoNear, nearest first; re-fetched
                                              if parsing leaves the page short)
  3 → Fallback path     store.within()        (on IndexUnavailable only)
        stage 1: loose bounding-region candidates
        stage 2: exact Haversine re-check, stable sort, limit

Both paths annotate distances with ``distance_km`` and apply the same
``distance <= radius`` rule, so for one data snapshot they return the same
attractions in the same order.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Tuple, TypeVar

from pydantic import ValidationError

from core.errors import IndexUnavailable, InvalidArgument, RetrievalError, StoreUnavailable
from models.attraction import Attraction, SearchQuery, SearchResult
from services.attraction_store import AttractionStore, TypeFilter
from services.distance import EARTH_RADIUS_KM, distance_km

logger = logging.getLogger("weathertrip.search")

T = TypeVar("T")

# Widens both store-side filters so float error at the store never drops an
# attraction that sits exactly on the radius; the exact re-check trims.
CANDIDATE_SLACK = 1.001

PATH_INDEXED = "indexed"
PATH_FALLBACK = "fallback"


# ═══════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════

def validate_query(query: SearchQuery) -> None:
    """Raise ``InvalidArgument`` for anything the engine refuses to run."""
    lon, lat = query.longitude, query.latitude
    if lon is None or lat is None:
        raise InvalidArgument("longitude and latitude are required")
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise InvalidArgument(f"coordinates must be finite, got ({lon}, {lat})")
    if not (-180.0 <= lon <= 180.0):
        raise InvalidArgument(f"longitude must be between -180 and 180, got {lon}")
    if not (-90.0 <= lat <= 90.0):
        raise InvalidArgument(f"latitude must be between -90 and 90, got {lat}")
    if not math.isfinite(query.radius_km) or query.radius_km <= 0:
        raise InvalidArgument(f"radius_km must be positive, got {query.radius_km}")
    if query.limit <= 0:
        raise InvalidArgument(f"limit must be positive, got {query.limit}")


# ═══════════════════════════════════════════════════════════════════════════
# Fallback pipeline stages
# ═══════════════════════════════════════════════════════════════════════════

def candidate_radius_radians(radius_km: float) -> float:
    """Angular radius of the stage-1 bounding region."""
    return radius_km / EARTH_RADIUS_KM * CANDIDATE_SLACK


def rank_candidates(
    docs: Iterable[Dict[str, Any]],
    longitude: float,
    latitude: float,
    radius_km: float,
    limit: int,
) -> List[SearchResult]:
    """
    Exact re-check of store candidates.

    Computes the Haversine distance of every document, drops those beyond
    *radius_km*, stable-sorts ascending (ties keep store order) and keeps
    the first *limit*.
    """
    results: List[SearchResult] = []
    for doc in docs:
        attraction = parse_attraction(doc)
        if attraction is None:
            continue
        d = distance_km(
            latitude,
            longitude,
            attraction.location.latitude,
            attraction.location.longitude,
        )
        if d <= radius_km:
            results.append(SearchResult(attraction=attraction, distance_km=d))

    results.sort(key=lambda r: r.distance_km)
    return results[:limit]


def parse_attraction(doc: Dict[str, Any]) -> Optional[Attraction]:
    try:
        return Attraction.model_validate(doc)
    except ValidationError as exc:
        logger.warning("Skipping malformed attraction %s: %s", doc.get("_id"), exc)
        return None


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

class ProximitySearchEngine:
    """Stateless search over an ``AttractionStore``."""

    def __init__(self, store: AttractionStore, timeout: Optional[float] = None) -> None:
        self._store = store
        self._timeout = timeout

    async def search(self, query: SearchQuery, types: TypeFilter = None) -> List[SearchResult]:
        """Attractions within ``query.radius_km`` matching *types*, nearest first."""
        validate_query(query)
        center = (query.longitude, query.latitude)

        try:
            docs, results = await self._search_indexed(query, types)
            path = PATH_INDEXED
        except IndexUnavailable as exc:
            logger.warning("Spatial index unavailable (%s) — using bounding-region fallback", exc)
            docs = await self.call_store(
                self._store.within(center, candidate_radius_radians(query.radius_km), types),
                PATH_FALLBACK,
            )
            results = rank_candidates(
                docs,
                query.longitude,
                query.latitude,
                query.radius_km,
                query.limit,
            )
            path = PATH_FALLBACK

        logger.info(
            "%s path: %d of %d candidates within %.3f km of (%.5f, %.5f)",
            path,
            len(results),
            len(docs),
            query.radius_km,
            query.longitude,
            query.latitude,
        )
        return results

    async def _search_indexed(
        self,
        query: SearchQuery,
        types: TypeFilter,
    ) -> Tuple[List[Dict[str, Any]], List[SearchResult]]:
        """
        ``$geoNear`` applies ``limit`` before documents are parsed, so any
        skipped document would leave the page short. Re-fetch with a doubled
        limit until the page is full or the store has nothing more to give.
        """
        center = (query.longitude, query.latitude)
        fetch = query.limit
        while True:
            docs = await self.call_store(
                self._store.near(center, query.radius_km * CANDIDATE_SLACK, types, fetch),
                PATH_INDEXED,
            )
            results = rank_candidates(
                docs,
                query.longitude,
                query.latitude,
                query.radius_km,
                query.limit,
            )
            if len(results) >= query.limit or len(docs) < fetch:
                return docs, results
            logger.info(
                "Indexed page short (%d of %d after parsing); re-fetching %d candidates",
                len(results),
                query.limit,
                fetch * 2,
            )
            fetch *= 2

    async def call_store(self, awaitable: Awaitable[T], path: str) -> T:
        """Await a store call under the deadline, normalising failures."""
        try:
            if self._timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise StoreUnavailable(
                f"attraction store did not answer within {self._timeout}s", path=path
            ) from exc
        except StoreUnavailable as exc:
            if exc.path is None:
                exc.path = path
            raise
        except IndexUnavailable as exc:
            if path == PATH_INDEXED:
                raise
            raise StoreUnavailable(f"attraction store failed: {exc}", path=path) from exc
        except RetrievalError:
            raise
        except Exception as exc:
            raise StoreUnavailable(f"attraction store failed: {exc}", path=path) from exc
