"""
services/attraction_store.py
────────────────────────────
Read-only access to the ``attractions`` collection.

``AttractionStore`` is the interface the search engine depends on;
``MongoAttractionStore`` implements it with motor. Driver errors are
translated here:

  • missing ``2dsphere`` index → ``IndexUnavailable``
  • any other ``PyMongoError`` → ``StoreUnavailable``
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Optional, Protocol, Tuple

from pymongo.errors import OperationFailure, PyMongoError

from core.errors import IndexUnavailable, StoreUnavailable
from models.attraction import AttractionType
from services.distance import EARTH_RADIUS_KM

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorCollection

logger = logging.getLogger("weathertrip.store")

Point = Tuple[float, float]
"""``(longitude, latitude)`` — GeoJSON axis order."""

TypeFilter = Optional[FrozenSet[AttractionType]]

# MongoDB measures $geoNear distances on this sphere (metres).
MONGO_EARTH_RADIUS_M = 6378100.0

# Error codes MongoDB uses when $geoNear finds no usable geo index.
_INDEX_NOT_FOUND = 27
_NO_QUERY_EXECUTION_PLANS = 291

DISTANCE_FIELD = "dist_meters"


class AttractionStore(Protocol):
    """Queries the retrieval engine needs from the attraction store."""

    async def near(
        self,
        center: Point,
        max_distance_km: float,
        types: TypeFilter,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Documents within *max_distance_km*, nearest first, at most *limit*.

        Raises ``IndexUnavailable`` when the store has no spatial index.
        """
        ...

    async def within(
        self,
        center: Point,
        radius_radians: float,
        types: TypeFilter,
    ) -> List[Dict[str, Any]]:
        """Unordered documents inside a loose region of angular radius *radius_radians*."""
        ...

    async def list_all(self) -> List[Dict[str, Any]]:
        ...

    async def sample(self, size: int) -> List[Dict[str, Any]]:
        """Uniform random sample among documents with at least one image."""
        ...


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def type_filter_query(types: TypeFilter) -> Dict[str, Any]:
    """Mongo filter for a type predicate; untyped documents count as ``both``."""
    if types is None:
        return {}
    allowed: List[Any] = sorted(t.value for t in types)
    if AttractionType.BOTH in types:
        allowed.append(None)  # matches a missing or null ``type``
    return {"type": {"$in": allowed}}


def is_missing_index_error(exc: OperationFailure) -> bool:
    """True when *exc* is MongoDB complaining that no geo index exists."""
    message = str(exc).lower()
    if exc.code == _INDEX_NOT_FOUND:
        return True
    if exc.code == _NO_QUERY_EXECUTION_PLANS and "index" in message:
        return True
    return "2dsphere index" in message or "geonear requires" in message


def km_to_mongo_meters(distance_km: float) -> float:
    """Convert a Haversine km distance to the metres ``$geoNear`` compares against."""
    return distance_km / EARTH_RADIUS_KM * MONGO_EARTH_RADIUS_M


# ═══════════════════════════════════════════════════════════════════════════
# MongoDB implementation
# ═══════════════════════════════════════════════════════════════════════════

class MongoAttractionStore:
    """``AttractionStore`` backed by a motor collection."""

    def __init__(self, collection: "AsyncIOMotorCollection", max_time_ms: int = 5000) -> None:
        self._collection = collection
        self._max_time_ms = max_time_ms

    async def near(
        self,
        center: Point,
        max_distance_km: float,
        types: TypeFilter,
        limit: int,
    ) -> List[Dict[str, Any]]:
        lon, lat = center
        pipeline: List[Dict[str, Any]] = [
            {
                "$geoNear": {
                    "near": {"type": "Point", "coordinates": [lon, lat]},
                    "distanceField": DISTANCE_FIELD,
                    "maxDistance": km_to_mongo_meters(max_distance_km),
                    "spherical": True,
                    "query": type_filter_query(types),
                }
            },
            {"$limit": limit},
        ]
        try:
            cursor = self._collection.aggregate(pipeline, maxTimeMS=self._max_time_ms)
            return await cursor.to_list(length=None)
        except OperationFailure as exc:
            if is_missing_index_error(exc):
                raise IndexUnavailable(str(exc)) from exc
            raise StoreUnavailable(f"$geoNear query failed: {exc}", path="indexed") from exc
        except PyMongoError as exc:
            raise StoreUnavailable(f"$geoNear query failed: {exc}", path="indexed") from exc

    async def within(
        self,
        center: Point,
        radius_radians: float,
        types: TypeFilter,
    ) -> List[Dict[str, Any]]:
        lon, lat = center
        query: Dict[str, Any] = {
            "location": {
                "$geoWithin": {"$centerSphere": [[lon, lat], radius_radians]},
            },
            **type_filter_query(types),
        }
        try:
            cursor = self._collection.find(query, max_time_ms=self._max_time_ms)
            return await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise StoreUnavailable(f"$geoWithin query failed: {exc}", path="fallback") from exc

    async def list_all(self) -> List[Dict[str, Any]]:
        try:
            cursor = self._collection.find({}, max_time_ms=self._max_time_ms)
            return await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise StoreUnavailable(f"listing attractions failed: {exc}", path="list") from exc

    async def sample(self, size: int) -> List[Dict[str, Any]]:
        pipeline: List[Dict[str, Any]] = [
            {"$match": {"images": {"$exists": True, "$ne": []}}},
            {"$sample": {"size": size}},
        ]
        try:
            cursor = self._collection.aggregate(pipeline, maxTimeMS=self._max_time_ms)
            return await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise StoreUnavailable(f"sampling attractions failed: {exc}", path="sample") from exc
