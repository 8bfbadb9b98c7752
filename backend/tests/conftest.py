"""
Pytest configuration and shared fixtures for backend tests.

This module provides:
- An in-memory attraction store (with and without a spatial index)
- Coordinate helpers for placing attractions at known distances
- Test data factories
"""

import asyncio
import math
import random
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId

from core.errors import IndexUnavailable
from models.attraction import AttractionType
from services.attraction_store import DISTANCE_FIELD, Point, TypeFilter
from services.distance import EARTH_RADIUS_KM, distance_km

# Seoul City Hall
SEOUL = (126.9780, 37.5665)


# ==============================================================================
# COORDINATE HELPERS
# ==============================================================================

def offset(origin: Point, north_km: float = 0.0, east_km: float = 0.0) -> Point:
    """Move *origin* (lon, lat) by the given kilometres along the axes."""
    lon, lat = origin
    new_lat = lat + math.degrees(north_km / EARTH_RADIUS_KM)
    new_lon = lon + math.degrees(east_km / (EARTH_RADIUS_KM * math.cos(math.radians(lat))))
    return new_lon, new_lat


def make_doc(
    name: str,
    point: Point,
    type_: Optional[str] = "both",
    images: Optional[List[Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build a raw ``attractions`` document the way MongoDB returns it."""
    doc: Dict[str, Any] = {
        "_id": ObjectId(),
        "name": name,
        "address": f"{name} address",
        "location": {"type": "Point", "coordinates": [point[0], point[1]]},
        "tags": [],
        "images": images if images is not None else [],
    }
    if type_ is not None:
        doc["type"] = type_
    doc.update(extra)
    return doc


# ==============================================================================
# IN-MEMORY STORE
# ==============================================================================

def _matches(doc: Dict[str, Any], types: TypeFilter) -> bool:
    """Mirror of ``{"type": {"$in": [...]}}`` where a missing type reads as both."""
    if types is None:
        return True
    stored = doc.get("type")
    if stored is None:
        return AttractionType.BOTH in types
    return stored in {t.value for t in types}


class InMemoryAttractionStore:
    """``AttractionStore`` double over a list of documents (natural order = list order).

    With ``indexed=False`` the proximity query raises ``IndexUnavailable`` like
    a collection without a ``2dsphere`` index. The bounding-region query is a
    deliberately loose lon/lat box so the exact re-check has work to do.
    """

    def __init__(
        self,
        docs: List[Dict[str, Any]],
        indexed: bool = True,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ) -> None:
        self.docs = list(docs)
        self.indexed = indexed
        self.error = error
        self.delay = delay
        self.calls: List[str] = []

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def near(self, center: Point, max_distance_km: float, types: TypeFilter, limit: int):
        await self._enter("near")
        if not self.indexed:
            raise IndexUnavailable("$geoNear requires a 2d or 2dsphere index, but none were found")

        lon, lat = center
        hits = []
        for doc in self.docs:
            d_lon, d_lat = doc["location"]["coordinates"]
            d = distance_km(lat, lon, d_lat, d_lon)
            if d <= max_distance_km and _matches(doc, types):
                hits.append({**doc, DISTANCE_FIELD: d * 1000})
        hits.sort(key=lambda h: h[DISTANCE_FIELD])
        return hits[:limit]

    async def within(self, center: Point, radius_radians: float, types: TypeFilter):
        await self._enter("within")
        lon, lat = center
        half_lat = math.degrees(radius_radians)
        half_lon = half_lat / max(math.cos(math.radians(lat)), 1e-12)
        return [
            dict(doc)
            for doc in self.docs
            if abs(doc["location"]["coordinates"][1] - lat) <= half_lat
            and abs(doc["location"]["coordinates"][0] - lon) <= half_lon
            and _matches(doc, types)
        ]

    async def list_all(self):
        await self._enter("list_all")
        return [dict(doc) for doc in self.docs]

    async def sample(self, size: int):
        await self._enter("sample")
        with_images = [dict(doc) for doc in self.docs if doc.get("images")]
        return random.sample(with_images, k=min(size, len(with_images)))


# ==============================================================================
# TEST DATA FACTORIES
# ==============================================================================

@pytest.fixture
def seoul_docs():
    """Three attractions north of Seoul City Hall at 1.2, 3.0 and 4.5 km."""
    return [
        make_doc("Indoor near", offset(SEOUL, north_km=1.2), "indoor",
                 images=["https://example.com/a.jpg"]),
        make_doc("Outdoor mid", offset(SEOUL, north_km=3.0), "outdoor"),
        make_doc("Indoor far", offset(SEOUL, north_km=4.5), "indoor",
                 images=[{"url": "https://example.com/c.jpg", "caption": "front"}]),
    ]


@pytest.fixture
def scattered_docs():
    """Forty attractions scattered up to ~8 km around Seoul, fixed seed."""
    rng = random.Random(410)
    types = ["indoor", "outdoor", "both", None]
    docs = []
    for i in range(40):
        point = offset(SEOUL, north_km=rng.uniform(-8, 8), east_km=rng.uniform(-8, 8))
        docs.append(make_doc(f"Place {i}", point, types[i % len(types)]))
    return docs
