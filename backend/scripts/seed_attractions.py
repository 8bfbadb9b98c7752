"""
scripts/seed_attractions.py
───────────────────────────
Seed the ``attractions`` collection with a handful of central-Seoul places
for local development, then make sure the ``2dsphere`` index exists.

Usage:
    python -m scripts.seed_attractions          # from backend/
    python scripts/seed_attractions.py          # direct
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorClient

# Ensure backend/ is on sys.path when run directly
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.config import get_settings
from core.database import ATTRACTIONS_COLLECTION, initialize_db
from models.attraction import Attraction, AttractionType, GeoJSONPoint
from services.distance import distance_km
from services.projection import project

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger("weathertrip.seed")

settings = get_settings()

# Seoul City Hall — the reference point for the verification table.
SEOUL_CITY_HALL = (126.9780, 37.5665)


# ═══════════════════════════════════════════════════════════════════════════
# Seed places
# ═══════════════════════════════════════════════════════════════════════════

PLACES: List[Dict[str, Any]] = [
    {
        "name": "Gyeongbokgung Palace",
        "address": "161 Sajik-ro, Jongno-gu, Seoul",
        "lon": 126.9770,
        "lat": 37.5796,
        "type": AttractionType.OUTDOOR,
        "tags": ["history", "palace"],
        "images": ["https://example.com/images/gyeongbokgung.jpg"],
    },
    {
        "name": "National Museum of Korea",
        "address": "137 Seobinggo-ro, Yongsan-gu, Seoul",
        "lon": 126.9803,
        "lat": 37.5240,
        "type": AttractionType.INDOOR,
        "tags": ["museum", "history"],
        "images": ["https://example.com/images/national-museum.jpg"],
    },
    {
        "name": "Namsan Seoul Tower",
        "address": "105 Namsangongwon-gil, Yongsan-gu, Seoul",
        "lon": 126.9882,
        "lat": 37.5512,
        "type": AttractionType.BOTH,
        "tags": ["landmark", "view"],
        "images": ["https://example.com/images/namsan-tower.jpg"],
    },
    {
        "name": "Cheonggyecheon Stream",
        "address": "Changsin-dong, Jongno-gu, Seoul",
        "lon": 126.9784,
        "lat": 37.5691,
        "type": AttractionType.OUTDOOR,
        "tags": ["nature", "walk"],
        "images": [],
    },
    {
        "name": "Dongdaemun Design Plaza",
        "address": "281 Eulji-ro, Jung-gu, Seoul",
        "lon": 127.0095,
        "lat": 37.5667,
        "type": AttractionType.INDOOR,
        "tags": ["culture", "design", "shopping"],
        "images": ["https://example.com/images/ddp.jpg"],
    },
]


async def seed() -> None:
    """Insert seed places that are not already present (matched by name)."""
    client = AsyncIOMotorClient(settings.MONGODB_URL)
    db = client[settings.MONGODB_DB_NAME]
    collection = db[ATTRACTIONS_COLLECTION]

    inserted = 0
    skipped = 0

    for place in PLACES:
        existing = await collection.find_one({"name": place["name"]})
        if existing:
            logger.info("Skipping '%s' — already exists.", place["name"])
            skipped += 1
            continue

        attraction = Attraction(
            name=place["name"],
            address=place["address"],
            location=GeoJSONPoint(coordinates=(place["lon"], place["lat"])),
            type=place["type"],
            tags=place["tags"],
            images=place["images"],
        )
        await collection.insert_one(attraction.to_mongo())
        inserted += 1
        logger.info("Inserted '%s' ✓", place["name"])

    logger.info("Seed complete: %d inserted, %d skipped", inserted, skipped)

    await initialize_db(db)
    _print_verification_table(PLACES)

    client.close()


def _print_verification_table(places: List[Dict[str, Any]]) -> None:
    """Print each place's grid cell and distance from Seoul City Hall."""
    ref_lon, ref_lat = SEOUL_CITY_HALL

    print("\n" + "=" * 66)
    print("  SEED VERIFICATION (distance from Seoul City Hall)")
    print("=" * 66)
    print(f"  {'Place':<28} {'Type':<8} {'km':>7} {'nx':>5} {'ny':>5}")
    print("  " + "-" * 57)

    for place in places:
        d = distance_km(ref_lat, ref_lon, place["lat"], place["lon"])
        nx, ny = project(place["lon"], place["lat"])
        print(f"  {place['name']:<28} {place['type'].value:<8} {d:>7.2f} {nx:>5} {ny:>5}")

    print("=" * 66 + "\n")


if __name__ == "__main__":
    asyncio.run(seed())
