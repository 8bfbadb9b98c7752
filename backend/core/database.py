"""
core/database.py
────────────────
Database initialization utilities.

Called once during application startup (via the lifespan).
Ensures the ``2dsphere`` index the proximity search relies on exists.
Request handlers never create indexes; when the index is missing the
search engine switches to its bounding-region fallback instead.
"""

import logging
from typing import TYPE_CHECKING

import pymongo
from pymongo.errors import OperationFailure

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger("weathertrip.database")

# Collection name — single source of truth
ATTRACTIONS_COLLECTION = "attractions"

LOCATION_INDEX_NAME = "location_2dsphere"


async def initialize_db(db: "AsyncIOMotorDatabase") -> bool:
    """
    Run one-time database bootstrapping:

    1. Ensure a ``2dsphere`` index on ``attractions.location`` for
       ``$geoNear`` queries.

    Returns ``True`` when the index is available afterwards. A failed
    creation is logged and tolerated; searches degrade to the fallback path.
    """
    collection = db[ATTRACTIONS_COLLECTION]

    # ── 2dsphere index on location ──────────────────────────────────────
    existing_indexes = await collection.index_information()

    if _has_geo_index(existing_indexes):
        logger.info(
            "2dsphere index already exists on '%s' — skipping creation.",
            ATTRACTIONS_COLLECTION,
        )
        return True

    logger.info(
        "Creating 2dsphere index '%s' on '%s.location' …",
        LOCATION_INDEX_NAME,
        ATTRACTIONS_COLLECTION,
    )
    try:
        await collection.create_index(
            [("location", pymongo.GEOSPHERE)],
            name=LOCATION_INDEX_NAME,
        )
    except OperationFailure as exc:
        logger.warning(
            "Could not create 2dsphere index on '%s' (%s) — "
            "proximity searches will use the fallback path.",
            ATTRACTIONS_COLLECTION,
            exc,
        )
        return False

    logger.info("Index '%s' created ✓", LOCATION_INDEX_NAME)
    return True


def _has_geo_index(index_info: dict) -> bool:
    """True if any index covers ``location`` as ``2dsphere``, whatever its name."""
    for index in index_info.values():
        for field, kind in index.get("key", []):
            if field == "location" and kind == pymongo.GEOSPHERE:
                return True
    return False
