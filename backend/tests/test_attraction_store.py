from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import AutoReconnect, ExecutionTimeout, OperationFailure

from conftest import SEOUL, make_doc
from core.database import initialize_db
from core.errors import IndexUnavailable, StoreUnavailable
from models.attraction import AttractionType
from services.attraction_store import (
    MONGO_EARTH_RADIUS_M,
    MongoAttractionStore,
    is_missing_index_error,
    km_to_mongo_meters,
    type_filter_query,
)

INDOOR = frozenset({AttractionType.INDOOR, AttractionType.BOTH})


def _collection(result=None, error=None):
    """Mock motor collection whose cursors resolve to *result* or raise *error*."""
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=result or [], side_effect=error)
    collection = MagicMock()
    collection.aggregate = MagicMock(return_value=cursor)
    collection.find = MagicMock(return_value=cursor)
    return collection


def _missing_index_failure():
    return OperationFailure(
        "$geoNear requires a 2d or 2dsphere index, but none were found",
        code=291,
    )


# ── Query shapes ───────────────────────────────────────────────────────────

async def test_near_builds_geonear_pipeline():
    docs = [make_doc("Museum", SEOUL, "indoor")]
    collection = _collection(result=docs)
    store = MongoAttractionStore(collection, max_time_ms=1500)

    result = await store.near(SEOUL, 5.0, INDOOR, 20)

    assert result == docs
    pipeline = collection.aggregate.call_args.args[0]
    geo_near = pipeline[0]["$geoNear"]
    assert geo_near["near"] == {"type": "Point", "coordinates": [SEOUL[0], SEOUL[1]]}
    assert geo_near["spherical"] is True
    assert geo_near["maxDistance"] == pytest.approx(5.0 / 6371.0 * MONGO_EARTH_RADIUS_M)
    assert geo_near["query"] == {"type": {"$in": ["both", "indoor", None]}}
    assert pipeline[1] == {"$limit": 20}
    assert collection.aggregate.call_args.kwargs["maxTimeMS"] == 1500


async def test_within_uses_center_sphere():
    collection = _collection()
    store = MongoAttractionStore(collection)

    await store.within(SEOUL, 0.001, None)

    query = collection.find.call_args.args[0]
    assert query == {
        "location": {"$geoWithin": {"$centerSphere": [[SEOUL[0], SEOUL[1]], 0.001]}},
    }


async def test_sample_requires_images():
    collection = _collection()
    store = MongoAttractionStore(collection)

    await store.sample(5)

    pipeline = collection.aggregate.call_args.args[0]
    assert pipeline == [
        {"$match": {"images": {"$exists": True, "$ne": []}}},
        {"$sample": {"size": 5}},
    ]


async def test_list_all_is_unfiltered():
    collection = _collection()
    await MongoAttractionStore(collection).list_all()
    assert collection.find.call_args.args[0] == {}


# ── Error translation ──────────────────────────────────────────────────────

async def test_near_without_index_raises_index_unavailable():
    store = MongoAttractionStore(_collection(error=_missing_index_failure()))
    with pytest.raises(IndexUnavailable):
        await store.near(SEOUL, 5.0, None, 20)


async def test_near_timeout_is_store_unavailable():
    store = MongoAttractionStore(_collection(error=ExecutionTimeout("operation exceeded time limit", code=50)))
    with pytest.raises(StoreUnavailable) as excinfo:
        await store.near(SEOUL, 5.0, None, 20)
    assert excinfo.value.path == "indexed"


async def test_within_connection_loss_is_store_unavailable():
    store = MongoAttractionStore(_collection(error=AutoReconnect("connection reset")))
    with pytest.raises(StoreUnavailable) as excinfo:
        await store.within(SEOUL, 0.001, None)
    assert excinfo.value.path == "fallback"


@pytest.mark.parametrize(
    "exc, expected",
    [
        (_missing_index_failure(), True),
        (OperationFailure("index not found with name [location_2dsphere]", code=27), True),
        (OperationFailure("unable to find index for $geoNear query", code=291), True),
        (OperationFailure("operation exceeded time limit", code=50), False),
        (OperationFailure("not authorized on weather-trip", code=13), False),
    ],
)
def test_is_missing_index_error(exc, expected):
    assert is_missing_index_error(exc) is expected


def test_type_filter_query():
    assert type_filter_query(None) == {}
    assert type_filter_query(frozenset({AttractionType.OUTDOOR, AttractionType.BOTH})) == {
        "type": {"$in": ["both", "outdoor", None]}
    }
    assert type_filter_query(frozenset({AttractionType.INDOOR})) == {"type": {"$in": ["indoor"]}}


def test_km_to_mongo_meters_scales_by_sphere():
    assert km_to_mongo_meters(6371.0) == pytest.approx(MONGO_EARTH_RADIUS_M)


# ── Startup index provisioning ─────────────────────────────────────────────

def _db(index_info, create_error=None):
    collection = MagicMock()
    collection.index_information = AsyncMock(return_value=index_info)
    collection.create_index = AsyncMock(side_effect=create_error)
    db = MagicMock()
    db.__getitem__.return_value = collection
    return db, collection


async def test_initialize_db_skips_existing_index():
    db, collection = _db({
        "_id_": {"key": [("_id", 1)]},
        "geo": {"key": [("location", "2dsphere")]},
    })

    assert await initialize_db(db) is True
    collection.create_index.assert_not_awaited()


async def test_initialize_db_creates_missing_index():
    db, collection = _db({"_id_": {"key": [("_id", 1)]}})

    assert await initialize_db(db) is True
    collection.create_index.assert_awaited_once()
    assert collection.create_index.call_args.args[0] == [("location", "2dsphere")]


async def test_initialize_db_tolerates_creation_failure():
    db, _ = _db({}, create_error=OperationFailure("Can't extract geo keys", code=16755))
    assert await initialize_db(db) is False
