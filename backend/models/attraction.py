"""
models/attraction.py
────────────────────
Pydantic v2 models for the ``attractions`` MongoDB collection and the
value objects the retrieval engine passes around.

Covers:
  • DocumentId      — opaque ``_id`` (ObjectId, str, int, ...) → str
  • GeoJSONPoint    — geospatial location with lon/lat validation
  • AttractionType  — indoor / outdoor / both
  • Attraction      — top-level document model (read-only)
  • GridCell        — KMA forecast grid cell for a coordinate
  • SearchQuery     — proximity search input
  • SearchResult    — attraction annotated with its distance
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, List, Optional, Tuple

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)


# ═══════════════════════════════════════════════════════════════════════════
# Document id (opaque)
# ═══════════════════════════════════════════════════════════════════════════

def _stringify_id(v: Any) -> Any:
    """Any scalar ``_id`` (``ObjectId``, str, int, ...) becomes its ``str``."""
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, (dict, list, tuple, set)):
        raise ValueError(f"Unsupported document id: {v!r}")
    return str(v)


DocumentId = Annotated[
    str,
    BeforeValidator(_stringify_id),
    PlainSerializer(lambda v: str(v), return_type=str),
]
"""Opaque document id; ``ObjectId`` and other BSON scalars serialize as ``str``."""


# ═══════════════════════════════════════════════════════════════════════════
# GeoJSON Point
# ═══════════════════════════════════════════════════════════════════════════

class GeoJSONPoint(BaseModel):
    """
    GeoJSON Point — ``{"type": "Point", "coordinates": [lon, lat]}``.

    MongoDB requires this exact shape for ``2dsphere`` indexes.
    """

    type: str = Field(default="Point", frozen=True)
    coordinates: Tuple[float, float] = Field(
        ...,
        description="[longitude, latitude]",
    )

    @field_validator("type")
    @classmethod
    def _type_must_be_point(cls, v: str) -> str:
        if v != "Point":
            raise ValueError('GeoJSON type must be "Point"')
        return v

    @field_validator("coordinates")
    @classmethod
    def _validate_coordinates(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        lon, lat = v
        if not (-180.0 <= lon <= 180.0):
            raise ValueError(f"Longitude must be between -180 and 180, got {lon}")
        if not (-90.0 <= lat <= 90.0):
            raise ValueError(f"Latitude must be between -90 and 90, got {lat}")
        return v

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class AttractionType(str, Enum):
    """Whether a place is enjoyed indoors, outdoors, or either way."""

    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    BOTH = "both"


def _coerce_attraction_type(v: Any) -> AttractionType:
    """Missing or unrecognised types are read as ``both``."""
    if isinstance(v, AttractionType):
        return v
    try:
        return AttractionType(v)
    except ValueError:
        return AttractionType.BOTH


def _coerce_image(v: Any) -> Any:
    """The store keeps either plain URLs or ``{"url", "caption"}`` objects."""
    if isinstance(v, dict):
        return v.get("url")
    return v


# ═══════════════════════════════════════════════════════════════════════════
# Attraction — top-level document
# ═══════════════════════════════════════════════════════════════════════════

class Attraction(BaseModel):
    """
    Represents a single document in the ``attractions`` collection.

    The ``id`` field maps to MongoDB's ``_id``. Any scalar id (usually an
    ObjectId) is accepted and serialized as a plain string. Unknown store
    fields are ignored.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "name": "National Museum of Korea",
                "address": "137 Seobinggo-ro, Yongsan-gu, Seoul",
                "location": {
                    "type": "Point",
                    "coordinates": [126.9803, 37.5240],
                },
                "type": "indoor",
                "tags": ["museum", "history"],
                "images": ["https://example.com/museum.jpg"],
            }
        },
    )

    # ── Identity ────────────────────────────────────────────────────────
    id: Optional[DocumentId] = Field(
        default=None,
        alias="_id",
        description="MongoDB document ID",
    )

    # ── Display fields ──────────────────────────────────────────────────
    name: str = Field(..., min_length=1)
    address: str = Field(default="")
    description: Optional[str] = Field(default=None)

    # ── Geospatial ──────────────────────────────────────────────────────
    location: GeoJSONPoint

    # ── Classification ──────────────────────────────────────────────────
    type: Annotated[AttractionType, BeforeValidator(_coerce_attraction_type)] = Field(
        default=AttractionType.BOTH,
    )
    tags: List[str] = Field(default_factory=list)

    # ── Media ───────────────────────────────────────────────────────────
    images: List[str] = Field(default_factory=list)

    @field_validator("address", mode="before")
    @classmethod
    def _none_address_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def _dedupe_tags(cls, v: Any) -> Any:
        # Tags are an ordered set: first occurrence wins.
        if v is None:
            return []
        if isinstance(v, list):
            unique: List[Any] = []
            for tag in v:
                if tag not in unique:
                    unique.append(tag)
            return unique
        return v

    @field_validator("images", mode="before")
    @classmethod
    def _flatten_images(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [url for url in (_coerce_image(item) for item in v) if url]
        return v

    def to_mongo(self) -> dict:
        """Serialize to a dict suitable for ``insert_one`` / ``replace_one``.

        Excludes ``id`` (``_id``) so MongoDB can assign it on insert.
        """
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        data.pop("_id", None)
        return data


# ═══════════════════════════════════════════════════════════════════════════
# Engine value objects
# ═══════════════════════════════════════════════════════════════════════════

class GridCell(BaseModel):
    """KMA forecast grid cell together with the coordinate it came from."""

    model_config = ConfigDict(frozen=True)

    nx: int
    ny: int
    longitude: float
    latitude: float


class SearchQuery(BaseModel):
    """
    Proximity search input. Range checks happen in the search engine so a
    bad query surfaces as ``InvalidArgument`` rather than a pydantic error.
    """

    model_config = ConfigDict(frozen=True)

    longitude: Optional[float] = None
    latitude: Optional[float] = None
    radius_km: float = 5.0
    limit: int = 20
    condition: Optional[str] = None


class SearchResult(BaseModel):
    """An attraction annotated with its great-circle distance from the origin."""

    attraction: Attraction
    distance_km: float = Field(..., ge=0.0, description="Distance from query point (km)")
