"""
main.py
───────
Weather Trip — weather-aware attraction retrieval.
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from motor.motor_asyncio import AsyncIOMotorClient

from api.v1.attractions import router as attractions_router
from api.v1.weather import router as weather_router
from core.config import get_settings
from core.database import ATTRACTIONS_COLLECTION, initialize_db
from core.security import setup_security
from services.attraction_store import MongoAttractionStore
from services.retrieval import RetrievalService

# ── Logging ─────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger("weathertrip")

# ── Settings ────────────────────────────────────────────────────────────────
settings = get_settings()


# ── Lifespan (startup / shutdown) ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the MongoDB connection pool across the app lifetime."""
    logger.info("Connecting to MongoDB …")
    app.state.mongo_client = AsyncIOMotorClient(
        settings.MONGODB_URL,
        serverSelectionTimeoutMS=settings.store_timeout_ms,
    )
    app.state.db = app.state.mongo_client[settings.MONGODB_DB_NAME]
    logger.info("MongoDB connected ✓")

    # One-time index provisioning; searches fall back if it fails
    await initialize_db(app.state.db)
    logger.info("Database initialization complete ✓")

    store = MongoAttractionStore(
        app.state.db[ATTRACTIONS_COLLECTION],
        max_time_ms=settings.store_timeout_ms,
    )
    app.state.retrieval = RetrievalService(store, timeout=settings.STORE_TIMEOUT_SECONDS)

    yield  # ← application runs here

    logger.info("Shutting down MongoDB connection …")
    app.state.mongo_client.close()
    logger.info("MongoDB disconnected ✓")


# ── App factory ─────────────────────────────────────────────────────────────
app = FastAPI(
    title="Weather Trip",
    version="1.0.0",
    description="Weather-aware attraction retrieval — API",
    lifespan=lifespan,
)

# Wire security middleware (rate limiter, headers, CORS, exception handlers)
setup_security(app)

# ── Routers ─────────────────────────────────────────────────────────────────
app.include_router(attractions_router, prefix="/api/v1")
app.include_router(weather_router, prefix="/api/v1")


# ── Health check ────────────────────────────────────────────────────────────
@app.get("/health", tags=["ops"])
async def health_check():
    """Liveness check."""
    return {"status": "healthy"}
