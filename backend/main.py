"""
Schema Lens — schema annotations for SQLAlchemy models
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import annotate, health
from config import settings

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("schema_lens")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Schema Lens starting up (database: %s)", settings.DATABASE_URL.split("://")[0])
    yield
    annotate.reset_manager()
    logger.info("Schema Lens shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Schema Lens",
    description="Database schema annotations for SQLAlchemy model source files.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(health.router,   prefix="/api")
app.include_router(annotate.router, prefix="/api")
