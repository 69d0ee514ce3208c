"""Career Forecast – FastAPI application entry-point."""

from contextlib import asynccontextmanager
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from src.app.config import settings
from src.app.dependencies import (
    clear_prediction_client,
    init_prediction_client,
    session_cookie_middleware,
    session_store,
)
from src.app.router import health, pages, session

# Configure logging from settings
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Lifespan: build the prediction client on startup, drop sessions on shutdown
# ──────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logger.info("🚀 Starting Career Forecast (model=%s) …", settings.gemini_model)
    init_prediction_client()
    yield
    logger.info("🛑 Shutting down – clearing %d session(s) …", len(session_store))
    session_store.clear()
    clear_prediction_client()


# ──────────────────────────────────────────────
# Application factory
# ──────────────────────────────────────────────
app = FastAPI(
    title="Career Forecast",
    description="Predict 10-year employment and AI job-displacement rates for a field of study.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS middleware (configured from environment variables) ──
app.add_middleware(
    middleware_class=CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_methods_list,
    allow_headers=settings.cors_headers_list,
)

logger.info("CORS configured with origins: %s", settings.cors_origins_list)

# ── per-browser session cookie ──
app.middleware("http")(session_cookie_middleware)

# ── register routers ──
app.include_router(health.router)
app.include_router(pages.router)
app.include_router(session.router)
