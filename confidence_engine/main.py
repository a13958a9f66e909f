"""
Property Confidence Engine — FastAPI Application Entry Point

GET  /api/properties/{id}/confidence-score  → latest snapshot + rating bands
POST /v1/admin/run-monthly-scores            → run the monthly batch now
POST /v1/admin/properties/{id}/recalculate   → score one property now
GET  /v1/health                              → health check
GET  /docs                                   → OpenAPI / Swagger UI
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from confidence_engine.api.admin_endpoint import router as admin_router
from confidence_engine.api.score_endpoint import router as score_router
from confidence_engine.core.config import get_settings
from confidence_engine.services.event_publisher import close_producer

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if get_settings().app_env == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(get_settings().log_level),
)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("confidence_engine_starting", model_version=get_settings().scoring_model_version)
    yield
    await close_producer()
    logger.info("confidence_engine_shutting_down")


app = FastAPI(
    title="Property Confidence Engine",
    description="Insurance-risk and buyer-confidence scores for tracked properties",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (dashboard) ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# ── Prometheus metrics ──
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── Routes ──
app.include_router(score_router)
app.include_router(admin_router)


@app.get("/v1/health", tags=["health"])
async def health():
    return {
        "status": "ok",
        "service": get_settings().app_name,
        "model_version": get_settings().scoring_model_version,
    }


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": get_settings().app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "score": "GET /api/properties/{id}/confidence-score",
    }
