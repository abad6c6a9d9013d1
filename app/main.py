"""
Audit Risk Engine — FastAPI Application Entry Point

PUT  /v1/areas/{id}/risk-ratings          → inherent → residual → priority
PUT  /v1/areas/{id}/coverage/{provider}   → haircut → residual → priority
PUT  /v1/areas/{id}/enterprise-residual   → residual → priority
POST /v1/admin/recompute-all              → whole portfolio
GET  /v1/risk/health                      → health check
GET  /docs                                → OpenAPI / Swagger UI
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from app.api.admin_endpoint import router as admin_router
from app.api.risk_endpoint import router as risk_router
from app.core.config import get_settings
from app.models.database import get_session_factory
from app.scoring.weights import get_weight_config, reload_weight_config

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
    settings = get_settings()
    logger.info("risk_engine_starting", app_env=settings.app_env)
    if settings.load_weights_on_startup:
        session = get_session_factory()()
        try:
            config = reload_weight_config(session)
            logger.info("weights_loaded", weights_version=config.version, warnings=len(config.issues))
        except SQLAlchemyError as e:
            # Defaults stay active; the next reload picks up the table.
            logger.warning("weights_load_failed", error=str(e))
        finally:
            session.close()
    yield
    logger.info("risk_engine_shutting_down")


app = FastAPI(
    title="Audit Risk Engine",
    description="Inherent / residual risk and audit priority recalculation for auditable areas",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (planning UI + internal tools) ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_methods=["POST", "GET", "PUT", "DELETE"],
    allow_headers=["*"],
)

# ── Prometheus metrics ──
if get_settings().metrics_enabled:
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

# ── Routes ──
app.include_router(risk_router)
app.include_router(admin_router)


@app.get("/v1/risk/health", tags=["health"])
def health():
    return {"status": "ok", "service": get_settings().app_name, "weights_version": get_weight_config().version}


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": get_settings().app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "recompute_all": "POST /v1/admin/recompute-all",
    }
