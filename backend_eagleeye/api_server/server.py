"""
FastAPI server: observation intake, admin controls, health.

POST /api/alert classifies an error-count observation for a composite key
(``propertyId;tenantId;type;interface``). The engine is built from settings in
the lifespan unless one is injected via create_app(engine).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from backend_eagleeye import __version__
from backend_eagleeye.alerts.classifier import (
    BelowThreshold,
    Classification,
    ThresholdBreached,
)
from backend_eagleeye.alerts.observation import Observation, parse_observation
from backend_eagleeye.config import get_settings
from backend_eagleeye.core.exceptions import MalformedObservation
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.engine import AlertEngine, build_engine

logger = get_logger(__name__)

STATUS_ALERT_TRIGGERED = "alert_triggered"
STATUS_BELOW_THRESHOLD = "below_threshold"
STATUS_NO_THRESHOLD = "no_threshold"
STATUS_ERROR = "error"


# -----------------------------------------------------------------------------
# Request models
# -----------------------------------------------------------------------------


class AlertRequest(BaseModel):
    """POST /api/alert body. Values are taken as sent and validated by parse_observation."""

    model_config = ConfigDict(populate_by_name=True)

    key: Any = Field(None, description="Composite key: propertyId;tenantId;type;interface")
    error_count: Any = Field(None, alias="errorCount", description="Observed error count")


class ThresholdRequest(BaseModel):
    """POST /api/thresholds body: publish a threshold config update."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., description="Composite key: propertyId;tenantId;type;interface")
    threshold: int = Field(..., ge=0)
    alert_times: int = Field(0, ge=0, alias="alertTimes")


# -----------------------------------------------------------------------------
# Dependency and response shaping
# -----------------------------------------------------------------------------


def get_engine(request: Request) -> AlertEngine:
    return request.app.state.engine


def classification_response(observation: Observation, result: Classification) -> dict[str, Any]:
    body: dict[str, Any] = {"key": observation.key, "errorCount": observation.error_count}
    if isinstance(result, ThresholdBreached):
        body["status"] = STATUS_ALERT_TRIGGERED
        body["threshold"] = result.threshold
        body["alertTimes"] = result.breach_count
    elif isinstance(result, BelowThreshold):
        body["status"] = STATUS_BELOW_THRESHOLD
        body["threshold"] = result.threshold
    else:
        body["status"] = STATUS_NO_THRESHOLD
    return body


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": STATUS_ERROR, "message": message})


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

router = APIRouter()


@router.post("/api/alert")
def receive_alert(body: AlertRequest, engine: AlertEngine = Depends(get_engine)):
    """Classify one observation: alert_triggered | below_threshold | no_threshold."""
    try:
        observation = parse_observation(body.key, body.error_count)
    except MalformedObservation as e:
        logger.info("observation_malformed", key=body.key, error=str(e))
        return error_response(400, str(e))
    try:
        result = engine.classify(observation)
    except Exception as e:
        logger.exception("observation_classify_failed", key=observation.key, error=str(e))
        return error_response(500, "Internal server error")
    return classification_response(observation, result)


@router.post("/api/test-mode")
def enable_test_mode(engine: AlertEngine = Depends(get_engine)) -> dict[str, Any]:
    """Switch to fallback mode seeded with synthetic thresholds (one-way until restart)."""
    engine.enable_test_mode()
    count = engine.settings.fallback_seed_count
    return {"status": "success", "message": f"Test mode enabled with {count} thresholds"}


@router.post("/api/thresholds")
def publish_threshold(body: ThresholdRequest, engine: AlertEngine = Depends(get_engine)):
    """Publish a threshold config update; applied asynchronously by the ingest loop."""
    try:
        digest, offset = engine.publish_threshold(body.key, body.threshold, body.alert_times)
    except Exception as e:
        logger.exception("threshold_publish_failed", key=body.key, error=str(e))
        return error_response(503, "Config log unavailable")
    return JSONResponse(status_code=202, content={"status": "queued", "hash": digest, "offset": offset})


@router.get("/health")
def health(engine: AlertEngine = Depends(get_engine)) -> dict[str, Any]:
    """Liveness plus degraded-mode signal (mode=fallback)."""
    return {"status": "ok", **engine.status()}


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------


def create_app(engine: AlertEngine | None = None) -> FastAPI:
    """Build the app. An injected engine is used as-is; otherwise one is built on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "engine", None) is None:
            app.state.engine = build_engine(get_settings())
        app.state.engine.start()
        yield
        app.state.engine.stop()

    app = FastAPI(
        title="Backend EagleEye API",
        description="Per-tenant error threshold alerting: classify observations, emit alerts.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.include_router(router)
    return app


app = create_app()
