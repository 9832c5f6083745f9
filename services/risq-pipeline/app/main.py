from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from uuid import UUID

import uvicorn
from fastapi import FastAPI, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from risq.core.bus.errors import BusError
from risq.core.bus.subjects import PIPELINE_ORDER
from risq.pipeline.coordinator import CoordinatorState, PipelineCoordinator, build_coordinator
from risq.pipeline.logging_setup import configure_logging

from .settings import settings


class OnboardingRequest(BaseModel):
    startup_id: UUID
    user_id: UUID
    startup_data: Dict[str, Any] = Field(default_factory=dict)
    founder_cv: Dict[str, Any] = Field(default_factory=dict)
    business_plan: Dict[str, Any] = Field(default_factory=dict)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    coordinator = build_coordinator(settings)
    app.state.coordinator = coordinator

    if settings.bus_enabled:
        await coordinator.start()
    else:
        logger.warning("Bus disabled; pipeline coordinator not started")

    try:
        yield
    finally:
        await coordinator.aclose()


app = FastAPI(title="Risq Pipeline", lifespan=lifespan)


def _coordinator() -> Optional[PipelineCoordinator]:
    return getattr(app.state, "coordinator", None)


@app.get("/health")
async def health() -> dict:
    coordinator = _coordinator()
    state = coordinator.state.value if coordinator else CoordinatorState.STOPPED.value
    bus_connected = bool(coordinator and coordinator.bus.is_connected)
    return {
        "ok": state == CoordinatorState.RUNNING.value and bus_connected,
        "service": settings.service_name,
        "version": settings.service_version,
        "node": settings.node_name,
        "state": state,
        "bus_connected": bus_connected,
        "subjects": [sub.subject for sub in coordinator.subscriptions if sub.active] if coordinator else [],
        "dead_subjects": list(coordinator.bus.dead_subjects) if coordinator else [],
        "pipeline": list(PIPELINE_ORDER),
    }


@app.post("/onboarding", status_code=202)
async def onboarding(req: OnboardingRequest) -> dict:
    coordinator = _coordinator()
    if coordinator is None or coordinator.state is not CoordinatorState.RUNNING:
        raise HTTPException(status_code=503, detail="pipeline not running")

    try:
        event = await coordinator.publish_startup_onboarded(
            req.startup_id,
            req.user_id,
            req.startup_data,
            req.founder_cv,
            req.business_plan,
        )
    except BusError as exc:
        logger.error(f"Failed to publish onboarding for startup {req.startup_id}: {exc}")
        raise HTTPException(status_code=502, detail="failed to publish onboarding event") from exc

    return {"accepted": True, "event_id": event.id, "startup_id": str(event.startup_id)}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
