import sys
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

sys.path.insert(0, "services/risq-pipeline")

from fastapi.testclient import TestClient

from app.main import app
from risq.core.bus.errors import BusPublishError
from risq.core.bus.subjects import PIPELINE_ORDER
from risq.pipeline.coordinator import CoordinatorState, PipelineCoordinator
from risq.schemas.events import StartupOnboardedEvent


def _running_coordinator():
    coordinator = MagicMock(spec=PipelineCoordinator)
    coordinator.state = CoordinatorState.RUNNING
    coordinator.bus = MagicMock()
    coordinator.bus.is_connected = True
    coordinator.bus.dead_subjects = ()
    coordinator.subscriptions = tuple(MagicMock(subject=s, active=True) for s in PIPELINE_ORDER)
    return coordinator


def _onboarding_body(**overrides):
    body = {
        "startup_id": str(uuid4()),
        "user_id": str(uuid4()),
        "startup_data": {"industry": "fintech", "sector": "fintech", "target_market": "global"},
    }
    body.update(overrides)
    return body


def test_health_without_coordinator_reports_stopped():
    app.state.coordinator = None
    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is False
    assert payload["state"] == "stopped"
    assert payload["bus_connected"] is False
    assert payload["subjects"] == []
    assert payload["pipeline"] == list(PIPELINE_ORDER)


def test_onboarding_rejected_when_pipeline_not_running():
    app.state.coordinator = None
    client = TestClient(app)
    response = client.post("/onboarding", json=_onboarding_body())
    assert response.status_code == 503


def test_onboarding_publishes_through_running_coordinator():
    coordinator = _running_coordinator()
    body = _onboarding_body()
    event = StartupOnboardedEvent(startup_id=body["startup_id"], user_id=body["user_id"])
    coordinator.publish_startup_onboarded = AsyncMock(return_value=event)
    app.state.coordinator = coordinator
    try:
        client = TestClient(app)
        health = client.get("/health").json()
        response = client.post("/onboarding", json=body)
    finally:
        app.state.coordinator = None

    assert health["ok"] is True
    assert health["subjects"] == list(PIPELINE_ORDER)
    assert response.status_code == 202
    payload = response.json()
    assert payload["accepted"] is True
    assert payload["event_id"] == event.id
    assert payload["startup_id"] == body["startup_id"]
    coordinator.publish_startup_onboarded.assert_awaited_once()


def test_health_reports_lost_subscription():
    coordinator = _running_coordinator()
    coordinator.bus.is_connected = False
    coordinator.bus.dead_subjects = ("market.validated",)
    subs = list(coordinator.subscriptions)
    subs[2] = MagicMock(subject="market.validated", active=False)
    coordinator.subscriptions = tuple(subs)
    app.state.coordinator = coordinator
    try:
        payload = TestClient(app).get("/health").json()
    finally:
        app.state.coordinator = None

    assert payload["ok"] is False
    assert payload["state"] == "running"
    assert payload["bus_connected"] is False
    assert payload["dead_subjects"] == ["market.validated"]
    assert "market.validated" not in payload["subjects"]
    assert len(payload["subjects"]) == 5


def test_onboarding_bus_failure_is_bad_gateway():
    coordinator = _running_coordinator()
    coordinator.publish_startup_onboarded = AsyncMock(side_effect=BusPublishError("down"))
    app.state.coordinator = coordinator
    try:
        response = TestClient(app).post("/onboarding", json=_onboarding_body())
    finally:
        app.state.coordinator = None
    assert response.status_code == 502


def test_onboarding_validates_ids():
    app.state.coordinator = _running_coordinator()
    try:
        response = TestClient(app).post("/onboarding", json=_onboarding_body(startup_id="nope"))
    finally:
        app.state.coordinator = None
    assert response.status_code == 422
