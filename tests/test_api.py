"""
Integration tests for the REST API endpoints.

Each test gets its own ``FlowContext`` (no reference-data loaders) and an
in-memory SQLite database behind ``get_db``.  The lifespan does not run
under ``ASGITransport``, so the event pump stays down and posted events
are dispatched inline.
"""

from __future__ import annotations

import time

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.domain.enums import FlowRole, ServiceType, VehicleType
from src.infrastructure.repositories import ServiceTierRepository
from src.services.context import FlowContext
from tests.conftest import make_settings

TRANSPORT_START = {"service": "transport", "role": "customer"}
ORIGIN = {"latitude": 19.0896, "longitude": 72.8656, "address": "Terminal 2"}
DESTINATION = {"latitude": 19.1176, "longitude": 72.8490}


def build_app(context: FlowContext, session_factory):
    limiter.reset()
    app = create_app(context)

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _test_db
    return app


@pytest_asyncio.fixture
async def client(context, session_factory):
    transport = ASGITransport(app=build_app(context, session_factory))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def strict_client(session_factory):
    ctx = FlowContext(settings=make_settings(), loaders={}, strict=True)
    transport = ASGITransport(app=build_app(ctx, session_factory))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    ctx.close()


async def start_transport(client: AsyncClient) -> dict:
    await client.post("/api/v1/flow/start", json={"role": "customer"})
    resp = await client.post("/api/v1/flow/service", json=TRANSPORT_START)
    assert resp.status_code == 200
    return resp.json()


# ── Admin ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "strict_navigation": False, "event_pump": False}


@pytest.mark.asyncio
async def test_registry_coverage_is_complete(client: AsyncClient):
    resp = await client.get("/api/v1/admin/registry")
    assert resp.status_code == 200
    data = resp.json()
    assert data["complete"] is True
    assert data["missing"] == []
    assert data["fallback_registrations"] >= 1


@pytest.mark.asyncio
async def test_step_registrations(client: AsyncClient):
    resp = await client.get("/api/v1/admin/registry/service_selection")
    assert resp.status_code == 200
    regs = resp.json()
    assert regs[-1]["is_fallback"] is True
    assert {r["role"] for r in regs[:-1]} == {"customer", "driver"}

    resp = await client.get("/api/v1/admin/registry/not.a.step")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_tiers(client: AsyncClient, db_session):
    repo = ServiceTierRepository(db_session)
    await repo.create(
        service=ServiceType.TRANSPORT, name="Comfort", base_fare=80.0,
        per_km_rate=22.0, vehicle_type=VehicleType.CAR,
    )
    await repo.create(service=ServiceType.TRANSPORT, name="Moto", base_fare=25.0, per_km_rate=8.0)
    await db_session.commit()

    resp = await client.get("/api/v1/admin/tiers/transport")
    assert resp.status_code == 200
    data = resp.json()
    assert [t["name"] for t in data] == ["Moto", "Comfort"]
    assert data[1]["vehicle_type"] == "CAR"

    assert (await client.get("/api/v1/admin/tiers/teleport")).status_code == 422


# ── Navigation ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_initial_flow_is_idle(client: AsyncClient):
    resp = await client.get("/api/v1/flow")
    assert resp.status_code == 200
    data = resp.json()
    assert data["step"] == "idle"
    assert data["is_active"] is False
    assert data["panel"]["visible"] is False


@pytest.mark.asyncio
async def test_start_service_next_back(client: AsyncClient):
    data = await start_transport(client)
    assert data["step"] == "customer.transport.define_trip"
    assert data["role"] == "customer"
    assert data["service"] == "transport"

    resp = await client.post("/api/v1/flow/next")
    assert resp.json()["step"] == "customer.transport.confirm_origin"
    resp = await client.post("/api/v1/flow/back")
    assert resp.json()["step"] == "customer.transport.define_trip"
    assert resp.json()["history"][-1] == "customer.transport.define_trip"


@pytest.mark.asyncio
async def test_goto_within_flow(client: AsyncClient):
    await start_transport(client)
    resp = await client.post("/api/v1/flow/goto", json={"step": "customer.transport.matching"})
    assert resp.status_code == 200
    assert resp.json()["step"] == "customer.transport.matching"


@pytest.mark.asyncio
async def test_goto_foreign_step_ignored_when_lenient(client: AsyncClient):
    await start_transport(client)
    resp = await client.post("/api/v1/flow/goto", json={"step": "driver.transport.at_origin"})
    assert resp.status_code == 200
    assert resp.json()["step"] == "customer.transport.define_trip"


@pytest.mark.asyncio
async def test_goto_foreign_step_rejected_when_strict(strict_client: AsyncClient):
    await start_transport(strict_client)
    resp = await strict_client.post(
        "/api/v1/flow/goto", json={"step": "customer.delivery.checkout"}
    )
    assert resp.status_code == 409
    assert "detail" in resp.json()

    resp = await strict_client.post("/api/v1/flow/goto", json={"step": "bogus"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_service_without_start_is_conflict_when_strict(strict_client: AsyncClient):
    resp = await strict_client.post(
        "/api/v1/flow/service", json={"service": "parcel"}
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_invalid_role_is_422(client: AsyncClient):
    resp = await client.post("/api/v1/flow/start", json={"role": "pilot"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_stop_and_reset(client: AsyncClient):
    await start_transport(client)
    data = (await client.post("/api/v1/flow/stop")).json()
    assert data["is_active"] is False
    assert data["service"] == "transport"

    data = (await client.post("/api/v1/flow/reset")).json()
    assert data["service"] is None
    assert data["role"] is None


@pytest.mark.asyncio
async def test_render_follows_step(client: AsyncClient):
    assert (await client.get("/api/v1/flow/render")).json()["screen"] == "IdleMap"

    await client.post("/api/v1/flow/start", json={"role": "driver"})
    view = (await client.get("/api/v1/flow/render")).json()
    assert view["screen"] == "DriverServiceSelection"
    assert view["step"] == "service_selection"


# ── Jobs and events ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_event_drives_navigation(client: AsyncClient):
    await start_transport(client)
    resp = await client.post("/api/v1/flow/job", json={"job_id": 42})
    assert resp.json()["job_status"] == "pending"

    resp = await client.post(
        "/api/v1/flow/events",
        json={"event": "job:accepted", "data": {"jobId": 42, "agentId": 7, "etaMinutes": 4}},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["delivered"] == 1
    assert body["result"]["outcome"] == "navigated"
    assert body["result"]["step"] == "customer.transport.en_route"

    state = (await client.get("/api/v1/flow")).json()
    assert state["job_status"] == "accepted"
    assert state["matched_agent_id"] == 7
    assert state["eta_minutes"] == 4


@pytest.mark.asyncio
async def test_stale_event_reports_ignored(client: AsyncClient):
    await start_transport(client)
    await client.post("/api/v1/flow/job", json={"job_id": 42})
    resp = await client.post(
        "/api/v1/flow/events", json={"event": "job:accepted", "data": {"jobId": 99}}
    )
    assert resp.json()["result"]["outcome"] == "ignored_stale"
    assert (await client.get("/api/v1/flow")).json()["job_status"] == "pending"


@pytest.mark.asyncio
async def test_event_without_job_is_not_delivered(client: AsyncClient):
    await start_transport(client)
    resp = await client.post(
        "/api/v1/flow/events", json={"event": "job:accepted", "data": {"jobId": 42}}
    )
    assert resp.json() == {"delivered": 0, "result": None}


@pytest.mark.asyncio
async def test_clear_job(client: AsyncClient):
    await start_transport(client)
    await client.post("/api/v1/flow/job", json={"job_id": 42})
    data = (await client.delete("/api/v1/flow/job")).json()
    assert data["job_id"] is None
    assert data["job_status"] is None


# ── Details and quotes ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_details_are_partial(client: AsyncClient):
    await start_transport(client)
    resp = await client.patch(
        "/api/v1/flow/details",
        json={"confirmed_origin": ORIGIN, "phone_number": "+15550100", "ride_type": "for_other"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["confirmed_origin"] == ORIGIN
    assert data["ride_type"] == "for_other"
    assert data["step"] == "customer.transport.define_trip"

    data = (await client.patch("/api/v1/flow/details", json={"selected_tier_id": 3})).json()
    assert data["selected_tier_id"] == 3
    assert data["phone_number"] == "+15550100"


@pytest.mark.asyncio
async def test_quote_requires_confirmed_trip(client: AsyncClient):
    assert (await client.get("/api/v1/flow/quote")).status_code == 409
    await start_transport(client)
    assert (await client.get("/api/v1/flow/quote")).status_code == 409


@pytest.mark.asyncio
async def test_quote_uses_default_tier(client: AsyncClient):
    await start_transport(client)
    await client.patch(
        "/api/v1/flow/details",
        json={"confirmed_origin": ORIGIN, "confirmed_destination": DESTINATION},
    )
    resp = await client.get("/api/v1/flow/quote")
    assert resp.status_code == 200
    (quote,) = resp.json()
    assert quote["tier_name"] == "Standard"
    assert quote["distance_km"] > 0
    assert quote["price"] > 50.0


# ── WebSocket ─────────────────────────────────────────────────────────


def test_socket_streams_state(context, session_factory):
    store = context.store
    store.start(FlowRole.CUSTOMER)
    store.start_service(ServiceType.TRANSPORT)
    store.set_job(42)

    client = TestClient(build_app(context, session_factory))
    with client.websocket_connect("/api/v1/flow/ws") as ws:
        first = ws.receive_json()
        assert first["type"] == "state"
        assert first["data"]["job_id"] == 42

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "detail": "malformed event"}

        ws.send_text('{"event": "job:accepted", "data": {"jobId": 42}}')
        update = ws.receive_json()
        assert update["type"] == "state"
        assert update["data"]["job_status"] == "accepted"
        assert update["data"]["step"] == "customer.transport.en_route"


def test_socket_close_releases_store_listener(context, session_factory):
    store = context.store
    listeners = store.listener_count

    client = TestClient(build_app(context, session_factory))
    with client.websocket_connect("/api/v1/flow/ws") as ws:
        assert ws.receive_json()["type"] == "state"
        assert store.listener_count == listeners + 1

    for _ in range(50):
        if store.listener_count == listeners:
            break
        time.sleep(0.01)
    assert store.listener_count == listeners

    store.start(FlowRole.DRIVER)
    assert store.state.role is FlowRole.DRIVER


# ── Timers ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_matching_timer_round_trip(client: AsyncClient):
    await start_transport(client)
    data = (await client.post("/api/v1/flow/matching", json={"timeout_seconds": 45})).json()
    assert data["is_matching"] is True
    assert data["matching_timeout"] == 45
    assert data["matching_started_at"] is not None

    data = (await client.delete("/api/v1/flow/matching")).json()
    assert data["is_matching"] is False
    assert data["matching_started_at"] is None


@pytest.mark.asyncio
async def test_acceptance_timer_uses_default_timeout(client: AsyncClient, context):
    await start_transport(client)
    data = (await client.post("/api/v1/flow/acceptance", json={})).json()
    assert data["acceptance_timeout"] == context.settings.acceptance_timeout_seconds
    assert data["acceptance_started_at"] is not None

    resp = await client.post("/api/v1/flow/acceptance", json={"timeout_seconds": 0})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_timer_without_flow_is_conflict_when_strict(strict_client: AsyncClient):
    resp = await strict_client.post("/api/v1/flow/matching", json={})
    assert resp.status_code == 409
