"""
Tests for the HTTP surface: status codes, error codes, and payload shapes.
"""

import pytest
from httpx import AsyncClient


def reservation(subject_id, activity_key, time_slot_id, **extra):
    return {"subject_id": subject_id, "activity_key": activity_key, "time_slot_id": time_slot_id, **extra}


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["cache"]["status"] == "memory"


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient):
    await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "simlab-1"))
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "reservation_attempts_total" in response.text


@pytest.mark.asyncio
async def test_reserve(client: AsyncClient):
    """Successful reservation returns 201 and the canonical key."""
    response = await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "simlab-2"))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "success"
    assert data["error_code"] is None
    assert data["keys"] == ["simlab:2"]
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_reserve_full_returns_409(client: AsyncClient):
    for subject in ("s1", "s2"):
        await client.post("/api/v1/reservations/", json=reservation(subject, "simlab", "simlab-1"))

    response = await client.post("/api/v1/reservations/", json=reservation("s3", "simlab", "simlab-1"))
    assert response.status_code == 409
    assert response.json()["error_code"] == "NO_SPOTS_AVAILABLE"


@pytest.mark.asyncio
async def test_reserve_unknown_activity_returns_404(client: AsyncClient):
    response = await client.post("/api/v1/reservations/", json=reservation("s1", "nope", "nope-1"))
    assert response.status_code == 404
    assert response.json()["error_code"] == "SLOT_NOT_FOUND"


@pytest.mark.asyncio
async def test_reserve_malformed_slot_returns_422(client: AsyncClient):
    response = await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "morning"))
    assert response.status_code == 422
    assert response.json()["error_code"] == "INVALID_SLOT_IDENTIFIER"


@pytest.mark.asyncio
async def test_reserve_missing_fields_returns_422(client: AsyncClient):
    response = await client.post("/api/v1/reservations/", json={"subject_id": "s1"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reserve_contention_returns_503(client: AsyncClient, engine):
    engine.locks.timeout = 0.05
    engine.coordinator.max_attempts = 1

    async with engine.locks.hold(["activity:simlab"]):
        response = await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "simlab-1"))

    assert response.status_code == 503
    assert response.json()["error_code"] == "TRANSACTION_ABORTED"
    assert response.headers["Retry-After"] == "1"


@pytest.mark.asyncio
async def test_reserve_replace_all_flag(client: AsyncClient):
    await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "simlab-1"))
    response = await client.post(
        "/api/v1/reservations/",
        json=reservation("s1", "robotics", "robotics-1", replace_all=True),
    )
    assert response.status_code == 201

    listing = await client.get("/api/v1/reservations/s1")
    assert [item["key"] for item in listing.json()] == ["robotics:1"]


@pytest.mark.asyncio
async def test_replace_endpoint(client: AsyncClient, activities):
    await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "simlab-1"))

    response = await client.post(
        "/api/v1/reservations/replace",
        json={
            "subject_id": "s1",
            "selections": [
                {"activity_key": "chemistry", "time_slot_id": "chemistry-4"},
                {"activity_key": "robotics", "time_slot_id": 2, "explicit_key": activities["robotics-2"]},
            ],
        },
    )
    assert response.status_code == 201
    assert sorted(response.json()["keys"]) == ["chemistry:4", "robotics-2:2"]

    listing = await client.get("/api/v1/reservations/s1")
    items = listing.json()
    assert {item["key"] for item in items} == {"chemistry:4", "robotics-2:2"}
    assert {item["activity_id"] for item in items} == {"chemistry", "robotics-2"}


@pytest.mark.asyncio
async def test_cancel(client: AsyncClient):
    await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "simlab-1"))

    response = await client.request(
        "DELETE", "/api/v1/reservations/", json={"subject_id": "s1", "activity_key": "simlab"}
    )
    assert response.status_code == 200
    assert response.json() == {"removed": True, "error_code": None}

    again = await client.request(
        "DELETE", "/api/v1/reservations/", json={"subject_id": "s1", "activity_key": "simlab"}
    )
    assert again.status_code == 200
    assert again.json()["removed"] is False


@pytest.mark.asyncio
async def test_cancel_unknown_activity_is_not_an_error(client: AsyncClient):
    response = await client.request(
        "DELETE", "/api/v1/reservations/", json={"subject_id": "s1", "activity_key": "nope"}
    )
    assert response.status_code == 200
    assert response.json()["removed"] is False


@pytest.mark.asyncio
async def test_availability(client: AsyncClient, activities):
    await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "simlab-1"))

    by_text = await client.get("/api/v1/availability/simlab")
    assert by_text.status_code == 200
    assert by_text.json() == {"activity_key": "simlab", "available": 1}

    by_row = await client.get(f"/api/v1/availability/{activities['robotics']}")
    assert by_row.json()["available"] == 3

    missing = await client.get("/api/v1/availability/nope")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_all_availability(client: AsyncClient):
    await client.post("/api/v1/reservations/", json=reservation("s1", "simlab", "simlab-1"))

    response = await client.get("/api/v1/availability")
    assert response.status_code == 200
    slots = response.json()["slots"]
    # Every slot of an activity reports the shared pool
    assert slots["simlab:1"] == 1
    assert slots["simlab:5"] == 1
    assert slots["robotics-2:1"] == 1
    assert len(slots) == 4 * 5


@pytest.mark.asyncio
async def test_reservation_counters(client: AsyncClient):
    await client.post("/api/v1/reservations/", json=reservation("s1", "chemistry", "chemistry-1"))
    await client.post("/api/v1/reservations/", json=reservation("s2", "chemistry", "chemistry-1"))
    await client.post("/api/v1/reservations/", json=reservation("s3", "chemistry", "chemistry-3"))

    response = await client.get("/api/v1/reservation-counters")
    assert response.status_code == 200
    assert response.json()["counters"] == {"chemistry:1": 2, "chemistry:3": 1}


@pytest.mark.asyncio
async def test_reconciliation_endpoint(client: AsyncClient, force_counter):
    await force_counter("simlab", 2)

    response = await client.post("/api/v1/reconciliation/")
    assert response.status_code == 200
    data = response.json()
    assert data["activities_checked"] == 4
    assert data["consistent"] is False
    assert data["corrections"] == [{"activity_id": "simlab", "previous": 2, "actual": 0}]
    assert data["alarms"] == []
