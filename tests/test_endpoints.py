import pytest

from main import app as fastapi_app
from api.assets import db_manager as assets_db
from core.exceptions import ConcurrentModificationError, StorageFailureError
from core.lifecycle import TransitionRules, get_transition_rules
from db_models.asset_sequence import AssetSequence
from conftest import BENCH_ID, STOCKROOM_ID


TENANT_RULES = TransitionRules.from_lifecycles({
    "LAPTOP": ["AVAILABLE", "IN_REPAIR", "READY_TO_GO", "ISSUED"],
    "DOCK": ["AVAILABLE", "ISSUED"],
})


async def create_asset(client, headers, asset_type="LAPTOP", serial="SN-API-1", **extra):
    payload = {"serial_number": serial, "description": f"API {asset_type}", "type": asset_type}
    payload.update(extra)
    resp = await client.post("/api/v1/assets", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.anyio
async def test_health(async_client):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


@pytest.mark.anyio
async def test_requires_active_bearer_token(async_client, inactive_headers):
    resp = await async_client.get("/api/v1/assets")
    assert resp.status_code == 401

    resp = await async_client.get("/api/v1/assets", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401

    resp = await async_client.get("/api/v1/assets", headers=inactive_headers)
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_create_list_and_get_asset(async_client, tech_headers):
    laptop = await create_asset(async_client, tech_headers, location_id=STOCKROOM_ID)
    monitor = await create_asset(async_client, tech_headers, "MONITOR", serial="SN-API-2")

    assert laptop["asset_number"] == "04-00001"
    assert laptop["state"] == "AVAILABLE"
    assert laptop["version"] == 1
    assert monitor["asset_number"] == "05-00001"

    resp = await async_client.get("/api/v1/assets", headers=tech_headers)
    assert resp.status_code == 200
    assert [a["asset_number"] for a in resp.json()] == ["04-00001", "05-00001"]

    resp = await async_client.get("/api/v1/assets?type=MONITOR", headers=tech_headers)
    assert [a["asset_number"] for a in resp.json()] == ["05-00001"]

    resp = await async_client.get(f"/api/v1/assets?location_id={STOCKROOM_ID}", headers=tech_headers)
    assert [a["asset_number"] for a in resp.json()] == ["04-00001"]

    resp = await async_client.get("/api/v1/assets/04-00001", headers=tech_headers)
    assert resp.status_code == 200
    assert resp.json()["serial_number"] == "SN-API-1"

    resp = await async_client.get("/api/v1/assets/04-99999", headers=tech_headers)
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_create_conflicts_and_bad_input(async_client, tech_headers):
    await create_asset(async_client, tech_headers)

    payload = {"serial_number": "SN-API-1", "description": "again", "type": "TABLET"}
    resp = await async_client.post("/api/v1/assets", json=payload, headers=tech_headers)
    assert resp.status_code == 409

    payload = {"serial_number": "SN-NEW", "description": "bad", "type": "PRINTER"}
    resp = await async_client.post("/api/v1/assets", json=payload, headers=tech_headers)
    assert resp.status_code == 400

    payload = {"serial_number": "SN-NEW", "description": "bad", "type": "MONITOR", "initial_state": "BUILDING"}
    resp = await async_client.post("/api/v1/assets", json=payload, headers=tech_headers)
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_asset_number_collision_is_conflict(async_client, tech_headers, session_factory):
    await create_asset(async_client, tech_headers)

    # Counter past 99999 wraps back onto 04-00001
    async with session_factory() as session:
        counter = await session.get(AssetSequence, "04")
        counter.next_sequence = 100001
        await session.commit()

    payload = {"serial_number": "SN-API-2", "description": "wrapped", "type": "LAPTOP"}
    resp = await async_client.post("/api/v1/assets", json=payload, headers=tech_headers)
    assert resp.status_code == 409

    resp = await async_client.get("/api/v1/assets", headers=tech_headers)
    assert [a["serial_number"] for a in resp.json()] == ["SN-API-1"]


@pytest.mark.anyio
async def test_delete_conflict_is_409(async_client, tech_headers, admin_headers, monkeypatch):
    await create_asset(async_client, tech_headers)

    async def racing(db, engine, asset_number, actor_id, reason=None):
        raise ConcurrentModificationError(asset_number)

    monkeypatch.setattr(assets_db, "soft_delete_asset", racing)

    resp = await async_client.delete("/api/v1/assets/04-00001", headers=admin_headers)
    assert resp.status_code == 409
    assert "modified concurrently" in resp.json()["detail"]


@pytest.fixture
def tenant_rules(async_client):
    # Cleared with the other overrides when async_client tears down
    fastapi_app.dependency_overrides[get_transition_rules] = lambda: TENANT_RULES
    return TENANT_RULES


@pytest.mark.anyio
async def test_tenant_rule_table_over_http(async_client, tech_headers, tenant_rules):
    laptop = await create_asset(async_client, tech_headers)
    dock = await create_asset(async_client, tech_headers, "DOCK", serial="SN-API-2")
    assert laptop["asset_number"] == "04-00001"
    assert dock["asset_number"] == "99-00001"
    assert dock["state"] == "AVAILABLE"

    resp = await async_client.post(
        "/api/v1/assets/04-00001/transition", json={"target_state": "IN_REPAIR"}, headers=tech_headers
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["new_state"] == "IN_REPAIR"

    resp = await async_client.get("/api/v1/assets/04-00001/next-states", headers=tech_headers)
    assert resp.json()["next_states"] == ["READY_TO_GO"]
    assert resp.json()["lifecycle"] == ["AVAILABLE", "IN_REPAIR", "READY_TO_GO", "ISSUED"]

    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={
            "asset_identifiers": ["99-00001"],
            "operation": {"kind": "stateTransition", "new_state": "ISSUED"},
        },
        headers=tech_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["affected_count"] == 1

    resp = await async_client.get("/api/v1/assets?type=DOCK&state=ISSUED", headers=tech_headers)
    assert [a["asset_number"] for a in resp.json()] == ["99-00001"]


@pytest.mark.anyio
async def test_tenant_rule_table_rejects_foreign_names(async_client, tech_headers, tenant_rules):
    await create_asset(async_client, tech_headers)

    # Types and states outside the active table
    payload = {"serial_number": "SN-API-2", "description": "no lifecycle", "type": "MONITOR"}
    resp = await async_client.post("/api/v1/assets", json=payload, headers=tech_headers)
    assert resp.status_code == 400

    payload = {"serial_number": "SN-API-2", "description": "dock", "type": "DOCK", "initial_state": "IN_REPAIR"}
    resp = await async_client.post("/api/v1/assets", json=payload, headers=tech_headers)
    assert resp.status_code == 400

    resp = await async_client.post(
        "/api/v1/assets/04-00001/transition", json={"target_state": "BUILDING"}, headers=tech_headers
    )
    assert resp.status_code == 409

    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={
            "asset_identifiers": ["04-00001"],
            "operation": {"kind": "stateTransition", "new_state": "BUILDING"},
        },
        headers=tech_headers,
    )
    assert resp.status_code == 400

    # Longer than the state column
    resp = await async_client.post(
        "/api/v1/assets/04-00001/transition", json={"target_state": "X" * 21}, headers=tech_headers
    )
    assert resp.status_code == 422

    resp = await async_client.get("/api/v1/assets/04-00001", headers=tech_headers)
    assert resp.json()["state"] == "AVAILABLE"
    assert resp.json()["version"] == 1


@pytest.mark.anyio
async def test_next_states(async_client, tech_headers):
    await create_asset(async_client, tech_headers, "MONITOR")

    resp = await async_client.get("/api/v1/assets/05-00001/next-states", headers=tech_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["current_state"] == "AVAILABLE"
    assert body["next_states"] == ["SIGNED_OUT"]
    assert body["lifecycle"] == ["AVAILABLE", "SIGNED_OUT", "READY_TO_GO", "ISSUED"]


@pytest.mark.anyio
async def test_transition_flow_and_history(async_client, tech_headers):
    await create_asset(async_client, tech_headers)

    resp = await async_client.post(
        "/api/v1/assets/04-00001/transition",
        json={"target_state": "SIGNED_OUT", "reason": "build", "expected_version": 1},
        headers=tech_headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["previous_state"] == "AVAILABLE"
    assert body["new_state"] == "SIGNED_OUT"
    assert body["asset"]["version"] == 2
    assert len(body["steps"]) == 1

    # Skipping ahead is refused and names the allowed states
    resp = await async_client.post(
        "/api/v1/assets/04-00001/transition",
        json={"target_state": "ISSUED"},
        headers=tech_headers,
    )
    assert resp.status_code == 409
    assert "BUILDING" in resp.json()["detail"]

    # Stale version
    resp = await async_client.post(
        "/api/v1/assets/04-00001/transition",
        json={"target_state": "BUILDING", "expected_version": 1},
        headers=tech_headers,
    )
    assert resp.status_code == 409

    resp = await async_client.get("/api/v1/assets/04-00001/history", headers=tech_headers)
    assert resp.status_code == 200
    history = resp.json()
    assert history["current_state"] == "SIGNED_OUT"
    assert [e["new_state"] for e in history["entries"]] == ["SIGNED_OUT", "AVAILABLE"]
    assert history["entries"][0]["actor_name"] == "Test Technician"
    assert history["entries"][0]["reason"] == "build"
    assert history["entries"][1]["previous_state"] is None

    resp = await async_client.get("/api/v1/assets/04-00001/history?limit=1", headers=tech_headers)
    assert len(resp.json()["entries"]) == 1


@pytest.mark.anyio
async def test_transition_unknown_asset(async_client, tech_headers):
    resp = await async_client.post(
        "/api/v1/assets/04-99999/transition",
        json={"target_state": "SIGNED_OUT"},
        headers=tech_headers,
    )
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_advance_is_admin_only(async_client, tech_headers, admin_headers):
    await create_asset(async_client, tech_headers)

    resp = await async_client.post(
        "/api/v1/assets/04-00001/advance", json={"target_state": "ISSUED"}, headers=tech_headers
    )
    assert resp.status_code == 403

    resp = await async_client.post(
        "/api/v1/assets/04-00001/advance",
        json={"target_state": "ISSUED", "reason": "urgent"},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["new_state"] == "ISSUED"
    assert [s["new_state"] for s in body["steps"]] == ["SIGNED_OUT", "BUILDING", "READY_TO_GO", "ISSUED"]

    resp = await async_client.post(
        "/api/v1/assets/04-00001/advance", json={"target_state": "ISSUED"}, headers=admin_headers
    )
    assert resp.status_code == 409


@pytest.mark.anyio
async def test_soft_delete(async_client, tech_headers, admin_headers):
    await create_asset(async_client, tech_headers)

    resp = await async_client.delete("/api/v1/assets/04-00001", headers=tech_headers)
    assert resp.status_code == 403

    resp = await async_client.delete("/api/v1/assets/04-00001", headers=admin_headers)
    assert resp.status_code == 200

    resp = await async_client.get("/api/v1/assets/04-00001", headers=tech_headers)
    assert resp.status_code == 404
    resp = await async_client.delete("/api/v1/assets/04-00001", headers=admin_headers)
    assert resp.status_code == 404

    # History outlives the delete
    resp = await async_client.get("/api/v1/assets/04-00001/history", headers=tech_headers)
    assert resp.status_code == 200
    assert resp.json()["is_deleted"] is True
    assert resp.json()["entries"][0]["actor_name"] == "Test Admin"


@pytest.mark.anyio
async def test_bulk_transition_partial_failure(async_client, tech_headers):
    await create_asset(async_client, tech_headers)
    await create_asset(async_client, tech_headers, serial="SN-API-2", initial_state="ISSUED")

    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={
            "asset_identifiers": ["04-00001", "04-00002"],
            "operation": {"kind": "stateTransition", "new_state": "SIGNED_OUT"},
        },
        headers=tech_headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "PartiallyFailed"
    assert body["affected_count"] == 1
    assert body["operation"] == "stateTransition"
    assert body["updated_assets"][0]["asset_number"] == "04-00001"
    assert body["failures"][0]["asset_number"] == "04-00002"


@pytest.mark.anyio
async def test_bulk_rejects_unknown_identifiers(async_client, tech_headers):
    await create_asset(async_client, tech_headers)

    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={
            "asset_identifiers": ["04-00001", "04-00077"],
            "operation": {"kind": "stateTransition", "new_state": "SIGNED_OUT"},
        },
        headers=tech_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["missing"] == ["04-00077"]

    resp = await async_client.get("/api/v1/assets/04-00001", headers=tech_headers)
    assert resp.json()["state"] == "AVAILABLE"


@pytest.mark.anyio
async def test_bulk_field_update(async_client, tech_headers):
    await create_asset(async_client, tech_headers, location_id=STOCKROOM_ID)

    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={
            "asset_identifiers": ["04-00001"],
            "operation": {"kind": "bulkFieldUpdate", "fields": {"location_id": BENCH_ID, "state": "ISSUED"}},
        },
        headers=tech_headers,
    )
    assert resp.status_code == 200, resp.text
    updated = resp.json()["updated_assets"][0]
    assert updated["location_id"] == BENCH_ID
    assert updated["state"] == "AVAILABLE"

    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={
            "asset_identifiers": ["04-00001"],
            "operation": {"kind": "bulkFieldUpdate", "fields": {"location_id": 999}},
        },
        headers=tech_headers,
    )
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_bulk_payload_is_validated(async_client, tech_headers):
    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={"asset_identifiers": ["04-00001"], "operation": {"kind": "explode"}},
        headers=tech_headers,
    )
    assert resp.status_code == 422

    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={"asset_identifiers": ["04-00001"], "operation": {"kind": "stateTransition"}},
        headers=tech_headers,
    )
    assert resp.status_code == 422

    resp = await async_client.post(
        "/api/v1/assets/bulk",
        json={"asset_identifiers": [], "operation": {"kind": "stateTransition", "new_state": "ISSUED"}},
        headers=tech_headers,
    )
    assert resp.status_code == 422


@pytest.mark.anyio
async def test_consistency_report(async_client, tech_headers, admin_headers):
    await create_asset(async_client, tech_headers)

    resp = await async_client.get("/api/v1/history/consistency", headers=tech_headers)
    assert resp.status_code == 403

    resp = await async_client.get("/api/v1/history/consistency", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"consistent": True, "mismatches": []}


@pytest.mark.anyio
async def test_dashboard_overview(async_client, tech_headers):
    await create_asset(async_client, tech_headers)
    await create_asset(async_client, tech_headers, "MONITOR", serial="SN-API-2")
    await async_client.post(
        "/api/v1/assets/05-00001/transition", json={"target_state": "SIGNED_OUT"}, headers=tech_headers
    )

    resp = await async_client.get("/api/v1/dashboard/overview", headers=tech_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["active_assets"] == 2
    assert body["by_state"]["AVAILABLE"] == 1
    assert body["by_state"]["SIGNED_OUT"] == 1
    assert body["by_state"]["ISSUED"] == 0
    assert body["by_type"]["LAPTOP"] == 1
    assert body["by_type"]["TABLET"] == 0
    assert body["recent_transitions"][0]["asset_number"] == "05-00001"
    assert body["recent_transitions"][0]["new_state"] == "SIGNED_OUT"


@pytest.mark.anyio
async def test_storage_failure_is_generic_500(async_client, tech_headers, monkeypatch):
    async def broken(*args, **kwargs):
        raise StorageFailureError("list assets")

    monkeypatch.setattr(assets_db, "list_assets", broken)

    resp = await async_client.get("/api/v1/assets", headers=tech_headers)
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Storage failure", "diagnostic": "STORAGE_FAILURE"}
