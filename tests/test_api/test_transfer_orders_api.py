from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from branch_logistics.api.deps import get_transfer_service
from branch_logistics.main import app
from branch_logistics.services.transfer_service import TransferService

BASE = "/api/v1/transfer-orders"


def headers_for(user) -> dict[str, str]:
    headers = {"X-User-Id": user.id, "X-User-Role": user.role, "X-User-Name": user.display_name}
    if user.branch_id:
        headers["X-User-Branch-Id"] = str(user.branch_id)
    if user.authorized_branch_ids:
        headers["X-User-Branch-Ids"] = ",".join(str(b) for b in user.authorized_branch_ids)
    return headers


@pytest_asyncio.fixture
async def client(session_factory, seed):
    async def override_service():
        async with session_factory() as session:
            yield TransferService(session, notifier=AsyncMock())

    app.dependency_overrides[get_transfer_service] = override_service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def create_body(seed, *serials, kind="MACHINE") -> dict:
    return {
        "to_branch_id": str(seed.b),
        "kind": kind,
        "items": [{"serial_number": s} for s in serials],
        "waybill_number": "WB-1",
    }


@pytest.mark.asyncio
async def test_create_and_fetch(client, seed, users):
    response = await client.post(BASE, json=create_body(seed, "SN-001", "SN-002"), headers=headers_for(users.a))

    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "PENDING"
    assert order["from_branch"]["name"] == "Branch A"
    assert [i["serial_number"] for i in order["items"]] == ["SN-001", "SN-002"]

    fetched = await client.get(f"{BASE}/{order['id']}", headers=headers_for(users.b))
    assert fetched.status_code == 200
    assert fetched.json()["order_number"] == order["order_number"]


@pytest.mark.asyncio
async def test_validation_error_is_400_with_issues(client, seed, users):
    response = await client.post(BASE, json=create_body(seed, "SN-003", "SN-404"), headers=headers_for(users.a))

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert {e["code"] for e in body["errors"]} == {"ITEM_LOCKED", "ITEM_NOT_FOUND"}


@pytest.mark.asyncio
async def test_validate_endpoint_is_dry_run(client, seed, users):
    response = await client.post(f"{BASE}/validate", json=create_body(seed, "SN-DEF"), headers=headers_for(users.a))

    assert response.status_code == 200
    assert response.json()["valid"] is True
    assert response.json()["warnings"][0]["code"] == "ACTIVE_SERVICE_REQUEST"

    listed = await client.get(BASE, headers=headers_for(users.admin))
    assert listed.json() == []


@pytest.mark.asyncio
async def test_receive_partial_then_stats(client, seed, users):
    order = (await client.post(BASE, json=create_body(seed, "SN-001", "SN-002"), headers=headers_for(users.a))).json()

    received = await client.post(
        f"{BASE}/{order['id']}/receive",
        json={"received_item_ids": [order["items"][0]["id"]]},
        headers=headers_for(users.b),
    )
    assert received.status_code == 200
    assert received.json()["status"] == "PARTIAL"

    serials = await client.get(f"{BASE}/pending-serials", headers=headers_for(users.b))
    assert serials.json() == ["SN-002"]

    stats = await client.get(f"{BASE}/stats", headers=headers_for(users.admin))
    assert stats.json()["orders"]["partial"] == 1
    assert stats.json()["items"] == {"total": 2, "received": 1, "pending": 1}


@pytest.mark.asyncio
async def test_refusals_map_to_http_statuses(client, seed, users):
    order = (await client.post(BASE, json=create_body(seed, "SN-001"), headers=headers_for(users.a))).json()
    cancel_url = f"{BASE}/{order['id']}/cancel"

    forbidden = await client.post(cancel_url, headers=headers_for(users.a2))
    hidden = await client.get(f"{BASE}/{order['id']}", headers=headers_for(users.c))
    cancelled = await client.post(cancel_url, headers=headers_for(users.a))
    again = await client.post(cancel_url, headers=headers_for(users.a))

    assert forbidden.status_code == 403
    assert hidden.status_code == 404
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert again.status_code == 409
    assert again.json()["current"] == "CANCELLED"


@pytest.mark.asyncio
async def test_reject_with_short_reason_is_400(client, seed, users):
    order = (await client.post(BASE, json=create_body(seed, "SN-001"), headers=headers_for(users.a))).json()

    response = await client.post(f"{BASE}/{order['id']}/reject", json={"reason": "no"}, headers=headers_for(users.b))

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "REJECTION_REASON_REQUIRED"


@pytest.mark.asyncio
async def test_storage_failure_is_generic_500(client, seed, users):
    failing = AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("connection reset")))
    with patch("branch_logistics.services.inventory_registry.claim_items", failing):
        response = await client.post(BASE, json=create_body(seed, "SN-001"), headers=headers_for(users.a))

    assert response.status_code == 500
    assert response.json() == {
        "code": "INTERNAL_ERROR",
        "message": "Internal error while processing the transfer order",
    }


@pytest.mark.asyncio
async def test_identity_headers_are_required(client, seed):
    response = await client.get(BASE)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_child_branches_header(client, seed, users):
    await client.post(BASE, json=create_body(seed, "SN-001"), headers=headers_for(users.a))

    listed = await client.get(BASE, headers=headers_for(users.affairs))
    bad = await client.get(BASE, headers={**headers_for(users.affairs), "X-User-Branch-Ids": "not-a-uuid"})

    assert len(listed.json()) == 1
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
