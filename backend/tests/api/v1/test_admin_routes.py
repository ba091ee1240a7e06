"""
Admin Routes Tests
"""

import uuid
from decimal import Decimal

import pytest

from crestcat.core.settings import settings
from crestcat.models.investment import InvestmentStatus
from tests.utils.factories import create_asset, create_investment

API = settings.app.API_V1_STR


@pytest.fixture
async def gold(db):
    return await create_asset(db, name="Gold", symbol="XAU", price=Decimal("2000.00"))


async def test_admin_routes_require_admin(client, user_headers):
    """Test regular users are refused on every admin route"""
    for path in ("/admin/stats", "/admin/investments/pending", "/admin/users", "/admin/badge-counts"):
        response = await client.get(f"{API}{path}", headers=user_headers)
        assert response.status_code == 403, path


async def test_admin_routes_require_token(client):
    response = await client.get(f"{API}/admin/stats")

    assert response.status_code == 401


async def test_investment_review_flow(client, user_headers, admin_headers, gold):
    """Test deposit, approval, repricing and closure through the API"""
    created = await client.post(
        f"{API}/investments",
        json={"asset_id": str(gold.id), "amount": "1000"},
        headers=user_headers
    )
    investment_id = created.json()["id"]

    pending = await client.get(f"{API}/admin/investments/pending", headers=admin_headers)
    assert [item["id"] for item in pending.json()] == [investment_id]

    approved = await client.post(
        f"{API}/admin/investments/{investment_id}/approve", json={"notes": "Funds received"}, headers=admin_headers
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "ACTIVE"

    report = await client.put(f"{API}/admin/assets/{gold.id}/price", json={"price": "2200"}, headers=admin_headers)
    assert report.status_code == 200
    assert Decimal(report.json()["total_delta"]) == Decimal("100.00")
    assert report.json()["investments_updated"] == 1

    await client.post(f"{API}/investments/{investment_id}/close", headers=user_headers)
    requests = await client.get(f"{API}/admin/investments/closure-requests", headers=admin_headers)
    assert [item["id"] for item in requests.json()] == [investment_id]

    closed = await client.post(f"{API}/admin/investments/{investment_id}/closure/approve", headers=admin_headers)
    assert closed.status_code == 200
    assert closed.json()["status"] == "CLOSED"
    assert Decimal(closed.json()["current_value"]) == Decimal("1100.00")

    again = await client.post(f"{API}/admin/investments/{investment_id}/closure/approve", headers=admin_headers)
    assert again.status_code == 409
    assert again.json()["message"] == "Investment is already closed"

    users = await client.get(f"{API}/admin/users", headers=admin_headers)
    assert Decimal(users.json()[0]["balance"]) == Decimal("1200.00")

    for path in ("pending", "active", "closure-requests"):
        listed = await client.get(f"{API}/admin/investments/{path}", headers=admin_headers)
        assert investment_id not in {item["id"] for item in listed.json()}


async def test_reject_closure_needs_reason(client, db, user, admin_headers, gold):
    investment = await create_investment(
        db, user=user, asset=gold, amount=Decimal("1000"), status=InvestmentStatus.CLOSURE_REQUESTED
    )

    response = await client.post(
        f"{API}/admin/investments/{investment.id}/closure/reject", json={"reason": "  "}, headers=admin_headers
    )

    assert response.status_code == 422


async def test_missing_investment_shows_details_to_admin(client, admin_headers):
    missing = uuid.uuid4()

    response = await client.post(f"{API}/admin/investments/{missing}/approve", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Investment not found"
    assert response.json()["details"] == {"investment_id": str(missing)}


async def test_create_asset_and_delete(client, admin_headers):
    created = await client.post(
        f"{API}/admin/assets",
        json={"name": "Silver", "symbol": "xag", "type": "SILVER", "current_price": "25.50"},
        headers=admin_headers
    )
    assert created.status_code == 201
    assert created.json()["symbol"] == "XAG"

    deleted = await client.delete(f"{API}/admin/assets/{created.json()['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert deleted.json()["is_active"] is False


async def test_delete_asset_with_live_investments(client, db, user, admin_headers, gold):
    await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    response = await client.delete(f"{API}/admin/assets/{gold.id}", headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "Cannot delete asset with active investments"


async def test_adjust_balance(client, user, admin_headers):
    response = await client.post(
        f"{API}/admin/users/{user.id}/balance",
        json={"operation": "set", "amount": "300.00", "note": "migration"},
        headers=admin_headers
    )

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["previous_balance"]) == Decimal("0.00")
    assert Decimal(body["new_balance"]) == Decimal("300.00")

    transactions = await client.get(
        f"{API}/admin/transactions", params={"type": "ADMIN_ADJUSTMENT"}, headers=admin_headers
    )
    assert transactions.json()[0]["metadata"]["kind"] == "adjustment"


async def test_badge_counts_and_notifications(client, user_headers, admin_headers, gold):
    await client.post(
        f"{API}/investments", json={"asset_id": str(gold.id), "amount": "100"}, headers=user_headers
    )

    counts = await client.get(f"{API}/admin/badge-counts", headers=admin_headers)
    assert counts.json()["pending_investments"] == 1

    inbox = await client.get(f"{API}/admin/notifications", headers=admin_headers)
    assert inbox.json()["unread_count"] == 1
    assert inbox.json()["items"][0]["title"] == "New Deposit"

    user_inbox = await client.get(f"{API}/notifications", headers=user_headers)
    assert user_inbox.json()["items"][0]["title"] == "Deposit Received"

    marked = await client.post(f"{API}/notifications/read-all", headers=user_headers)
    assert marked.json() == {"updated": 1}


async def test_deposit_methods_catalogue(client, user_headers, admin_headers, gold):
    """Test admins maintain the deposit methods and users only see active ones"""
    methods = [
        {"id": "bank-transfer", "name": "Bank transfer", "account_details": {"iban": "GB00CRST0012345678"}},
        {"id": "cash-office", "name": "Cash", "is_active": False},
    ]
    saved = await client.put(
        f"{API}/admin/deposit-methods", json={"deposit_methods": methods}, headers=admin_headers
    )
    assert saved.status_code == 200
    assert [m["id"] for m in saved.json()["deposit_methods"]] == ["bank-transfer", "cash-office"]

    everything = await client.get(f"{API}/admin/deposit-methods", headers=admin_headers)
    assert len(everything.json()["deposit_methods"]) == 2

    offered = await client.get(f"{API}/deposit-methods", headers=user_headers)
    assert offered.status_code == 200
    assert offered.json()["deposit_methods"] == [
        {
            "id": "bank-transfer",
            "name": "Bank transfer",
            "is_active": True,
            "account_details": {"iban": "GB00CRST0012345678"},
        }
    ]

    refused = await client.post(
        f"{API}/investments",
        json={"asset_id": str(gold.id), "amount": "1000", "deposit_method": "cash-office"},
        headers=user_headers
    )
    assert refused.status_code == 422
    assert refused.json()["error_code"] == "VALIDATION_ERROR"
    assert refused.json()["details"]["available"] == ["bank-transfer"]


async def test_deposit_methods_edit_requires_admin(client, user_headers):
    response = await client.put(
        f"{API}/admin/deposit-methods", json={"deposit_methods": []}, headers=user_headers
    )

    assert response.status_code == 403


async def test_deposit_method_ids_must_be_unique(client, admin_headers):
    duplicate = {"id": "bank-transfer", "name": "Bank transfer"}
    response = await client.put(
        f"{API}/admin/deposit-methods", json={"deposit_methods": [duplicate, duplicate]}, headers=admin_headers
    )

    assert response.status_code == 422
