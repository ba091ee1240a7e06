"""
Withdrawal Routes Tests
"""

from decimal import Decimal

import pytest

from crestcat.core.settings import settings
from tests.conftest import token_headers
from tests.utils.factories import create_user

API = settings.app.API_V1_STR


@pytest.fixture
async def funded(db):
    return await create_user(db, email="funded@crestcat.com", full_name="Fay Funded", balance=Decimal("1200.00"))


@pytest.fixture
def funded_headers(funded):
    return token_headers(funded)


def _payload(amount: str) -> dict:
    return {"amount": amount, "bank_account_number": "0012345678", "bank_account_name": "Fay Funded"}


async def test_request_and_approve_withdrawal(client, funded_headers, admin_headers):
    """Test a full payout empties the balance and blocks a second request"""
    response = await client.post(f"{API}/withdrawals", json=_payload("1200.00"), headers=funded_headers)
    assert response.status_code == 201
    withdrawal = response.json()
    assert withdrawal["status"] == "PENDING"
    assert withdrawal["masked_account_number"] == "****5678"
    assert "bank_account_number" not in withdrawal

    response = await client.post(
        f"{API}/admin/withdrawals/{withdrawal['id']}/process",
        json={"action": "approve", "admin_notes": "Wired"},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert response.json()["receipt_id"].startswith("RCP-")

    response = await client.post(f"{API}/withdrawals", json=_payload("1200.00"), headers=funded_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "INSUFFICIENT_BALANCE"


async def test_request_above_balance(client, funded_headers):
    response = await client.post(f"{API}/withdrawals", json=_payload("1200.01"), headers=funded_headers)

    assert response.status_code == 400
    assert response.json()["details"] == {"requested": "1200.01", "available": "1200.00"}


async def test_list_my_withdrawals(client, funded_headers, user_headers):
    await client.post(f"{API}/withdrawals", json=_payload("100"), headers=funded_headers)

    mine = await client.get(f"{API}/withdrawals", headers=funded_headers)
    theirs = await client.get(f"{API}/withdrawals", headers=user_headers)

    assert len(mine.json()) == 1
    assert theirs.json() == []


async def test_processing_twice_shows_details_to_admin(client, funded_headers, admin_headers):
    """Test admins see the specific reason for a state conflict"""
    created = (await client.post(f"{API}/withdrawals", json=_payload("100"), headers=funded_headers)).json()
    url = f"{API}/admin/withdrawals/{created['id']}/process"
    await client.post(url, json={"action": "reject"}, headers=admin_headers)

    response = await client.post(url, json={"action": "approve"}, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "Withdrawal has already been processed (REJECTED)"
    assert response.json()["details"]["status"] == "REJECTED"


async def test_invalid_action(client, funded_headers, admin_headers):
    created = (await client.post(f"{API}/withdrawals", json=_payload("100"), headers=funded_headers)).json()

    response = await client.post(
        f"{API}/admin/withdrawals/{created['id']}/process", json={"action": "hold"}, headers=admin_headers
    )

    assert response.status_code == 422
