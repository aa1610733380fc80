"""Integration tests: bill and bid endpoints through a full financing round."""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from app.utils.time import get_utc_now


@pytest.fixture
async def parties(async_client: AsyncClient, api_base: str, register_actor):
    """An organization, its customer and two funded financers."""
    org = await register_actor("organization", "Acme")
    cust = await register_actor("customer", "Carol")
    fin_a = await register_actor("financer", "Fiona")
    fin_b = await register_actor("financer", "Felix")
    for fin, amount in ((fin_a, "5000"), (fin_b, "10000")):
        resp = await async_client.post(
            f"{api_base}/users/me/funds", headers=fin["headers"], json={"amount": amount}
        )
        assert resp.status_code == 200, resp.text
    return {"org": org, "cust": cust, "fin_a": fin_a, "fin_b": fin_b}


async def _create_bill(client, api_base, parties, amount="10000", send=True) -> dict:
    resp = await client.post(
        f"{api_base}/bills",
        headers=parties["org"]["headers"],
        json={
            "title": "Consulting services",
            "description": "Q3 consulting engagement",
            "amount": amount,
            "due_date": (get_utc_now() + timedelta(days=30)).isoformat(),
            "customer_id": parties["cust"]["id"],
        },
    )
    assert resp.status_code == 201, resp.text
    bill = resp.json()["data"]
    if send:
        resp = await client.post(f"{api_base}/bills/{bill['id']}/send", headers=parties["org"]["headers"])
        assert resp.status_code == 200, resp.text
        bill = resp.json()["data"]
    return bill


async def _place_bid(client, api_base, financer, bill_id, pct):
    return await client.post(
        f"{api_base}/bids",
        headers=financer["headers"],
        json={"bill_id": bill_id, "financing_percentage": pct},
    )


@pytest.mark.asyncio
async def test_create_and_send_bill(async_client: AsyncClient, api_base: str, parties):
    draft = await _create_bill(async_client, api_base, parties, send=False)
    assert draft["status"] == "draft"
    assert draft["bill_number"].startswith("BILL-")
    assert draft["days_until_due"] == 30

    resp = await async_client.post(f"{api_base}/bills/{draft['id']}/send", headers=parties["org"]["headers"])
    sent = resp.json()["data"]
    assert sent["status"] == "sent"
    assert sent["is_in_marketplace"] is True

    resp = await async_client.post(f"{api_base}/bills/{draft['id']}/send", headers=parties["org"]["headers"])
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_customer_cannot_create_bill(async_client: AsyncClient, api_base: str, parties):
    resp = await async_client.post(
        f"{api_base}/bills",
        headers=parties["cust"]["headers"],
        json={
            "title": "x",
            "description": "y",
            "amount": "10",
            "due_date": (get_utc_now() + timedelta(days=1)).isoformat(),
            "customer_id": parties["cust"]["id"],
        },
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_bill_with_past_due_date_is_rejected(async_client: AsyncClient, api_base: str, parties):
    resp = await async_client.post(
        f"{api_base}/bills",
        headers=parties["org"]["headers"],
        json={
            "title": "x",
            "description": "y",
            "amount": "10",
            "due_date": (get_utc_now() - timedelta(days=1)).isoformat(),
            "customer_id": parties["cust"]["id"],
        },
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_update_and_delete_draft(async_client: AsyncClient, api_base: str, parties):
    draft = await _create_bill(async_client, api_base, parties, send=False)
    headers = parties["org"]["headers"]

    resp = await async_client.patch(f"{api_base}/bills/{draft['id']}", headers=headers, json={"title": "Revised"})
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Revised"

    resp = await async_client.patch(f"{api_base}/bills/{draft['id']}", headers=headers, json={"status": "paid"})
    assert resp.status_code == 422

    resp = await async_client.delete(f"{api_base}/bills/{draft['id']}", headers=headers)
    assert resp.status_code == 204
    resp = await async_client.get(f"{api_base}/bills/{draft['id']}", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_full_financing_round(async_client: AsyncClient, api_base: str, parties):
    bill = await _create_bill(async_client, api_base, parties)
    org, cust, fin_a, fin_b = parties["org"], parties["cust"], parties["fin_a"], parties["fin_b"]

    resp = await async_client.get(f"{api_base}/bills/marketplace", headers=fin_a["headers"])
    assert resp.status_code == 200
    assert resp.json()["meta"]["total"] == 1

    resp = await _place_bid(async_client, api_base, fin_a, bill["id"], 50)
    assert resp.status_code == 201, resp.text
    low = resp.json()["data"]
    assert Decimal(low["bid_amount"]) == Decimal("5000")

    resp = await _place_bid(async_client, api_base, fin_b, bill["id"], 70)
    high = resp.json()["data"]

    resp = await async_client.get(f"{api_base}/bills/{bill['id']}/bids/highest", headers=org["headers"])
    assert resp.json()["data"]["id"] == high["id"]

    resp = await async_client.get(f"{api_base}/bills/{bill['id']}/bids", headers=fin_a["headers"])
    assert [b["id"] for b in resp.json()["data"]] == [low["id"]]

    resp = await async_client.post(f"{api_base}/bids/{high['id']}/accept", headers=org["headers"])
    assert resp.status_code == 200, resp.text
    result = resp.json()["data"]
    assert result["bid"]["status"] == "accepted"
    assert result["bill"]["status"] == "financed"
    assert result["bill"]["financer_id"] == fin_b["id"]
    assert Decimal(result["bill"]["financed_amount"]) == Decimal("7000")

    resp = await async_client.get(f"{api_base}/bids/{low['id']}", headers=fin_a["headers"])
    assert resp.json()["data"]["status"] == "rejected"

    resp = await async_client.post(f"{api_base}/bids/{low['id']}/accept", headers=org["headers"])
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ALREADY_FINANCED"

    resp = await async_client.get(f"{api_base}/users/me/stats", headers=fin_b["headers"])
    stats = resp.json()["data"]
    assert stats["total_bids_won"] == 1
    assert Decimal(stats["available_funds"]) == Decimal("3000")

    resp = await async_client.post(f"{api_base}/bills/{bill['id']}/pay", headers=cust["headers"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["status"] == "paid"

    resp = await async_client.get(f"{api_base}/users/me/stats", headers=fin_b["headers"])
    assert Decimal(resp.json()["data"]["total_returns"]) == Decimal("3000")


@pytest.mark.asyncio
async def test_duplicate_bid_and_insufficient_funds(async_client: AsyncClient, api_base: str, parties):
    bill = await _create_bill(async_client, api_base, parties)
    fin_a = parties["fin_a"]

    resp = await _place_bid(async_client, api_base, fin_a, bill["id"], 40)
    assert resp.status_code == 201
    resp = await _place_bid(async_client, api_base, fin_a, bill["id"], 45)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DUPLICATE_BID"

    other = await _create_bill(async_client, api_base, parties)
    resp = await _place_bid(async_client, api_base, fin_a, other["id"], 60)
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "INSUFFICIENT_FUNDS"
    assert Decimal(error["details"]["required"]) == Decimal("6000")


@pytest.mark.asyncio
async def test_percentage_out_of_range(async_client: AsyncClient, api_base: str, parties):
    bill = await _create_bill(async_client, api_base, parties)
    resp = await _place_bid(async_client, api_base, parties["fin_b"], bill["id"], 96)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_update_and_cancel_bid(async_client: AsyncClient, api_base: str, parties):
    bill = await _create_bill(async_client, api_base, parties)
    fin_a = parties["fin_a"]
    bid = (await _place_bid(async_client, api_base, fin_a, bill["id"], 20)).json()["data"]

    resp = await async_client.patch(
        f"{api_base}/bids/{bid['id']}", headers=fin_a["headers"], json={"financing_percentage": 30}
    )
    assert resp.status_code == 200, resp.text
    assert Decimal(resp.json()["data"]["bid_amount"]) == Decimal("3000")

    resp = await async_client.delete(f"{api_base}/bids/{bid['id']}", headers=parties["fin_b"]["headers"])
    assert resp.status_code == 403
    resp = await async_client.delete(f"{api_base}/bids/{bid['id']}", headers=fin_a["headers"])
    assert resp.status_code == 204

    resp = await async_client.get(f"{api_base}/bids", headers=fin_a["headers"])
    assert resp.json()["meta"]["total"] == 0


@pytest.mark.asyncio
async def test_listing_and_stats(async_client: AsyncClient, api_base: str, parties):
    await _create_bill(async_client, api_base, parties, amount="1000")
    await _create_bill(async_client, api_base, parties, amount="3000", send=False)

    resp = await async_client.get(
        f"{api_base}/bills", headers=parties["org"]["headers"], params={"page_size": 1}
    )
    body = resp.json()
    assert body["meta"] == {"page": 1, "page_size": 1, "total": 2, "total_pages": 2}
    assert len(body["data"]) == 1

    resp = await async_client.get(
        f"{api_base}/bills", headers=parties["cust"]["headers"], params={"status": "sent"}
    )
    assert resp.json()["meta"]["total"] == 1

    resp = await async_client.get(f"{api_base}/bills/stats", headers=parties["org"]["headers"])
    totals = resp.json()["data"]["total_stats"]
    assert totals["total_bills"] == 2
    assert Decimal(totals["total_amount"]) == Decimal("4000")

    resp = await async_client.get(f"{api_base}/bids/stats", headers=parties["fin_a"]["headers"])
    assert resp.json()["data"]["total_stats"]["total_bids"] == 0
    resp = await async_client.get(f"{api_base}/bids/stats", headers=parties["org"]["headers"])
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_marketplace_is_financer_only(async_client: AsyncClient, api_base: str, parties):
    resp = await async_client.get(f"{api_base}/bills/marketplace", headers=parties["org"]["headers"])
    assert resp.status_code == 403
