"""Integration tests: registration, login and user endpoints."""

import pytest
from httpx import AsyncClient

from tests.conftest import PASSWORD


@pytest.mark.asyncio
async def test_register_and_login(async_client: AsyncClient, api_base: str, register_actor):
    org = await register_actor("organization", "Acme")
    resp = await async_client.get(f"{api_base}/users/me", headers=org["headers"])
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["role"] == "organization"
    assert data["email"] == org["email"]


@pytest.mark.asyncio
async def test_register_duplicate_email(async_client: AsyncClient, api_base: str, register_actor):
    org = await register_actor("organization", "Acme")
    resp = await async_client.post(
        f"{api_base}/auth/register",
        json={"email": org["email"], "password": PASSWORD, "name": "Again"},
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient, api_base: str, register_actor):
    org = await register_actor("organization", "Acme")
    resp = await async_client.post(
        f"{api_base}/auth/login",
        json={"email": org["email"], "password": "WrongPassword123!"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_requires_authentication(async_client: AsyncClient, api_base: str):
    resp = await async_client.get(f"{api_base}/users/me")
    assert resp.status_code in (401, 403)
    resp = await async_client.get(
        f"{api_base}/users/me", headers={"Authorization": "Bearer not-a-token"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_financer_adds_funds(async_client: AsyncClient, api_base: str, register_actor):
    fin = await register_actor("financer", "Fiona")
    resp = await async_client.post(
        f"{api_base}/users/me/funds", headers=fin["headers"], json={"amount": "1500.25"}
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["available_funds"] == "1500.25"

    resp = await async_client.get(f"{api_base}/users/me/stats", headers=fin["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["available_funds"] == "1500.25"


@pytest.mark.asyncio
async def test_customer_cannot_add_funds(async_client: AsyncClient, api_base: str, register_actor):
    cust = await register_actor("customer", "Carol")
    resp = await async_client.post(
        f"{api_base}/users/me/funds", headers=cust["headers"], json={"amount": "10"}
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_customers_listing_is_organization_only(
    async_client: AsyncClient, api_base: str, register_actor
):
    org = await register_actor("organization", "Acme")
    cust = await register_actor("customer", "Carol")

    resp = await async_client.get(f"{api_base}/users/customers", headers=org["headers"])
    assert resp.status_code == 200
    assert [c["id"] for c in resp.json()["data"]] == [cust["id"]]

    resp = await async_client.get(f"{api_base}/users/customers", headers=cust["headers"])
    assert resp.status_code == 403
