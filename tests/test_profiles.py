"""
Profile endpoint tests — profile lookups and following / unfollowing.
"""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_get_profile_anonymous(async_client: AsyncClient, signup):
    await signup("jake")
    resp = await async_client.get("/api/profiles/jake")
    assert resp.status_code == 200
    assert resp.json() == {
        "profile": {"username": "jake", "bio": None, "image": None, "following": False}
    }


@pytest.mark.asyncio
async def test_get_profile_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/profiles/ghost")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_follow_and_unfollow(async_client: AsyncClient, signup):
    jake = await signup("jake")
    await signup("anna")

    resp = await async_client.post("/api/profiles/anna/follow", headers=jake["headers"])
    assert resp.status_code == 200
    assert resp.json()["profile"]["following"] is True

    seen_by_jake = await async_client.get("/api/profiles/anna", headers=jake["headers"])
    assert seen_by_jake.json()["profile"]["following"] is True
    anonymous = await async_client.get("/api/profiles/anna")
    assert anonymous.json()["profile"]["following"] is False

    resp = await async_client.delete("/api/profiles/anna/follow", headers=jake["headers"])
    assert resp.status_code == 200
    assert resp.json()["profile"]["following"] is False


@pytest.mark.asyncio
async def test_following_is_directed(async_client: AsyncClient, signup):
    jake = await signup("jake")
    anna = await signup("anna")
    await async_client.post("/api/profiles/anna/follow", headers=jake["headers"])

    resp = await async_client.get("/api/profiles/jake", headers=anna["headers"])
    assert resp.json()["profile"]["following"] is False


@pytest.mark.asyncio
async def test_follow_errors(async_client: AsyncClient, signup):
    jake = await signup("jake")
    await signup("anna")

    assert (await async_client.post("/api/profiles/ghost/follow", headers=jake["headers"])).status_code == 404
    assert (await async_client.post("/api/profiles/jake/follow", headers=jake["headers"])).status_code == 400

    await async_client.post("/api/profiles/anna/follow", headers=jake["headers"])
    dup = await async_client.post("/api/profiles/anna/follow", headers=jake["headers"])
    assert dup.status_code == 400
    assert "already following" in dup.json()["detail"]


@pytest.mark.asyncio
async def test_unfollow_errors(async_client: AsyncClient, signup):
    jake = await signup("jake")
    await signup("anna")

    assert (await async_client.delete("/api/profiles/ghost/follow", headers=jake["headers"])).status_code == 404
    assert (await async_client.delete("/api/profiles/jake/follow", headers=jake["headers"])).status_code == 400
    assert (await async_client.delete("/api/profiles/anna/follow", headers=jake["headers"])).status_code == 400


@pytest.mark.asyncio
async def test_follow_requires_auth(async_client: AsyncClient, signup):
    await signup("anna")
    resp = await async_client.post("/api/profiles/anna/follow")
    assert resp.status_code == 401
