from datetime import timedelta
from core.config import settings
from services.refresh_token_service import RefreshTokenService
from services.token_service import TokenService

REFRESH_URL = "/api/v1/auth/refresh"


async def test_refresh_success(client, verified_user, signed_in):
    response = await client.post(REFRESH_URL, json={"refresh_token": signed_in["refresh_token"]})

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert "refresh_token" not in data
    assert TokenService.verify_access_token(data["access_token"]) == verified_user.id

    # The new access token opens protected routes
    response = await client.get("/api/v1/auth/me", headers={
        "Authorization": f"Bearer {data['access_token']}"
    })
    assert response.status_code == 200


async def test_refresh_token_reusable_without_rotation(client, signed_in):
    for _ in range(3):
        response = await client.post(REFRESH_URL, json={"refresh_token": signed_in["refresh_token"]})
        assert response.status_code == 200


async def test_refresh_with_rotation(client, signed_in, monkeypatch):
    monkeypatch.setattr(settings, "ROTATE_REFRESH_TOKENS", True)
    old_token = signed_in["refresh_token"]

    response = await client.post(REFRESH_URL, json={"refresh_token": old_token})

    assert response.status_code == 200
    new_token = response.json()["refresh_token"]
    assert new_token and new_token != old_token

    # Old token is spent, new one works
    assert (await client.post(REFRESH_URL, json={"refresh_token": old_token})).status_code == 401
    assert (await client.post(REFRESH_URL, json={"refresh_token": new_token})).status_code == 200


async def test_refresh_missing_token(client):
    response = await client.post(REFRESH_URL, json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "Refresh token required"


async def test_refresh_garbage_token(client):
    response = await client.post(REFRESH_URL, json={"refresh_token": "not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired refresh token"


async def test_refresh_rejects_access_token(client, signed_in):
    response = await client.post(REFRESH_URL, json={"refresh_token": signed_in["access_token"]})
    assert response.status_code == 401


async def test_refresh_expired_token(client, verified_user, session):
    expired = RefreshTokenService.issue(verified_user.id, session, expires_delta=timedelta(seconds=-1))

    response = await client.post(REFRESH_URL, json={"refresh_token": expired})

    assert response.status_code == 401


async def test_refresh_after_signout(client, signed_in):
    await client.post("/api/v1/auth/signout", json={"refresh_token": signed_in["refresh_token"]})

    response = await client.post(REFRESH_URL, json={"refresh_token": signed_in["refresh_token"]})

    assert response.status_code == 401
