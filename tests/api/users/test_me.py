from datetime import datetime, timedelta
from services.token_service import TokenService

ME_URL = "/api/v1/auth/me"


async def test_me_success(client, verified_user, signed_in):
    response = await client.get(ME_URL, headers={
        "Authorization": f"Bearer {signed_in['access_token']}"
    })

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == verified_user.id
    assert data["email"] == verified_user.email
    assert data["full_name"] == "Verified User"
    assert "password_hash" not in data
    assert "reset_token" not in data


async def test_me_without_token(client):
    response = await client.get(ME_URL)

    assert response.status_code == 401
    assert response.json()["detail"] == "No token provided"
    assert response.headers["WWW-Authenticate"] == "Bearer"


async def test_me_with_invalid_token(client):
    response = await client.get(ME_URL, headers={"Authorization": "Bearer not.a.jwt"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


async def test_me_with_expired_token(client, verified_user):
    token = TokenService.create_access_token(verified_user.id, expires_delta=timedelta(seconds=-1))

    response = await client.get(ME_URL, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


async def test_me_with_refresh_token(client, signed_in):
    response = await client.get(ME_URL, headers={
        "Authorization": f"Bearer {signed_in['refresh_token']}"
    })
    assert response.status_code == 401


async def test_me_deleted_user(client, verified_user, signed_in, session):
    session.delete(verified_user)
    session.commit()

    response = await client.get(ME_URL, headers={
        "Authorization": f"Bearer {signed_in['access_token']}"
    })

    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"


async def test_me_timestamps_are_utc(client, signed_in):
    response = await client.get(ME_URL, headers={
        "Authorization": f"Bearer {signed_in['access_token']}"
    })

    data = response.json()
    for field in ("email_verified_at", "created_at"):
        # SQLite returns naive values; the API always states the offset
        parsed = datetime.fromisoformat(data[field].replace("Z", "+00:00"))
        assert parsed.utcoffset() == timedelta(0)
