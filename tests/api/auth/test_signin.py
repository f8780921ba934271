from conftest import TEST_PASSWORD
from models.users import User
from services.token_service import TokenService
from utils.hashing import get_password_hash

SIGNIN_URL = "/api/v1/auth/signin"


async def test_signin_success(client, verified_user, session):
    response = await client.post(SIGNIN_URL, json={
        "email": verified_user.email,
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200
    data = response.json()["session"]
    assert data["user"]["id"] == verified_user.id
    assert data["user"]["email"] == verified_user.email
    assert TokenService.verify_access_token(data["access_token"]) == verified_user.id

    session.refresh(verified_user)
    assert verified_user.last_login_at is not None


async def test_signin_email_is_case_insensitive(client, verified_user):
    response = await client.post(SIGNIN_URL, json={
        "email": verified_user.email.upper(),
        "password": TEST_PASSWORD
    })
    assert response.status_code == 200


async def test_wrong_password_and_unknown_email_look_identical(client, verified_user):
    wrong_password = await client.post(SIGNIN_URL, json={
        "email": verified_user.email,
        "password": "WrongPassword123!"
    })
    unknown_email = await client.post(SIGNIN_URL, json={
        "email": "nonexistent@example.com",
        "password": "WrongPassword123!"
    })

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.content == unknown_email.content
    assert wrong_password.json()["detail"] == "Invalid email or password"


async def test_unverified_user_can_sign_in(client, session):
    session.add(User(
        email="unverified@example.com",
        password_hash=get_password_hash(TEST_PASSWORD)
    ))
    session.commit()

    response = await client.post(SIGNIN_URL, json={
        "email": "unverified@example.com",
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200
    assert response.json()["session"]["user"]["email_verified_at"] is None


async def test_oauth_only_account_rejects_password(client, session):
    session.add(User(email="google-only@example.com", provider="google", provider_id="g-1"))
    session.commit()

    response = await client.post(SIGNIN_URL, json={
        "email": "google-only@example.com",
        "password": "anything-at-all"
    })

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


async def test_signin_missing_password(client):
    response = await client.post(SIGNIN_URL, json={"email": "someone@example.com"})
    assert response.status_code == 400


async def test_each_signin_is_a_separate_session(client, verified_user):
    first = await client.post(SIGNIN_URL, json={"email": verified_user.email, "password": TEST_PASSWORD})
    second = await client.post(SIGNIN_URL, json={"email": verified_user.email, "password": TEST_PASSWORD})

    assert first.json()["session"]["refresh_token"] != second.json()["session"]["refresh_token"]
