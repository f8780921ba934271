from datetime import timedelta
from models.users import User
from models.refresh_tokens import RefreshToken
from services.refresh_token_service import RefreshTokenService
from services.token_store import TokenStore, hash_token
from utils.clock import as_utc, utcnow
from utils.hashing import get_password_hash


def create_test_user(session, email="token_test@example.com"):
    user = User(
        email=email,
        full_name="Token Test",
        password_hash=get_password_hash("password123")
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def get_row(session, token):
    return session.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(token)).first()


def test_issue_stores_hashed_row(session):
    user = create_test_user(session)
    token = RefreshTokenService.issue(user.id, session)

    row = get_row(session, token)
    assert row is not None
    assert row.user_id == user.id
    assert row.revoked_at is None
    assert row.token_hash != token

    expected = utcnow() + timedelta(days=7)
    assert abs(as_utc(row.expires_at) - expected) < timedelta(minutes=1)


def test_issued_token_validates(session):
    user = create_test_user(session)
    token = RefreshTokenService.issue(user.id, session)

    assert RefreshTokenService.validate(token, session) == user.id


def test_each_issue_is_a_new_session(session):
    user = create_test_user(session)
    first = RefreshTokenService.issue(user.id, session)
    second = RefreshTokenService.issue(user.id, session)

    assert first != second
    assert session.query(RefreshToken).filter(RefreshToken.user_id == user.id).count() == 2


def test_revoked_expired_and_garbage_fail_the_same_way(session):
    user = create_test_user(session)

    revoked = RefreshTokenService.issue(user.id, session)
    RefreshTokenService.revoke(revoked, session)

    expired = RefreshTokenService.issue(user.id, session)
    row = get_row(session, expired)
    row.expires_at = utcnow() - timedelta(seconds=1)
    session.commit()

    # Well-formed and correctly signed, but never stored
    unknown = RefreshTokenService._encode(user.id, timedelta(days=1))

    outcomes = [
        RefreshTokenService.validate(token, session)
        for token in (revoked, expired, unknown, "invalid_token_format", "")
    ]
    assert outcomes == [None] * 5


def test_row_must_belong_to_token_subject(session):
    owner = create_test_user(session)
    other = create_test_user(session, email="other@example.com")
    token = RefreshTokenService.issue(owner.id, session)

    row = get_row(session, token)
    row.user_id = other.id
    session.commit()

    assert RefreshTokenService.validate(token, session) is None


def test_revoke_is_idempotent_and_keeps_first_timestamp(session):
    user = create_test_user(session)
    token = RefreshTokenService.issue(user.id, session)

    RefreshTokenService.revoke(token, session)
    first_revoked_at = get_row(session, token).revoked_at
    assert first_revoked_at is not None

    RefreshTokenService.revoke(token, session)
    session.expire_all()
    assert get_row(session, token).revoked_at == first_revoked_at


def test_revoke_unknown_token_is_noop(session):
    RefreshTokenService.revoke("never-issued", session)
    RefreshTokenService.revoke("", session)


def test_revoke_all(session):
    user = create_test_user(session)
    other = create_test_user(session, email="bystander@example.com")

    tokens = [RefreshTokenService.issue(user.id, session) for _ in range(3)]
    survivor = RefreshTokenService.issue(other.id, session)

    assert RefreshTokenService.revoke_all(user.id, session) == 3
    assert all(RefreshTokenService.validate(t, session) is None for t in tokens)
    assert RefreshTokenService.validate(survivor, session) == other.id

    # Nothing left to revoke
    assert RefreshTokenService.revoke_all(user.id, session) == 0


def test_rotate_swaps_tokens_once(session):
    user = create_test_user(session)
    token = RefreshTokenService.issue(user.id, session)

    rotated = RefreshTokenService.rotate(token, session)
    assert rotated is not None
    user_id, new_token = rotated
    assert user_id == user.id
    assert new_token != token

    assert RefreshTokenService.validate(token, session) is None
    assert RefreshTokenService.validate(new_token, session) == user.id

    # The old token cannot be rotated a second time
    assert RefreshTokenService.rotate(token, session) is None


def test_claim_loses_when_already_revoked(session):
    user = create_test_user(session)
    token = RefreshTokenService.issue(user.id, session)

    assert TokenStore.mark_revoked(session, token, only_if_active=True) is True
    assert TokenStore.mark_revoked(session, token, only_if_active=True) is False


def test_user_deletion_cascades(session):
    user = create_test_user(session)
    RefreshTokenService.issue(user.id, session)

    session.delete(user)
    session.commit()

    assert session.query(RefreshToken).count() == 0
