"""
Token lifecycle tests — record issuance, validity rules, access-token
authentication, refresh rotation and logout revocation.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidCredentialsError
from app.models import AccessToken, RefreshToken, User
from app.security import decode_token
from app.services.token_service import TokenLifecycleManager, is_valid

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


async def _create_user(db: AsyncSession, username: str = "tokenuser") -> User:
    user = User(username=username, email=f"{username}@example.com", password_hash="x")
    db.add(user)
    await db.flush()
    return user


# ---------------------------------------------------------------------------
# is_valid
# ---------------------------------------------------------------------------

def test_expired_token_is_invalid_even_if_not_revoked():
    record = AccessToken(user_id=1, is_revoked=False, expires_at=NOW - timedelta(seconds=1))
    assert is_valid(record, NOW) is False


def test_revoked_token_is_invalid_even_if_unexpired():
    record = RefreshToken(access_token_id=1, is_revoked=True, expires_at=NOW + timedelta(days=1))
    assert is_valid(record, NOW) is False


def test_token_valid_until_expiry_instant():
    record = AccessToken(user_id=1, is_revoked=False, expires_at=NOW + timedelta(minutes=5))
    assert is_valid(record, NOW) is True
    assert is_valid(record, NOW + timedelta(minutes=5)) is False


def test_naive_expiry_treated_as_utc():
    record = AccessToken(user_id=1, is_revoked=False, expires_at=datetime(2026, 1, 1, 12, 30))
    assert is_valid(record, NOW) is True


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_issue_applies_independent_lifetimes(db_session: AsyncSession):
    manager = TokenLifecycleManager(
        db_session,
        access_lifetime=timedelta(minutes=10),
        refresh_lifetime=timedelta(days=3),
    )
    access = await manager.issue_access_token(42, now=NOW)
    refresh = await manager.issue_refresh_token(access.id, now=NOW)

    assert access.id is not None
    assert access.user_id == 42
    assert access.expires_at == NOW + timedelta(minutes=10)
    assert access.is_revoked is False
    assert refresh.access_token_id == access.id
    assert refresh.expires_at == NOW + timedelta(days=3)


@pytest.mark.asyncio
async def test_token_pair_is_linked_and_signed(db_session: AsyncSession):
    user = await _create_user(db_session)
    pair = await TokenLifecycleManager(db_session).issue_token_pair(user)

    assert pair.refresh_record.access_token_id == pair.access_record.id

    access_claims = decode_token(pair.access_token, "access")
    assert access_claims["sub"] == str(user.id)
    assert access_claims["jti"] == str(pair.access_record.id)
    assert access_claims["username"] == user.username
    assert access_claims["email"] == user.email

    refresh_claims = decode_token(pair.refresh_token, "refresh")
    assert refresh_claims["jti"] == str(pair.refresh_record.id)


@pytest.mark.asyncio
async def test_refresh_token_cannot_be_used_as_access_token(db_session: AsyncSession):
    user = await _create_user(db_session)
    manager = TokenLifecycleManager(db_session)
    pair = await manager.issue_token_pair(user)
    with pytest.raises(InvalidCredentialsError):
        await manager.authenticate_access_token(pair.refresh_token)


# ---------------------------------------------------------------------------
# Authentication / revocation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_authenticate_access_token(db_session: AsyncSession):
    user = await _create_user(db_session)
    manager = TokenLifecycleManager(db_session)
    pair = await manager.issue_token_pair(user)

    user_id, token_id = await manager.authenticate_access_token(pair.access_token)
    assert user_id == user.id
    assert token_id == pair.access_record.id


@pytest.mark.asyncio
async def test_authenticate_rejects_garbage(db_session: AsyncSession):
    with pytest.raises(InvalidCredentialsError):
        await TokenLifecycleManager(db_session).authenticate_access_token("not-a-jwt")


@pytest.mark.asyncio
async def test_authenticate_rejects_expired_token(db_session: AsyncSession):
    user = await _create_user(db_session)
    manager = TokenLifecycleManager(db_session, access_lifetime=timedelta(seconds=-1))
    pair = await manager.issue_token_pair(user)
    with pytest.raises(InvalidCredentialsError):
        await manager.authenticate_access_token(pair.access_token)


@pytest.mark.asyncio
async def test_revoke_access_token_revokes_linked_refresh(db_session: AsyncSession):
    user = await _create_user(db_session)
    manager = TokenLifecycleManager(db_session)
    pair = await manager.issue_token_pair(user)

    await manager.revoke_access_token(pair.access_record.id)

    assert pair.access_record.is_revoked is True
    assert pair.refresh_record.is_revoked is True
    with pytest.raises(InvalidCredentialsError):
        await manager.authenticate_access_token(pair.access_token)
    with pytest.raises(InvalidCredentialsError):
        await manager.rotate(pair.refresh_token)


@pytest.mark.asyncio
async def test_rotate_issues_new_pair_and_revokes_old(db_session: AsyncSession):
    user = await _create_user(db_session)
    manager = TokenLifecycleManager(db_session)
    old = await manager.issue_token_pair(user)

    rotated_user, new = await manager.rotate(old.refresh_token)

    assert rotated_user.id == user.id
    assert new.access_record.id != old.access_record.id
    assert new.refresh_record.access_token_id == new.access_record.id
    assert old.refresh_record.is_revoked is True
    assert old.access_record.is_revoked is True

    # A refresh token is single use.
    with pytest.raises(InvalidCredentialsError):
        await manager.rotate(old.refresh_token)
    await manager.authenticate_access_token(new.access_token)
