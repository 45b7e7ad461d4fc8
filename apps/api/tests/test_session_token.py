from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from config import settings
from models.user import User
from services import session_token
from services.errors import InvalidToken, NotFound


async def _make_user(session_maker, user_id="4f0c2a1e-5b6d-4e7f-8a9b-0c1d2e3f4a5b"):
    async with session_maker() as session:
        session.add(
            User(
                id=user_id,
                username="tokenuser",
                email="token@example.com",
                full_name="Token User",
                avatar="https://res.cloudinary.test/image/upload/a",
                password_hash="not-used",
            )
        )
        await session.commit()
    return user_id


def test_access_token_carries_identity_claims():
    user = User(id="u-1", username="alice", email="alice@example.com", full_name="Alice")
    payload = session_token.decode_access_token(session_token.create_access_token(user))

    assert payload["sub"] == "u-1"
    assert payload["type"] == "access"
    assert payload["username"] == "alice"
    assert payload["email"] == "alice@example.com"
    assert payload["full_name"] == "Alice"


def test_refresh_tokens_are_unique_per_issuance():
    first = session_token.create_refresh_token("u-1")
    second = session_token.create_refresh_token("u-1")

    assert first != second
    assert session_token.decode_refresh_token(first)["sub"] == "u-1"


def test_tokens_are_not_interchangeable():
    user = User(id="u-1", username="alice", email="alice@example.com", full_name="Alice")
    with pytest.raises(InvalidToken):
        session_token.decode_refresh_token(session_token.create_access_token(user))
    with pytest.raises(InvalidToken):
        session_token.decode_access_token(session_token.create_refresh_token("u-1"))


def test_expired_access_token_is_rejected():
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = jwt.encode(
        {"sub": "u-1", "type": "access", "iat": int(past.timestamp()), "exp": int(past.timestamp()) + 1},
        settings.ACCESS_TOKEN_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidToken):
        session_token.decode_access_token(token)


def test_token_without_subject_is_rejected():
    token = jwt.encode({"type": "access"}, settings.ACCESS_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(InvalidToken):
        session_token.decode_access_token(token)


@pytest.mark.asyncio
async def test_issue_token_pair_stores_refresh_token(session_maker):
    user_id = await _make_user(session_maker)

    async with session_maker() as session:
        pair = await session_token.issue_token_pair(session, user_id)

    async with session_maker() as session:
        stored = await session.get(User, user_id)
    assert stored.refresh_token == pair.refresh_token


@pytest.mark.asyncio
async def test_issue_token_pair_for_unknown_user(session_maker):
    async with session_maker() as session:
        with pytest.raises(NotFound):
            await session_token.issue_token_pair(session, "missing")


@pytest.mark.asyncio
async def test_rotation_only_accepts_latest_refresh_token(session_maker):
    user_id = await _make_user(session_maker)

    async with session_maker() as session:
        first = await session_token.issue_token_pair(session, user_id)
        second = await session_token.issue_token_pair(session, user_id)

        with pytest.raises(InvalidToken):
            await session_token.rotate_from_refresh_token(session, first.refresh_token)

        rotated = await session_token.rotate_from_refresh_token(session, second.refresh_token)
        assert rotated.refresh_token != second.refresh_token


@pytest.mark.asyncio
async def test_revoke_is_idempotent(session_maker):
    user_id = await _make_user(session_maker)

    async with session_maker() as session:
        pair = await session_token.issue_token_pair(session, user_id)
        await session_token.revoke(session, user_id)
        await session_token.revoke(session, user_id)

    async with session_maker() as session:
        stored = await session.get(User, user_id)
        assert stored.refresh_token is None
        with pytest.raises(InvalidToken):
            await session_token.rotate_from_refresh_token(session, pair.refresh_token)
