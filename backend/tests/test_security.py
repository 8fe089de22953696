"""
Unit tests for the session manager: token signing, verification and hashing.
"""
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from core.config import Settings
from core.exceptions import InvalidToken, TokenExpired
from core.security import SessionManager
from conftest import fake

ACCESS_SECRET = "unit-access-secret"
REFRESH_SECRET = "unit-refresh-secret"


@pytest.fixture
def manager() -> SessionManager:
    return SessionManager(ACCESS_SECRET, REFRESH_SECRET, bcrypt_rounds=4)


def _tamper(token: str, index: int) -> str:
    replacement = "A" if token[index] != "A" else "B"
    return token[:index] + replacement + token[index + 1:]


class TestAccessTokens:
    """Access token signing and verification."""

    def test_round_trip_returns_only_identity(self, manager: SessionManager):
        """Verification returns exactly userId and email."""
        for _ in range(5):
            payload = {"userId": fake.uuid4(), "email": fake.email()}
            assert manager.verify_access_token(manager.sign_access_token(payload)) == payload

    def test_extra_claims_are_not_signed(self, manager: SessionManager):
        token = manager.sign_access_token({"userId": "u1", "email": "a@b.ca", "role": "admin"})
        assert manager.verify_access_token(token) == {"userId": "u1", "email": "a@b.ca"}

    @pytest.mark.parametrize("segment", [0, 1, 2])
    def test_tampering_any_segment_fails(self, manager: SessionManager, segment: int):
        """Changing one character in header, payload or signature breaks verification."""
        token = manager.sign_access_token({"userId": "u1", "email": "a@b.ca"})
        parts = token.split(".")
        offset = sum(len(p) + 1 for p in parts[:segment]) + len(parts[segment]) // 2
        with pytest.raises(InvalidToken):
            manager.verify_access_token(_tamper(token, offset))

    def test_expired_token_raises_token_expired(self):
        manager = SessionManager(ACCESS_SECRET, REFRESH_SECRET, access_token_expire_minutes=-1, bcrypt_rounds=4)
        token = manager.sign_access_token({"userId": "u1", "email": "a@b.ca"})
        with pytest.raises(TokenExpired):
            manager.verify_access_token(token)

    def test_foreign_secret_is_rejected(self, manager: SessionManager):
        other = SessionManager("another-access", "another-refresh", bcrypt_rounds=4)
        token = other.sign_access_token({"userId": "u1", "email": "a@b.ca"})
        with pytest.raises(InvalidToken):
            manager.verify_access_token(token)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", None])
    def test_malformed_input_is_invalid(self, manager: SessionManager, garbage):
        with pytest.raises(InvalidToken):
            manager.verify_access_token(garbage)


class TestRefreshTokens:
    """Refresh token signing, verification and storage digests."""

    def test_round_trip(self, manager: SessionManager):
        token = manager.sign_refresh_token("user-42")
        assert manager.verify_refresh_token(token) == {"userId": "user-42", "type": "refresh"}

    def test_access_token_is_never_a_refresh_token(self, manager: SessionManager):
        access = manager.sign_access_token({"userId": "u1", "email": "a@b.ca"})
        with pytest.raises(InvalidToken):
            manager.verify_refresh_token(access)

    def test_wrong_type_under_refresh_secret_is_rejected(self, manager: SessionManager):
        now = datetime.now(timezone.utc)
        forged = jwt.encode(
            {"userId": "u1", "type": "access", "iat": now, "exp": now + timedelta(days=1)},
            REFRESH_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidToken):
            manager.verify_refresh_token(forged)

    def test_tampered_refresh_token_fails(self, manager: SessionManager):
        token = manager.sign_refresh_token("user-42")
        with pytest.raises(InvalidToken):
            manager.verify_refresh_token(_tamper(token, len(token) // 2))

    def test_consecutive_tokens_differ(self, manager: SessionManager):
        assert manager.sign_refresh_token("user-42") != manager.sign_refresh_token("user-42")

    def test_hash_is_deterministic_hex(self, manager: SessionManager):
        token = manager.sign_refresh_token("user-42")
        digest = manager.hash_refresh_token(token)
        assert digest == manager.hash_refresh_token(token)
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)

    def test_distinct_inputs_have_distinct_hashes(self, manager: SessionManager):
        tokens = {fake.sha256() for _ in range(50)}
        assert len({manager.hash_refresh_token(t) for t in tokens}) == len(tokens)

    def test_expires_at_within_seven_days(self, manager: SessionManager):
        before = datetime.now(timezone.utc)
        expires_at = manager.refresh_token_expires_at()
        after = datetime.now(timezone.utc)
        assert expires_at > before
        assert expires_at <= after + timedelta(days=7)
        assert expires_at - before <= timedelta(days=7, seconds=1)


class TestPasswords:
    """Password hashing runs off the event loop and never raises on mismatch."""

    @pytest.mark.asyncio
    async def test_hash_then_compare(self, manager: SessionManager):
        hashed = await manager.hash_password("s3cret-pass")
        assert await manager.compare_password("s3cret-pass", hashed) is True
        assert await manager.compare_password("s3cret-Pass", hashed) is False
        assert await manager.compare_password("", hashed) is False

    @pytest.mark.asyncio
    async def test_hashes_are_salted(self, manager: SessionManager):
        assert await manager.hash_password("same") != await manager.hash_password("same")

    @pytest.mark.asyncio
    async def test_default_cost_factor_is_twelve(self):
        manager = SessionManager(ACCESS_SECRET, REFRESH_SECRET)
        hashed = await manager.hash_password("cost-check")
        assert hashed.startswith("$2b$12$")

    @pytest.mark.asyncio
    async def test_missing_or_corrupt_hash_is_false(self, manager: SessionManager):
        assert await manager.compare_password("anything", None) is False
        assert await manager.compare_password("anything", "") is False
        assert await manager.compare_password("anything", "not-a-bcrypt-hash") is False


def test_identical_secrets_are_refused():
    with pytest.raises(ValueError):
        SessionManager("same-secret", "same-secret")


@pytest.mark.parametrize("access,refresh", [("same-secret", "same-secret"), ("", "refresh-secret"), ("access-secret", "")])
def test_settings_refuse_unusable_jwt_secrets(access, refresh):
    with pytest.raises(ValueError):
        Settings(JWT_SECRET=access, JWT_REFRESH_SECRET=refresh)


def test_settings_accept_distinct_jwt_secrets():
    conf = Settings(JWT_SECRET="access-secret", JWT_REFRESH_SECRET="refresh-secret")
    assert SessionManager.from_settings(conf) is not None
