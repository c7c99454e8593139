"""Tests for ConnectionAuthenticator and JWTTokenVerifier."""

from datetime import timedelta

import pytest

from livecoach.auth.authenticator import ConnectionAuthenticator
from livecoach.auth.token_verifier import JWTTokenVerifier
from livecoach.exceptions import InvalidCredential, MissingCredential, UserInactive, UserNotFound
from livecoach.tests.fixtures.fakes import FakeTokenVerifier
from livecoach.tests.fixtures.tokens import create_access_token

SECRET = "unit-test-secret"


class TestConnectionAuthenticator:
    """authenticate() outcomes."""

    @pytest.mark.asyncio
    async def test_valid_credential(self, authenticator):
        user = await authenticator.authenticate("token-alice")

        assert user.user_id == "u-alice"
        assert user.profile.name == "Alice"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("credential", [None, "", "   "])
    async def test_missing_credential(self, authenticator, credential):
        with pytest.raises(MissingCredential):
            await authenticator.authenticate(credential)

    @pytest.mark.asyncio
    async def test_invalid_credential(self, authenticator):
        with pytest.raises(InvalidCredential):
            await authenticator.authenticate("forged")

    @pytest.mark.asyncio
    async def test_unknown_user(self, authenticator):
        with pytest.raises(UserNotFound):
            await authenticator.authenticate("token-ghost")

    @pytest.mark.asyncio
    async def test_inactive_user(self, authenticator):
        with pytest.raises(UserInactive) as exc_info:
            await authenticator.authenticate("token-gone")
        assert exc_info.value.error_type.value == "user_inactive"

    @pytest.mark.asyncio
    async def test_directory_failure_is_user_not_found(self, authenticator, users):
        users.fail = True
        with pytest.raises(UserNotFound):
            await authenticator.authenticate("token-alice")

    @pytest.mark.asyncio
    async def test_timeout_is_invalid_credential(self, users):
        slow = ConnectionAuthenticator(FakeTokenVerifier({"t": "u-alice"}, delay=0.5), users, timeout_seconds=0.05)

        with pytest.raises(InvalidCredential, match="timed out"):
            await slow.authenticate("t")

    @pytest.mark.asyncio
    async def test_failure_then_success_is_independent(self, authenticator):
        with pytest.raises(InvalidCredential):
            await authenticator.authenticate("forged")

        user = await authenticator.authenticate("token-bob")
        assert user.user_id == "u-bob"


class TestJWTTokenVerifier:
    """Signature, expiry and subject checks."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        verifier = JWTTokenVerifier(SECRET)
        token = create_access_token("u-alice", SECRET, role="client")

        verified = await verifier.verify(token)

        assert verified.user_id == "u-alice"
        assert verified.claims["role"] == "client"

    @pytest.mark.asyncio
    async def test_wrong_secret(self):
        token = create_access_token("u-alice", "other-secret")
        with pytest.raises(InvalidCredential):
            await JWTTokenVerifier(SECRET).verify(token)

    @pytest.mark.asyncio
    async def test_expired(self):
        token = create_access_token("u-alice", SECRET, expires_delta=timedelta(seconds=-10))
        with pytest.raises(InvalidCredential):
            await JWTTokenVerifier(SECRET).verify(token)

    @pytest.mark.asyncio
    async def test_garbage(self):
        with pytest.raises(InvalidCredential):
            await JWTTokenVerifier(SECRET).verify("not.a.jwt")

    @pytest.mark.asyncio
    async def test_legacy_user_id_claim(self):
        from jose import jwt

        token = jwt.encode({"userId": "u-legacy"}, SECRET, algorithm="HS256")

        verified = await JWTTokenVerifier(SECRET).verify(token)

        assert verified.user_id == "u-legacy"

    @pytest.mark.asyncio
    async def test_no_subject(self):
        from jose import jwt

        token = jwt.encode({"role": "client"}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidCredential):
            await JWTTokenVerifier(SECRET).verify(token)

    @pytest.mark.asyncio
    async def test_audience_enforced_when_configured(self):
        verifier = JWTTokenVerifier(SECRET, audience="livecoach")
        good = create_access_token("u-alice", SECRET, aud="livecoach")
        bad = create_access_token("u-alice", SECRET, aud="elsewhere")

        assert (await verifier.verify(good)).user_id == "u-alice"
        with pytest.raises(InvalidCredential):
            await verifier.verify(bad)
