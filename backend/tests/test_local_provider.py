"""
Tests for the local Argon2-backed identity provider.
"""

import pytest

from loginguard.auth.identity import IdentityErrorCode, IdentityProviderError
from loginguard.auth.local_provider import LocalIdentityProvider
from loginguard.auth.password import hash_password, needs_rehash, verify_password
from loginguard.db.repositories import create_user, get_user_by_id, set_user_disabled

PASSWORD = "correct-horse"


@pytest.fixture
def provider(session_factory, clock):
    return LocalIdentityProvider(session_factory, clock=clock)


@pytest.fixture
def user(session_factory):
    with session_factory() as db:
        return create_user(db, "Admin@Example.com", hash_password(PASSWORD))


class TestPasswordHashing:
    """Tests for the Argon2id helpers."""

    def test_hash_and_verify(self):
        hashed = hash_password(PASSWORD)
        assert hashed.startswith("$argon2id$")
        assert verify_password(PASSWORD, hashed) is True
        assert verify_password("other-password", hashed) is False

    def test_verify_rejects_malformed_hash(self):
        assert verify_password(PASSWORD, "not-a-hash") is False

    def test_fresh_hash_needs_no_rehash(self):
        assert needs_rehash(hash_password(PASSWORD)) is False


class TestSignIn:
    """Tests for sign_in."""

    @pytest.mark.asyncio
    async def test_success(self, provider, user, clock, session_factory):
        identity = await provider.sign_in("admin@example.com", PASSWORD)

        assert identity.uid == user.id
        assert identity.email == "admin@example.com"
        assert provider.current_identity == identity
        with session_factory() as db:
            assert get_user_by_id(db, user.id).last_login == clock.now

    @pytest.mark.asyncio
    async def test_email_lookup_is_case_insensitive(self, provider, user):
        identity = await provider.sign_in("ADMIN@example.COM", PASSWORD)
        assert identity.uid == user.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, provider, user):
        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.sign_in("admin@example.com", "wrong-password")
        assert exc_info.value.code is IdentityErrorCode.INVALID_CREDENTIAL
        assert provider.current_identity is None

    @pytest.mark.asyncio
    async def test_unknown_user_indistinguishable(self, provider):
        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.sign_in("nobody@example.com", PASSWORD)
        assert exc_info.value.code is IdentityErrorCode.INVALID_CREDENTIAL

    @pytest.mark.asyncio
    async def test_disabled_user(self, provider, user, session_factory):
        with session_factory() as db:
            set_user_disabled(db, user.id, True)

        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.sign_in("admin@example.com", PASSWORD)
        assert exc_info.value.code is IdentityErrorCode.USER_DISABLED

    @pytest.mark.asyncio
    async def test_disabled_user_with_wrong_password(self, provider, user, session_factory):
        with session_factory() as db:
            set_user_disabled(db, user.id, True)

        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.sign_in("admin@example.com", "wrong-password")
        assert exc_info.value.code is IdentityErrorCode.INVALID_CREDENTIAL

    @pytest.mark.asyncio
    async def test_store_failure_is_network_error(self, provider, engine, user):
        with engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE users")

        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.sign_in("admin@example.com", PASSWORD)
        assert exc_info.value.code is IdentityErrorCode.NETWORK_FAILURE


class TestAuthStateStream:
    """Tests for on_auth_state_changed notifications."""

    @pytest.mark.asyncio
    async def test_listener_sees_current_then_changes(self, provider, user):
        seen = []
        provider.on_auth_state_changed(seen.append)

        identity = await provider.sign_in("admin@example.com", PASSWORD)
        await provider.sign_out()

        assert seen == [None, identity, None]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self, provider, user):
        seen = []
        unsubscribe = provider.on_auth_state_changed(seen.append)
        unsubscribe()
        unsubscribe()

        await provider.sign_in("admin@example.com", PASSWORD)

        assert seen == [None]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_sign_in(self, provider, user):
        def broken(identity):
            raise RuntimeError("listener bug")

        seen = []
        provider.on_auth_state_changed(broken)
        provider.on_auth_state_changed(seen.append)

        identity = await provider.sign_in("admin@example.com", PASSWORD)

        assert seen[-1] == identity
