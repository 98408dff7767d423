"""
Unit Tests for the Account Service and the local identity provider
Tests for docshare/services/accounts.py and docshare/identity/provider.py
"""

import pytest

from docshare.core.exceptions import (
    AuthenticationException,
    ConflictException,
    ValidationException,
)


@pytest.fixture
def accounts(backend):
    return backend.services.accounts


@pytest.mark.unit
class TestRegisterAndLogin:

    @pytest.mark.asyncio
    async def test_register_mirrors_profile(self, accounts, admin_store):
        user_id = await accounts.register("new@example.com", "secret123", "New User")

        user = await admin_store.get_user(user_id)
        assert user.email == "new@example.com"
        assert user.full_name == "New User"

    @pytest.mark.asyncio
    async def test_blank_full_name_rejected_before_sign_up(self, backend, accounts, admin_store):
        with pytest.raises(ValidationException):
            await accounts.register("blank@example.com", "secret123", "   ")

        with pytest.raises(AuthenticationException):
            await backend.identity.sign_in("blank@example.com", "secret123")
        assert await admin_store.get_user_by_email("blank@example.com") is None

    @pytest.mark.asyncio
    async def test_full_name_is_trimmed(self, accounts, admin_store):
        user_id = await accounts.register("trim@example.com", "secret123", "  Trim Me  ")
        assert (await admin_store.get_user(user_id)).full_name == "Trim Me"

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, accounts):
        await accounts.register("dup@example.com", "secret123", "First")

        with pytest.raises(ConflictException):
            await accounts.register("DUP@example.com", "secret456", "Second")

    @pytest.mark.asyncio
    async def test_login_returns_profile_and_session(self, accounts):
        user_id = await accounts.register("login@example.com", "secret123", "Login User")

        user, session = await accounts.login("login@example.com", "secret123")

        assert user.id == user_id
        assert session.token_type == "Bearer"
        assert session.access_token != session.refresh_token

    @pytest.mark.asyncio
    async def test_wrong_password_rejected(self, accounts):
        await accounts.register("pw@example.com", "secret123", "Pw User")

        with pytest.raises(AuthenticationException) as exc_info:
            await accounts.login("pw@example.com", "wrong-password")
        assert exc_info.value.message == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_unknown_email_rejected(self, accounts):
        with pytest.raises(AuthenticationException):
            await accounts.login("ghost@example.com", "secret123")


@pytest.mark.unit
class TestAuthenticate:

    @pytest.mark.asyncio
    async def test_access_token_resolves_user(self, accounts):
        user_id = await accounts.register("auth@example.com", "secret123", "Auth User")
        _, session = await accounts.login("auth@example.com", "secret123")

        user = await accounts.authenticate(session.access_token)
        assert user.id == user_id

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_an_access_token(self, accounts):
        await accounts.register("r@example.com", "secret123", "R")
        _, session = await accounts.login("r@example.com", "secret123")

        with pytest.raises(AuthenticationException):
            await accounts.authenticate(session.refresh_token)

    @pytest.mark.asyncio
    async def test_missing_profile_is_recreated(self, backend, accounts, admin_store):
        identity = await backend.identity.sign_up("orphan@example.com", "secret123", "Orphan")
        _, session = await backend.identity.sign_in("orphan@example.com", "secret123")
        assert await admin_store.get_user(identity.id) is None

        user = await accounts.authenticate(session.access_token)

        assert user.id == identity.id
        assert user.full_name == "Orphan"
        assert await admin_store.get_user(identity.id) is not None

    @pytest.mark.asyncio
    async def test_refresh_issues_new_session(self, accounts):
        await accounts.register("ref@example.com", "secret123", "Ref")
        _, session = await accounts.login("ref@example.com", "secret123")

        user, new_session = await accounts.refresh(session.refresh_token)

        assert user.email == "ref@example.com"
        assert new_session.access_token != session.access_token


@pytest.mark.unit
class TestProfile:

    @pytest.mark.asyncio
    async def test_update_profile(self, accounts):
        user_id = await accounts.register("p@example.com", "secret123", "Before")

        user = await accounts.update_profile(user_id, "  After  ")

        assert user.full_name == "After"
        assert (await accounts.get_profile(user_id)).full_name == "After"

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, accounts):
        user_id = await accounts.register("b@example.com", "secret123", "Name")

        with pytest.raises(ValidationException):
            await accounts.update_profile(user_id, "   ")
