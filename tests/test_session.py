"""Tests for the auth session context."""

import pytest

from socialgraph.core.session import AuthSession, AuthUser


class TestAuthSession:
    """Test session state and listeners."""

    def test_signed_out_by_default(self):
        session = AuthSession()
        assert session.user is None
        assert session.uid is None
        assert not session.is_authenticated

    @pytest.mark.asyncio
    async def test_listener_gets_current_user_first(self):
        session = AuthSession(AuthUser(uid="A"))
        seen = []

        await session.subscribe(seen.append)

        assert seen == [AuthUser(uid="A")]

    @pytest.mark.asyncio
    async def test_sign_in_and_out_notify(self):
        session = AuthSession()
        seen = []
        await session.subscribe(seen.append)

        await session.sign_in(AuthUser(uid="A", email="a@example.com"))
        await session.sign_out()

        assert [user.uid if user else None for user in seen] == [None, "A", None]

    @pytest.mark.asyncio
    async def test_sign_out_when_signed_out_is_silent(self):
        session = AuthSession()
        seen = []
        await session.subscribe(seen.append)

        await session.sign_out()

        assert seen == [None]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        session = AuthSession()
        seen = []
        unsubscribe = await session.subscribe(seen.append)

        unsubscribe()
        await session.sign_in(AuthUser(uid="A"))

        assert seen == [None]

    @pytest.mark.asyncio
    async def test_async_listener(self):
        session = AuthSession()
        seen = []

        async def listener(user):
            seen.append(user)

        await session.subscribe(listener)
        await session.sign_in(AuthUser(uid="A"))

        assert seen == [None, AuthUser(uid="A")]

    @pytest.mark.asyncio
    async def test_refresh_notifies_on_change(self):
        async def refresher(user):
            return AuthUser(uid=user.uid, email=user.email, email_verified=True)

        session = AuthSession(AuthUser(uid="A", email="a@example.com"), refresher=refresher)
        seen = []
        await session.subscribe(seen.append)

        await session.refresh()
        await session.refresh()

        assert len(seen) == 2
        assert session.user.email_verified is True

    @pytest.mark.asyncio
    async def test_refresh_without_refresher_is_noop(self):
        session = AuthSession(AuthUser(uid="A"))
        await session.refresh()
        assert session.uid == "A"
