"""Explicit authentication session context."""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from socialgraph.logging import get_logger

SessionListener = Callable[["AuthUser | None"], Any]


@dataclass(frozen=True)
class AuthUser:
    """Signed-in account as reported by the auth provider."""

    uid: str
    email: str | None = None
    email_verified: bool = False


class AuthSession:
    """
    Current-user handle passed explicitly to the components that need it.

    The auth provider itself lives elsewhere; it drives this object through
    sign_in()/sign_out(), and refresh() re-reads its state through the
    optional refresher callable.
    """

    def __init__(
        self,
        user: AuthUser | None = None,
        refresher: Callable[[AuthUser], Awaitable[AuthUser | None]] | None = None,
    ):
        self._user = user
        self._refresher = refresher
        self._listeners: list[SessionListener] = []
        self._log = get_logger("session")

    @property
    def user(self) -> AuthUser | None:
        return self._user

    @property
    def uid(self) -> str | None:
        return self._user.uid if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    async def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register for session changes; the listener first receives the current user.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)
        await self._call(listener, self._user)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_in(self, user: AuthUser) -> None:
        self._log.info("session_signed_in", uid=user.uid)
        self._user = user
        await self._notify()

    async def sign_out(self) -> None:
        if self._user is None:
            return
        self._log.info("session_signed_out", uid=self._user.uid)
        self._user = None
        await self._notify()

    async def refresh(self) -> None:
        """Reload the current user, e.g. after email verification."""
        if self._user is None or self._refresher is None:
            return
        refreshed = await self._refresher(self._user)
        if refreshed != self._user:
            self._user = refreshed
            await self._notify()

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            await self._call(listener, self._user)

    @staticmethod
    async def _call(listener: SessionListener, user: AuthUser | None) -> None:
        result = listener(user)
        if inspect.isawaitable(result):
            await result
