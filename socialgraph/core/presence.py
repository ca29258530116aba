"""Best-effort online/offline presence heartbeat."""

import asyncio
from collections.abc import Callable
from enum import Enum

from socialgraph.core.session import AuthSession, AuthUser
from socialgraph.logging import get_logger
from socialgraph.models.edge import user_path
from socialgraph.store.base import SERVER_TIMESTAMP, DocumentStore


class AppState(str, Enum):
    """Application lifecycle states reported by the host."""
    ACTIVE = "active"
    BACKGROUND = "background"
    INACTIVE = "inactive"


class PresenceState(str, Enum):
    """Per-session presence state."""
    UNAUTHENTICATED = "unauthenticated"
    ONLINE = "online"
    BACKGROUND = "background"


class PresenceHeartbeat:
    """
    Keeps isOnline/lastSeenAt roughly current for one signed-in user.

    Writes online on start, on every interval tick while in the foreground
    and on return to the foreground; writes offline on background and on
    stop. Presence is advisory: a failed write is logged and dropped, never
    raised and never retried.

    Example:
        heartbeat = PresenceHeartbeat(store)
        unbind = await heartbeat.bind(session)
        await heartbeat.on_app_state_change(AppState.BACKGROUND)
    """

    def __init__(self, store: DocumentStore, interval_seconds: float = 60.0):
        """
        Args:
            store: Document store holding profile documents
            interval_seconds: Heartbeat period while online
        """
        self._store = store
        self.interval_seconds = interval_seconds
        self._uid: str | None = None
        self._state = PresenceState.UNAUTHENTICATED
        self._task: asyncio.Task | None = None
        self._log = get_logger("presence")

    @property
    def state(self) -> PresenceState:
        return self._state

    @property
    def uid(self) -> str | None:
        return self._uid

    async def start(self, uid: str) -> None:
        """Enter the online state for uid and start ticking."""
        if self._uid == uid and self._state != PresenceState.UNAUTHENTICATED:
            return
        if self._state != PresenceState.UNAUTHENTICATED:
            await self.stop()

        self._uid = uid
        self._state = PresenceState.ONLINE
        self._log.info("presence_started", uid=uid)
        await self._write(online=True)
        self._task = asyncio.create_task(self._beat())

    async def on_app_state_change(self, app_state: AppState) -> None:
        """Forward an app lifecycle transition."""
        if self._state == PresenceState.UNAUTHENTICATED:
            return
        if app_state == AppState.ACTIVE:
            self._state = PresenceState.ONLINE
            await self._write(online=True)
        else:
            self._state = PresenceState.BACKGROUND
            await self._write(online=False)

    async def stop(self) -> None:
        """Stop ticking and write offline."""
        if self._state == PresenceState.UNAUTHENTICATED:
            return
        if self._task is not None:
            self._task.cancel()
            await asyncio.wait({self._task})
            self._task = None

        await self._write(online=False)
        self._log.info("presence_stopped", uid=self._uid)
        self._uid = None
        self._state = PresenceState.UNAUTHENTICATED

    async def bind(self, session: AuthSession) -> Callable[[], None]:
        """
        Follow a session: start on sign-in, stop on sign-out.

        Returns:
            Function that detaches from the session
        """

        async def on_session_change(user: AuthUser | None) -> None:
            if user is None:
                await self.stop()
            else:
                await self.start(user.uid)

        return await session.subscribe(on_session_change)

    async def _beat(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self._state == PresenceState.ONLINE:
                await self._write(online=True)

    async def _write(self, online: bool) -> None:
        if not self._uid:
            return
        try:
            await self._store.update(
                user_path(self._uid),
                {"isOnline": online, "lastSeenAt": SERVER_TIMESTAMP},
            )
        except Exception as exc:
            self._log.debug(
                "presence_write_failed", uid=self._uid, online=online, error=str(exc)
            )
