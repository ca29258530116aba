"""Cancellable live subscriptions."""

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from socialgraph.exceptions import SubscriptionError
from socialgraph.logging import get_logger

_SNAPSHOT = "snapshot"
_ERROR = "error"
_CLOSED = "closed"


class Subscription:
    """
    Stream of snapshots for one store path.

    Consume it either as an async iterator or through listen(), which pumps
    snapshots into callbacks on a background task. cancel() detaches the
    subscription from the store; nothing is delivered after it returns, even
    a snapshot that was already queued.

    Example:
        sub = await store.subscribe("users/alice/following")
        async for snapshot in sub:
            print(snapshot.ids)
    """

    def __init__(
        self,
        target: str,
        on_cancel: Callable[["Subscription"], None],
        transform: Callable[[Any], Any] | None = None,
    ):
        self.target = target
        self._on_cancel = on_cancel
        self._transform = transform
        self._queue: asyncio.Queue = asyncio.Queue()
        self._cancelled = False
        self._task: asyncio.Task | None = None
        self._log = get_logger("subscription")

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def push(self, snapshot: Any) -> None:
        """Queue a snapshot for delivery."""
        if not self._cancelled:
            self._queue.put_nowait((_SNAPSHOT, snapshot))

    def fail(self, error: Exception) -> None:
        """Queue a delivery failure; the stream ends once it is consumed."""
        if not self._cancelled:
            self._queue.put_nowait((_ERROR, error))

    def cancel(self) -> None:
        """Stop delivery and release the store-side registration."""
        if self._cancelled:
            return
        self._cancelled = True
        self._on_cancel(self)
        self._queue.put_nowait((_CLOSED, None))
        task = self._task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    def __call__(self) -> None:
        self.cancel()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        if self._cancelled:
            raise StopAsyncIteration

        kind, payload = await self._queue.get()
        if self._cancelled or kind == _CLOSED:
            raise StopAsyncIteration

        if kind == _ERROR:
            self.cancel()
            raise SubscriptionError(f"Subscription to {self.target} failed: {payload}") from payload

        if self._transform is not None:
            try:
                payload = self._transform(payload)
                if inspect.isawaitable(payload):
                    payload = await payload
            except SubscriptionError:
                self.cancel()
                raise
            except Exception as exc:
                self.cancel()
                raise SubscriptionError(f"Subscription to {self.target} failed: {exc}") from exc

            # Cancelled while the transform was awaiting
            if self._cancelled:
                raise StopAsyncIteration

        return payload

    def listen(
        self,
        on_snapshot: Callable[[Any], Any],
        on_error: Callable[[SubscriptionError], Any] | None = None,
    ) -> "Subscription":
        """
        Deliver snapshots to callbacks until cancelled or failed.

        Args:
            on_snapshot: Called with each snapshot; may be a coroutine function
            on_error: Called once if delivery fails

        Returns:
            This subscription, whose cancel() stops delivery
        """
        if self._task is not None:
            raise RuntimeError("Subscription already has a listener")

        async def pump() -> None:
            try:
                async for snapshot in self:
                    result = on_snapshot(snapshot)
                    if inspect.isawaitable(result):
                        await result
            except SubscriptionError as exc:
                await self._report(exc, on_error)
            except Exception as exc:
                self._log.exception("subscription_callback_failed", path=self.target)
                self.cancel()
                error = SubscriptionError(f"Callback for {self.target} failed: {exc}")
                error.__cause__ = exc
                await self._report(error, on_error)

        self._task = asyncio.create_task(pump())
        return self

    async def _report(self, error: SubscriptionError, on_error) -> None:
        self._log.warning("subscription_failed", path=self.target, error=str(error))
        if on_error is not None:
            result = on_error(error)
            if inspect.isawaitable(result):
                await result

    async def wait_closed(self) -> None:
        """Wait for a listener task to finish."""
        if self._task is not None:
            await asyncio.wait({self._task})


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
