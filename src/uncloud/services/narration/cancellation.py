"""Cooperative cancellation for narration tasks."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from uncloud.errors import AbortedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationSource:
    """
    A cancellable handle shared between an engine, its backends, and the arbiter.

    Cancel callbacks run synchronously inside :meth:`cancel`, so a backend
    that registers ``output.stop`` is silenced before the canceller returns.
    Child sources are cancelled with their parent but can also be cancelled
    on their own (used to interrupt a single utterance on pause).
    """

    def __init__(self, name: str = "narration"):
        self.name = name
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._children: List["CancellationSource"] = []
        self.reason: Optional[str] = None

    def __repr__(self) -> str:
        return f"CancellationSource({self.name!r}, cancelled={self.cancelled})"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "aborted") -> None:
        """Cancel this source and its children; repeat calls are no-ops."""
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                logger.error(f"Cancel callback failed for {self.name}: {exc}", exc_info=True)
        children, self._children = self._children, []
        for child in children:
            child.cancel(reason)

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register ``callback`` to run on cancellation.

        Runs immediately if already cancelled. Returns a function that
        unregisters the callback.
        """
        if self.cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def child(self, name: Optional[str] = None) -> "CancellationSource":
        """Create a source that is cancelled whenever this one is."""
        child = CancellationSource(name or f"{self.name}/child")
        if self.cancelled:
            child.cancel(self.reason or "aborted")
        else:
            self._children.append(child)
        return child

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise AbortedError(f"{self.name} {self.reason or 'aborted'}")

    async def wait(self) -> None:
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless this source is cancelled first.

        On cancellation the pending work is cancelled and AbortedError is
        raised.
        """
        self.raise_if_cancelled()
        work: "asyncio.Future[Any]" = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        raise AbortedError(f"{self.name} {self.reason or 'aborted'}")

    async def sleep(self, seconds: float) -> None:
        """Sleep that ends early with AbortedError on cancellation."""
        if seconds <= 0:
            self.raise_if_cancelled()
            return
        await self.run(asyncio.sleep(seconds))


__all__ = ["CancellationSource"]
