"""Explicit cancellation token shared by everything that can suspend."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Awaitable, Iterator, Optional, Sequence, TypeVar

from .exceptions import CancellationError

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationScope:
    """
    Cancellation token, created once per invocation and passed by reference.

    Cancelling is idempotent. Work started through ``run`` is cancelled
    cooperatively: the inner task sees ``asyncio.CancelledError`` at its next
    await point and is awaited until it has actually finished.

    Usage:
        scope = CancellationScope()
        with scope.bind_signals():
            cid = await scope.run(client.add(path))
    """

    def __init__(self):
        self._event: Optional[asyncio.Event] = None
        self._cancelled = False
        self._reason = "operation cancelled"

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if reason:
            self._reason = reason
        log.debug("Cancellation requested: %s", self._reason)
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Suspend until the scope is cancelled."""
        await self._get_event().wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the scope is cancelled first.

        Raises:
            CancellationError: the scope was cancelled before the work finished
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise CancellationError(self._reason)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # Cancelled from outside; don't leave the work running.
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise
        finally:
            waiter.cancel()

        if task.done() and not self._cancelled:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            raise CancellationError(self._reason) from exc
        raise CancellationError(self._reason)

    def _on_signal(self, signum: int) -> None:
        name = signal.Signals(signum).name
        if self._cancelled:
            log.debug("%s received again, already cancelling", name)
            return
        log.warning("%s received, cancelling upload", name)
        self.cancel(f"interrupted by {name}")

    @contextlib.contextmanager
    def bind_signals(self, signals: Sequence[int] = DEFAULT_SIGNALS) -> Iterator["CancellationScope"]:
        """
        Cancel this scope when one of ``signals`` arrives.

        Must be entered from inside a running event loop. Handlers are removed
        on exit so the default disposition applies again afterwards.
        """
        loop = asyncio.get_running_loop()
        loop_handlers = []
        previous_handlers = {}

        for sig in signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                loop_handlers.append(sig)
            except NotImplementedError:
                # Proactor loops (Windows) have no add_signal_handler.
                previous_handlers[sig] = signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(self._on_signal, signum),
                )

        try:
            yield self
        finally:
            for sig in loop_handlers:
                loop.remove_signal_handler(sig)
            for sig, handler in previous_handlers.items():
                signal.signal(sig, handler)
