"""CQRS – CancellationToken: cooperative cancellation threaded through handlers."""
from __future__ import annotations

import asyncio
from types import TracebackType
from typing import Callable

from api_standards.kernel.errors import OperationCancelledError


class CancellationToken:
    """Cooperative cancellation signal.

    Dispatchers forward the token to every handler; handlers poll
    :attr:`is_cancellation_requested`, call
    :meth:`raise_if_cancellation_requested` between steps, or ``await``
    :meth:`wait` alongside their own I/O.  Nothing is interrupted forcibly.

    Tokens may be linked: cancelling any parent cancels the child::

        request_token = CancellationToken()
        handler_token = CancellationToken(request_token)
        request_token.cancel()
        assert handler_token.is_cancellation_requested

    A linked child stays registered on its parents until it is cancelled or
    :meth:`dispose` is called; use it as a context manager so a long-lived
    parent does not accumulate callbacks from finished operations::

        with CancellationToken(app_token) as token:
            await dispatcher.dispatch_command(command, token)

    Intended for use from a single event loop.
    """

    def __init__(self, *parents: "CancellationToken") -> None:
        self._cancelled = False
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []
        self._detach: list[Callable[[], None]] = []
        for parent in parents:
            self._detach.append(parent.register(self.cancel))

    @classmethod
    def none(cls) -> "CancellationToken":
        """Return a token nobody else holds, so it is never cancelled."""
        return cls()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._event.set()
        self.dispose()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def cancel_after(self, delay_seconds: float) -> asyncio.TimerHandle:
        """Schedule :meth:`cancel` on the running loop after *delay_seconds*."""
        return asyncio.get_running_loop().call_later(delay_seconds, self.cancel)

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* on cancellation (immediately if already cancelled).

        Returns a function that removes *callback* again; calling it after
        cancellation or more than once does nothing.
        """
        if self._cancelled:
            callback()
            return _noop
        self._callbacks.append(callback)

        def unregister() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return unregister

    def dispose(self) -> None:
        """Detach from every parent token; this token can still be cancelled directly."""
        detach, self._detach = self._detach, []
        for unregister in detach:
            unregister()

    def raise_if_cancellation_requested(self) -> None:
        if self._cancelled:
            raise OperationCancelledError()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()

    def __enter__(self) -> "CancellationToken":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"


def _noop() -> None:
    return None


__all__ = ["CancellationToken"]
