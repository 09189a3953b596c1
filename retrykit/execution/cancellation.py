import asyncio
import threading
from typing import Optional


class CancellationToken:
    """
    Cooperative cancellation signal for CallExecutor.run.

    The executor checks it before each attempt and waits on it during the
    pause between attempts; an attempt already in flight is not interrupted.
    Exposes the same ``is_set``/``wait`` interface as ``threading.Event``,
    so an existing event (e.g. a shutdown flag) can be passed instead.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


class AsyncCancellationToken:
    """
    asyncio counterpart of CancellationToken for AsyncCallExecutor.run.

    The underlying ``asyncio.Event`` is created on the first ``wait``, inside
    the running loop, so a token can be built before ``asyncio.run``.
    """

    def __init__(self):
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None

    def cancel(self):
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    def is_set(self) -> bool:
        return self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Suspend up to ``timeout`` seconds; True if cancelled meanwhile."""
        if self._cancelled:
            return True
        if self._event is None:
            self._event = asyncio.Event()
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True
