"""Handles tracking outstanding asynchronous sections of a test."""

import asyncio
import logging

from litmus.emitter import Emitter, Handler
from litmus.errors import AsyncTimeoutError

log = logging.getLogger(__name__)


class AsyncHandle:
    """Token for one asynchronous section of a running test.

    The section is complete once ``finish`` is called. If that does not
    happen within ``timeout`` seconds the handle's completion fails with an
    ``AsyncTimeoutError`` naming the description. Only the first call to
    ``finish`` counts; later calls are ignored with a warning and fire a
    ``finish_repeated`` notification.

    Must be created while an event loop is running.
    """

    def __init__(self, description: str, timeout: float) -> None:
        self.description = description
        self.timeout = timeout
        self.timed_out = False
        self._emitter = Emitter(self)
        loop = asyncio.get_running_loop()
        self._completion: asyncio.Future[None] = loop.create_future()
        self._timer: asyncio.TimerHandle | None = loop.call_later(
            timeout, self._expire
        )

    def __repr__(self) -> str:
        return f"AsyncHandle({self.description!r}, timeout={self.timeout:g})"

    @property
    def finished(self) -> asyncio.Future[None]:
        """Future settled when the section finishes, fails or times out."""
        return self._completion

    @property
    def done(self) -> bool:
        return self._completion.done()

    def on(self, name: str, handler: Handler) -> None:
        self._emitter.on(name, handler)

    def finish(self) -> None:
        """Mark the asynchronous section as complete."""
        if self._completion.done():
            if self.timed_out:
                log.warning(
                    'async operation "%s" finished after it timed out',
                    self.description,
                )
            else:
                log.warning(
                    'async operation "%s" finished more than once', self.description
                )
            self._emitter.fire("finish_repeated", timed_out=self.timed_out)
            return
        self._cancel_timer()
        self._completion.set_result(None)
        self._emitter.fire("finish")

    resolve = finish

    def fail(self, error: BaseException) -> None:
        """Settle the section with an error instead of waiting for the timeout."""
        if self._completion.done():
            log.warning(
                'async operation "%s" failed after it completed: %s',
                self.description,
                error,
            )
            return
        self._cancel_timer()
        self._completion.set_exception(error)
        self._emitter.fire("fail", error=error)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._timer = None
        if self._completion.done():
            return
        self.timed_out = True
        log.warning(
            'async operation "%s" timed out after %gs', self.description, self.timeout
        )
        self._completion.set_exception(
            AsyncTimeoutError(self.description, self.timeout)
        )
        self._emitter.fire("timeout")
