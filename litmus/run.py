"""Execution state machine for a single test."""

import asyncio
import inspect
import logging
import re
import traceback
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING

from litmus.assertions import BUILTIN_PREDICATES, Predicate
from litmus.config import LitmusConfig
from litmus.emitter import Emitter, Handler, Notification
from litmus.errors import (
    PlanMismatchError,
    RunFinishedError,
    RunNotStartedError,
    TestBodyError,
    UsageError,
)
from litmus.handle import AsyncHandle
from litmus.models.events import (
    Assertion,
    Diagnostic,
    EventLog,
    SkippedAssertions,
)

if TYPE_CHECKING:
    from litmus.models.declaration import Test

log = logging.getLogger(__name__)

type AsyncCallback = Callable[[AsyncHandle], object]


class RunState(Enum):
    """Lifecycle of a run. Transitions are strictly linear."""

    NOT_STARTED = "not-started"
    RUNNING = "running"
    FINISHED = "finished"


class TestRun:
    """The result of running a test, and the context the test runs in.

    The test's behavior is called with the run as its only argument and
    records assertions through the run's methods. The run finishes once the
    behavior has returned and every async handle it opened has settled;
    ``passed`` and ``failed`` are ``None`` until then.
    """

    __test__ = False

    def __init__(
        self,
        test: "Test",
        *,
        config: LitmusConfig | None = None,
        predicates: Mapping[str, Predicate] = BUILTIN_PREDICATES,
    ) -> None:
        self.test = test
        self.config = config or LitmusConfig()
        self.state = RunState.NOT_STARTED
        self.events = EventLog()
        self.async_handles: list[AsyncHandle] = []
        self.exceptions: list[BaseException] = []
        self.planned: int | None = None
        self.passed: bool | None = None
        self.failed: bool | None = None
        self._failing = False
        self._predicates = predicates
        self._emitter = Emitter(self)
        self._finished: asyncio.Future[TestRun] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    def __repr__(self) -> str:
        return f"TestRun({self.test.name!r}, state={self.state.value})"

    @property
    def finished(self) -> "asyncio.Future[TestRun]":
        """Future resolved with this run once it has finished."""
        if self._finished is None:
            raise UsageError(f'test run for "{self.test.name}" has not been started')
        return self._finished

    def on(self, name: str, handler: Handler) -> None:
        """Subscribe to ``start``, ``plan``, ``fail`` or ``finish``."""
        self._emitter.on(name, handler)

    def start(self) -> None:
        """Run the test's behavior and schedule the run's completion.

        Errors raised by the behavior are recorded, never propagated. Must be
        called from a running event loop.
        """
        if self.state is not RunState.NOT_STARTED:
            raise UsageError(f'test run for "{self.test.name}" already started')
        loop = asyncio.get_running_loop()
        self._finished = loop.create_future()
        self.state = RunState.RUNNING
        log.debug('Starting test "%s"', self.test.name)
        self._emitter.fire("start")

        try:
            result = self.test.behavior(self)
        except Exception as exc:
            self.add_exception(self._wrap_error(exc))
        else:
            if inspect.isawaitable(result):
                handle = self.async_(f"{self.test.name} (coroutine)")
                self._spawn(self._await_section(handle, result, finish=True))

        self._spawn(self._complete())

    async def _complete(self) -> None:
        while pending := [h.finished for h in self.async_handles if not h.done]:
            await asyncio.wait(pending)

        for handle in self.async_handles:
            if (error := handle.finished.exception()) is not None:
                self.add_exception(error)

        if self.planned is not None and not self.planned_assertions_ran():
            ran = self.assertions_skipped() + len(self.assertions())
            self.add_exception(PlanMismatchError(self.planned, ran))

        self.failed = self._failing
        self.passed = not self._failing
        self.state = RunState.FINISHED
        log.debug(
            'Finished test "%s": %s (%d passed, %d failed, %d exception(s))',
            self.test.name,
            "PASS" if self.passed else "FAIL",
            self.passes(),
            self.fails(),
            len(self.exceptions),
        )
        self.finished.set_result(self)
        self._emitter.fire("finish")

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _wrap_error(self, exc: Exception) -> TestBodyError:
        location = ""
        if frames := traceback.extract_tb(exc.__traceback__):
            location = f" at {frames[-1].filename} line {frames[-1].lineno}"
        error = TestBodyError(
            f'error in "{self.test.name}" test - {str(exc) or repr(exc)}{location}'
        )
        error.__cause__ = exc
        return error

    def _check_running(self, what: str) -> None:
        if self.state is RunState.NOT_STARTED:
            raise RunNotStartedError(what)
        if self.state is RunState.FINISHED:
            raise RunFinishedError(what)

    def _fail_run(self, reason: object) -> None:
        self._failing = True
        self._emitter.fire("fail", reason=reason)

    def add_exception(self, exception: BaseException) -> None:
        """Record an error caught while running the test."""
        self._check_running(f"exception ({exception})")
        self.exceptions.append(exception)
        self._fail_run(exception)

    def plan(self, assertions: int) -> None:
        """Declare how many assertions (run plus skipped) the test will make."""
        self._check_running("plan")
        if isinstance(assertions, bool) or not isinstance(assertions, int):
            raise TypeError(
                f"plan expects an integer ({type(assertions).__name__} found)"
            )
        if assertions < 0:
            raise ValueError(f"plan expects a non-negative count ({assertions})")
        self._emitter.fire("plan", assertions=assertions)
        self.planned = assertions

    def diag(self, text: str) -> None:
        """Add a diagnostic message to the run."""
        self._check_running("diagnostic")
        self.events.append(Diagnostic(text=str(text)))

    def skipif(
        self,
        cond: object,
        reason: str,
        skipped: int,
        body: Callable[["TestRun"], object],
    ) -> None:
        """Skip ``skipped`` assertions when ``cond`` holds, otherwise run ``body``.

        ``skipped`` must match the number of assertions ``body`` makes.
        """
        self._check_running("skipped assertions")
        if cond:
            self.events.append(SkippedAssertions(reason=reason, skipped=skipped))
        else:
            body(self)

    def async_(
        self,
        description: str,
        callback: AsyncCallback | float | None = None,
        *,
        timeout: float | None = None,
    ) -> AsyncHandle:
        """Open an asynchronous section of the test.

        The returned handle must be finished before the run can finish. If a
        callback is given it is called with the handle on the next loop
        iteration; it may be a coroutine function. A number passed in place
        of the callback is taken as the timeout in seconds.
        """
        self._check_running("asynchronous section")
        if not isinstance(description, str):
            raise TypeError(
                "description parameter to async_ must be a string "
                f"({type(description).__name__} found)"
            )
        if isinstance(callback, (int, float)) and not isinstance(callback, bool):
            if timeout is not None:
                raise TypeError("timeout passed to async_ twice")
            timeout, callback = callback, None
        if callback is not None and not callable(callback):
            raise TypeError(
                "callback parameter to async_ must be callable "
                f"({type(callback).__name__} found)"
            )
        if timeout is not None and timeout <= 0:
            raise ValueError(f"async_ timeout must be positive ({timeout})")

        handle = AsyncHandle(description, timeout or self.config.async_timeout)
        handle.on("finish_repeated", partial(self._note_repeated_finish, handle))
        self.async_handles.append(handle)
        if callback is not None:
            asyncio.get_running_loop().call_soon(
                self._invoke_section, handle, callback
            )
        return handle

    def _invoke_section(self, handle: AsyncHandle, callback: AsyncCallback) -> None:
        try:
            result = callback(handle)
        except Exception as exc:
            handle.fail(self._wrap_error(exc))
            return
        if inspect.isawaitable(result):
            self._spawn(self._await_section(handle, result))

    async def _await_section(
        self, handle: AsyncHandle, awaitable: Awaitable[object], *, finish: bool = False
    ) -> None:
        try:
            await awaitable
        except Exception as exc:
            handle.fail(self._wrap_error(exc))
        else:
            if finish:
                handle.finish()

    def _note_repeated_finish(
        self, handle: AsyncHandle, notification: Notification
    ) -> None:
        if self.state is not RunState.RUNNING:
            return
        problem = (
            "finished after it timed out"
            if notification.data["timed_out"]
            else "finished more than once"
        )
        self.diag(f'async operation "{handle.description}" {problem}')

    def add_assertion(self, assertion: Assertion) -> bool:
        """Add an evaluated assertion to the run's events."""
        self._check_running("assertion")
        self.events.append(assertion)
        if not assertion.passed:
            self._fail_run(assertion)
        return bool(assertion.passed)

    def check(self, name: str, *operands: object, message: str | None = None) -> bool:
        """Evaluate the predicate registered as ``name`` and record it."""
        self._check_running("assertion")
        try:
            predicate = self._predicates[name]
        except KeyError:
            raise UsageError(f"unknown assertion type {name!r}") from None
        outcome = predicate(*operands)
        assertion = Assertion(name=name)
        assertion.set_result(message, outcome.passed, outcome.extra)
        return self.add_assertion(assertion)

    def pass_(self, message: str | None = None) -> bool:
        return self.check("pass", message=message)

    def fail(self, message: str | None = None) -> bool:
        return self.check("fail", message=message)

    def ok(self, cond: object, message: str | None = None) -> bool:
        return self.check("ok", cond, message=message)

    def nok(self, cond: object, message: str | None = None) -> bool:
        return self.check("nok", cond, message=message)

    def is_(self, value: object, expected: object, message: str | None = None) -> bool:
        """Pass if ``value`` equals ``expected``, loosely or structurally."""
        return self.check("is", value, expected, message=message)

    def not_(
        self, value: object, unexpected: object, message: str | None = None
    ) -> bool:
        return self.check("not", value, unexpected, message=message)

    def isa(
        self,
        instance: object,
        capability: type | tuple[type, ...] | None,
        message: str | None = None,
    ) -> bool:
        return self.check("isa", instance, capability, message=message)

    def gt(self, value: object, bound: object, message: str | None = None) -> bool:
        return self.check("gt", value, bound, message=message)

    def gte(self, value: object, bound: object, message: str | None = None) -> bool:
        return self.check("gte", value, bound, message=message)

    def lt(self, value: object, bound: object, message: str | None = None) -> bool:
        return self.check("lt", value, bound, message=message)

    def lte(self, value: object, bound: object, message: str | None = None) -> bool:
        return self.check("lte", value, bound, message=message)

    def like(
        self, value: object, pattern: str | re.Pattern[str], message: str | None = None
    ) -> bool:
        return self.check("like", value, pattern, message=message)

    def unlike(
        self, value: object, pattern: str | re.Pattern[str], message: str | None = None
    ) -> bool:
        return self.check("unlike", value, pattern, message=message)

    def throws_ok(
        self,
        func: Callable[[], object],
        pattern: str | re.Pattern[str] | None = None,
        message: str | None = None,
    ) -> bool:
        """Pass if ``func`` raises, and the error matches ``pattern`` if given."""
        return self.check("throws_ok", func, pattern, message=message)

    def assertions(self) -> list[Assertion]:
        return self.events.assertions()

    def skipped_assertions(self) -> list[SkippedAssertions]:
        return self.events.skipped_assertions()

    def assertions_skipped(self) -> int:
        return self.events.assertions_skipped()

    def passes(self) -> int:
        return self.events.passes()

    def fails(self) -> int:
        return self.events.fails()

    def planned_assertions_ran(self) -> bool:
        """Check the assertions ran and skipped add up to the plan, if any."""
        return self.planned is None or self.planned == (
            self.assertions_skipped() + len(self.assertions())
        )
