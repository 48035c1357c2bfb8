"""Tests for asynchronous sections of a test run."""

import asyncio
import logging

import pytest

from litmus.config import LitmusConfig
from litmus.errors import AsyncTimeoutError, TestBodyError
from litmus.execution import execute
from litmus.handle import AsyncHandle
from litmus.models.declaration import Test
from litmus.models.events import Diagnostic
from litmus.run import TestRun


async def test_callback_runs_after_synchronous_code() -> None:
    """The callback is deferred to the next loop iteration."""
    order: list[str] = []

    def behavior(t: TestRun) -> None:
        def section(handle: AsyncHandle) -> None:
            order.append("callback")
            t.pass_("in callback")
            handle.finish()

        t.async_("deferred", section)
        order.append("after async_")

    run = await execute(Test(name="deferred", behavior=behavior))

    assert order == ["after async_", "callback"]
    assert run.passes() == 1
    assert run.passed is True


async def test_run_waits_for_outstanding_handles() -> None:
    """The run finishes only once every handle has finished."""
    handles: list[AsyncHandle] = []

    def behavior(t: TestRun) -> None:
        handle = t.async_("finished later")
        handles.append(handle)
        asyncio.get_running_loop().call_later(0.02, handle.finish)

    run = Test(name="waits", behavior=behavior).create_run()
    run.start()
    await asyncio.sleep(0)

    assert not run.finished.done()

    await run.finished

    assert handles[0].done
    assert run.passed is True


async def test_unfinished_handle_times_out() -> None:
    """A handle that is never finished fails the run after its timeout."""
    handles: list[AsyncHandle] = []

    def behavior(t: TestRun) -> None:
        t.pass_("sync assertion")
        handles.append(t.async_("never finished", timeout=0.05))

    loop = asyncio.get_running_loop()
    started = loop.time()
    run = await execute(Test(name="hangs", behavior=behavior))
    elapsed = loop.time() - started

    assert elapsed >= 0.04
    assert handles[0].timed_out
    assert run.passed is False
    assert len(run.exceptions) == 1
    error = run.exceptions[0]
    assert isinstance(error, AsyncTimeoutError)
    assert error.description == "never finished"
    assert str(error) == 'async operation "never finished" timed out after 0.05 seconds'


async def test_default_timeout_comes_from_config() -> None:
    """Handles without a timeout use the configured default."""
    handles: list[AsyncHandle] = []

    def behavior(t: TestRun) -> None:
        handles.append(t.async_("uses default"))

    test = Test(name="configured", behavior=behavior)
    run = test.create_run(config=LitmusConfig(async_timeout=0.05))
    run.start()
    await run.finished

    assert handles[0].timeout == 0.05
    assert isinstance(run.exceptions[0], AsyncTimeoutError)


async def test_numeric_second_argument_is_timeout() -> None:
    """A number in place of the callback is taken as the timeout."""
    handles: list[AsyncHandle] = []

    def behavior(t: TestRun) -> None:
        handle = t.async_("short", 0.5)
        handles.append(handle)
        handle.finish()

    run = await execute(Test(name="numeric", behavior=behavior))

    assert handles[0].timeout == 0.5
    assert run.passed is True


async def test_repeated_finish_is_ignored_with_diagnostic(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Finishing a handle twice is a no-op noted as a diagnostic."""

    def behavior(t: TestRun) -> None:
        handle = t.async_("twice")
        handle.finish()
        handle.finish()

    with caplog.at_level(logging.WARNING):
        run = await execute(Test(name="double finish", behavior=behavior))

    assert run.passed is True
    assert run.exceptions == []
    assert list(run.events) == [
        Diagnostic(text='async operation "twice" finished more than once')
    ]
    assert 'async operation "twice" finished more than once' in caplog.text


async def test_finish_after_timeout_is_noted_as_late() -> None:
    """A handle finished after its timeout gets a late diagnostic."""

    def behavior(t: TestRun) -> None:
        late = t.async_("late", timeout=0.05)
        slow = t.async_("slow", timeout=1)

        def finish_both() -> None:
            late.finish()
            slow.finish()

        asyncio.get_running_loop().call_later(0.15, finish_both)

    run = await execute(Test(name="late finish", behavior=behavior))

    assert run.passed is False
    assert list(run.events) == [
        Diagnostic(text='async operation "late" finished after it timed out')
    ]
    assert len(run.exceptions) == 1
    assert isinstance(run.exceptions[0], AsyncTimeoutError)


async def test_callback_error_settles_handle() -> None:
    """An error in a callback fails the run without waiting for the timeout."""

    def behavior(t: TestRun) -> None:
        def section(handle: AsyncHandle) -> None:
            raise KeyError("missing")

        t.async_("broken", section, timeout=5)

    loop = asyncio.get_running_loop()
    started = loop.time()
    run = await execute(Test(name="broken callback", behavior=behavior))

    assert loop.time() - started < 1
    assert run.passed is False
    error = run.exceptions[0]
    assert isinstance(error, TestBodyError)
    assert 'error in "broken callback" test' in str(error)
    assert isinstance(error.__cause__, KeyError)


async def test_coroutine_callback() -> None:
    """Callbacks may be coroutine functions."""

    def behavior(t: TestRun) -> None:
        async def section(handle: AsyncHandle) -> None:
            await asyncio.sleep(0.01)
            t.pass_("after sleeping")
            handle.finish()

        t.async_("coroutine", section)

    run = await execute(Test(name="coroutine callback", behavior=behavior))

    assert run.passes() == 1
    assert run.passed is True


async def test_handles_opened_inside_callbacks_are_awaited() -> None:
    """Handles opened while the run waits are also waited for."""

    def behavior(t: TestRun) -> None:
        def outer(handle: AsyncHandle) -> None:
            inner = t.async_("inner")

            def finish_inner() -> None:
                t.pass_("inner assertion")
                inner.finish()

            asyncio.get_running_loop().call_later(0.02, finish_inner)
            handle.finish()

        t.async_("outer", outer)

    run = await execute(Test(name="nested", behavior=behavior))

    assert len(run.async_handles) == 2
    assert run.passes() == 1
    assert run.passed is True


async def test_invalid_arguments_raise() -> None:
    """Malformed async_ arguments are rejected."""
    errors: list[Exception] = []

    def behavior(t: TestRun) -> None:
        for args, kwargs in (
            ((42,), {}),
            (("desc", "not callable"), {}),
            (("desc", 1.0), {"timeout": 2.0}),
            (("desc",), {"timeout": 0}),
        ):
            try:
                t.async_(*args, **kwargs)
            except (TypeError, ValueError) as exc:
                errors.append(exc)

    run = await execute(Test(name="bad args", behavior=behavior))

    assert [type(e) for e in errors] == [TypeError, TypeError, TypeError, ValueError]
    assert "must be a string (int found)" in str(errors[0])
    assert run.async_handles == []


async def test_mixed_sync_and_async_assertions() -> None:
    """Assertions from nested and plain sections all count towards the plan."""

    def behavior(t: TestRun) -> None:
        t.plan(5)

        def with_timer(handle: AsyncHandle) -> None:
            t.is_(handle.description, "timer section", "handle is passed in")
            inner = t.async_("testing async timeout")

            def later() -> None:
                t.pass_("async assertion")
                inner.finish()
                handle.finish()

            asyncio.get_running_loop().call_soon(later)

        t.skipif(False, "no timers", 2, lambda t: t.async_("timer section", with_timer))

        handle = t.async_("no callback")
        t.pass_("non-async assertion")
        handle.finish()

        def plain(h: AsyncHandle) -> None:
            t.pass_("sync assertion in async")
            h.finish()

        t.async_("plain callback", plain)
        t.pass_("a final sync assertion")

    run = await execute(Test(name="asynchronous tests", behavior=behavior))

    assert run.planned_assertions_ran()
    assert run.passes() == 5
    assert run.exceptions == []
    assert run.passed is True
