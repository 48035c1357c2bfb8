"""Aggregation of the runs of a suite's children."""

import asyncio
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from litmus.config import LitmusConfig
from litmus.emitter import Emitter, Handler
from litmus.errors import UsageError
from litmus.run import TestRun

if TYPE_CHECKING:
    from litmus.models.declaration import Suite

log = logging.getLogger(__name__)


class SuiteRun:
    """The result of running a suite.

    Every child is started together and the suite finishes once all of them
    have. The suite passes iff every child passed; an empty suite passes.
    Errors recorded by children stay on the children.
    """

    def __init__(self, suite: "Suite", *, config: LitmusConfig | None = None) -> None:
        self.suite = suite
        self.config = config or LitmusConfig()
        self.runs: list[TestRun | SuiteRun] = []
        self.exceptions: tuple[BaseException, ...] = ()
        self.passed: bool | None = None
        self.failed: bool | None = None
        self._emitter = Emitter(self)
        self._finished: asyncio.Future[SuiteRun] | None = None
        self._task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"SuiteRun({self.suite.name!r}, runs={len(self.runs)})"

    @property
    def finished(self) -> "asyncio.Future[SuiteRun]":
        """Future resolved with this run once every child has finished."""
        if self._finished is None:
            raise UsageError(
                f'suite run for "{self.suite.name}" has not been started'
            )
        return self._finished

    def on(self, name: str, handler: Handler) -> None:
        """Subscribe to ``start`` or ``finish``."""
        self._emitter.on(name, handler)

    def start(self) -> None:
        """Create and start a run for every child. Needs a running event loop."""
        if self._finished is not None:
            raise UsageError(f'suite run for "{self.suite.name}" already started')
        loop = asyncio.get_running_loop()
        self._finished = loop.create_future()
        log.debug(
            'Starting suite "%s" (%d child(ren))',
            self.suite.name,
            len(self.suite.children),
        )
        self._emitter.fire("start")

        for child in self.suite.children:
            run = child.create_run(config=self.config)
            self.runs.append(run)
            run.start()

        self._task = loop.create_task(self._complete())

    async def _complete(self) -> None:
        await asyncio.gather(*(run.finished for run in self.runs))
        self._finish()

    def _finish(self) -> None:
        if self.finished.done():
            return
        self.passed = all(run.passed for run in self.runs)
        self.failed = not self.passed
        log.debug(
            'Finished suite "%s": %s',
            self.suite.name,
            "PASS" if self.passed else "FAIL",
        )
        self.finished.set_result(self)
        self._emitter.fire("finish")

    def iter_test_runs(self) -> Iterator[TestRun]:
        """Yield every test run below this suite, depth first."""
        for run in self.runs:
            if isinstance(run, SuiteRun):
                yield from run.iter_test_runs()
            else:
                yield run

    def passes(self) -> int:
        return sum(run.passes() for run in self.runs)

    def fails(self) -> int:
        return sum(run.fails() for run in self.runs)

    def assertions_skipped(self) -> int:
        return sum(run.assertions_skipped() for run in self.runs)

    def planned_assertions_ran(self) -> bool:
        return all(run.planned_assertions_ran() for run in self.runs)


type Run = TestRun | SuiteRun
