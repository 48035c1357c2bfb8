"""Helpers that create, start and wait for runs."""

import asyncio

from litmus.config import LitmusConfig
from litmus.models.declaration import Suite, Test
from litmus.suite_run import Run


async def execute(runnable: Test | Suite, config: LitmusConfig | None = None) -> Run:
    """Run a test or suite to completion and return the finished run."""
    run = runnable.create_run(config=config)
    run.start()
    return await run.finished


def run_sync(runnable: Test | Suite, config: LitmusConfig | None = None) -> Run:
    """Run a test or suite on a fresh event loop."""
    return asyncio.run(execute(runnable, config))
