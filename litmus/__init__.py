"""Litmus: a small unit testing framework with asynchronous sections."""

from litmus.config import LitmusConfig
from litmus.execution import execute, run_sync
from litmus.formatting import StaticHtmlFormatter, StaticTextFormatter
from litmus.handle import AsyncHandle
from litmus.models.declaration import Suite, Test
from litmus.models.events import Assertion, Diagnostic, SkippedAssertions
from litmus.run import RunState, TestRun
from litmus.suite_run import SuiteRun

__all__ = [
    "Assertion",
    "AsyncHandle",
    "Diagnostic",
    "LitmusConfig",
    "RunState",
    "SkippedAssertions",
    "StaticHtmlFormatter",
    "StaticTextFormatter",
    "Suite",
    "SuiteRun",
    "Test",
    "TestRun",
    "execute",
    "run_sync",
]
