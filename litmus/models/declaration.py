"""Declarations of tests and suites."""

from collections.abc import Callable, Iterator, Mapping
from typing import Any

from pydantic import Field, field_validator

from litmus.assertions import BUILTIN_PREDICATES, Predicate
from litmus.config import LitmusConfig
from litmus.models.base import Model
from litmus.run import TestRun
from litmus.suite_run import SuiteRun


class Test(Model):
    """A named unit of behavior.

    ``behavior`` is called with a fresh ``TestRun`` each time the test runs
    and makes its assertions through that run.
    """

    __test__ = False

    name: str = Field(..., description="Human-readable test name")
    behavior: Callable[..., Any] = Field(
        ..., description="Function exercising the assertions"
    )

    def create_run(
        self,
        config: LitmusConfig | None = None,
        predicates: Mapping[str, Predicate] = BUILTIN_PREDICATES,
    ) -> TestRun:
        """Create a new, not yet started run of this test."""
        return TestRun(self, config=config, predicates=predicates)


class Suite(Model):
    """An ordered, named collection of tests and nested suites."""

    name: str = Field(..., description="Human-readable suite name")
    children: tuple["Test | Suite", ...] = Field(
        default=(), description="Tests and suites, in order"
    )

    @field_validator("children", mode="before")
    @classmethod
    def _check_children(cls, value: Any) -> tuple[Any, ...]:
        children = tuple(value)
        for index, child in enumerate(children):
            if child is None:
                raise ValueError(f"test {index} passed to Suite is None")
            if not isinstance(child, (Test, Suite)):
                raise ValueError(
                    f"test {index} passed to Suite is not a Test or Suite "
                    f"({type(child).__name__} found)"
                )
        return children

    def create_run(self, config: LitmusConfig | None = None) -> SuiteRun:
        """Create a new, not yet started run of this suite."""
        return SuiteRun(self, config=config)

    def iter_tests(self) -> Iterator[Test]:
        """Yield every test in the suite, descending into nested suites."""
        for child in self.children:
            if isinstance(child, Suite):
                yield from child.iter_tests()
            else:
                yield child
