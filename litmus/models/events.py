"""Events recorded in a test run's log."""

from collections.abc import Iterator
from dataclasses import dataclass, field

from litmus.errors import AssertionResultError


@dataclass(kw_only=True)
class Assertion:
    """One predicate evaluation.

    The result is assigned exactly once through ``set_result``; until then
    ``passed`` is ``None``.
    """

    name: str
    message: str | None = None
    passed: bool | None = None
    extra: str | None = None

    def set_result(
        self, message: str | None, passed: bool, extra: str | None = None
    ) -> None:
        """Record the outcome of the assertion."""
        if self.passed is not None:
            raise AssertionResultError(f"result already set for {self}")
        self.message = message
        self.passed = bool(passed)
        self.extra = extra

    @property
    def failed(self) -> bool | None:
        """Inverse of ``passed`` once the result is set."""
        return None if self.passed is None else not self.passed

    def __str__(self) -> str:
        return f'test.{self.name}(..., "{self.message}")'


@dataclass(frozen=True, kw_only=True)
class Diagnostic:
    """Free-text informational message."""

    text: str


@dataclass(frozen=True, kw_only=True)
class SkippedAssertions:
    """A number of assertions that were not run."""

    reason: str
    skipped: int


type Event = Assertion | Diagnostic | SkippedAssertions


@dataclass(kw_only=True)
class EventLog:
    """Append-only, ordered log of the events of one run."""

    _events: list[Event] = field(default_factory=list)

    def append(self, event: Event) -> None:
        self._events.append(event)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __getitem__(self, index: int) -> Event:
        return self._events[index]

    def assertions(self) -> list[Assertion]:
        return [e for e in self._events if isinstance(e, Assertion)]

    def skipped_assertions(self) -> list[SkippedAssertions]:
        return [e for e in self._events if isinstance(e, SkippedAssertions)]

    def assertions_skipped(self) -> int:
        """Total number of assertions declared as skipped."""
        return sum(e.skipped for e in self.skipped_assertions())

    def passes(self) -> int:
        return sum(1 for a in self.assertions() if a.passed)

    def fails(self) -> int:
        return sum(1 for a in self.assertions() if a.failed)
