"""Error taxonomy for test declaration, execution and loading."""


class LitmusError(Exception):
    """Base class for all litmus errors."""


class UsageError(LitmusError):
    """Raised immediately when the framework is used incorrectly."""


class RunStateError(UsageError):
    """Raised when a run is mutated outside its running window."""

    def __init__(self, what: str, reason: str) -> None:
        super().__init__(f"{what} added to test run {reason}")
        self.what = what


class RunNotStartedError(RunStateError):
    """Raised when a run is mutated before it was started."""

    def __init__(self, what: str) -> None:
        super().__init__(what, "before it was started")


class RunFinishedError(RunStateError):
    """Raised when a run is mutated after it finished."""

    def __init__(self, what: str) -> None:
        super().__init__(what, "after it was finished")


class AssertionResultError(UsageError):
    """Raised when an assertion result is set more than once."""


class TestBodyError(LitmusError):
    """Recorded when a test behavior raises."""

    __test__ = False


class AsyncTimeoutError(LitmusError, TimeoutError):
    """Recorded when an async handle is not finished within its timeout."""

    def __init__(self, description: str, timeout: float) -> None:
        super().__init__(
            f'async operation "{description}" timed out after {timeout:g} seconds'
        )
        self.description = description
        self.timeout = timeout


class PlanMismatchError(LitmusError):
    """Recorded when the number of assertions differs from the plan."""

    def __init__(self, planned: int, ran: int) -> None:
        super().__init__(
            f"wrong number of assertions ran (planned {planned}, got {ran})"
        )
        self.planned = planned
        self.ran = ran


class ModuleLoadError(LitmusError):
    """Raised when a module does not export a Test or Suite."""
