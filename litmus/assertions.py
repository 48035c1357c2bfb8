"""Builtin assertion predicates.

Each predicate takes the raw operands of an assertion and returns an
``Outcome``. A ``TestRun`` looks predicates up by name in a registry that is
injected at construction, so callers can extend or replace the builtins.
"""

import operator
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

# Depth used when values are dumped for structural comparison.
STRUCTURAL_DEPTH = -10


@dataclass(frozen=True, kw_only=True)
class Outcome:
    """Result of evaluating a predicate."""

    passed: bool
    extra: str | None = None


type Predicate = Callable[..., Outcome]


def dump(value: object, level: int = 0) -> str:
    """Render the structure of a value, truncating below five levels."""
    if level > 4:
        return "..."
    if value is None or isinstance(value, (bool, int, float, complex, str, bytes)):
        return repr(value)
    if isinstance(value, Mapping):
        items = ", ".join(
            f"{dump(k, level + 1)}: {dump(v, level + 1)}" for k, v in value.items()
        )
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        items = ", ".join(dump(v, level + 1) for v in value)
        return f"({items})" if isinstance(value, tuple) else f"[{items}]"
    if isinstance(value, (set, frozenset)):
        return "{" + ", ".join(sorted(dump(v, level + 1) for v in value)) + "}"
    if isinstance(value, type):
        return f"<class {value.__name__}>"
    if callable(value):
        return f"<function {getattr(value, '__qualname__', type(value).__name__)}>"
    if hasattr(value, "__dict__"):
        attrs = ", ".join(
            f"{k}={dump(v, level + 1)}" for k, v in vars(value).items()
        )
        return f"{type(value).__name__}({attrs})"
    return repr(value)


def _coerce_number(text: str) -> float | None:
    """Read a string as a number. Blank strings count as zero."""
    if not text.strip():
        return 0.0
    try:
        return float(text)
    except ValueError:
        return None


def _coerce_pair(value: object, other: object) -> tuple[object, object] | None:
    """Convert the string side of a string/number pair into a number."""
    if isinstance(value, str) and isinstance(other, (int, float)):
        return _coerce_number(value), other
    if isinstance(other, str) and isinstance(value, (int, float)):
        return value, _coerce_number(other)
    return None


def loose_equal(value: object, expected: object) -> bool:
    """Compare two values, treating numeric strings as equal to numbers."""
    if value == expected:
        return True
    a, b = _coerce_pair(value, expected) or (None, None)
    return a is not None and b is not None and a == b


def _pass() -> Outcome:
    return Outcome(passed=True)


def _fail() -> Outcome:
    return Outcome(passed=False)


def _ok(cond: object) -> Outcome:
    return Outcome(passed=bool(cond))


def _nok(cond: object) -> Outcome:
    return Outcome(passed=not cond)


def _is(value: object, expected: object) -> Outcome:
    passed = loose_equal(value, expected) or dump(
        value, STRUCTURAL_DEPTH
    ) == dump(expected, STRUCTURAL_DEPTH)
    if passed:
        return Outcome(passed=True)
    return Outcome(
        passed=False,
        extra=f"\n    expected: {dump(expected)}\n         got: {dump(value)}",
    )


def _not(value: object, unexpected: object) -> Outcome:
    if not loose_equal(value, unexpected):
        return Outcome(passed=True)
    return Outcome(passed=False, extra=f"got '{value}', expecting something else")


def conforms(instance: object, capability: type | tuple[type, ...]) -> bool:
    """Check an instance against a class or a declared capability.

    Besides normal class membership, an object's type may list the
    capabilities it provides in ``__capabilities__``; each declared
    capability satisfies any of its own base classes.
    """
    if isinstance(instance, capability):
        return True
    declared = getattr(type(instance), "__capabilities__", ())
    return any(issubclass(d, capability) for d in declared)


def _isa(instance: object, capability: type | tuple[type, ...] | None) -> Outcome:
    if capability is None:
        return Outcome(passed=False, extra="\n    capability is None")
    try:
        passed = conforms(instance, capability)
    except TypeError:
        return Outcome(
            passed=False, extra=f"\n    {capability!r} is not a class or capability"
        )
    if passed:
        return Outcome(passed=True)
    expected = (
        " or ".join(c.__name__ for c in capability)
        if isinstance(capability, tuple)
        else capability.__name__
    )
    return Outcome(
        passed=False,
        extra=f"\n    expected class: {expected}"
        f"\n       found class: {type(instance).__name__}",
    )


def _comparison(
    compare: Callable[[object, object], bool], expectation: str
) -> Predicate:
    def predicate(value: object, bound: object) -> Outcome:
        try:
            passed = bool(compare(value, bound))
        except TypeError:
            a, b = _coerce_pair(value, bound) or (None, None)
            passed = a is not None and b is not None and bool(compare(a, b))
        if passed:
            return Outcome(passed=True)
        return Outcome(
            passed=False, extra=f"expected {expectation} '{bound}', got '{value}'"
        )

    return predicate


def _compile(pattern: str | re.Pattern[str]) -> re.Pattern[str]:
    return pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)


def _like(value: object, pattern: str | re.Pattern[str]) -> Outcome:
    regex = _compile(pattern)
    if regex.search(str(value)):
        return Outcome(passed=True)
    return Outcome(
        passed=False,
        extra=f"'{value}' does not match regular expression /{regex.pattern}/",
    )


def _unlike(value: object, pattern: str | re.Pattern[str]) -> Outcome:
    regex = _compile(pattern)
    if not regex.search(str(value)):
        return Outcome(passed=True)
    return Outcome(
        passed=False, extra=f"'{value}' matches regular expression /{regex.pattern}/"
    )


def _throws_ok(
    func: Callable[[], object], pattern: str | re.Pattern[str] | None = None
) -> Outcome:
    try:
        func()
    except Exception as exc:
        error = exc
    else:
        return Outcome(passed=False, extra="no exception thrown")
    if pattern is None:
        return Outcome(passed=True)
    regex = _compile(pattern)
    as_string = f"{type(error).__name__}: {error}"
    if regex.search(as_string):
        return Outcome(passed=True)
    return Outcome(
        passed=False,
        extra=f'exception "{as_string}" does not match regular expression '
        f"/{regex.pattern}/",
    )


BUILTIN_PREDICATES: Mapping[str, Predicate] = MappingProxyType(
    {
        "pass": _pass,
        "fail": _fail,
        "ok": _ok,
        "nok": _nok,
        "is": _is,
        "not": _not,
        "isa": _isa,
        "gt": _comparison(operator.gt, "greater than"),
        "gte": _comparison(operator.ge, "greater than or equal to"),
        "lt": _comparison(operator.lt, "less than"),
        "lte": _comparison(operator.le, "less than or equal to"),
        "like": _like,
        "unlike": _unlike,
        "throws_ok": _throws_ok,
    }
)
