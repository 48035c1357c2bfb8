"""Rendering of finished runs as plain text, HTML or a JSON-ready summary."""

import html
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from litmus.models.events import Diagnostic, SkippedAssertions
from litmus.run import TestRun
from litmus.suite_run import Run, SuiteRun

ANSI_COLOURS = {
    "red": 31,
    "green": 32,
    "yellow": 33,
    "blue": 34,
    "magenta": 35,
    "cyan": 36,
}


def run_status(run: TestRun) -> str:
    """Classify a finished test run as ``pass``, ``fail`` or ``error``."""
    if run.exceptions:
        return "error"
    return "pass" if run.passed else "fail"


@dataclass(frozen=True, kw_only=True)
class StaticFormatter(ABC):
    """Base for formatters of finished test and suite runs."""

    @abstractmethod
    def format(self, run: Run) -> str:
        """Render a finished run."""

    @abstractmethod
    def format_test(self, buffer: list[str], run: TestRun) -> None:
        """Append the rendering of one test run to ``buffer``."""

    def format_suite_or_test(self, buffer: list[str], run: Run) -> None:
        if isinstance(run, SuiteRun):
            self.format_suite(buffer, run)
        else:
            self.format_test(buffer, run)

    def format_suite(self, buffer: list[str], run: SuiteRun) -> None:
        for child in run.runs:
            self.format_suite_or_test(buffer, child)


@dataclass(frozen=True, kw_only=True)
class StaticTextFormatter(StaticFormatter):
    """Plain text formatter, optionally coloured with ANSI escapes."""

    colour: bool = True

    def _paint(self, colour: str, text: str) -> str:
        if not self.colour:
            return text
        return f"\033[{ANSI_COLOURS[colour]}m{text}\033[39m"

    def _verdict(self, run: Run) -> str:
        return self._paint(*(("green", "PASS") if run.passed else ("red", "FAIL")))

    def format(self, run: Run) -> str:
        buffer = [
            "Litmus Test Result\n",
            "==================\n\n",
            f"Result: {self._verdict(run)}\n\n",
        ]
        self.format_suite_or_test(buffer, run)
        buffer.append(f"Summary\n=======\n\nResult:\n    {self._verdict(run)}\n\n")
        return "".join(buffer)

    def format_test(self, buffer: list[str], run: TestRun) -> None:
        name = run.test.name
        buffer.append(f"{name}\n{'-' * len(name)}\n\n")
        if not run.planned_assertions_ran():
            ran = len(run.assertions()) + run.assertions_skipped()
            plural = "" if run.planned == 1 else "s"
            buffer.append(
                self._paint(
                    "red",
                    f"[ ERROR ] Planned {run.planned} assertion{plural} "
                    f"but {ran} were encountered",
                )
                + "\n\n"
            )
        buffer.append(
            self._paint(
                "yellow",
                f"[ INFO ] Assertions: {run.passes()} passed, {run.fails()} failed",
            )
            + "\n"
        )
        if run.events:
            buffer.append("\n")
        for event in run.events:
            if isinstance(event, Diagnostic):
                buffer.append(f"# {event.text}\n")
            elif isinstance(event, SkippedAssertions):
                buffer.append(
                    self._paint(
                        "cyan",
                        f"[ SKIPPED ] {event.skipped} assertions skipped - "
                        f"{event.reason}",
                    )
                    + "\n"
                )
            else:
                status = "PASS" if event.passed else "FAIL"
                extra = f" ({event.extra})" if event.extra else ""
                line = f"[ {status} ] {event.message or ''}{extra}"
                buffer.append(
                    self._paint("green" if event.passed else "red", line) + "\n"
                )
        for exception in run.exceptions:
            buffer.append("\n" + self._paint("red", f"[ ERROR ] {exception}") + "\n")
        buffer.append("\n")


@dataclass(frozen=True, kw_only=True)
class StaticHtmlFormatter(StaticFormatter):
    """HTML formatter. All user supplied text is escaped."""

    def format(self, run: Run) -> str:
        buffer = [
            '<div class="litmus-result">',
            "<h1>Litmus Test Result</h1>",
            f"<p>Result: <span>{'PASS' if run.passed else 'FAIL'}</span></p></div>",
        ]
        self.format_suite_or_test(buffer, run)
        return "".join(buffer)

    def format_test(self, buffer: list[str], run: TestRun) -> None:
        esc = html.escape
        buffer.append(
            f'<div class="litmus-test-result"><h2>{esc(run.test.name)}</h2>'
        )
        if run.exceptions:
            buffer.append(
                '<p class="error">An exception was encountered while running '
                "the test. See below.</p>"
            )
        ran = len(run.assertions())
        if run.planned_assertions_ran():
            buffer.append(f'<p class="count">Assertions: {ran}</p>')
        else:
            buffer.append(
                '<p class="count-error">Assertions count error. Planned '
                f"{run.planned} assertions, but ran {ran}.</p>"
            )
        buffer.append(
            f"<p>Assertions: {run.passes()} passed, {run.fails()} failed.</p>"
            '<ul class="assertions">'
        )
        for event in run.events:
            if isinstance(event, Diagnostic):
                buffer.append(f'<li class="diagnostic">{esc(event.text)}</li>')
            elif isinstance(event, SkippedAssertions):
                buffer.append(
                    '<li class="assertions-skipped">'
                    '<span class="status">[ SKIPPED ]</span> '
                    f"{event.skipped} assertions skipped - {esc(event.reason)}</li>"
                )
            else:
                kind, status = ("pass", "PASS") if event.passed else ("fail", "FAIL")
                extra = (
                    f' - <span class="extra">{esc(event.extra)}</span>'
                    if event.extra
                    else ""
                )
                buffer.append(
                    f'<li class="assertion-{kind}"><span class="status">[ {status} ]'
                    f"</span> {esc(event.message or '')}{extra}</li>"
                )
        for exception in run.exceptions:
            buffer.append(
                '<li class="assertion-error"><span class="status">[ ERROR ]</span> '
                f"{esc(str(exception))}</li>"
            )
        buffer.append("</ul></div>")


def format_output(runs: Sequence[Run]) -> dict[str, Any]:
    """Summarise finished runs as a JSON-serialisable mapping."""
    results: list[dict[str, Any]] = []
    for top in runs:
        test_runs = top.iter_test_runs() if isinstance(top, SuiteRun) else [top]
        for run in test_runs:
            results.append(
                {
                    "test": run.test.name,
                    "status": run_status(run),
                    "passes": run.passes(),
                    "fails": run.fails(),
                    "skipped": run.assertions_skipped(),
                    "planned": run.planned,
                    "exceptions": [str(e) for e in run.exceptions],
                }
            )

    return {
        "total": len(results),
        "passed": sum(1 for r in results if r["status"] == "pass"),
        "failed": sum(1 for r in results if r["status"] == "fail"),
        "errors": sum(1 for r in results if r["status"] == "error"),
        "results": results,
    }
