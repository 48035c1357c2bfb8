"""CLI entry point for running litmus tests."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from typing import Any

from litmus.config import LitmusConfig
from litmus.errors import ModuleLoadError
from litmus.execution import execute
from litmus.formatting import (
    StaticFormatter,
    StaticHtmlFormatter,
    StaticTextFormatter,
    format_output,
    run_status,
)
from litmus.loading import add_include_paths, load_runnable
from litmus.suite_run import Run, SuiteRun

STATUS_SYMBOLS = {
    "pass": "✓",
    "fail": "✗",
    "error": "!",
}


def log_results_summary(log: logging.Logger, runs: Sequence[Run]) -> None:
    """Log a one-line verdict per test run."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for top in runs:
        test_runs = top.iter_test_runs() if isinstance(top, SuiteRun) else [top]
        for run in test_runs:
            status = run_status(run)
            log.info(
                "%s %s: %s (%d passed, %d failed, %d skipped)",
                STATUS_SYMBOLS.get(status, "?"),
                run.test.name,
                status,
                run.passes(),
                run.fails(),
                run.assertions_skipped(),
            )
            for exception in run.exceptions:
                log.info("  Error: %s", exception)


def build_config(
    config_json: str,
    output_format: str | None = None,
    colour: bool | None = None,
    async_timeout: float | None = None,
) -> LitmusConfig:
    """Build the run configuration from JSON, with flags taking precedence."""
    config_dict: dict[str, Any] = json.loads(config_json) if config_json else {}
    overrides = {
        "output_format": output_format,
        "colour": colour,
        "async_timeout": async_timeout,
    }
    config_dict.update({k: v for k, v in overrides.items() if v is not None})
    return LitmusConfig(**config_dict)


def get_formatter(config: LitmusConfig) -> StaticFormatter:
    if config.output_format == "html":
        return StaticHtmlFormatter()
    return StaticTextFormatter(colour=config.colour)


async def run(targets: Sequence[str], config: LitmusConfig) -> int:
    """Run the tests exported by each target and return the exit code."""
    log = logging.getLogger("litmus")

    try:
        runnables = [load_runnable(target) for target in targets]
    except ModuleLoadError as exc:
        log.error("%s", exc)
        return 2

    log.info("Running %d test module(s)...", len(runnables))
    runs: list[Run] = []
    for runnable in runnables:
        runs.append(await execute(runnable, config))

    log_results_summary(log, runs)

    if config.output_format == "json":
        print(json.dumps(format_output(runs), indent=2))
    else:
        formatter = get_formatter(config)
        for finished in runs:
            print(formatter.format(finished), end="")

    return 0 if all(finished.passed for finished in runs) else 1


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run litmus tests")
    parser.add_argument(
        "targets",
        nargs="+",
        help="Test files or dotted module names, optionally suffixed with :name",
    )
    parser.add_argument(
        "--config",
        default="",
        help="JSON configuration for the run",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=["text", "html", "json"],
        default=None,
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--no-colour",
        dest="colour",
        action="store_const",
        const=False,
        default=None,
        help="Disable ANSI colour in text output",
    )
    parser.add_argument(
        "--async-timeout",
        type=float,
        default=None,
        help="Default timeout in seconds for asynchronous sections",
    )
    parser.add_argument(
        "-I",
        "--include",
        action="append",
        default=[],
        metavar="PATH",
        help="Add a directory to the import path; may be repeated",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    config = build_config(
        args.config,
        output_format=args.output_format,
        colour=args.colour,
        async_timeout=args.async_timeout,
    )
    add_include_paths(args.include)
    exit_code = asyncio.run(run(args.targets, config))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
