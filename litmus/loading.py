"""Loading of the test or suite exported by a module."""

import importlib
import importlib.util
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from types import ModuleType

from litmus.errors import ModuleLoadError
from litmus.models.declaration import Suite, Test

log = logging.getLogger(__name__)

EXPORT_ATTRIBUTE = "test"


def add_include_paths(paths: Sequence[str]) -> None:
    """Make modules under ``paths`` importable by dotted name.

    Paths are put at the front of ``sys.path`` in the order given.
    """
    for path in reversed(paths):
        resolved = str(Path(path).resolve())
        if resolved in sys.path:
            continue
        log.debug("Adding %s to the import path", resolved)
        sys.path.insert(0, resolved)


def load_runnable(target: str) -> Test | Suite:
    """Load the test or suite named by ``target``.

    Args:
        target: Path to a Python file or a dotted module name, optionally
                followed by ``:attribute`` to pick the export explicitly

    Returns:
        The exported Test or Suite

    Raises:
        ModuleLoadError: If the module cannot be found or exports no test

    """
    location, _, attribute = target.partition(":")
    module = import_target(location)

    if attribute:
        runnable = getattr(module, attribute, None)
        if not isinstance(runnable, (Test, Suite)):
            raise ModuleLoadError(
                f"'{attribute}' in {location} is not a litmus Test or Suite"
            )
        return runnable

    return find_runnable(module)


def import_target(location: str) -> ModuleType:
    """Import a module from a file path or a dotted module name."""
    path = Path(location)
    if path.suffix == ".py" or path.exists():
        if not path.is_file():
            raise ModuleLoadError(f"Test file '{location}' not found")
        spec = importlib.util.spec_from_file_location(
            f"litmus_target_{path.stem}", path.resolve()
        )
        if spec is None or spec.loader is None:
            raise ModuleLoadError(f"Cannot load test file '{location}'")
        module = importlib.util.module_from_spec(spec)
        log.debug("Loading test file %s", path)
        spec.loader.exec_module(module)
        return module

    try:
        return importlib.import_module(location)
    except ModuleNotFoundError as exc:
        raise ModuleLoadError(f"Test module '{location}' not found") from exc


def find_runnable(module: ModuleType) -> Test | Suite:
    """Find the Test or Suite exported by a module.

    The ``test`` attribute is used when present; otherwise the module must
    define exactly one Test or Suite at top level.
    """
    exported = getattr(module, EXPORT_ATTRIBUTE, None)
    if isinstance(exported, (Test, Suite)):
        return exported

    candidates = {
        name: value
        for name, value in vars(module).items()
        if isinstance(value, (Test, Suite)) and not name.startswith("_")
    }
    if len(candidates) == 1:
        return next(iter(candidates.values()))

    found = sorted(candidates) or "none"
    raise ModuleLoadError(
        f"expected module {module.__name__} to export a litmus Test or Suite "
        f"as '{EXPORT_ATTRIBUTE}'. Candidates: {found}"
    )
