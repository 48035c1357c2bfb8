"""Tests for loading tests and suites from modules."""

import sys
from pathlib import Path
from types import ModuleType

import pytest

from litmus.errors import ModuleLoadError
from litmus.loading import add_include_paths, find_runnable, load_runnable
from litmus.models.declaration import Suite, Test

MODULE_SOURCE = """
from litmus.models.declaration import Suite, Test

first = Test(name="first", behavior=lambda t: t.pass_("one"))
test = Suite(name="exported", children=[first])
"""


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    """Write a module exporting a suite as 'test'."""
    path = tmp_path / "sample_tests.py"
    path.write_text(MODULE_SOURCE)
    return path


def test_load_runnable_from_file(sample_file: Path) -> None:
    """Loads the 'test' export of a file."""
    runnable = load_runnable(str(sample_file))

    assert isinstance(runnable, Suite)
    assert runnable.name == "exported"


def test_load_runnable_named_attribute(sample_file: Path) -> None:
    """An explicit attribute overrides the default export."""
    runnable = load_runnable(f"{sample_file}:first")

    assert isinstance(runnable, Test)
    assert runnable.name == "first"


def test_load_runnable_rejects_non_test_attribute(sample_file: Path) -> None:
    with pytest.raises(ModuleLoadError, match="'Suite' in .* is not a litmus"):
        load_runnable(f"{sample_file}:Suite")


def test_load_runnable_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ModuleLoadError, match="not found"):
        load_runnable(str(tmp_path / "missing.py"))


def test_load_runnable_missing_module() -> None:
    with pytest.raises(ModuleLoadError, match="Test module 'no_such_litmus_module'"):
        load_runnable("no_such_litmus_module")


def test_load_runnable_from_module_name() -> None:
    """Dotted module names are imported normally."""
    with pytest.raises(ModuleLoadError, match="expected module litmus.config"):
        load_runnable("litmus.config")


def test_include_paths_make_modules_importable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Modules under an included directory load by dotted name."""
    library = tmp_path / "lib"
    library.mkdir()
    (library / "included_litmus_tests.py").write_text(MODULE_SOURCE)
    monkeypatch.setattr(sys, "path", list(sys.path))
    monkeypatch.delitem(sys.modules, "included_litmus_tests", raising=False)

    with pytest.raises(ModuleLoadError, match="not found"):
        load_runnable("included_litmus_tests")

    add_include_paths([str(library)])
    add_include_paths([str(library)])
    runnable = load_runnable("included_litmus_tests")

    assert sys.path[0] == str(library.resolve())
    assert sys.path.count(str(library.resolve())) == 1
    assert isinstance(runnable, Suite)
    assert runnable.name == "exported"
    sys.modules.pop("included_litmus_tests", None)


def test_find_runnable_single_candidate() -> None:
    """A single top-level test is used without a 'test' export."""
    module = ModuleType("single")
    only = Test(name="only", behavior=lambda t: None)
    module.only = only  # type: ignore[attr-defined]

    assert find_runnable(module) is only


def test_find_runnable_ambiguous() -> None:
    """Several candidates without a 'test' export are rejected."""
    module = ModuleType("ambiguous")
    module.a = Test(name="a", behavior=lambda t: None)  # type: ignore[attr-defined]
    module.b = Test(name="b", behavior=lambda t: None)  # type: ignore[attr-defined]

    with pytest.raises(ModuleLoadError) as exc_info:
        find_runnable(module)

    assert "ambiguous" in str(exc_info.value)
    assert "['a', 'b']" in str(exc_info.value)
