from __future__ import annotations

from pathlib import Path

import pytest

pytest_plugins = ("pytester",)


def _install_level_hooks(pytester: pytest.Pytester) -> None:
    repo_conftest = Path(__file__).with_name("conftest.py").resolve()
    pytester.makeconftest(
        f"""
import importlib.util
from pathlib import Path

spec = importlib.util.spec_from_file_location(
    "_quizbasket_levels", Path({str(repo_conftest)!r})
)
module = importlib.util.module_from_spec(spec)
spec.loader.exec_module(module)

pytest_addoption = module.pytest_addoption
pytest_collection_modifyitems = module.pytest_collection_modifyitems
"""
    )
    pytester.makepyfile(
        test_levels="""
import pytest


@pytest.mark.full
def test_exhaustive_seed_sweep():
    assert True


@pytest.mark.slow
def test_many_attempt_distribution():
    assert True


def test_quick_allocation():
    assert True
"""
    )


@pytest.mark.parametrize(
    ("args", "outcomes"),
    [
        ((), {"passed": 2, "skipped": 1}),
        (("--verification-level=standard",), {"passed": 2, "skipped": 1}),
        (("--verification-level=fast",), {"passed": 1, "skipped": 2}),
        (("--verification-level=full",), {"passed": 3}),
    ],
)
def test_verification_level_selects_tests(
    pytester: pytest.Pytester, args: tuple[str, ...], outcomes: dict[str, int]
) -> None:
    _install_level_hooks(pytester)
    result = pytester.runpytest(*args, "-q", "-p", "no:cacheprovider")
    result.assert_outcomes(**outcomes)
