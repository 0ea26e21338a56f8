"""pytest plugin — command-line options and fixtures for prompt tests."""

from __future__ import annotations

import pytest

from promptest.configuration import configure
from promptest.evaluation import PromptEvaluator


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("promptest", "prompt evaluation with promptfoo")
    group.addoption(
        "--promptfoo-executable",
        default=None,
        help="Path to the promptfoo executable (default: node_modules/.bin/promptfoo or npx).",
    )
    group.addoption(
        "--promptfoo-timeout",
        type=float,
        default=None,
        help="Seconds to wait for each promptfoo run (default: no limit).",
    )


def pytest_configure(config: pytest.Config) -> None:
    executable = config.getoption("--promptfoo-executable", default=None)
    timeout = config.getoption("--promptfoo-timeout", default=None)
    if executable:
        configure(promptfoo_executable=executable)
    if timeout is not None:
        configure(timeout=timeout)


def _fail(message: str) -> None:
    pytest.fail(message, pytrace=False)


@pytest.fixture
def prompt_evaluator() -> PromptEvaluator:
    """A PromptEvaluator that reports provider failures as test failures."""
    return PromptEvaluator(fail=_fail)
