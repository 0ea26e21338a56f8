"""promptest — unit-test style assertions for LLM prompts, evaluated by promptfoo."""

from __future__ import annotations

from promptest.assertions import AssertionBuilder
from promptest.configuration import (
    Configuration,
    configure,
    get_configuration,
    reset_configuration,
    set_configuration,
)
from promptest.errors import (
    ConfigError,
    EvaluationError,
    ExecutionError,
    LoadError,
    PromptAssertionError,
    PromptNotFoundError,
    PromptestError,
)
from promptest.evaluation import PromptEvaluator
from promptest.models import Assertion, AssertionKind

__version__ = "0.3.0"

__all__ = [
    "Assertion",
    "AssertionBuilder",
    "AssertionKind",
    "ConfigError",
    "Configuration",
    "EvaluationError",
    "ExecutionError",
    "LoadError",
    "PromptAssertionError",
    "PromptEvaluator",
    "PromptNotFoundError",
    "PromptestError",
    "configure",
    "get_configuration",
    "reset_configuration",
    "set_configuration",
]
