"""Base class for writing prompt tests as pytest test classes.

Example::

    class TestGreeting(PromptTest):
        providers = ["openai:gpt-4o-mini", {"id": "anthropic:claude", "config": {"temperature": 0}}]

        def prompt_path(self):
            return "prompts/greeting.ptmpl"

        def test_greets_by_name(self):
            with self.assert_prompt(vars={"name": "Alice"}) as response:
                response.includes("Hello Alice")
                response.matches(r"^[A-Z]")
                response.rubric("Response is professional and courteous")
"""

from __future__ import annotations

import copy
import inspect
import os
from contextlib import contextmanager
from typing import Any, Callable, ClassVar, Dict, Iterable, Iterator, Mapping, Optional

import pytest

from promptest.assertions import AssertionBuilder
from promptest.compiler import wrap_providers
from promptest.errors import PromptNotFoundError
from promptest.evaluation import PromptEvaluator, debug_enabled


class PromptExpectation(AssertionBuilder):
    """Assertion builder handed out by ``assert_prompt``.

    ``output`` holds promptfoo's parsed output once the block has been evaluated.
    """

    def __init__(self) -> None:
        super().__init__()
        self.output: Optional[Dict[str, Any]] = None


def _snapshot(providers: Any) -> tuple:
    return tuple(copy.deepcopy(p) for p in wrap_providers(providers))


class PromptTest:
    """Base class for prompt test classes.

    ``providers`` is captured per class when the class is defined and
    inherited by subclasses that don't set their own.
    """

    providers: ClassVar[Any] = ("echo",)
    prompt_locator: ClassVar[Optional[Callable[[str], str]]] = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "providers" in cls.__dict__:
            cls.providers = _snapshot(cls.__dict__["providers"])

    @classmethod
    def debug(cls) -> bool:
        return debug_enabled()

    def prompt_path(self) -> str:
        locator = type(self).prompt_locator
        if locator is None:
            raise NotImplementedError(f"{type(self).__name__}.prompt_path must be implemented")
        return locator(inspect.getfile(type(self)))

    def prompt_content(self) -> str:
        cached = getattr(self, "_prompt_content", None)
        if cached is None:
            path = self.prompt_path()
            if not os.path.exists(path):
                raise PromptNotFoundError(f"Prompt file not found: {path}")
            with open(path, encoding="utf-8") as f:
                cached = self._prompt_content = f.read()
        return cached

    @contextmanager
    def assert_prompt(
        self,
        vars: Mapping[Any, Any],
        providers: Any = None,
        verbose: bool = False,
        pre_render: bool = False,
    ) -> Iterator[PromptExpectation]:
        """Declare expectations inside the block; they are evaluated on exit."""
        expectation = PromptExpectation()
        yield expectation

        output = self.evaluate_prompt(
            prompt_text=self.prompt_content(),
            vars=vars,
            providers=providers,
            assertions=expectation.to_assertions(),
            force_json=expectation.is_force_json(),
            verbose=verbose,
            pre_render=pre_render,
        )
        if not output:
            self.fail_prompt("Promptfoo evaluation produced no output")
        expectation.output = output

    def evaluate_prompt(
        self,
        prompt_text: str,
        vars: Mapping[Any, Any],
        providers: Any = None,
        assertions: Iterable[Any] = (),
        force_json: bool = False,
        pre_render: bool = False,
        verbose: bool = False,
        show_output: bool = False,
    ) -> Dict[str, Any]:
        evaluator = PromptEvaluator(fail=self.fail_prompt, debug=self.debug())
        return evaluator.evaluate(
            prompt_text,
            vars,
            providers if providers is not None else self.providers,
            assertions,
            force_json=force_json,
            pre_render=pre_render,
            verbose=verbose,
            show_output=show_output,
        )

    def fail_prompt(self, message: str) -> None:
        pytest.fail(message, pytrace=False)
