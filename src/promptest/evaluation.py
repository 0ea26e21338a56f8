"""Evaluation — compiles a prompt test, runs promptfoo and checks its results."""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

import click

from promptest.compiler import build_config, dump_config, prepare_prompt, wrap_providers
from promptest.configuration import Configuration, get_configuration
from promptest.decoder import decode_output
from promptest.errors import EvaluationError, ExecutionError, PromptAssertionError
from promptest.formatter import FailureFormatter
from promptest.models import Assertion
from promptest.runner import PromptfooRunner

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "promptfooconfig.yaml"
OUTPUT_FILENAME = "output.json"

FailCallback = Callable[[str], Any]


def debug_enabled() -> bool:
    return os.environ.get("DEBUG_PROMPT_TEST") == "1"


def raise_assertion_error(message: str) -> None:
    raise PromptAssertionError(message)


class PromptEvaluator:
    """Runs one prompt evaluation per call.

    Args:
        configuration: Where to find promptfoo; defaults to the process-wide one.
        fail: Receives the formatted report when any provider fails. The
            default raises PromptAssertionError.
        debug: Echo the generated config and run result to stderr. Defaults
            to the ``DEBUG_PROMPT_TEST=1`` environment switch.
    """

    def __init__(
        self,
        configuration: Optional[Configuration] = None,
        fail: Optional[FailCallback] = None,
        debug: Optional[bool] = None,
    ) -> None:
        self.configuration = configuration
        self.fail = fail or raise_assertion_error
        self.debug = debug_enabled() if debug is None else debug

    def evaluate(
        self,
        prompt_text: str,
        vars: Mapping[Any, Any],
        providers: Any,
        assertions: Iterable[Union[Assertion, Mapping[str, Any]]] = (),
        *,
        force_json: bool = False,
        pre_render: bool = False,
        verbose: bool = False,
        show_output: bool = False,
    ) -> Dict[str, Any]:
        """Evaluate ``prompt_text`` with promptfoo and return its parsed output.

        Raises:
            EvaluationError: If promptfoo failed and wrote no output.
            ExecutionError: If promptfoo could not be run or its output is malformed.
        """
        assertions = list(assertions)
        providers_list = wrap_providers(providers)
        text, config_vars = prepare_prompt(prompt_text, vars, pre_render=pre_render)

        with tempfile.TemporaryDirectory(prefix="promptest-") as tmpdir:
            config_path = os.path.join(tmpdir, CONFIG_FILENAME)
            output_path = os.path.join(tmpdir, OUTPUT_FILENAME)

            config = build_config(
                prompt_text=text,
                vars=config_vars,
                providers=providers_list,
                assertions=assertions,
                output_path=output_path,
                force_json=force_json,
            )
            config_yaml = dump_config(config)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(config_yaml)
            self._debug("Promptfoo Config", config_yaml)

            runner = PromptfooRunner(self.configuration or get_configuration())
            result = runner.execute(
                config_path, tmpdir, pre_render=pre_render, show_output=show_output
            )
            self._debug("Promptfoo Result", repr(result))

            try:
                output = runner.parse_output(output_path)
            except ExecutionError as exc:
                raise ExecutionError(
                    f"{exc}\n"
                    f"STDOUT: {result.stdout}\n"
                    f"STDERR: {result.stderr}\n",
                    stdout=result.stdout,
                    stderr=result.stderr,
                ) from exc

        if not (result.success or output):
            raise EvaluationError(
                "promptfoo evaluation failed\n"
                f"STDOUT: {result.stdout}\n"
                f"STDERR: {result.stderr}\n",
                stdout=result.stdout,
                stderr=result.stderr,
            )

        if assertions:
            self.check_provider_failures(output, verbose=verbose)

        return output

    def check_provider_failures(self, output: Mapping[str, Any], verbose: bool = False) -> None:
        decoded = decode_output(output)
        logger.info(
            "%d provider(s) passed, %d failed", len(decoded.passing), len(decoded.failing)
        )
        if not decoded.passed:
            message = FailureFormatter(verbose=verbose).format_evaluation(decoded)
            self.fail(message)

    def _debug(self, title: str, content: str) -> None:
        logger.debug("%s:\n%s", title, content)
        if not self.debug:
            return
        click.echo(f"\n=== {title} ===", err=True)
        click.echo(content, err=True)
        click.echo("=" * (len(title) + 8), err=True)
        click.echo(err=True)
