"""CLI entry point for promptest."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from promptest import __version__
from promptest.configuration import configure, get_configuration
from promptest.errors import LoadError, PromptAssertionError, PromptestError
from promptest.evaluation import PromptEvaluator
from promptest.loader import load_suite


@click.group()
@click.version_option(version=__version__, prog_name="promptest")
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level for promptest's own messages.")
def cli(log_level: str) -> None:
    """promptest — Unit-test style prompt checks, evaluated by promptfoo."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@click.argument("suite", type=click.Path(exists=True, dir_okay=False))
@click.option("--verbose", "-v", is_flag=True, help="Show judge feedback and raw provider results.")
@click.option("--show-output", is_flag=True, help="Stream promptfoo's own output to the terminal.")
@click.option("--tag", multiple=True, help="Filter cases by tag (repeatable).")
@click.option("--executable", default=None, help="Path to the promptfoo executable.")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for each promptfoo run.")
def run(suite: str, verbose: bool, show_output: bool, tag: tuple,
        executable: Optional[str], timeout: Optional[float]) -> None:
    """Evaluate every case of a YAML prompt suite."""
    if timeout is not None and timeout <= 0:
        click.echo("Error: --timeout must be positive.", err=True)
        sys.exit(1)

    try:
        prompt_suite = load_suite(suite)
    except LoadError as e:
        click.echo(f"Error loading suite: {e}", err=True)
        sys.exit(1)

    if executable:
        configure(promptfoo_executable=executable)
    if timeout is not None:
        configure(timeout=timeout)

    cases = prompt_suite.cases
    if tag:
        tag_set = set(tag)
        cases = [c for c in cases if tag_set & set(c.tags)]
        if not cases:
            click.echo(
                f"No cases match tags {sorted(tag_set)} "
                f"(suite has {len(prompt_suite.cases)} cases).",
                err=True,
            )
            sys.exit(1)

    evaluator = PromptEvaluator()
    failed = 0
    click.echo(f"\n{'='*60}")
    click.echo(f"Suite: {prompt_suite.name}")
    click.echo(f"{'='*60}")

    for case in cases:
        try:
            evaluator.evaluate(
                prompt_suite.prompt,
                case.vars,
                case.providers if case.providers is not None else prompt_suite.providers,
                case.assertions,
                force_json=case.force_json,
                pre_render=prompt_suite.pre_render,
                verbose=verbose,
                show_output=show_output,
            )
        except PromptAssertionError as e:
            failed += 1
            click.echo(f"  {click.style('FAIL', fg='red')}  {case.name}")
            click.echo(_indent(str(e), "         "))
        except PromptestError as e:
            failed += 1
            click.echo(f"  {click.style('ERROR', fg='red')} {case.name}")
            click.echo(_indent(str(e), "         "))
        else:
            click.echo(f"  {click.style('PASS', fg='green')}  {case.name}")

    total = len(cases)
    click.echo(f"\nTotal: {total}  Passed: {total - failed}  Failed: {failed}")
    click.echo()

    if failed:
        sys.exit(1)


@cli.command()
def which() -> None:
    """Print the promptfoo command that would be run."""
    click.echo(get_configuration().resolve_executable())


def _indent(text: str, prefix: str) -> str:
    return "\n".join(prefix + line if line else line for line in text.rstrip("\n").split("\n"))
