"""Failure formatter — renders promptfoo results as a readable test failure message."""

from __future__ import annotations

import json
import re
from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from promptest.decoder import decode_provider
from promptest.models import (
    AssertionFailure,
    AssertionKind,
    EvaluationResult,
    FailingProvider,
    ProviderOutcome,
)

SNIPPET_LIMIT = 100
MISSING = "(missing)"

# Matches the predicate generated by AssertionBuilder.json_includes, with or
# without fence stripping, and either quote style around the key.
_JSON_KEY_PATTERN = re.compile(
    r"JSON\.parse\((?P<source>.*)\)(?:\s*:\s*output\))?"
    r"\[(?P<quote>['\"])(?P<key>(?:\\.|[^\\])+?)(?P=quote)\]\s*===\s*(?P<expected>.+?)\s*$",
    re.DOTALL,
)
_LEADING_FENCE = re.compile(r"\A\s*```(?:json)?\s*")
_TRAILING_FENCE = re.compile(r"\s*```\s*\Z")


def _inspect(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _as_text(output: Any) -> str:
    return output if isinstance(output, str) else json.dumps(output, indent=2, default=str)


def _present(value: Any) -> bool:
    return value is not None and len(str(value)) > 0


def _indent(text: str, prefix: str = "  ") -> str:
    return text.replace("\n", "\n" + prefix)


def strip_fences(text: str) -> str:
    return _TRAILING_FENCE.sub("", _LEADING_FENCE.sub("", text)).strip()


def _unescape_key(key: str, quote: str) -> str:
    if quote == "'":
        # Hand-written predicates; only the quote itself needs unescaping.
        return key.replace("\\'", "'")
    try:
        return json.loads(f'"{key}"')
    except json.JSONDecodeError:
        return key


def parse_json_assertion(js_code: str) -> Optional[Dict[str, Any]]:
    """Recover ``key``/``value`` from a generated json_includes predicate."""
    match = _JSON_KEY_PATTERN.search(js_code)
    if match is None:
        return None

    expected_json = match.group("expected")
    try:
        expected = json.loads(expected_json)
    except json.JSONDecodeError:
        expected = expected_json

    return {
        "key": _unescape_key(match.group("key"), match.group("quote")),
        "expected": expected,
        "strips_fences": "```" in match.group("source"),
    }


def extract_json_value(output: Any, key: str, strip: bool = False) -> Tuple[bool, Any]:
    """Apply the predicate's parse to real output. Returns (found, value)."""
    if not _present(output):
        return False, None

    if isinstance(output, str):
        try:
            parsed = json.loads(strip_fences(output) if strip else output)
        except json.JSONDecodeError:
            return False, None
    else:
        parsed = output

    if not isinstance(parsed, dict) or key not in parsed:
        return False, None
    return True, parsed[key]


class FailureFormatter:
    """Formats failing provider results into a failure message."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self._handlers: Dict[AssertionKind, Callable[[AssertionFailure, Any], str]] = {
            AssertionKind.CONTAINS: self._format_contains,
            AssertionKind.REGEX: self._format_regex,
            AssertionKind.EQUALS: self._format_equals,
            AssertionKind.IS_JSON: self._format_invalid_json,
            AssertionKind.JAVASCRIPT: self._format_javascript,
            AssertionKind.LLM_RUBRIC: self._format_rubric,
        }

    def format_evaluation(self, result: EvaluationResult) -> str:
        """Build the complete report for one decoded evaluation."""
        return self._report(result.passing, result.failing)

    def format_results(
        self, passing: Sequence[Optional[str]], failing: Sequence[FailingProvider]
    ) -> str:
        """Build the report from passing ids and raw failing results."""
        outcomes = [replace(decode_provider(f.result), provider_id=f.id) for f in failing]
        return self._report(passing, outcomes)

    def _report(self, passing: Sequence[Optional[str]], failing: Sequence[ProviderOutcome]) -> str:
        msg = "Prompt evaluation results:\n"
        for provider_id in passing:
            msg += f"  ✓ {provider_id}\n"
        for outcome in failing:
            msg += f"  ✗ {outcome.provider_id}\n"
        msg += "\n"

        for outcome in failing:
            msg += self.format_outcome(outcome)
            msg += "\n"

        if not self.verbose:
            msg += "💡 Tip: Add `verbose=True` to assert_prompt for detailed debugging output\n"
        return msg

    def format_outcome(self, outcome: ProviderOutcome) -> str:
        output = outcome.output
        error = outcome.error

        msg = f"{outcome.provider_id} FAILED:\n\n"
        if _present(error):
            msg += f"API Error:\n  {error}\n\n"
        msg += self._format_response(output, error)

        if outcome.failures:
            msg += self.format_assertion_failures(outcome.failures, output)

        if self.verbose:
            raw = json.dumps(outcome.raw, indent=2, default=str)
            msg += f"\nRaw Provider Result (verbose mode):\n  {_indent(raw)}\n"
        return msg

    def format_assertion_failures(self, failures: Sequence[AssertionFailure], output: Any) -> str:
        """List failures; an invalid-JSON failure hides the rest."""
        msg = "Failures:\n"
        json_failure = next((f for f in failures if f.kind is AssertionKind.IS_JSON), None)
        if json_failure is not None:
            return msg + self.format_assertion_failure(json_failure, output)

        for failure in failures:
            msg += self.format_assertion_failure(failure, output)
        return msg

    def format_assertion_failure(self, failure: AssertionFailure, output: Any) -> str:
        kind = failure.kind
        handler = self._handlers.get(kind) if kind is not None else None
        if handler is None:
            return f"  ✗ {failure.type} assertion failed\n"
        return handler(failure, output)

    def _format_response(self, output: Any, error: Optional[str]) -> str:
        if _present(output):
            return f"Response:\n  {_indent(_as_text(output))}\n\n"
        if not _present(error):
            return "No response received from provider\n\n"
        return ""

    def _format_contains(self, failure: AssertionFailure, output: Any) -> str:
        return f"  ✗ includes({_inspect(failure.value)}) - not found in response\n"

    def _format_regex(self, failure: AssertionFailure, output: Any) -> str:
        return f"  ✗ matches(/{failure.value}/) - pattern not found\n"

    def _format_equals(self, failure: AssertionFailure, output: Any) -> str:
        return f"  ✗ equals({_inspect(failure.value)}) - response does not match\n"

    def _format_invalid_json(self, failure: AssertionFailure, output: Any) -> str:
        msg = "  ✗ response is not valid JSON\n"
        if _present(output):
            text = _as_text(output)
            snippet = f"{text[:SNIPPET_LIMIT]}..." if len(text) > SNIPPET_LIMIT else text
            msg += f"    Output: {_inspect(snippet)}\n"
        return msg

    def _format_javascript(self, failure: AssertionFailure, output: Any) -> str:
        parsed = parse_json_assertion(str(failure.value or ""))
        if parsed is None:
            return "  ✗ javascript assertion failed\n"

        found, actual = extract_json_value(output, parsed["key"], parsed["strips_fences"])
        return (
            f"  ✗ json_includes(key={_inspect(parsed['key'])})\n"
            f"    Expected: {_inspect(parsed['expected'])}\n"
            f"    Actual: {_inspect(actual) if found else MISSING}\n"
        )

    def _format_rubric(self, failure: AssertionFailure, output: Any) -> str:
        score = failure.score or 0
        threshold = failure.threshold if failure.threshold is not None else 0.5

        msg = f"  ✗ rubric (score: {round(score, 2)}/{threshold})\n"
        if score >= threshold:
            msg += "      Note: Score meets threshold but one or more criteria failed\n"
            msg += "      Promptfoo requires ALL criteria to pass, not just the aggregate score\n"

        if not self.verbose:
            return msg

        if _present(failure.value):
            msg += "\n    Rubric criteria:\n"
            for line in str(failure.value).split("\n"):
                if line.strip():
                    msg += f"      {line}\n"

        if _present(failure.reason):
            msg += "\n    Judge feedback:\n"
            for line in str(failure.reason).split("\n"):
                msg += f"      {line}\n"

        if failure.named_scores:
            msg += "\n    Named scores:\n"
            for name, value in failure.named_scores.items():
                msg += f"      {name}: {value}\n"

        return msg + "\n"
