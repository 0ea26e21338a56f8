"""Assertion builder — a small DSL for declaring prompt expectations.

Example::

    builder = AssertionBuilder()
    builder.includes("Hello")
    builder.matches(re.compile(r"\\d+"))
    builder.rubric("Response is professional")
    builder.to_promptfoo_assertions()
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Pattern, Union

from promptest.models import Assertion, AssertionKind

# Strips a leading ```/```json fence and a trailing ``` fence, then whitespace.
FENCE_STRIP_EXPR = (
    "output.replace(/^\\s*```(?:json)?\\s*/, '').replace(/\\s*```\\s*$/, '').trim()"
)


def json_parse_expr(force_json: bool = False) -> str:
    """JavaScript expression yielding the parsed output object."""
    source = FENCE_STRIP_EXPR if force_json else "output"
    return f"(typeof output === 'string' ? JSON.parse({source}) : output)"


def json_key_snippet(key: Any, value: Any, force_json: bool = False) -> str:
    """Build the ``json_includes`` predicate.

    The shape ``<parse-expr>[<quoted-key>] === <json-literal>`` is read back
    by the failure formatter, so it must not change independently.
    """
    return f"{json_parse_expr(force_json)}[{json.dumps(str(key))}] === {json.dumps(value)}"


class AssertionBuilder:
    """Accumulates assertions in declaration order."""

    def __init__(self) -> None:
        self._assertions: List[Assertion] = []
        self._force_json = False

    def includes(self, text: str) -> None:
        """String inclusion check."""
        self._assertions.append(Assertion(AssertionKind.CONTAINS, text))

    def matches(self, pattern: Union[str, Pattern[str]]) -> None:
        """Regex check; compiled patterns contribute their source text."""
        source = getattr(pattern, "pattern", pattern)
        self._assertions.append(Assertion(AssertionKind.REGEX, source))

    def equals(self, expected: Any) -> None:
        self._assertions.append(Assertion(AssertionKind.EQUALS, expected))

    def json_includes(self, key: Any, value: Any) -> None:
        """Check that the JSON output has ``key`` equal to ``value``.

        Outside force-JSON mode an ``is-json`` check precedes the predicate.
        """
        if not self._force_json:
            self._assertions.append(Assertion(AssertionKind.IS_JSON))
        snippet = json_key_snippet(key, value, force_json=self._force_json)
        self._assertions.append(Assertion(AssertionKind.JAVASCRIPT, snippet))

    def javascript(self, code: str) -> None:
        """Custom JavaScript predicate, evaluated by promptfoo."""
        self._assertions.append(Assertion(AssertionKind.JAVASCRIPT, code))

    def rubric(self, criteria: str, threshold: float = 0.5) -> None:
        """LLM-as-judge rubric evaluation."""
        self._assertions.append(Assertion(AssertionKind.LLM_RUBRIC, criteria, threshold))

    def force_json(self) -> None:
        """Tolerate markdown code fences around JSON output."""
        self._force_json = True

    def is_force_json(self) -> bool:
        return self._force_json

    def to_assertions(self) -> List[Assertion]:
        return list(self._assertions)

    def to_promptfoo_assertions(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self._assertions]
