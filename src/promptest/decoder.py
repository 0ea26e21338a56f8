"""Decoder — reads pass/fail status and assertion detail out of promptfoo output."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from promptest.models import (
    AssertionFailure,
    EvaluationResult,
    FailingProvider,
    ProviderOutcome,
)


def dig(data: Any, *keys: str) -> Any:
    """Nested lookup that yields None as soon as a level is missing."""
    for key in keys:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def provider_results(output: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return dig(output, "results", "results") or []


def partition_results(
    output: Mapping[str, Any],
) -> Tuple[List[Optional[str]], List[FailingProvider]]:
    """Split provider results into passing ids and failing (id, result) pairs."""
    decoded = decode_output(output)
    failing = [FailingProvider(id=o.provider_id, result=o.raw) for o in decoded.failing]
    return decoded.passing, failing


def extract_output_text(result: Mapping[str, Any]) -> Any:
    """The provider response, as text or an already-parsed object."""
    output = dig(result, "response", "output")
    return output if output is not None else dig(result, "output")


def extract_error(result: Mapping[str, Any]) -> Optional[str]:
    return dig(result, "error") or dig(result, "response", "error")


def extract_assertion_failures(result: Mapping[str, Any]) -> List[AssertionFailure]:
    components = dig(result, "gradingResult", "componentResults") or []
    return [
        AssertionFailure(
            type=dig(component, "assertion", "type"),
            value=dig(component, "assertion", "value"),
            threshold=dig(component, "assertion", "threshold"),
            score=dig(component, "score"),
            reason=dig(component, "reason"),
            named_scores=dig(component, "namedScores") or {},
        )
        for component in components
        if not dig(component, "pass")
    ]


def decode_provider(result: Dict[str, Any]) -> ProviderOutcome:
    return ProviderOutcome(
        provider_id=dig(result, "provider", "id"),
        success=bool(dig(result, "success")),
        output=extract_output_text(result),
        error=extract_error(result),
        failures=tuple(extract_assertion_failures(result)),
        raw=result,
    )


def decode_output(output: Mapping[str, Any]) -> EvaluationResult:
    """Build the read-only decoded view of a promptfoo output document."""
    return EvaluationResult(
        outcomes=tuple(decode_provider(result) for result in provider_results(output))
    )
