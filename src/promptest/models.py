"""Core data models for promptest."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class AssertionKind(str, Enum):
    """Assertion types understood by promptfoo, keyed by their wire name."""

    CONTAINS = "contains"
    REGEX = "regex"
    EQUALS = "equals"
    IS_JSON = "is-json"
    JAVASCRIPT = "javascript"
    LLM_RUBRIC = "llm-rubric"

    @classmethod
    def parse(cls, type_name: Any) -> Optional["AssertionKind"]:
        """Return the kind for a wire name, or None for types promptest never emits."""
        try:
            return cls(type_name)
        except ValueError:
            return None


@dataclass(frozen=True)
class Assertion:
    """A single declared expectation."""
    kind: AssertionKind
    value: Any = None
    threshold: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"type": self.kind.value}
        if self.value is not None:
            record["value"] = self.value
        if self.threshold is not None:
            record["threshold"] = self.threshold
        return record


@dataclass
class RunResult:
    """Outcome of one promptfoo process run."""
    success: bool
    stdout: str = ""
    stderr: str = ""


@dataclass
class FailingProvider:
    """A provider whose result was not successful, with its raw result."""
    id: Optional[str]
    result: Dict[str, Any]


@dataclass
class AssertionFailure:
    """One failing component result from a provider's grading result."""
    type: Optional[str]
    value: Any = None
    threshold: Optional[float] = None
    score: Optional[float] = None
    reason: Optional[str] = None
    named_scores: Dict[str, float] = field(default_factory=dict)

    @property
    def kind(self) -> Optional[AssertionKind]:
        return AssertionKind.parse(self.type)


@dataclass(frozen=True)
class ProviderOutcome:
    """Decoded result of one provider."""
    provider_id: Optional[str]
    success: bool
    output: Any
    error: Optional[str]
    failures: Tuple[AssertionFailure, ...]
    raw: Dict[str, Any]


@dataclass(frozen=True)
class EvaluationResult:
    """Decoded promptfoo output file. Never mutated once built."""
    outcomes: Tuple[ProviderOutcome, ...] = ()

    @property
    def passing(self) -> List[Optional[str]]:
        return [o.provider_id for o in self.outcomes if o.success]

    @property
    def failing(self) -> List[ProviderOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def passed(self) -> bool:
        return not self.failing
