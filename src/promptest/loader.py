"""YAML suite loader for promptest."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from promptest.assertions import AssertionBuilder
from promptest.errors import LoadError
from promptest.models import Assertion

VALID_ASSERTIONS = {"includes", "matches", "equals", "json_includes", "javascript", "rubric"}


@dataclass
class PromptCase:
    """A single set of variables checked against the suite prompt."""
    name: str
    vars: Dict[str, Any]
    assertions: List[Assertion]
    providers: Optional[Any] = None
    tags: List[str] = field(default_factory=list)
    force_json: bool = False


@dataclass
class PromptSuite:
    """A prompt plus the cases evaluated against it."""
    name: str
    prompt: str
    providers: Any
    cases: List[PromptCase]
    force_json: bool = False
    pre_render: bool = False


def _apply_assertion(builder: AssertionBuilder, entry: Any, where: str) -> None:
    if not isinstance(entry, dict) or len(entry) != 1:
        raise LoadError(f"{where}: each assertion must be a mapping with a single key")

    (name, arg), = entry.items()
    if name not in VALID_ASSERTIONS:
        raise LoadError(
            f"{where}: invalid assertion '{name}'. "
            f"Valid assertions: {', '.join(sorted(VALID_ASSERTIONS))}"
        )

    if name == "json_includes":
        if not isinstance(arg, dict) or "key" not in arg or "value" not in arg:
            raise LoadError(f"{where}: json_includes needs 'key' and 'value'")
        builder.json_includes(arg["key"], arg["value"])
    elif name == "rubric":
        if isinstance(arg, dict):
            if "criteria" not in arg:
                raise LoadError(f"{where}: rubric needs 'criteria'")
            builder.rubric(arg["criteria"], threshold=float(arg.get("threshold", 0.5)))
        else:
            builder.rubric(str(arg))
    else:
        getattr(builder, name)(arg)


def _read_prompt(data: Dict[str, Any], base_dir: Path) -> str:
    if "prompt_text" in data:
        return str(data["prompt_text"])

    prompt_path = base_dir / str(data["prompt"])
    if not prompt_path.exists():
        raise LoadError(f"Prompt file not found: {prompt_path}")
    return prompt_path.read_text(encoding="utf-8")


def load_suite(path: str) -> PromptSuite:
    """Load a PromptSuite from a YAML file.

    Args:
        path: Path to the YAML file. ``prompt`` paths are relative to it.

    Returns:
        A validated PromptSuite.

    Raises:
        LoadError: If the file is missing, invalid YAML, or fails validation.
    """
    filepath = Path(path)
    if not filepath.exists():
        raise LoadError(f"Suite file not found: {path}")

    try:
        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise LoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise LoadError(f"Suite file must contain a YAML mapping, got {type(data).__name__}")

    # Required fields
    if "name" not in data:
        raise LoadError("Suite missing required field: 'name'")
    if "prompt" not in data and "prompt_text" not in data:
        raise LoadError("Suite missing required field: 'prompt' or 'prompt_text'")
    if "cases" not in data:
        raise LoadError("Suite missing required field: 'cases'")
    if not isinstance(data["cases"], list) or len(data["cases"]) == 0:
        raise LoadError("Suite 'cases' must be a non-empty list")

    force_json = bool(data.get("force_json", False))

    cases = []
    for i, case_data in enumerate(data["cases"]):
        if not isinstance(case_data, dict):
            raise LoadError(f"Case {i} must be a mapping")
        if "name" not in case_data:
            raise LoadError(f"Case {i} missing required field: 'name'")

        where = f"Case '{case_data['name']}'"
        case_vars = case_data.get("vars") or {}
        if not isinstance(case_vars, dict):
            raise LoadError(f"{where}: 'vars' must be a mapping")

        builder = AssertionBuilder()
        if case_data.get("force_json", force_json):
            builder.force_json()
        for entry in case_data.get("assert") or []:
            _apply_assertion(builder, entry, where)

        cases.append(PromptCase(
            name=case_data["name"],
            vars=case_vars,
            assertions=builder.to_assertions(),
            providers=case_data.get("providers"),
            tags=case_data.get("tags", []),
            force_json=builder.is_force_json(),
        ))

    return PromptSuite(
        name=data["name"],
        prompt=_read_prompt(data, filepath.parent),
        providers=data.get("providers", "echo"),
        cases=cases,
        force_json=force_json,
        pre_render=bool(data.get("pre_render", False)),
    )
