"""Config compiler — turns prompt text, providers and assertions into a promptfoo config."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

import yaml

from promptest.assertions import FENCE_STRIP_EXPR
from promptest.errors import ConfigError
from promptest.models import Assertion

logger = logging.getLogger(__name__)

ProviderSpec = Union[str, Mapping[str, Any]]

TRANSFORM_KEY = "transformResponse"
FENCE_STRIP_TRANSFORM = f"typeof output === 'string' ? {FENCE_STRIP_EXPR} : output"

_SINGLE_BRACE = re.compile(r"(?<!\{)\{(\w+)\}(?!\})")


def prepare_prompt(
    prompt_text: str, vars: Mapping[Any, Any], pre_render: bool = False
) -> Tuple[str, Dict[Any, Any]]:
    """Convert ``{var}`` placeholders to ``{{var}}`` and optionally substitute them.

    Returns the prompt text and the variables promptfoo should still render.
    With ``pre_render`` every variable is substituted here, so none are left.
    """
    text = _SINGLE_BRACE.sub(r"{{\1}}", prompt_text)
    if not pre_render:
        return text, dict(vars)

    for key, value in vars.items():
        placeholder = re.compile(r"\{\{\s*" + re.escape(str(key)) + r"\s*\}\}")
        text = placeholder.sub(lambda _m, v=str(value): v, text)
    return text, {}


def wrap_providers(providers: Any) -> List[Any]:
    if providers is None:
        return []
    if isinstance(providers, (list, tuple)):
        return list(providers)
    return [providers]


def stringify_keys(value: Any) -> Any:
    """Recursively convert mapping keys to strings."""
    if isinstance(value, Mapping):
        return {str(k): stringify_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [stringify_keys(v) for v in value]
    return value


def normalize_provider(provider: Any, force_json: bool = False) -> ProviderSpec:
    """Normalize one provider entry for the config document.

    Raises:
        ConfigError: If the entry is neither a string nor a mapping.
    """
    if isinstance(provider, str):
        if force_json:
            logger.warning(
                "force_json has no effect on bare provider %r; "
                "use {'id': %r, 'config': {}} to strip code fences", provider, provider,
            )
        return provider

    if not isinstance(provider, Mapping):
        raise ConfigError(
            f"Provider must be a string or a mapping, got {type(provider).__name__}: {provider!r}"
        )

    normalized = stringify_keys(provider)
    if force_json:
        config = normalized.get("config") or {}
        config.setdefault(TRANSFORM_KEY, FENCE_STRIP_TRANSFORM)
        normalized["config"] = config
    return normalized


def build_config(
    prompt_text: str,
    vars: Mapping[Any, Any],
    providers: Iterable[Any],
    assertions: Iterable[Union[Assertion, Mapping[str, Any]]],
    output_path: str,
    force_json: bool = False,
) -> Dict[str, Any]:
    """Assemble the promptfoo configuration document. Performs no I/O."""
    normalized = [normalize_provider(p, force_json) for p in providers]
    records = [a.to_dict() if isinstance(a, Assertion) else dict(a) for a in assertions]

    return {
        "prompts": [prompt_text],
        "providers": normalized,
        "tests": [
            {
                "vars": stringify_keys(dict(vars)),
                "assert": records,
            }
        ],
        "outputPath": output_path,
    }


def dump_config(config: Mapping[str, Any]) -> str:
    return yaml.safe_dump(dict(config), sort_keys=False, allow_unicode=True)
