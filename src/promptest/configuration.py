"""Process-wide configuration: where to find promptfoo and how long to wait for it."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Optional

from promptest.errors import ConfigError

NPX_FALLBACK = "npx promptfoo"


def _env_timeout() -> Optional[float]:
    raw = os.environ.get("PROMPTFOO_TIMEOUT", "")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"PROMPTFOO_TIMEOUT must be a number of seconds, got {raw!r}") from exc


@dataclass
class Configuration:
    """Settings shared by every evaluation in the process.

    ``timeout`` is in seconds; ``None`` waits for promptfoo indefinitely.
    """
    promptfoo_executable: Optional[str] = field(
        default_factory=lambda: os.environ.get("PROMPTFOO_EXECUTABLE") or None
    )
    root_path: str = field(default_factory=os.getcwd)
    timeout: Optional[float] = field(default_factory=_env_timeout)

    def resolve_executable(self) -> str:
        """Resolve the promptfoo executable.

        Priority: configured path > ``node_modules/.bin/promptfoo`` under
        ``root_path`` > ``npx promptfoo``. Resolved on every call.
        """
        if self.promptfoo_executable and _is_executable(self.promptfoo_executable):
            return self.promptfoo_executable

        local_bin = os.path.join(self.root_path, "node_modules", ".bin", "promptfoo")
        if _is_executable(local_bin):
            return local_bin

        return NPX_FALLBACK


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


_configuration: Optional[Configuration] = None


def get_configuration() -> Configuration:
    global _configuration
    if _configuration is None:
        _configuration = Configuration()
    return _configuration


def set_configuration(configuration: Configuration) -> None:
    global _configuration
    _configuration = configuration


def configure(**changes: Any) -> Configuration:
    """Update the process-wide configuration in place and return it."""
    configuration = get_configuration()
    for name, value in changes.items():
        if not hasattr(configuration, name):
            raise AttributeError(f"Unknown configuration option: {name!r}")
        setattr(configuration, name, value)
    return configuration


def reset_configuration() -> Configuration:
    global _configuration
    _configuration = Configuration()
    return _configuration
