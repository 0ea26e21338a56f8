"""Runner — executes the promptfoo CLI and reads back its output file."""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
from typing import Any, Dict, List, Optional

from promptest.configuration import Configuration, get_configuration
from promptest.errors import ExecutionError
from promptest.models import RunResult

logger = logging.getLogger(__name__)

DISABLE_TEMPLATING_ENV = "PROMPTFOO_DISABLE_TEMPLATING"


def _text(stream: Any) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


class PromptfooRunner:
    """Runs ``promptfoo eval`` against a config file."""

    def __init__(self, configuration: Optional[Configuration] = None) -> None:
        self.configuration = configuration or get_configuration()

    def execute(
        self,
        config_path: str,
        working_dir: str,
        *,
        pre_render: bool = False,
        show_output: bool = False,
    ) -> RunResult:
        """Run promptfoo and return its success flag and captured streams.

        With ``show_output`` the process writes straight to the terminal and
        the returned streams are empty.

        Raises:
            ExecutionError: If the executable is missing or the configured
                timeout expires.
        """
        env = {**os.environ, **self.build_env(pre_render)}
        cmd = self.build_command(config_path)
        timeout = self.configuration.timeout
        logger.debug("Running %s in %s", shlex.join(cmd), working_dir)

        try:
            if show_output:
                proc = subprocess.run(cmd, cwd=working_dir, env=env, timeout=timeout)
                return RunResult(success=proc.returncode == 0)

            proc = subprocess.run(
                cmd, cwd=working_dir, env=env, timeout=timeout,
                capture_output=True, text=True,
            )
        except FileNotFoundError as exc:
            raise ExecutionError(f"promptfoo executable not found: {cmd[0]!r}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ExecutionError(
                f"promptfoo did not finish within {timeout} seconds",
                stdout=_text(exc.stdout),
                stderr=_text(exc.stderr),
            ) from exc

        return RunResult(success=proc.returncode == 0, stdout=proc.stdout, stderr=proc.stderr)

    def parse_output(self, output_path: str) -> Dict[str, Any]:
        """Parse promptfoo's JSON output file; a missing file yields ``{}``."""
        if not os.path.exists(output_path):
            return {}

        try:
            with open(output_path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise ExecutionError(f"Failed to parse promptfoo output: {exc}") from exc

    def build_env(self, pre_render: bool = False) -> Dict[str, str]:
        return {DISABLE_TEMPLATING_ENV: "true"} if pre_render else {}

    def build_command(self, config_path: str) -> List[str]:
        base_cmd = self.configuration.resolve_executable()
        args = ["eval", "-c", config_path, "--no-cache"]

        if os.path.isfile(base_cmd):
            return [base_cmd] + args
        return shlex.split(base_cmd) + args
