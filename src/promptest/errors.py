"""Exception types raised by promptest."""

from __future__ import annotations


class PromptestError(Exception):
    """Base class for all promptest errors."""


class ConfigError(PromptestError):
    """Raised when a configuration document cannot be compiled.

    This is raised when a provider entry is neither a string identifier
    nor a mapping, or when ``PROMPTFOO_TIMEOUT`` is not a number.
    """


class ExecutionError(PromptestError):
    """Raised when the promptfoo process itself misbehaves.

    Covers unparsable output files, a missing executable and timeouts.
    The captured streams are kept for diagnostics.
    """

    def __init__(self, message: str, stdout: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class EvaluationError(ExecutionError):
    """Raised when promptfoo exited unsuccessfully without writing any output."""


class PromptNotFoundError(PromptestError):
    """Raised when a prompt file cannot be located."""


class LoadError(PromptestError):
    """Raised when a suite file cannot be loaded or is invalid."""


class PromptAssertionError(AssertionError):
    """Raised when one or more providers fail the declared assertions.

    The message is the full formatted failure report.
    """
