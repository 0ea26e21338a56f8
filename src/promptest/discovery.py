"""Convention-based prompt file discovery.

Maps a test module to the prompt it covers by mirroring the source tree::

    tests/services/greeting/test_welcome.py -> app/services/greeting/welcome.ptmpl

Assign a locator to ``PromptTest.prompt_locator`` to use it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Tuple

from promptest.errors import PromptNotFoundError


@dataclass(frozen=True)
class ConventionLocator:
    """Callable mapping a test file path to its prompt file path."""

    source_dir: str = "app"
    test_dirs: Tuple[str, ...] = ("tests", "test")
    extensions: Tuple[str, ...] = (".ptmpl", ".liquid")

    def candidates(self, test_file: str) -> List[str]:
        directory, filename = os.path.split(os.path.abspath(test_file))
        stem = os.path.splitext(filename)[0]
        if stem.startswith("test_"):
            stem = stem[len("test_"):]
        elif stem.endswith("_test"):
            stem = stem[: -len("_test")]

        # Replace the innermost test directory with the source directory.
        parts = directory.split(os.sep)
        for i in range(len(parts) - 1, -1, -1):
            if parts[i] in self.test_dirs:
                parts[i] = self.source_dir
                break
        source_directory = os.sep.join(parts) or os.sep

        return [os.path.join(source_directory, stem + ext) for ext in self.extensions]

    def __call__(self, test_file: str) -> str:
        for candidate in self.candidates(test_file):
            if os.path.exists(candidate):
                return candidate
        raise PromptNotFoundError(f"Could not find prompt file for {test_file}")
