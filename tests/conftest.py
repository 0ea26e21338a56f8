"""Shared fixtures for promptest tests."""

from __future__ import annotations

import os
import stat
import sys

import pytest

from promptest.configuration import Configuration, reset_configuration, set_configuration

FAKE_PROMPTFOO = os.path.join(os.path.dirname(__file__), "helpers", "fake_promptfoo.py")


@pytest.fixture(autouse=True)
def _isolated_configuration(monkeypatch):
    monkeypatch.delenv("PROMPTFOO_EXECUTABLE", raising=False)
    monkeypatch.delenv("PROMPTFOO_TIMEOUT", raising=False)
    monkeypatch.delenv("DEBUG_PROMPT_TEST", raising=False)
    monkeypatch.delenv("FAKE_PROMPTFOO_MODE", raising=False)
    reset_configuration()
    yield
    monkeypatch.undo()
    reset_configuration()


@pytest.fixture
def fake_promptfoo(tmp_path):
    """Install the fake promptfoo executable as the configured one."""
    script = tmp_path / "bin" / "promptfoo"
    script.parent.mkdir()
    script.write_text(
        f"#!{sys.executable}\n"
        "import runpy, sys\n"
        f"sys.path.insert(0, {os.path.dirname(FAKE_PROMPTFOO)!r})\n"
        f"runpy.run_path({FAKE_PROMPTFOO!r}, run_name='__main__')\n"
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    configuration = Configuration(promptfoo_executable=str(script), root_path=str(tmp_path))
    set_configuration(configuration)
    return configuration
