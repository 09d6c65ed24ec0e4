"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of Settings.from_env."""
    for name in list(os.environ):
        if name.startswith("PROMPT_BATCH_") or name == "GEMINI_API_KEY":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def write_prompts(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Create a prompts directory from a {relative_path: text} mapping."""

    def _write(prompts: dict[str, str]) -> Path:
        prompts_dir = tmp_path / "prompts"
        for relative, text in prompts.items():
            path = prompts_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, "utf-8")
        prompts_dir.mkdir(parents=True, exist_ok=True)
        return prompts_dir

    return _write
