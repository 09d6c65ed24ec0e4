"""Prompt file discovery."""

from __future__ import annotations

import re
from pathlib import Path

from prompt_batch.batch.models import Item
from prompt_batch.errors import ValidationError

PROMPT_SUFFIXES: frozenset[str] = frozenset({".md", ".mdx"})


def discover_items(prompts_dir: Path, pattern: str = ".*") -> list[Item]:
    """Return prompt items under ``prompts_dir`` whose id matches ``pattern``, sorted by path."""

    try:
        matcher = re.compile(pattern)
    except re.error as error:
        raise ValidationError(f"Invalid prompt filter {pattern!r}: {error}") from error

    paths = sorted(
        path
        for path in prompts_dir.rglob("*")
        if path.is_file() and path.suffix.lower() in PROMPT_SUFFIXES
    )
    return [item for item in map(Item.from_path, paths) if matcher.search(item.item_id)]
