"""Processor interface for batch item execution."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from prompt_batch.batch.models import Item, JobOutput


@dataclass(slots=True)
class GenerationRequest:
    """Parameters passed to the external generator for one item."""

    model: str
    temperature: float
    max_tokens: int
    input_path: Path
    output_path: Path


class ItemProcessor(Protocol):
    """Protocol implemented by per-item processors."""

    def __call__(self, item: Item) -> JobOutput:
        """Process one item and return its output reference, or raise."""
