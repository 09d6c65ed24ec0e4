"""Error hierarchy for batch runs."""

from __future__ import annotations


class PromptBatchError(RuntimeError):
    """Base class for prompt-batch errors."""


class ValidationError(PromptBatchError):
    """Missing prerequisite detected before a batch starts. Fatal."""


class ItemFailure(PromptBatchError):
    """Processing of one item failed. Recorded, never propagated past the item."""


class ItemTimeout(PromptBatchError):
    """Processing of one item exceeded its time budget."""

    def __init__(self, message: str, *, timeout_seconds: float) -> None:
        super().__init__(message)
        self.timeout_seconds = timeout_seconds
