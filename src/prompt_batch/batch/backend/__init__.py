"""Per-item processor implementations."""

from prompt_batch.batch.backend.base import GenerationRequest, ItemProcessor
from prompt_batch.batch.backend.script_backend import ScriptProcessor

__all__ = [
    "GenerationRequest",
    "ItemProcessor",
    "ScriptProcessor",
]
