"""Sequential batch execution over prompt files.

The runner knows nothing about prompts or APIs: it takes ordered items and a
processor callable, bounds each call with a timeout, pauses between items,
and records exactly one result per item. Discovery, pre-flight checks, the
subprocess processor, and output files are layered around it.
"""

from prompt_batch.batch.models import (
    BatchSummary,
    FailureClass,
    Item,
    JobResult,
    JobStatus,
    QualityFlag,
    QualityIssue,
)
from prompt_batch.batch.quality import QualityChecker
from prompt_batch.batch.runner import BatchJobRunner

__all__ = [
    "BatchJobRunner",
    "BatchSummary",
    "FailureClass",
    "Item",
    "JobResult",
    "JobStatus",
    "QualityChecker",
    "QualityFlag",
    "QualityIssue",
]
