"""Heuristic quality flags for successful outputs."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from prompt_batch.batch.models import BatchSummary, JobOutput, QualityFlag, QualityIssue

DEFAULT_MIN_BYTES = 50


class QualityChecker:
    """Flag empty and suspiciously short outputs. Pure over the summary."""

    def __init__(self, min_bytes: int = DEFAULT_MIN_BYTES) -> None:
        if min_bytes < 0:
            raise ValueError(f"min_bytes must be >= 0, got {min_bytes}")
        self.min_bytes = min_bytes

    def check(self, summary: BatchSummary) -> list[QualityFlag]:
        flags: list[QualityFlag] = []
        for result in summary.results:
            if not result.succeeded:
                continue
            size = output_size_bytes(result.output)
            if size == 0:
                flags.append(QualityFlag(result.item_id, QualityIssue.EMPTY, size))
            elif size < self.min_bytes:
                flags.append(QualityFlag(result.item_id, QualityIssue.SHORT, size))
        return flags

    def apply(self, summary: BatchSummary) -> BatchSummary:
        """Return a copy of ``summary`` carrying freshly computed flags."""

        return replace(summary, quality_flags=tuple(self.check(summary)))


def output_size_bytes(output: JobOutput | None) -> int:
    if output is None:
        return 0
    if isinstance(output, bytes):
        return len(output)
    if isinstance(output, str):
        return len(output.encode("utf-8"))
    path = Path(output)
    if not path.exists():
        return 0
    return path.stat().st_size
