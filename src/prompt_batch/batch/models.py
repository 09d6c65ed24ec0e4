"""Domain models for batch execution and its summary."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class JobStatus(str, Enum):
    """Terminal per-item outcome."""

    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class FailureClass(str, Enum):
    """Normalized failure classes used in reports."""

    TIMEOUT = "timeout"
    BACKEND_TRANSIENT = "backend_transient"
    BACKEND_NON_RETRYABLE = "backend_non_retryable"
    BILLING_OR_QUOTA = "billing_or_quota"
    ACCESS_OR_AUTH = "access_or_auth"
    MODEL_NOT_AVAILABLE = "model_not_available"


class QualityIssue(str, Enum):
    """Heuristic output quality annotations."""

    EMPTY = "empty"
    SHORT = "short"


@dataclass(frozen=True, slots=True)
class Item:
    """One unit of work: a single prompt file."""

    item_id: str
    input_path: Path

    @classmethod
    def from_path(cls, path: Path) -> Item:
        return cls(item_id=path.stem, input_path=path)


JobOutput = Path | str | bytes


@dataclass(frozen=True, slots=True)
class JobResult:
    """Outcome of processing one item.

    ``duration_seconds`` is excluded from equality so that two runs over the
    same inputs with a deterministic processor compare equal.
    """

    item_id: str
    status: JobStatus
    output: JobOutput | None = None
    error: str | None = None
    failure_class: FailureClass | None = None
    duration_seconds: float = field(default=0.0, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCESS


@dataclass(frozen=True, slots=True)
class QualityFlag:
    """Quality annotation attached to one successful result."""

    item_id: str
    issue: QualityIssue
    size_bytes: int


@dataclass(frozen=True, slots=True)
class BatchSummary:
    """Ordered results of one batch run with aggregate counts."""

    results: tuple[JobResult, ...] = ()
    quality_flags: tuple[QualityFlag, ...] = ()
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results if result.succeeded)

    @property
    def error_count(self) -> int:
        return self.total - self.success_count

    @property
    def timed_out_count(self) -> int:
        return sum(1 for result in self.results if result.status is JobStatus.TIMED_OUT)

    def flags_for(self, issue: QualityIssue) -> tuple[QualityFlag, ...]:
        return tuple(flag for flag in self.quality_flags if flag.issue is issue)
