"""Output directory layout: per-item output and error files plus the run report."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from prompt_batch.batch.models import BatchSummary, Item, JobOutput, JobResult
from prompt_batch.batch.quality import output_size_bytes
from prompt_batch.config import Settings

logger = logging.getLogger(__name__)

REPORT_FILENAME = "PROCESSING_REPORT.json"
ERROR_SUFFIX = "_ERROR.txt"
SAMPLE_LIMIT = 3
SAMPLE_BYTES = 200


def create_output_dir(root: Path, now: datetime) -> Path:
    """Create ``output_<YYYYmmdd_HHMMSS>`` under ``root``."""

    output_dir = root / f"output_{now.strftime('%Y%m%d_%H%M%S')}"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def write_json(path: Path, payload: dict[str, Any]) -> None:
    """Persist JSON payload using deterministic formatting."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), "utf-8")


@dataclass(slots=True, frozen=True)
class OutputSample:
    """Leading bytes of one successful output, decoded for display."""

    item_id: str
    excerpt: str


class OutputRecorder:
    """Write error files as items fail, then footers and the report at the end.

    Footers are appended in ``finalize`` so that quality flags are computed on
    the generated text alone.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        output_dir: Path,
        now: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self.settings = settings
        self.output_dir = output_dir
        self._now = now
        self._sources: dict[str, Path] = {}
        self.samples: list[OutputSample] = []

    def record(self, item: Item, result: JobResult) -> None:
        self._sources[item.item_id] = item.input_path
        if result.succeeded:
            return
        error_path = self.output_dir / f"{item.item_id}{ERROR_SUFFIX}"
        error_path.write_text(
            f"Error processing {item.input_path} at {self._timestamp()}\n"
            f"Status: {result.status.value}\n"
            f"Failure class: {result.failure_class.value if result.failure_class else 'unknown'}\n"
            f"{result.error}\n",
            "utf-8",
        )

    def finalize(self, summary: BatchSummary) -> Path:
        """Append metadata footers to outputs and write the aggregate report.

        Samples are taken before footers are appended; each output file gets
        at most one footer.
        """

        self.samples = _collect_samples(summary)
        footed: set[Path] = set()
        for result in summary.results:
            output = result.output
            if not (result.succeeded and isinstance(output, Path) and output.is_file()):
                continue
            if output in footed:
                continue
            footed.add(output)
            self._append_footer(result)

        report_path = self.output_dir / REPORT_FILENAME
        write_json(report_path, self._report_payload(summary))
        logger.info("Report written to %s", report_path)
        return report_path

    def _append_footer(self, result: JobResult) -> None:
        generation = self.settings.generation
        source = self._sources.get(result.item_id, "")
        with result.output.open("a", encoding="utf-8") as handle:  # type: ignore[union-attr]
            handle.write(
                "\n---\n"
                f"Generated: {self._timestamp()}\n"
                f"Model: {generation.model}\n"
                f"Temperature: {generation.temperature}\n"
                f"Source: {source}\n",
            )

    def _report_payload(self, summary: BatchSummary) -> dict[str, Any]:
        generation = self.settings.generation
        return {
            "generated_at": self._timestamp(),
            "model": generation.model,
            "temperature": generation.temperature,
            "max_tokens": generation.max_tokens,
            "batch_size": generation.batch_size,
            "prompt_filter": generation.prompt_filter,
            "cancelled": summary.cancelled,
            "statistics": {
                "total": summary.total,
                "success_count": summary.success_count,
                "error_count": summary.error_count,
                "timed_out_count": summary.timed_out_count,
            },
            "quality_checked": not self.settings.quality.skip_validation,
            "quality_flags": [
                {"item_id": flag.item_id, "issue": flag.issue.value, "size_bytes": flag.size_bytes}
                for flag in summary.quality_flags
            ],
            "results": [_result_payload(result) for result in summary.results],
            "samples": [
                {"item_id": sample.item_id, "excerpt": sample.excerpt} for sample in self.samples
            ],
            "output_files": sorted(
                path.name
                for path in self.output_dir.iterdir()
                if path.is_file() and path.name != REPORT_FILENAME
            ),
        }

    def _timestamp(self) -> str:
        return self._now().isoformat(timespec="seconds")


def _result_payload(result: JobResult) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "item_id": result.item_id,
        "status": result.status.value,
        "duration_seconds": round(result.duration_seconds, 3),
    }
    if result.succeeded:
        payload["output"] = (
            str(result.output) if isinstance(result.output, Path) else None
        )
        payload["output_bytes"] = output_size_bytes(result.output)
    else:
        payload["error"] = result.error
        payload["failure_class"] = result.failure_class.value if result.failure_class else None
    return payload


def _collect_samples(summary: BatchSummary) -> list[OutputSample]:
    samples: list[OutputSample] = []
    for result in summary.results:
        if len(samples) >= SAMPLE_LIMIT:
            break
        if not result.succeeded:
            continue
        head = _read_head(result.output)
        if head is not None:
            samples.append(OutputSample(result.item_id, head.decode("utf-8", errors="replace")))
    return samples


def _read_head(output: JobOutput | None, *, limit: int = SAMPLE_BYTES) -> bytes | None:
    if isinstance(output, Path):
        if not output.is_file():
            return None
        with output.open("rb") as handle:
            return handle.read(limit)
    if isinstance(output, str):
        return output.encode("utf-8")[:limit]
    if isinstance(output, bytes):
        return output[:limit]
    return None
