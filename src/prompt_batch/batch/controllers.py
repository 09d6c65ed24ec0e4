"""Controllers for batch CLI commands."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from prompt_batch.batch.backend import ItemProcessor, ScriptProcessor
from prompt_batch.batch.discovery import discover_items
from prompt_batch.batch.models import BatchSummary, JobStatus, QualityIssue
from prompt_batch.batch.preflight import run_preflight
from prompt_batch.batch.quality import QualityChecker
from prompt_batch.batch.recorder import OutputRecorder, create_output_dir
from prompt_batch.batch.runner import BatchJobRunner
from prompt_batch.config import Settings
from prompt_batch.errors import ValidationError

logger = logging.getLogger(__name__)

# Lets the script processor kill its own child before the runner gives up on it.
TERMINATION_GRACE_SECONDS = 5.0

_STATUS_LABELS = {
    JobStatus.SUCCESS: "ok",
    JobStatus.FAILED: "failed",
    JobStatus.TIMED_OUT: "timeout",
}


@dataclass(slots=True)
class BatchRunCommand:
    """CLI input for one batch run. ``None`` keeps the environment setting."""

    model: str | None = None
    batch_size: int | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    prompt_filter: str | None = None
    skip_validation: bool | None = None
    prompts_dir: Path | None = None
    script_path: Path | None = None
    output_root: Path | None = None
    timeout_seconds: float | None = None
    delay_seconds: float | None = None
    command_template: str | None = None
    require_api_key: bool = True
    fail_on_error: bool = False


@dataclass(slots=True)
class BatchListCommand:
    """CLI input for prompt listing."""

    prompts_dir: Path | None = None
    prompt_filter: str | None = None


@dataclass(slots=True)
class BatchRunResult:
    """Run report to render in CLI."""

    lines: list[str]
    success: bool
    summary: BatchSummary | None = None
    output_dir: Path | None = None


class BatchCliController:
    """Coordinates pre-flight, sequential execution, quality check, and reporting."""

    def __init__(
        self,
        *,
        processor_factory: Callable[[Settings, Path], ItemProcessor] = ScriptProcessor,
        sleep: Callable[[float], None] | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self._processor_factory = processor_factory
        self._sleep = sleep
        self._now = now

    def run(self, command: BatchRunCommand) -> BatchRunResult:
        settings = _apply_overrides(Settings.from_env(), command)
        settings.validate()
        items = run_preflight(settings, require_api_key=command.require_api_key)

        output_dir = create_output_dir(settings.output_root, self._now())
        recorder = OutputRecorder(settings=settings, output_dir=output_dir, now=self._now)
        lines = [
            "Batch run:",
            f"model={settings.generation.model}",
            f"temperature={settings.generation.temperature}",
            f"max_tokens={settings.generation.max_tokens}",
            f"prompt_filter={settings.generation.prompt_filter!r}",
            f"items={len(items)}",
            f"output_dir={output_dir}",
        ]

        stop_event = threading.Event()
        runner_kwargs = {} if self._sleep is None else {"sleep": self._sleep}
        runner = BatchJobRunner(
            cancel_requested=stop_event.is_set,
            on_result=recorder.record,
            **runner_kwargs,
        )
        with _stop_on_signals(stop_event):
            summary = runner.run(
                items,
                self._processor_factory(settings, output_dir),
                settings.runner.timeout_seconds + TERMINATION_GRACE_SECONDS,
                settings.runner.delay_seconds,
            )

        if not settings.quality.skip_validation:
            summary = QualityChecker(settings.quality.min_bytes).apply(summary)
        report_path = recorder.finalize(summary)

        for result in summary.results:
            line = f"  {_STATUS_LABELS[result.status]:<7} {result.item_id}"
            if result.error:
                line += f"  ({result.failure_class.value if result.failure_class else 'error'}) "
                line += result.error
            lines.append(line)
        lines.extend(
            [
                f"Processing complete: {summary.success_count} successes, "
                f"{summary.error_count} errors",
                f"Quality check: empty={len(summary.flags_for(QualityIssue.EMPTY))} "
                f"short={len(summary.flags_for(QualityIssue.SHORT))}"
                if not settings.quality.skip_validation
                else "Quality check: skipped",
                f"Report: {report_path}",
            ],
        )
        if recorder.samples:
            lines.append("Preview:")
            lines.extend(
                f"  {sample.item_id}: {_truncate(sample.excerpt)}" for sample in recorder.samples
            )
        if summary.cancelled:
            lines.append("Batch cancelled before all items were processed.")

        success = not summary.cancelled and not (command.fail_on_error and summary.error_count)
        return BatchRunResult(lines=lines, success=success, summary=summary, output_dir=output_dir)

    def list_items(self, command: BatchListCommand) -> list[str]:
        settings = Settings.from_env()
        prompts_dir = command.prompts_dir or settings.prompts_dir
        pattern = (
            command.prompt_filter
            if command.prompt_filter is not None
            else settings.generation.prompt_filter
        )
        if not prompts_dir.is_dir():
            raise ValidationError(f"Prompts directory not found: {prompts_dir}")

        items = discover_items(prompts_dir, pattern)
        lines = [f"Prompt files matching {pattern!r}: {len(items)}"]
        lines.extend(f"  {item.item_id}  {item.input_path}" for item in items)
        return lines


def _apply_overrides(settings: Settings, command: BatchRunCommand) -> Settings:
    generation = settings.generation
    if command.model is not None:
        generation.model = command.model
    if command.batch_size is not None:
        generation.batch_size = command.batch_size
    if command.temperature is not None:
        generation.temperature = command.temperature
    if command.max_tokens is not None:
        generation.max_tokens = command.max_tokens
    if command.prompt_filter is not None:
        generation.prompt_filter = command.prompt_filter
    if command.skip_validation is not None:
        settings.quality.skip_validation = command.skip_validation
    if command.prompts_dir is not None:
        settings.prompts_dir = command.prompts_dir
    if command.script_path is not None:
        settings.script_path = command.script_path
    if command.output_root is not None:
        settings.output_root = command.output_root
    if command.timeout_seconds is not None:
        settings.runner.timeout_seconds = command.timeout_seconds
    if command.delay_seconds is not None:
        settings.runner.delay_seconds = command.delay_seconds
    if command.command_template is not None:
        settings.runner.command_template = command.command_template
    return settings


@contextmanager
def _stop_on_signals(stop_event: threading.Event) -> Iterator[None]:
    """Request a stop between items on SIGINT/SIGTERM."""

    def _handler(signum: int, _: object | None) -> None:
        logger.warning("Received %s, stopping after current item", signal.Signals(signum).name)
        stop_event.set()

    installed: dict[int, object] = {}
    try:
        for signum in (signal.SIGINT, signal.SIGTERM):
            installed[signum] = signal.getsignal(signum)
            signal.signal(signum, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        pass

    try:
        yield
    finally:
        for signum, original in installed.items():
            try:
                signal.signal(signum, original)  # type: ignore[arg-type]
            except ValueError:
                pass


def _truncate(value: str, *, limit: int = 80) -> str:
    compact = value.strip().replace("\n", " ")
    if len(compact) <= limit:
        return compact
    return compact[:limit] + "..."
