"""Subprocess-based processor running an external generation script per item."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import IO

from prompt_batch.batch.backend.base import GenerationRequest
from prompt_batch.batch.models import Item
from prompt_batch.config import Settings, render_command_template
from prompt_batch.errors import ItemFailure, ItemTimeout

logger = logging.getLogger(__name__)

API_KEY_ENV = "GEMINI_API_KEY"
TIMEOUT_EXIT_CODE = 124
_STDERR_TAIL_CHARS = 400


class ScriptProcessor:
    """Run the configured command template once per item.

    The credential is injected into the child environment from ``Settings``;
    an inherited ``GEMINI_API_KEY`` is never forwarded implicitly.
    """

    def __init__(
        self,
        settings: Settings,
        output_dir: Path,
        *,
        python_executable: str | None = None,
        poll_interval_seconds: float = 0.1,
    ) -> None:
        self.settings = settings
        self.output_dir = output_dir
        self.python_executable = python_executable or sys.executable
        self.poll_interval_seconds = poll_interval_seconds

    def __call__(self, item: Item) -> Path:
        request = self.build_request(item)
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        run_args, command_head = _build_run_args(
            command_template=self.settings.runner.command_template,
            values={
                "python": self.python_executable,
                "script": str(self.settings.script_path),
                "model": request.model,
                "temperature": str(request.temperature),
                "max_tokens": str(request.max_tokens),
                "input": str(request.input_path),
                "output": str(request.output_path),
            },
        )

        try:
            with (
                tempfile.TemporaryFile("w+", encoding="utf-8") as stdout_handle,
                tempfile.TemporaryFile("w+", encoding="utf-8") as stderr_handle,
            ):
                exit_code, timed_out = _run_subprocess(
                    run_args=run_args,
                    env=self._child_env(),
                    timeout_seconds=self.settings.runner.timeout_seconds,
                    poll_interval_seconds=self.poll_interval_seconds,
                    stdout_handle=stdout_handle,
                    stderr_handle=stderr_handle,
                )
                stderr_tail = _tail(stderr_handle)
        except FileNotFoundError as error:
            raise ItemFailure(f"Processor command not found: {command_head}") from error
        except OSError as error:
            raise ItemFailure(f"Processor failed to start: {error}") from error

        if timed_out:
            raise ItemTimeout(
                f"{command_head} killed after {self.settings.runner.timeout_seconds}s",
                timeout_seconds=self.settings.runner.timeout_seconds,
            )
        if exit_code != 0:
            detail = f": {stderr_tail}" if stderr_tail else ""
            raise ItemFailure(f"{command_head} exited with code {exit_code}{detail}")
        if not request.output_path.exists():
            raise ItemFailure(
                f"{command_head} exited with code 0 but wrote no output to {request.output_path}",
            )
        logger.debug("Wrote %s", request.output_path)
        return request.output_path

    def build_request(self, item: Item) -> GenerationRequest:
        generation = self.settings.generation
        return GenerationRequest(
            model=generation.model,
            temperature=generation.temperature,
            max_tokens=generation.max_tokens,
            input_path=item.input_path,
            output_path=self.output_dir / f"{item.item_id}.txt",
        )

    def _child_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env.pop(API_KEY_ENV, None)
        if self.settings.api_key:
            env[API_KEY_ENV] = self.settings.api_key
        return env


def _build_run_args(*, command_template: str, values: dict[str, str]) -> tuple[list[str], str]:
    try:
        rendered = render_command_template(command_template, values)
    except ValueError as error:
        raise ItemFailure(f"Processor {error}") from error

    argv = shlex.split(rendered)
    if not argv:
        raise ItemFailure("Processor command template rendered empty command.")
    return argv, argv[0]


def _run_subprocess(  # noqa: PLR0913
    *,
    run_args: list[str],
    env: dict[str, str],
    timeout_seconds: float,
    poll_interval_seconds: float,
    stdout_handle: IO[str],
    stderr_handle: IO[str],
) -> tuple[int, bool]:
    process = subprocess.Popen(  # noqa: S603
        run_args,
        env=env,
        stdout=stdout_handle,
        stderr=stderr_handle,
        text=True,
    )
    start_monotonic = time.monotonic()

    while True:
        returncode = process.poll()
        if returncode is not None:
            return returncode, False

        if time.monotonic() - start_monotonic >= timeout_seconds:
            _terminate_process(process)
            return TIMEOUT_EXIT_CODE, True

        time.sleep(poll_interval_seconds)


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        try:
            process.wait(timeout=2)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s did not exit after kill", process.pid)


def _tail(handle: IO[str], *, limit: int = _STDERR_TAIL_CHARS) -> str:
    handle.flush()
    handle.seek(0)
    compact = handle.read().strip().replace("\n", " ")
    if len(compact) <= limit:
        return compact
    return "..." + compact[-limit:]
