from __future__ import annotations

import subprocess
from pathlib import Path

import allure
import pytest

from prompt_batch.batch.backend import ScriptProcessor, echo_agent
from prompt_batch.batch.backend.script_backend import _build_run_args, _terminate_process
from prompt_batch.batch.models import Item
from prompt_batch.config import GenerationSettings, RunnerSettings, Settings
from prompt_batch.errors import ItemFailure, ItemTimeout

ECHO_AGENT_SCRIPT = Path(echo_agent.__file__)

pytestmark = [
    allure.epic("Batch Runtime"),
    allure.feature("Script Processor"),
]


def _processor(tmp_path: Path, **runner_overrides) -> ScriptProcessor:
    settings = Settings(
        script_path=ECHO_AGENT_SCRIPT,
        api_key="secret",
        generation=GenerationSettings(model="gemini-1.5-flash", temperature=0.3, max_tokens=99),
        runner=RunnerSettings(**{"timeout_seconds": 30.0, **runner_overrides}),
    )
    return ScriptProcessor(settings, tmp_path / "out", poll_interval_seconds=0.02)


def _item(tmp_path: Path, name: str, text: str) -> Item:
    path = tmp_path / "prompts" / f"{name}.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, "utf-8")
    return Item.from_path(path)


def test_script_processor_writes_output_and_forwards_parameters(
    tmp_path: Path,
    monkeypatch,
) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "ambient-should-not-leak")
    processor = _processor(tmp_path)

    output = processor(_item(tmp_path, "hello", "Say hello to the world"))

    assert output == tmp_path / "out" / "hello.txt"
    text = output.read_text("utf-8")
    assert text.startswith("[gemini-1.5-flash t=0.3 max=99 key=set]")
    assert "Say hello to the world" in text


def test_script_processor_does_not_forward_ambient_api_key(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "ambient")
    processor = _processor(tmp_path)
    processor.settings.api_key = None

    output = processor(_item(tmp_path, "nokey", "anything"))

    assert "key=unset" in output.read_text("utf-8")


def test_script_processor_raises_item_failure_with_stderr(tmp_path: Path) -> None:
    processor = _processor(tmp_path)

    with pytest.raises(ItemFailure, match="exited with code 1: quota exceeded"):
        processor(_item(tmp_path, "broken", "FAIL: quota exceeded"))

    assert not (tmp_path / "out" / "broken.txt").exists()


def test_script_processor_kills_child_on_timeout(tmp_path: Path) -> None:
    processor = _processor(tmp_path, timeout_seconds=0.5)

    with pytest.raises(ItemTimeout, match="killed after 0.5s"):
        processor(_item(tmp_path, "slow", "SLEEP: 30"))


def test_script_processor_requires_output_file(tmp_path: Path) -> None:
    processor = _processor(tmp_path, command_template="{python} -c pass --in {input} {output}")

    with pytest.raises(ItemFailure, match="wrote no output"):
        processor(_item(tmp_path, "silent", "hello"))


def test_script_processor_reports_missing_command(tmp_path: Path) -> None:
    processor = _processor(
        tmp_path,
        command_template="definitely-not-a-real-generator-binary {input} {output}",
    )

    with pytest.raises(ItemFailure, match="command not found"):
        processor(_item(tmp_path, "x", "hello"))


def test_build_run_args_quotes_paths_with_spaces() -> None:
    argv, head = _build_run_args(
        command_template="gen --model {model} --input {input} --output {output}",
        values={
            "model": "gemini-1.5-pro",
            "input": "my prompts/a b.md",
            "output": "out dir/a b.txt",
        },
    )

    assert head == "gen"
    assert argv == [
        "gen",
        "--model",
        "gemini-1.5-pro",
        "--input",
        "my prompts/a b.md",
        "--output",
        "out dir/a b.txt",
    ]


@pytest.mark.parametrize(
    ("template", "match"),
    [
        ("", "empty"),
        ("gen {input}", "must include"),
        ("gen {input} {output} {unknown}", "unsupported command template placeholder"),
        ("gen {} {input} {output}", "malformed command template"),
    ],
)
def test_build_run_args_rejects_bad_templates(template: str, match: str) -> None:
    with pytest.raises(ItemFailure, match=match):
        _build_run_args(command_template=template, values={"input": "a", "output": "b"})


class _StuckProcess:
    """Popen stand-in whose ``wait`` never observes an exit."""

    pid = 4242

    def __init__(self) -> None:
        self.calls: list[str] = []

    def terminate(self) -> None:
        self.calls.append("terminate")

    def kill(self) -> None:
        self.calls.append("kill")

    def wait(self, timeout: float | None = None) -> int:
        self.calls.append("wait")
        raise subprocess.TimeoutExpired(cmd="gen", timeout=timeout or 0)


def test_terminate_process_returns_when_child_survives_kill() -> None:
    process = _StuckProcess()

    _terminate_process(process)  # type: ignore[arg-type]

    assert process.calls == ["terminate", "wait", "kill", "wait"]
