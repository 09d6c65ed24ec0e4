from __future__ import annotations

from pathlib import Path

import allure
import pytest

from prompt_batch.batch.discovery import discover_items
from prompt_batch.batch.models import Item
from prompt_batch.batch.preflight import run_preflight
from prompt_batch.config import RunnerSettings, Settings
from prompt_batch.errors import ValidationError

pytestmark = [
    allure.epic("Batch Runtime"),
    allure.feature("Discovery & Pre-flight"),
]


def _settings(tmp_path: Path, prompts_dir: Path, **overrides) -> Settings:
    script = tmp_path / "gen.py"
    script.write_text("print('ok')\n", "utf-8")
    values = {
        "prompts_dir": prompts_dir,
        "script_path": script,
        "output_root": tmp_path,
        "api_key": "secret",
    }
    values.update(overrides)
    return Settings(**values)


def test_discover_items_is_recursive_sorted_and_ignores_other_files(write_prompts) -> None:
    prompts_dir = write_prompts(
        {
            "b.md": "b",
            "nested/a.mdx": "a",
            "notes.txt": "skip",
            "c.MD": "c",
        },
    )

    items = discover_items(prompts_dir)

    assert [item.item_id for item in items] == ["b", "c", "a"]
    assert items[2] == Item(item_id="a", input_path=prompts_dir / "nested" / "a.mdx")


def test_discover_items_filters_by_item_id_regex(write_prompts) -> None:
    prompts_dir = write_prompts({"intro.md": "", "chapter_1.md": "", "chapter_2.mdx": ""})

    items = discover_items(prompts_dir, r"^chapter_\d$")

    assert [item.item_id for item in items] == ["chapter_1", "chapter_2"]


def test_discover_items_rejects_invalid_regex(write_prompts) -> None:
    prompts_dir = write_prompts({"a.md": ""})
    with pytest.raises(ValidationError, match="Invalid prompt filter"):
        discover_items(prompts_dir, "(")


def test_preflight_returns_filtered_items(tmp_path: Path, write_prompts) -> None:
    prompts_dir = write_prompts({"keep.md": "", "drop.md": ""})
    settings = _settings(tmp_path, prompts_dir)
    settings.generation.prompt_filter = "keep"

    items = run_preflight(settings)

    assert [item.item_id for item in items] == ["keep"]


def test_preflight_allows_filter_matching_nothing(tmp_path: Path, write_prompts) -> None:
    prompts_dir = write_prompts({"a.md": ""})
    settings = _settings(tmp_path, prompts_dir)
    settings.generation.prompt_filter = "zzz"

    assert run_preflight(settings) == []


def test_preflight_requires_api_key(tmp_path: Path, write_prompts) -> None:
    settings = _settings(tmp_path, write_prompts({"a.md": ""}), api_key=None)

    with pytest.raises(ValidationError, match="GEMINI_API_KEY"):
        run_preflight(settings)

    assert run_preflight(settings, require_api_key=False)


def test_preflight_requires_prompts_directory(tmp_path: Path) -> None:
    settings = _settings(tmp_path, tmp_path / "missing")
    with pytest.raises(ValidationError, match="Prompts directory not found"):
        run_preflight(settings)


def test_preflight_requires_at_least_one_prompt(tmp_path: Path, write_prompts) -> None:
    settings = _settings(tmp_path, write_prompts({"readme.txt": ""}))
    with pytest.raises(ValidationError, match="No prompt files"):
        run_preflight(settings)


def test_preflight_requires_script(tmp_path: Path, write_prompts) -> None:
    settings = _settings(
        tmp_path,
        write_prompts({"a.md": ""}),
        script_path=tmp_path / "nope.py",
    )
    with pytest.raises(ValidationError, match="Processor script not found"):
        run_preflight(settings)


def test_preflight_rejects_script_with_syntax_error(tmp_path: Path, write_prompts) -> None:
    settings = _settings(tmp_path, write_prompts({"a.md": ""}))
    settings.script_path.write_text("def broken(:\n", "utf-8")

    with pytest.raises(ValidationError, match="syntax validation"):
        run_preflight(settings)


def test_preflight_skips_script_check_when_template_has_no_script(
    tmp_path: Path,
    write_prompts,
) -> None:
    settings = _settings(
        tmp_path,
        write_prompts({"a.md": ""}),
        script_path=tmp_path / "nope.py",
        runner=RunnerSettings(command_template="generator --in {input} --out {output}"),
    )

    assert [item.item_id for item in run_preflight(settings)] == ["a"]


def test_preflight_rejects_prompts_sharing_an_item_id(tmp_path: Path, write_prompts) -> None:
    settings = _settings(tmp_path, write_prompts({"a/x.md": "one", "b/x.md": "two", "y.md": ""}))

    with pytest.raises(ValidationError, match="share an output name: x: .*a/x.md, .*b/x.md"):
        run_preflight(settings)


def test_preflight_ignores_collisions_outside_the_filter(tmp_path: Path, write_prompts) -> None:
    settings = _settings(tmp_path, write_prompts({"a/x.md": "one", "b/x.md": "two", "y.md": ""}))
    settings.generation.prompt_filter = "^y$"

    assert [item.item_id for item in run_preflight(settings)] == ["y"]
