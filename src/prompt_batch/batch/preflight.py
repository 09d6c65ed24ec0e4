"""Pre-flight checks run before any item is processed."""

from __future__ import annotations

import logging

from prompt_batch.batch.discovery import discover_items
from prompt_batch.batch.models import Item
from prompt_batch.config import Settings
from prompt_batch.errors import ValidationError

logger = logging.getLogger(__name__)


def run_preflight(settings: Settings, *, require_api_key: bool = True) -> list[Item]:
    """Validate prerequisites and return the filtered items to process.

    Raises ``ValidationError`` on the first missing prerequisite.
    """

    if require_api_key and not settings.api_key:
        raise ValidationError("GEMINI_API_KEY is not configured.")

    prompts_dir = settings.prompts_dir
    if not prompts_dir.is_dir():
        raise ValidationError(f"Prompts directory not found: {prompts_dir}")

    all_items = discover_items(prompts_dir)
    logger.info("Found %d prompt files in %s", len(all_items), prompts_dir)
    if not all_items:
        raise ValidationError(f"No prompt files (*.md, *.mdx) found in {prompts_dir}")

    if "{script}" in settings.runner.command_template:
        _validate_script(settings)

    items = discover_items(prompts_dir, settings.generation.prompt_filter)
    if not items:
        logger.warning(
            "No prompt files match filter %r; batch will be empty",
            settings.generation.prompt_filter,
        )
    _reject_colliding_ids(items)
    return items


def _reject_colliding_ids(items: list[Item]) -> None:
    sources: dict[str, list[str]] = {}
    for item in items:
        sources.setdefault(item.item_id, []).append(str(item.input_path))
    collisions = {item_id: paths for item_id, paths in sources.items() if len(paths) > 1}
    if collisions:
        detail = "; ".join(
            f"{item_id}: {', '.join(paths)}" for item_id, paths in sorted(collisions.items())
        )
        raise ValidationError(f"Prompt files share an output name: {detail}")


def _validate_script(settings: Settings) -> None:
    script_path = settings.script_path
    if not script_path.is_file():
        raise ValidationError(f"Processor script not found: {script_path}")
    try:
        source = script_path.read_text("utf-8")
        compile(source, str(script_path), "exec")
    except (SyntaxError, ValueError, UnicodeDecodeError) as error:
        raise ValidationError(
            f"Processor script failed syntax validation: {script_path}: {error}",
        ) from error
