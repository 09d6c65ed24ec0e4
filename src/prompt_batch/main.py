"""CLI entrypoint for prompt-batch."""

import logging
from pathlib import Path

import rich_click as click

from prompt_batch import __version__
from prompt_batch.batch.controllers import (
    BatchCliController,
    BatchListCommand,
    BatchRunCommand,
)
from prompt_batch.config import SUPPORTED_MODELS
from prompt_batch.errors import ValidationError

click.rich_click.USE_MARKDOWN = True
BATCH_CONTROLLER = BatchCliController()


@click.group()
@click.version_option(version=__version__, prog_name="prompt-batch")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    show_default=True,
    help="Logging level for progress diagnostics on stderr.",
)
def prompt_batch(log_level: str) -> None:
    """Batch prompt runner CLI."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@prompt_batch.command("run")
@click.option(
    "--model",
    default=None,
    help=(
        "Model version passed to the generator, e.g. "
        f"{', '.join(SUPPORTED_MODELS)}. Defaults to PROMPT_BATCH_MODEL or gemini-1.5-pro."
    ),
)
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=None,
    help="Recorded in the report; items always run one at a time.",
)
@click.option(
    "--temperature",
    type=click.FloatRange(min=0.0, max=2.0),
    default=None,
    help="Sampling temperature (0.0-2.0).",
)
@click.option("--max-tokens", type=click.IntRange(min=1), default=None, help="Max output tokens.")
@click.option(
    "--prompt-filter",
    default=None,
    help="Process only prompts whose id matches this regex.",
)
@click.option(
    "--skip-validation",
    is_flag=True,
    default=False,
    help="Skip the post-run output quality check (PROMPT_BATCH_SKIP_VALIDATION).",
)
@click.option(
    "--prompts-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory searched recursively for *.md and *.mdx prompts.",
)
@click.option(
    "--script",
    "script_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Generation script substituted for {script} in the command template.",
)
@click.option(
    "--output-root",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory where the timestamped output directory is created.",
)
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=0.0, min_open=True),
    default=None,
    help="Per-item timeout. Defaults to 300.",
)
@click.option(
    "--delay-seconds",
    type=click.FloatRange(min=0.0),
    default=None,
    help="Pause after each item to respect API rate limits. Defaults to 2.",
)
@click.option(
    "--command",
    "command_template",
    default=None,
    help=(
        "Processor command template. Supports {python}, {script}, {model}, {temperature}, "
        "{max_tokens}, {input}, and {output}."
    ),
)
@click.option(
    "--require-api-key/--no-require-api-key",
    default=True,
    show_default=True,
    help="Fail pre-flight when GEMINI_API_KEY is not set.",
)
@click.option(
    "--fail-on-error/--no-fail-on-error",
    default=False,
    show_default=True,
    help="Exit non-zero when any item failed or timed out.",
)
def run(  # noqa: PLR0913
    model: str | None,
    batch_size: int | None,
    temperature: float | None,
    max_tokens: int | None,
    prompt_filter: str | None,
    skip_validation: bool,
    prompts_dir: Path | None,
    script_path: Path | None,
    output_root: Path | None,
    timeout_seconds: float | None,
    delay_seconds: float | None,
    command_template: str | None,
    require_api_key: bool,
    fail_on_error: bool,
) -> None:
    """Process every matching prompt file, one at a time."""

    try:
        result = BATCH_CONTROLLER.run(
            BatchRunCommand(
                model=model,
                batch_size=batch_size,
                temperature=temperature,
                max_tokens=max_tokens,
                prompt_filter=prompt_filter,
                skip_validation=True if skip_validation else None,
                prompts_dir=prompts_dir,
                script_path=script_path,
                output_root=output_root,
                timeout_seconds=timeout_seconds,
                delay_seconds=delay_seconds,
                command_template=command_template,
                require_api_key=require_api_key,
                fail_on_error=fail_on_error,
            ),
        )
    except (ValidationError, ValueError) as error:
        raise click.ClickException(f"Pre-flight validation failed: {error}") from error

    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Batch run did not complete cleanly.")


@prompt_batch.command("list")
@click.option(
    "--prompts-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory searched recursively for *.md and *.mdx prompts.",
)
@click.option("--prompt-filter", default=None, help="Regex over prompt ids.")
def list_prompts(prompts_dir: Path | None, prompt_filter: str | None) -> None:
    """Show which prompt files a run would process."""

    try:
        lines = BATCH_CONTROLLER.list_items(
            BatchListCommand(prompts_dir=prompts_dir, prompt_filter=prompt_filter),
        )
    except (ValidationError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    prompt_batch()
