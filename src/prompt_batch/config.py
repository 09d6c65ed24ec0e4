"""Runtime configuration for batch prompt runs."""

from __future__ import annotations

import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path

SUPPORTED_MODELS: tuple[str, ...] = (
    "gemini-1.5-pro",
    "gemini-1.5-flash",
    "gemini-1.0-pro",
)

DEFAULT_COMMAND_TEMPLATE = (
    "{python} {script} --model {model} --temperature {temperature} "
    "--max-tokens {max_tokens} --input {input} --output {output}"
)

COMMAND_PLACEHOLDERS: tuple[str, ...] = (
    "python",
    "script",
    "model",
    "temperature",
    "max_tokens",
    "input",
    "output",
)


@dataclass(slots=True)
class GenerationSettings:
    """Parameters forwarded to the per-item generation script."""

    model: str = "gemini-1.5-pro"
    batch_size: int = 5
    temperature: float = 0.7
    max_tokens: int = 8192
    prompt_filter: str = ".*"


@dataclass(slots=True)
class RunnerSettings:
    """Sequential runner pacing."""

    timeout_seconds: float = 300.0
    delay_seconds: float = 2.0
    command_template: str = DEFAULT_COMMAND_TEMPLATE


@dataclass(slots=True)
class QualitySettings:
    """Post-run output quality check."""

    min_bytes: int = 50
    skip_validation: bool = False


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    prompts_dir: Path = Path("prompts")
    script_path: Path = Path("python/sheikh.py")
    output_root: Path = Path(".")
    api_key: str | None = field(default=None, repr=False)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    runner: RunnerSettings = field(default_factory=RunnerSettings)
    quality: QualitySettings = field(default_factory=QualitySettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching the CI workflow."""

        return cls(
            prompts_dir=Path(os.getenv("PROMPT_BATCH_PROMPTS_DIR", "prompts")),
            script_path=Path(os.getenv("PROMPT_BATCH_SCRIPT_PATH", "python/sheikh.py")),
            output_root=Path(os.getenv("PROMPT_BATCH_OUTPUT_ROOT", ".")),
            api_key=os.getenv("GEMINI_API_KEY") or None,
            generation=GenerationSettings(
                model=os.getenv("PROMPT_BATCH_MODEL", "gemini-1.5-pro"),
                batch_size=_env_int("PROMPT_BATCH_BATCH_SIZE", default=5),
                temperature=_env_float("PROMPT_BATCH_TEMPERATURE", default=0.7),
                max_tokens=_env_int("PROMPT_BATCH_MAX_TOKENS", default=8192),
                prompt_filter=os.getenv("PROMPT_BATCH_PROMPT_FILTER", ".*"),
            ),
            runner=RunnerSettings(
                timeout_seconds=_env_float("PROMPT_BATCH_TIMEOUT_SECONDS", default=300.0),
                delay_seconds=_env_float("PROMPT_BATCH_DELAY_SECONDS", default=2.0),
                command_template=os.getenv(
                    "PROMPT_BATCH_COMMAND_TEMPLATE",
                    DEFAULT_COMMAND_TEMPLATE,
                ),
            ),
            quality=QualitySettings(
                min_bytes=_env_int("PROMPT_BATCH_MIN_OUTPUT_BYTES", default=50),
                skip_validation=_env_bool("PROMPT_BATCH_SKIP_VALIDATION", default=False),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        generation = self.generation
        if not generation.model.strip():
            raise ValueError("PROMPT_BATCH_MODEL must not be empty.")
        if generation.batch_size <= 0:
            raise ValueError("PROMPT_BATCH_BATCH_SIZE must be a positive integer.")
        if not 0.0 <= generation.temperature <= 2.0:  # noqa: PLR2004
            raise ValueError(
                f"PROMPT_BATCH_TEMPERATURE must be within 0.0-2.0, got {generation.temperature}.",
            )
        if generation.max_tokens <= 0:
            raise ValueError("PROMPT_BATCH_MAX_TOKENS must be a positive integer.")
        try:
            re.compile(generation.prompt_filter)
        except re.error as error:
            raise ValueError(
                f"Invalid PROMPT_BATCH_PROMPT_FILTER regex {generation.prompt_filter!r}: {error}",
            ) from error
        if self.runner.timeout_seconds <= 0:
            raise ValueError("PROMPT_BATCH_TIMEOUT_SECONDS must be > 0.")
        if self.runner.delay_seconds < 0:
            raise ValueError("PROMPT_BATCH_DELAY_SECONDS must be >= 0.")
        try:
            render_command_template(
                self.runner.command_template,
                dict.fromkeys(COMMAND_PLACEHOLDERS, "x"),
            )
        except ValueError as error:
            raise ValueError(f"Invalid PROMPT_BATCH_COMMAND_TEMPLATE: {error}") from error
        if self.quality.min_bytes < 0:
            raise ValueError("PROMPT_BATCH_MIN_OUTPUT_BYTES must be >= 0.")


def render_command_template(template: str, values: dict[str, str]) -> str:
    """Substitute shell-quoted ``values`` into ``template``; raise ValueError when malformed."""

    stripped = template.strip()
    if not stripped:
        raise ValueError("command template is empty.")
    if "{input}" not in stripped or "{output}" not in stripped:
        raise ValueError("command template must include {input} and {output}.")
    try:
        rendered = stripped.format(**{key: shlex.quote(value) for key, value in values.items()})
    except KeyError as error:
        raise ValueError(f"unsupported command template placeholder: {error}") from error
    except (IndexError, ValueError) as error:
        raise ValueError(f"malformed command template {stripped!r}: {error}") from error
    return rendered


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
