"""Local deterministic generator for script processor demos and tests.

Accepts the same arguments as a real generation script. The prompt text
steers its behavior: a line ``FAIL: <message>`` exits 1 with the message on
stderr, ``SLEEP: <seconds>`` delays before writing, ``EMPTY`` writes an
empty output.
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Echo the prompt back with a generation header."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--model", required=True)
    parser.add_argument("--temperature", type=float, default=0.7)
    parser.add_argument("--max-tokens", type=int, default=8192)
    parser.add_argument("--input", required=True)
    parser.add_argument("--output", required=True)
    args = parser.parse_args(argv)

    prompt = Path(args.input).read_text("utf-8")
    for line in prompt.splitlines():
        directive, _, value = line.partition(":")
        if directive.strip() == "FAIL":
            print(value.strip() or "generation failed", file=sys.stderr)
            return 1
        if directive.strip() == "SLEEP":
            time.sleep(float(value))

    output = Path(args.output)
    if prompt.strip() == "EMPTY":
        output.write_text("", "utf-8")
        return 0

    key_state = "set" if os.getenv("GEMINI_API_KEY") else "unset"
    output.write_text(
        f"[{args.model} t={args.temperature} max={args.max_tokens} key={key_state}]\n"
        f"{prompt.strip()}\n",
        "utf-8",
    )
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
