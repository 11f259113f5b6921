"""Reads flat KEY=value pairs from ~/.tasktimeline/.env."""

from __future__ import annotations

import os
from pathlib import Path

from tasktimeline.config.constants import TIMELINE_HOME


def _parse_line(line: str) -> tuple[str, str] | None:
    line = line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key or key.startswith("#"):
        return None

    value = value.strip()
    if value[:1] in ("'", '"') and value[-1:] == value[:1] and len(value) > 1:
        return key, value[1:-1]
    # Unquoted values may carry a trailing " # comment".
    return key, value.split(" #", 1)[0].rstrip()


def read_env_file(env_path: Path | None = None) -> dict[str, str]:
    """Key/value pairs from the user's .env file (empty if it is missing or unreadable)."""
    path = env_path or TIMELINE_HOME / ".env"
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return dict(pair for pair in map(_parse_line, text.splitlines()) if pair is not None)


def lookup(key: str, env_file: dict[str, str]) -> str | None:
    """Process environment first, then the .env file; blank values count as unset."""
    return os.environ.get(key) or env_file.get(key) or None
