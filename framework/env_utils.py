"""Process settings read from the environment, with optional `.env` loading."""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILE_VARIABLE = "TENTAIZU_ENV_FILE"

_loaded_paths: set[Path] = set()


def _parse_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export ") :].strip()
    key, sep, value = line.partition("=")
    if not sep or not key.strip():
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return key.strip(), value


def load_dotenv(path: str | Path | None = None) -> None:
    """Load `KEY=value` lines once per file; existing variables always win.

    The file defaults to `$TENTAIZU_ENV_FILE`, then `.env` in the working
    directory. A missing file is not an error.
    """
    dotenv_path = Path(path or os.getenv(ENV_FILE_VARIABLE) or ".env").resolve()
    if dotenv_path in _loaded_paths:
        return
    _loaded_paths.add(dotenv_path)
    if not dotenv_path.is_file():
        return

    for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
        parsed = _parse_line(raw_line)
        if parsed is not None:
            os.environ.setdefault(*parsed)


def getenv_any(*names: str, default: str | None = None) -> str | None:
    """Return the first non-empty variable among `names`."""
    load_dotenv()
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def getenv_list(name: str, default: list[str] | None = None) -> list[str]:
    """Return a comma-separated variable as a list of stripped, non-empty items."""
    raw = getenv_any(name)
    if raw is None:
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]
