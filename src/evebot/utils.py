"""Shared utility functions used across multiple EveBot modules.

Provides:
  - evebot_dir(): resolve config directory from EVEBOT_DIR env var.
  - mappings_file(): path of the chat mapping state file.
  - atomic_write_json(): crash-safe JSON file writes via temp+rename.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

EVEBOT_DIR_ENV = "EVEBOT_DIR"
MAPPINGS_FILE_NAME = "telegram-mappings.json"


def evebot_dir() -> Path:
    """Resolve config directory from EVEBOT_DIR env var or default ~/.config/relay."""
    raw = os.environ.get(EVEBOT_DIR_ENV, "")
    return Path(raw) if raw else Path.home() / ".config" / "relay"


def mappings_file() -> Path:
    return evebot_dir() / MAPPINGS_FILE_NAME


def atomic_write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Write JSON data to a file atomically.

    Writes to a temporary file in the same directory, then renames it
    to the target path. A reader never sees a half-written file even if
    the process is interrupted mid-write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=indent)

    # Same directory keeps the rename on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), suffix=".tmp", prefix=f".{path.name}."
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
