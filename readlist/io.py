"""File I/O helpers: atomic writes and JSON documents."""

import json
import os
from pathlib import Path
from typing import Any


def read_text(path: Path) -> str:
    """Read a text file leniently (undecodable bytes are replaced)."""
    return Path(path).read_text(encoding="utf-8", errors="replace")


def atomic_write(path: Path, data: str) -> None:
    """Write file atomically.

    Writes to a sibling temporary file first and renames it over the
    target, so readers see either the old or the new content.

    Args:
        path: Destination path.
        data: Text content to write.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(data, encoding="utf-8")
    os.replace(tmp, path)


def dump_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2) + "\n"


def load_json(path: Path) -> Any:
    """Load a JSON document from disk."""
    return json.loads(read_text(path))


def write_json(path: Path, data: Any) -> None:
    atomic_write(path, dump_json(data))
