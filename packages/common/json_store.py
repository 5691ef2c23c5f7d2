"""
JSON document persistence with atomic replacement.

Documents are written to a temp file in the target directory and moved
into place with os.replace, so readers never observe a partial write.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional


def read_json(path: str | Path) -> Optional[Any]:
    """
    Read a JSON document.

    Returns:
        Parsed document, or None if the file does not exist

    Raises:
        json.JSONDecodeError: If the file is not valid JSON
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None


def write_json_atomic(path: str | Path, document: Any) -> None:
    """
    Serialize document and atomically replace path with it.

    Raises:
        OSError: If the temp file cannot be written or moved
    """
    path = Path(path)
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=directory,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
