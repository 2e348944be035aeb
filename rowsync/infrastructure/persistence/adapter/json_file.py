"""Atomic JSON file access shared by the file-backed adapters."""

import json
import tempfile
from pathlib import Path
from typing import Any

from rowsync.domain.shared.error import StorageUnavailableError


def read_json(path: Path, default: Any) -> Any:
    """Load a JSON file, or ``default`` when it doesn't exist yet."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return default
    except (OSError, json.JSONDecodeError) as e:
        raise StorageUnavailableError(f"Cannot read {path}: {e}") from e


def write_json(path: Path, data: Any) -> None:
    """Replace a JSON file atomically (temp file in the same directory, then rename)."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with open(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            Path(tmp_path).replace(path)
        except Exception:
            Path(tmp_path).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise StorageUnavailableError(f"Cannot write {path}: {e}") from e
