"""Durable key-value file store used for every engine snapshot.

Each key maps to one file under the store root. Writes go to a temp file in
the same directory and are renamed into place, so a crash mid-write never
leaves a truncated snapshot behind.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

_KEY_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


class FileStore:
    """Flat directory of snapshot files addressed by key.

    Args:
        root: Directory holding the files (created on first write).
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        """Return the file path for *key*.

        Raises:
            ValueError: If *key* is not a plain file name.
        """
        if not _KEY_RE.fullmatch(key):
            raise ValueError(f"Invalid store key '{key}' — use a plain file name.")
        return self.root / key

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def read(self, key: str) -> bytes | None:
        """Return the stored bytes for *key*, or None if nothing is stored."""
        path = self.path_for(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def write(self, key: str, data: bytes) -> None:
        """Write *data* under *key* atomically (temp → rename)."""
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def read_text(self, key: str) -> str | None:
        data = self.read(key)
        return None if data is None else data.decode("utf-8", errors="replace")

    def write_text(self, key: str, text: str) -> None:
        self.write(key, text.encode("utf-8"))

    def read_json(self, key: str) -> Any | None:
        """Return the decoded JSON document for *key*, or None if missing.

        Raises:
            ValueError: If the stored file is not valid JSON.
        """
        text = self.read_text(key)
        if text is None:
            return None
        return json.loads(text)

    def write_json(self, key: str, obj: Any, indent: int | None = None) -> None:
        self.write_text(key, json.dumps(obj, ensure_ascii=False, indent=indent))
