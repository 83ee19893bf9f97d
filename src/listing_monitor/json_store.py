"""
Atomic JSON file storage.

This is the durable key-value capability behind the snapshot and stats
stores. Each save writes a temporary file next to the target, flushes it
to disk, then renames it over the target so a crash never leaves a
partially written file behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from .exceptions import PersistenceError


class JsonFileStore:
    """Loads and atomically saves one JSON document."""

    def __init__(self, file_path: Path) -> None:
        """
        Initialize the store.

        Args:
            file_path: Path to the JSON document
        """
        self._file_path = Path(file_path)

    @property
    def file_path(self) -> Path:
        """Get the backing file path."""
        return self._file_path

    def exists(self) -> bool:
        return self._file_path.exists()

    def load(self) -> Optional[dict]:
        """
        Load the document.

        Returns:
            The parsed document, or None if the file does not exist

        Raises:
            PersistenceError: If the file cannot be read, is not valid JSON,
                or does not contain a JSON object
        """
        if not self._file_path.exists():
            return None

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse {self._file_path.name}: {e}",
                details={"file_path": str(self._file_path)},
            )
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read {self._file_path.name}: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(raw_data, dict):
            raise PersistenceError(
                code="parse_error",
                message=f"Expected a JSON object in {self._file_path.name}",
                details={
                    "file_path": str(self._file_path),
                    "found_type": type(raw_data).__name__,
                },
            )

        return raw_data

    def save(self, data: dict) -> None:
        """
        Atomically replace the document with ``data``.

        Raises:
            PersistenceError: If the document cannot be written
        """
        directory = self._file_path.parent
        tmp_path: Optional[str] = None

        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self._file_path.name}.",
                suffix=".tmp",
                dir=directory,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._file_path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write {self._file_path.name}: {e}",
                details={"file_path": str(self._file_path)},
            )
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
