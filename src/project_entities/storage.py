"""YAML file store rooted at a project's entity directory."""

import os
import tempfile
from pathlib import Path
from typing import Any

import structlog
import yaml

from project_entities.cancellation import Cancel, check_cancelled
from project_entities.security import resolve_path

logger = structlog.get_logger()


def _atomic_write_text(path: Path, content: str) -> None:
    """Write content to path through a temp file and an atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_handle:
            tmp_handle.write(content)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        # Clean up the temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class FileStore:
    """Reads and writes YAML documents below a base directory.

    Every path argument is relative to the base directory and is resolved
    through ``resolve_path`` so nothing outside the store is ever touched.
    """

    def __init__(self, base_path: str | Path) -> None:
        """Initialize the store.

        Args:
            base_path: Store root, usually ``<project>/.entities``
        """
        self.base_path = Path(os.path.abspath(os.fspath(base_path)))
        logger.debug("File store initialized", base_path=str(self.base_path))

    def resolve(self, rel_path: str) -> Path:
        return resolve_path(self.base_path, rel_path)

    def exists(self, rel_path: str, *, cancel: Cancel = None) -> bool:
        check_cancelled(cancel)
        return self.resolve(rel_path).exists()

    def read_yaml(self, rel_path: str, *, cancel: Cancel = None) -> Any:
        """Load one YAML document.

        Args:
            rel_path: Path relative to the store root
            cancel: Optional cancellation signal

        Returns:
            Parsed document, or None for an empty file

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not valid YAML
        """
        check_cancelled(cancel)
        path = self.resolve(rel_path)
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML", path=rel_path, error=str(e))
            raise ValueError(f"failed to parse {rel_path}: {e}") from e

    def write_yaml(self, rel_path: str, data: Any, *, cancel: Cancel = None) -> None:
        """Serialize data and write it atomically.

        Args:
            rel_path: Path relative to the store root
            data: Plain data (dicts, lists, scalars)
            cancel: Optional cancellation signal
        """
        check_cancelled(cancel)
        path = self.resolve(rel_path)
        content = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
        try:
            _atomic_write_text(path, content)
        except OSError as e:
            logger.error("Failed to write file", path=rel_path, error=str(e))
            raise
        logger.debug("File written", path=rel_path)

    def list_dir(self, rel_path: str, *, cancel: Cancel = None) -> list[str]:
        """List regular file names in a directory, sorted. Missing directories are empty."""
        check_cancelled(cancel)
        path = self.resolve(rel_path)
        if not path.is_dir():
            return []
        return sorted(entry.name for entry in path.iterdir() if entry.is_file())

    def delete(self, rel_path: str, *, cancel: Cancel = None) -> None:
        """Remove a file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        check_cancelled(cancel)
        self.resolve(rel_path).unlink()
        logger.debug("File deleted", path=rel_path)

    def ensure_dir(self, rel_path: str, *, cancel: Cancel = None) -> None:
        check_cancelled(cancel)
        self.resolve(rel_path).mkdir(parents=True, exist_ok=True)
