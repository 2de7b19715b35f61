"""Filesystem helpers for appforge."""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import Iterator, List

from rich.console import Console

from appforge.errors import ExternalOperationError


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    @staticmethod
    def visible_entries(path: str) -> List[str]:
        if not os.path.isdir(path):
            return []
        return sorted(item for item in os.listdir(path) if not item.startswith("."))

    def cleanup_dir(self, path: str):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except OSError as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)

    @contextmanager
    def scratch_directory(self, temp_root: str, prefix: str) -> Iterator[str]:
        """Yields a fresh, uniquely named directory and removes it on every exit path.

        The temp root is removed as well when nothing else is left in it.
        """
        try:
            os.makedirs(temp_root, exist_ok=True)
            path = tempfile.mkdtemp(prefix=prefix, dir=temp_root)
        except OSError as exc:
            raise ExternalOperationError(
                f"Could not create scratch directory under {temp_root}: {exc}"
            ) from exc

        self.logger.debug("Created scratch directory: %s", path)
        try:
            yield path
        finally:
            self.cleanup_dir(path)
            try:
                os.rmdir(temp_root)
            except OSError:
                pass

    def write_text_atomic(self, path: str, content: str):
        directory = os.path.dirname(os.path.abspath(path))
        fd, temp_path = tempfile.mkstemp(prefix=".appforge-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                file_obj.write(content)
            os.replace(temp_path, path)
        except OSError as exc:
            raise ExternalOperationError(f"Could not write '{path}': {exc}") from exc
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass
