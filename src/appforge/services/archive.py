"""Archive packing and extraction helpers for appforge."""

import os
import shutil
import zipfile
from pathlib import Path
from typing import Optional

from appforge.errors import ExternalOperationError


class ArchiveService:
    """Encapsulates safe archive extraction and packing."""

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    @staticmethod
    def _strip(name: str, strip_components: int) -> Optional[str]:
        parts = [part for part in name.split("/") if part and part != "."]
        if len(parts) <= strip_components:
            return None
        return "/".join(parts[strip_components:])

    def safe_extract_zip(self, zip_path: str, destination_dir: str, strip_components: int = 0):
        """Extracts `zip_path` into `destination_dir`.

        `strip_components` drops that many leading path parts from every entry,
        like `tar --strip-components`. Entries that would land outside the
        destination, and symbolic links, abort the extraction before anything
        is written.
        """
        base = Path(destination_dir).resolve()

        try:
            with zipfile.ZipFile(zip_path, "r") as zip_ref:
                plan = []
                for member in zip_ref.infolist():
                    normalized_name = member.filename.replace("\\", "/")
                    relative_name = self._strip(normalized_name, strip_components)
                    if relative_name is None:
                        continue

                    target_path = (base / relative_name).resolve()
                    if not self.is_within_dir(base, target_path):
                        raise ExternalOperationError(
                            f"Unsafe ZIP entry detected: `{member.filename}`. "
                            "Archive extraction aborted to prevent path traversal."
                        )

                    file_type = (member.external_attr >> 16) & 0o170000
                    if file_type == 0o120000:
                        raise ExternalOperationError(
                            f"Unsafe ZIP entry detected: `{member.filename}` is a symbolic link."
                        )
                    plan.append((member, normalized_name, target_path))

                for member, normalized_name, target_path in plan:
                    if member.is_dir() or normalized_name.endswith("/"):
                        target_path.mkdir(parents=True, exist_ok=True)
                        continue

                    target_path.parent.mkdir(parents=True, exist_ok=True)
                    with zip_ref.open(member, "r") as src, open(target_path, "wb") as dst:
                        shutil.copyfileobj(src, dst)
        except zipfile.BadZipFile as exc:
            raise ExternalOperationError(f"Invalid ZIP archive: {zip_path}") from exc
        except OSError as exc:
            raise ExternalOperationError(f"Could not extract {zip_path}: {exc}") from exc

    def pack_directory(self, source_dir: str, zip_path: str):
        """Writes every file under `source_dir` into `zip_path`, paths relative to `source_dir`."""
        try:
            with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zip_file:
                for root, _, files in os.walk(source_dir):
                    for file_name in sorted(files):
                        file_path = os.path.join(root, file_name)
                        zip_file.write(file_path, os.path.relpath(file_path, source_dir))
        except OSError as exc:
            raise ExternalOperationError(f"Could not create archive {zip_path}: {exc}") from exc
