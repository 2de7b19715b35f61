"""Download service with progress reporting, checksum validation and unpacking."""

import hashlib
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from appforge.constants import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_TIMEOUT
from appforge.errors import ExternalOperationError


class DownloadService:
    """Fetches remote archives into scratch space and unpacks them."""

    def __init__(
        self,
        validation_service,
        archive_service,
        logger,
        console,
        requests_module,
        timeout: float = DOWNLOAD_TIMEOUT,
    ):
        self.validation_service = validation_service
        self.archive_service = archive_service
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.timeout = timeout

    def download_file(
        self,
        url: str,
        dest_path: str,
        description: str = "Downloading...",
        expected_sha256: Optional[str] = None,
    ):
        self.logger.info("Downloading %s to %s", url, dest_path)
        self.validation_service.enforce_https_policy(url, description, self.logger, self.console)

        hasher = hashlib.sha256() if expected_sha256 else None

        try:
            with self.requests.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("Content-Length", 0))

                os.makedirs(os.path.dirname(dest_path), exist_ok=True)

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    "•",
                    TimeElapsedColumn(),
                    console=self.console,
                ) as progress:
                    task = progress.add_task(f"[cyan]{description}", total=total_size or None)
                    with open(dest_path, "wb") as file_obj:
                        for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                            if not chunk:
                                continue
                            file_obj.write(chunk)
                            if hasher:
                                hasher.update(chunk)
                            progress.update(task, advance=len(chunk))
        except self.requests.RequestException as exc:
            raise ExternalOperationError(f"Download failed for {description}: {exc}") from exc
        except OSError as exc:
            raise ExternalOperationError(f"Could not write download to {dest_path}: {exc}") from exc

        if hasher:
            downloaded_sha = hasher.hexdigest()
            if downloaded_sha != expected_sha256:
                try:
                    os.remove(dest_path)
                except OSError:
                    pass
                raise ExternalOperationError(
                    f"Checksum mismatch for {description}. Expected {expected_sha256}, "
                    f"but got {downloaded_sha}."
                )

    def download(
        self,
        url: str,
        scratch_dir: str,
        expected_sha256: Optional[str] = None,
    ) -> str:
        """Downloads `url` into `scratch_dir` and returns the local archive path."""
        file_name = os.path.basename(urlparse(url).path) or "download.zip"
        if not Path(file_name).suffix:
            file_name = f"{file_name}.zip"
        archive_path = os.path.join(scratch_dir, file_name)
        self.download_file(
            url,
            archive_path,
            "Downloading application archive...",
            expected_sha256=expected_sha256,
        )
        return archive_path

    def unpack(self, archive_path: str, destination_dir: str, strip_components: int = 1):
        self.console.print("[blue]Extracting application archive...[/blue]")
        self.logger.info("Extracting %s into %s", archive_path, destination_dir)
        os.makedirs(destination_dir, exist_ok=True)
        self.archive_service.safe_extract_zip(
            archive_path,
            destination_dir,
            strip_components=strip_components,
        )
