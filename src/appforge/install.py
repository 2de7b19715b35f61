"""Fresh application install: download, configure, seed and provision."""

import os
from dataclasses import replace
from typing import Optional

import requests
from rich.panel import Panel

from .constants import DEFAULT_ARCHIVE_URL, DOWNLOAD_TIMEOUT, TEMP_ROOT_NAME
from .core import Orchestrator, console, logger
from .errors import ExternalOperationError, ValidationError
from .errors_catalog import actionable_error
from .models import InstallParams, PipelineContext, TransferSpec
from .pipeline import InstallStage, PipelineRunner, new_context
from .services.credentials import MAX_PASSWORD_BYTES, CredentialService
from .services.download import DownloadService
from .services.environment import EnvironmentService
from .services.validation import ValidationService


class Installer(Orchestrator):
    """Installs the application into an empty directory.

    Stages run strictly in order and the first failure ends the run. Earlier
    stages are not rolled back: seeded data stays in the database if a later
    stage fails. The download scratch directory is always removed.
    """

    DEPENDENCY_COMMAND = ("npm", ["install"])
    DEPENDENCY_MARKER = "postinstall"

    def __init__(
        self,
        params: InstallParams,
        requests_module=requests,
        download_timeout: float = DOWNLOAD_TIMEOUT,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.install_dir = os.path.abspath(params.install_dir or self.cwd)
        self.params = replace(
            params,
            install_dir=self.install_dir,
            archive_url=params.archive_url or DEFAULT_ARCHIVE_URL,
        )
        self.temp_root = params.temp_root or os.path.join(self.install_dir, TEMP_ROOT_NAME)
        self.runner: Optional[PipelineRunner] = None

        self.validation_service = ValidationService(allow_insecure_http=params.allow_insecure_http)
        self.download_service = DownloadService(
            validation_service=self.validation_service,
            archive_service=self.archive_service,
            logger=logger,
            console=console,
            requests_module=requests_module,
            timeout=download_timeout,
        )
        self.environment_service = EnvironmentService(
            logger=logger,
            filesystem_service=self.filesystem_service,
        )
        self.credential_service = CredentialService(logger=logger, mongo_service=self.mongo_service)

    def validate_empty_dir(self, context: PipelineContext):
        entries = self.filesystem_service.visible_entries(self.install_dir)
        if entries and not self.params.overwrite:
            raise ValidationError(actionable_error("directory_not_empty", path=self.install_dir))
        if entries:
            logger.warning("Installing over %s existing entries in %s", len(entries), self.install_dir)

        self.params = replace(
            self.params,
            archive_sha256=ValidationService.sha256(self.params.archive_sha256, "--archive-sha256"),
        )
        self.validation_service.enforce_https_policy(
            self.params.archive_url, "application archive URL", logger, console
        )

    def collect_params(self, context: PipelineContext):
        self.params = self.prompt_service.collect_install_params(self.params)

        ValidationService.require(
            {
                "username": self.params.username,
                "password": self.params.password,
                "db": self.params.database_uri,
                "port": self.params.port,
            }
        )
        port = ValidationService.port(self.params.port)
        context.values["database"] = ValidationService.database_name(
            self.params.database_uri, "--db"
        )
        if len(self.params.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
        self.params = replace(self.params, port=port)

        restore_tool = self.transfer_service.tools_for("bson")[1]
        self.validate_tools([restore_tool])

    def download(self, context: PipelineContext):
        context.scratch_dir = context.resources.enter_context(
            self.filesystem_service.scratch_directory(
                self.temp_root,
                prefix=f"install-{context.run_id}-",
            )
        )
        context.values["archive_path"] = self.download_service.download(
            self.params.archive_url,
            context.scratch_dir,
            expected_sha256=self.params.archive_sha256,
        )

    def extract(self, context: PipelineContext):
        self.download_service.unpack(
            context.values["archive_path"],
            self.install_dir,
            strip_components=1,
        )
        # only the download scratch directory is registered at this point
        context.resources.close()
        context.scratch_dir = None

    def configure(self, context: PipelineContext):
        console.print("[blue]Writing environment configuration...[/blue]")
        env_path = os.path.join(self.install_dir, self.params.env_file)
        self.environment_service.configure(
            env_path,
            port=self.params.port,
            database_uri=self.params.database_uri,
        )

    def seed_data(self, context: PipelineContext):
        seed_path = os.path.join(self.install_dir, self.params.seed_dir)
        if not os.path.isdir(seed_path):
            raise ExternalOperationError(actionable_error("seed_data_not_found", path=seed_path))

        console.print("[blue]Restoring seed data...[/blue]")
        self.transfer_service.import_(
            TransferSpec.from_options(
                connection_uri=self.params.database_uri,
                root_path=seed_path,
                clear=True,
            )
        )

    def provision_admin(self, context: PipelineContext):
        console.print("[blue]Provisioning admin user...[/blue]")
        account = self.credential_service.provision_admin(
            self.params.database_uri,
            context.values["database"],
            username=self.params.username,
            password=self.params.password,
        )
        context.values["admin"] = account
        self.params = replace(self.params, password=None)

    def install_dependencies(self, context: PipelineContext):
        if self.params.skip_dependencies:
            console.print("[yellow]Skipping dependency installation.[/yellow]")
            return

        command, args = self.DEPENDENCY_COMMAND
        result = self.supervisor.run(
            command,
            args,
            cwd=self.install_dir,
            description="Installing dependencies",
            marker=self.DEPENDENCY_MARKER,
            check=False,
        )
        context.values["dependencies"] = result
        if not result.ok:
            raise ExternalOperationError(
                actionable_error(
                    "dependencies_failed",
                    returncode=str(result.returncode),
                    path=self.install_dir,
                )
            )

    def run(self, context: Optional[PipelineContext] = None) -> int:
        logger.info("Starting installation in %s", self.install_dir)
        self.runner = PipelineRunner(InstallStage, logger=logger, console=console, name="installation")
        exit_code = self.runner.run(
            [
                (InstallStage.VALIDATE_EMPTY_DIR, self.validate_empty_dir),
                (InstallStage.COLLECT_PARAMS, self.collect_params),
                (InstallStage.DOWNLOAD, self.download),
                (InstallStage.EXTRACT, self.extract),
                (InstallStage.CONFIGURE, self.configure),
                (InstallStage.SEED_DATA, self.seed_data),
                (InstallStage.PROVISION_ADMIN, self.provision_admin),
                (InstallStage.INSTALL_DEPENDENCIES, self.install_dependencies),
            ],
            context or new_context(),
        )

        if self.runner.state == InstallStage.COMPLETE:
            console.print(
                Panel.fit(
                    f"Installed into [bold]{self.install_dir}[/bold]\n"
                    f"Admin user: [bold]{self.params.username}[/bold]\n"
                    f"Server: http://localhost:{self.params.port}\n"
                    "Start it with [bold]appforge launch[/bold].",
                    title="Installation complete",
                    border_style="green",
                )
            )
        return exit_code
