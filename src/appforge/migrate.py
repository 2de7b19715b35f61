"""Database migration between environments through a staging export."""

from typing import Optional

from .core import Orchestrator, console, logger
from .errors import ValidationError
from .models import MigrationParams, PipelineContext, TransferSpec
from .pipeline import MigrationStage, PipelineRunner, new_context
from .services.validation import ValidationService, redact_uri


class Migrator(Orchestrator):
    """Copies `from` into `to`: export to a scratch directory, then import.

    The scratch directory is released on every exit path. Nothing is retried;
    the first failing stage ends the run.
    """

    def __init__(self, params: MigrationParams, assume_yes: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.params = params
        self.assume_yes = assume_yes
        self.temp_root = params.temp_root or self.default_temp_root
        self.runner: Optional[PipelineRunner] = None

    def validate_params(self, context: PipelineContext):
        ValidationService.require({"from": self.params.source_uri, "to": self.params.target_uri})

        source_db = ValidationService.database_name(self.params.source_uri, "--from")
        target_db = ValidationService.database_name(self.params.target_uri, "--to")
        if self.params.source_uri == self.params.target_uri:
            raise ValidationError("--from and --to point at the same database.")

        data_format = self.params.data_format
        if data_format not in self.transfer_service.TOOLS:
            raise ValidationError(
                f"Unsupported data format `{data_format}`. "
                f"Use one of: {', '.join(self.transfer_service.TOOLS)}."
            )

        context.values["source_db"] = source_db
        context.values["target_db"] = target_db
        self.validate_tools(self.transfer_service.tools_for(data_format))

        if self.params.clear:
            scope = self.params.collections or "all collections"
            self.prompt_service.confirm_or_abort(
                f"This drops {scope} in {redact_uri(self.params.target_uri)} before restoring. Continue?",
                self.assume_yes,
            )

        console.print(
            f"[blue]Migrating {redact_uri(self.params.source_uri)} -> "
            f"{redact_uri(self.params.target_uri)}[/blue]"
        )

    def stage_temp_dir(self, context: PipelineContext):
        context.scratch_dir = context.resources.enter_context(
            self.filesystem_service.scratch_directory(
                self.temp_root,
                prefix=f"migrate-{context.run_id}-",
            )
        )
        logger.info("Staging migration data in %s", context.scratch_dir)

    def backup_spec(self, scratch_dir: str = "") -> TransferSpec:
        return TransferSpec.from_options(
            connection_uri=self.params.source_uri,
            root_path=scratch_dir,
            collections=self.params.collections,
            clear=False,
            archive_name=self.params.archive_name,
            data_format=self.params.data_format,
        )

    def restore_spec(self, scratch_dir: str, source_db: str) -> TransferSpec:
        return TransferSpec.from_options(
            connection_uri=self.params.target_uri,
            root_path=scratch_dir,
            collections=self.params.collections,
            clear=self.params.clear,
            archive_name=self.params.archive_name,
            data_format=self.params.data_format,
            source_database=source_db,
        )

    def backup_source(self, context: PipelineContext):
        context.values["export_path"] = self.transfer_service.export(
            self.backup_spec(context.scratch_dir)
        )

    def restore_target(self, context: PipelineContext):
        self.transfer_service.import_(
            self.restore_spec(context.scratch_dir, context.values["source_db"])
        )

    def cleanup(self, context: PipelineContext):
        # releases the scratch directory acquired in stage_temp_dir
        context.resources.close()
        console.print("[dim]Temporary migration files removed.[/dim]")

    def run(self, context: Optional[PipelineContext] = None) -> int:
        logger.info("Starting migration...")
        self.runner = PipelineRunner(MigrationStage, logger=logger, console=console, name="migration")
        exit_code = self.runner.run(
            [
                (MigrationStage.VALIDATE_PARAMS, self.validate_params),
                (MigrationStage.STAGE_TEMP_DIR, self.stage_temp_dir),
                (MigrationStage.BACKUP_SOURCE, self.backup_source),
                (MigrationStage.RESTORE_TARGET, self.restore_target),
                (MigrationStage.CLEANUP, self.cleanup),
            ],
            context or new_context(),
        )
        if self.runner.state == MigrationStage.COMPLETE:
            console.print("[bold green]Migration complete![/bold green]")
        return exit_code
