"""Stage enumerations and the driver that runs them."""

import logging
import uuid
from contextlib import ExitStack
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple, Type

from rich.console import Console

from .errors import (
    EXIT_CANCELLED,
    EXIT_EXTERNAL,
    EXIT_SUCCESS,
    AppForgeError,
    ConfirmationAbort,
    OperationCancelled,
)
from .models import PipelineContext


class TransferStage(str, Enum):
    INIT = "init"
    VALIDATE_PARAMS = "validate_params"
    TRANSFER = "transfer"
    COMPLETE = "complete"
    ABORTED = "aborted"
    FAILED = "failed"


class ScriptStage(str, Enum):
    INIT = "init"
    RUN_SCRIPT = "run_script"
    COMPLETE = "complete"
    ABORTED = "aborted"
    FAILED = "failed"


class MigrationStage(str, Enum):
    INIT = "init"
    VALIDATE_PARAMS = "validate_params"
    STAGE_TEMP_DIR = "stage_temp_dir"
    BACKUP_SOURCE = "backup_source"
    RESTORE_TARGET = "restore_target"
    CLEANUP = "cleanup"
    COMPLETE = "complete"
    ABORTED = "aborted"
    FAILED = "failed"


class InstallStage(str, Enum):
    INIT = "init"
    VALIDATE_EMPTY_DIR = "validate_empty_dir"
    COLLECT_PARAMS = "collect_params"
    DOWNLOAD = "download"
    EXTRACT = "extract"
    CONFIGURE = "configure"
    SEED_DATA = "seed_data"
    PROVISION_ADMIN = "provision_admin"
    INSTALL_DEPENDENCIES = "install_dependencies"
    COMPLETE = "complete"
    ABORTED = "aborted"
    FAILED = "failed"


Step = Tuple[Enum, Callable[[PipelineContext], Any]]


def new_context() -> PipelineContext:
    return PipelineContext(run_id=uuid.uuid4().hex[:10])


class PipelineRunner:
    """Runs ordered stages, stopping at the first failure.

    Each step receives the run's PipelineContext. Resources registered on
    `context.resources` are released when the run ends, whatever the outcome.
    """

    def __init__(self, stages: Type[Enum], logger: logging.Logger, console: Console, name: str):
        self.stages = stages
        self.logger = logger
        self.console = console
        self.name = name
        self.state: Enum = stages.INIT
        self.failed_stage: Optional[Enum] = None
        self.error: Optional[BaseException] = None
        self.history: List[Enum] = []

    @property
    def terminal(self) -> bool:
        return self.state in (self.stages.COMPLETE, self.stages.ABORTED, self.stages.FAILED)

    def _advance(self, stage: Enum, callback, context: PipelineContext):
        self.state = stage
        self.logger.debug("[%s %s] stage %s started", self.name, context.run_id, stage.value)
        result = callback(context)
        context.completed.append(stage.value)
        self.history.append(stage)
        return result

    def run(self, steps: Sequence[Step], context: Optional[PipelineContext] = None) -> int:
        if self.terminal:
            raise RuntimeError(f"{self.name} pipeline already finished with state {self.state.value}.")

        context = context or new_context()
        with ExitStack() as resources:
            context.resources = resources
            try:
                for stage, callback in steps:
                    self._advance(stage, callback, context)
                self.state = self.stages.COMPLETE
                self.logger.info("%s completed.", self.name.capitalize())
                return EXIT_SUCCESS

            except ConfirmationAbort as exc:
                self.logger.info("%s aborted during %s: %s", self.name, self.state.value, exc)
                self.state = self.stages.ABORTED
                self.console.print(f"[yellow]{exc}[/yellow]")
                return exc.exit_code
            except (KeyboardInterrupt, OperationCancelled) as exc:
                self._fail(exc)
                self.console.print("[bold red]Operation cancelled by user.[/bold red]")
                self.logger.info("Operation cancelled by user")
                return EXIT_CANCELLED
            except AppForgeError as exc:
                self._fail(exc)
                self.console.print(f"[bold red]Error:[/bold red] {exc}")
                self.logger.error(str(exc))
                return exc.exit_code
            except Exception as exc:
                self._fail(exc)
                self.console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
                self.logger.exception("Unexpected error")
                return EXIT_EXTERNAL

    def _fail(self, exc: BaseException):
        self.failed_stage = self.state
        self.error = exc
        self.state = self.stages.FAILED
        self.logger.debug("%s failed during stage %s", self.name, self.failed_stage.value)
