import logging
import os
import subprocess
from typing import Iterable, List, Optional

from pymongo import MongoClient
from rich.console import Console

from .constants import TEMP_ROOT_NAME
from .errors import ExternalOperationError
from .models import DropPolicy, PipelineContext, TransferSpec
from .pipeline import PipelineRunner, ScriptStage, TransferStage
from .services.archive import ArchiveService
from .services.command_runner import CommandRunner
from .services.filesystem import FileSystemService
from .services.mongo import MongoService
from .services.prompts import PromptService
from .services.supervisor import ProcessSupervisor
from .services.tools import ToolingService
from .services.transfer import TransferService
from .services.validation import redact_uri

console = Console()
logger = logging.getLogger("appforge")


class Orchestrator:
    """Wires the services every top-level command shares."""

    def __init__(
        self,
        cwd: Optional[str] = None,
        command_runner: Optional[CommandRunner] = None,
        mongo_client_factory=MongoClient,
        subprocess_module=subprocess,
        prompt_service: Optional[PromptService] = None,
    ):
        self.cwd = cwd or os.getcwd()
        self.default_temp_root = os.path.join(self.cwd, TEMP_ROOT_NAME)

        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.archive_service = ArchiveService()
        self.command_runner = command_runner or CommandRunner(
            logger=logger,
            subprocess_module=subprocess_module,
        )
        self.mongo_service = MongoService(logger=logger, client_factory=mongo_client_factory)
        self.tooling_service = ToolingService(logger=logger, console=console)
        self.transfer_service = TransferService(
            logger=logger,
            console=console,
            run_cmd=self._run_cmd,
            mongo_service=self.mongo_service,
            archive_service=self.archive_service,
            filesystem_service=self.filesystem_service,
        )
        self.supervisor = ProcessSupervisor(
            logger=logger,
            console=console,
            subprocess_module=subprocess_module,
        )
        self.prompt_service = prompt_service or PromptService(console=console)

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output)

    def validate_tools(self, commands: Iterable[str]):
        self.tooling_service.validate(commands, self._run_cmd)


class DatabaseTransfer(Orchestrator):
    """A single export (`backup`) or import (`restore`)."""

    def __init__(self, spec: TransferSpec, direction: str, assume_yes: bool = False, **kwargs):
        super().__init__(**kwargs)
        if direction not in ("export", "import"):
            raise ValueError(f"Unknown transfer direction: {direction}")
        self.spec = spec
        self.direction = direction
        self.assume_yes = assume_yes

    @property
    def name(self) -> str:
        return "backup" if self.direction == "export" else "restore"

    def validate_params(self, context: PipelineContext):
        is_import = self.direction == "import"
        db_name = self.transfer_service.validate(self.spec, must_exist=is_import)
        context.values["database"] = db_name

        dump_tool, restore_tool = self.transfer_service.tools_for(self.spec.data_format)
        self.validate_tools([restore_tool if is_import else dump_tool])

        if is_import and self.spec.drop_policy != DropPolicy.NONE:
            scope = (
                f"collections {', '.join(sorted(self.spec.collections))}"
                if self.spec.collections
                else "all collections"
            )
            self.prompt_service.confirm_or_abort(
                f"This drops {scope} in {redact_uri(self.spec.connection_uri)} before restoring. Continue?",
                self.assume_yes,
            )

    def transfer(self, context: PipelineContext):
        if self.direction == "export":
            context.values["output"] = self.transfer_service.export(self.spec)
        else:
            self.transfer_service.import_(self.spec)

    def run(self) -> int:
        logger.info("Starting %s...", self.name)
        runner = PipelineRunner(TransferStage, logger=logger, console=console, name=self.name)
        return runner.run(
            [
                (TransferStage.VALIDATE_PARAMS, self.validate_params),
                (TransferStage.TRANSFER, self.transfer),
            ]
        )


class ScriptRunner(Orchestrator):
    """Runs an npm script of the application under the process supervisor."""

    SCRIPTS = {"launch": "local", "build": "build"}

    def __init__(self, command: str, timeout: Optional[float] = None, **kwargs):
        super().__init__(**kwargs)
        if command not in self.SCRIPTS:
            raise ValueError(f"Unknown script command: {command}")
        self.command = command
        self.timeout = timeout

    def run_script(self, context: PipelineContext):
        script = self.SCRIPTS[self.command]
        result = self.supervisor.run(
            "npm",
            ["run", script],
            cwd=self.cwd,
            description=f"npm run {script}",
            check=False,
            timeout=self.timeout,
        )
        context.values["result"] = result
        if not result.ok:
            raise ExternalOperationError(
                f"`npm run {script}` failed (exit code {result.returncode})."
                + (f" Last output: {result.last_status}" if result.last_status else "")
            )
        console.print(f"[green]`npm run {script}` finished.[/green]")

    def run(self) -> int:
        runner = PipelineRunner(ScriptStage, logger=logger, console=console, name=self.command)
        return runner.run([(ScriptStage.RUN_SCRIPT, self.run_script)])
