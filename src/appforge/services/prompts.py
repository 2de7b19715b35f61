"""Interactive parameter collection."""

from dataclasses import replace

import click
from rich.table import Table

from appforge.constants import DEFAULT_DATABASE_URI, DEFAULT_PORT
from appforge.errors import ConfirmationAbort
from appforge.models import InstallParams
from appforge.services.validation import redact_uri


class PromptService:
    """Asks the operator for whatever the command line did not supply."""

    def __init__(self, console, prompt=click.prompt, confirm=click.confirm):
        self.console = console
        self.prompt = prompt
        self.confirm = confirm

    def collect_install_params(self, params: InstallParams) -> InstallParams:
        username = params.username or self.prompt("Admin username", default="admin")
        password = params.password or self.prompt(
            "Admin password",
            hide_input=True,
            confirmation_prompt=True,
        )
        database_uri = params.database_uri or self.prompt(
            "Database connection string",
            default=DEFAULT_DATABASE_URI,
        )
        port = params.port or self.prompt("Local port", default=DEFAULT_PORT, type=int)

        collected = replace(
            params,
            username=username,
            password=password,
            database_uri=database_uri,
            port=port,
        )

        table = Table(title="Installation settings", show_header=False)
        table.add_row("Admin username", str(collected.username))
        table.add_row("Admin password", "********")
        table.add_row("Database", redact_uri(str(collected.database_uri)))
        table.add_row("Port", str(collected.port))
        table.add_row("Directory", str(collected.install_dir))
        self.console.print(table)

        self.confirm_or_abort("Proceed with installation?", params.assume_yes)
        return collected

    def confirm_or_abort(self, message: str, assume_yes: bool = False):
        if assume_yes:
            return
        if not self.confirm(message, default=False):
            raise ConfirmationAbort("Cancelled: nothing was changed.")
