"""Detection of the external MongoDB Database Tools."""

import re
from typing import Callable, Iterable

from packaging import version

from appforge.constants import MIN_TOOLS_VERSION
from appforge.errors import ExternalOperationError
from appforge.errors_catalog import actionable_error

VERSION_PATTERN = re.compile(r"version:?\s*r?(\d+(?:\.\d+)+)", re.IGNORECASE)


class ToolingService:
    """Checks that the transfer tools exist and are recent enough."""

    def __init__(self, logger, console, minimum_version: str = MIN_TOOLS_VERSION):
        self.logger = logger
        self.console = console
        self.minimum_version = version.parse(minimum_version)

    @staticmethod
    def parse_version(output: str) -> version.Version:
        match = VERSION_PATTERN.search(output or "")
        if not match:
            return version.parse("0.0")
        return version.parse(match.group(1))

    def validate(self, commands: Iterable[str], run_cmd: Callable):
        for command in commands:
            result = run_cmd([command, "--version"], check=True, capture_output=True)
            found = self.parse_version(result.stdout)
            self.logger.debug("%s version %s", command, found)
            if found < self.minimum_version:
                raise ExternalOperationError(
                    actionable_error(
                        "tool_too_old",
                        command=command,
                        found=str(found),
                        minimum=str(self.minimum_version),
                    )
                )
