"""Domain errors for appforge."""

from typing import Iterable, Optional

EXIT_SUCCESS = 0
EXIT_VALIDATION = 1
EXIT_EXTERNAL = 2
EXIT_CANCELLED = 130


class AppForgeError(RuntimeError):
    """Raised when an operation cannot continue safely."""

    exit_code = EXIT_EXTERNAL


class ValidationError(AppForgeError):
    """Raised before any side effect when parameters are missing or invalid."""

    exit_code = EXIT_VALIDATION

    def __init__(self, message: Optional[str] = None, missing: Optional[Iterable[str]] = None):
        self.missing = list(missing or [])
        if message is None:
            message = "Missing required parameters: " + ", ".join(self.missing)
        elif self.missing:
            message = f"{message} Missing required parameters: {', '.join(self.missing)}"
        super().__init__(message)


class ExternalOperationError(AppForgeError):
    """Network, subprocess, filesystem or database failure during a stage."""


class ConfirmationAbort(AppForgeError):
    """The operator declined a confirmation. Not a failure."""

    exit_code = EXIT_SUCCESS


class OperationCancelled(AppForgeError):
    """The operator interrupted a running operation."""

    exit_code = EXIT_CANCELLED
