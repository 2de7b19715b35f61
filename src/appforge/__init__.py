"""
appforge - scaffolding, install and database operations for Actinium applications
"""

__version__ = "0.3.0"

from .errors import AppForgeError, ConfirmationAbort, ExternalOperationError, ValidationError
from .install import Installer
from .migrate import Migrator

__all__ = [
    "AppForgeError",
    "ConfirmationAbort",
    "ExternalOperationError",
    "Installer",
    "Migrator",
    "ValidationError",
]
