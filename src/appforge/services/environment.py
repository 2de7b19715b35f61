"""Environment configuration document handling."""

import json
import os
from typing import Any, Dict

from appforge.constants import SERVER_URI_TEMPLATE
from appforge.errors import ExternalOperationError
from appforge.errors_catalog import actionable_error


class EnvironmentService:
    """Reads, updates and rewrites the application's env.json as a whole."""

    def __init__(self, logger, filesystem_service):
        self.logger = logger
        self.filesystem_service = filesystem_service

    def load(self, path: str) -> Dict[str, Any]:
        if not os.path.isfile(path):
            raise ExternalOperationError(actionable_error("env_file_not_found", path=path))

        try:
            with open(path, "r", encoding="utf-8") as file_obj:
                data = json.load(file_obj)
        except (OSError, json.JSONDecodeError) as exc:
            raise ExternalOperationError(f"Could not read environment file '{path}': {exc}") from exc

        if not isinstance(data, dict):
            raise ExternalOperationError(f"Environment file '{path}' must contain a JSON object.")
        return data

    def save(self, path: str, data: Dict[str, Any]):
        content = json.dumps(data, indent=2) + "\n"
        self.filesystem_service.write_text_atomic(path, content)

    def configure(self, path: str, port: int, database_uri: str) -> Dict[str, Any]:
        data = self.load(path)
        data["SERVER_URI"] = SERVER_URI_TEMPLATE.format(port=port)
        data["PORT"] = port
        data["DATABASE_URI"] = database_uri
        self.save(path, data)
        self.logger.info("Environment written to %s", path)
        return data
