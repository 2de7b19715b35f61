"""Configuration loader for appforge."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from appforge.errors import ValidationError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults.

    Top-level keys apply to the whole tool; each command reads its own
    section. Passwords are deliberately not accepted here.
    """

    GLOBAL_KEYS = {"verbose", "log_file"}
    SECTION_KEYS = {
        "create": {"path", "core"},
        "backup": {"db", "path", "zip", "type", "collections"},
        "restore": {"db", "path", "zip", "type", "collections", "clear"},
        "migrate": {"from", "to", "zip", "type", "collections", "clear", "temp_root"},
        "install": {
            "username",
            "db",
            "port",
            "overwrite",
            "archive_url",
            "archive_sha256",
            "allow_insecure_http",
            "skip_dependencies",
            "temp_root",
            "download_timeout",
        },
        "launch": {"timeout"},
        "build": {"timeout"},
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ValidationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ValidationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ValidationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.GLOBAL_KEYS - set(self.SECTION_KEYS))
        if unknown:
            raise ValidationError(f"Unknown configuration keys: {', '.join(unknown)}")

        for section, allowed in self.SECTION_KEYS.items():
            values = parsed.get(section)
            if values is None:
                continue
            if not isinstance(values, dict):
                raise ValidationError(f"Config section '{section}' must be a mapping.")
            unknown = sorted(set(values.keys()) - allowed)
            if unknown:
                raise ValidationError(
                    f"Unknown configuration keys in '{section}': {', '.join(unknown)}"
                )

        return parsed

    @staticmethod
    def section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
        return config.get(name) or {}
