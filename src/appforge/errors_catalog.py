"""Actionable error catalog for appforge."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_database_name": {
        "what": "{label} does not name a database: {uri}",
        "next": "Use the form `mongodb://[user:pass@]host[:port]/dbname`.",
    },
    "invalid_connection_uri": {
        "what": "{label} is not a valid MongoDB connection string: {reason}",
        "next": "Use the form `mongodb://[user:pass@]host[:port]/dbname`.",
    },
    "insecure_http": {
        "what": "{label} uses insecure HTTP.",
        "next": "Switch to HTTPS or use `--allow-insecure-http` only for trusted endpoints.",
    },
    "directory_not_empty": {
        "what": "Install directory is not empty: {path}",
        "next": "Run the install in an empty directory or pass `--overwrite`.",
    },
    "env_file_not_found": {
        "what": "Environment file not found: {path}",
        "next": "Check that the downloaded application archive is complete.",
    },
    "seed_data_not_found": {
        "what": "Seed data directory not found: {path}",
        "next": "Check that the downloaded application archive is complete.",
    },
    "admin_user_not_found": {
        "what": "Admin user document `{user_id}` not found in `{collection}`.",
        "next": "Re-run the install so the seed data is restored before provisioning.",
    },
    "tool_not_found": {
        "what": "Required command not found: {command}",
        "next": "Install the MongoDB Database Tools and make sure they are on PATH.",
    },
    "tool_too_old": {
        "what": "{command} {found} is older than the supported minimum {minimum}.",
        "next": "Upgrade the MongoDB Database Tools.",
    },
    "archive_not_found": {
        "what": "Archive not found: {path}",
        "next": "Check `--path` and `--zip`, or run a backup first.",
    },
    "dependencies_failed": {
        "what": "Dependency installation failed ({returncode}).",
        "next": "Run `npm install` manually in {path} to inspect the error.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
