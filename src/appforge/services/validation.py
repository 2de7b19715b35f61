"""Parameter, connection string and URL validation helpers for appforge."""

from typing import Any, Mapping, Optional
from urllib.parse import unquote, urlparse

from appforge.errors import ValidationError
from appforge.errors_catalog import actionable_error

MONGO_SCHEMES = {"mongodb", "mongodb+srv"}


class ValidationService:
    """Validates parameters up front so nothing runs on bad input."""

    def __init__(self, allow_insecure_http: bool = False):
        self.allow_insecure_http = allow_insecure_http

    @staticmethod
    def require(values: Mapping[str, Any]):
        """Raises one ValidationError naming every key whose value is empty."""
        missing = [name for name, value in values.items() if value is None or value == ""]
        if missing:
            raise ValidationError(missing=missing)

    @staticmethod
    def database_name(uri: str, label: str = "Connection URI") -> str:
        parsed = urlparse(uri)
        if parsed.scheme.lower() not in MONGO_SCHEMES:
            raise ValidationError(
                actionable_error(
                    "invalid_connection_uri",
                    label=label,
                    reason=f"unsupported scheme `{parsed.scheme or '<none>'}`",
                )
            )
        if not parsed.netloc:
            raise ValidationError(
                actionable_error("invalid_connection_uri", label=label, reason="missing host")
            )

        name = unquote(parsed.path.lstrip("/"))
        if not name or "/" in name:
            raise ValidationError(
                actionable_error("missing_database_name", label=label, uri=redact_uri(uri))
            )
        return name

    @staticmethod
    def port(value: Any) -> int:
        try:
            port = int(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Port must be an integer, got `{value}`.") from exc
        if not 1 <= port <= 65535:
            raise ValidationError(f"Port must be between 1 and 65535, got {port}.")
        return port

    @staticmethod
    def sha256(value: Optional[str], option_name: str) -> Optional[str]:
        if value is None:
            return None

        clean_value = value.strip().lower()
        if len(clean_value) != 64 or any(c not in "0123456789abcdef" for c in clean_value):
            raise ValidationError(
                f"{option_name} must be a valid SHA-256 hash (64 hexadecimal characters)."
            )
        return clean_value

    @staticmethod
    def is_url(location: str) -> bool:
        scheme = urlparse(location).scheme.lower()
        return scheme in {"http", "https"}

    def enforce_https_policy(self, location: str, label: str, logger, console):
        if not self.is_url(location):
            raise ValidationError(f"{label} must be an HTTP(S) URL: {location}")

        scheme = urlparse(location).scheme.lower()
        if scheme == "http" and not self.allow_insecure_http:
            raise ValidationError(actionable_error("insecure_http", label=label))

        if scheme == "http":
            logger.warning("Insecure HTTP enabled for %s: %s", label, location)
            console.print(
                f"[yellow]Warning:[/yellow] Using insecure HTTP for {label}. "
                "Prefer HTTPS whenever possible."
            )


def redact_uri(uri: str) -> str:
    """Hides credentials in a connection string so it is safe to print or log."""
    if "://" not in uri or "@" not in uri:
        return uri
    scheme, rest = uri.split("://", 1)
    return f"{scheme}://***@{rest.rsplit('@', 1)[1]}"
