"""Shared domain models for appforge."""

import re
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from .constants import DEFAULT_ENV_FILE, DEFAULT_SEED_DIR


class DropPolicy(str, Enum):
    NONE = "none"
    DROP_ALL = "drop_all"
    DROP_FILTERED_ONLY = "drop_filtered_only"


def parse_collections(value: Optional[str]) -> Optional[FrozenSet[str]]:
    """Parses `"a, b c"` into `{"a", "b", "c"}`. Empty input means all collections."""
    if not value:
        return None
    names = frozenset(name for name in re.split(r"[,\s]+", value) if name)
    return names or None


@dataclass(frozen=True)
class TransferSpec:
    """One directional transfer against a single database connection."""

    connection_uri: Optional[str]
    root_path: Optional[str]
    collections: Optional[FrozenSet[str]] = None
    drop_policy: DropPolicy = DropPolicy.NONE
    archive_name: Optional[str] = None
    data_format: str = "bson"
    source_database: Optional[str] = None

    @classmethod
    def from_options(
        cls,
        connection_uri: Optional[str],
        root_path: Optional[str],
        collections: Optional[str] = None,
        clear: bool = False,
        archive_name: Optional[str] = None,
        data_format: str = "bson",
        source_database: Optional[str] = None,
    ) -> "TransferSpec":
        parsed = parse_collections(collections)
        if clear and parsed:
            policy = DropPolicy.DROP_FILTERED_ONLY
        elif clear:
            policy = DropPolicy.DROP_ALL
        else:
            policy = DropPolicy.NONE

        return cls(
            connection_uri=connection_uri,
            root_path=root_path,
            collections=parsed,
            drop_policy=policy,
            archive_name=archive_name or None,
            data_format=data_format,
            source_database=source_database,
        )


@dataclass(frozen=True)
class MigrationParams:
    source_uri: Optional[str]
    target_uri: Optional[str]
    collections: Optional[str] = None
    clear: bool = False
    archive_name: Optional[str] = None
    data_format: str = "bson"
    temp_root: Optional[str] = None


@dataclass
class InstallParams:
    """Values collected for one installation. The password never appears in repr."""

    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    database_uri: Optional[str] = None
    port: Optional[int] = None
    overwrite: bool = False
    assume_yes: bool = False
    archive_url: Optional[str] = None
    archive_sha256: Optional[str] = None
    allow_insecure_http: bool = False
    install_dir: Optional[str] = None
    env_file: str = DEFAULT_ENV_FILE
    seed_dir: str = DEFAULT_SEED_DIR
    temp_root: Optional[str] = None
    skip_dependencies: bool = False


@dataclass(frozen=True)
class AdminAccount:
    user_id: str
    username: str
    hashed_password: str = field(repr=False)


@dataclass
class PipelineContext:
    """Mutable state for one pipeline run. Never shared between runs."""

    run_id: str
    scratch_dir: Optional[str] = None
    values: Dict[str, Any] = field(default_factory=dict)
    completed: List[str] = field(default_factory=list)
    resources: Optional[ExitStack] = field(default=None, repr=False)


@dataclass(frozen=True)
class ProcessResult:
    command: List[str]
    returncode: Optional[int]
    status: str
    last_status: Optional[str] = None
    tail: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "success"
