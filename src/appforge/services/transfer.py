"""Database export/import through the MongoDB Database Tools."""

import os
import tempfile
from typing import Callable, List, Tuple
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from appforge.constants import ARCHIVE_EXTENSION, DATA_FORMATS
from appforge.errors import ExternalOperationError, ValidationError
from appforge.errors_catalog import actionable_error
from appforge.models import DropPolicy, TransferSpec
from appforge.services.validation import ValidationService, redact_uri


class TransferService:
    """Runs one directional transfer (export or import) for a TransferSpec.

    Exports produce `<root>/<database>/<collection>.bson|json`, or a single zip
    archive of that tree when `archive_name` is set. Imports read the same
    layout back, optionally remapping the source database name onto the
    target one.
    """

    TOOLS = {
        "bson": ("mongodump", "mongorestore"),
        "json": ("mongoexport", "mongoimport"),
    }

    def __init__(
        self,
        logger,
        console,
        run_cmd: Callable,
        mongo_service,
        archive_service,
        filesystem_service,
    ):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.mongo = mongo_service
        self.archive_service = archive_service
        self.filesystem_service = filesystem_service

    @classmethod
    def tools_for(cls, data_format: str) -> Tuple[str, str]:
        return cls.TOOLS[data_format]

    def validate(self, spec: TransferSpec, must_exist: bool = False) -> str:
        """Checks the transfer without touching anything and returns the database name."""
        ValidationService.require({"db": spec.connection_uri, "path": spec.root_path})
        if spec.data_format not in DATA_FORMATS:
            raise ValidationError(
                f"Unsupported data format `{spec.data_format}`. Use one of: {', '.join(DATA_FORMATS)}."
            )
        db_name = ValidationService.database_name(spec.connection_uri)

        if os.path.exists(spec.root_path) and not os.path.isdir(spec.root_path):
            raise ValidationError(f"Path is not a directory: {spec.root_path}")
        if must_exist and not os.path.isdir(spec.root_path):
            raise ValidationError(f"Path not found: {spec.root_path}")
        if must_exist and spec.archive_name and not os.path.isfile(self.archive_path(spec)):
            raise ValidationError(actionable_error("archive_not_found", path=self.archive_path(spec)))
        return db_name

    @staticmethod
    def archive_path(spec: TransferSpec) -> str:
        name = spec.archive_name or ""
        if not name.lower().endswith(ARCHIVE_EXTENSION):
            name = f"{name}{ARCHIVE_EXTENSION}"
        return os.path.join(spec.root_path, name)

    @staticmethod
    def server_uri(uri: str, db_name: str) -> str:
        """Drops the database path from `uri`, keeping it as `authSource` when credentials are present."""
        parsed = urlparse(uri)
        query = parse_qsl(parsed.query, keep_blank_values=True)
        if "@" in parsed.netloc and not any(key == "authSource" for key, _ in query):
            query.append(("authSource", db_name))
        return urlunparse(parsed._replace(path="/", query=urlencode(query)))

    def export(self, spec: TransferSpec) -> str:
        db_name = self.validate(spec)
        self.console.print(f"[blue]Exporting database {db_name}...[/blue]")
        self.logger.info("Exporting %s to %s", redact_uri(spec.connection_uri), spec.root_path)

        try:
            os.makedirs(spec.root_path, exist_ok=True)
        except OSError as exc:
            raise ExternalOperationError(f"Could not create {spec.root_path}: {exc}") from exc

        if not spec.archive_name:
            self._dump(spec, db_name, spec.root_path)
            output = os.path.join(spec.root_path, db_name)
        else:
            work_dir = tempfile.mkdtemp(prefix=".export-", dir=spec.root_path)
            try:
                self._dump(spec, db_name, work_dir)
                output = self.archive_path(spec)
                self.archive_service.pack_directory(work_dir, output)
            finally:
                self.filesystem_service.cleanup_dir(work_dir)

        self.console.print(f"[green]Export complete: {output}[/green]")
        return output

    def import_(self, spec: TransferSpec):
        db_name = self.validate(spec, must_exist=True)
        self.console.print(f"[blue]Importing into database {db_name}...[/blue]")
        self.logger.info("Importing %s into %s", spec.root_path, redact_uri(spec.connection_uri))

        if not spec.archive_name:
            self._restore(spec, db_name, spec.root_path)
        else:
            work_dir = tempfile.mkdtemp(prefix=".import-", dir=spec.root_path)
            try:
                self.archive_service.safe_extract_zip(self.archive_path(spec), work_dir)
                self._restore(spec, db_name, work_dir)
            finally:
                self.filesystem_service.cleanup_dir(work_dir)

        self.console.print("[green]Import complete.[/green]")

    def _dump(self, spec: TransferSpec, db_name: str, out_dir: str):
        dump_tool = self.tools_for(spec.data_format)[0]

        if spec.data_format == "bson":
            cmd = [dump_tool, f"--uri={spec.connection_uri}", f"--out={out_dir}"]
            if spec.collections:
                existing = self.mongo.list_collections(spec.connection_uri, db_name)
                self._warn_unknown(spec.collections, existing, db_name)
                for name in existing:
                    if name not in spec.collections:
                        cmd.append(f"--excludeCollection={name}")
            self.run_cmd(cmd, check=True, capture_output=True)
            return

        names = self.mongo.list_collections(spec.connection_uri, db_name)
        if spec.collections:
            self._warn_unknown(spec.collections, names, db_name)
            names = [name for name in names if name in spec.collections]

        target_dir = os.path.join(out_dir, db_name)
        os.makedirs(target_dir, exist_ok=True)
        for name in names:
            self.run_cmd(
                [
                    dump_tool,
                    f"--uri={spec.connection_uri}",
                    f"--collection={name}",
                    f"--out={os.path.join(target_dir, name + '.json')}",
                ],
                check=True,
                capture_output=True,
            )

    def _restore(self, spec: TransferSpec, db_name: str, dump_root: str):
        source_db = spec.source_database or self.discover_source_database(dump_root, db_name)
        dump_dir = os.path.join(dump_root, source_db)
        if not os.path.isdir(dump_dir):
            raise ExternalOperationError(
                f"No exported data for database `{source_db}` found in {dump_root}."
            )

        self._apply_drop_policy(spec, db_name)
        restore_tool = self.tools_for(spec.data_format)[1]

        if spec.data_format == "bson":
            cmd = [
                restore_tool,
                f"--uri={self.server_uri(spec.connection_uri, db_name)}",
                f"--dir={dump_root}",
            ]
            if spec.collections:
                cmd.extend(f"--nsInclude={source_db}.{name}" for name in sorted(spec.collections))
            else:
                cmd.append(f"--nsInclude={source_db}.*")
            if source_db != db_name:
                cmd.extend([f"--nsFrom={source_db}.*", f"--nsTo={db_name}.*"])
            self.run_cmd(cmd, check=True, capture_output=True)
            return

        for name, file_path in self._json_files(dump_dir):
            if spec.collections and name not in spec.collections:
                continue
            self.run_cmd(
                [
                    restore_tool,
                    f"--uri={spec.connection_uri}",
                    f"--collection={name}",
                    f"--file={file_path}",
                ],
                check=True,
                capture_output=True,
            )

    def _apply_drop_policy(self, spec: TransferSpec, db_name: str):
        if spec.drop_policy == DropPolicy.DROP_ALL:
            self.mongo.drop(spec.connection_uri, db_name)
        elif spec.drop_policy == DropPolicy.DROP_FILTERED_ONLY:
            self.mongo.drop(spec.connection_uri, db_name, spec.collections or ())

    def discover_source_database(self, dump_root: str, target_db: str) -> str:
        candidates = self.filesystem_service.visible_entries(dump_root)
        candidates = [name for name in candidates if os.path.isdir(os.path.join(dump_root, name))]
        if len(candidates) == 1:
            return candidates[0]
        if target_db in candidates:
            return target_db
        if not candidates:
            raise ExternalOperationError(f"No exported database found in {dump_root}.")
        raise ExternalOperationError(
            f"Several exported databases found in {dump_root}: {', '.join(candidates)}. "
            "Point --path at a directory holding a single export."
        )

    @staticmethod
    def _json_files(dump_dir: str) -> List[Tuple[str, str]]:
        files = []
        for file_name in sorted(os.listdir(dump_dir)):
            if not file_name.endswith(".json") or file_name.endswith(".metadata.json"):
                continue
            files.append((file_name[: -len(".json")], os.path.join(dump_dir, file_name)))
        return files

    def _warn_unknown(self, requested, existing: List[str], db_name: str):
        unknown = sorted(set(requested) - set(existing))
        if unknown:
            self.logger.warning(
                "Collections not found in %s and skipped: %s", db_name, ", ".join(unknown)
            )
