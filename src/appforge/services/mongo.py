"""Direct MongoDB access for listing, dropping and updating."""

from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from appforge.errors import ExternalOperationError
from appforge.services.validation import redact_uri


class MongoService:
    """Thin wrapper over pymongo that turns driver errors into stage failures."""

    def __init__(self, logger, client_factory=MongoClient, timeout_ms: int = 10000):
        self.logger = logger
        self.client_factory = client_factory
        self.timeout_ms = timeout_ms

    @contextmanager
    def database(self, uri: str, db_name: str) -> Iterator[Any]:
        client = None
        try:
            client = self.client_factory(uri, serverSelectionTimeoutMS=self.timeout_ms)
            client.admin.command("ping")
            yield client[db_name]
        except PyMongoError as exc:
            raise ExternalOperationError(
                f"Database operation failed on {redact_uri(uri)}: {exc}"
            ) from exc
        finally:
            if client is not None:
                client.close()

    def list_collections(self, uri: str, db_name: str) -> List[str]:
        with self.database(uri, db_name) as db:
            names = db.list_collection_names()
        return sorted(name for name in names if not name.startswith("system."))

    def drop(self, uri: str, db_name: str, collections: Optional[Iterable[str]] = None):
        """Drops the listed collections, or the whole database when none are given."""
        with self.database(uri, db_name) as db:
            if collections is None:
                self.logger.info("Dropping database %s", db_name)
                db.client.drop_database(db_name)
                return
            for name in sorted(collections):
                self.logger.info("Dropping collection %s.%s", db_name, name)
                db.drop_collection(name)

    def update_one(
        self,
        uri: str,
        db_name: str,
        collection: str,
        query: Dict[str, Any],
        fields: Dict[str, Any],
    ) -> int:
        """Applies `$set: fields` to the first match and returns the matched count."""
        with self.database(uri, db_name) as db:
            result = db[collection].update_one(query, {"$set": fields})
        return result.matched_count
