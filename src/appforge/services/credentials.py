"""Admin credential hashing and provisioning."""

from datetime import datetime, timezone

import bcrypt

from appforge.constants import ADMIN_COLLECTION, ADMIN_USER_ID
from appforge.errors import ExternalOperationError
from appforge.errors_catalog import actionable_error
from appforge.models import AdminAccount

MAX_PASSWORD_BYTES = 72


class CredentialService:
    """Hashes admin passwords and writes them to the well-known user document.

    Only the bcrypt hash ever leaves this class; the plaintext is neither
    logged nor persisted.
    """

    def __init__(self, logger, mongo_service, rounds: int = 10):
        self.logger = logger
        self.mongo = mongo_service
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        try:
            hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds))
        except (TypeError, ValueError) as exc:
            raise ExternalOperationError(f"Could not hash admin password: {exc}") from exc
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed_password: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))

    def provision_admin(
        self,
        uri: str,
        db_name: str,
        username: str,
        password: str,
        user_id: str = ADMIN_USER_ID,
        collection: str = ADMIN_COLLECTION,
    ) -> AdminAccount:
        account = AdminAccount(
            user_id=user_id,
            username=username,
            hashed_password=self.hash_password(password),
        )
        matched = self.mongo.update_one(
            uri,
            db_name,
            collection,
            {"_id": account.user_id},
            {
                "username": account.username,
                "_hashed_password": account.hashed_password,
                "_updated_at": datetime.now(timezone.utc),
            },
        )
        if not matched:
            raise ExternalOperationError(
                actionable_error("admin_user_not_found", user_id=user_id, collection=collection)
            )

        self.logger.info("Admin user '%s' provisioned.", username)
        return account
