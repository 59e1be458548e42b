from typing import Any

from pymongo.asynchronous.database import AsyncDatabase

from gatekeep.core.core import Service
from gatekeep.core.db import Txn
from gatekeep.core.modules.account.models import Account
from gatekeep.core.modules.archive.models import ArchivedAccount

# Account fields that never leave the accounts collection
_SECRET_FIELDS = {"salt", "otp", "otp_expires_at"}


class ArchiveService(Service):
    """Keeps snapshots of deleted accounts."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("archived_accounts")

    async def on_start(self) -> None:
        await self._collection.create_index([("account_id", 1)])

    async def archive_account(self, account: Account, txn: Txn = None) -> ArchivedAccount:
        archived = ArchivedAccount(
            account_id=account.id,
            account=account.model_dump(mode="json", exclude=_SECRET_FIELDS),
        )
        await self._collection.insert_one(archived.to_mongo(), session=txn)
        return archived
