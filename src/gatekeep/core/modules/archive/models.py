from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from gatekeep.core.db import MongoModel
from gatekeep.utils import now


class ArchivedAccount(MongoModel):
    """Snapshot of a deleted account. Secrets (salt, OTP) are not archived."""

    account_id: UUID
    account: dict[str, Any]
    created_at: datetime = Field(default_factory=now)
