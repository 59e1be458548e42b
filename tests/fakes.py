"""In-memory test doubles for the parts of the PyMongo async API the services use."""

import copy
import smtplib
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from gatekeep.config import Config
from gatekeep.core.modules.mail.service import MailService
from gatekeep.core.modules.mail.templates import MailTemplate

_COMPARATORS = {
    "$gt": lambda value, operand: value > operand,
    "$gte": lambda value, operand: value >= operand,
    "$lt": lambda value, operand: value < operand,
    "$lte": lambda value, operand: value <= operand,
    "$ne": lambda value, operand: value != operand,
}


def matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    """Evaluate the subset of the MongoDB query language used by the services."""
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif isinstance(condition, dict) and condition and all(op.startswith("$") for op in condition):
            value = doc.get(key)
            for op, operand in condition.items():
                if op != "$ne" and value is None:
                    return False
                if not _COMPARATORS[op](value, operand):
                    return False
        elif doc.get(key) != condition:
            return False
    return True


def sort_docs(docs: list[dict[str, Any]], sort: list[tuple[str, int]] | None) -> list[dict[str, Any]]:
    result = list(docs)
    for key, direction in reversed(sort or []):
        result.sort(key=lambda doc: doc[key], reverse=direction < 0)
    return result


@dataclass
class InsertResult:
    inserted_id: Any


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int


@dataclass
class DeleteResult:
    deleted_count: int


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        for doc in self._docs:
            yield doc


class FakeCollection:
    """Collection double that keeps documents in a list and enforces unique indexes."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: list[dict[str, Any]] = []
        self.unique_keys: list[tuple[str, ...]] = []
        self.calls: list[str] = []

    async def create_index(self, keys: list[tuple[str, int]], unique: bool = False, **_: Any) -> str:
        if unique:
            self.unique_keys.append(tuple(key for key, _ in keys))
        return "_".join(f"{key}_{direction}" for key, direction in keys)

    async def insert_one(self, doc: dict[str, Any], session: Any = None) -> InsertResult:
        self.calls.append("insert_one")
        new_doc = copy.deepcopy(doc)
        self._check_unique(new_doc, exclude=None)
        self.docs.append(new_doc)
        return InsertResult(inserted_id=new_doc["_id"])

    async def find_one(
        self,
        filter: dict[str, Any],
        projection: dict[str, Any] | None = None,
        sort: list[tuple[str, int]] | None = None,
        session: Any = None,
    ) -> dict[str, Any] | None:
        self.calls.append("find_one")
        found = sort_docs([doc for doc in self.docs if matches(doc, filter)], sort)
        if not found:
            return None
        doc = copy.deepcopy(found[0])
        if projection:
            doc = {key: value for key, value in doc.items() if key == "_id" or projection.get(key)}
        return doc

    def find(
        self,
        filter: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
        limit: int = 0,
        session: Any = None,
    ) -> FakeCursor:
        self.calls.append("find")
        found = sort_docs([doc for doc in self.docs if matches(doc, filter)], sort)
        if limit:
            found = found[:limit]
        return FakeCursor(copy.deepcopy(found))

    async def update_one(self, filter: dict[str, Any], update: dict[str, Any], session: Any = None) -> UpdateResult:
        self.calls.append("update_one")
        for doc in self.docs:
            if matches(doc, filter):
                updated = {**doc, **copy.deepcopy(update.get("$set", {}))}
                self._check_unique(updated, exclude=doc)
                doc.update(updated)
                return UpdateResult(matched_count=1, modified_count=1)
        return UpdateResult(matched_count=0, modified_count=0)

    async def find_one_and_update(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        projection: dict[str, Any] | None = None,
        return_document: ReturnDocument = ReturnDocument.BEFORE,
        session: Any = None,
    ) -> dict[str, Any] | None:
        self.calls.append("find_one_and_update")
        for doc in self.docs:
            if matches(doc, filter):
                before = copy.deepcopy(doc)
                updated = {**doc, **copy.deepcopy(update.get("$set", {}))}
                self._check_unique(updated, exclude=doc)
                doc.update(updated)
                result = before if return_document == ReturnDocument.BEFORE else copy.deepcopy(doc)
                if projection:
                    result = {key: value for key, value in result.items() if key == "_id" or projection.get(key)}
                return result
        return None

    async def delete_one(self, filter: dict[str, Any], session: Any = None) -> DeleteResult:
        self.calls.append("delete_one")
        for i, doc in enumerate(self.docs):
            if matches(doc, filter):
                del self.docs[i]
                return DeleteResult(deleted_count=1)
        return DeleteResult(deleted_count=0)

    async def delete_many(self, filter: dict[str, Any], session: Any = None) -> DeleteResult:
        self.calls.append("delete_many")
        kept = [doc for doc in self.docs if not matches(doc, filter)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return DeleteResult(deleted_count=deleted)

    async def count_documents(self, filter: dict[str, Any], limit: int = 0, session: Any = None) -> int:
        self.calls.append("count_documents")
        count = sum(1 for doc in self.docs if matches(doc, filter))
        return min(count, limit) if limit else count

    def _check_unique(self, new_doc: dict[str, Any], exclude: dict[str, Any] | None) -> None:
        for keys in self.unique_keys:
            for doc in self.docs:
                if doc is exclude:
                    continue
                if all(doc.get(key) == new_doc.get(key) for key in keys):
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name}",
                        code=11000,
                        details={"keyPattern": {key: 1 for key in keys}},
                    )


class FakeDatabase:
    def __init__(self, name: str = "gatekeep_test") -> None:
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def __getitem__(self, name: str) -> FakeCollection:
        return self.get_collection(name)


class FakeTransactions:
    """Snapshots every collection on entry and restores the snapshot when the block raises."""

    def __init__(self, database: FakeDatabase) -> None:
        self._database = database
        self.committed = 0
        self.aborted = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[object]:
        snapshot = {name: copy.deepcopy(c.docs) for name, c in self._database.collections.items()}
        try:
            yield object()
        except BaseException:
            for name, collection in self._database.collections.items():
                collection.docs = snapshot.get(name, [])
            self.aborted += 1
            raise
        self.committed += 1


@dataclass
class SentMail:
    to: str
    subject: str
    template_name: MailTemplate
    params: dict[str, Any]
    html: str = ""


@dataclass
class MailOutbox:
    sent: list[SentMail] = field(default_factory=list)
    fail: bool = False

    def last(self, template_name: MailTemplate) -> SentMail:
        return [mail for mail in self.sent if mail.template_name == template_name][-1]


class RecordingMailer(MailService):
    """MailService that renders templates for real but records mails instead of talking SMTP."""

    def __init__(self, config: Config, outbox: MailOutbox) -> None:
        super().__init__(config)
        self.outbox = outbox

    @property
    def is_configured(self) -> bool:
        return True

    async def send_mail(self, to: str, subject: str, template_name: MailTemplate, params: dict[str, Any]) -> None:
        if self.outbox.fail:
            raise smtplib.SMTPException("SMTP server unavailable")
        self.outbox.sent.append(SentMail(to=to, subject=subject, template_name=template_name, params=params))
        await super().send_mail(to, subject, template_name, params)

    def _send(self, to: str, subject: str, html_body: str) -> None:
        self.outbox.sent[-1].html = html_body
