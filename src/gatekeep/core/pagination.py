"""Cursor (seek-method) pagination over MongoDB collections.

A page is fetched by adding a composite key predicate to a base query instead
of skipping rows, so paging stays O(page) and stable under concurrent writes.
"""

import base64
import binascii
import json
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Any, Generic, TypeVar
from urllib.parse import quote, unquote

import structlog
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.collection import AsyncCollection

from gatekeep.core.db import MongoModel, Txn
from gatekeep.errors import InvalidCursorError, ValidationError

logger = structlog.get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=MongoModel)


class OrderDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"

    def reversed(self) -> "OrderDirection":
        return OrderDirection.DESC if self == OrderDirection.ASC else OrderDirection.ASC


class CursorPage(BaseModel, Generic[T]):
    """One page of a cursor-paginated listing."""

    data: list[T] = Field(..., description="Items in the current page, in logical order")
    next_cursor: str = Field("", description="Cursor for the next page, empty when there is none")
    previous_cursor: str = Field("", description="Cursor for the previous page, empty when there is none")


def encode_cursor(values: Sequence[Any]) -> str:
    """Encode key values as base64url(URI-encoded JSON array)."""
    payload = json.dumps(list(values), ensure_ascii=False, separators=(",", ":"))
    quoted = quote(payload, safe="")
    return base64.urlsafe_b64encode(quoted.encode("ascii")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[Any, ...]:
    """Decode a cursor produced by encode_cursor.

    Raises:
        InvalidCursorError: If the cursor is not valid base64, URI escaping or a JSON array
    """
    try:
        quoted = base64.b64decode(cursor.encode("ascii"), altchars=b"-_", validate=True).decode("ascii")
        values = json.loads(unquote(quoted, errors="strict"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidCursorError from e
    if not isinstance(values, list):
        raise InvalidCursorError
    return tuple(values)


def build_sort(keys: Sequence[str], direction: OrderDirection) -> list[tuple[str, int]]:
    """Build a MongoDB sort specification applying one direction to every key."""
    mongo_direction = ASCENDING if direction == OrderDirection.ASC else DESCENDING
    return [(key, mongo_direction) for key in keys]


def build_seek_query(keys: Sequence[str], values: Sequence[Any], direction: OrderDirection) -> dict[str, Any]:
    """Build the composite "(k1, ..., kn) > (v1, ..., vn)" predicate.

    Expressed as an $or of clauses where the first i keys are equal and the
    (i+1)-th key is strictly greater ($gt for ascending, $lt for descending).
    """
    if len(keys) != len(values):
        raise InvalidCursorError(f"Cursor has {len(values)} values, expected {len(keys)}")
    operator = "$gt" if direction == OrderDirection.ASC else "$lt"

    clauses: list[dict[str, Any]] = []
    for i, key in enumerate(keys):
        clause: dict[str, Any] = {keys[j]: values[j] for j in range(i)}
        clause[key] = {operator: values[i]}
        clauses.append(clause)

    if len(clauses) == 1:
        return clauses[0]
    return {"$or": clauses}


def merge_query(query: dict[str, Any], predicate: dict[str, Any]) -> dict[str, Any]:
    """AND a predicate onto a base query without mutating the base query."""
    if not query:
        return predicate
    return {"$and": [query, predicate]}


async def cursor_paginate(
    collection: AsyncCollection[dict[str, Any]],
    query: dict[str, Any],
    model: type[M],
    keys: Sequence[str],
    direction: OrderDirection,
    take: int,
    cursor_builder: Callable[[M], Sequence[Any]],
    cursor_parser: Callable[[tuple[Any, ...]], Sequence[Any]] | None = None,
    next_cursor: str | None = None,
    previous_cursor: str | None = None,
    txn: Txn = None,
) -> CursorPage[M]:
    """Fetch one page of documents ordered by keys.

    Args:
        collection: Collection to read from
        query: Base filter; never mutated, reused for the existence checks
        model: Document model used to parse rows
        keys: Composite sort key, must be a total order (end with a unique field)
        direction: Logical order of the listing
        take: Page size
        cursor_builder: Maps a row to JSON-serializable key values, one per key
        cursor_parser: Converts decoded cursor values back to query values
        next_cursor: Continue after this position
        previous_cursor: Continue before this position
        txn: Optional transaction session

    Raises:
        ValidationError: If both cursors are given or take is not positive
        InvalidCursorError: If a cursor cannot be decoded
    """
    if next_cursor and previous_cursor:
        raise ValidationError("next_cursor and previous_cursor are mutually exclusive")
    if take < 1:
        raise ValidationError("take must be at least 1")

    backward = bool(previous_cursor)
    fetch_direction = direction.reversed() if backward else direction

    page_query = query
    cursor = next_cursor or previous_cursor
    if cursor:
        values = _parse_cursor(cursor, cursor_parser)
        page_query = merge_query(query, build_seek_query(keys, values, fetch_direction))

    logger.debug("cursor_paginate", collection=collection.name, query=page_query, direction=fetch_direction, take=take)

    rows = await model.list_cursor(
        collection.find(page_query, sort=build_sort(keys, fetch_direction), limit=take, session=txn)
    )
    if backward:
        rows.reverse()

    if not rows:
        return CursorPage(data=[])

    first_values = list(cursor_builder(rows[0]))
    last_values = list(cursor_builder(rows[-1]))

    parse = cursor_parser or _identity
    has_previous = await _exists_beyond(collection, query, keys, parse(tuple(first_values)), direction.reversed(), txn)
    has_next = await _exists_beyond(collection, query, keys, parse(tuple(last_values)), direction, txn)

    return CursorPage(
        data=rows,
        previous_cursor=encode_cursor(first_values) if has_previous else "",
        next_cursor=encode_cursor(last_values) if has_next else "",
    )


async def _exists_beyond(
    collection: AsyncCollection[dict[str, Any]],
    query: dict[str, Any],
    keys: Sequence[str],
    values: Sequence[Any],
    direction: OrderDirection,
    txn: Txn,
) -> bool:
    """Check whether at least one row lies strictly beyond values in direction."""
    beyond = merge_query(query, build_seek_query(keys, values, direction))
    row = await collection.find_one(beyond, projection={"_id": 1}, sort=build_sort(keys, direction), session=txn)
    return row is not None


def _parse_cursor(cursor: str, cursor_parser: Callable[[tuple[Any, ...]], Sequence[Any]] | None) -> Sequence[Any]:
    values = decode_cursor(cursor)
    if cursor_parser is None:
        return values
    try:
        return cursor_parser(values)
    except Exception as e:  # noqa: BLE001
        # Any parser failure means a tampered or foreign cursor
        raise InvalidCursorError from e


def _identity(values: tuple[Any, ...]) -> Sequence[Any]:
    return values
