"""
DOCUMENT STORE READ INTERFACE

The engine reads the shared store through two operations only:
- get(collection, key) -> document or None
- find(collection, predicate) -> [(key, document), ...]

Queries are typed equality filters (QueryPredicate of FieldMatch) rather
than pattern strings. Exact matching is used for codes, amounts and dates;
case-insensitive matching for natural keys such as staff numbers.

Implementations:
- InMemoryDocumentStore: dict-backed, used by tests and embedding hosts
- MongoDocumentStore: motor adapter; predicates become Mongo filters
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple
import asyncio
import copy
import logging
import re

from motor.motor_asyncio import AsyncIOMotorDatabase

from ledger_guard.errors import IntegrityViolationError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
KeyedDocument = Tuple[str, Document]


# =============================================================================
# PREDICATES
# =============================================================================

@dataclass(frozen=True)
class FieldMatch:
    """Equality on one field; strings optionally compared case-insensitively."""
    field: str
    value: Any
    case_insensitive: bool = False

    def matches(self, document: Document) -> bool:
        if self.field not in document:
            return False
        actual = document[self.field]
        if self.case_insensitive and isinstance(actual, str) and isinstance(self.value, str):
            return actual.lower() == self.value.lower()
        return actual == self.value


@dataclass(frozen=True)
class QueryPredicate:
    """Conjunction of field matches."""
    matches_all: Tuple[FieldMatch, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, *matches: FieldMatch) -> "QueryPredicate":
        return cls(tuple(matches))

    def matches(self, document: Document) -> bool:
        return all(m.matches(document) for m in self.matches_all)

    def describe(self) -> str:
        """Legacy `field=value;` rendering, for log lines only."""
        return "".join(f"{m.field}={m.value};" for m in self.matches_all)


def to_mongo_filter(predicate: QueryPredicate) -> Dict[str, Any]:
    """Translate a predicate into a Mongo find() filter."""
    query: Dict[str, Any] = {}
    for match in predicate.matches_all:
        if match.case_insensitive and isinstance(match.value, str):
            query[match.field] = {
                "$regex": f"^{re.escape(match.value)}$",
                "$options": "i"
            }
        else:
            query[match.field] = match.value
    return query


# =============================================================================
# INTERFACE
# =============================================================================

class DocumentStore(Protocol):
    async def get(self, collection: str, key: str) -> Optional[Document]:
        ...

    async def find(self, collection: str, predicate: QueryPredicate) -> List[KeyedDocument]:
        ...


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryDocumentStore:
    """
    Dict-backed store.

    commit() writes unconditionally, exactly like a host that validates and
    then commits without a fence. commit_unique() re-checks a predicate and
    writes under one lock, so at most one of two racing writers succeeds.
    """

    def __init__(self, data: Optional[Dict[str, Dict[str, Document]]] = None):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = asyncio.Lock()
        for collection, documents in (data or {}).items():
            for key, document in documents.items():
                self.put(collection, key, document)

    def put(self, collection: str, key: str, document: Document) -> None:
        self._collections.setdefault(collection, {})[key] = copy.deepcopy(document)

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))

    async def get(self, collection: str, key: str) -> Optional[Document]:
        document = self._collections.get(collection, {}).get(key)
        return copy.deepcopy(document) if document is not None else None

    async def find(self, collection: str, predicate: QueryPredicate) -> List[KeyedDocument]:
        return [
            (key, copy.deepcopy(document))
            for key, document in self._collections.get(collection, {}).items()
            if predicate.matches(document)
        ]

    async def commit(self, collection: str, key: str, document: Document) -> None:
        self.put(collection, key, document)

    async def commit_unique(
        self,
        collection: str,
        key: str,
        document: Document,
        conflict: Callable[[Document], QueryPredicate]
    ) -> None:
        """
        Compare-and-set commit.

        `conflict` builds the predicate a second record must not satisfy
        (e.g. same reference). Raises IntegrityViolationError on a clash.
        """
        async with self._lock:
            predicate = conflict(document)
            clashes = [k for k, _ in await self.find(collection, predicate) if k != key]
            if clashes:
                logger.info(
                    f"[STORE] Commit refused in {collection}: {predicate.describe()} "
                    f"held by {clashes[0]}"
                )
                raise IntegrityViolationError(
                    f"Record matching {predicate.describe()} already committed as '{clashes[0]}'",
                    details={"collection": collection, "existing_key": clashes[0]}
                )
            self.put(collection, key, document)


# =============================================================================
# MONGO STORE
# =============================================================================

# (field, case_insensitive) pairs backed by a unique index
UNIQUE_FIELDS: Dict[str, List[Tuple[str, bool]]] = {
    "expenses": [("reference", False)],
    "payments": [("reference", False)],
    "salary_payments": [("reference", False)],
    "staff": [("staffNumber", True)],
    "students": [("admissionNumber", True)],
    "expense_categories": [("name", True)],
    "bank_accounts": [("accountNumber", True)],
}

CASE_INSENSITIVE_COLLATION = {"locale": "en", "strength": 2}


class MongoDocumentStore:
    """
    Motor-backed store. The store key is the document's `_id`.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    @staticmethod
    def _split(document: Document) -> KeyedDocument:
        document = dict(document)
        key = str(document.pop("_id"))
        return key, document

    async def get(self, collection: str, key: str) -> Optional[Document]:
        document = await self.db[collection].find_one({"_id": key})
        if document is None:
            return None
        return self._split(document)[1]

    async def find(self, collection: str, predicate: QueryPredicate) -> List[KeyedDocument]:
        query = to_mongo_filter(predicate)
        logger.debug(f"[STORE] find {collection}: {query}")
        return [self._split(doc) async for doc in self.db[collection].find(query)]

    async def ensure_unique_indexes(self) -> None:
        """
        Create unique indexes on reference codes and natural keys.

        Closes the validate-then-commit race at storage level: the second of
        two racing inserts fails on the index even though both validated.
        """
        for collection, fields in UNIQUE_FIELDS.items():
            for field_name, case_insensitive in fields:
                options: Dict[str, Any] = {
                    "unique": True,
                    "name": f"unique_{field_name}",
                    "partialFilterExpression": {field_name: {"$type": "string"}},
                }
                if case_insensitive:
                    options["collation"] = CASE_INSENSITIVE_COLLATION
                try:
                    await self.db[collection].create_index([(field_name, 1)], **options)
                    logger.info(f"[STORE] Unique index on {collection}.{field_name}")
                except Exception as e:
                    # Index may already exist with different options
                    logger.warning(f"[STORE] Index creation result for {collection}.{field_name}: {e}")
