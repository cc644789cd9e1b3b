"""
REFERENTIAL & UNIQUENESS PROTECTION

Store-backed integrity checks run before a write is accepted:
- Reference code uniqueness (expenses, payments, salary payments)
- Natural key uniqueness, case-insensitive (staff number, admission number,
  category name, bank account number)
- Foreign key existence (category, class, fee assignment, fee category)
- Duplicate submission heuristics (same vendor/amount/date expense,
  second paid salary for a staff member and period)

A match whose store key equals the key being written is the record itself
and is ignored. Store failures become StoreQueryError; nothing is retried.

The read-then-decide checks are not fenced against concurrent writers.
Use InMemoryDocumentStore.commit_unique or MongoDocumentStore unique
indexes to close that race at commit time.
"""

from typing import List, Optional
import logging

from ledger_guard.errors import IntegrityViolationError, StoreQueryError
from ledger_guard.financial_precision import Number, format_amount
from ledger_guard.store import (
    Document,
    DocumentStore,
    FieldMatch,
    KeyedDocument,
    QueryPredicate,
)

logger = logging.getLogger(__name__)


class DuplicateRecordError(IntegrityViolationError):
    """Raised when a unique value is already held by another record"""
    def __init__(self, message: str, collection: str, existing_key: str):
        self.collection = collection
        self.existing_key = existing_key
        super().__init__(
            message,
            details={"collection": collection, "existing_key": existing_key}
        )


class MissingReferenceError(IntegrityViolationError):
    """Raised when a referenced record does not exist"""
    def __init__(self, message: str, collection: str, missing_key: str):
        self.collection = collection
        self.missing_key = missing_key
        super().__init__(
            message,
            details={"collection": collection, "missing_key": missing_key}
        )


class DuplicateProtection:
    """
    Service for uniqueness and referential checks against the document store.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    # =========================================================================
    # INTERNAL: GUARDED STORE READS
    # =========================================================================

    async def _find(self, collection: str, predicate: QueryPredicate) -> List[KeyedDocument]:
        try:
            return await self.store.find(collection, predicate)
        except Exception as e:
            logger.error(f"[STORE] Query failed on {collection} ({predicate.describe()}): {e}")
            raise StoreQueryError(
                f"Failed to query {collection}: {e}",
                details={"collection": collection, "predicate": predicate.describe()}
            ) from e

    async def _get(self, collection: str, key: str) -> Optional[Document]:
        try:
            return await self.store.get(collection, key)
        except Exception as e:
            logger.error(f"[STORE] Lookup failed on {collection}/{key}: {e}")
            raise StoreQueryError(
                f"Failed to read {collection}/{key}: {e}",
                details={"collection": collection, "key": key}
            ) from e

    async def _first_other(
        self,
        collection: str,
        predicate: QueryPredicate,
        exclude_key: Optional[str]
    ) -> Optional[str]:
        """Key of the first matching record other than the one being written."""
        for key, _ in await self._find(collection, predicate):
            if exclude_key is not None and key == exclude_key:
                continue
            return key
        return None

    # =========================================================================
    # UNIQUENESS
    # =========================================================================

    async def check_unique(
        self,
        collection: str,
        field: str,
        value: str,
        message: str,
        exclude_key: Optional[str] = None,
        case_insensitive: bool = False
    ) -> bool:
        """
        Check that no other record in the collection holds this value.

        Returns:
            True if the value is free

        Raises:
            DuplicateRecordError if another record holds it
        """
        predicate = QueryPredicate.of(FieldMatch(field, value, case_insensitive))
        existing = await self._first_other(collection, predicate, exclude_key)

        if existing is not None:
            logger.info(f"[DUPLICATE] {collection}: {predicate.describe()} held by {existing}")
            raise DuplicateRecordError(message, collection=collection, existing_key=existing)

        logger.debug(f"[DUPLICATE] {collection}: {predicate.describe()} is free")
        return True

    async def check_reference_unique(
        self,
        collection: str,
        reference: str,
        label: str,
        exclude_key: Optional[str] = None
    ) -> bool:
        return await self.check_unique(
            collection,
            "reference",
            reference,
            f"{label} reference '{reference}' already exists",
            exclude_key=exclude_key
        )

    async def check_natural_key_unique(
        self,
        collection: str,
        field: str,
        value: str,
        message: str,
        exclude_key: Optional[str] = None
    ) -> bool:
        return await self.check_unique(
            collection, field, value, message,
            exclude_key=exclude_key,
            case_insensitive=True
        )

    # =========================================================================
    # FOREIGN KEYS
    # =========================================================================

    async def check_exists(self, collection: str, key: str, message: str) -> bool:
        """
        Raises:
            MissingReferenceError if no record with this key exists
        """
        if await self._get(collection, key) is None:
            logger.info(f"[DUPLICATE] Missing reference {collection}/{key}")
            raise MissingReferenceError(message, collection=collection, missing_key=key)
        return True

    # =========================================================================
    # DUPLICATE SUBMISSIONS
    # =========================================================================

    async def check_duplicate_expense(
        self,
        vendor_name: str,
        amount: Number,
        payment_date: str,
        exclude_key: Optional[str] = None
    ) -> bool:
        """Same vendor (any case), same amount, same payment date."""
        predicate = QueryPredicate.of(
            FieldMatch("vendorName", vendor_name, case_insensitive=True),
            FieldMatch("amount", amount),
            FieldMatch("paymentDate", payment_date),
        )
        existing = await self._first_other("expenses", predicate, exclude_key)

        if existing is not None:
            logger.info(f"[DUPLICATE] Expense {predicate.describe()} matches {existing}")
            raise DuplicateRecordError(
                f"Potential duplicate expense: Same vendor '{vendor_name}', amount "
                f"{format_amount(amount)}, and date {payment_date} already exists",
                collection="expenses",
                existing_key=existing
            )
        return True

    async def check_duplicate_paid_salary(
        self,
        staff_id: str,
        staff_number: str,
        period_start: str,
        period_end: str,
        exclude_key: Optional[str] = None
    ) -> bool:
        """At most one paid salary per staff member and pay period."""
        predicate = QueryPredicate.of(
            FieldMatch("staffId", staff_id),
            FieldMatch("paymentPeriodStart", period_start),
            FieldMatch("paymentPeriodEnd", period_end),
            FieldMatch("status", "paid"),
        )
        existing = await self._first_other("salary_payments", predicate, exclude_key)

        if existing is not None:
            logger.info(f"[DUPLICATE] Paid salary {predicate.describe()} matches {existing}")
            raise DuplicateRecordError(
                f"Staff {staff_number} already has a paid salary for period "
                f"{period_start} to {period_end}",
                collection="salary_payments",
                existing_key=existing
            )
        return True
