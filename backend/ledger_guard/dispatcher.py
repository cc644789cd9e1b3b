"""
COLLECTION DISPATCHER

Entry point for every write attempt. Routes a proposed record to the
pipeline registered for its collection and turns the outcome into a
ValidationResult.

- Pass-through collections (budgets, classes, legacy fee assignments, fee
  categories, fee structures) are accepted without checks
- Unknown collections are rejected unless allow_unknown_collections is set
- Deletes are always accepted

Only WriteRejectedError is turned into a rejection. Any other exception
is a defect and propagates to the caller.

Usage:
    guard = LedgerGuard(store)
    result = await guard.validate("expenses", proposed, previous, key="exp_1")
    if not result.accepted:
        print(result.error)
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging
import time

from ledger_guard.codec import Payload
from ledger_guard.config import GuardSettings
from ledger_guard.duplicate_protection import DuplicateProtection
from ledger_guard.errors import ErrorCategory, WriteRejectedError
from ledger_guard.pipelines import PipelineRegistry, WriteContext, pipeline_registry
from ledger_guard.policy_service import PolicyService
from ledger_guard.state_machine import StateMachineRegistry
from ledger_guard.state_machine_wiring import state_machine_registry
from ledger_guard.store import DocumentStore

logger = logging.getLogger(__name__)

# fee_assignments is the legacy name still written by data reset tooling
PASS_THROUGH_COLLECTIONS = (
    "budgets", "classes", "fee_assignments", "fee_categories", "fee_structures",
)


class UnknownCollectionError(WriteRejectedError):
    """Raised for a collection with no registered pipeline."""
    category = ErrorCategory.DECODE

    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"Unknown collection '{collection}'", details={"collection": collection})


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, error: WriteRejectedError) -> "ValidationResult":
        return cls(accepted=False, error=error.message, category=error.category)

    def to_dict(self) -> Dict[str, Any]:
        if self.accepted:
            return {"accepted": True}
        return {"accepted": False, "error": self.error, "category": self.category.value}


class LedgerGuard:
    """
    Pre-commit validator for the school finance document store.

    Args:
        store: Read access to the document store
        settings: Unknown-collection policy and policy thresholds
        machines: Status lifecycles (defaults to the built-in tables)
        pipelines: Collection pipelines (defaults to the global registry)
        clock: Returns "now" in epoch nanoseconds
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[GuardSettings] = None,
        machines: Optional[StateMachineRegistry] = None,
        pipelines: Optional[PipelineRegistry] = None,
        clock: Callable[[], int] = time.time_ns
    ):
        self.store = store
        self.settings = settings or GuardSettings()
        self.machines = machines or state_machine_registry
        self.pipelines = pipelines or pipeline_registry
        self.clock = clock
        self.duplicates = DuplicateProtection(store)
        self.policy = PolicyService(self.settings.policy)

    def _context(self, collection: str, key: Optional[str]) -> WriteContext:
        return WriteContext(
            collection=collection,
            key=key or None,
            now_ns=self.clock(),
            duplicates=self.duplicates,
            policy=self.policy,
            machines=self.machines,
        )

    async def validate(
        self,
        collection: str,
        proposed: Payload,
        previous: Optional[Payload] = None,
        key: Optional[str] = None
    ) -> ValidationResult:
        """
        Decide whether a create-or-update may be committed.

        Args:
            collection: Target collection name
            proposed: Record as it would be stored
            previous: Currently stored record, None on creation
            key: Store key of the record being written (empty on creation)

        Returns:
            ValidationResult with the first failure message on rejection
        """
        if collection in PASS_THROUGH_COLLECTIONS:
            logger.debug(f"[DISPATCH] {collection}: pass-through")
            return ValidationResult.accept()

        pipeline = self.pipelines.get(collection)
        if pipeline is None:
            if self.settings.allow_unknown_collections:
                logger.debug(f"[DISPATCH] {collection}: unknown, accepted by settings")
                return ValidationResult.accept()
            error = UnknownCollectionError(collection)
            logger.info(f"[DISPATCH] Rejected write to {collection}: {error.message}")
            return ValidationResult.reject(error)

        try:
            await pipeline.run(self._context(collection, key), proposed, previous)
        except WriteRejectedError as e:
            logger.info(
                f"[DISPATCH] Rejected {collection}/{key or '<new>'} "
                f"[{e.category.value}]: {e.message}"
            )
            return ValidationResult.reject(e)

        logger.debug(f"[DISPATCH] Accepted {collection}/{key or '<new>'}")
        return ValidationResult.accept()

    async def validate_delete(self, collection: str, key: str) -> ValidationResult:
        """Deletes are not validated."""
        logger.debug(f"[DISPATCH] Delete {collection}/{key}: accepted")
        return ValidationResult.accept()
