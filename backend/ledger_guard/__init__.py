"""
Ledger Guard: pre-commit write validation for school finance records
"""
from .errors import (
    ErrorCategory,
    WriteRejectedError,
    DecodeError,
    FormatViolationError,
    IntegrityViolationError,
    StoreQueryError
)

from .financial_precision import (
    to_decimal,
    round_financial,
    format_amount,
    safe_add,
    safe_sum,
    safe_subtract,
    within_tolerance,
    has_valid_precision,
    validate_precision,
    validate_non_negative,
    validate_positive,
    FinancialPrecisionError,
    NegativeValueError
)

from .reconciliation import ReconciliationError

from .duplicate_protection import (
    DuplicateProtection,
    DuplicateRecordError,
    MissingReferenceError
)

from .store import (
    DocumentStore,
    FieldMatch,
    QueryPredicate,
    InMemoryDocumentStore,
    MongoDocumentStore
)

from .state_machine import (
    StateMachine,
    StateMachineRegistry,
    InvalidTransitionError,
    InvalidInitialStatusError,
    CompanionFieldError
)

from .policy_service import (
    PolicyConfig,
    PolicyService,
    PolicyViolationError
)

from .config import GuardSettings, settings_from_env

from .dispatcher import (
    LedgerGuard,
    ValidationResult,
    UnknownCollectionError,
    PASS_THROUGH_COLLECTIONS
)

__all__ = [
    # Errors
    'ErrorCategory',
    'WriteRejectedError',
    'DecodeError',
    'FormatViolationError',
    'IntegrityViolationError',
    'StoreQueryError',
    # Financial Precision
    'to_decimal',
    'round_financial',
    'format_amount',
    'safe_add',
    'safe_sum',
    'safe_subtract',
    'within_tolerance',
    'has_valid_precision',
    'validate_precision',
    'validate_non_negative',
    'validate_positive',
    'FinancialPrecisionError',
    'NegativeValueError',
    # Reconciliation
    'ReconciliationError',
    # Duplicate Protection
    'DuplicateProtection',
    'DuplicateRecordError',
    'MissingReferenceError',
    # Store
    'DocumentStore',
    'FieldMatch',
    'QueryPredicate',
    'InMemoryDocumentStore',
    'MongoDocumentStore',
    # State Machine
    'StateMachine',
    'StateMachineRegistry',
    'InvalidTransitionError',
    'InvalidInitialStatusError',
    'CompanionFieldError',
    # Policy
    'PolicyConfig',
    'PolicyService',
    'PolicyViolationError',
    # Config
    'GuardSettings',
    'settings_from_env',
    # Dispatcher
    'LedgerGuard',
    'ValidationResult',
    'UnknownCollectionError',
    'PASS_THROUGH_COLLECTIONS',
]
