"""
REJECTION TAXONOMY

Every check in a pipeline raises a subclass of WriteRejectedError when a
proposed write must be refused. The dispatcher catches these and turns them
into a ValidationResult; anything else propagates.

Categories:
- DECODE: payload does not match the entity schema
- FORMAT: a value violates a primitive shape/range rule
- TRANSITION: status change not permitted, or companion fields missing
- CONSISTENCY: a declared aggregate does not reconcile
- INTEGRITY: uniqueness violated or referenced record missing
- POLICY: amount-tiered business rule unmet
- STORE: a read against the document store failed
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    DECODE = "DECODE"
    FORMAT = "FORMAT"
    TRANSITION = "TRANSITION"
    CONSISTENCY = "CONSISTENCY"
    INTEGRITY = "INTEGRITY"
    POLICY = "POLICY"
    STORE = "STORE"


class WriteRejectedError(Exception):
    """Base class for every rejected write."""

    category: ErrorCategory = ErrorCategory.FORMAT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DecodeError(WriteRejectedError):
    """Raised when a payload cannot be decoded into its entity model."""
    category = ErrorCategory.DECODE


class FormatViolationError(WriteRejectedError):
    """Raised when a field value has the wrong shape or range."""
    category = ErrorCategory.FORMAT


class IntegrityViolationError(WriteRejectedError):
    """Raised when a uniqueness or referential constraint is violated."""
    category = ErrorCategory.INTEGRITY


class StoreQueryError(WriteRejectedError):
    """Raised when the document store fails to answer a read."""
    category = ErrorCategory.STORE
