"""
DECIMAL PRECISION & AMOUNT CHECKS

This module provides:
1. Decimal precision lock (2-decimal places)
2. Safe financial arithmetic over wire floats
3. Amount validation (positive, non-negative, precision drift)
4. Tolerance comparison used by every reconciliation
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Union
import math

from ledger_guard.errors import FormatViolationError

# Precision configuration
DECIMAL_PLACES = 2
QUANTIZE_PATTERN = Decimal('0.01')

# Declared aggregates may differ from their recomputed value by at most this much
RECONCILIATION_TOLERANCE = Decimal('0.01')

# An amount may drift at most this much when rounded to 2 decimal places
PRECISION_DRIFT_LIMIT = Decimal('0.001')

CURRENCY_SYMBOL = "₦"

Number = Union[float, int, str, Decimal]


class FinancialPrecisionError(FormatViolationError):
    """Raised when an amount cannot be represented with 2-decimal precision"""
    pass


class NegativeValueError(FormatViolationError):
    """Raised when a financial value is negative or zero where it must not be"""
    pass


def to_decimal(value: Number) -> Decimal:
    """
    Convert any numeric value to Decimal.
    Does NOT round - preserves full precision for intermediate calculations.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise FinancialPrecisionError(f"Cannot convert {type(value)} to Decimal")
    if isinstance(value, float) and not math.isfinite(value):
        raise FinancialPrecisionError(f"Amount must be a finite number: {value}")
    if isinstance(value, (int, float)):
        # Convert via string to avoid float precision issues
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            decimal_value = Decimal(value)
        except InvalidOperation:
            raise FinancialPrecisionError(f"Cannot convert '{value}' to Decimal")
        if not decimal_value.is_finite():
            raise FinancialPrecisionError(f"Amount must be a finite number: {value}")
        return decimal_value
    raise FinancialPrecisionError(f"Cannot convert {type(value)} to Decimal")


def round_financial(value: Number) -> Decimal:
    """
    Round a value to 2 decimal places (half-up).
    This should be called ONLY at calculation boundaries.
    """
    decimal_value = to_decimal(value)
    return decimal_value.quantize(QUANTIZE_PATTERN, rounding=ROUND_HALF_UP)


def format_amount(value: Number) -> str:
    """Render an amount for rejection messages, e.g. ₦1500.00"""
    return f"{CURRENCY_SYMBOL}{round_financial(value):.2f}"


def safe_add(*values: Number) -> Decimal:
    """Safe addition of multiple values"""
    result = Decimal('0')
    for v in values:
        result += to_decimal(v)
    return result


def safe_sum(values: Iterable[Number]) -> Decimal:
    """Safe addition of an iterable of values"""
    return safe_add(*values)


def safe_subtract(a: Number, b: Number) -> Decimal:
    """Safe subtraction preserving precision"""
    return to_decimal(a) - to_decimal(b)


def within_tolerance(declared: Number, expected: Number,
                     tolerance: Decimal = RECONCILIATION_TOLERANCE) -> bool:
    """True if |declared - expected| does not exceed the tolerance"""
    return abs(to_decimal(declared) - to_decimal(expected)) <= tolerance


def has_valid_precision(value: Number) -> bool:
    """
    Check that an amount survives 2-decimal formatting.

    The rounded value may differ from the original by at most 0.001.
    """
    decimal_value = to_decimal(value)
    return abs(round_financial(decimal_value) - decimal_value) <= PRECISION_DRIFT_LIMIT


def validate_precision(value: Number, field_name: str) -> None:
    """
    Validate that a financial value carries at most 2 decimal places.
    Raises FinancialPrecisionError if validation fails.
    """
    if not has_valid_precision(value):
        raise FinancialPrecisionError(
            f"{field_name} must have at most {DECIMAL_PLACES} decimal places: {value}"
        )


def validate_non_negative(value: Number, field_name: str) -> None:
    """
    Validate that a financial value is not negative.
    Raises NegativeValueError if validation fails.
    """
    decimal_value = to_decimal(value)
    if decimal_value < Decimal('0'):
        raise NegativeValueError(f"{field_name} cannot be negative")
    validate_precision(decimal_value, field_name)


def validate_positive(value: Number, field_name: str) -> None:
    """
    Validate that a financial value is strictly positive (> 0).
    Raises NegativeValueError if validation fails.
    """
    decimal_value = to_decimal(value)
    if decimal_value <= Decimal('0'):
        raise NegativeValueError(f"{field_name} must be greater than zero")
    validate_precision(decimal_value, field_name)
