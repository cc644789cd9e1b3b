"""
NUMERIC RECONCILIATION CHECKER

Recomputes declared aggregates from their parts and blocks the write if
they disagree by more than RECONCILIATION_TOLERANCE:
1. payment.amount == sum(feeAllocations.amount)
2. salary.netSalary == basicSalary + sum(allowances) - sum(deductions)
3. salary.grossSalary == basicSalary + sum(allowances) (when declared)
4. assignment.totalAmount == originalAmount - discountAmount
5. assignment.balance == totalAmount - amountPaid

Pure arithmetic; never reads the store.
"""

from decimal import Decimal
from typing import Iterable, Optional
import logging

from ledger_guard.errors import ErrorCategory, FormatViolationError, WriteRejectedError
from ledger_guard.financial_precision import (
    Number,
    format_amount,
    round_financial,
    safe_subtract,
    safe_sum,
    within_tolerance,
)
from ledger_guard.validators import find_duplicate

logger = logging.getLogger(__name__)


class ReconciliationError(WriteRejectedError):
    """Raised when a declared aggregate does not equal its recomputed value"""
    category = ErrorCategory.CONSISTENCY

    def __init__(self, message: str, declared: Decimal, expected: Decimal):
        self.declared = declared
        self.expected = expected
        super().__init__(
            message,
            details={"declared": str(declared), "expected": str(expected)}
        )


def _plain(value: Decimal) -> str:
    return f"{round_financial(value):.2f}"


def reconcile_payment_allocations(amount: Number, allocations: Iterable[Number]) -> Decimal:
    """
    Payment amount must equal the sum of its fee allocations.

    Returns the recomputed sum.
    """
    expected = safe_sum(allocations)
    if not within_tolerance(amount, expected):
        logger.info(f"[RECONCILE] Payment amount {amount} != allocations {expected}")
        raise ReconciliationError(
            f"Payment amount ({format_amount(amount)}) must match sum of fee "
            f"allocations ({format_amount(expected)})",
            declared=round_financial(amount),
            expected=round_financial(expected)
        )
    return expected


def reconcile_salary(
    basic_salary: Number,
    allowances: Iterable[Number],
    deductions: Iterable[Number],
    net_salary: Number,
    gross_salary: Optional[Number] = None
) -> Decimal:
    """
    Net pay must equal basic + allowances - deductions; a declared gross
    must equal basic + allowances.

    Returns the recomputed net salary.
    """
    gross = safe_sum([basic_salary, *allowances])
    expected_net = safe_subtract(gross, safe_sum(deductions))

    if gross_salary is not None and not within_tolerance(gross_salary, gross):
        raise ReconciliationError(
            f"Gross salary ({format_amount(gross_salary)}) doesn't match basic + "
            f"allowances ({format_amount(gross)})",
            declared=round_financial(gross_salary),
            expected=round_financial(gross)
        )

    if not within_tolerance(net_salary, expected_net):
        logger.info(f"[RECONCILE] Net salary {net_salary} != computed {expected_net}")
        raise ReconciliationError(
            f"Net salary ({format_amount(net_salary)}) doesn't match basic + "
            f"allowances - deductions ({format_amount(expected_net)})",
            declared=round_financial(net_salary),
            expected=round_financial(expected_net)
        )
    return expected_net


def reconcile_discounted_total(
    original_amount: Number,
    discount_amount: Number,
    total_amount: Number
) -> Decimal:
    expected = safe_subtract(original_amount, discount_amount)
    if not within_tolerance(total_amount, expected):
        raise ReconciliationError(
            f"totalAmount ({_plain(total_amount)}) should equal originalAmount "
            f"({_plain(original_amount)}) minus discountAmount ({_plain(discount_amount)})",
            declared=round_financial(total_amount),
            expected=round_financial(expected)
        )
    return expected


def reconcile_balance(total_amount: Number, amount_paid: Number, balance: Number) -> Decimal:
    expected = safe_subtract(total_amount, amount_paid)
    if not within_tolerance(balance, expected):
        raise ReconciliationError(
            f"balance ({_plain(balance)}) must equal totalAmount ({_plain(total_amount)}) "
            f"minus amountPaid ({_plain(amount_paid)})",
            declared=round_financial(balance),
            expected=round_financial(expected)
        )
    return expected


def check_unique_line_items(names: Iterable[str], label: str) -> None:
    """Allowance/deduction names may not repeat within one record."""
    duplicate = find_duplicate(names)
    if duplicate is not None:
        raise FormatViolationError(f"Duplicate {label} name: '{duplicate}'")
