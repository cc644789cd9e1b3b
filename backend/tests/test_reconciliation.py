"""
Decimal precision and aggregate reconciliation tests
"""
from decimal import Decimal

import pytest

from ledger_guard.errors import ErrorCategory, FormatViolationError
from ledger_guard.financial_precision import (
    FinancialPrecisionError,
    NegativeValueError,
    format_amount,
    has_valid_precision,
    round_financial,
    to_decimal,
    validate_non_negative,
    validate_positive,
    within_tolerance,
)
from ledger_guard.reconciliation import (
    ReconciliationError,
    check_unique_line_items,
    reconcile_balance,
    reconcile_discounted_total,
    reconcile_payment_allocations,
    reconcile_salary,
)


class TestFinancialPrecision:
    """2-decimal precision lock"""

    def test_to_decimal_goes_through_str(self):
        assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")
        assert to_decimal("1500.50") == Decimal("1500.50")

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "NaN", "abc", True, None])
    def test_to_decimal_rejects_non_amounts(self, value):
        with pytest.raises(FinancialPrecisionError):
            to_decimal(value)

    def test_round_half_up(self):
        assert round_financial("2.675") == Decimal("2.68")
        assert round_financial(2.5) == Decimal("2.50")

    def test_format_amount(self):
        assert format_amount(1500) == "₦1500.00"
        assert format_amount(221000.0) == "₦221000.00"

    def test_precision_drift_limit(self):
        assert has_valid_precision(1500.25)
        assert has_valid_precision(10.0004)
        assert not has_valid_precision(10.005)

    def test_positive_and_non_negative(self):
        validate_non_negative(0, "Deduction")
        with pytest.raises(NegativeValueError, match="Deduction cannot be negative"):
            validate_non_negative(-1, "Deduction")
        with pytest.raises(NegativeValueError, match="Transfer amount must be greater than zero"):
            validate_positive(0, "Transfer amount")
        with pytest.raises(FinancialPrecisionError, match="at most 2 decimal places"):
            validate_positive(10.123, "Transfer amount")

    def test_precision_errors_are_format_violations(self):
        assert issubclass(FinancialPrecisionError, FormatViolationError)

    def test_tolerance_is_inclusive(self):
        assert within_tolerance(100.01, 100)
        assert not within_tolerance(100.02, 100)


class TestReconciliation:
    """Declared aggregates must equal their parts within 0.01"""

    def test_payment_allocations_within_tolerance(self):
        assert reconcile_payment_allocations(75000.00, [60000.00, 14999.995]) == Decimal("74999.995")

    def test_payment_allocation_mismatch_quotes_both_amounts(self):
        with pytest.raises(ReconciliationError) as exc_info:
            reconcile_payment_allocations(75000, [60000, 10000])
        error = exc_info.value
        assert error.message == (
            "Payment amount (₦75000.00) must match sum of fee allocations (₦70000.00)"
        )
        assert error.category == ErrorCategory.CONSISTENCY
        assert error.expected == Decimal("70000.00")

    def test_salary_net_mismatch_quotes_declared_and_expected(self):
        """basic 200000 + allowances 50000 - deductions 30000 declared as 221000"""
        with pytest.raises(ReconciliationError) as exc_info:
            reconcile_salary(200000, [50000], [30000], 221000)
        assert "221000.00" in exc_info.value.message
        assert "220000.00" in exc_info.value.message

    def test_salary_gross_checked_when_declared(self):
        assert reconcile_salary(200000, [50000], [30000], 220000, gross_salary=250000) == Decimal("220000")
        with pytest.raises(ReconciliationError, match="Gross salary"):
            reconcile_salary(200000, [50000], [30000], 220000, gross_salary=240000)

    def test_fee_totals(self):
        reconcile_discounted_total(100000, 25000, 75000)
        with pytest.raises(ReconciliationError) as exc_info:
            reconcile_discounted_total(100000, 25000, 80000)
        assert exc_info.value.message == (
            "totalAmount (80000.00) should equal originalAmount (100000.00) minus "
            "discountAmount (25000.00)"
        )
        reconcile_balance(75000, 25000, 50000)
        with pytest.raises(ReconciliationError, match="balance \\(40000.00\\) must equal"):
            reconcile_balance(75000, 25000, 40000)

    def test_duplicate_line_item_names(self):
        check_unique_line_items(["Pension", "Tax"], "deduction")
        with pytest.raises(FormatViolationError, match="Duplicate deduction name: 'Tax'"):
            check_unique_line_items(["Tax", "Pension", "Tax"], "deduction")
