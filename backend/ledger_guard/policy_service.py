"""
POLICY SERVICE

Amount-tiered business rules layered after format, reconciliation, status
and store checks have passed. Every threshold lives on PolicyConfig so a
host can tighten or relax it without touching the checks.

Policies:
- Payment-method ceilings for expenses (cash, POS, transfer-only tier)
- Documentation tiers for large expenses (vendor, purpose, invoice)
- Mandatory approval before large transfers/expenses complete
- Self-approval prohibition (off by default)
- Double-entry integrity on bank transactions
- Fraud ceilings on transaction size and balances
- Date windows for expense, employment and salary dates

Usage:
    policy = PolicyService(PolicyConfig(cash_ceiling=50_000))
    policy.check_payment_method_ceiling(expense.payment_method, expense.amount)
"""

from typing import List, Optional
import logging

from pydantic import BaseModel, Field

from ledger_guard.errors import ErrorCategory, WriteRejectedError
from ledger_guard.financial_precision import Number, format_amount, to_decimal
from ledger_guard.validators import is_blank, is_date_too_far_in_future, is_date_too_old

logger = logging.getLogger(__name__)


class PolicyViolationError(WriteRejectedError):
    """Raised when a business/threshold policy is not met"""
    category = ErrorCategory.POLICY

    def __init__(self, policy: str, message: str):
        self.policy = policy
        super().__init__(message, details={"policy": policy})


# =============================================================================
# DEFAULT POLICY VALUES
# =============================================================================

class PolicyConfig(BaseModel):
    # Payment-method ceilings (expenses)
    cash_ceiling: float = 100_000
    pos_ceiling: float = 500_000
    high_value_methods: List[str] = Field(
        default_factory=lambda: ["bank_transfer", "cheque", "online"]
    )

    # Documentation tiers (expenses)
    vendor_purpose_threshold: float = 1_000_000
    invoice_threshold: float = 5_000_000
    min_purpose_length: int = 10

    # Mandatory approval before completed/paid
    transfer_approval_threshold: float = 5_000_000
    expense_approval_threshold: float = 5_000_000

    prohibit_self_approval: bool = False

    # Fraud ceilings
    max_single_transaction: float = 1_000_000_000
    transaction_overdraft_floor: float = -10_000_000
    account_balance_floor: float = -50_000_000
    max_expense_amount: float = 100_000_000

    # Date windows
    expense_date_max_days_ahead: int = 7
    expense_date_max_years_old: int = 2
    employment_date_max_days_ahead: int = 30
    employment_date_max_years_old: int = 50
    salary_date_max_days_ahead: int = 30


DEFAULT_POLICIES = PolicyConfig()


# =============================================================================
# POLICY SERVICE
# =============================================================================

class PolicyService:
    """
    Stateless policy checks over a fixed PolicyConfig.

    Each check returns True when satisfied and raises PolicyViolationError
    otherwise.
    """

    def __init__(self, config: Optional[PolicyConfig] = None):
        self.config = config or DEFAULT_POLICIES

    def _violation(self, policy: str, message: str) -> PolicyViolationError:
        logger.info(f"[POLICY] {policy}: {message}")
        return PolicyViolationError(policy, message)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def check_payment_method_ceiling(self, payment_method: str, amount: Number) -> bool:
        """
        cash <= cash_ceiling, pos <= pos_ceiling; anything above pos_ceiling
        must use one of high_value_methods.
        """
        cfg = self.config
        value = to_decimal(amount)

        if payment_method == "cash" and value > to_decimal(cfg.cash_ceiling):
            raise self._violation(
                "payment_method_ceiling",
                f"Cash payments cannot exceed {format_amount(cfg.cash_ceiling)} "
                f"(amount: {format_amount(amount)})"
            )
        if payment_method == "pos" and value > to_decimal(cfg.pos_ceiling):
            raise self._violation(
                "payment_method_ceiling",
                f"POS payments cannot exceed {format_amount(cfg.pos_ceiling)} "
                f"(amount: {format_amount(amount)})"
            )
        if value > to_decimal(cfg.pos_ceiling) and payment_method not in cfg.high_value_methods:
            raise self._violation(
                "payment_method_ceiling",
                f"Payments above {format_amount(cfg.pos_ceiling)} must use one of: "
                f"{', '.join(cfg.high_value_methods)}"
            )
        return True

    def check_expense_documentation(
        self,
        amount: Number,
        vendor_name: Optional[str],
        purpose: Optional[str],
        invoice_url: Optional[str]
    ) -> bool:
        cfg = self.config
        value = to_decimal(amount)

        if value >= to_decimal(cfg.vendor_purpose_threshold):
            threshold = format_amount(cfg.vendor_purpose_threshold)
            if is_blank(vendor_name):
                raise self._violation(
                    "documentation",
                    f"Vendor name is required for expenses ≥ {threshold}"
                )
            if purpose is None or len(purpose.strip()) < cfg.min_purpose_length:
                raise self._violation(
                    "documentation",
                    f"Purpose of at least {cfg.min_purpose_length} characters is "
                    f"required for expenses ≥ {threshold}"
                )

        if value >= to_decimal(cfg.invoice_threshold) and is_blank(invoice_url):
            raise self._violation(
                "documentation",
                f"Invoice URL is required for expenses ≥ {format_amount(cfg.invoice_threshold)}"
            )
        return True

    def check_expense_amount_ceiling(self, amount: Number) -> bool:
        ceiling = self.config.max_expense_amount
        if to_decimal(amount) > to_decimal(ceiling):
            raise self._violation(
                "fraud_ceiling",
                f"Expense amount {format_amount(amount)} exceeds maximum of {format_amount(ceiling)}"
            )
        return True

    def check_expense_approval(
        self,
        amount: Number,
        status: str,
        approved_by: Optional[str],
        approved_at: Optional[int]
    ) -> bool:
        threshold = self.config.expense_approval_threshold
        if status != "paid" or to_decimal(amount) <= to_decimal(threshold):
            return True
        if is_blank(approved_by) or approved_at is None:
            raise self._violation(
                "approval_required",
                f"APPROVAL REQUIRED: Expenses over {format_amount(threshold)} require "
                f"approval before payment"
            )
        return True

    def check_self_approval(
        self,
        approver: Optional[str],
        submitter: Optional[str],
        entity_plural: str
    ) -> bool:
        if not self.config.prohibit_self_approval:
            return True
        if is_blank(approver) or is_blank(submitter):
            return True
        if approver == submitter:
            raise self._violation(
                "self_approval",
                f"Users cannot approve their own {entity_plural}"
            )
        return True

    def check_expense_date_window(self, payment_date: str, now_ns: int) -> bool:
        cfg = self.config
        if is_date_too_far_in_future(payment_date, cfg.expense_date_max_days_ahead, now_ns):
            raise self._violation(
                "date_window",
                f"Payment date cannot be more than {cfg.expense_date_max_days_ahead} "
                f"days in the future"
            )
        if is_date_too_old(payment_date, cfg.expense_date_max_years_old, now_ns):
            raise self._violation(
                "date_window",
                f"Payment date cannot be more than {cfg.expense_date_max_years_old} "
                f"years in the past"
            )
        return True

    # =========================================================================
    # STAFF & PAYROLL
    # =========================================================================

    def check_employment_date_window(self, employment_date: str, now_ns: int) -> bool:
        cfg = self.config
        if is_date_too_far_in_future(employment_date, cfg.employment_date_max_days_ahead, now_ns):
            raise self._violation(
                "date_window",
                f"Employment date cannot be more than {cfg.employment_date_max_days_ahead} "
                f"days in the future"
            )
        if is_date_too_old(employment_date, cfg.employment_date_max_years_old, now_ns):
            raise self._violation(
                "date_window",
                f"Employment date cannot be more than {cfg.employment_date_max_years_old} "
                f"years in the past"
            )
        return True

    def check_salary_date_window(self, payment_date: str, now_ns: int) -> bool:
        days = self.config.salary_date_max_days_ahead
        if is_date_too_far_in_future(payment_date, days, now_ns):
            raise self._violation(
                "date_window",
                f"Payment date cannot be more than {days} days in the future"
            )
        return True

    # =========================================================================
    # BANKING
    # =========================================================================

    def check_double_entry(self, debit_amount: Number, credit_amount: Number) -> bool:
        """Exactly one of debit/credit is positive; neither is negative."""
        debit = to_decimal(debit_amount)
        credit = to_decimal(credit_amount)

        if debit < 0 or credit < 0:
            raise self._violation(
                "double_entry", "SECURITY: Transaction amounts cannot be negative"
            )
        if debit > 0 and credit > 0:
            raise self._violation(
                "double_entry", "SECURITY: Transaction cannot have both debit and credit amounts"
            )
        if debit == 0 and credit == 0:
            raise self._violation(
                "double_entry", "SECURITY: Transaction must have a non-zero amount"
            )
        return True

    def check_transaction_ceiling(self, amount: Number) -> bool:
        ceiling = self.config.max_single_transaction
        if to_decimal(amount) > to_decimal(ceiling):
            raise self._violation(
                "fraud_ceiling",
                f"FRAUD ALERT: Transaction amount {format_amount(amount)} exceeds maximum "
                f"limit of {format_amount(ceiling)}. Contact administrator."
            )
        return True

    def check_transfer_ceiling(self, amount: Number) -> bool:
        if to_decimal(amount) > to_decimal(self.config.max_single_transaction):
            raise self._violation(
                "fraud_ceiling",
                f"FRAUD ALERT: Transfer amount {format_amount(amount)} exceeds maximum "
                f"limit. Contact administrator."
            )
        return True

    def check_transaction_overdraft(self, balance: Optional[Number]) -> bool:
        if balance is None:
            return True
        if to_decimal(balance) < to_decimal(self.config.transaction_overdraft_floor):
            raise self._violation(
                "overdraft",
                f"FRAUD ALERT: Account balance {format_amount(balance)} exceeds reasonable "
                f"overdraft limit. Verify account status."
            )
        return True

    def check_account_balance_floor(self, balance: Number) -> bool:
        if to_decimal(balance) < to_decimal(self.config.account_balance_floor):
            raise self._violation(
                "overdraft",
                f"FRAUD ALERT: Account balance {format_amount(balance)} is unreasonably "
                f"negative. Verify account integrity."
            )
        return True

    def check_transfer_approval(
        self,
        amount: Number,
        status: str,
        approved_by: Optional[str],
        approved_at: Optional[int]
    ) -> bool:
        threshold = self.config.transfer_approval_threshold
        if status != "completed" or to_decimal(amount) <= to_decimal(threshold):
            return True
        if is_blank(approved_by):
            raise self._violation(
                "approval_required",
                f"APPROVAL REQUIRED: Transfers over {format_amount(threshold)} require "
                f"approval before completion"
            )
        if approved_at is None:
            raise self._violation(
                "approval_required",
                "AUDIT: Approved transfers must have approvedAt timestamp"
            )
        return True
