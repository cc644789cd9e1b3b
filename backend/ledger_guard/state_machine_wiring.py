"""
STATE MACHINE WIRING

Status lifecycles for every entity with a status field.

Entities:
- Expense:          pending -> approved | rejected;  approved -> paid
- Payment:          pending -> confirmed | cancelled;  confirmed -> refunded
- SalaryPayment:    pending -> approved -> paid
- Transfer:         pending -> approved | rejected | cancelled;  approved -> completed
- BankTransaction:  pending -> cleared | reconciled;  cleared -> reconciled

Companion rules are plain functions returning (ok, reason). Rules
registered with holds() are re-checked on every write; rules registered
with on_enter() only when the status is entered.
"""

from typing import Any, Dict, Tuple

from ledger_guard.state_machine import StateMachine, StateMachineRegistry
from ledger_guard.validators import NANOS_PER_HOUR, is_blank

OK = (True, "")

# Approval/processing timestamps may run ahead of the validator clock by this much
CLOCK_SKEW_NS = NANOS_PER_HOUR

EXPENSE = "expense"
PAYMENT = "payment"
SALARY = "salary"
TRANSFER = "transfer"
BANK_TRANSACTION = "bank transaction"

MIN_REASON_LENGTH = 10


def _fail(reason: str) -> Tuple[bool, str]:
    return (False, reason)


def _within_clock(timestamp: int, context: Dict[str, Any]) -> bool:
    now_ns = context.get("now_ns")
    return now_ns is None or timestamp <= now_ns + CLOCK_SKEW_NS


# =============================================================================
# EXPENSE STATE MACHINE
# =============================================================================

def create_expense_state_machine() -> StateMachine:
    machine = StateMachine(EXPENSE, record_label="expenses")
    machine.add_states("pending", "approved", "rejected", "paid")
    machine.set_initial("pending")
    machine.register("pending", "approved")
    machine.register("pending", "rejected")
    machine.register("approved", "paid")

    def no_approver_yet(expense, context) -> Tuple[bool, str]:
        if expense.approved_by is not None:
            return _fail("Pending expenses cannot have approved_by field set")
        if expense.approved_at is not None:
            return _fail("Pending expenses cannot have approved_at field set")
        return OK

    def approver_recorded(expense, context) -> Tuple[bool, str]:
        if is_blank(expense.approved_by):
            return _fail("Approved expenses must have approved_by field set")
        if expense.approved_at is None:
            return _fail("Approved expenses must have approved_at timestamp")
        return OK

    def approval_time_plausible(expense, context) -> Tuple[bool, str]:
        if expense.approved_at <= expense.created_at:
            return _fail("Approval timestamp must be after expense creation time")
        if not _within_clock(expense.approved_at, context):
            return _fail("Approval timestamp cannot be in the future")
        return OK

    def rejection_recorded(expense, context) -> Tuple[bool, str]:
        if is_blank(expense.notes):
            return _fail("Rejected expenses must include rejection reason in notes")
        if expense.approved_at is not None:
            return _fail("Rejected expenses cannot have approved_at timestamp")
        return OK

    def rejection_reason_detailed(expense, context) -> Tuple[bool, str]:
        if len(expense.notes.strip()) < MIN_REASON_LENGTH:
            return _fail(f"Rejection reason must be at least {MIN_REASON_LENGTH} characters")
        return OK

    def paid_after_approval(expense, context) -> Tuple[bool, str]:
        if is_blank(expense.approved_by) or expense.approved_at is None:
            return _fail("Paid expenses must have been approved first")
        return OK

    machine.holds("pending", no_approver_yet, "no approver fields")
    machine.holds("approved", approver_recorded, "approver identity and time")
    machine.on_enter("approved", approval_time_plausible, "approval after creation, not ahead of clock")
    machine.holds("rejected", rejection_recorded, "rejection reason, no approval time")
    machine.on_enter("rejected", rejection_reason_detailed, "rejection reason length")
    machine.holds("paid", paid_after_approval, "approver identity and time")
    return machine


# =============================================================================
# PAYMENT STATE MACHINE
# =============================================================================

def create_payment_state_machine() -> StateMachine:
    machine = StateMachine(PAYMENT, record_label="payments")
    machine.add_states("pending", "confirmed", "cancelled", "refunded")
    machine.set_initial("pending", "confirmed")
    machine.register("pending", "confirmed")
    machine.register("pending", "cancelled")
    machine.register("confirmed", "refunded")

    def cancellation_reason(payment, context) -> Tuple[bool, str]:
        if is_blank(payment.notes):
            return _fail("Cancelled payments must include cancellation reason in notes")
        return OK

    def refund_reason(payment, context) -> Tuple[bool, str]:
        if is_blank(payment.notes):
            return _fail("Refunded payments must include refund reason in notes")
        return OK

    machine.holds("cancelled", cancellation_reason, "reason in notes")
    machine.holds("refunded", refund_reason, "reason in notes")
    return machine


# =============================================================================
# SALARY PAYMENT STATE MACHINE
# =============================================================================

def create_salary_state_machine() -> StateMachine:
    machine = StateMachine(SALARY, record_label="salary payments")
    machine.add_states("pending", "approved", "paid")
    machine.set_initial("pending")
    machine.register("pending", "approved")
    machine.register("approved", "paid")

    def processor_recorded(label: str):
        def check(salary, context) -> Tuple[bool, str]:
            if is_blank(salary.processed_by):
                return _fail(f"{label} salary payments must have processed_by set")
            return OK
        return check

    def processing_time_plausible(salary, context) -> Tuple[bool, str]:
        if salary.processed_at is None:
            return _fail("Approved salary payments must have processed_at timestamp")
        if salary.processed_at <= salary.created_at:
            return _fail("Processing timestamp must be after salary creation time")
        if not _within_clock(salary.processed_at, context):
            return _fail("Processing timestamp cannot be in the future")
        return OK

    machine.holds("approved", processor_recorded("Approved"), "processor identity")
    machine.on_enter("approved", processing_time_plausible, "processing after creation, not ahead of clock")
    machine.holds("paid", processor_recorded("Paid"), "processor identity")
    return machine


# =============================================================================
# INTER-ACCOUNT TRANSFER STATE MACHINE
# =============================================================================

def create_transfer_state_machine() -> StateMachine:
    machine = StateMachine(TRANSFER, record_label="transfers")
    machine.add_states("pending", "approved", "completed", "rejected", "cancelled")
    machine.set_initial("pending", "approved", "completed")
    machine.register("pending", "approved")
    machine.register("pending", "rejected")
    machine.register("pending", "cancelled")
    machine.register("approved", "completed")

    def approver_recorded(transfer, context) -> Tuple[bool, str]:
        if is_blank(transfer.approved_by):
            return _fail("Approved transfers must have approvedBy set")
        if transfer.approved_at is None:
            return _fail("AUDIT: Approved transfers must have approvedAt timestamp")
        return OK

    def approval_time_plausible(transfer, context) -> Tuple[bool, str]:
        # createdAt is optional on transfers
        if transfer.created_at is not None and transfer.approved_at <= transfer.created_at:
            return _fail("Approval timestamp must be after transfer creation time")
        if not _within_clock(transfer.approved_at, context):
            return _fail("Approval timestamp cannot be in the future")
        return OK

    def reason_given(label: str):
        def check(transfer, context) -> Tuple[bool, str]:
            reason = (transfer.reason or "").strip()
            if len(reason) < MIN_REASON_LENGTH:
                return _fail(
                    f"{label} transfers must include a reason of at least "
                    f"{MIN_REASON_LENGTH} characters"
                )
            return OK
        return check

    machine.holds("approved", approver_recorded, "approver identity and time")
    machine.on_enter("approved", approval_time_plausible, "approval after creation, not ahead of clock")
    machine.holds("rejected", reason_given("Rejected"), "reason")
    machine.holds("cancelled", reason_given("Cancelled"), "reason")
    return machine


# =============================================================================
# BANK TRANSACTION STATE MACHINE
# =============================================================================

def create_bank_transaction_state_machine() -> StateMachine:
    machine = StateMachine(BANK_TRANSACTION, record_label="bank transactions")
    machine.add_states("pending", "cleared", "reconciled")
    machine.set_initial("pending", "cleared")
    machine.register("pending", "cleared")
    machine.register("pending", "reconciled")
    machine.register("cleared", "reconciled")

    def reconciled_flag(transaction, context) -> Tuple[bool, str]:
        if not transaction.is_reconciled:
            return _fail("AUDIT: Status is 'reconciled' but isReconciled flag is false")
        return OK

    machine.holds("reconciled", reconciled_flag, "isReconciled set")
    return machine


# =============================================================================
# REGISTRY
# =============================================================================

def build_state_machine_registry() -> StateMachineRegistry:
    registry = StateMachineRegistry()
    registry.register(EXPENSE, create_expense_state_machine())
    registry.register(PAYMENT, create_payment_state_machine())
    registry.register(SALARY, create_salary_state_machine())
    registry.register(TRANSFER, create_transfer_state_machine())
    registry.register(BANK_TRANSACTION, create_bank_transaction_state_machine())
    return registry


state_machine_registry = build_state_machine_registry()
