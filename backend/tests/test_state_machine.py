"""
State machine engine tests: generic behaviour and the wired status tables
"""
from itertools import product
from types import SimpleNamespace

import pytest

from ledger_guard.errors import ErrorCategory, FormatViolationError
from ledger_guard.state_machine import (
    CompanionFieldError,
    InvalidInitialStatusError,
    InvalidTransitionError,
    StateMachine,
)
from ledger_guard.state_machine_wiring import (
    BANK_TRANSACTION,
    EXPENSE,
    PAYMENT,
    SALARY,
    TRANSFER,
    build_state_machine_registry,
    create_expense_state_machine,
)
from ledger_guard.validators import NANOS_PER_HOUR

NOW = 1_000 * NANOS_PER_HOUR
CONTEXT = {"now_ns": NOW}


def record(status, **fields):
    return SimpleNamespace(status=status, **fields)


def expense(status, **fields):
    base = {
        "approved_by": None,
        "approved_at": None,
        "notes": None,
        "created_at": NOW - 24 * NANOS_PER_HOUR,
    }
    base.update(fields)
    return record(status, **base)


@pytest.fixture
def registry():
    return build_state_machine_registry()


class TestGenericMachine:
    """Table-driven validation"""

    @pytest.fixture
    def machine(self):
        machine = StateMachine("ticket", record_label="tickets")
        machine.add_states("open", "closed", "archived")
        machine.set_initial("open")
        machine.register("open", "closed")
        machine.register("closed", "archived")
        return machine

    def test_unknown_status_is_format_error(self, machine):
        with pytest.raises(FormatViolationError, match="Invalid ticket status 'lost'"):
            machine.validate(record("lost"))

    def test_create_requires_initial_status(self, machine):
        assert machine.validate(record("open")) is True
        with pytest.raises(InvalidInitialStatusError) as exc_info:
            machine.validate(record("closed"))
        assert exc_info.value.message == "New tickets must have status 'open'"

    def test_transition_error_lists_successors(self, machine):
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.validate(record("archived"), record("open"))
        assert exc_info.value.message == (
            "Invalid status transition from 'open' to 'archived'. Allowed transitions: [closed]"
        )
        assert exc_info.value.category == ErrorCategory.TRANSITION

    def test_terminal_status_lists_nothing(self, machine):
        assert machine.is_terminal("archived")
        with pytest.raises(InvalidTransitionError, match=r"Allowed transitions: \[\]"):
            machine.validate(record("open"), record("archived"))

    def test_unchanged_status_is_not_entering(self, machine):
        assert machine.validate(record("closed"), record("closed")) is False
        assert machine.validate(record("closed"), record("open")) is True

    def test_holds_and_on_enter_rules(self, machine):
        calls = []

        def always(name):
            def check(rec, ctx):
                calls.append(name)
                return (True, "")
            return check

        machine.holds("closed", always("holds"))
        machine.on_enter("closed", always("enter"))

        machine.validate(record("closed"), record("open"))
        assert calls == ["holds", "enter"]

        calls.clear()
        machine.validate(record("closed"), record("closed"))
        assert calls == ["holds"]

    def test_failing_rule_raises_companion_error(self, machine):
        machine.holds("closed", lambda rec, ctx: (False, "Closed tickets need a resolution"))
        with pytest.raises(CompanionFieldError) as exc_info:
            machine.validate(record("closed"), record("open"))
        assert exc_info.value.message == "Closed tickets need a resolution"

    def test_graph_introspection(self, machine):
        assert machine.get_graph() == {"open": ["closed"], "closed": ["archived"], "archived": []}
        assert machine.get_initial_states() == ["open"]


class TestWiredGraphs:
    """Every non-edge is rejected for every wired entity"""

    @pytest.mark.parametrize("entity", [EXPENSE, PAYMENT, SALARY, TRANSFER, BANK_TRANSACTION])
    def test_every_non_edge_is_rejected(self, registry, entity):
        machine = registry.get(entity)
        graph = machine.get_graph()
        for from_state, to_state in product(machine.get_states(), repeat=2):
            if from_state == to_state or to_state in graph[from_state]:
                continue
            with pytest.raises(InvalidTransitionError):
                machine.validate(record(to_state), record(from_state), CONTEXT)

    def test_expected_graphs(self, registry):
        assert registry.get(EXPENSE).get_graph() == {
            "pending": ["approved", "rejected"], "approved": ["paid"], "rejected": [], "paid": [],
        }
        assert registry.get(PAYMENT).get_graph() == {
            "pending": ["confirmed", "cancelled"], "confirmed": ["refunded"],
            "cancelled": [], "refunded": [],
        }
        assert registry.get(TRANSFER).get_initial_states() == ["pending", "approved", "completed"]
        assert registry.get(BANK_TRANSACTION).get_initial_states() == ["pending", "cleared"]
        assert registry.get(SALARY).get_initial_states() == ["pending"]


class TestExpenseLifecycle:
    """Companion fields for expense statuses"""

    @pytest.fixture
    def machine(self):
        return create_expense_state_machine()

    def test_pending_cannot_carry_approver(self, machine):
        with pytest.raises(CompanionFieldError, match="Pending expenses cannot have approved_by"):
            machine.validate(expense("pending", approved_by="user_principal"), None, CONTEXT)

    def test_approval_requires_approver_fields(self, machine):
        with pytest.raises(CompanionFieldError, match="Approved expenses must have approved_by field set"):
            machine.validate(expense("approved"), expense("pending"), CONTEXT)
        with pytest.raises(CompanionFieldError, match="Approved expenses must have approved_at timestamp"):
            machine.validate(expense("approved", approved_by="p"), expense("pending"), CONTEXT)

    def test_approval_time_checked_on_entry(self, machine):
        created = NOW - 24 * NANOS_PER_HOUR
        before_creation = expense("approved", approved_by="p", approved_at=created - 1)
        with pytest.raises(CompanionFieldError, match="must be after expense creation time"):
            machine.validate(before_creation, expense("pending"), CONTEXT)

        ahead = expense("approved", approved_by="p", approved_at=NOW + 2 * NANOS_PER_HOUR)
        with pytest.raises(CompanionFieldError, match="cannot be in the future"):
            machine.validate(ahead, expense("pending"), CONTEXT)

        slightly_ahead = expense("approved", approved_by="p", approved_at=NOW + NANOS_PER_HOUR // 2)
        assert machine.validate(slightly_ahead, expense("pending"), CONTEXT) is True

    def test_resubmission_does_not_rerun_entry_rules(self, machine):
        """A clock-ahead approval stamp is only judged when the status is entered"""
        stored = expense("approved", approved_by="p", approved_at=NOW + 2 * NANOS_PER_HOUR)
        resubmitted = expense("approved", approved_by="p", approved_at=NOW + 2 * NANOS_PER_HOUR)
        assert machine.validate(resubmitted, stored, CONTEXT) is False

    def test_resubmission_still_checks_holds_rules(self, machine):
        stored = expense("approved", approved_by="p", approved_at=NOW)
        with pytest.raises(CompanionFieldError, match="approved_by field set"):
            machine.validate(expense("approved", approved_at=NOW), stored, CONTEXT)

    def test_rejection_reason(self, machine):
        with pytest.raises(CompanionFieldError, match="must include rejection reason"):
            machine.validate(expense("rejected", notes="  "), expense("pending"), CONTEXT)
        with pytest.raises(CompanionFieldError, match="at least 10 characters"):
            machine.validate(expense("rejected", notes="No"), expense("pending"), CONTEXT)
        assert machine.validate(
            expense("rejected", notes="Duplicate of last week's invoice"), expense("pending"), CONTEXT
        )

    def test_short_reason_survives_resubmission(self, machine):
        stored = expense("rejected", notes="No budget")
        assert machine.validate(expense("rejected", notes="No budget"), stored, CONTEXT) is False

    def test_paid_requires_prior_approval(self, machine):
        approved = expense("approved", approved_by="p", approved_at=NOW)
        assert machine.validate(expense("paid", approved_by="p", approved_at=NOW), approved, CONTEXT)
        with pytest.raises(CompanionFieldError, match="Paid expenses must have been approved first"):
            machine.validate(expense("paid", approved_at=NOW), approved, CONTEXT)


class TestOtherLifecycles:
    """Payment, salary, transfer and bank transaction companion rules"""

    def test_payment_cancellation_needs_notes(self, registry):
        machine = registry.get(PAYMENT)
        with pytest.raises(CompanionFieldError, match="Cancelled payments must include cancellation reason"):
            machine.validate(record("cancelled", notes=None), record("pending", notes=None), CONTEXT)
        with pytest.raises(InvalidInitialStatusError, match="New payments must have status 'pending' or 'confirmed'"):
            machine.validate(record("refunded", notes="x"), None, CONTEXT)

    def test_salary_approval_needs_processor(self, registry):
        machine = registry.get(SALARY)
        created = NOW - 24 * NANOS_PER_HOUR
        pending = record("pending", processed_by="b", processed_at=None, created_at=created)
        with pytest.raises(CompanionFieldError, match="Approved salary payments must have processed_by set"):
            machine.validate(
                record("approved", processed_by=" ", processed_at=NOW, created_at=created), pending, CONTEXT
            )
        with pytest.raises(CompanionFieldError, match="processed_at timestamp"):
            machine.validate(
                record("approved", processed_by="b", processed_at=None, created_at=created), pending, CONTEXT
            )
        assert machine.validate(
            record("approved", processed_by="b", processed_at=NOW, created_at=created), pending, CONTEXT
        )

    def test_transfer_rejection_reason(self, registry):
        machine = registry.get(TRANSFER)
        pending = record("pending", reason=None, approved_by=None, approved_at=None)
        with pytest.raises(CompanionFieldError, match="Rejected transfers must include a reason"):
            machine.validate(record("rejected", reason="no"), pending, CONTEXT)
        assert machine.validate(record("cancelled", reason="Raised against wrong account"), pending, CONTEXT)

    def test_transfer_approval_time(self, registry):
        machine = registry.get(TRANSFER)
        created = NOW - 24 * NANOS_PER_HOUR
        pending = record("pending", approved_by=None, approved_at=None, created_at=created)

        def approved(approved_at, created_at=created):
            return record("approved", approved_by="p", approved_at=approved_at, created_at=created_at)

        with pytest.raises(CompanionFieldError, match="Approval timestamp cannot be in the future"):
            machine.validate(approved(NOW + 2 * NANOS_PER_HOUR), pending, CONTEXT)
        with pytest.raises(CompanionFieldError, match="must be after transfer creation time"):
            machine.validate(approved(created), pending, CONTEXT)
        assert machine.validate(approved(NOW + NANOS_PER_HOUR), pending, CONTEXT)
        assert machine.validate(approved(NOW, created_at=None), pending, CONTEXT)

    def test_transfer_approval_time_not_rechecked(self, registry):
        machine = registry.get(TRANSFER)
        stale = record("approved", approved_by="p", approved_at=NOW + 48 * NANOS_PER_HOUR, created_at=None)
        assert machine.validate(stale, stale, CONTEXT) is False

    def test_reconciled_transaction_flag(self, registry):
        machine = registry.get(BANK_TRANSACTION)
        with pytest.raises(CompanionFieldError, match="isReconciled flag is false"):
            machine.validate(record("reconciled", is_reconciled=False), record("cleared"), CONTEXT)
        assert machine.validate(record("reconciled", is_reconciled=True), record("cleared"), CONTEXT)
