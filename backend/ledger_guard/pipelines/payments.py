"""
Fee payment pipeline.
"""

from ledger_guard.errors import FormatViolationError
from ledger_guard.financial_precision import to_decimal, validate_positive, validate_precision
from ledger_guard.models import Payment
from ledger_guard.pipelines.base import CollectionPipeline, register_pipeline
from ledger_guard.reconciliation import reconcile_payment_allocations
from ledger_guard.state_machine_wiring import PAYMENT
from ledger_guard.validators import (
    PAYMENT_REFERENCE,
    is_blank,
    is_valid_url,
    require_choice,
    require_date,
    require_reference,
)

PAYMENT_METHODS = ("cash", "bank_transfer", "pos", "online", "cheque")

FEE_TYPES = (
    "tuition", "uniform", "feeding", "transport", "books",
    "sports", "development", "examination", "pta", "computer",
    "library", "laboratory", "lesson", "other",
)

MAX_ALLOCATIONS = 20


def check_allocations(payment: Payment) -> None:
    allocations = payment.fee_allocations
    if not allocations:
        raise FormatViolationError("Payment must have at least one fee allocation")
    if len(allocations) > MAX_ALLOCATIONS:
        raise FormatViolationError(
            f"Payment cannot have more than {MAX_ALLOCATIONS} fee allocations"
        )

    for position, allocation in enumerate(allocations, start=1):
        if is_blank(allocation.category_id):
            raise FormatViolationError(f"Fee allocation {position} must have a category ID")
        if is_blank(allocation.category_name):
            raise FormatViolationError(f"Fee allocation {position} must have a category name")
        if is_blank(allocation.fee_type):
            raise FormatViolationError(f"Fee allocation {position} must have a fee type")
        if allocation.fee_type not in FEE_TYPES:
            raise FormatViolationError(
                f"Invalid fee type '{allocation.fee_type}' in allocation {position}. "
                f"Must be one of: {', '.join(FEE_TYPES)}"
            )
        validate_positive(allocation.amount, f"Fee allocation {position} amount")


@register_pipeline
class PaymentPipeline(CollectionPipeline):
    collection = "payments"
    entity = "payment"
    model = Payment

    async def check(self, ctx, payment: Payment, previous):
        # Primitive
        if to_decimal(payment.amount) <= 0:
            raise FormatViolationError("Payment amount must be greater than zero")
        validate_precision(payment.amount, "Payment amount")
        require_date(payment.payment_date, "payment date")
        require_choice(payment.payment_method, PAYMENT_METHODS, "payment method")
        if not is_blank(payment.receipt_url) and not is_valid_url(payment.receipt_url):
            raise FormatViolationError("Receipt URL must start with http:// or https://")
        check_allocations(payment)
        require_reference(payment.reference, PAYMENT_REFERENCE, "Payment")

        # Reconciliation
        reconcile_payment_allocations(
            payment.amount, [a.amount for a in payment.fee_allocations]
        )

        # Status lifecycle
        ctx.machines.get(PAYMENT).validate(payment, previous, ctx.rule_context())

        # Store
        await ctx.duplicates.check_reference_unique(
            self.collection, payment.reference, "Payment", exclude_key=ctx.key
        )
        await ctx.duplicates.check_exists(
            "student_fee_assignments",
            payment.fee_assignment_id,
            f"Fee assignment '{payment.fee_assignment_id}' not found"
        )
        for category_id in dict.fromkeys(a.category_id for a in payment.fee_allocations):
            await ctx.duplicates.check_exists(
                "fee_categories", category_id, f"Fee category '{category_id}' not found"
            )
