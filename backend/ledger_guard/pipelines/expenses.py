"""
Expense and expense category pipelines.
"""

from ledger_guard.errors import FormatViolationError
from ledger_guard.financial_precision import to_decimal, validate_precision
from ledger_guard.models import Expense, ExpenseCategory
from ledger_guard.pipelines.base import CollectionPipeline, register_pipeline
from ledger_guard.state_machine_wiring import EXPENSE
from ledger_guard.validators import (
    EXPENSE_REFERENCE,
    is_blank,
    is_valid_budget_code,
    is_valid_category_name,
    is_valid_email,
    is_valid_phone_number,
    is_valid_url,
    require_choice,
    require_date,
    require_reference,
)

PAYMENT_METHODS = ("cash", "bank_transfer", "cheque", "pos", "online")
MAX_DESCRIPTION_LENGTH = 1000


@register_pipeline
class ExpensePipeline(CollectionPipeline):
    collection = "expenses"
    entity = "expense"
    model = Expense

    async def check(self, ctx, expense: Expense, previous):
        # Primitive
        if to_decimal(expense.amount) <= 0:
            raise FormatViolationError("Expense amount must be greater than 0")
        validate_precision(expense.amount, "Expense amount")
        ctx.policy.check_expense_amount_ceiling(expense.amount)

        require_choice(expense.payment_method, PAYMENT_METHODS, "payment method")
        require_reference(expense.reference, EXPENSE_REFERENCE, "Expense", phrase="must be in format")
        require_date(expense.payment_date, "payment date")
        ctx.policy.check_expense_date_window(expense.payment_date, ctx.now_ns)

        contact = expense.vendor_contact
        if not is_blank(contact) and not (is_valid_phone_number(contact) or is_valid_email(contact)):
            raise FormatViolationError(
                "Vendor contact must be a valid phone number or email address"
            )
        if not is_blank(expense.invoice_url) and not is_valid_url(expense.invoice_url):
            raise FormatViolationError("Invoice URL must start with http:// or https://")

        # Status lifecycle
        ctx.machines.get(EXPENSE).validate(expense, previous, ctx.rule_context())

        # Store
        await ctx.duplicates.check_reference_unique(
            self.collection, expense.reference, "Expense", exclude_key=ctx.key
        )
        if not is_blank(expense.vendor_name):
            await ctx.duplicates.check_duplicate_expense(
                expense.vendor_name, expense.amount, expense.payment_date, exclude_key=ctx.key
            )
        await ctx.duplicates.check_exists(
            "expense_categories",
            expense.category_id,
            f"Expense category '{expense.category_id}' not found"
        )

        # Policy
        ctx.policy.check_payment_method_ceiling(expense.payment_method, expense.amount)
        ctx.policy.check_expense_documentation(
            expense.amount, expense.vendor_name, expense.purpose, expense.invoice_url
        )
        ctx.policy.check_expense_approval(
            expense.amount, expense.status, expense.approved_by, expense.approved_at
        )
        if expense.status in ("approved", "paid"):
            ctx.policy.check_self_approval(expense.approved_by, expense.recorded_by, "expenses")


@register_pipeline
class ExpenseCategoryPipeline(CollectionPipeline):
    collection = "expense_categories"
    entity = "expense category"
    model = ExpenseCategory

    async def check(self, ctx, category: ExpenseCategory, previous):
        if not is_valid_category_name(category.name):
            raise FormatViolationError(
                "Category name must be 3-100 characters and contain only letters, "
                "numbers, spaces, and basic punctuation"
            )

        description = category.description or ""
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise FormatViolationError(
                f"Category description cannot exceed {MAX_DESCRIPTION_LENGTH} characters "
                f"(current length: {len(description)})"
            )

        if not is_blank(category.budget_code) and not is_valid_budget_code(category.budget_code):
            raise FormatViolationError("Budget code must be in format: XXX-000 (e.g., ADM-001)")

        await ctx.duplicates.check_natural_key_unique(
            self.collection,
            "name",
            category.name,
            f"Category name '{category.name}' is already taken",
            exclude_key=ctx.key
        )
