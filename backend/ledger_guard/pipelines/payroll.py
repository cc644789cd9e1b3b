"""
Staff member and salary payment pipelines.
"""

from ledger_guard.errors import FormatViolationError
from ledger_guard.financial_precision import (
    to_decimal,
    validate_non_negative,
    validate_precision,
)
from ledger_guard.models import SalaryPayment, StaffMember
from ledger_guard.pipelines.base import CollectionPipeline, register_pipeline
from ledger_guard.reconciliation import check_unique_line_items, reconcile_salary
from ledger_guard.state_machine_wiring import SALARY
from ledger_guard.validators import (
    SALARY_REFERENCE,
    date_string_to_timestamp,
    is_blank,
    is_valid_account_number,
    is_valid_date_format,
    is_valid_department_name,
    is_valid_email,
    is_valid_phone_number,
    require_choice,
    require_date,
    require_reference,
)

EMPLOYMENT_TYPES = ("full-time", "part-time", "contract")
SALARY_PAYMENT_METHODS = ("bank_transfer", "cash", "cheque")
MAX_DEPARTMENT_LENGTH = 50


def _require_basic_salary(amount: float) -> None:
    if to_decimal(amount) <= 0:
        raise FormatViolationError("Basic salary must be greater than zero")
    validate_precision(amount, "Basic salary")


@register_pipeline
class StaffPipeline(CollectionPipeline):
    collection = "staff"
    entity = "staff"
    model = StaffMember

    async def check(self, ctx, staff: StaffMember, previous):
        _require_basic_salary(staff.basic_salary)

        require_choice(staff.employment_type, EMPLOYMENT_TYPES, "employment type")
        require_date(staff.employment_date, "employment date")
        ctx.policy.check_employment_date_window(staff.employment_date, ctx.now_ns)

        department = staff.department
        if department is not None:
            if len(department) > MAX_DEPARTMENT_LENGTH:
                raise FormatViolationError(
                    f"Department name cannot exceed {MAX_DEPARTMENT_LENGTH} characters "
                    f"(current: {len(department)})"
                )
            if not is_blank(department) and not is_valid_department_name(department):
                raise FormatViolationError("Department name contains invalid characters")

        allowances = staff.allowances or []
        check_unique_line_items((a.name for a in allowances), "allowance")
        for allowance in allowances:
            validate_non_negative(allowance.amount, f"Allowance '{allowance.name}' amount")

        if not is_valid_phone_number(staff.phone):
            raise FormatViolationError(f"Invalid phone number '{staff.phone}'")
        if not is_blank(staff.email) and not is_valid_email(staff.email):
            raise FormatViolationError(f"Invalid email address '{staff.email}'")
        if not is_blank(staff.account_number) and not is_valid_account_number(staff.account_number):
            raise FormatViolationError("Account number must be exactly 10 digits")

        await ctx.duplicates.check_natural_key_unique(
            self.collection,
            "staffNumber",
            staff.staff_number,
            f"Staff number '{staff.staff_number}' already exists",
            exclude_key=ctx.key
        )


@register_pipeline
class SalaryPaymentPipeline(CollectionPipeline):
    collection = "salary_payments"
    entity = "salary payment"
    model = SalaryPayment

    def _check_period(self, ctx, salary: SalaryPayment) -> None:
        require_date(salary.payment_date, "payment date")
        ctx.policy.check_salary_date_window(salary.payment_date, ctx.now_ns)

        if not (is_valid_date_format(salary.payment_period_start)
                and is_valid_date_format(salary.payment_period_end)):
            raise FormatViolationError(
                "Payment period start and end must be valid dates (YYYY-MM-DD)"
            )

        start = date_string_to_timestamp(salary.payment_period_start)
        end = date_string_to_timestamp(salary.payment_period_end)
        paid = date_string_to_timestamp(salary.payment_date)
        if end < start:
            raise FormatViolationError("Payment period end cannot be before start")
        if paid < start:
            raise FormatViolationError("Payment date cannot be before the period start")

    async def check(self, ctx, salary: SalaryPayment, previous):
        # Primitive
        _require_basic_salary(salary.basic_salary)
        check_unique_line_items((a.name for a in salary.allowances), "allowance")
        check_unique_line_items((d.name for d in salary.deductions), "deduction")
        for item in [*salary.allowances, *salary.deductions]:
            validate_non_negative(item.amount, f"'{item.name}' amount")
        self._check_period(ctx, salary)
        require_choice(salary.payment_method, SALARY_PAYMENT_METHODS, "payment method")
        require_reference(salary.reference, SALARY_REFERENCE, "Salary")

        # Reconciliation
        reconcile_salary(
            salary.basic_salary,
            [a.amount for a in salary.allowances],
            [d.amount for d in salary.deductions],
            salary.net_salary,
            gross_salary=salary.gross_salary
        )

        # Status lifecycle
        ctx.machines.get(SALARY).validate(salary, previous, ctx.rule_context())

        # Store
        await ctx.duplicates.check_reference_unique(
            self.collection, salary.reference, "Salary", exclude_key=ctx.key
        )
        if salary.status == "paid":
            await ctx.duplicates.check_duplicate_paid_salary(
                salary.staff_id,
                salary.staff_number,
                salary.payment_period_start,
                salary.payment_period_end,
                exclude_key=ctx.key
            )
