"""
Student fee assignment and scholarship pipelines.
"""

from ledger_guard.errors import FormatViolationError
from ledger_guard.financial_precision import to_decimal
from ledger_guard.models import Scholarship, StudentFeeAssignment
from ledger_guard.pipelines.base import CollectionPipeline, register_pipeline
from ledger_guard.reconciliation import reconcile_balance, reconcile_discounted_total
from ledger_guard.validators import is_blank, validate_iso_date

TERMS = ("first", "second", "third")
ASSIGNMENT_STATUSES = ("unpaid", "partial", "paid", "overpaid")
ASSIGNMENT_SCHOLARSHIP_TYPES = ("percentage", "fixed_amount", "waiver")

SCHOLARSHIP_TYPES = ("percentage", "fixed_amount", "full_waiver")
SCHOLARSHIP_SCOPES = ("all", "specific_classes", "specific_students")
SCHOLARSHIP_STATUSES = ("active", "suspended", "expired")


def _one_of(values) -> str:
    quoted = [f"'{v}'" for v in values]
    return f"{', '.join(quoted[:-1])}, or {quoted[-1]}"


def expected_status(amount_paid, balance) -> str:
    """Status implied by the amounts; checked in this precedence order."""
    if to_decimal(amount_paid) == 0:
        return "unpaid"
    if to_decimal(balance) == 0:
        return "paid"
    if to_decimal(balance) < 0:
        return "overpaid"
    return "partial"


@register_pipeline
class StudentFeeAssignmentPipeline(CollectionPipeline):
    collection = "student_fee_assignments"
    entity = "fee assignment"
    model = StudentFeeAssignment

    REQUIRED = (
        ("student_id", "studentId"),
        ("student_name", "studentName"),
        ("class_id", "classId"),
        ("fee_structure_id", "feeStructureId"),
        ("academic_year", "academicYear"),
    )

    def _check_fee_items(self, assignment: StudentFeeAssignment) -> None:
        if not assignment.fee_items:
            raise FormatViolationError("feeItems cannot be empty")
        for item in assignment.fee_items:
            if is_blank(item.category_id):
                raise FormatViolationError("feeItem must have categoryId")
            if to_decimal(item.amount) < 0:
                raise FormatViolationError(f"Fee item {item.category_id} has negative amount")
            if item.is_mandatory and bool(item.is_optional):
                raise FormatViolationError(
                    f"Fee item {item.category_id} cannot be both mandatory and optional"
                )

    def _check_scholarship(self, assignment: StudentFeeAssignment) -> None:
        if assignment.scholarship_id is None:
            return
        if is_blank(assignment.scholarship_id):
            raise FormatViolationError("scholarshipId cannot be empty string")

        scholarship_type = assignment.scholarship_type
        if scholarship_type is None:
            raise FormatViolationError("scholarshipType is required when scholarshipId is present")
        if scholarship_type not in ASSIGNMENT_SCHOLARSHIP_TYPES:
            raise FormatViolationError(
                f"scholarshipType must be {_one_of(ASSIGNMENT_SCHOLARSHIP_TYPES)}"
            )

        discount = assignment.discount_amount
        if discount is None:
            raise FormatViolationError("discountAmount is required when scholarship is applied")
        if to_decimal(discount) < 0:
            raise FormatViolationError("discountAmount cannot be negative")

        original = assignment.original_amount
        if original is None:
            raise FormatViolationError("originalAmount is required when scholarship is applied")
        if to_decimal(discount) > to_decimal(original):
            raise FormatViolationError("discountAmount cannot exceed originalAmount")

        if scholarship_type == "percentage":
            value = assignment.scholarship_value
            if value is None:
                raise FormatViolationError("scholarshipValue is required for percentage type")
            if not 0 <= value <= 100:
                raise FormatViolationError(
                    "scholarshipValue for percentage must be between 0 and 100"
                )

        reconcile_discounted_total(original, discount, assignment.total_amount)

    async def check(self, ctx, assignment: StudentFeeAssignment, previous):
        for attr, label in self.REQUIRED:
            if is_blank(getattr(assignment, attr)):
                raise FormatViolationError(f"{label} is required")

        if assignment.term not in TERMS:
            raise FormatViolationError(f"term must be {_one_of(TERMS)}")

        self._check_fee_items(assignment)
        self._check_scholarship(assignment)

        if to_decimal(assignment.total_amount) < 0:
            raise FormatViolationError("totalAmount cannot be negative")
        if to_decimal(assignment.amount_paid) < 0:
            raise FormatViolationError("amountPaid cannot be negative")

        reconcile_balance(assignment.total_amount, assignment.amount_paid, assignment.balance)

        if assignment.status not in ASSIGNMENT_STATUSES:
            raise FormatViolationError(f"status must be {_one_of(ASSIGNMENT_STATUSES)}")

        implied = expected_status(assignment.amount_paid, assignment.balance)
        if assignment.status != implied:
            reasons = {
                "unpaid": "when amountPaid is 0",
                "paid": "when balance is 0",
                "overpaid": "when balance is negative",
                "partial": "when partially paid",
            }
            raise FormatViolationError(f"status must be '{implied}' {reasons[implied]}")

        if assignment.due_date is not None:
            validate_iso_date(assignment.due_date)


@register_pipeline
class ScholarshipPipeline(CollectionPipeline):
    collection = "scholarships"
    entity = "scholarship"
    model = Scholarship

    def _check_discount(self, scholarship: Scholarship) -> None:
        if scholarship.scholarship_type == "percentage":
            percentage = scholarship.percentage_off
            if percentage is None:
                raise FormatViolationError("percentageOff is required for percentage type")
            if not 0 <= percentage <= 100:
                raise FormatViolationError("percentageOff must be between 0 and 100")

        if scholarship.scholarship_type == "fixed_amount":
            fixed = scholarship.fixed_amount_off
            if fixed is None:
                raise FormatViolationError("fixedAmountOff is required for fixed_amount type")
            if to_decimal(fixed) <= 0:
                raise FormatViolationError("fixedAmountOff must be greater than 0")

    def _check_scope(self, scholarship: Scholarship) -> None:
        scope = scholarship.applicable_to
        if scope not in SCHOLARSHIP_SCOPES:
            raise FormatViolationError(f"applicableTo must be {_one_of(SCHOLARSHIP_SCOPES)}")

        if scope == "specific_classes":
            if scholarship.class_ids is None:
                raise FormatViolationError(
                    "classIds is required when applicableTo is 'specific_classes'"
                )
            if not scholarship.class_ids:
                raise FormatViolationError("classIds cannot be empty for specific_classes")

        if scope == "specific_students":
            if scholarship.student_ids is None:
                raise FormatViolationError(
                    "studentIds is required when applicableTo is 'specific_students'"
                )
            if not scholarship.student_ids:
                raise FormatViolationError("studentIds cannot be empty for specific_students")

    async def check(self, ctx, scholarship: Scholarship, previous):
        if is_blank(scholarship.name):
            raise FormatViolationError("name cannot be empty")
        if scholarship.scholarship_type not in SCHOLARSHIP_TYPES:
            raise FormatViolationError(f"type must be {_one_of(SCHOLARSHIP_TYPES)}")

        self._check_discount(scholarship)
        self._check_scope(scholarship)

        validate_iso_date(scholarship.start_date)
        if scholarship.end_date is not None:
            validate_iso_date(scholarship.end_date)
            # ISO dates order lexicographically
            if scholarship.end_date <= scholarship.start_date:
                raise FormatViolationError("endDate must be after startDate")

        if scholarship.max_beneficiaries is not None:
            if scholarship.max_beneficiaries < 1:
                raise FormatViolationError("maxBeneficiaries must be at least 1")
            if (scholarship.current_beneficiaries or 0) > scholarship.max_beneficiaries:
                raise FormatViolationError(
                    "currentBeneficiaries cannot exceed maxBeneficiaries"
                )

        if scholarship.status not in SCHOLARSHIP_STATUSES:
            raise FormatViolationError(f"status must be {_one_of(SCHOLARSHIP_STATUSES)}")

        if is_blank(scholarship.created_by):
            raise FormatViolationError("createdBy cannot be empty")
