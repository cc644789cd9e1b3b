from pydantic import BaseModel, BeforeValidator, Field
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, List, Optional


def _unwrap_bigint(value: Any) -> Any:
    """The document store wraps 64-bit integers as {"__bigint__": "<digits>"}."""
    if isinstance(value, dict) and "__bigint__" in value:
        wrapped = value["__bigint__"]
        if isinstance(wrapped, bool) or not isinstance(wrapped, (str, int)):
            raise ValueError(f"__bigint__ must wrap digits, got {type(wrapped).__name__}")
        # ValueError from int() becomes a ValidationError
        return int(wrapped)
    return value


# Epoch nanoseconds
Nanos = Annotated[int, BeforeValidator(_unwrap_bigint)]


class RecordModel(BaseModel):
    """Wire records are camelCase; snake_case names are accepted too."""

    class Config:
        populate_by_name = True
        alias_generator = to_camel


# ============================================
# EXPENSE MODELS
# ============================================
class Expense(RecordModel):
    category_id: str
    category_name: str
    category: str
    amount: float
    description: str
    purpose: Optional[str] = None
    payment_method: str  # cash, bank_transfer, cheque, pos, online
    payment_date: str  # YYYY-MM-DD
    vendor_name: Optional[str] = None
    vendor_contact: Optional[str] = None
    reference: str  # EXP-YYYY-XXXXXXXX
    invoice_url: Optional[str] = None
    status: str  # pending, approved, rejected, paid
    approved_by: Optional[str] = None
    approved_at: Optional[Nanos] = None
    notes: Optional[str] = None
    recorded_by: str
    created_at: Nanos
    updated_at: Nanos


class ExpenseCategory(RecordModel):
    name: str
    category: str
    description: Optional[str] = None
    budget_code: Optional[str] = None  # ABC-123
    is_active: bool = True
    created_at: Nanos
    updated_at: Nanos


# ============================================
# PAYMENT MODELS
# ============================================
class FeeAllocation(RecordModel):
    category_id: str
    category_name: str
    fee_type: str
    amount: float


class Payment(RecordModel):
    student_id: str
    student_name: str
    class_id: str
    class_name: str
    fee_assignment_id: str
    amount: float
    payment_method: str  # cash, bank_transfer, pos, online, cheque
    payment_date: str
    fee_allocations: List[FeeAllocation]
    reference: str  # PAY-YYYY-XXXXXXXX
    transaction_id: Optional[str] = None
    paid_by: Optional[str] = None
    status: str  # pending, confirmed, cancelled, refunded
    notes: Optional[str] = None
    receipt_url: Optional[str] = None
    recorded_by: str
    created_at: Nanos
    updated_at: Nanos


# ============================================
# STAFF & PAYROLL MODELS
# ============================================
class StaffAllowance(RecordModel):
    name: str
    amount: float
    is_recurring: bool = True


class StaffMember(RecordModel):
    surname: str
    firstname: str
    middlename: Optional[str] = None
    staff_number: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    position: str
    department: Optional[str] = None
    employment_type: str  # full-time, part-time, contract
    employment_date: str
    basic_salary: float
    allowances: Optional[List[StaffAllowance]] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    is_active: bool = True
    created_at: Nanos
    updated_at: Nanos


class SalaryAllowance(RecordModel):
    name: str
    amount: float
    is_taxable: bool = False


class SalaryDeduction(RecordModel):
    name: str
    amount: float
    is_statutory: bool = False


class SalaryPayment(RecordModel):
    staff_id: str
    staff_name: str
    staff_number: str
    payment_date: str
    payment_period_start: str
    payment_period_end: str
    basic_salary: float
    allowances: List[SalaryAllowance] = Field(default_factory=list)
    deductions: List[SalaryDeduction] = Field(default_factory=list)
    gross_salary: Optional[float] = None
    net_salary: float
    payment_method: str  # bank_transfer, cash, cheque
    reference: str  # SAL-YYYY-MM-XXXXXX
    status: str  # pending, approved, paid
    notes: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[Nanos] = None
    created_at: Nanos
    updated_at: Nanos


# ============================================
# STUDENT & FEE MODELS
# ============================================
class Student(RecordModel):
    """Only the keys below are checked; every other field passes through."""
    admission_number: Optional[str] = None
    class_id: Optional[str] = None

    class Config:
        populate_by_name = True
        alias_generator = to_camel
        extra = "allow"


class FeeItem(RecordModel):
    category_id: str
    category_name: str
    fee_type: str = Field(alias="type")
    amount: float
    amount_paid: float = 0.0
    balance: float = 0.0
    is_mandatory: bool
    is_optional: Optional[bool] = None
    is_selected: Optional[bool] = None


class StudentFeeAssignment(RecordModel):
    student_id: str
    student_name: str
    class_id: str
    fee_structure_id: str
    academic_year: str
    term: str  # first, second, third
    fee_items: List[FeeItem]
    original_amount: Optional[float] = None
    total_amount: float
    amount_paid: float
    balance: float
    status: str  # unpaid, partial, paid, overpaid
    due_date: Optional[str] = None
    scholarship_id: Optional[str] = None
    scholarship_name: Optional[str] = None
    scholarship_type: Optional[str] = None  # percentage, fixed_amount, waiver
    scholarship_value: Optional[float] = None
    discount_amount: Optional[float] = None


class Scholarship(RecordModel):
    name: str
    scholarship_type: str = Field(alias="type")  # percentage, fixed_amount, full_waiver
    percentage_off: Optional[float] = None
    fixed_amount_off: Optional[float] = None
    applicable_to: str  # all, specific_classes, specific_students
    class_ids: Optional[List[str]] = None
    student_ids: Optional[List[str]] = None
    start_date: str
    end_date: Optional[str] = None
    status: str  # active, suspended, expired
    created_by: str
    max_beneficiaries: Optional[int] = None
    current_beneficiaries: Optional[int] = None


# ============================================
# BANKING MODELS
# ============================================
class BankTransaction(RecordModel):
    debit_amount: float
    credit_amount: float
    balance: Optional[float] = None
    status: str = "pending"  # pending, cleared, reconciled
    is_reconciled: bool = False


class InterAccountTransfer(RecordModel):
    from_account_id: str
    to_account_id: str
    amount: float
    status: str  # pending, approved, completed, rejected, cancelled
    approved_by: Optional[str] = None
    approved_at: Optional[Nanos] = None
    initiated_by: Optional[str] = None
    reason: Optional[str] = None
    created_at: Optional[Nanos] = None


class BankAccount(RecordModel):
    bank_name: str
    account_name: str
    account_number: str
    account_type: str  # current, savings
    balance: float = 0.0
    is_active: bool = True
