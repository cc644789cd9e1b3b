"""
Staff and salary payment pipeline tests
"""
from factories import APPROVED_NS, approved_salary, make_salary, make_staff
from ledger_guard.errors import ErrorCategory


class TestStaff:
    """Staff member records"""

    def test_valid_staff(self, validate):
        result = validate("staff", make_staff())
        assert result.accepted, result.error

    def test_basic_salary_positive(self, validate):
        result = validate("staff", make_staff(basicSalary=0))
        assert result.error == "Basic salary must be greater than zero"

    def test_employment_type(self, validate):
        result = validate("staff", make_staff(employmentType="intern"))
        assert result.error == (
            "Invalid employment type 'intern'. Must be one of: full-time, part-time, contract"
        )

    def test_employment_date_window(self, validate):
        result = validate("staff", make_staff(employmentDate="2024-08-30"))
        assert result.category == ErrorCategory.POLICY
        assert result.error == "Employment date cannot be more than 30 days in the future"

    def test_department_length_reported_before_characters(self, validate):
        result = validate("staff", make_staff(department="Sciences;" * 6))
        assert result.error == "Department name cannot exceed 50 characters (current: 54)"
        result = validate("staff", make_staff(department="Sciences; Labs"))
        assert result.error == "Department name contains invalid characters"

    def test_duplicate_allowance_names(self, validate):
        allowances = [{"name": "Housing", "amount": 10.0}, {"name": "Housing", "amount": 20.0}]
        result = validate("staff", make_staff(allowances=allowances))
        assert result.error == "Duplicate allowance name: 'Housing'"

    def test_negative_allowance(self, validate):
        result = validate("staff", make_staff(allowances=[{"name": "Housing", "amount": -1.0}]))
        assert result.error == "Allowance 'Housing' amount cannot be negative"

    def test_contact_details(self, validate):
        assert validate("staff", make_staff(phone="12345")).error == "Invalid phone number '12345'"
        assert validate("staff", make_staff(email="okafor")).error == "Invalid email address 'okafor'"
        assert validate("staff", make_staff(accountNumber="12345")).error == (
            "Account number must be exactly 10 digits"
        )

    def test_staff_number_taken_in_any_case(self, validate, store):
        store.put("staff", "staff_042", make_staff())
        result = validate("staff", make_staff(staffNumber="stf-0042"), key="staff_043")
        assert result.category == ErrorCategory.INTEGRITY
        assert result.error == "Staff number 'stf-0042' already exists"

    def test_update_keeps_own_staff_number(self, validate, store):
        stored = make_staff()
        store.put("staff", "staff_042", stored)
        updated = make_staff(position="Head of Department")
        assert validate("staff", updated, previous=stored, key="staff_042").accepted


class TestSalaryFields:
    """Primitive salary checks"""

    def test_valid_salary(self, validate):
        result = validate("salary_payments", make_salary())
        assert result.accepted, result.error

    def test_without_line_items(self, validate):
        salary = make_salary(netSalary=200000.00)
        del salary["allowances"]
        del salary["deductions"]
        assert validate("salary_payments", salary).accepted

    def test_duplicate_deduction_names(self, validate):
        deductions = [{"name": "Tax", "amount": 15000.0}, {"name": "Tax", "amount": 15000.0}]
        result = validate("salary_payments", make_salary(deductions=deductions))
        assert result.error == "Duplicate deduction name: 'Tax'"

    def test_period_order(self, validate):
        result = validate("salary_payments", make_salary(paymentPeriodEnd="2024-05-31"))
        assert result.error == "Payment period end cannot be before start"

    def test_paid_before_period(self, validate):
        result = validate("salary_payments", make_salary(paymentDate="2024-05-28"))
        assert result.error == "Payment date cannot be before the period start"

    def test_bad_period_date(self, validate):
        result = validate("salary_payments", make_salary(paymentPeriodStart="June 2024"))
        assert result.error == "Payment period start and end must be valid dates (YYYY-MM-DD)"

    def test_payment_method(self, validate):
        result = validate("salary_payments", make_salary(paymentMethod="pos"))
        assert result.error == "Invalid payment method 'pos'. Must be one of: bank_transfer, cash, cheque"

    def test_reference_format(self, validate):
        result = validate("salary_payments", make_salary(reference="SAL-2024-6-ZX98CV"))
        assert result.error == "Salary reference must follow format: SAL-YYYY-MM-XXXXXX"
        result = validate("salary_payments", make_salary(reference="SAL-2024-0\u00b2-ZX98CV"))
        assert result.error == "Salary reference must follow format: SAL-YYYY-MM-XXXXXX"


class TestSalaryReconciliation:
    """Net = basic + allowances - deductions"""

    def test_net_mismatch(self, validate):
        result = validate("salary_payments", make_salary(netSalary=221000.00))
        assert result.category == ErrorCategory.CONSISTENCY
        assert result.error == (
            "Net salary (₦221000.00) doesn't match basic + allowances - deductions (₦220000.00)"
        )

    def test_declared_gross(self, validate):
        assert validate("salary_payments", make_salary(grossSalary=250000.00)).accepted
        result = validate("salary_payments", make_salary(grossSalary=260000.00))
        assert result.error.startswith("Gross salary (₦260000.00) doesn't match")


class TestSalaryLifecycle:
    """pending -> approved -> paid"""

    def test_approval(self, validate, store):
        pending = make_salary()
        store.put("salary_payments", "sal_1", pending)
        assert validate("salary_payments", approved_salary(), previous=pending, key="sal_1").accepted

    def test_approval_needs_processing_time(self, validate, store):
        pending = make_salary()
        store.put("salary_payments", "sal_1", pending)
        result = validate(
            "salary_payments", make_salary(status="approved"), previous=pending, key="sal_1"
        )
        assert result.category == ErrorCategory.TRANSITION
        assert result.error == "Approved salary payments must have processed_at timestamp"

    def test_created_paid_rejected(self, validate):
        result = validate("salary_payments", make_salary(status="paid", processedAt=APPROVED_NS))
        assert result.error == "New salary payments must have status 'pending'"

    def test_second_paid_salary_for_period(self, validate, store):
        store.put("salary_payments", "sal_0", make_salary(
            status="paid", processedAt=APPROVED_NS, reference="SAL-2024-06-AAAAAA", staffId="staff_042"
        ))
        approved = approved_salary()
        store.put("salary_payments", "sal_1", approved)
        result = validate(
            "salary_payments", approved_salary(status="paid"), previous=approved, key="sal_1"
        )
        assert result.category == ErrorCategory.INTEGRITY
        assert result.error == (
            "Staff STF-0042 already has a paid salary for period 2024-06-01 to 2024-06-30"
        )

    def test_paying_the_same_record_again(self, validate, store):
        paid = approved_salary(status="paid")
        store.put("salary_payments", "sal_1", paid)
        assert validate("salary_payments", approved_salary(status="paid"), previous=paid, key="sal_1").accepted
