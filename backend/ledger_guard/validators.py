"""
PRIMITIVE VALIDATORS

Stateless shape/range checks shared by every collection pipeline:
- Date shape (YYYY-MM-DD) and approximate date-window arithmetic
- Reference codes (EXP-YYYY-XXXXXXXX, PAY-YYYY-XXXXXXXX, SAL-YYYY-MM-XXXXXX)
- Enum membership
- Phone / email / URL shape
- Names, budget codes, bank account numbers

Predicates return bool. The require_* helpers raise FormatViolationError
with a message naming the offending field and value.

Date arithmetic is deliberately approximate: 365-day years and 30-day months
counted from 1970. Month lengths and leap years are ignored.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from ledger_guard.errors import FormatViolationError

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_DAY = 24 * 60 * 60 * NANOS_PER_SECOND
NANOS_PER_HOUR = 60 * 60 * NANOS_PER_SECOND

PHONE_SEPARATORS = " -+()"
INTERNATIONAL_PREFIX = "234"


def _digits(text: str) -> bool:
    # str.isdigit() also accepts non-ASCII digits such as superscripts
    return text.isascii() and text.isdigit()


# =============================================================================
# DATES
# =============================================================================

def parse_date(date: str) -> Optional[Tuple[int, int, int]]:
    """Split YYYY-MM-DD into integers; None if any part is not a number."""
    parts = date.split("-")
    if len(parts) != 3 or not all(_digits(p) for p in parts):
        return None
    return int(parts[0]), int(parts[1]), int(parts[2])


def date_to_timestamp(year: int, month: int, day: int) -> int:
    """Approximate epoch nanoseconds (365-day years, 30-day months)."""
    days_since_1970 = (year - 1970) * 365 + (month - 1) * 30 + day
    return days_since_1970 * NANOS_PER_DAY


def date_string_to_timestamp(date: str) -> Optional[int]:
    parsed = parse_date(date)
    if parsed is None:
        return None
    return date_to_timestamp(*parsed)


def is_valid_date_format(date: str) -> bool:
    """Exactly YYYY-MM-DD with month 1-12 and day 1-31."""
    if len(date) != 10:
        return False
    parts = date.split("-")
    if len(parts) != 3:
        return False
    year, month, day = parts
    if len(year) != 4 or not _digits(year):
        return False
    if len(month) != 2 or not _digits(month):
        return False
    if len(day) != 2 or not _digits(day):
        return False
    return 1 <= int(month) <= 12 and 1 <= int(day) <= 31


def is_date_too_far_in_future(date: str, days: int, now_ns: int) -> bool:
    timestamp = date_string_to_timestamp(date)
    if timestamp is None:
        return False
    return timestamp > now_ns + days * NANOS_PER_DAY


def is_date_too_old(date: str, years: int, now_ns: int) -> bool:
    timestamp = date_string_to_timestamp(date)
    if timestamp is None:
        return False
    return timestamp < now_ns - years * 365 * NANOS_PER_DAY


def validate_iso_date(date: str) -> None:
    """
    Strict date check used by fee and scholarship records.

    Same shape as is_valid_date_format, plus a 1900-2100 year bound, with a
    message naming the faulty part.
    """
    if len(date) != 10 or len(date.split("-")) != 3:
        raise FormatViolationError(f"Invalid date format: {date}. Expected YYYY-MM-DD")

    year, month, day = date.split("-")
    if len(year) != 4 or not _digits(year):
        raise FormatViolationError(f"Invalid year in date: {date}")
    if len(month) != 2 or not _digits(month):
        raise FormatViolationError(f"Invalid month in date: {date}")
    if len(day) != 2 or not _digits(day):
        raise FormatViolationError(f"Invalid day in date: {date}")

    if not 1900 <= int(year) <= 2100:
        raise FormatViolationError(f"Year out of range: {int(year)}")
    if not 1 <= int(month) <= 12:
        raise FormatViolationError(f"Month out of range: {int(month)}")
    if not 1 <= int(day) <= 31:
        raise FormatViolationError(f"Day out of range: {int(day)}")


def require_date(date: str, label: str) -> None:
    if not is_valid_date_format(date):
        raise FormatViolationError(f"Invalid {label} format. Must be YYYY-MM-DD")


# =============================================================================
# REFERENCE CODES
# =============================================================================

@dataclass(frozen=True)
class ReferenceFormat:
    """PREFIX-YYYY[-MM]-SUFFIX with a fixed-length alphanumeric suffix."""
    prefix: str
    suffix_length: int
    with_month: bool = False

    @property
    def length(self) -> int:
        month_part = 3 if self.with_month else 0
        return len(self.prefix) + 1 + 4 + 1 + month_part + self.suffix_length

    @property
    def pattern(self) -> str:
        month_part = "-MM" if self.with_month else ""
        return f"{self.prefix}-YYYY{month_part}-{'X' * self.suffix_length}"


EXPENSE_REFERENCE = ReferenceFormat("EXP", 8)
PAYMENT_REFERENCE = ReferenceFormat("PAY", 8)
SALARY_REFERENCE = ReferenceFormat("SAL", 6, with_month=True)


def is_valid_reference_code(reference: str, fmt: ReferenceFormat) -> bool:
    if len(reference) != fmt.length:
        return False

    parts = reference.split("-")
    expected_parts = 4 if fmt.with_month else 3
    if len(parts) != expected_parts:
        return False

    if parts[0] != fmt.prefix:
        return False
    if len(parts[1]) != 4 or not _digits(parts[1]):
        return False

    if fmt.with_month:
        month = parts[2]
        if len(month) != 2 or not _digits(month) or not 1 <= int(month) <= 12:
            return False

    suffix = parts[-1]
    return len(suffix) == fmt.suffix_length and suffix.isascii() and suffix.isalnum()


def require_reference(
    reference: str,
    fmt: ReferenceFormat,
    label: str,
    phrase: str = "must follow format:"
) -> None:
    if not reference.startswith(f"{fmt.prefix}-"):
        raise FormatViolationError(f"{label} reference must start with '{fmt.prefix}-'")
    if not is_valid_reference_code(reference, fmt):
        raise FormatViolationError(f"{label} reference {phrase} {fmt.pattern}")


# =============================================================================
# ENUMS
# =============================================================================

def require_choice(value: str, allowed: Sequence[str], label: str) -> None:
    """Reject a value outside the allowed set, naming both."""
    if value not in allowed:
        raise FormatViolationError(
            f"Invalid {label} '{value}'. Must be one of: {', '.join(allowed)}"
        )


# =============================================================================
# CONTACT SHAPES
# =============================================================================

def is_valid_email(email: str) -> bool:
    return "@" in email and "." in email and len(email) > 5


def is_valid_phone_number(phone: str) -> bool:
    """11-digit local number starting with 0, or 13 digits starting with 234."""
    cleaned = "".join(c for c in phone if c not in PHONE_SEPARATORS)
    if not _digits(cleaned):
        return False
    if len(cleaned) == 11 and cleaned.startswith("0"):
        return True
    return len(cleaned) == 13 and cleaned.startswith(INTERNATIONAL_PREFIX)


def is_valid_url(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


# =============================================================================
# NAMES & CODES
# =============================================================================

def _only(text: str, punctuation: str) -> bool:
    return all(c.isalnum() or c.isspace() or c in punctuation for c in text)


def is_valid_category_name(name: str) -> bool:
    return 3 <= len(name) <= 100 and _only(name, "._-'()")


def is_valid_department_name(name: str) -> bool:
    return len(name) <= 50 and _only(name, "._-&'()")


def is_valid_budget_code(code: str) -> bool:
    """ABC-123"""
    if len(code) != 7:
        return False
    parts = code.split("-")
    if len(parts) != 2:
        return False
    letters, digits = parts
    if len(letters) != 3 or not (letters.isascii() and letters.isalpha()):
        return False
    return len(digits) == 3 and _digits(digits)


def is_valid_account_number(account: str) -> bool:
    """NUBAN bank account numbers are 10 digits."""
    return len(account) == 10 and _digits(account)


def is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def find_duplicate(names: Iterable[str]) -> Optional[str]:
    """First name that occurs twice, or None."""
    seen = set()
    for name in names:
        if name in seen:
            return name
        seen.add(name)
    return None
