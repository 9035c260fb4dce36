"""
Field-level sanity checks applied to incoming CRM records before scoring.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Chilean mobile: optional +56 / 56 prefix, then 9 and eight digits
PHONE_RE = re.compile(r"^(\+?56)?9[0-9]{8}$")

IDENTIFYING_FIELDS = ("rut", "email", "phone")

# Either may carry the debt amount
AMOUNT_FIELDS = ("amount", "debt_amount")


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    field_errors: dict[str, str] = field(default_factory=dict)

    def add_error(self, field_name: str, message: str):
        self.valid = False
        self.errors.append(message)
        self.field_errors.setdefault(field_name, message)

    @property
    def failing_field(self) -> Optional[str]:
        return next(iter(self.field_errors), None)


def is_valid_rut(rut: str) -> bool:
    """
    Validate a RUT check digit (modulus 11, multipliers cycling 2..7).

    '12.345.678-5' and '12345678-5' are both valid; the check
    character 'k' is accepted in either case.
    """
    clean = re.sub(r"[^0-9kK]", "", str(rut))
    if len(clean) < 8 or len(clean) > 9:
        return False

    body, check = clean[:-1], clean[-1].lower()
    if not body.isdigit():
        return False

    total = 0
    multiplier = 2
    for digit in reversed(body):
        total += int(digit) * multiplier
        multiplier = 2 if multiplier == 7 else multiplier + 1

    expected = 11 - (total % 11)
    if expected == 11:
        expected_char = "0"
    elif expected == 10:
        expected_char = "k"
    else:
        expected_char = str(expected)

    return expected_char == check


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(str(email)))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(re.sub(r"\s", "", str(phone))))


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a monetary amount; None when it is not a finite number."""
    if isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_due_date(value: Any) -> Optional[date]:
    """Parse an ISO due date (a trailing time part is ignored)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class ContactValidator:
    """
    Validates one incoming record.

    Hard errors exclude the record from matching; warnings are reported
    but the record is still scored.
    """

    def validate(self, record: Mapping[str, Any]) -> ValidationResult:
        result = ValidationResult()

        if not isinstance(record, Mapping):
            result.add_error("record", f"Record must be a mapping, got {type(record).__name__}")
            return result

        full_name = record.get("full_name")
        if not isinstance(full_name, str) or len(full_name.strip()) < 2:
            result.add_error(
                "full_name", "Full name is required and must have at least 2 characters"
            )

        if not any(_present(record.get(f)) for f in IDENTIFYING_FIELDS):
            result.add_error(
                "identifier", "At least one identifier is required: RUT, email or phone"
            )

        if _present(record.get("rut")) and not is_valid_rut(record["rut"]):
            result.add_error("rut", "RUT has an invalid format or check digit")

        if _present(record.get("email")) and not is_valid_email(record["email"]):
            result.add_error("email", "Email has an invalid format")

        if _present(record.get("phone")) and not is_valid_phone(record["phone"]):
            result.warnings.append("Phone may have an invalid format")

        for amount_field in AMOUNT_FIELDS:
            if _present(record.get(amount_field)):
                amount = parse_amount(record[amount_field])
                if amount is None or amount <= 0:
                    result.add_error(amount_field, f"{amount_field} must be a positive number")

        if _present(record.get("due_date")):
            try:
                parse_due_date(record["due_date"])
            except (TypeError, ValueError):
                result.add_error("due_date", "Due date must be an ISO date (YYYY-MM-DD)")

        return result
