"""
Tests for incoming record validation.
"""

from datetime import date, datetime

import pytest

from matching.contact_resolution.validator import (
    ContactValidator,
    is_valid_email,
    is_valid_phone,
    is_valid_rut,
    parse_due_date,
)


@pytest.mark.parametrize(
    "rut",
    ["12345678-5", "12.345.678-5", "11111111-1", "7654321-6", "1000005-K", "1000005-k", "1000030-0"],
)
def test_valid_ruts(rut):
    assert is_valid_rut(rut)


@pytest.mark.parametrize(
    "rut",
    ["12345678-9", "1000005-1", "123", "1234567890-1", "12k45678-5", ""],
)
def test_invalid_ruts(rut):
    assert not is_valid_rut(rut)


def test_email_shape():
    assert is_valid_email("juan@x.com")
    assert is_valid_email("juan.perez+crm@empresa.cl")
    assert not is_valid_email("juan@x")
    assert not is_valid_email("juan x@y.com")
    assert not is_valid_email("@x.com")


def test_phone_shape():
    assert is_valid_phone("+56912345678")
    assert is_valid_phone("56 9 1234 5678")
    assert is_valid_phone("912345678")
    assert not is_valid_phone("22345678")
    assert not is_valid_phone("12345")


def test_valid_record():
    result = ContactValidator().validate({
        "full_name": "Juan Perez",
        "rut": "12.345.678-5",
        "email": "juan@x.com",
        "phone": "+56912345678",
        "amount": "150000",
    })
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


def test_record_without_identifier_fails():
    result = ContactValidator().validate({"full_name": "J. Perez"})
    assert not result.valid
    assert result.failing_field == "identifier"


def test_short_name_fails():
    result = ContactValidator().validate({"full_name": " J ", "email": "j@x.com"})
    assert not result.valid
    assert "full_name" in result.field_errors


def test_bad_rut_and_email_are_errors():
    result = ContactValidator().validate({
        "full_name": "Juan Perez",
        "rut": "12345678-9",
        "email": "not-an-email",
    })
    assert not result.valid
    assert set(result.field_errors) == {"rut", "email"}


def test_bad_phone_is_only_a_warning():
    result = ContactValidator().validate({"full_name": "Juan Perez", "phone": "12345"})
    assert result.valid
    assert len(result.warnings) == 1


@pytest.mark.parametrize("amount", [0, "0", -10, "abc", "NaN", True])
def test_bad_amount(amount):
    result = ContactValidator().validate({
        "full_name": "Juan Perez", "email": "juan@x.com", "amount": amount,
    })
    assert not result.valid
    assert "amount" in result.field_errors


@pytest.mark.parametrize("amount", [None, "", 1500, "1500.50", 0.01])
def test_acceptable_amount(amount):
    result = ContactValidator().validate({
        "full_name": "Juan Perez", "email": "juan@x.com", "amount": amount,
    })
    assert result.valid


@pytest.mark.parametrize("debt_amount", ["-5000", 0, "abc"])
def test_bad_debt_amount(debt_amount):
    result = ContactValidator().validate({
        "full_name": "Juan Perez", "email": "juan@x.com", "debt_amount": debt_amount,
    })
    assert not result.valid
    assert result.failing_field == "debt_amount"


@pytest.mark.parametrize("due_date", ["31/12/2026", "2026-13-01", "tomorrow"])
def test_bad_due_date(due_date):
    result = ContactValidator().validate({
        "full_name": "Juan Perez", "email": "juan@x.com", "due_date": due_date,
    })
    assert not result.valid
    assert result.failing_field == "due_date"


@pytest.mark.parametrize(
    "due_date", ["2026-12-31", "2026-12-31T10:00:00", date(2026, 12, 31), datetime(2026, 12, 31, 9)]
)
def test_acceptable_due_date(due_date):
    result = ContactValidator().validate({
        "full_name": "Juan Perez", "email": "juan@x.com", "due_date": due_date,
    })
    assert result.valid
    assert parse_due_date(due_date) == date(2026, 12, 31)


@pytest.mark.parametrize("record", [None, "Juan Perez", ["juan@x.com"]])
def test_non_mapping_record(record):
    result = ContactValidator().validate(record)
    assert not result.valid
    assert result.failing_field == "record"
