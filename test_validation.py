import pytest

from societyhub.forms.form_state import FormController
from societyhub.forms.validation import (
    MEMBER_SCHEMA,
    SCHEMAS,
    chain,
    get_schema,
    is_email,
    is_phone,
    min_length,
    required,
    validate_email,
    validate_phone,
)


def test_required_rejects_blank_values():
    check = required("Unit")
    assert check(None) == "Unit is required"
    assert check("") == "Unit is required"
    assert check("   ") == "Unit is required"
    assert check([]) == "Unit is required"
    assert check("A-101") is None
    # numbers are present, even zero
    assert check(0) is None


def test_email_and_phone_formats():
    assert validate_email("Resident.One@Society-Hub.in")
    assert not validate_email("not-an-email")
    assert not validate_email("a@b.c")
    assert is_email("x@y.com") is None
    assert is_email("x@y") == "Invalid email format"

    assert validate_phone("+919876543210")
    assert validate_phone("9876543")
    assert not validate_phone("12345")
    assert not validate_phone("98765-43210")
    assert is_phone("abc") == "Invalid phone number format"


def test_trailing_newline_is_not_a_valid_format():
    assert is_email("a@b.com\n") == "Invalid email format"
    assert is_phone("9876543210\n") == "Invalid phone number format"
    assert not validate_email("resident@society.in\n")
    assert not validate_phone("+919876543210\n")


def test_chain_returns_first_failure():
    check = chain(required("Email"), is_email)
    assert check("") == "Email is required"
    assert check("bad") == "Invalid email format"
    assert check("good@example.com") is None


def test_min_length_uses_custom_message():
    check = min_length(2, "Name must be at least 2 characters long")
    assert check("A") == "Name must be at least 2 characters long"
    assert check(" A ") == "Name must be at least 2 characters long"
    assert check("Al") is None


def test_validation_is_deterministic():
    values = {"name": "A", "email": "bad", "phone": "123", "unit": "", "role": "resident", "status": ""}
    first = FormController(values, MEMBER_SCHEMA).validate_form()
    second = FormController(values, MEMBER_SCHEMA).validate_form()
    assert first == second
    assert set(first.errors) <= set(MEMBER_SCHEMA)


def test_member_form_reports_each_invalid_field():
    form = FormController(
        {"name": "A", "email": "bad", "phone": "+919876543210", "unit": "B-12", "role": "resident", "status": "active"},
        get_schema("member"),
    )

    result = form.validate_form()

    assert result.is_valid is False
    assert result.errors == {
        "name": "Name must be at least 2 characters long",
        "email": "Invalid email format",
    }
    assert form.errors == result.errors


def test_valid_member_passes():
    form = FormController(
        {"name": "Asha", "email": "asha@example.com", "phone": "+919876543210", "unit": "B-12",
         "role": "resident", "status": "active"},
        SCHEMAS["member"],
    )
    result = form.validate_form()
    assert result.is_valid is True
    assert result.errors == {}


def test_fields_outside_schema_never_block():
    form = FormController(
        {"message": "Water tank cleaning at 10am", "priority": "high", "type": "notice", "extra": ""},
        get_schema("alert"),
    )
    assert form.validate_form().is_valid


def test_every_entity_has_a_schema():
    for name in ("member", "visitor", "guard", "delivery", "alert", "complaint"):
        assert get_schema(name)


def test_unknown_schema_raises():
    with pytest.raises(KeyError):
        get_schema("spaceship")


def test_schemas_are_read_only():
    with pytest.raises(TypeError):
        MEMBER_SCHEMA["name"] = required("Name")
