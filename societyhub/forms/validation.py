"""
Field validators and the per-entity validation schemas.

A validator is a pure function ``value -> Optional[str]``: ``None`` when the
value is acceptable, otherwise a short message for the user. Validators never
raise. A schema maps field names to validators; fields that are not in a
schema are optional and never block a submission.
"""

from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional
import re

Validator = Callable[[Any], Optional[str]]
ValidationSchema = Mapping[str, Validator]

_EMAIL_RE = re.compile(r"^[\w\-.]+@([\w-]+\.)+[\w-]{2,4}$", re.ASCII)
_PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def validate_email(email: Any) -> bool:
    return bool(_EMAIL_RE.fullmatch(_as_text(email).lower()))


def validate_phone(phone: Any) -> bool:
    return bool(_PHONE_RE.fullmatch(_as_text(phone)))


# ── primitives ───────────────────────────────────────────────────────────────

def required(label: str) -> Validator:
    message = f"{label} is required"

    def _required(value: Any) -> Optional[str]:
        return message if _is_blank(value) else None

    return _required


def min_length(length: int, message: Optional[str] = None) -> Validator:
    def _min_length(value: Any) -> Optional[str]:
        text = "" if value is None else _as_text(value).strip()
        if len(text) < length:
            return message or f"Must be at least {length} characters long"
        return None

    return _min_length


def is_email(value: Any) -> Optional[str]:
    return None if validate_email(value) else "Invalid email format"


def is_phone(value: Any) -> Optional[str]:
    return None if validate_phone(value) else "Invalid phone number format"


def chain(*validators: Validator) -> Validator:
    """Run validators in order and return the first message."""
    def _chained(value: Any) -> Optional[str]:
        for validator in validators:
            error = validator(value)
            if error:
                return error
        return None

    return _chained


valid_name = min_length(2, "Name must be at least 2 characters long")


def required_email(label: str = "Email") -> Validator:
    return chain(required(label), is_email)


def required_phone(label: str) -> Validator:
    return chain(required(label), is_phone)


# ── schemas ──────────────────────────────────────────────────────────────────

MEMBER_SCHEMA: ValidationSchema = MappingProxyType({
    "name": valid_name,
    "email": required_email("Email"),
    "phone": required_phone("Phone"),
    "unit": required("Unit"),
    "role": required("Role"),
    "status": required("Status"),
})

VISITOR_SCHEMA: ValidationSchema = MappingProxyType({
    "name": valid_name,
    "purpose": required("Purpose"),
    "flatNumber": required("Flat Number"),
    "status": required("Status"),
})

GUARD_SCHEMA: ValidationSchema = MappingProxyType({
    "name": valid_name,
    "contact": required_phone("Contact"),
    "shift": required("Shift"),
    "status": required("Status"),
})

DELIVERY_SCHEMA: ValidationSchema = MappingProxyType({
    "recipientName": valid_name,
    "flatNumber": required("Flat number"),
    "itemDescription": required("Item description"),
    "deliveryPerson": required("Delivery person"),
    "contactNumber": required_phone("Contact number"),
})

ALERT_SCHEMA: ValidationSchema = MappingProxyType({
    "message": required("Alert message"),
    "priority": required("Priority"),
    "type": required("Alert type"),
})

COMPLAINT_SCHEMA: ValidationSchema = MappingProxyType({
    "title": required("Title"),
    "description": required("Description"),
    "category": required("Category"),
    "priority": required("Priority"),
})

SCHEMAS: Mapping[str, ValidationSchema] = MappingProxyType({
    "member": MEMBER_SCHEMA,
    "visitor": VISITOR_SCHEMA,
    "guard": GUARD_SCHEMA,
    "delivery": DELIVERY_SCHEMA,
    "alert": ALERT_SCHEMA,
    "complaint": COMPLAINT_SCHEMA,
})


def get_schema(name: str) -> ValidationSchema:
    """Look up a schema by entity name; unknown names raise ``KeyError``."""
    try:
        return SCHEMAS[name]
    except KeyError:
        raise KeyError(f"Unknown validation schema: {name}") from None
