from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
import copy
import logging

from .validation import ValidationSchema, Validator

logger = logging.getLogger(__name__)


@dataclass
class FormState:
    values: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    touched: Dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: Dict[str, str]


class FormController:
    """
    Per-form state: values, per-field errors and touched flags.

    Errors are cleared as soon as a field changes and only come back from
    ``handle_blur`` (one field) or ``validate_form`` (all fields), so typing
    never flashes errors. ``errors`` only ever holds schema fields.
    """

    def __init__(self, initial_values: Optional[Mapping[str, Any]] = None, schema: Optional[ValidationSchema] = None):
        self.initial_values: Dict[str, Any] = copy.deepcopy(dict(initial_values or {}))
        self.schema: ValidationSchema = schema or {}
        self.state = FormState(values=copy.deepcopy(self.initial_values))

    @property
    def values(self) -> Dict[str, Any]:
        return self.state.values

    @property
    def errors(self) -> Dict[str, str]:
        return self.state.errors

    @property
    def touched(self) -> Dict[str, bool]:
        return self.state.touched

    def handle_change(self, field_name: str, value: Any) -> None:
        self.state.values[field_name] = value
        # optimistic: clear the field error while the user is typing
        self.state.errors.pop(field_name, None)

    def handle_blur(self, field_name: str) -> Optional[str]:
        self.state.touched[field_name] = True
        validator = self.schema.get(field_name)
        if validator is None:
            return None

        error = self._run(field_name, validator)
        if error:
            self.state.errors[field_name] = error
        else:
            self.state.errors.pop(field_name, None)
        return error

    def validate_form(self) -> ValidationResult:
        errors: Dict[str, str] = {}
        for field_name, validator in self.schema.items():
            error = self._run(field_name, validator)
            if error:
                errors[field_name] = error

        self.state.errors = errors
        if errors:
            logger.debug(f"[Form] Validation failed for fields: {sorted(errors)}")
        return ValidationResult(is_valid=not errors, errors=dict(errors))

    def reset_form(self, data: Optional[Mapping[str, Any]] = None) -> None:
        values = self.initial_values if data is None else data
        self.state = FormState(values=copy.deepcopy(dict(values)))

    def set_form_data(self, data: Mapping[str, Any]) -> None:
        """Replace all values at once (edit forms pre-filled from a record)."""
        self.state.values = copy.deepcopy(dict(data))

    def _run(self, field_name: str, validator: Validator) -> Optional[str]:
        # A validator that blows up cannot decide; treat the value as valid
        try:
            return validator(self.state.values.get(field_name))
        except Exception as e:
            logger.warning(f"[Form] Validator for '{field_name}' raised {e!r}; treating value as valid")
            return None
