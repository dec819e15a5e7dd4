"""
RequiredFieldValidator - ensures a field is present and not blank.
"""

from typing import Any

from sst_sync.core.errors import ValidationFailure

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Fails if the value is None, empty, or whitespace-only.
    """

    def validate(self, value: Any) -> None:
        if value is None:
            raise ValidationFailure(self.field_name, f"{self.label} is required")

        if isinstance(value, str) and value.strip() == "":
            raise ValidationFailure(self.field_name, f"{self.label} is required")

    @property
    def rule_type(self) -> str:
        return "required_field"
