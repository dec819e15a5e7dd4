"""
Base validator interface for record field rules.

All validators inherit from BaseValidator and implement validate().
"""

from abc import ABC, abstractmethod
from typing import Any


class BaseValidator(ABC):
    """
    Abstract base class for field validators.

    Each validator checks one field of a named record shape.
    """

    def __init__(self, field_name: str, label: str | None = None):
        """
        Initialize validator.

        Args:
            field_name: Attribute name on the record
            label: Human readable column label used in error messages
        """
        self.field_name = field_name
        self.label = label or field_name

    @abstractmethod
    def validate(self, value: Any) -> None:
        """
        Validate a value against this rule.

        Raises:
            ValidationFailure: If validation fails
        """

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name})"
