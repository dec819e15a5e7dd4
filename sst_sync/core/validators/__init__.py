"""
Field validators used before any record leaves the process.
"""

from .base_validator import BaseValidator
from .required_field_validator import RequiredFieldValidator

__all__ = [
    "BaseValidator",
    "RequiredFieldValidator",
]
