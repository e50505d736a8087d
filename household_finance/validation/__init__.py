"""Validation package."""

from household_finance.validation.validator import FormValidationError, FormValidator

__all__ = ["FormValidationError", "FormValidator"]
