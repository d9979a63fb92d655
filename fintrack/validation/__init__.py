"""Validation package."""

from fintrack.validation.validator import (
    StoreValidationError,
    StoreValidator,
    raise_if_invalid,
)

__all__ = ["StoreValidationError", "StoreValidator", "raise_if_invalid"]
