"""Write-time validation of bills."""

from billtracker.validation.validator import BillValidationError, BillValidator

__all__ = ["BillValidationError", "BillValidator"]
