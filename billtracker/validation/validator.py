"""
Two-Stage Bill Validation

DESIGN DECISION: Validation happens in two distinct stages before any write:

STAGE 1 - SCHEMA VALIDATION:
- Type checking and required fields (pydantic, via BillDraft)
- Positive amount, name length, recognised recurrence type

STAGE 2 - RECURRENCE VALIDATION:
- fixed_date bills need a day of month in 1..31
- interval bills need 1..maximum_billing_interval days
- This depends on configuration, so it cannot live on the model

IMPORTANT: Validation NEVER silently fixes issues. Any error-level issue
raises BillValidationError and nothing is written.
"""

from typing import Any, Optional

from pydantic import ValidationError

from billtracker.config import BillsSettings, get_settings
from billtracker.models.bill import BillDraft, RecurrenceType, ValidationIssue
from billtracker.recurrence.dates import MAX_DAY_OF_MONTH, MIN_DAY_OF_MONTH


class BillValidationError(ValueError):
    """Raised when a bill fails validation. Carries field-level issues."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues)
        super().__init__(f"Invalid bill: {summary}")

    @property
    def fields(self) -> list[str]:
        return [i.field for i in self.issues]


class BillValidator:
    """
    Validates client-supplied bills.

    Stage 1: parse() turns raw input into a BillDraft
    Stage 2: check_recurrence() applies the configured recurrence limits
    """

    def __init__(self, settings: Optional[BillsSettings] = None):
        self._settings = settings or get_settings().bills

    @property
    def max_interval_days(self) -> int:
        return self._settings.maximum_billing_interval

    def parse(self, data: Any) -> BillDraft:
        """
        Stage 1: schema validation.

        Args:
            data: A BillDraft or a mapping of client fields

        Returns:
            The parsed draft

        Raises:
            BillValidationError: If the input does not fit the schema
        """
        if isinstance(data, BillDraft):
            return data
        try:
            return BillDraft.model_validate(data)
        except ValidationError as e:
            issues = []
            for err in e.errors():
                field = ".".join(str(part) for part in err["loc"]) or "bill"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type=err["type"],
                    message=err["msg"],
                ))
            raise BillValidationError(issues) from e

    def check_recurrence(self, draft: BillDraft) -> list[ValidationIssue]:
        """
        Stage 2: recurrence validation.

        Returns: list of issues (empty when valid)
        """
        issues = []
        days = draft.recurrence_days

        if not isinstance(draft.recurrence_type, RecurrenceType):
            issues.append(ValidationIssue(
                field="recurrence_type",
                issue_type="invalid_choice",
                message=f"Unknown recurrence type: {draft.recurrence_type}",
            ))
            return issues

        if days < 1:
            issues.append(ValidationIssue(
                field="recurrence_days",
                issue_type="out_of_range",
                message="Recurrence days must be at least 1",
            ))
        elif draft.recurrence_type == RecurrenceType.FIXED_DATE and not (
            MIN_DAY_OF_MONTH <= days <= MAX_DAY_OF_MONTH
        ):
            issues.append(ValidationIssue(
                field="recurrence_days",
                issue_type="out_of_range",
                message=f"Day of month must be between 1 and 31, got {days}",
                suggested_fix="Use 31 for bills due on the last day of the month",
            ))
        elif draft.recurrence_type == RecurrenceType.INTERVAL and days > self.max_interval_days:
            issues.append(ValidationIssue(
                field="recurrence_days",
                issue_type="out_of_range",
                message=(
                    f"Interval must be between 1 and {self.max_interval_days} days, "
                    f"got {days}"
                ),
            ))

        return issues

    def validate(self, data: Any) -> BillDraft:
        """
        Run both stages.

        Raises:
            BillValidationError: On any error-level issue
        """
        draft = self.parse(data)
        errors = [i for i in self.check_recurrence(draft) if i.severity == "error"]
        if errors:
            raise BillValidationError(errors)
        return draft
