"""
Validation result models.

- ValidationSeverity / ValidationStatus enums
- IssueFound: one surfaced failure
- BusinessLogicError: failure injected by server-side business logic
- ValidateOptions
- ValidatorValidateResult: outcome of one validator
- ValueHostValidateResult: outcome for one field
- ValidationState: per value host state kept between passes
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from fieldrules.conditions.base import ConditionEvaluateResult, PendingEvaluation


class ValidationSeverity(str, Enum):
    """
    How a NoMatch affects the field.

    WARNING: reported, field stays valid
    ERROR: field is invalid
    SEVERE: field is invalid and remaining validators are not evaluated
    """
    WARNING = "Warning"
    ERROR = "Error"
    SEVERE = "Severe"


class ValidationStatus(str, Enum):
    UNDETERMINED = "Undetermined"
    VALID = "Valid"
    INVALID = "Invalid"


@dataclass
class IssueFound:
    """
    One validation failure ready for display.

    Attributes:
        value_host_name: Field the issue belongs to (None for form-level issues)
        error_code: Identifies the validator (or business rule)
        severity: ValidationSeverity
        error_message: Message shown next to the field
        summary_message: Message shown in a validation summary
    """
    value_host_name: Optional[str]
    error_code: str
    severity: ValidationSeverity
    error_message: str
    summary_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value_host_name": self.value_host_name,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "error_message": self.error_message,
            "summary_message": self.summary_message,
        }


@dataclass
class BusinessLogicError:
    """
    Error reported by business logic after it ran its own validation.

    When error_code matches a validator on the associated value host, that
    validator's messages are used instead of error_message.
    """
    error_message: str
    error_code: Optional[str] = None
    severity: Optional[ValidationSeverity] = None
    associated_value_host_name: Optional[str] = None

    @property
    def effective_severity(self) -> ValidationSeverity:
        return self.severity or ValidationSeverity.ERROR

    def to_issue(self, value_host_name: Optional[str]) -> IssueFound:
        return IssueFound(
            value_host_name=value_host_name,
            error_code=self.error_code or "BusinessLogicError",
            severity=self.effective_severity,
            error_message=self.error_message,
            summary_message=self.error_message,
        )


@dataclass
class ValidateOptions:
    """
    Attributes:
        group: Only value hosts in this group are validated
        preliminary: Skip REQUIRE validators (e.g. while the form is first shown)
        skip_callback: Do not fire state-changed notifications
    """
    group: Optional[str] = None
    preliminary: bool = False
    skip_callback: bool = False


@dataclass
class ValidatorValidateResult:
    """
    Outcome of Validator.validate().

    Exactly one of these holds:
    - skipped is True (disabled, enabler not matched, preliminary Require)
    - pending is set (the condition resolves later)
    - condition_evaluate_result is final; issue_found is set when NO_MATCH
    """
    condition_evaluate_result: ConditionEvaluateResult = ConditionEvaluateResult.UNDETERMINED
    issue_found: Optional[IssueFound] = None
    skipped: bool = False
    pending: Optional[PendingEvaluation] = None


@dataclass
class ValueHostValidateResult:
    """
    Field level outcome of a validation pass.

    Attributes:
        value_host_name: Field name
        status: ValidationStatus
        issues_found: Validator issues and free-standing business logic issues
        pending: Asynchronous validators still running
        corrected: The field went from Invalid to Valid and is still Valid
    """
    value_host_name: str
    status: ValidationStatus = ValidationStatus.UNDETERMINED
    issues_found: List[IssueFound] = field(default_factory=list)
    pending: List[PendingEvaluation] = field(default_factory=list)
    corrected: bool = False

    @property
    def is_pending(self) -> bool:
        return bool(self.pending)

    @property
    def is_valid(self) -> bool:
        return self.status is not ValidationStatus.INVALID and not self.pending


@dataclass
class ValidationState:
    """
    Per value host validation state.

    generation increases with every validation pass and every clear, so
    asynchronous results of an older pass can be recognized and dropped.
    overrides holds values set through Validator.set_enabled() and friends,
    keyed by "<error_code>.<name>".
    previous_status and previous_corrected hold what the previous pass ended
    with; asynchronous results of the current pass compare against them.
    """
    status: ValidationStatus = ValidationStatus.UNDETERMINED
    issues_found: List[IssueFound] = field(default_factory=list)
    business_logic_errors: List[BusinessLogicError] = field(default_factory=list)
    pending: List[PendingEvaluation] = field(default_factory=list)
    corrected: bool = False
    previous_status: ValidationStatus = ValidationStatus.UNDETERMINED
    previous_corrected: bool = False
    generation: int = 0
    overrides: Dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ValidationSeverity",
    "ValidationStatus",
    "IssueFound",
    "BusinessLogicError",
    "ValidateOptions",
    "ValidatorValidateResult",
    "ValueHostValidateResult",
    "ValidationState",
]
