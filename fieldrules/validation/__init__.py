"""
Validators, value hosts and per-field orchestration.
"""

from fieldrules.validation.config import (
    ConditionCreator,
    ValidatorConfig,
    ValueHostConfig,
    ValueHostType,
    resolve_error_code,
)
from fieldrules.validation.models import (
    BusinessLogicError,
    IssueFound,
    ValidateOptions,
    ValidationSeverity,
    ValidationState,
    ValidationStatus,
    ValidatorValidateResult,
    ValueHostValidateResult,
)
from fieldrules.validation.orchestrator import ValidatorOrchestrator, fold_result, order_validators
from fieldrules.validation.validator import Validator
from fieldrules.validation.value_host import ValueHost

__all__ = [
    "ConditionCreator",
    "ValidatorConfig",
    "ValueHostConfig",
    "ValueHostType",
    "resolve_error_code",
    "BusinessLogicError",
    "IssueFound",
    "ValidateOptions",
    "ValidationSeverity",
    "ValidationState",
    "ValidationStatus",
    "ValidatorValidateResult",
    "ValueHostValidateResult",
    "ValidatorOrchestrator",
    "fold_result",
    "order_validators",
    "Validator",
    "ValueHost",
]
