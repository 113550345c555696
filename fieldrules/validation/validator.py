"""
Validator: one rule of a value host.

A validator pairs a condition with an error code, a severity and message
templates. It evaluates the condition against its value host and turns a
NoMatch into an IssueFound.

Evaluation anomalies (exceptions from a condition) are logged and reported
as UNDETERMINED. ConfigurationError is always raised.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from fieldrules.conditions.base import (
    Condition,
    ConditionCategory,
    ConditionEvaluateResult,
    LazyCell,
    PendingEvaluation,
    is_pending,
    to_evaluate_result,
)
from fieldrules.conditions.combinators import WhenCondition
from fieldrules.errors import ConfigurationError, PendingChildError, ValidatorConfigError
from fieldrules.logger import LoggingCategory, LoggingLevel
from fieldrules.settings import get_settings
from fieldrules.validation.config import ValidatorConfig
from fieldrules.validation.models import (
    BusinessLogicError,
    IssueFound,
    ValidateOptions,
    ValidationSeverity,
    ValidatorValidateResult,
)

if TYPE_CHECKING:
    from fieldrules.validation.value_host import ValueHost

logger = logging.getLogger(__name__)

# Categories whose validators default to SEVERE
_SEVERE_CATEGORIES = (ConditionCategory.REQUIRE, ConditionCategory.DATA_TYPE_CHECK)


class Validator:
    """
    Runtime validator built from a ValidatorConfig.

    The condition is created on first use and cached until dispose().

    Example:
        validator = value_host.get_validator("RequireText")
        validator.set_severity(ValidationSeverity.WARNING)
        result = validator.validate(ValidateOptions())
    """

    def __init__(self, config: ValidatorConfig, value_host: "ValueHost"):
        self.config = config
        self.value_host = value_host
        self._condition: LazyCell[Condition] = LazyCell(self._build_condition)
        self._enabler: LazyCell[Optional[Condition]] = LazyCell(self._build_enabler)

    @property
    def services(self):
        return self.value_host.services

    @property
    def resolver(self):
        return self.value_host.manager

    # =========================================================================
    # Condition
    # =========================================================================

    def _build_condition(self) -> Condition:
        config = self.config
        if config.condition_config is not None and config.condition_creator is not None:
            raise ValidatorConfigError(
                "Cannot supply both condition_config and condition_creator",
                config.error_code,
            )
        if config.condition_creator is not None:
            condition = config.condition_creator(config)
            if condition is None:
                raise ValidatorConfigError(
                    "condition_creator did not return a condition", config.error_code
                )
            return condition
        if config.condition_config is not None:
            return self.services.condition_registry.create(config.condition_config)
        raise ValidatorConfigError(
            "Must supply either condition_config or condition_creator", config.error_code
        )

    def _build_enabler(self) -> Optional[Condition]:
        config = self.config
        if config.enabler_creator is not None:
            return config.enabler_creator(config)
        if config.enabler_config is not None:
            return self.services.condition_registry.create(config.enabler_config)
        return None

    @property
    def condition(self) -> Condition:
        return self._condition.get()

    @property
    def enabler(self) -> Optional[Condition]:
        return self._enabler.get()

    @property
    def error_code(self) -> str:
        """Explicit error code, otherwise the condition type (child type for When)."""
        return self.config.error_code or self.condition.condition_type

    @property
    def category(self) -> ConditionCategory:
        return self.condition.category

    # =========================================================================
    # Overrides kept in the value host state
    # =========================================================================

    def _override_key(self, name: str) -> str:
        return f"{self.error_code}.{name}"

    def _get_override(self, name: str) -> Any:
        return self.value_host.state.overrides.get(self._override_key(name))

    def _set_override(self, name: str, value: Any) -> None:
        key = self._override_key(name)
        if value is None:
            self.value_host.state.overrides.pop(key, None)
        else:
            self.value_host.state.overrides[key] = value

    def set_enabled(self, enabled: Optional[bool]) -> None:
        """Override enabled. None restores the configured behaviour."""
        self._set_override("enabled", enabled)

    def set_severity(self, severity: Optional[ValidationSeverity]) -> None:
        self._set_override("severity", severity)

    def set_error_message(self, error_message: Optional[str], summary_message: Optional[str] = None) -> None:
        self._set_override("error_message", error_message)
        if summary_message is not None:
            self._set_override("summary_message", summary_message)

    def set_summary_message(self, summary_message: Optional[str]) -> None:
        self._set_override("summary_message", summary_message)

    @property
    def enabled(self) -> bool:
        override = self._get_override("enabled")
        if override is not None:
            return bool(override)
        enabled = self.config.enabled
        if enabled is None:
            return True
        if callable(enabled):
            return bool(enabled(self))
        return bool(enabled)

    @property
    def severity(self) -> ValidationSeverity:
        override = self._get_override("severity")
        if override is not None:
            return ValidationSeverity(override)
        if self.config.severity is not None:
            return ValidationSeverity(self.config.severity)
        if self.category in _SEVERE_CATEGORIES:
            return ValidationSeverity.SEVERE
        return ValidationSeverity.ERROR

    # =========================================================================
    # Messages
    # =========================================================================

    def _message_value(self, value: Any) -> Optional[str]:
        if callable(value):
            return value(self)
        return value

    def get_error_message_template(self) -> str:
        localizer = self.services.text_localizer
        template = self._get_override("error_message")
        if template is None:
            template = self._message_value(self.config.error_message)
            if self.config.error_message_l10n:
                template = localizer.get_message(self.config.error_message_l10n, template)
        if template is None:
            template = localizer.get_message(self.error_code, None)
        if template is None:
            template = get_settings().get_nested("validation.default_error_message")
        return template

    def get_summary_message_template(self) -> str:
        localizer = self.services.text_localizer
        template = self._get_override("summary_message")
        if template is None:
            template = self._message_value(self.config.summary_message)
            if self.config.summary_message_l10n:
                template = localizer.get_message(self.config.summary_message_l10n, template)
        if template is None:
            template = get_settings().get_nested("validation.default_summary_message")
        if template is None:
            template = self.get_error_message_template()
        return template

    def get_tokens(self) -> Dict[str, Any]:
        tokens: Dict[str, Any] = {
            "Label": self.value_host.get_label(),
            "Value": self.value_host.get_value(),
        }
        supplier = getattr(self.condition, "get_values_for_tokens", None)
        if supplier is not None:
            tokens.update(supplier(self.value_host, self.resolver))
        return tokens

    def _render(self, template: str, tokens: Dict[str, Any]) -> str:
        return self.services.message_token_resolver.resolve(template, tokens)

    def create_issue_found(self, severity: Optional[ValidationSeverity] = None) -> IssueFound:
        tokens = self.get_tokens()
        return IssueFound(
            value_host_name=self.value_host.name,
            error_code=self.error_code,
            severity=severity or self.severity,
            error_message=self._render(self.get_error_message_template(), tokens),
            summary_message=self._render(self.get_summary_message_template(), tokens),
        )

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, options: Optional[ValidateOptions] = None) -> ValidatorValidateResult:
        """
        Evaluate the condition.

        Returns a skipped result when disabled, when the enabler does not
        match, or for REQUIRE conditions in a preliminary pass.
        """
        options = options or ValidateOptions()
        try:
            condition = self.condition
            if options.preliminary and condition.category is ConditionCategory.REQUIRE:
                return ValidatorValidateResult(skipped=True)
            if not self.enabled:
                return ValidatorValidateResult(skipped=True)
            if self.enabler is not None:
                if self._evaluate_sync(self.enabler, None) is not ConditionEvaluateResult.MATCH:
                    return ValidatorValidateResult(skipped=True)

            if isinstance(condition, WhenCondition):
                parts = condition.extract_conditions(self.resolver)
                if self._evaluate_sync(parts["enabler"], None) is not ConditionEvaluateResult.MATCH:
                    return ValidatorValidateResult(ConditionEvaluateResult.UNDETERMINED)
                condition = parts["child"]

            result = condition.evaluate(self.value_host, self.resolver)
            if is_pending(result):
                if not isinstance(result, PendingEvaluation):
                    result = PendingEvaluation.from_awaitable(result, self.error_code)
                return ValidatorValidateResult(pending=result)
            return self.complete(to_evaluate_result(result))
        except ConfigurationError:
            raise
        except Exception as e:
            self.log_exception("Condition evaluation failed", e)
            return ValidatorValidateResult(ConditionEvaluateResult.UNDETERMINED)

    def _evaluate_sync(self, condition: Condition, value_host) -> ConditionEvaluateResult:
        result = condition.evaluate(value_host, self.resolver)
        if is_pending(result):
            if isinstance(result, PendingEvaluation):
                result.cancel()
            elif hasattr(result, "close"):
                result.close()
            raise PendingChildError("enabler", condition)
        return to_evaluate_result(result)

    def complete(self, result: ConditionEvaluateResult) -> ValidatorValidateResult:
        """Build the final result for a condition outcome (sync or settled async)."""
        issue = None
        if result is ConditionEvaluateResult.NO_MATCH:
            issue = self.create_issue_found()
        return ValidatorValidateResult(result, issue_found=issue)

    def try_validator_swap(self, error: BusinessLogicError) -> Optional[ValidatorValidateResult]:
        """
        Report a business logic error as if this validator had found it.

        Returns None when the error code is not this validator's. Otherwise
        the issue uses this validator's messages and the error's severity
        when it has one.
        """
        if not error.error_code or error.error_code != self.error_code:
            return None
        return ValidatorValidateResult(
            ConditionEvaluateResult.NO_MATCH,
            issue_found=self.create_issue_found(error.severity),
        )

    def log_exception(self, message: str, error: Exception) -> None:
        self.services.logger.log(
            f"{message}: {error}",
            LoggingLevel.ERROR,
            LoggingCategory.VALIDATION,
            type(self).__name__,
            value_host=self.value_host.name,
            error_code=self.config.error_code or "",
            error_type=type(error).__name__,
        )

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def gather_value_host_names(self, collection: Set[str]) -> None:
        for condition in (self.condition, self.enabler):
            gather = getattr(condition, "gather_value_host_names", None)
            if gather is not None:
                gather(collection, self.resolver)

    def dispose(self) -> None:
        for cell in (self._condition, self._enabler):
            condition = cell.peek()
            dispose = getattr(condition, "dispose", None)
            if dispose is not None:
                dispose()
            cell.reset()

    def __repr__(self) -> str:
        code = self.config.error_code or (
            self._condition.peek().condition_type if self._condition.is_set else "?"
        )
        return f"Validator(value_host={self.value_host.name!r}, error_code={code!r})"


__all__ = ["Validator"]
