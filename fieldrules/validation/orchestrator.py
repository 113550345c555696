"""
ValidatorOrchestrator: runs the validators of one value host.

Per validation pass:
- validators run in category order (Require, DataTypeCheck, then the rest
  in declaration order)
- synchronous results fold into the field status immediately
- asynchronous results join the pending set and fold when they settle
- a Severe issue stops the remaining validators
- every pass gets a new generation; settlements of older passes are dropped

Folding rule:
- Match: Valid when still Undetermined
- NoMatch with Error or Severe: Invalid, issue appended
- NoMatch with Warning: issue appended, Valid when still Undetermined
"""

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional, Set

from fieldrules.conditions.base import ConditionCategory, ConditionEvaluateResult, LazyCell, PendingEvaluation
from fieldrules.errors import ConfigurationError, DuplicateErrorCodeError
from fieldrules.logger import LoggingCategory, LoggingLevel
from fieldrules.validation.config import resolve_error_code
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
from fieldrules.validation.validator import Validator

if TYPE_CHECKING:
    from fieldrules.validation.value_host import ValueHost

logger = logging.getLogger(__name__)

_CATEGORY_ORDER = {
    ConditionCategory.REQUIRE: 0,
    ConditionCategory.DATA_TYPE_CHECK: 1,
}


def order_validators(validators: List[Validator]) -> List[Validator]:
    """Require first, DataTypeCheck second, others keep declaration order."""
    return sorted(validators, key=lambda v: _CATEGORY_ORDER.get(v.category, 2))


def fold_result(target, result: ValidatorValidateResult) -> bool:
    """
    Apply one validator result to target (anything with status and
    issues_found). Returns True when evaluation must stop (Severe).
    """
    issue = result.issue_found
    if issue is not None:
        if issue.severity is ValidationSeverity.WARNING:
            if target.status is ValidationStatus.UNDETERMINED:
                target.status = ValidationStatus.VALID
        else:
            target.status = ValidationStatus.INVALID
        target.issues_found.append(issue)
        return issue.severity is ValidationSeverity.SEVERE

    if result.condition_evaluate_result is ConditionEvaluateResult.MATCH:
        if target.status is ValidationStatus.UNDETERMINED:
            target.status = ValidationStatus.VALID
    return False


class ValidatorOrchestrator:
    """
    Owns the ordered validators of one value host and its validation state.
    """

    def __init__(self, value_host: "ValueHost"):
        self.value_host = value_host
        self._validators: LazyCell[List[Validator]] = LazyCell(self._build_validators)
        self._check_declared_error_codes()

    def _check_declared_error_codes(self) -> None:
        """
        Raises:
            DuplicateErrorCodeError: If two validator configs share an error code
                known without building their conditions
        """
        seen = set()
        for config in self.value_host.config.validator_configs:
            if not config.error_code and config.condition_config is None:
                continue
            code = resolve_error_code(config)
            if code in seen:
                raise DuplicateErrorCodeError(self.value_host.name, code)
            seen.add(code)

    @property
    def state(self) -> ValidationState:
        return self.value_host.state

    @property
    def services(self):
        return self.value_host.services

    def _build_validators(self) -> List[Validator]:
        validators = [
            Validator(config, self.value_host)
            for config in self.value_host.config.validator_configs
        ]
        seen = set()
        for validator in validators:
            code = validator.error_code
            if code in seen:
                raise DuplicateErrorCodeError(self.value_host.name, code)
            seen.add(code)
        return order_validators(validators)

    def validators(self) -> List[Validator]:
        return self._validators.get()

    def get_validator(self, error_code: str) -> Optional[Validator]:
        for validator in self.validators():
            if validator.error_code == error_code:
                return validator
        return None

    # =========================================================================
    # Validation pass
    # =========================================================================

    def validate(self, options: Optional[ValidateOptions] = None) -> ValueHostValidateResult:
        options = options or ValidateOptions()
        state = self.state
        before = self.snapshot()
        state.previous_status = state.status
        state.previous_corrected = state.corrected

        state.generation += 1
        generation = state.generation
        state.status = ValidationStatus.UNDETERMINED
        state.issues_found = []
        state.pending = []

        stop = False
        for validator in self.validators():
            if stop:
                break
            try:
                result = validator.validate(options)
            except ConfigurationError:
                raise
            except Exception as e:
                validator.log_exception("Validator failed", e)
                continue

            if result.pending is not None:
                state.pending.append(result.pending)
                self._watch(result.pending, validator, generation, options)
                continue
            if result.skipped:
                continue
            stop = fold_result(state, result)

        self._apply_business_logic_errors(state)
        state.corrected = self._is_corrected(state.previous_status, state.previous_corrected, state.status)
        self._log_pass(state)
        self._notify_if_changed(before, options)
        return self.snapshot()

    def _watch(
        self,
        pending: PendingEvaluation,
        validator: Validator,
        generation: int,
        options: ValidateOptions
    ) -> None:
        pending.add_done_callback(
            lambda settled: self._on_settled(settled, validator, generation, options)
        )

    def _on_settled(
        self,
        pending: PendingEvaluation,
        validator: Validator,
        generation: int,
        options: ValidateOptions
    ) -> None:
        state = self.state
        if generation != state.generation or pending not in state.pending:
            logger.debug(
                "Discarding async result of %s on %s from an older pass",
                validator, self.value_host.name,
            )
            return

        before = self.snapshot()
        state.pending.remove(pending)

        try:
            outcome = pending.result()
            result = validator.complete(outcome)
        except asyncio.CancelledError:
            result = ValidatorValidateResult(ConditionEvaluateResult.UNDETERMINED)
        except Exception as e:
            validator.log_exception("Asynchronous condition failed", e)
            result = ValidatorValidateResult(ConditionEvaluateResult.UNDETERMINED)

        fold_result(state, result)
        self._apply_business_logic_errors(state)
        state.corrected = self._is_corrected(state.previous_status, state.previous_corrected, state.status)
        self._notify_if_changed(before, options)

    @staticmethod
    def _is_corrected(
        previous_status: ValidationStatus,
        previous_corrected: bool,
        status: ValidationStatus
    ) -> bool:
        if status is not ValidationStatus.VALID:
            return False
        return previous_status is ValidationStatus.INVALID or previous_corrected

    def _apply_business_logic_errors(self, state: ValidationState) -> None:
        for error in state.business_logic_errors:
            if error.effective_severity is ValidationSeverity.WARNING:
                if state.status is ValidationStatus.UNDETERMINED:
                    state.status = ValidationStatus.VALID
            else:
                state.status = ValidationStatus.INVALID

    def _log_pass(self, state: ValidationState) -> None:
        sink = self.services.logger
        if not sink.is_enabled_for(LoggingLevel.DEBUG):
            return
        sink.log(
            f"Validated '{self.value_host.name}': {state.status.value}",
            LoggingLevel.DEBUG,
            LoggingCategory.RESULT,
            type(self).__name__,
            issues=len(state.issues_found),
            pending=len(state.pending),
        )

    # =========================================================================
    # Business logic errors
    # =========================================================================

    def set_business_logic_error(
        self,
        error: BusinessLogicError,
        options: Optional[ValidateOptions] = None
    ) -> bool:
        """
        Add a business logic error.

        When its error code matches a validator, that validator's issue is
        replaced (or added) using the validator's own messages. Otherwise the
        error is kept as a free-standing issue until cleared.

        Returns:
            True when the visible state changed
        """
        if not self.value_host.is_enabled():
            self.services.logger.log(
                f"BusinessLogicError applied on disabled ValueHost '{self.value_host.name}'",
                LoggingLevel.WARNING,
                LoggingCategory.VALIDATION,
                type(self).__name__,
            )

        before = self.snapshot()
        state = self.state
        swapped = self._try_swap(error)
        if swapped is not None:
            self._replace_issue(state, swapped)
            if swapped.severity is ValidationSeverity.WARNING:
                if state.status is ValidationStatus.UNDETERMINED:
                    state.status = ValidationStatus.VALID
            else:
                state.status = ValidationStatus.INVALID
        else:
            state.business_logic_errors.append(error)
            self._apply_business_logic_errors(state)
        if state.status is not ValidationStatus.VALID:
            state.corrected = False
        return self._notify_if_changed(before, options)

    def _try_swap(self, error: BusinessLogicError) -> Optional[IssueFound]:
        if not error.error_code:
            return None
        for validator in self.validators():
            result = validator.try_validator_swap(error)
            if result is not None:
                return result.issue_found
        return None

    @staticmethod
    def _replace_issue(state: ValidationState, issue: IssueFound) -> None:
        for index, existing in enumerate(state.issues_found):
            if existing.error_code == issue.error_code:
                state.issues_found[index] = issue
                return
        state.issues_found.append(issue)

    def clear_business_logic_errors(self, options: Optional[ValidateOptions] = None) -> bool:
        """Remove free-standing business logic errors."""
        if not self.state.business_logic_errors:
            return False
        before = self.snapshot()
        self.state.business_logic_errors = []
        if not self.state.issues_found and not self.state.pending:
            self.state.status = ValidationStatus.UNDETERMINED
        return self._notify_if_changed(before, options)

    def keep_issues_for(self, error_codes: Set[str]) -> None:
        """
        Drop issues whose validators no longer exist. When an issue was
        dropped the status is recomputed from what is left: any Error or
        Severe issue is Invalid, only Warnings are Valid, nothing is
        Undetermined. Business logic errors still apply.
        """
        state = self.state
        kept = [issue for issue in state.issues_found if issue.error_code in error_codes]
        if len(kept) == len(state.issues_found):
            return
        state.issues_found = kept
        if any(issue.severity is not ValidationSeverity.WARNING for issue in kept):
            state.status = ValidationStatus.INVALID
        elif kept:
            state.status = ValidationStatus.VALID
        else:
            state.status = ValidationStatus.UNDETERMINED
        self._apply_business_logic_errors(state)
        if state.status is not ValidationStatus.VALID:
            state.corrected = False

    def clear_validation(self, options: Optional[ValidateOptions] = None) -> bool:
        """
        Forget all validation results, including business logic errors.
        Pending results of earlier passes are dropped when they settle.
        """
        before = self.snapshot()
        state = self.state
        state.generation += 1
        state.status = ValidationStatus.UNDETERMINED
        state.issues_found = []
        state.business_logic_errors = []
        state.pending = []
        state.corrected = False
        state.previous_status = ValidationStatus.UNDETERMINED
        state.previous_corrected = False
        return self._notify_if_changed(before, options)

    # =========================================================================
    # State
    # =========================================================================

    def get_issues_found(self) -> List[IssueFound]:
        """Validator issues followed by free-standing business logic issues."""
        issues = list(self.state.issues_found)
        issues.extend(
            error.to_issue(self.value_host.name)
            for error in self.state.business_logic_errors
        )
        return issues

    def snapshot(self) -> ValueHostValidateResult:
        return ValueHostValidateResult(
            value_host_name=self.value_host.name,
            status=self.state.status,
            issues_found=self.get_issues_found(),
            pending=list(self.state.pending),
            corrected=self.state.corrected,
        )

    def _notify_if_changed(
        self,
        before: ValueHostValidateResult,
        options: Optional[ValidateOptions]
    ) -> bool:
        after = self.snapshot()
        if after == before:
            return False
        if not (options and options.skip_callback):
            self.value_host.notify_state_changed(after)
        return True

    def dispose(self) -> None:
        for validator in self._validators.peek() or []:
            validator.dispose()
        self._validators.reset()


__all__ = [
    "ValidatorOrchestrator",
    "order_validators",
    "fold_result",
]
