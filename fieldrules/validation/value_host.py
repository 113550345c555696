"""
ValueHost: runtime holder of one named value.

Input and Property value hosts own a ValidatorOrchestrator. Static value
hosts hold a value only.
"""

import asyncio
from typing import TYPE_CHECKING, Any, List, Optional, Set

from fieldrules.errors import ConfigurationError
from fieldrules.validation.config import ValueHostConfig, ValueHostType
from fieldrules.validation.models import (
    BusinessLogicError,
    IssueFound,
    ValidateOptions,
    ValidationState,
    ValidationStatus,
    ValueHostValidateResult,
)
from fieldrules.validation.orchestrator import ValidatorOrchestrator
from fieldrules.validation.validator import Validator

if TYPE_CHECKING:
    from fieldrules.manager import ValidationManager


class ValueHost:
    """
    One field or property managed by a ValidationManager.

    Attributes:
        config: ValueHostConfig it was built from
        manager: Owning ValidationManager (also the condition resolver)
        state: ValidationState kept between passes
    """

    def __init__(self, config: ValueHostConfig, manager: "ValidationManager"):
        self.config = config
        self.manager = manager
        self.state = ValidationState()
        self._value: Any = config.initial_value
        self.orchestrator: Optional[ValidatorOrchestrator] = None
        if config.value_host_type is ValueHostType.STATIC:
            if config.validator_configs:
                raise ConfigurationError(
                    f"Static ValueHost '{config.name}' cannot have validators"
                )
        else:
            self.orchestrator = ValidatorOrchestrator(self)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def services(self):
        return self.manager.services

    @property
    def data_type(self) -> Optional[str]:
        return self.config.data_type

    def get_value(self) -> Any:
        return self._value

    def set_value(
        self,
        value: Any,
        validate: bool = False,
        options: Optional[ValidateOptions] = None
    ) -> Optional[ValueHostValidateResult]:
        """
        Store a new value. With validate=True a validation pass runs and
        its result is returned.
        """
        self._value = value
        if validate:
            return self.validate(options)
        return None

    def get_label(self) -> str:
        label = self.config.label
        if self.config.label_l10n:
            label = self.services.text_localizer.get_message(self.config.label_l10n, label)
        return label or self.name

    def is_enabled(self) -> bool:
        enabled = self.config.enabled
        if enabled is None:
            return True
        if callable(enabled):
            return bool(enabled(self))
        return bool(enabled)

    def in_group(self, group: Optional[str]) -> bool:
        if not group:
            return True
        configured = self.config.group
        if configured is None:
            return False
        if isinstance(configured, str):
            return configured == group
        return group in configured

    # =========================================================================
    # Validation
    # =========================================================================

    @property
    def is_validatable(self) -> bool:
        return self.orchestrator is not None

    def validators(self) -> List[Validator]:
        return self.orchestrator.validators() if self.orchestrator else []

    def get_validator(self, error_code: str) -> Optional[Validator]:
        return self.orchestrator.get_validator(error_code) if self.orchestrator else None

    def validate(self, options: Optional[ValidateOptions] = None) -> Optional[ValueHostValidateResult]:
        """
        Run a validation pass.

        Returns None when the value host does not take part: static, not
        in options.group, or disabled (a disabled value host is cleared).
        """
        if self.orchestrator is None:
            return None
        options = options or ValidateOptions()
        if not self.in_group(options.group):
            return None
        if not self.is_enabled():
            self.orchestrator.clear_validation(options)
            return None
        return self.orchestrator.validate(options)

    @property
    def status(self) -> ValidationStatus:
        return self.state.status

    @property
    def is_valid(self) -> bool:
        return self.state.status is not ValidationStatus.INVALID

    @property
    def is_pending(self) -> bool:
        return bool(self.state.pending)

    @property
    def corrected(self) -> bool:
        return self.state.corrected

    def get_issues_found(self) -> List[IssueFound]:
        return self.orchestrator.get_issues_found() if self.orchestrator else []

    def snapshot(self) -> ValueHostValidateResult:
        if self.orchestrator is None:
            return ValueHostValidateResult(value_host_name=self.name)
        return self.orchestrator.snapshot()

    def set_business_logic_error(
        self,
        error: BusinessLogicError,
        options: Optional[ValidateOptions] = None
    ) -> bool:
        if self.orchestrator is None:
            raise ConfigurationError(
                f"Static ValueHost '{self.name}' cannot hold business logic errors"
            )
        return self.orchestrator.set_business_logic_error(error, options)

    def clear_business_logic_errors(self, options: Optional[ValidateOptions] = None) -> bool:
        return self.orchestrator.clear_business_logic_errors(options) if self.orchestrator else False

    def clear_validation(self, options: Optional[ValidateOptions] = None) -> bool:
        return self.orchestrator.clear_validation(options) if self.orchestrator else False

    async def wait_for_pending(self) -> ValueHostValidateResult:
        """Wait until every pending validator of the current pass settled."""
        while self.state.pending:
            await asyncio.gather(
                *(pending.future for pending in list(self.state.pending)),
                return_exceptions=True,
            )
            await asyncio.sleep(0)
        return self.snapshot()

    def notify_state_changed(self, result: ValueHostValidateResult) -> None:
        self.manager.notify_value_host_state_changed(self, result)

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def gather_value_host_names(self, collection: Set[str]) -> None:
        for validator in self.validators():
            validator.gather_value_host_names(collection)

    def keep_issues_for(self, error_codes: Set[str]) -> None:
        """Drop issues whose validators no longer exist."""
        if self.orchestrator is not None:
            self.orchestrator.keep_issues_for(error_codes)

    def dispose(self) -> None:
        if self.orchestrator is not None:
            self.orchestrator.dispose()

    def __repr__(self) -> str:
        return (
            f"ValueHost(name={self.name!r}, "
            f"type={self.config.value_host_type.value}, "
            f"status={self.state.status.value})"
        )


__all__ = ["ValueHost"]
