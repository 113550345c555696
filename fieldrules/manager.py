"""
ValidationManager: owns the value hosts of one form or model.

The manager is the ValueHostResolver handed to conditions, so a condition
can read any value host by name. It routes business logic errors, fans out
state-changed notifications and rebuilds value hosts when their
configuration changes.

Usage:
    builder = ValidationManagerConfigBuilder(services)
    builder.input("email", label="Email").require_text().condition("EmailAddress")
    manager = ValidationManager(builder, services)

    manager.set_value("email", "someone@example.com")
    result = manager.validate()
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union, TYPE_CHECKING

from fieldrules.conditions.base import PendingEvaluation
from fieldrules.errors import (
    ValidatorNotFoundError,
    ValueHostNameConflictError,
    ValueHostNotFoundError,
)
from fieldrules.logger import LoggingCategory, LoggingLevel
from fieldrules.services import ValidationServices
from fieldrules.validation.config import ValueHostConfig
from fieldrules.validation.models import (
    BusinessLogicError,
    IssueFound,
    ValidateOptions,
    ValidationSeverity,
    ValidationStatus,
    ValueHostValidateResult,
)
from fieldrules.validation.validator import Validator
from fieldrules.validation.value_host import ValueHost

if TYPE_CHECKING:
    from fieldrules.builder.config_modifier import ValidationManagerConfigModifier


StateChangedCallback = Callable[[ValueHost, ValueHostValidateResult], None]


@dataclass
class ValidationManagerResult:
    """
    Form level outcome.

    Attributes:
        is_valid: No value host is Invalid and no Error form-level issue exists
        issues_found: Issues of every value host, then form-level issues
        value_host_results: Snapshot per validated value host
        pending: Asynchronous validators still running
    """
    is_valid: bool
    issues_found: List[IssueFound] = field(default_factory=list)
    value_host_results: Dict[str, ValueHostValidateResult] = field(default_factory=dict)
    pending: List[PendingEvaluation] = field(default_factory=list)

    @property
    def is_pending(self) -> bool:
        return bool(self.pending)

    @property
    def do_not_save(self) -> bool:
        """True while the data must not be submitted."""
        return not self.is_valid or self.is_pending


class ValidationManager:
    """
    Runtime container of ValueHosts.

    Args:
        configs: ValueHostConfigs, or a builder exposing complete()
        services: ValidationServices (a default instance when omitted)
    """

    def __init__(
        self,
        configs: Union[Iterable[ValueHostConfig], Any] = (),
        services: Optional[ValidationServices] = None
    ):
        self.services = services or ValidationServices()
        if hasattr(configs, "complete"):
            configs = configs.complete()
        self._value_hosts: Dict[str, ValueHost] = {}
        self._business_logic_errors: List[BusinessLogicError] = []
        self._callbacks: List[StateChangedCallback] = []
        for config in configs:
            if config.name in self._value_hosts:
                raise ValueHostNameConflictError(config.name)
            self._value_hosts[config.name] = ValueHost(config, self)

    # =========================================================================
    # Value hosts
    # =========================================================================

    def get_value_host(self, name: str) -> Optional[ValueHost]:
        return self._value_hosts.get(name)

    def require_value_host(self, name: str) -> ValueHost:
        """
        Raises:
            ValueHostNotFoundError: If no value host has this name
        """
        value_host = self._value_hosts.get(name)
        if value_host is None:
            raise ValueHostNotFoundError(name, "ValidationManager")
        return value_host

    def value_hosts(self) -> List[ValueHost]:
        return list(self._value_hosts.values())

    @property
    def value_host_configs(self) -> List[ValueHostConfig]:
        """The applied configurations. Clone before changing them."""
        return [value_host.config for value_host in self._value_hosts.values()]

    def get_value(self, name: str) -> Any:
        return self.require_value_host(name).get_value()

    def set_value(
        self,
        name: str,
        value: Any,
        validate: bool = False,
        options: Optional[ValidateOptions] = None
    ) -> Optional[ValueHostValidateResult]:
        return self.require_value_host(name).set_value(value, validate, options)

    def get_validator(self, value_host_name: str, error_code: str) -> Validator:
        """
        Raises:
            ValueHostNotFoundError: Unknown value host
            ValidatorNotFoundError: No validator with this error code
        """
        validator = self.require_value_host(value_host_name).get_validator(error_code)
        if validator is None:
            raise ValidatorNotFoundError(value_host_name, error_code)
        return validator

    def add_or_update_value_host(self, config: ValueHostConfig) -> ValueHost:
        """
        Apply a ValueHostConfig.

        An existing value host with the same name is rebuilt: it keeps its
        value, overrides and business logic errors, and only the issues whose
        error codes still exist.
        """
        existing = self._value_hosts.get(config.name)
        value_host = ValueHost(config, self)
        if existing is not None:
            value_host.set_value(existing.get_value())
            value_host.state = existing.state
            value_host.state.generation += 1
            value_host.state.pending = []
            existing.dispose()
            value_host.keep_issues_for({validator.error_code for validator in value_host.validators()})
            self.services.logger.log(
                f"ValueHost '{config.name}' reconfigured",
                LoggingLevel.DEBUG,
                LoggingCategory.CONFIGURATION,
                type(self).__name__,
            )
        self._value_hosts[config.name] = value_host
        return value_host

    def start_modifying(self) -> "ValidationManagerConfigModifier":
        """Start a set of changes to the applied configuration; see apply()."""
        from fieldrules.builder.config_modifier import ValidationManagerConfigModifier
        return ValidationManagerConfigModifier(self)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(
        self,
        name: Optional[str] = None,
        options: Optional[ValidateOptions] = None
    ) -> ValidationManagerResult:
        """
        Validate one value host (name) or all of them.

        The result always describes the whole form.
        """
        options = options or ValidateOptions()
        targets = [self.require_value_host(name)] if name else self.value_hosts()
        results: Dict[str, ValueHostValidateResult] = {}
        for value_host in targets:
            result = value_host.validate(options)
            if result is not None:
                results[value_host.name] = result
        return self._build_result(results)

    def _build_result(self, results: Dict[str, ValueHostValidateResult]) -> ValidationManagerResult:
        pending: List[PendingEvaluation] = []
        for value_host in self._value_hosts.values():
            pending.extend(value_host.state.pending)
        return ValidationManagerResult(
            is_valid=self.is_valid,
            issues_found=self.get_issues_found(),
            value_host_results=results,
            pending=pending,
        )

    @property
    def is_valid(self) -> bool:
        if any(vh.status is ValidationStatus.INVALID for vh in self._value_hosts.values()):
            return False
        return all(
            error.effective_severity is ValidationSeverity.WARNING
            for error in self._business_logic_errors
        )

    @property
    def is_pending(self) -> bool:
        return any(vh.is_pending for vh in self._value_hosts.values())

    def get_issues_found(self, group: Optional[str] = None) -> List[IssueFound]:
        issues: List[IssueFound] = []
        for value_host in self._value_hosts.values():
            if value_host.in_group(group):
                issues.extend(value_host.get_issues_found())
        issues.extend(error.to_issue(None) for error in self._business_logic_errors)
        return issues

    def clear_validation(self, options: Optional[ValidateOptions] = None) -> None:
        self._business_logic_errors = []
        for value_host in self._value_hosts.values():
            value_host.clear_validation(options)

    async def wait_for_pending(self) -> ValidationManagerResult:
        """Wait for the asynchronous validators of every value host."""
        results = {}
        for value_host in self.value_hosts():
            if value_host.is_validatable:
                results[value_host.name] = await value_host.wait_for_pending()
        return self._build_result(results)

    # =========================================================================
    # Business logic errors
    # =========================================================================

    def set_business_logic_errors(
        self,
        errors: Optional[Iterable[BusinessLogicError]],
        options: Optional[ValidateOptions] = None
    ) -> bool:
        """
        Replace all business logic errors.

        Each error goes to its associated value host; errors without one (or
        naming an unknown value host) are kept at the form level.

        Returns:
            True when any state changed
        """
        changed = self.clear_business_logic_errors(options)
        for error in errors or ():
            changed = self.set_business_logic_error(error, options) or changed
        return changed

    def set_business_logic_error(
        self,
        error: BusinessLogicError,
        options: Optional[ValidateOptions] = None
    ) -> bool:
        name = error.associated_value_host_name
        value_host = self._value_hosts.get(name) if name else None
        if value_host is not None and value_host.is_validatable:
            return value_host.set_business_logic_error(error, options)
        if name:
            self.services.logger.log(
                f"BusinessLogicError for unknown ValueHost '{name}' kept at form level",
                LoggingLevel.WARNING,
                LoggingCategory.VALIDATION,
                type(self).__name__,
            )
        self._business_logic_errors.append(error)
        return True

    def clear_business_logic_errors(self, options: Optional[ValidateOptions] = None) -> bool:
        changed = bool(self._business_logic_errors)
        self._business_logic_errors = []
        for value_host in self._value_hosts.values():
            changed = value_host.clear_business_logic_errors(options) or changed
        return changed

    # =========================================================================
    # Notifications
    # =========================================================================

    def on_state_changed(self, callback: StateChangedCallback) -> Callable[[], None]:
        """
        Subscribe to value host state changes.

        Returns:
            Function that removes the subscription
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
        return unsubscribe

    def notify_value_host_state_changed(
        self,
        value_host: ValueHost,
        result: ValueHostValidateResult
    ) -> None:
        for callback in list(self._callbacks):
            try:
                callback(value_host, result)
            except Exception as e:
                self.services.logger.log(
                    f"State changed callback failed: {e}",
                    LoggingLevel.ERROR,
                    LoggingCategory.EXCEPTION,
                    type(self).__name__,
                    value_host=value_host.name,
                )

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def gather_value_host_names(self, name: Optional[str] = None) -> Set[str]:
        """Names of the value hosts the conditions of one (or every) value host read."""
        collection: Set[str] = set()
        targets = [self.require_value_host(name)] if name else self.value_hosts()
        for value_host in targets:
            value_host.gather_value_host_names(collection)
        return collection

    def dispose(self) -> None:
        for value_host in self._value_hosts.values():
            value_host.dispose()
        self._value_hosts.clear()
        self._callbacks.clear()
        self._business_logic_errors = []

    def __len__(self) -> int:
        return len(self._value_hosts)

    def __contains__(self, name: str) -> bool:
        return name in self._value_hosts

    def __repr__(self) -> str:
        return f"ValidationManager(value_hosts={list(self._value_hosts)})"


__all__ = [
    "ValidationManager",
    "ValidationManagerResult",
    "StateChangedCallback",
]
