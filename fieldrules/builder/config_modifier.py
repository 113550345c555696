"""
ValidationManagerConfigModifier: changes the configuration of a running
ValidationManager.

    modifier = manager.start_modifying()
    modifier.combine_with_rule(
        "postal_code", "RegExp", MergeStrategy.COMBINE_WHEN,
        lambda c: c.equal_to(value_host_name="country", value="US"),
    )
    modifier.update_validator("email", "RequireText", error_message="Please enter {Label}")
    modifier.apply()

Changes are collected in pending ValueHostConfigs. apply() clones the
applied configuration of every affected value host, merges the changes into
the clones and hands them to the manager. The applied configuration itself
is never mutated.
"""

import copy
import dataclasses
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, Union

from fieldrules.builder.config_builder import ConfigBuilderBase
from fieldrules.builder.fluent import FluentConditionBuilder, FluentValidatorBuilder
from fieldrules.conditions.base import ConditionConfig
from fieldrules.conditions.combinators import all_match
from fieldrules.errors import (
    ConfigurationError,
    ValidatorNotFoundError,
    ValueHostNotFoundError,
)
from fieldrules.logger import LoggingCategory, LoggingLevel
from fieldrules.merge.combine import MergeStrategy
from fieldrules.validation.config import ValidatorConfig, ValueHostConfig, ValueHostType

if TYPE_CHECKING:
    from fieldrules.manager import ValidationManager

CombineCallback = Callable[[FluentConditionBuilder, ConditionConfig], Any]
ConditionBuilderFn = Callable[[FluentConditionBuilder], Any]

# Properties update_validator() cannot change
_PROTECTED_VALIDATOR_PROPERTIES = ("condition_config", "condition_creator", "error_code")


class ModifierValidatorBuilder(FluentValidatorBuilder):
    """
    FluentValidatorBuilder returned by the modifier. Ends a chain with
    build() or apply() of the modifier that created it.

    Example:
        manager.start_modifying().input("phone", label="Phone").require_text().apply()
    """

    def __init__(
        self,
        value_host_config: ValueHostConfig,
        modifier: "ValidationManagerConfigModifier"
    ):
        super().__init__(value_host_config, modifier.services)
        self.modifier = modifier

    def build(self) -> List[ValueHostConfig]:
        return self.modifier.build()

    def apply(self) -> List[ValueHostConfig]:
        return self.modifier.apply()


class ValidationManagerConfigModifier(ConfigBuilderBase):
    """
    Collects changes for the value hosts of a manager. Use once, then apply().

    Each change becomes one pending ValueHostConfig with the merge strategy
    for each of its error codes. Changes are merged in the order they were
    made.
    """

    def __init__(self, manager: "ValidationManager"):
        super().__init__(manager.services)
        self.manager = manager
        self._existing: Dict[str, ValueHostConfig] = {
            config.name: config for config in manager.value_host_configs
        }
        self._changes: List[Tuple[ValueHostConfig, Dict[str, MergeStrategy]]] = []
        self._declared: List[ValueHostConfig] = []

    def _destination(self) -> List[ValueHostConfig]:
        return self._declared

    def _apply_config(self, config: ValueHostConfig) -> ValueHostConfig:
        config = super()._apply_config(config)
        self._changes.append((config, {}))
        return config

    def _validator_builder(self, config: ValueHostConfig) -> ModifierValidatorBuilder:
        return ModifierValidatorBuilder(config, self)

    def _add_change(self, config: ValueHostConfig, strategies: Dict[str, MergeStrategy]) -> None:
        self._ensure_active()
        self._changes.append((config, strategies))

    def get_existing_value_host_config(self, name: str) -> ValueHostConfig:
        """
        Raises:
            ValueHostNotFoundError: If the manager has no such value host
        """
        config = self._existing.get(name)
        if config is None:
            raise ValueHostNotFoundError(name, "ValidationManager")
        return config

    def _get_existing_validator_config(self, name: str, error_code: str) -> ValidatorConfig:
        value_host_config = self.get_existing_value_host_config(name)
        validator_config = value_host_config.find_validator_config(error_code)
        if validator_config is None:
            raise ValidatorNotFoundError(name, error_code)
        return validator_config

    def _change_for(self, name: str) -> ValueHostConfig:
        existing = self.get_existing_value_host_config(name)
        if existing.value_host_type is ValueHostType.STATIC:
            raise ConfigurationError(f"ValueHost '{name}' does not support validators")
        return ValueHostConfig(name=name, value_host_type=existing.value_host_type)

    # =========================================================================
    # Value hosts
    # =========================================================================

    def _check_type(self, name: str, value_host_type: ValueHostType) -> None:
        existing = self._existing.get(name)
        if existing is not None and existing.value_host_type is not value_host_type:
            raise ConfigurationError(
                f"ValueHost '{name}' is not type={value_host_type.value}"
            )

    def _strip_no_change(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        no_change = self.services.merge_service.get_no_change_property_names()
        return {key: value for key, value in properties.items() if key not in no_change}

    def input(self, name: str, data_type: Optional[str] = None, **properties: Any) -> ModifierValidatorBuilder:
        """Add or update an Input value host."""
        self._check_type(name, ValueHostType.INPUT)
        return self._add_validators_value_host(
            ValueHostType.INPUT, name, data_type, self._strip_no_change(properties)
        )

    def property(self, name: str, data_type: Optional[str] = None, **properties: Any) -> ModifierValidatorBuilder:
        """Add or update a Property value host."""
        self._check_type(name, ValueHostType.PROPERTY)
        return self._add_validators_value_host(
            ValueHostType.PROPERTY, name, data_type, self._strip_no_change(properties)
        )

    def static(self, name: str, data_type: Optional[str] = None, **properties: Any) -> "ValidationManagerConfigModifier":
        """Add or update a Static value host."""
        self._check_type(name, ValueHostType.STATIC)
        self._apply_config(self._make_value_host_config(
            ValueHostType.STATIC, name, data_type, self._strip_no_change(properties)
        ))
        return self

    # =========================================================================
    # Validators
    # =========================================================================

    def combine_with_rule(
        self,
        name: str,
        error_code: str,
        strategy_or_callback: Union[MergeStrategy, str, CombineCallback],
        builder_fn: Optional[ConditionBuilderFn] = None
    ) -> "ValidationManagerConfigModifier":
        """
        Change the condition of an existing validator.

        With a MergeStrategy, builder_fn supplies the new condition (several
        conditions are joined with All) and the strategy combines it with
        the existing one.

        With a callback, it is called with a FluentConditionBuilder and the
        existing ConditionConfig and must add the complete replacement
        condition. A callback that adds nothing leaves the validator as it is.

        Raises:
            ValueHostNotFoundError: Unknown value host
            ValidatorNotFoundError: Unknown error code
        """
        existing = self._get_existing_validator_config(name, error_code)
        if callable(strategy_or_callback):
            if existing.condition_config is None:
                raise ConfigurationError(
                    f"Validator '{error_code}' on '{name}' uses condition_creator and cannot be combined"
                )
            builder = FluentConditionBuilder(self.services)
            strategy_or_callback(builder, existing.condition_config)
            replacement = self._join(builder.conditions)
            if replacement is None:
                self._log_no_op(name, error_code, "combine_with_rule callback did not supply a condition")
                return self
            return self._change_condition(name, error_code, replacement, MergeStrategy.REPLACE)

        strategy = MergeStrategy(strategy_or_callback)
        if builder_fn is None:
            raise ConfigurationError("combine_with_rule needs a builder function with a MergeStrategy")
        builder = FluentConditionBuilder(self.services)
        builder_fn(builder)
        condition = self._join(builder.conditions)
        if condition is None:
            self._log_no_op(name, error_code, "combine_with_rule builder did not supply a condition")
            return self
        return self._change_condition(name, error_code, condition, strategy)

    def replace_rule(
        self,
        name: str,
        error_code: str,
        source: Union[ConditionConfig, ConditionBuilderFn]
    ) -> "ValidationManagerConfigModifier":
        """Replace the condition of an existing validator; error code and messages stay."""
        self._get_existing_validator_config(name, error_code)
        if isinstance(source, ConditionConfig):
            condition = source
        else:
            builder = FluentConditionBuilder(self.services)
            source(builder)
            condition = self._join(builder.conditions)
        if condition is None:
            self._log_no_op(name, error_code, "replace_rule did not supply a condition")
            return self
        return self._change_condition(name, error_code, condition, MergeStrategy.REPLACE)

    def update_validator(self, name: str, error_code: str, /, **properties: Any) -> "ValidationManagerConfigModifier":
        """
        Change properties of an existing validator (messages, severity,
        enabled, enabler). Use replace_rule() or combine_with_rule() for the
        condition.

        Raises:
            ConfigurationError: For condition_config, condition_creator,
                error_code or unknown properties
        """
        self._get_existing_validator_config(name, error_code)
        protected = set(properties) & set(_PROTECTED_VALIDATOR_PROPERTIES)
        if protected:
            raise ConfigurationError(
                f"update_validator cannot change {', '.join(sorted(protected))}"
            )
        allowed = {f.name for f in dataclasses.fields(ValidatorConfig)}
        unknown = set(properties) - allowed
        if unknown:
            raise ConfigurationError(f"Unknown validator properties: {', '.join(sorted(unknown))}")

        change = self._change_for(name)
        change.validator_configs.append(ValidatorConfig(error_code=error_code, **properties))
        self._add_change(change, {error_code: MergeStrategy.REPLACE})
        return self

    def add_validators_to(self, name: str) -> ModifierValidatorBuilder:
        """Add validators to an existing value host; chain them on the result."""
        change = self._change_for(name)
        self._add_change(change, {})
        return self._validator_builder(change)

    def _change_condition(
        self,
        name: str,
        error_code: str,
        condition: ConditionConfig,
        strategy: MergeStrategy
    ) -> "ValidationManagerConfigModifier":
        change = self._change_for(name)
        change.validator_configs.append(ValidatorConfig(condition_config=condition, error_code=error_code))
        self._add_change(change, {error_code: strategy})
        return self

    @staticmethod
    def _join(conditions: List[ConditionConfig]) -> Optional[ConditionConfig]:
        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        return all_match(*conditions)

    def _log_no_op(self, name: str, error_code: str, reason: str) -> None:
        self.services.logger.log(
            f"{reason}; '{name}' validator '{error_code}' unchanged",
            LoggingLevel.WARNING,
            LoggingCategory.MERGE,
            type(self).__name__,
        )

    # =========================================================================
    # Apply
    # =========================================================================

    def build(self) -> List[ValueHostConfig]:
        """
        Merge the changes into clones of the applied configuration.

        Returns:
            One config per affected value host, in order of first change
        """
        merge_service = self.services.merge_service
        results: Dict[str, ValueHostConfig] = {}
        for change, strategies in self._changes:
            destination = results.get(change.name)
            if destination is None:
                existing = self._existing.get(change.name)
                if existing is None:
                    results[change.name] = copy.deepcopy(change)
                    continue
                destination = copy.deepcopy(existing)
                results[change.name] = destination
            merge_service.merge(change, destination, strategies)
        return list(results.values())

    def apply(self) -> List[ValueHostConfig]:
        """
        Apply every change to the manager. The modifier cannot be used
        afterwards.

        Returns:
            The configs handed to the manager
        """
        self._ensure_active()
        configs = self.build()
        for config in configs:
            self.manager.add_or_update_value_host(config)
        self._completed = True
        self._changes = []
        return configs

    def preview(self, name: str) -> Optional[ValueHostConfig]:
        """The config apply() would produce for one value host, without applying."""
        for config in self.build():
            if config.name == name:
                return config
        return None


__all__ = [
    "ValidationManagerConfigModifier",
    "ModifierValidatorBuilder",
    "CombineCallback",
    "ConditionBuilderFn",
]
