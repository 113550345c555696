"""
Configuration merge services.

Merges one ValueHostConfig into another, property by property, using
per-property conflict rules. Validators are matched by resolved error code;
a match merges the two validators and applies a MergeStrategy to the
condition, everything else is appended.

Callers that read an already applied configuration must pass a clone as
the destination. Merging into a pending override layer may mutate it.
"""

import copy
import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING, Any, Callable, Dict, Generic, List, Mapping, Optional,
    Set, TypeVar, Union
)

from fieldrules.errors import ConfigurationError
from fieldrules.logger import LoggingCategory, LoggingLevel, StructuredLogger, create_logger
from fieldrules.merge.combine import MergeStrategy, combine_conditions, default_merge_strategy
from fieldrules.settings import get_settings
from fieldrules.validation.config import (
    ValidatorConfig,
    ValueHostConfig,
    ValueHostType,
    resolve_error_code,
)

if TYPE_CHECKING:
    from fieldrules.conditions.registry import ConditionRegistry

TConfig = TypeVar("TConfig")


class PropertyConflictRule(str, Enum):
    """
    REPLACE: source value wins
    REPLACE_EXCEPT_NONE: source value wins unless it is None
    NO_CHANGE: destination keeps its value
    LOCKED: like NO_CHANGE, and the rule itself cannot be changed
    DELETE: destination value is removed
    REPLACE_OR_DELETE: source value wins; a None source removes it
    """
    REPLACE = "replace"
    REPLACE_EXCEPT_NONE = "replace_except_none"
    NO_CHANGE = "nochange"
    LOCKED = "locked"
    DELETE = "delete"
    REPLACE_OR_DELETE = "replace_or_delete"


@dataclass
class ConflictResolution:
    """Answer of a rule callback: a value to use, or a rule to apply."""
    use_value: Any = None
    use_action: Optional[PropertyConflictRule] = None


@dataclass
class MergeIdentity:
    """What is being merged, for log messages and rule callbacks."""
    value_host_name: str
    error_code: Optional[str] = None

    def label(self, property_name: str) -> str:
        if self.error_code:
            return f"{self.value_host_name}.validators[{self.error_code}].{property_name}"
        return f"{self.value_host_name}.{property_name}"


RuleCallback = Callable[[Any, Any, str, MergeIdentity], ConflictResolution]
Rule = Union[PropertyConflictRule, RuleCallback]

_NO_CHANGE_RULES = (PropertyConflictRule.NO_CHANGE, PropertyConflictRule.LOCKED, PropertyConflictRule.DELETE)


class ConfigMergeServiceBase(Generic[TConfig]):
    """
    Property by property merge of two dataclass configs.

    Properties without a rule use REPLACE. A property that is None on the
    destination is assigned from the source unless its rule prevents changes.
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or create_logger("fieldrules.merge")
        self._rules: Dict[str, Rule] = {}
        self._no_change_names: Optional[List[str]] = None
        self._routine_level = LoggingLevel.from_name(
            get_settings().get_nested("merge.log_level", "DEBUG"), LoggingLevel.DEBUG
        )

    def set_property_conflict_rule(self, property_name: str, rule: Rule) -> None:
        """
        Raises:
            ConfigurationError: If the property is LOCKED
        """
        if self._rules.get(property_name) is PropertyConflictRule.LOCKED:
            raise ConfigurationError(f"Property '{property_name}' is locked and its rule cannot change")
        if not callable(rule):
            rule = PropertyConflictRule(rule)
        self._rules[property_name] = rule
        self._no_change_names = None

    def get_property_conflict_rule(self, property_name: str) -> Rule:
        return self._rules.get(property_name, PropertyConflictRule.REPLACE)

    def get_no_change_property_names(self) -> List[str]:
        """Properties a merge never changes (callback rules excluded). Cached."""
        if self._no_change_names is None:
            self._no_change_names = [
                name for name, rule in self._rules.items() if rule in _NO_CHANGE_RULES
            ]
        return list(self._no_change_names)

    def merge_configs(
        self,
        source: TConfig,
        destination: TConfig,
        identity: MergeIdentity,
        skip: Set[str] = frozenset()
    ) -> None:
        """Apply the rules to every property of the source. Changes destination."""
        no_change = self.get_no_change_property_names()
        for field_info in dataclasses.fields(source):
            name = field_info.name
            if name in skip:
                continue
            rule = self.get_property_conflict_rule(name)
            if rule is PropertyConflictRule.DELETE:
                self._merge_property(name, rule, source, destination, identity)
                continue

            source_value = getattr(source, name)
            if source_value is None:
                if rule is PropertyConflictRule.REPLACE_OR_DELETE:
                    self._merge_property(name, rule, source, destination, identity)
                continue

            if getattr(destination, name) is None:
                if name in no_change:
                    self._log_routine(f"{identity.label(name)}. Rule prevents changes.")
                else:
                    setattr(destination, name, source_value)
                    self._log_routine(f"{identity.label(name)} assigned")
                continue

            self._merge_property(name, rule, source, destination, identity)

    def _merge_property(
        self,
        name: str,
        rule: Rule,
        source: TConfig,
        destination: TConfig,
        identity: MergeIdentity
    ) -> None:
        if callable(rule) and not isinstance(rule, PropertyConflictRule):
            resolution = rule(source, destination, name, identity)
            if resolution.use_value is not None:
                setattr(destination, name, resolution.use_value)
                self._log_routine(f"{identity.label(name)} replaced")
            elif resolution.use_action is not None:
                self._merge_property(name, resolution.use_action, source, destination, identity)
            return

        if rule in (PropertyConflictRule.NO_CHANGE, PropertyConflictRule.LOCKED):
            self._log_routine(f"{identity.label(name)}. Rule prevents changes.")
        elif rule in (PropertyConflictRule.REPLACE, PropertyConflictRule.REPLACE_EXCEPT_NONE):
            source_value = getattr(source, name)
            if source_value is None or source_value == getattr(destination, name):
                return
            setattr(destination, name, source_value)
            self._log_routine(f"{identity.label(name)} replaced")
        elif rule is PropertyConflictRule.DELETE:
            if getattr(destination, name) is not None:
                setattr(destination, name, _field_default(destination, name))
                self._log_routine(f"{identity.label(name)} deleted")
        elif rule is PropertyConflictRule.REPLACE_OR_DELETE:
            next_rule = PropertyConflictRule.DELETE if getattr(source, name) is None \
                else PropertyConflictRule.REPLACE
            self._merge_property(name, next_rule, source, destination, identity)
        else:
            raise ConfigurationError(f"Unknown rule {rule!r}")

    def _log_routine(self, message: str) -> None:
        self.logger.log(message, self._routine_level, LoggingCategory.MERGE, type(self).__name__)

    def _log_warning(self, message: str) -> None:
        self.logger.log(message, LoggingLevel.WARNING, LoggingCategory.MERGE, type(self).__name__)


def _field_default(config: Any, name: str) -> Any:
    for field_info in dataclasses.fields(config):
        if field_info.name != name:
            continue
        if field_info.default is not dataclasses.MISSING:
            return field_info.default
        if field_info.default_factory is not dataclasses.MISSING:  # type: ignore
            return field_info.default_factory()  # type: ignore
    return None


class ValidatorConfigMergeService(ConfigMergeServiceBase[ValidatorConfig]):
    """
    Merges the validator_configs of two value hosts.

    error_code and condition_creator never change. condition_config is
    handled by the MergeStrategy; the merged validator keeps the error code
    it had before the merge.
    """

    def __init__(
        self,
        logger: Optional[StructuredLogger] = None,
        registry: Optional["ConditionRegistry"] = None
    ):
        super().__init__(logger)
        self.registry = registry
        self.set_property_conflict_rule("error_code", PropertyConflictRule.NO_CHANGE)
        self.set_property_conflict_rule("condition_creator", PropertyConflictRule.NO_CHANGE)
        self.set_property_conflict_rule("condition_config", PropertyConflictRule.LOCKED)

    def identify_validator_conflict(
        self,
        source: ValidatorConfig,
        destinations: List[ValidatorConfig],
        identity: MergeIdentity
    ) -> Optional[ValidatorConfig]:
        error_code = identity.error_code or resolve_error_code(source)
        for destination in destinations:
            if resolve_error_code(destination) == error_code:
                return destination
        return None

    def merge(
        self,
        source: ValueHostConfig,
        destination: ValueHostConfig,
        strategies: Optional[Mapping[str, MergeStrategy]] = None,
        default_strategy: Optional[MergeStrategy] = None
    ) -> None:
        """
        Merge source.validator_configs into destination.validator_configs.

        Args:
            strategies: MergeStrategy per error code
            default_strategy: Used for error codes missing from strategies
                (settings merge.default_strategy when None)
        """
        strategies = strategies or {}
        default_strategy = default_strategy or default_merge_strategy()

        for validator_source in source.validator_configs:
            error_code = resolve_error_code(validator_source)
            identity = MergeIdentity(destination.name, error_code)
            validator_destination = self.identify_validator_conflict(
                validator_source, destination.validator_configs, identity
            )
            if validator_destination is None:
                destination.validator_configs.append(copy.deepcopy(validator_source))
                self._log_routine(f"Validator {error_code} added to {destination.name}")
                continue

            strategy = MergeStrategy(strategies.get(error_code, default_strategy))
            self.merge_validator(validator_source, validator_destination, strategy, identity)

    def merge_validator(
        self,
        source: ValidatorConfig,
        destination: ValidatorConfig,
        strategy: MergeStrategy,
        identity: MergeIdentity
    ) -> None:
        original_error_code = resolve_error_code(destination)
        if (
            strategy is MergeStrategy.REPLACE
            and source.condition_config is not None
            and destination.condition_config is not None
            and source.condition_config.condition_type != destination.condition_config.condition_type
        ):
            self._log_warning(f"ConditionType mismatch for {identity.label('condition_config')}")

        self.merge_configs(source, destination, identity, skip={"condition_config"})

        if source.condition_config is not None:
            if destination.condition_config is None:
                self._log_warning(
                    f"{identity.label('condition_config')} not merged: "
                    f"destination uses condition_creator"
                )
            else:
                destination.condition_config = combine_conditions(
                    destination.condition_config,
                    source.condition_config,
                    strategy,
                    self.registry,
                )
                self._log_routine(f"{identity.label('condition_config')} merged using {strategy.value}")

        if resolve_error_code(destination) != original_error_code:
            destination.error_code = original_error_code


class ValueHostConfigMergeService(ConfigMergeServiceBase[ValueHostConfig]):
    """
    Merges two ValueHostConfigs with the same name.

    name and validator_configs are locked (validators go through the
    ValidatorConfigMergeService). value_host_type only upgrades from
    Property to Input. data_type ignores None.
    """

    def __init__(
        self,
        logger: Optional[StructuredLogger] = None,
        validator_merge_service: Optional[ValidatorConfigMergeService] = None
    ):
        super().__init__(logger)
        self.validator_merge_service = validator_merge_service or ValidatorConfigMergeService(self.logger)
        self.set_property_conflict_rule("name", PropertyConflictRule.LOCKED)
        self.set_property_conflict_rule("validator_configs", PropertyConflictRule.LOCKED)
        self.set_property_conflict_rule("value_host_type", self.update_value_host_type)
        self.set_property_conflict_rule("data_type", PropertyConflictRule.REPLACE_EXCEPT_NONE)

    def update_value_host_type(
        self,
        source: ValueHostConfig,
        destination: ValueHostConfig,
        property_name: str,
        identity: MergeIdentity
    ) -> ConflictResolution:
        if source.value_host_type is ValueHostType.INPUT \
                and destination.value_host_type is ValueHostType.PROPERTY:
            return ConflictResolution(use_value=ValueHostType.INPUT)
        if source.value_host_type is not destination.value_host_type:
            self._log_warning(
                f"Will not change ValueHostType from {destination.value_host_type.value} "
                f"to {source.value_host_type.value}."
            )
        return ConflictResolution(use_action=PropertyConflictRule.NO_CHANGE)

    def identify_value_host_conflict(
        self,
        source: ValueHostConfig,
        destinations: List[ValueHostConfig]
    ) -> Optional[ValueHostConfig]:
        for destination in destinations:
            if destination.name == source.name:
                return destination
        return None

    def merge(
        self,
        source: ValueHostConfig,
        destination: ValueHostConfig,
        strategies: Optional[Mapping[str, MergeStrategy]] = None,
        default_strategy: Optional[MergeStrategy] = None
    ) -> None:
        """Merge source into destination (same name only). Changes destination."""
        if source.name != destination.name:
            return
        self.merge_configs(source, destination, MergeIdentity(destination.name))
        self.validator_merge_service.merge(source, destination, strategies, default_strategy)

    def merge_into(
        self,
        sources: List[ValueHostConfig],
        destinations: List[ValueHostConfig],
        strategies: Optional[Mapping[str, Mapping[str, MergeStrategy]]] = None
    ) -> List[ValueHostConfig]:
        """
        Merge a layer of ValueHostConfigs into destinations.

        Names not found in destinations are appended as clones.

        Args:
            strategies: {value_host_name: {error_code: MergeStrategy}}

        Returns:
            destinations
        """
        strategies = strategies or {}
        for source in sources:
            destination = self.identify_value_host_conflict(source, destinations)
            if destination is None:
                destinations.append(copy.deepcopy(source))
                self._log_routine(f"ValueHost {source.name} added")
            else:
                self.merge(source, destination, strategies.get(source.name))
        return destinations


__all__ = [
    "PropertyConflictRule",
    "ConflictResolution",
    "MergeIdentity",
    "ConfigMergeServiceBase",
    "ValidatorConfigMergeService",
    "ValueHostConfigMergeService",
]
