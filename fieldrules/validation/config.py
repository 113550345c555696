"""
Configuration objects for value hosts and validators.

ValueHostConfig owns its ValidatorConfigs; a ValidatorConfig owns its
ConditionConfig unless it supplies a condition_creator instead.
resolve_error_code() is the single rule for naming a validator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from fieldrules.conditions.base import Condition, ConditionConfig
from fieldrules.conditions.combinators import UNKNOWN_CONDITION_TYPE, WHEN_TYPE
from fieldrules.validation.models import ValidationSeverity


class ValueHostType(str, Enum):
    """
    INPUT: edited by the user, validated
    PROPERTY: model property, validated
    STATIC: value only, no validators
    """
    INPUT = "Input"
    PROPERTY = "Property"
    STATIC = "Static"


ConditionCreator = Callable[["ValidatorConfig"], Optional[Condition]]
MessageValue = Union[str, Callable[[Any], Optional[str]], None]


@dataclass
class ValidatorConfig:
    """
    One validator of a value host.

    Exactly one of condition_config and condition_creator must be set.

    Attributes:
        condition_config: Condition tree to evaluate
        condition_creator: Callback building the node instead
        enabler_config: Validator runs only when this matches
        enabler_creator: Callback building the enabler instead
        error_code: Explicit error code (see resolve_error_code)
        severity: Default depends on the condition category
        enabled: bool or callable(validator) -> bool
        error_message: Template or callable(validator) -> template
        error_message_l10n: Localization key for error_message
        summary_message: Template or callable(validator) -> template
        summary_message_l10n: Localization key for summary_message
    """
    condition_config: Optional[ConditionConfig] = None
    condition_creator: Optional[ConditionCreator] = None
    enabler_config: Optional[ConditionConfig] = None
    enabler_creator: Optional[ConditionCreator] = None
    error_code: Optional[str] = None
    severity: Optional[ValidationSeverity] = None
    enabled: Union[bool, Callable[[Any], bool], None] = None
    error_message: MessageValue = None
    error_message_l10n: Optional[str] = None
    summary_message: MessageValue = None
    summary_message_l10n: Optional[str] = None


@dataclass
class ValueHostConfig:
    """
    One named value (form field or model property).

    Attributes:
        name: Unique within a configuration set
        value_host_type: ValueHostType
        data_type: Data type lookup key
        label: Display label used by the {Label} token
        label_l10n: Localization key for label
        initial_value: Value before the user edits it
        enabled: bool or callable(value_host) -> bool
        group: Group name(s) used by ValidateOptions.group
        validator_configs: Validators in declaration order
    """
    name: str
    value_host_type: ValueHostType = ValueHostType.INPUT
    data_type: Optional[str] = None
    label: Optional[str] = None
    label_l10n: Optional[str] = None
    initial_value: Any = None
    enabled: Union[bool, Callable[[Any], bool], None] = None
    group: Union[str, List[str], None] = None
    validator_configs: List[ValidatorConfig] = field(default_factory=list)

    def find_validator_config(self, error_code: str) -> Optional[ValidatorConfig]:
        for validator_config in self.validator_configs:
            if resolve_error_code(validator_config) == error_code:
                return validator_config
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Plain dictionary of the serializable parts (callbacks omitted)."""
        def message(value: MessageValue) -> Optional[str]:
            return value if isinstance(value, str) else None

        return {
            "name": self.name,
            "value_host_type": self.value_host_type.value,
            "data_type": self.data_type,
            "label": self.label,
            "label_l10n": self.label_l10n,
            "initial_value": self.initial_value,
            "enabled": self.enabled if isinstance(self.enabled, bool) else None,
            "group": self.group,
            "validators": [
                {
                    "error_code": resolve_error_code(vc),
                    "condition": vc.condition_config.to_dict() if vc.condition_config else None,
                    "enabler": vc.enabler_config.to_dict() if vc.enabler_config else None,
                    "severity": vc.severity.value if vc.severity else None,
                    "error_message": message(vc.error_message),
                    "summary_message": message(vc.summary_message),
                }
                for vc in self.validator_configs
            ],
        }


def resolve_error_code(config: ValidatorConfig) -> str:
    """
    Error code of a validator.

    1. config.error_code
    2. for When, the type of its child condition
    3. the condition type
    4. the type of the node built by condition_creator
    5. "Unknown"
    """
    if config.error_code:
        return config.error_code

    condition_config = config.condition_config
    if condition_config is not None and condition_config.condition_type:
        if condition_config.condition_type == WHEN_TYPE:
            child = condition_config.get("condition")
            if isinstance(child, ConditionConfig) and child.condition_type:
                return child.condition_type
            return UNKNOWN_CONDITION_TYPE
        return condition_config.condition_type

    if config.condition_creator is not None:
        node = config.condition_creator(config)
        if node is not None and node.condition_type:
            return node.condition_type

    return UNKNOWN_CONDITION_TYPE


__all__ = [
    "ValueHostType",
    "ValidatorConfig",
    "ValueHostConfig",
    "ConditionCreator",
    "resolve_error_code",
]
