"""
Builders for ValueHostConfigs.

- fluent.py: FluentStepRegistry and the fluent validator/condition builders
- config_builder.py: ValidationManagerConfigBuilder (layers, complete())
- config_modifier.py: ValidationManagerConfigModifier (changes to a running manager)
"""

from fieldrules.builder.config_builder import ConfigBuilderBase, ValidationManagerConfigBuilder
from fieldrules.builder.config_modifier import ModifierValidatorBuilder, ValidationManagerConfigModifier
from fieldrules.builder.fluent import (
    VALIDATOR_KEYWORDS,
    FluentConditionBuilder,
    FluentStep,
    FluentStepAlreadyRegisteredError,
    FluentStepRegistry,
    FluentValidatorBuilder,
    create_fluent_step_registry,
    to_condition_type,
)

__all__ = [
    "ConfigBuilderBase",
    "ValidationManagerConfigBuilder",
    "ValidationManagerConfigModifier",
    "ModifierValidatorBuilder",
    "VALIDATOR_KEYWORDS",
    "FluentConditionBuilder",
    "FluentStep",
    "FluentStepAlreadyRegisteredError",
    "FluentStepRegistry",
    "FluentValidatorBuilder",
    "create_fluent_step_registry",
    "to_condition_type",
]
