"""
Fluent syntax for validators and conditions.

A fluent step is a named function that produces a ConditionConfig. Steps
live in a FluentStepRegistry and are resolved by attribute name, so
registering a step makes it available on every builder:

    services.fluent_steps.register_step(
        "postal_code",
        lambda builder, **params: ConditionConfig("RegExp", params={"pattern": r"^\\d{5}$"}),
    )
    builder.input("zip").require_text().postal_code(error_message="Five digits")

Names that are not registered steps fall back to registered condition
types: "require_text" resolves to the "RequireText" condition.

Keyword arguments in VALIDATOR_KEYWORDS configure the validator; all
others are passed to the step.
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union

from fieldrules.conditions.base import ConditionCategory, ConditionConfig, ConditionEvaluateResult
from fieldrules.conditions.combinators import (
    all_match,
    any_match,
    count_matches,
    not_condition,
    when_condition,
)
from fieldrules.errors import ConfigurationError
from fieldrules.validation.config import ConditionCreator, ValidatorConfig, ValueHostConfig
from fieldrules.validation.models import ValidationSeverity

if TYPE_CHECKING:
    from fieldrules.services import ValidationServices

StepFunction = Callable[..., ConditionConfig]
ConditionSource = Union[ConditionConfig, str, Callable[["FluentConditionBuilder"], Any]]

VALIDATOR_KEYWORDS = (
    "error_code",
    "severity",
    "enabled",
    "error_message",
    "error_message_l10n",
    "summary_message",
    "summary_message_l10n",
    "enabler",
    "enabler_creator",
)

_WORD_PATTERN = re.compile(r"[A-Za-z0-9]+")


def to_condition_type(step_name: str) -> str:
    """'require_text' -> 'RequireText'"""
    return "".join(part[:1].upper() + part[1:] for part in _WORD_PATTERN.findall(step_name))


# =============================================================================
# Step registry
# =============================================================================

class FluentStepAlreadyRegisteredError(ConfigurationError):
    """Raised when a step name is registered twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Fluent step '{name}' is already registered")


@dataclass
class FluentStep:
    name: str
    function: StepFunction
    description: str = ""


class FluentStepRegistry:
    """
    Named fluent steps.

    A step function is called as fn(builder, *args, **kwargs) and returns a
    ConditionConfig. builder is the calling FluentValidatorBuilder or
    FluentConditionBuilder; use builder.build_conditions() to turn nested
    arguments into ConditionConfigs.
    """

    def __init__(self, allow_overwrite: bool = False):
        self.allow_overwrite = allow_overwrite
        self._steps: Dict[str, FluentStep] = {}

    def register_step(self, name: str, function: StepFunction, description: str = "") -> None:
        """
        Raises:
            FluentStepAlreadyRegisteredError: If name exists and overwrite is off
            ConfigurationError: If name is not a valid identifier
        """
        if not name.isidentifier() or name.startswith("_"):
            raise ConfigurationError(f"Fluent step name '{name}' is not a public identifier")
        if name in self._steps and not self.allow_overwrite:
            raise FluentStepAlreadyRegisteredError(name)
        self._steps[name] = FluentStep(name, function, description or (function.__doc__ or "").strip())

    def step(self, name: Optional[str] = None, description: str = "") -> Callable[[StepFunction], StepFunction]:
        """Decorator form of register_step(); the function name is the default step name."""
        def decorator(function: StepFunction) -> StepFunction:
            self.register_step(name or function.__name__, function, description)
            return function
        return decorator

    def unregister(self, name: str) -> bool:
        return self._steps.pop(name, None) is not None

    def get(self, name: str) -> Optional[FluentStep]:
        return self._steps.get(name)

    def has(self, name: str) -> bool:
        return name in self._steps

    def list_all(self) -> List[str]:
        return sorted(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, name: str) -> bool:
        return name in self._steps

    def __repr__(self) -> str:
        return f"FluentStepRegistry(steps={len(self._steps)})"


# =============================================================================
# Built-in steps
# =============================================================================

def condition_step(
    builder: "FluentBuilderBase",
    condition_type: str,
    *,
    category: Optional[ConditionCategory] = None,
    value_host_name: Optional[str] = None,
    **params: Any
) -> ConditionConfig:
    """Any registered condition type with its parameters."""
    return ConditionConfig(
        condition_type=condition_type,
        category=ConditionCategory(category) if category else None,
        value_host_name=value_host_name,
        params=params,
    )


def condition_config_step(builder: "FluentBuilderBase", config: ConditionConfig) -> ConditionConfig:
    """A ConditionConfig built elsewhere."""
    if not isinstance(config, ConditionConfig):
        raise ConfigurationError("condition_config expects a ConditionConfig")
    return config


def all_match_step(
    builder: "FluentBuilderBase",
    *sources: ConditionSource,
    treat_undetermined_as: Optional[ConditionEvaluateResult] = None,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    """Matches when every child matches."""
    return all_match(
        *builder.build_conditions(*sources),
        treat_undetermined_as=treat_undetermined_as,
        category=category,
    )


def any_match_step(
    builder: "FluentBuilderBase",
    *sources: ConditionSource,
    treat_undetermined_as: Optional[ConditionEvaluateResult] = None,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    """Matches when one child matches."""
    return any_match(
        *builder.build_conditions(*sources),
        treat_undetermined_as=treat_undetermined_as,
        category=category,
    )


def count_matches_step(
    builder: "FluentBuilderBase",
    *sources: ConditionSource,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
    treat_undetermined_as: Optional[ConditionEvaluateResult] = None,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    """Matches when the number of matching children is within minimum and maximum."""
    return count_matches(
        *builder.build_conditions(*sources),
        minimum=minimum,
        maximum=maximum,
        treat_undetermined_as=treat_undetermined_as,
        category=category,
    )


def not_condition_step(
    builder: "FluentBuilderBase",
    source: ConditionSource,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    """Inverts one child."""
    return not_condition(builder.build_single(source, "not_condition"), category=category)


def when_step(
    builder: "FluentBuilderBase",
    enabler: ConditionSource,
    condition: ConditionSource,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    """Evaluates condition only when enabler matches."""
    return when_condition(
        enabler=builder.build_single(enabler, "when"),
        condition=builder.build_single(condition, "when"),
        category=category,
    )


def create_fluent_step_registry(allow_overwrite: bool = False) -> FluentStepRegistry:
    """Create a step registry with the built-in steps."""
    registry = FluentStepRegistry(allow_overwrite=allow_overwrite)
    registry.register_step("condition", condition_step)
    registry.register_step("condition_config", condition_config_step)
    registry.register_step("all_match", all_match_step)
    registry.register_step("any_match", any_match_step)
    registry.register_step("count_matches", count_matches_step)
    registry.register_step("not_condition", not_condition_step)
    registry.register_step("when", when_step)
    return registry


# =============================================================================
# Builders
# =============================================================================

class FluentBuilderBase:
    """Resolves steps by attribute name."""

    def __init__(self, services: "ValidationServices"):
        self._services = services

    @property
    def services(self) -> "ValidationServices":
        return self._services

    def _resolve_step(self, name: str) -> StepFunction:
        registered = self._services.fluent_steps.get(name)
        if registered is not None:
            return registered.function

        condition_type = to_condition_type(name)
        if self._services.condition_registry.is_registered(condition_type):
            def leaf_step(builder: "FluentBuilderBase", **params: Any) -> ConditionConfig:
                return condition_step(builder, condition_type, **params)
            return leaf_step

        raise AttributeError(
            f"'{type(self).__name__}' has no fluent step '{name}' "
            f"and no condition type '{condition_type}' is registered"
        )

    def build_conditions(self, *sources: ConditionSource) -> List[ConditionConfig]:
        """
        Turn step arguments into ConditionConfigs.

        Accepts ConditionConfig, a condition type name, or a callable that
        receives a FluentConditionBuilder and adds conditions to it.
        """
        configs: List[ConditionConfig] = []
        for source in sources:
            if isinstance(source, ConditionConfig):
                configs.append(source)
            elif isinstance(source, str):
                configs.append(ConditionConfig(source))
            elif callable(source):
                nested = FluentConditionBuilder(self._services)
                source(nested)
                configs.extend(nested.conditions)
            else:
                raise ConfigurationError(
                    f"Cannot build a condition from {type(source).__name__}"
                )
        return configs

    def build_single(self, source: ConditionSource, step_name: str) -> ConditionConfig:
        configs = self.build_conditions(source)
        if len(configs) != 1:
            raise ConfigurationError(
                f"'{step_name}' needs exactly one condition, got {len(configs)}"
            )
        return configs[0]


class FluentValidatorBuilder(FluentBuilderBase):
    """
    Adds validators to a ValueHostConfig.

    Every step call adds one ValidatorConfig and returns the builder.

    Example:
        (builder.input("age", "Integer", label="Age")
            .require_text(error_message="{Label} is required")
            .condition("Range", minimum=18, maximum=120, severity="Warning"))
    """

    def __init__(self, value_host_config: ValueHostConfig, services: "ValidationServices"):
        super().__init__(services)
        self._value_host_config = value_host_config

    @property
    def parent_config(self) -> ValueHostConfig:
        return self._value_host_config

    def __getattr__(self, name: str) -> Callable[..., "FluentValidatorBuilder"]:
        if name.startswith("_"):
            raise AttributeError(name)
        step = self._resolve_step(name)

        def invoke(*args: Any, **kwargs: Any) -> "FluentValidatorBuilder":
            validator_kwargs = {key: kwargs.pop(key) for key in VALIDATOR_KEYWORDS if key in kwargs}
            return self.add(step(self, *args, **kwargs), **validator_kwargs)

        invoke.__name__ = name
        return invoke

    def add(self, condition_config: ConditionConfig, **validator_kwargs: Any) -> "FluentValidatorBuilder":
        """Add a validator for condition_config."""
        return self.validator(self._make_validator_config(condition_config=condition_config, **validator_kwargs))

    def custom_rule(self, condition_creator: ConditionCreator, **validator_kwargs: Any) -> "FluentValidatorBuilder":
        """Add a validator whose condition is built by condition_creator."""
        return self.validator(self._make_validator_config(condition_creator=condition_creator, **validator_kwargs))

    def validator(self, config: ValidatorConfig) -> "FluentValidatorBuilder":
        self._value_host_config.validator_configs.append(config)
        return self

    def _make_validator_config(self, **kwargs: Any) -> ValidatorConfig:
        unknown = set(kwargs) - set(VALIDATOR_KEYWORDS) - {"condition_config", "condition_creator"}
        if unknown:
            raise ConfigurationError(f"Unknown validator properties: {', '.join(sorted(unknown))}")

        enabler = kwargs.pop("enabler", None)
        if enabler is not None:
            kwargs["enabler_config"] = self.build_single(enabler, "enabler")
        severity = kwargs.get("severity")
        if severity is not None:
            kwargs["severity"] = ValidationSeverity(severity)
        return ValidatorConfig(**kwargs)


class FluentConditionBuilder(FluentBuilderBase):
    """
    Collects ConditionConfigs, typically the children of a combinator.

    Example:
        builder.input("contact").any_match(
            lambda c: c.require_text(value_host_name="email").require_text(value_host_name="phone")
        )
    """

    def __init__(self, services: "ValidationServices"):
        super().__init__(services)
        self.conditions: List[ConditionConfig] = []

    def __getattr__(self, name: str) -> Callable[..., "FluentConditionBuilder"]:
        if name.startswith("_"):
            raise AttributeError(name)
        step = self._resolve_step(name)

        def invoke(*args: Any, **kwargs: Any) -> "FluentConditionBuilder":
            self.conditions.append(step(self, *args, **kwargs))
            return self

        invoke.__name__ = name
        return invoke

    def add(self, condition_config: ConditionConfig) -> "FluentConditionBuilder":
        self.conditions.append(condition_config)
        return self

    def __len__(self) -> int:
        return len(self.conditions)


__all__ = [
    "VALIDATOR_KEYWORDS",
    "ConditionSource",
    "StepFunction",
    "FluentStep",
    "FluentStepAlreadyRegisteredError",
    "FluentStepRegistry",
    "FluentBuilderBase",
    "FluentValidatorBuilder",
    "FluentConditionBuilder",
    "create_fluent_step_registry",
    "to_condition_type",
    "condition_step",
    "condition_config_step",
    "all_match_step",
    "any_match_step",
    "count_matches_step",
    "not_condition_step",
    "when_step",
]
