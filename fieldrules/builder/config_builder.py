"""
ValidationManagerConfigBuilder: builds the ValueHostConfigs of a manager.

    builder = ValidationManagerConfigBuilder(services)
    builder.input("email", label="Email").require_text().condition("EmailAddress")
    builder.static("culture", initial_value="en")

    # a later layer (e.g. the UI) refines what the business layer declared
    builder.start_ui_layer_config()
    builder.input("email", label="E-mail address").condition("MaxLength", length=80)

    manager = ValidationManager(builder, services)

Within one layer a name can be declared once. Layers are merged into the
base layer by complete() using the ValueHostConfigMergeService.
"""

import copy
import dataclasses
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from fieldrules.builder.fluent import FluentValidatorBuilder
from fieldrules.errors import ConfigurationError, ValueHostNameConflictError
from fieldrules.validation.config import ValueHostConfig, ValueHostType

if TYPE_CHECKING:
    from fieldrules.services import ValidationServices

# Set by the builder methods themselves
_RESERVED_PROPERTIES = ("name", "value_host_type", "validator_configs")


class ConfigBuilderBase:
    """Shared layer handling for the builder and the modifier."""

    def __init__(self, services: Optional["ValidationServices"] = None):
        if services is None:
            from fieldrules.services import ValidationServices
            services = ValidationServices()
        self.services = services
        self._completed = False

    def _ensure_active(self) -> None:
        if self._completed:
            raise ConfigurationError(f"{type(self).__name__} was already completed")

    def _destination(self) -> List[ValueHostConfig]:
        raise NotImplementedError

    def _apply_config(self, config: ValueHostConfig) -> ValueHostConfig:
        """
        Raises:
            ValueHostNameConflictError: If the current layer already has the name
        """
        self._ensure_active()
        destination = self._destination()
        if any(existing.name == config.name for existing in destination):
            raise ValueHostNameConflictError(config.name)
        destination.append(config)
        return config

    def _make_value_host_config(
        self,
        value_host_type: ValueHostType,
        name: str,
        data_type: Optional[str],
        properties: Dict[str, Any]
    ) -> ValueHostConfig:
        if not name:
            raise ConfigurationError("ValueHost name is required")
        allowed = {f.name for f in dataclasses.fields(ValueHostConfig)} - set(_RESERVED_PROPERTIES)
        unknown = set(properties) - allowed
        if unknown:
            raise ConfigurationError(
                f"Unknown ValueHost properties for '{name}': {', '.join(sorted(unknown))}"
            )
        if data_type is not None:
            properties = dict(properties, data_type=data_type)
        return ValueHostConfig(name=name, value_host_type=value_host_type, **properties)

    def _add_validators_value_host(
        self,
        value_host_type: ValueHostType,
        name: str,
        data_type: Optional[str],
        properties: Dict[str, Any]
    ) -> FluentValidatorBuilder:
        config = self._apply_config(
            self._make_value_host_config(value_host_type, name, data_type, properties)
        )
        return self._validator_builder(config)

    def _validator_builder(self, config: ValueHostConfig) -> FluentValidatorBuilder:
        return FluentValidatorBuilder(config, self.services)


class ValidationManagerConfigBuilder(ConfigBuilderBase):
    """
    Collects ValueHostConfigs in a base layer and optional override layers.

    Args:
        services: ValidationServices shared with the ValidationManager
        value_host_configs: Existing configs to start the base layer with;
            the builder works on copies
    """

    def __init__(
        self,
        services: Optional["ValidationServices"] = None,
        value_host_configs: Optional[List[ValueHostConfig]] = None
    ):
        super().__init__(services)
        self._base: List[ValueHostConfig] = [copy.deepcopy(config) for config in value_host_configs or []]
        self._layers: List[List[ValueHostConfig]] = []

    @property
    def layer_count(self) -> int:
        return len(self._layers)

    def _destination(self) -> List[ValueHostConfig]:
        return self._layers[-1] if self._layers else self._base

    def input(self, name: str, data_type: Optional[str] = None, **properties: Any) -> FluentValidatorBuilder:
        """Declare an Input value host; chain validators on the result."""
        return self._add_validators_value_host(ValueHostType.INPUT, name, data_type, properties)

    def property(self, name: str, data_type: Optional[str] = None, **properties: Any) -> FluentValidatorBuilder:
        """Declare a Property value host; chain validators on the result."""
        return self._add_validators_value_host(ValueHostType.PROPERTY, name, data_type, properties)

    def static(self, name: str, data_type: Optional[str] = None, **properties: Any) -> "ValidationManagerConfigBuilder":
        """Declare a Static value host (value only, no validators)."""
        self._apply_config(
            self._make_value_host_config(ValueHostType.STATIC, name, data_type, properties)
        )
        return self

    def add(self, config: ValueHostConfig) -> "ValidationManagerConfigBuilder":
        """Add a copy of a ValueHostConfig built elsewhere (for example by the YAML loader)."""
        self._apply_config(copy.deepcopy(config))
        return self

    def start_ui_layer_config(self) -> "ValidationManagerConfigBuilder":
        """Start a new override layer; later declarations merge into earlier ones."""
        self._ensure_active()
        self._layers.append([])
        return self

    def complete(self) -> List[ValueHostConfig]:
        """
        Merge the override layers into the base layer and return it.

        The builder cannot be used afterwards.
        """
        self._ensure_active()
        merge_service = self.services.merge_service
        for layer in self._layers:
            merge_service.merge_into(layer, self._base)
        self._completed = True
        self._layers = []
        return self._base


__all__ = [
    "ConfigBuilderBase",
    "ValidationManagerConfigBuilder",
]
