"""
Declarative ValueHostConfigs from YAML.

File format:

    custom_conditions:
      us_postal_code:
        description: Five digit ZIP code
        expression: {type: RegExp, pattern: "^\\\\d{5}$"}

    value_hosts:
      - name: country
        type: Input
        data_type: String
        validators:
          - condition: RequireText
      - name: postal_code
        label: Postal code
        validators:
          - condition: RequireText
            severity: Severe
          - condition:
              when:
                enabler: {type: EqualTo, value_host_name: country, value: US}
                condition: custom:us_postal_code
            error_message: "{Label} must have five digits"

Condition expressions use the ConditionExpressionParser syntax.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union, TYPE_CHECKING

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from fieldrules.conditions.expression_parser import ConditionExpressionParser
from fieldrules.errors import ConfigurationError, ValueHostNameConflictError
from fieldrules.validation.config import ValidatorConfig, ValueHostConfig, ValueHostType
from fieldrules.validation.models import ValidationSeverity

if TYPE_CHECKING:
    from fieldrules.manager import ValidationManager
    from fieldrules.services import ValidationServices

logger = logging.getLogger(__name__)


class ConfigValidationError(ConfigurationError):
    """Raised when the content of a configuration does not validate."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        message = f"Configuration validation failed with {len(errors)} error(s):\n"
        message += "\n".join(f"  - {e}" for e in errors)
        super().__init__(message)


class ConfigLoadError(ConfigurationError):
    """Raised when a configuration file cannot be read."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        message = f"Failed to load '{file_path}': {reason}"
        super().__init__(message)


# =============================================================================
# Schemas
# =============================================================================

SeverityName = Literal["Warning", "Error", "Severe"]
ValueHostTypeName = Literal["Input", "Property", "Static"]


class ValidatorSchema(BaseModel):
    """One entry of value_hosts[].validators."""
    model_config = ConfigDict(extra="forbid")

    condition: Any = Field(..., description="Condition expression")
    enabler: Optional[Any] = Field(None, description="Validator runs only when this matches")
    error_code: Optional[str] = Field(None, min_length=1)
    severity: Optional[SeverityName] = None
    enabled: Optional[bool] = None
    error_message: Optional[str] = None
    error_message_l10n: Optional[str] = None
    summary_message: Optional[str] = None
    summary_message_l10n: Optional[str] = None

    @field_validator("condition")
    @classmethod
    def condition_not_empty(cls, value: Any) -> Any:
        if value is None or value == "" or value == {}:
            raise ValueError("condition must not be empty")
        return value


class ValueHostSchema(BaseModel):
    """One entry of value_hosts."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    type: ValueHostTypeName = "Input"
    data_type: Optional[str] = None
    label: Optional[str] = None
    label_l10n: Optional[str] = None
    initial_value: Any = None
    enabled: Optional[bool] = None
    group: Optional[Union[str, List[str]]] = None
    validators: List[ValidatorSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def static_has_no_validators(self) -> "ValueHostSchema":
        if self.type == "Static" and self.validators:
            raise ValueError(f"Static value host '{self.name}' cannot have validators")
        return self


class CustomConditionSchema(BaseModel):
    description: str = ""
    expression: Any


class ValidationConfigSchema(BaseModel):
    """Whole file."""
    custom_conditions: Dict[str, CustomConditionSchema] = Field(default_factory=dict)
    value_hosts: List[ValueHostSchema] = Field(default_factory=list)


# =============================================================================
# Loading
# =============================================================================

def _load_yaml(file_path: Path) -> Dict[str, Any]:
    if not file_path.exists():
        raise ConfigLoadError(str(file_path), "File not found")
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(str(file_path), f"YAML parse error: {e}")
    except OSError as e:
        raise ConfigLoadError(str(file_path), str(e))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(str(file_path), "top level must be a mapping")
    return data


def _format_errors(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    ]


def parse_validation_config(data: Mapping[str, Any]) -> ValidationConfigSchema:
    """
    Validate the shape of a configuration mapping.

    Raises:
        ConfigValidationError: If the mapping does not match the schema
    """
    try:
        return ValidationConfigSchema.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigValidationError(_format_errors(e))


def _to_validator_config(schema: ValidatorSchema, parser: ConditionExpressionParser, source: str) -> ValidatorConfig:
    return ValidatorConfig(
        condition_config=parser.parse(schema.condition, source),
        enabler_config=parser.parse(schema.enabler, source) if schema.enabler is not None else None,
        error_code=schema.error_code,
        severity=ValidationSeverity(schema.severity) if schema.severity else None,
        enabled=schema.enabled,
        error_message=schema.error_message,
        error_message_l10n=schema.error_message_l10n,
        summary_message=schema.summary_message,
        summary_message_l10n=schema.summary_message_l10n,
    )


def load_validation_config(
    source: Union[str, Path, Mapping[str, Any]],
    services: Optional["ValidationServices"] = None
) -> List[ValueHostConfig]:
    """
    Load ValueHostConfigs from a YAML file or an already parsed mapping.

    Args:
        source: Path to a YAML file, or its content as a mapping
        services: Supplies the ConditionRegistry used to check condition types

    Returns:
        ValueHostConfigs in file order

    Raises:
        ConfigLoadError: If the file cannot be read
        ConfigValidationError: If the content does not validate
        ExpressionParseError / UnknownConditionError: For bad condition expressions
        ValueHostNameConflictError: If a name appears twice
    """
    if services is None:
        from fieldrules.services import ValidationServices
        services = ValidationServices()

    if isinstance(source, Mapping):
        data = source
        source_name = "<mapping>"
    else:
        data = _load_yaml(Path(source))
        source_name = str(source)

    schema = parse_validation_config(data)
    parser = ConditionExpressionParser(
        services.condition_registry,
        {name: custom.model_dump() for name, custom in schema.custom_conditions.items()},
    )
    custom_errors = parser.validate_custom_conditions()
    if custom_errors:
        raise ConfigValidationError([
            f"custom_conditions.{name}: {error}"
            for name, errors in custom_errors.items()
            for error in errors
        ])

    configs: List[ValueHostConfig] = []
    seen = set()
    for value_host in schema.value_hosts:
        if value_host.name in seen:
            raise ValueHostNameConflictError(value_host.name)
        seen.add(value_host.name)
        configs.append(ValueHostConfig(
            name=value_host.name,
            value_host_type=ValueHostType(value_host.type),
            data_type=value_host.data_type,
            label=value_host.label,
            label_l10n=value_host.label_l10n,
            initial_value=value_host.initial_value,
            enabled=value_host.enabled,
            group=value_host.group,
            validator_configs=[
                _to_validator_config(validator, parser, f"{value_host.name}.validators[{index}]")
                for index, validator in enumerate(value_host.validators)
            ],
        ))

    logger.debug("Loaded %d value hosts from %s", len(configs), source_name)
    return configs


def load_validation_manager(
    source: Union[str, Path, Mapping[str, Any]],
    services: Optional["ValidationServices"] = None
) -> "ValidationManager":
    """Load a configuration and build a ValidationManager from it."""
    from fieldrules.manager import ValidationManager
    from fieldrules.services import ValidationServices

    services = services or ValidationServices()
    return ValidationManager(load_validation_config(source, services), services)


__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "ValidatorSchema",
    "ValueHostSchema",
    "CustomConditionSchema",
    "ValidationConfigSchema",
    "parse_validation_config",
    "load_validation_config",
    "load_validation_manager",
]
