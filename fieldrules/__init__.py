"""
fieldrules: tri-state business rule validation for forms and models.

Usage:
    from fieldrules import (
        ConditionCategory, ValidationManager, ValidationManagerConfigBuilder,
        ValidationServices,
    )

    services = ValidationServices()

    @services.condition_registry.predicate("RequireText", category=ConditionCategory.REQUIRE)
    def require_text(value, config):
        return value is not None and bool(str(value).strip())

    builder = ValidationManagerConfigBuilder(services)
    builder.input("name", label="Name").require_text(error_message="{Label} is required")
    manager = ValidationManager(builder, services)

    manager.set_value("name", "")
    result = manager.validate()
    result.is_valid          # False
    result.issues_found[0].error_message   # "Name is required"
"""

from fieldrules.builder import (
    FluentConditionBuilder,
    FluentStepRegistry,
    FluentValidatorBuilder,
    ValidationManagerConfigBuilder,
    ValidationManagerConfigModifier,
)
from fieldrules.conditions import (
    ConditionCategory,
    ConditionConfig,
    ConditionEvaluateResult,
    ConditionRegistry,
    PendingEvaluation,
    all_match,
    any_match,
    count_matches,
    create_condition_registry,
    not_condition,
    when_condition,
)
from fieldrules.config_loader import (
    ConfigLoadError,
    ConfigValidationError,
    load_validation_config,
    load_validation_manager,
)
from fieldrules.errors import (
    ConfigurationError,
    DuplicateErrorCodeError,
    PendingChildError,
    ValidatorConfigError,
    ValidatorNotFoundError,
    ValueHostNameConflictError,
    ValueHostNotFoundError,
)
from fieldrules.logger import LoggingCategory, LoggingLevel, StructuredLogger, create_logger
from fieldrules.manager import ValidationManager, ValidationManagerResult
from fieldrules.merge import MergeStrategy, PropertyConflictRule, combine_conditions
from fieldrules.messages import DictTextLocalizer, MessageTokenResolver, TextLocalizer
from fieldrules.services import ValidationServices
from fieldrules.validation import (
    BusinessLogicError,
    IssueFound,
    ValidateOptions,
    ValidationSeverity,
    ValidationStatus,
    Validator,
    ValidatorConfig,
    ValidatorOrchestrator,
    ValueHost,
    ValueHostConfig,
    ValueHostType,
    ValueHostValidateResult,
    resolve_error_code,
)

__version__ = "0.1.0"

__all__ = [
    # Builders
    "FluentConditionBuilder",
    "FluentStepRegistry",
    "FluentValidatorBuilder",
    "ValidationManagerConfigBuilder",
    "ValidationManagerConfigModifier",
    # Conditions
    "ConditionCategory",
    "ConditionConfig",
    "ConditionEvaluateResult",
    "ConditionRegistry",
    "PendingEvaluation",
    "all_match",
    "any_match",
    "count_matches",
    "create_condition_registry",
    "not_condition",
    "when_condition",
    # YAML
    "ConfigLoadError",
    "ConfigValidationError",
    "load_validation_config",
    "load_validation_manager",
    # Errors
    "ConfigurationError",
    "DuplicateErrorCodeError",
    "PendingChildError",
    "ValidatorConfigError",
    "ValidatorNotFoundError",
    "ValueHostNameConflictError",
    "ValueHostNotFoundError",
    # Logging
    "LoggingCategory",
    "LoggingLevel",
    "StructuredLogger",
    "create_logger",
    # Runtime
    "ValidationManager",
    "ValidationManagerResult",
    "ValidationServices",
    "MergeStrategy",
    "PropertyConflictRule",
    "combine_conditions",
    "DictTextLocalizer",
    "MessageTokenResolver",
    "TextLocalizer",
    # Validation
    "BusinessLogicError",
    "IssueFound",
    "ValidateOptions",
    "ValidationSeverity",
    "ValidationStatus",
    "Validator",
    "ValidatorConfig",
    "ValidatorOrchestrator",
    "ValueHost",
    "ValueHostConfig",
    "ValueHostType",
    "ValueHostValidateResult",
    "resolve_error_code",
]
