"""
ValidationServices: the shared collaborators of one ValidationManager.

Holds the condition registry, the logging sink, text lookup, token
resolution, fluent builder steps and the merge services. There are no
module-level singletons; every manager gets the services it is given.
"""

from typing import Optional, TYPE_CHECKING

from fieldrules.conditions import ConditionRegistry, create_condition_registry
from fieldrules.logger import StructuredLogger, create_logger
from fieldrules.messages import DictTextLocalizer, MessageTokenResolver, TextLocalizer

if TYPE_CHECKING:
    from fieldrules.builder.fluent import FluentStepRegistry
    from fieldrules.merge.merge_service import ValueHostConfigMergeService


class ValidationServices:
    """
    Services used by value hosts, validators and conditions.

    Example:
        services = ValidationServices()

        @services.condition_registry.predicate("RequireText", category=ConditionCategory.REQUIRE)
        def require_text(value, config):
            return bool(value)
    """

    def __init__(
        self,
        condition_registry: Optional[ConditionRegistry] = None,
        logger: Optional[StructuredLogger] = None,
        text_localizer: Optional[TextLocalizer] = None,
        message_token_resolver: Optional[MessageTokenResolver] = None,
        fluent_steps: Optional["FluentStepRegistry"] = None
    ):
        self.condition_registry = condition_registry or create_condition_registry()
        self.logger = logger or create_logger()
        self.text_localizer = text_localizer or DictTextLocalizer()
        self.message_token_resolver = message_token_resolver or MessageTokenResolver()
        self._fluent_steps = fluent_steps
        self._merge_service: Optional["ValueHostConfigMergeService"] = None

    @property
    def fluent_steps(self) -> "FluentStepRegistry":
        if self._fluent_steps is None:
            from fieldrules.builder.fluent import create_fluent_step_registry
            self._fluent_steps = create_fluent_step_registry()
        return self._fluent_steps

    @property
    def merge_service(self) -> "ValueHostConfigMergeService":
        if self._merge_service is None:
            from fieldrules.merge.merge_service import (
                ValidatorConfigMergeService,
                ValueHostConfigMergeService,
            )
            self._merge_service = ValueHostConfigMergeService(
                self.logger,
                ValidatorConfigMergeService(self.logger, self.condition_registry),
            )
        return self._merge_service

    def __repr__(self) -> str:
        return f"ValidationServices(conditions={len(self.condition_registry)})"


__all__ = ["ValidationServices"]
