"""
Condition Registry for the validation engine.

Maps a condition type name to a factory that builds a condition node from
its ConditionConfig. Each ValidationServices instance owns one registry;
there is no module-level registry.

Two registration styles:
- factories/classes taking a ConditionConfig (combinators, custom nodes)
- plain predicate functions fn(value, config) -> Optional[bool]
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from fieldrules.conditions.base import (
    Condition,
    ConditionBase,
    ConditionCategory,
    ConditionConfig,
    ConditionEvaluateResult,
    EvaluationResult,
    PendingEvaluation,
    ValueHostLike,
    ValueHostResolver,
    to_evaluate_result,
)
from fieldrules.errors import ConfigurationError


ConditionFactory = Callable[[ConditionConfig], Condition]
Predicate = Callable[[Any, ConditionConfig], Any]


class ConditionNotFoundError(ConfigurationError):
    """Raised when a condition type is not registered."""

    def __init__(self, condition_type: str, registry_name: str = ""):
        self.condition_type = condition_type
        self.registry_name = registry_name
        message = f"ConditionType not registered: '{condition_type}'"
        if registry_name:
            message += f" in registry '{registry_name}'"
        super().__init__(message)


class ConditionAlreadyRegisteredError(ConfigurationError):
    """Raised when trying to register a condition type that already exists."""

    def __init__(self, condition_type: str, registry_name: str = ""):
        self.condition_type = condition_type
        self.registry_name = registry_name
        message = f"Condition type '{condition_type}' already registered"
        if registry_name:
            message += f" in registry '{registry_name}'"
        super().__init__(message)


class InvalidConditionSignatureError(ConfigurationError):
    """Raised when a factory or predicate has an invalid signature."""

    def __init__(self, condition_type: str, reason: str):
        self.condition_type = condition_type
        self.reason = reason
        super().__init__(f"Invalid signature for condition '{condition_type}': {reason}")


@dataclass
class ConditionRegistration:
    """
    Metadata for a registered condition type.

    Attributes:
        condition_type: Unique name of the condition type
        factory: Builds a node from a ConditionConfig
        description: Human-readable description
        category: Default category of the nodes it builds (for documentation)
        is_predicate: Registered through predicate()
    """
    condition_type: str
    factory: ConditionFactory
    description: str = ""
    category: ConditionCategory = ConditionCategory.UNDETERMINED
    is_predicate: bool = False


class PredicateCondition(ConditionBase):
    """
    Leaf condition backed by a plain function.

    The function receives the value of the value host and the config.
    Returning True, False or None maps to Match, NoMatch, Undetermined.
    A coroutine function produces a PendingEvaluation.
    """

    def __init__(
        self,
        config: ConditionConfig,
        func: Predicate,
        default_category: ConditionCategory = ConditionCategory.COMPARISON
    ):
        super().__init__(config)
        self.func = func
        self.default_category = default_category

    def evaluate(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> EvaluationResult:
        value_host = self.ensure_value_host(value_host, resolver)
        if value_host is None:
            return ConditionEvaluateResult.UNDETERMINED

        outcome = self.func(value_host.get_value(), self.config)
        if inspect.isawaitable(outcome):
            return PendingEvaluation.from_awaitable(outcome, self.condition_type)
        return to_evaluate_result(outcome)


class ConditionRegistry:
    """
    Registry of condition types.

    Example:
        registry = ConditionRegistry("form")

        @registry.predicate("RequireText", category=ConditionCategory.REQUIRE)
        def require_text(value, config):
            if value is None:
                return False
            return bool(str(value).strip())

        node = registry.create(ConditionConfig("RequireText"))
    """

    def __init__(self, name: str = "conditions", allow_overwrite: bool = False):
        """
        Initialize a new condition registry.

        Args:
            name: Name of this registry (used in error messages)
            allow_overwrite: Whether to allow replacing a registered type
        """
        self.name = name
        self.allow_overwrite = allow_overwrite
        self._registrations: Dict[str, ConditionRegistration] = {}
        self._aliases: Dict[str, str] = {}
        self._categories: Dict[ConditionCategory, List[str]] = {}

    def register(
        self,
        condition_type: str,
        factory: ConditionFactory,
        description: str = "",
        category: ConditionCategory = ConditionCategory.UNDETERMINED
    ) -> None:
        """
        Register a factory (or node class) for a condition type.

        Raises:
            ConditionAlreadyRegisteredError: If the type already exists
            InvalidConditionSignatureError: If the factory does not take one argument
        """
        self._validate_signature(condition_type, factory, expected=1)
        if category is ConditionCategory.UNDETERMINED:
            category = getattr(factory, "default_category", category)
        self._add(ConditionRegistration(
            condition_type=condition_type,
            factory=factory,
            description=description or inspect.getdoc(factory) or "",
            category=category,
        ))

    def condition(
        self,
        condition_type: str,
        description: str = "",
        category: ConditionCategory = ConditionCategory.UNDETERMINED
    ) -> Callable[[ConditionFactory], ConditionFactory]:
        """
        Decorator for registering a node class or factory.

        Example:
            @registry.condition("AlwaysMatches")
            class AlwaysMatches(ConditionBase):
                def evaluate(self, value_host, resolver):
                    return ConditionEvaluateResult.MATCH
        """
        def decorator(factory: ConditionFactory) -> ConditionFactory:
            self.register(condition_type, factory, description, category)
            return factory

        return decorator

    def predicate(
        self,
        condition_type: str,
        description: str = "",
        category: ConditionCategory = ConditionCategory.COMPARISON
    ) -> Callable[[Predicate], Predicate]:
        """
        Decorator for registering a predicate function as a leaf condition.

        The function takes (value, config) and returns True, False or None.
        It may be declared with async def.
        """
        def decorator(func: Predicate) -> Predicate:
            self._validate_signature(condition_type, func, expected=2)

            def factory(config: ConditionConfig) -> Condition:
                return PredicateCondition(config, func, category)

            self._add(ConditionRegistration(
                condition_type=condition_type,
                factory=factory,
                description=description or inspect.getdoc(func) or "",
                category=category,
                is_predicate=True,
            ))
            func._condition_type = condition_type  # type: ignore
            return func

        return decorator

    def register_alias(self, alias: str, condition_type: str) -> None:
        """
        Make alias resolve to an already registered condition type.

        Raises:
            ConditionNotFoundError: If condition_type is not registered
            ConditionAlreadyRegisteredError: If alias is taken
        """
        target = self._resolve_name(condition_type)
        if target not in self._registrations:
            raise ConditionNotFoundError(condition_type, self.name)
        if (alias in self._registrations or alias in self._aliases) and not self.allow_overwrite:
            raise ConditionAlreadyRegisteredError(alias, self.name)
        self._aliases[alias] = target

    def _add(self, registration: ConditionRegistration) -> None:
        condition_type = registration.condition_type
        taken = condition_type in self._registrations or condition_type in self._aliases
        if taken and not self.allow_overwrite:
            raise ConditionAlreadyRegisteredError(condition_type, self.name)
        if condition_type in self._registrations:
            self.unregister(condition_type)
        self._aliases.pop(condition_type, None)

        self._registrations[condition_type] = registration
        names = self._categories.setdefault(registration.category, [])
        if condition_type not in names:
            names.append(condition_type)

    def _validate_signature(self, condition_type: str, func: Callable, expected: int) -> None:
        if not callable(func):
            raise InvalidConditionSignatureError(condition_type, "factory is not callable")
        try:
            sig = inspect.signature(func)
        except (TypeError, ValueError):
            return
        required = [
            p for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
            and p.default is p.empty
        ]
        accepts_varargs = any(p.kind == p.VAR_POSITIONAL for p in sig.parameters.values())
        if len(required) > expected or (len(required) < expected and not accepts_varargs
                                        and len(sig.parameters) < expected):
            raise InvalidConditionSignatureError(
                condition_type,
                f"must accept exactly {expected} positional parameter(s), got {len(required)}"
            )

    def _resolve_name(self, condition_type: str) -> str:
        return self._aliases.get(condition_type, condition_type)

    def unregister(self, condition_type: str) -> bool:
        """
        Remove a condition type (aliases pointing at it are removed too).

        Returns:
            True if it was removed, False if it didn't exist
        """
        if condition_type in self._aliases:
            del self._aliases[condition_type]
            return True
        registration = self._registrations.pop(condition_type, None)
        if registration is None:
            return False

        names = self._categories.get(registration.category, [])
        if condition_type in names:
            names.remove(condition_type)
            if not names:
                del self._categories[registration.category]
        for alias in [a for a, target in self._aliases.items() if target == condition_type]:
            del self._aliases[alias]
        return True

    def create(self, config: ConditionConfig) -> Condition:
        """
        Build a condition node from its config.

        Raises:
            ConfigurationError: If config has no condition_type
            ConditionNotFoundError: If condition_type is not registered
        """
        if config is None or not config.condition_type:
            raise ConfigurationError("condition_type property not assigned")
        registration = self._registrations.get(self._resolve_name(config.condition_type))
        if registration is None:
            raise ConditionNotFoundError(config.condition_type, self.name)
        return registration.factory(config)

    def get(self, condition_type: str) -> Optional[ConditionRegistration]:
        """Get the registration for a type (aliases resolved)."""
        return self._registrations.get(self._resolve_name(condition_type))

    def is_registered(self, condition_type: str) -> bool:
        """Check if a condition type (or alias) exists."""
        return self._resolve_name(condition_type) in self._registrations

    has = is_registered

    def list_all(self) -> List[str]:
        """List all registered condition types (aliases excluded)."""
        return list(self._registrations.keys())

    def list_aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def list_by_category(self, category: ConditionCategory) -> List[str]:
        """List condition types whose nodes default to a category."""
        return list(self._categories.get(category, []))

    def get_documentation(self) -> str:
        """
        Generate documentation for all condition types in the registry.

        Returns:
            Markdown-formatted documentation string
        """
        lines = [f"# {self.name.replace('_', ' ').title()} Conditions\n"]
        lines.append(f"Total condition types: {len(self._registrations)}\n")

        for category in sorted(self._categories.keys(), key=lambda c: c.value):
            lines.append(f"\n## {category.value}\n")
            for condition_type in sorted(self._categories[category]):
                registration = self._registrations[condition_type]
                lines.append(f"### `{condition_type}`")
                if registration.description:
                    lines.append(f"\n{registration.description}")
                aliases = sorted(a for a, t in self._aliases.items() if t == condition_type)
                if aliases:
                    lines.append(f"\n**Aliases:** {', '.join(aliases)}")
                lines.append("")

        return "\n".join(lines)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the registry.

        Returns:
            Dictionary with condition type and category counts
        """
        return {
            "name": self.name,
            "total_conditions": len(self._registrations),
            "total_aliases": len(self._aliases),
            "total_predicates": sum(1 for r in self._registrations.values() if r.is_predicate),
            "conditions_by_category": {
                cat.value: len(names) for cat, names in self._categories.items()
            },
        }

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, condition_type: str) -> bool:
        return self.is_registered(condition_type)

    def __repr__(self) -> str:
        return (
            f"ConditionRegistry(name={self.name!r}, "
            f"conditions={len(self._registrations)}, "
            f"aliases={len(self._aliases)})"
        )


__all__ = [
    "ConditionRegistry",
    "ConditionRegistration",
    "PredicateCondition",
    "ConditionFactory",
    "Predicate",
    "ConditionNotFoundError",
    "ConditionAlreadyRegisteredError",
    "InvalidConditionSignatureError",
]
