"""
Core types for tri-state conditions.

This module defines the values every condition works with:
- ConditionEvaluateResult: Match / NoMatch / Undetermined
- ConditionCategory: used to order validators
- ConditionConfig: immutable description of a condition tree
- PendingEvaluation: handle for a condition that resolves later
- ConditionBase: base class for condition nodes
- protocols for value hosts and the resolver that locates them
"""

import asyncio
import dataclasses
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, Awaitable, Callable, Dict, Generic, Iterable, List, Optional,
    Protocol, Set, TypeVar, Union, runtime_checkable
)

from fieldrules.logger import LoggingCategory, LoggingLevel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConditionEvaluateResult(str, Enum):
    """Result of evaluating a condition."""
    UNDETERMINED = "Undetermined"
    MATCH = "Match"
    NO_MATCH = "NoMatch"

    def invert(self) -> "ConditionEvaluateResult":
        """Swap Match and NoMatch. Undetermined stays Undetermined."""
        if self is ConditionEvaluateResult.MATCH:
            return ConditionEvaluateResult.NO_MATCH
        if self is ConditionEvaluateResult.NO_MATCH:
            return ConditionEvaluateResult.MATCH
        return self


class ConditionCategory(str, Enum):
    """
    Purpose of a condition.

    Validators run in category order: REQUIRE first, DATA_TYPE_CHECK second,
    everything else in declaration order.
    """
    REQUIRE = "Require"
    DATA_TYPE_CHECK = "DataTypeCheck"
    COMPARISON = "Comparison"
    CHILDREN = "Children"
    UNDETERMINED = "Undetermined"


def to_evaluate_result(value: Any) -> ConditionEvaluateResult:
    """
    Coerce a predicate outcome into a ConditionEvaluateResult.

    True -> MATCH, False -> NO_MATCH, None -> UNDETERMINED.
    """
    if isinstance(value, ConditionEvaluateResult):
        return value
    if value is None:
        return ConditionEvaluateResult.UNDETERMINED
    if isinstance(value, bool):
        return ConditionEvaluateResult.MATCH if value else ConditionEvaluateResult.NO_MATCH
    raise TypeError(
        f"Condition returned {type(value).__name__}, expected bool, None "
        f"or ConditionEvaluateResult"
    )


# =============================================================================
# ConditionConfig
# =============================================================================

@dataclass(frozen=True)
class ConditionConfig:
    """
    Immutable description of a condition.

    Child conditions live in params:
    - "conditions": list of ConditionConfig (All, Any, CountMatches)
    - "condition": single ConditionConfig (Not, When)
    - "enabler": ConditionConfig (When)

    Attributes:
        condition_type: Key in the ConditionRegistry
        category: Overrides the node's default category
        value_host_name: Value host to evaluate when none is supplied
        params: Type specific parameters
    """
    condition_type: str
    category: Optional[ConditionCategory] = None
    value_host_name: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a type specific parameter."""
        return self.params.get(key, default)

    def replace(self, **changes: Any) -> "ConditionConfig":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def with_params(self, **params: Any) -> "ConditionConfig":
        """Return a copy with params updated."""
        merged = dict(self.params)
        merged.update(params)
        return dataclasses.replace(self, params=merged)

    def child_configs(self) -> List["ConditionConfig"]:
        """All directly nested ConditionConfigs, enabler first."""
        children = []
        enabler = self.params.get("enabler")
        if isinstance(enabler, ConditionConfig):
            children.append(enabler)
        child = self.params.get("condition")
        if isinstance(child, ConditionConfig):
            children.append(child)
        for item in self.params.get("conditions") or ():
            if isinstance(item, ConditionConfig):
                children.append(item)
        return children

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (child configs included)."""
        def convert(value: Any) -> Any:
            if isinstance(value, ConditionConfig):
                return value.to_dict()
            if isinstance(value, (list, tuple)):
                return [convert(item) for item in value]
            if isinstance(value, Enum):
                return value.value
            return value

        result: Dict[str, Any] = {"condition_type": self.condition_type}
        if self.category is not None:
            result["category"] = self.category.value
        if self.value_host_name is not None:
            result["value_host_name"] = self.value_host_name
        for key, value in self.params.items():
            result[key] = convert(value)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionConfig":
        """Build from a dictionary produced by to_dict()."""
        data = dict(data)
        condition_type = data.pop("condition_type")
        category = data.pop("category", None)
        value_host_name = data.pop("value_host_name", None)

        params: Dict[str, Any] = {}
        for key, value in data.items():
            if key in ("condition", "enabler") and isinstance(value, dict):
                params[key] = cls.from_dict(value)
            elif key == "conditions" and isinstance(value, list):
                params[key] = [cls.from_dict(item) for item in value]
            elif key == "treat_undetermined_as" and value is not None:
                params[key] = ConditionEvaluateResult(value)
            else:
                params[key] = value

        return cls(
            condition_type=condition_type,
            category=ConditionCategory(category) if category else None,
            value_host_name=value_host_name,
            params=params,
        )


# =============================================================================
# Value host access
# =============================================================================

@runtime_checkable
class ValueHostLike(Protocol):
    """What a condition needs from a value host."""

    @property
    def name(self) -> str:
        ...

    def get_value(self) -> Any:
        ...

    def get_label(self) -> str:
        ...


@runtime_checkable
class ValueHostResolver(Protocol):
    """
    Locates value hosts by name and exposes shared services.

    ValidationManager implements this protocol.
    """

    @property
    def services(self) -> Any:
        ...

    def get_value_host(self, name: str) -> Optional[ValueHostLike]:
        ...


# =============================================================================
# Pending evaluation
# =============================================================================

class PendingEvaluation:
    """
    A condition result that is not available yet.

    Wraps an asyncio.Future whose result is a ConditionEvaluateResult.
    Combinators reject it; the validator orchestrator tracks it until it
    settles.
    """

    def __init__(self, future: "asyncio.Future[ConditionEvaluateResult]", source: str = ""):
        self.future = future
        self.source = source

    @classmethod
    def from_awaitable(
        cls,
        awaitable: Awaitable[Any],
        source: str = ""
    ) -> "PendingEvaluation":
        """
        Schedule an awaitable on the running loop.

        Its outcome is coerced with to_evaluate_result().
        """
        async def settle() -> ConditionEvaluateResult:
            return to_evaluate_result(await awaitable)

        return cls(asyncio.ensure_future(settle()), source)

    def add_done_callback(self, callback: Callable[["PendingEvaluation"], None]) -> None:
        self.future.add_done_callback(lambda _future: callback(self))

    def done(self) -> bool:
        return self.future.done()

    def cancelled(self) -> bool:
        return self.future.cancelled()

    def cancel(self) -> bool:
        return self.future.cancel()

    def result(self) -> ConditionEvaluateResult:
        return to_evaluate_result(self.future.result())

    def exception(self) -> Optional[BaseException]:
        return self.future.exception()

    def __await__(self):
        return self.future.__await__()

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"PendingEvaluation(source={self.source!r}, {state})"


EvaluationResult = Union[ConditionEvaluateResult, PendingEvaluation]


def is_pending(result: Any) -> bool:
    """True when a condition returned something that resolves later."""
    return isinstance(result, PendingEvaluation) or inspect.isawaitable(result)


# =============================================================================
# Capabilities
# =============================================================================

@runtime_checkable
class Condition(Protocol):
    """Anything the registry can hand out as a condition node."""

    @property
    def condition_type(self) -> str:
        ...

    @property
    def category(self) -> ConditionCategory:
        ...

    def evaluate(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> EvaluationResult:
        ...


@runtime_checkable
class GathersValueHostNames(Protocol):
    """Condition that can list the value hosts it reads."""

    def gather_value_host_names(self, collection: Set[str], resolver: ValueHostResolver) -> None:
        ...


@runtime_checkable
class DisposableCondition(Protocol):
    """Condition that holds resources (cached children)."""

    def dispose(self) -> None:
        ...


@runtime_checkable
class SuppliesTokens(Protocol):
    """Condition that offers values for message tokens such as {Minimum}."""

    def get_values_for_tokens(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> Dict[str, Any]:
        ...


class LazyCell(Generic[T]):
    """
    Value computed by a factory on first access and cached until reset().

    Arguments given to get() are forwarded to the factory on the first call
    only.
    """

    _UNSET = object()

    def __init__(self, factory: Callable[..., T]):
        self._factory = factory
        self._value: Any = self._UNSET

    @property
    def is_set(self) -> bool:
        return self._value is not self._UNSET

    def get(self, *args: Any) -> T:
        if self._value is self._UNSET:
            self._value = self._factory(*args)
        return self._value

    def peek(self) -> Optional[T]:
        """Cached value or None, without calling the factory."""
        return None if self._value is self._UNSET else self._value

    def reset(self) -> None:
        self._value = self._UNSET


# =============================================================================
# ConditionBase
# =============================================================================

class ConditionBase:
    """
    Base class for condition nodes built by the ConditionRegistry.

    Subclasses implement evaluate(). Leaf conditions must return
    UNDETERMINED for missing or wrong-shaped input instead of raising.
    """

    default_category: ConditionCategory = ConditionCategory.UNDETERMINED

    def __init__(self, config: ConditionConfig):
        self.config = config

    @property
    def condition_type(self) -> str:
        return self.config.condition_type

    @property
    def category(self) -> ConditionCategory:
        return self.config.category or self.default_category

    def evaluate(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> EvaluationResult:
        raise NotImplementedError

    def ensure_value_host(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> Optional[ValueHostLike]:
        """Prefer config.value_host_name over the value host passed in."""
        if self.config.value_host_name:
            found = resolver.get_value_host(self.config.value_host_name)
            if found is None:
                self.log_problem(
                    resolver,
                    f"ValueHost '{self.config.value_host_name}' not found",
                )
            return found
        return value_host

    def gather_value_host_names(self, collection: Set[str], resolver: ValueHostResolver) -> None:
        if self.config.value_host_name:
            collection.add(self.config.value_host_name)

    def get_values_for_tokens(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> Dict[str, Any]:
        return {}

    def dispose(self) -> None:
        pass

    def create_child(self, resolver: ValueHostResolver, config: ConditionConfig) -> Condition:
        """Build a child node through the resolver's condition registry."""
        return resolver.services.condition_registry.create(config)

    def log_problem(
        self,
        resolver: Optional[ValueHostResolver],
        message: str,
        level: str = "ERROR",
        category: LoggingCategory = LoggingCategory.CONFIGURATION
    ) -> None:
        """Report through the resolver's logger, or the module logger without one."""
        services = getattr(resolver, "services", None)
        sink = getattr(services, "logger", None)
        if sink is None:
            logger.log(int(LoggingLevel.from_name(level)), "%s (%s)", message, self.condition_type)
            return
        sink.log(message, LoggingLevel.from_name(level), category, type(self).__name__)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(condition_type={self.condition_type!r})"


class ErrorResponseCondition(ConditionBase):
    """
    Stand-in for a child condition that could not be configured.

    Logs the problem every time it is evaluated and returns UNDETERMINED.
    """

    def __init__(self, config: ConditionConfig, message: str):
        super().__init__(config)
        self.message = message

    def evaluate(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> EvaluationResult:
        self.log_problem(resolver, self.message)
        return ConditionEvaluateResult.UNDETERMINED


def walk_configs(config: ConditionConfig) -> Iterable[ConditionConfig]:
    """Yield config and every nested ConditionConfig, depth first."""
    yield config
    for child in config.child_configs():
        yield from walk_configs(child)


__all__ = [
    "ConditionEvaluateResult",
    "ConditionCategory",
    "ConditionConfig",
    "ValueHostLike",
    "ValueHostResolver",
    "PendingEvaluation",
    "EvaluationResult",
    "Condition",
    "GathersValueHostNames",
    "DisposableCondition",
    "SuppliesTokens",
    "LazyCell",
    "ConditionBase",
    "ErrorResponseCondition",
    "to_evaluate_result",
    "is_pending",
    "walk_configs",
]
