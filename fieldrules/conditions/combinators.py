"""
Combinator conditions: Not, All, Any, CountMatches, When.

Combinators build their children from ConditionConfigs the first time they
are evaluated and keep them until dispose(). Children must answer
synchronously; a pending child is a configuration error. Only the
validator layer manages asynchronous results.

Config helpers (all_match, any_match, ...) build the ConditionConfigs.
"""

import inspect
from typing import Any, Dict, List, Optional, Set

from fieldrules.conditions.base import (
    Condition,
    ConditionBase,
    ConditionCategory,
    ConditionConfig,
    ConditionEvaluateResult,
    EvaluationResult,
    ErrorResponseCondition,
    LazyCell,
    PendingEvaluation,
    ValueHostLike,
    ValueHostResolver,
)
from fieldrules.errors import PendingChildError
from fieldrules.logger import LoggingCategory


NOT_TYPE = "Not"
ALL_MATCH_TYPE = "All"
ANY_MATCH_TYPE = "Any"
COUNT_MATCHES_TYPE = "CountMatches"
WHEN_TYPE = "When"

UNKNOWN_CONDITION_TYPE = "Unknown"


# =============================================================================
# Shared behaviour
# =============================================================================

class CombinatorBase(ConditionBase):
    """Base for conditions that own child conditions."""

    default_category = ConditionCategory.CHILDREN

    def evaluate_child(
        self,
        child: Condition,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> ConditionEvaluateResult:
        """Evaluate a child, rejecting pending results."""
        result = child.evaluate(value_host, resolver)
        if isinstance(result, PendingEvaluation):
            result.cancel()
            raise PendingChildError(self.condition_type, child)
        if inspect.isawaitable(result):
            close = getattr(result, "close", None)
            if close is not None:
                close()
            raise PendingChildError(self.condition_type, child)
        return result

    def children(self) -> List[Condition]:
        """Children built so far (empty before the first evaluation)."""
        return []

    def gather_value_host_names(self, collection: Set[str], resolver: ValueHostResolver) -> None:
        super().gather_value_host_names(collection, resolver)
        for child in self.resolved_children(resolver):
            gather = getattr(child, "gather_value_host_names", None)
            if gather is not None:
                gather(collection, resolver)

    def resolved_children(self, resolver: ValueHostResolver) -> List[Condition]:
        return self.children()

    def dispose(self) -> None:
        for child in self.children():
            dispose = getattr(child, "dispose", None)
            if dispose is not None:
                dispose()


class ConditionWithOneChildBase(CombinatorBase):
    """Combinator with a single child stored in params["condition"]."""

    def __init__(self, config: ConditionConfig):
        super().__init__(config)
        self._child: LazyCell[Condition] = LazyCell(self._build_child)

    def _build_child(self, resolver: ValueHostResolver) -> Condition:
        child_config = self.config.get("condition")
        if not isinstance(child_config, ConditionConfig):
            message = f"{self.condition_type}: condition must be assigned to a ConditionConfig"
            self.log_problem(resolver, message)
            return ErrorResponseCondition(self.config, message)
        return self.create_child(resolver, child_config)

    def child(self, resolver: ValueHostResolver) -> Condition:
        return self._child.get(resolver)

    def children(self) -> List[Condition]:
        child = self._child.peek()
        return [child] if child is not None else []

    def resolved_children(self, resolver: ValueHostResolver) -> List[Condition]:
        return [self.child(resolver)]

    def dispose(self) -> None:
        super().dispose()
        self._child.reset()


class ConditionWithChildrenBase(CombinatorBase):
    """
    Combinator over params["conditions"].

    A child result of UNDETERMINED is remapped through
    params["treat_undetermined_as"] (default: stays UNDETERMINED).
    """

    def __init__(self, config: ConditionConfig):
        super().__init__(config)
        self._children: LazyCell[List[Condition]] = LazyCell(self._build_children)

    def _build_children(self, resolver: ValueHostResolver) -> List[Condition]:
        return [
            self.create_child(resolver, child_config)
            for child_config in self.config.get("conditions") or ()
        ]

    @property
    def treat_undetermined_as(self) -> ConditionEvaluateResult:
        value = self.config.get("treat_undetermined_as")
        if value is None:
            return ConditionEvaluateResult.UNDETERMINED
        return ConditionEvaluateResult(value)

    def children(self) -> List[Condition]:
        return list(self._children.peek() or [])

    def resolved_children(self, resolver: ValueHostResolver) -> List[Condition]:
        return self._children.get(resolver)

    def evaluate_children(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ):
        """Yield each child's result after the undetermined remap."""
        for child in self._children.get(resolver):
            result = self.evaluate_child(child, value_host, resolver)
            if result is ConditionEvaluateResult.UNDETERMINED:
                result = self.treat_undetermined_as
            yield result

    def dispose(self) -> None:
        super().dispose()
        self._children.reset()


# =============================================================================
# Concrete combinators
# =============================================================================

class NotCondition(ConditionWithOneChildBase):
    """Inverts its child. UNDETERMINED stays UNDETERMINED."""

    def evaluate(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> EvaluationResult:
        result = self.evaluate_child(self.child(resolver), value_host, resolver)
        return result.invert()


class AllMatchCondition(ConditionWithChildrenBase):
    """
    MATCH when every child matches.

    Children are evaluated in order; the first NO_MATCH or UNDETERMINED
    decides the result. No children means UNDETERMINED.
    """

    def evaluate(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> EvaluationResult:
        if not self._children.get(resolver):
            return ConditionEvaluateResult.UNDETERMINED
        for result in self.evaluate_children(value_host, resolver):
            if result is not ConditionEvaluateResult.MATCH:
                return result
        return ConditionEvaluateResult.MATCH


class CountMatchesCondition(ConditionWithChildrenBase):
    """
    MATCH when the number of matching children lies in [minimum, maximum].

    params:
        minimum: default 1
        maximum: unbounded when absent
    Any UNDETERMINED child (after the remap) makes the result UNDETERMINED.
    """

    @property
    def minimum(self) -> int:
        value = self.config.get("minimum")
        return 1 if value is None else int(value)

    @property
    def maximum(self) -> Optional[int]:
        value = self.config.get("maximum")
        return None if value is None else int(value)

    def in_range(self, count: int) -> bool:
        if count < self.minimum:
            return False
        return self.maximum is None or count <= self.maximum

    def evaluate(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> EvaluationResult:
        if not self._children.get(resolver):
            return ConditionEvaluateResult.UNDETERMINED
        count = 0
        for result in self.evaluate_children(value_host, resolver):
            if result is ConditionEvaluateResult.UNDETERMINED:
                return result
            if result is ConditionEvaluateResult.MATCH:
                count += 1
        if self.in_range(count):
            return ConditionEvaluateResult.MATCH
        return ConditionEvaluateResult.NO_MATCH

    def get_values_for_tokens(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> Dict[str, Any]:
        return {"Minimum": self.minimum, "Maximum": self.maximum}


class AnyMatchCondition(CountMatchesCondition):
    """MATCH when at least one child matches. No children means UNDETERMINED."""

    @property
    def minimum(self) -> int:
        return 1

    @property
    def maximum(self) -> Optional[int]:
        return None

    def get_values_for_tokens(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> Dict[str, Any]:
        return {}


class WhenCondition(CombinatorBase):
    """
    Evaluates params["condition"] only when params["enabler"] matches.

    The enabler is evaluated without a value host; it names its own through
    value_host_name. When the enabler does not match the result is
    UNDETERMINED and the child is not evaluated.

    condition_type reports the child's type so validators built on When
    expose the child's error code.
    """

    def __init__(self, config: ConditionConfig):
        super().__init__(config)
        self._enabler: LazyCell[Condition] = LazyCell(self._build_enabler)
        self._child: LazyCell[Condition] = LazyCell(self._build_child)

    @property
    def condition_type(self) -> str:
        child_config = self.config.get("condition")
        if isinstance(child_config, ConditionConfig) and child_config.condition_type:
            return child_config.condition_type
        return UNKNOWN_CONDITION_TYPE

    def _build_enabler(self, resolver: ValueHostResolver) -> Condition:
        return self._build_from("enabler", resolver)

    def _build_child(self, resolver: ValueHostResolver) -> Condition:
        return self._build_from("condition", resolver)

    def _build_from(self, key: str, resolver: ValueHostResolver) -> Condition:
        child_config = self.config.get(key)
        if not isinstance(child_config, ConditionConfig):
            message = f"When: {key} must be assigned to a ConditionConfig"
            self.log_problem(resolver, message)
            return ErrorResponseCondition(self.config, message)
        return self.create_child(resolver, child_config)

    def extract_conditions(self, resolver: ValueHostResolver) -> Dict[str, Condition]:
        """The enabler and child for callers that drive them separately."""
        return {
            "enabler": self._enabler.get(resolver),
            "child": self._child.get(resolver),
        }

    def evaluate(
        self,
        value_host: Optional[ValueHostLike],
        resolver: ValueHostResolver
    ) -> EvaluationResult:
        enabler_result = self.evaluate_child(self._enabler.get(resolver), None, resolver)
        if enabler_result is not ConditionEvaluateResult.MATCH:
            self.log_problem(
                resolver,
                "WhenCondition enabler condition did not match. Child condition not evaluated.",
                level="DEBUG",
                category=LoggingCategory.VALIDATION,
            )
            return ConditionEvaluateResult.UNDETERMINED
        return self.evaluate_child(self._child.get(resolver), value_host, resolver)

    def children(self) -> List[Condition]:
        return [c for c in (self._enabler.peek(), self._child.peek()) if c is not None]

    def resolved_children(self, resolver: ValueHostResolver) -> List[Condition]:
        conditions = self.extract_conditions(resolver)
        return [conditions["enabler"], conditions["child"]]

    def dispose(self) -> None:
        super().dispose()
        self._enabler.reset()
        self._child.reset()


# =============================================================================
# Config helpers
# =============================================================================

def _combinator_config(
    condition_type: str,
    category: Optional[ConditionCategory],
    **params: Any
) -> ConditionConfig:
    return ConditionConfig(
        condition_type=condition_type,
        category=category,
        params={k: v for k, v in params.items() if v is not None},
    )


def not_condition(
    condition: ConditionConfig,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    return _combinator_config(NOT_TYPE, category, condition=condition)


def all_match(
    *conditions: ConditionConfig,
    treat_undetermined_as: Optional[ConditionEvaluateResult] = None,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    return _combinator_config(
        ALL_MATCH_TYPE, category,
        conditions=list(conditions),
        treat_undetermined_as=treat_undetermined_as,
    )


def any_match(
    *conditions: ConditionConfig,
    treat_undetermined_as: Optional[ConditionEvaluateResult] = None,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    return _combinator_config(
        ANY_MATCH_TYPE, category,
        conditions=list(conditions),
        treat_undetermined_as=treat_undetermined_as,
    )


def count_matches(
    *conditions: ConditionConfig,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
    treat_undetermined_as: Optional[ConditionEvaluateResult] = None,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    return _combinator_config(
        COUNT_MATCHES_TYPE, category,
        conditions=list(conditions),
        minimum=minimum,
        maximum=maximum,
        treat_undetermined_as=treat_undetermined_as,
    )


def when_condition(
    enabler: ConditionConfig,
    condition: ConditionConfig,
    category: Optional[ConditionCategory] = None
) -> ConditionConfig:
    return _combinator_config(WHEN_TYPE, category, enabler=enabler, condition=condition)


def register_combinators(registry) -> None:
    """Register Not, All, Any, CountMatches and When on a ConditionRegistry."""
    registry.register(NOT_TYPE, NotCondition, "Inverts a single child condition.")
    registry.register(ALL_MATCH_TYPE, AllMatchCondition, "Matches when all children match.")
    registry.register(ANY_MATCH_TYPE, AnyMatchCondition, "Matches when any child matches.")
    registry.register(
        COUNT_MATCHES_TYPE, CountMatchesCondition,
        "Matches when the number of matching children is within minimum and maximum.",
    )
    registry.register(
        WHEN_TYPE, WhenCondition,
        "Evaluates its child only when its enabler matches.",
    )


__all__ = [
    "NOT_TYPE",
    "ALL_MATCH_TYPE",
    "ANY_MATCH_TYPE",
    "COUNT_MATCHES_TYPE",
    "WHEN_TYPE",
    "UNKNOWN_CONDITION_TYPE",
    "CombinatorBase",
    "ConditionWithOneChildBase",
    "ConditionWithChildrenBase",
    "NotCondition",
    "AllMatchCondition",
    "AnyMatchCondition",
    "CountMatchesCondition",
    "WhenCondition",
    "not_condition",
    "all_match",
    "any_match",
    "count_matches",
    "when_condition",
    "register_combinators",
]
