"""
Tri-state conditions for fieldrules.

This package provides:
- ConditionConfig / ConditionEvaluateResult / ConditionCategory (base.py)
- ConditionRegistry for condition types (registry.py)
- Not, All, Any, CountMatches, When combinators (combinators.py)
- ConditionExpressionParser for declarative trees (expression_parser.py)

Usage:
    from fieldrules.conditions import create_condition_registry, ConditionConfig

    registry = create_condition_registry()

    @registry.predicate("RequireText", category=ConditionCategory.REQUIRE)
    def require_text(value, config):
        return value is not None and bool(str(value).strip())
"""

from fieldrules.conditions.base import (
    Condition,
    ConditionBase,
    ConditionCategory,
    ConditionConfig,
    ConditionEvaluateResult,
    DisposableCondition,
    ErrorResponseCondition,
    EvaluationResult,
    GathersValueHostNames,
    LazyCell,
    PendingEvaluation,
    SuppliesTokens,
    ValueHostLike,
    ValueHostResolver,
    is_pending,
    to_evaluate_result,
    walk_configs,
)
from fieldrules.conditions.combinators import (
    ALL_MATCH_TYPE,
    ANY_MATCH_TYPE,
    COUNT_MATCHES_TYPE,
    NOT_TYPE,
    UNKNOWN_CONDITION_TYPE,
    WHEN_TYPE,
    AllMatchCondition,
    AnyMatchCondition,
    CountMatchesCondition,
    NotCondition,
    WhenCondition,
    all_match,
    any_match,
    count_matches,
    not_condition,
    register_combinators,
    when_condition,
)
from fieldrules.conditions.expression_parser import (
    ConditionExpression,
    ConditionExpressionParser,
    ExpressionParseError,
    UnknownConditionError,
    UnknownCustomConditionError,
)
from fieldrules.conditions.registry import (
    ConditionAlreadyRegisteredError,
    ConditionNotFoundError,
    ConditionRegistration,
    ConditionRegistry,
    InvalidConditionSignatureError,
    PredicateCondition,
)


def create_condition_registry(name: str = "conditions", allow_overwrite: bool = False) -> ConditionRegistry:
    """Create a registry with the combinators already registered."""
    registry = ConditionRegistry(name, allow_overwrite=allow_overwrite)
    register_combinators(registry)
    return registry


__all__ = [
    # Base
    "Condition",
    "ConditionBase",
    "ConditionCategory",
    "ConditionConfig",
    "ConditionEvaluateResult",
    "DisposableCondition",
    "ErrorResponseCondition",
    "EvaluationResult",
    "GathersValueHostNames",
    "LazyCell",
    "PendingEvaluation",
    "SuppliesTokens",
    "ValueHostLike",
    "ValueHostResolver",
    "is_pending",
    "to_evaluate_result",
    "walk_configs",
    # Combinators
    "ALL_MATCH_TYPE",
    "ANY_MATCH_TYPE",
    "COUNT_MATCHES_TYPE",
    "NOT_TYPE",
    "UNKNOWN_CONDITION_TYPE",
    "WHEN_TYPE",
    "AllMatchCondition",
    "AnyMatchCondition",
    "CountMatchesCondition",
    "NotCondition",
    "WhenCondition",
    "all_match",
    "any_match",
    "count_matches",
    "not_condition",
    "register_combinators",
    "when_condition",
    # Parser
    "ConditionExpression",
    "ConditionExpressionParser",
    "ExpressionParseError",
    "UnknownConditionError",
    "UnknownCustomConditionError",
    # Registry
    "ConditionAlreadyRegisteredError",
    "ConditionNotFoundError",
    "ConditionRegistration",
    "ConditionRegistry",
    "InvalidConditionSignatureError",
    "PredicateCondition",
    "create_condition_registry",
]
