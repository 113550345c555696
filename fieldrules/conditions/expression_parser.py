"""
Condition Expression Parser for declarative (YAML) condition trees.

Turns condition expressions into ConditionConfig trees. Expressions are
checked against a ConditionRegistry so unknown types fail at load time.
Parsed trees are cached.

Formats supported:
- Simple: "RequireText"
- With parameters: {"type": "RegExp", "pattern": "^\\d+$", "value_host_name": "zip"}
- AND: {"and": [...]}
- OR: {"or": [...]}
- NOT: {"not": expr}
- WHEN: {"when": {"enabler": expr, "condition": expr}}
- COUNT: {"count": {"minimum": 1, "maximum": 2, "conditions": [...]}}
- Custom reference: "custom:name"

Combinator dicts may also carry "category" and "treat_undetermined_as".
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Union

from fieldrules.conditions.base import (
    ConditionCategory,
    ConditionConfig,
    ConditionEvaluateResult,
    walk_configs,
)
from fieldrules.conditions.combinators import (
    ALL_MATCH_TYPE,
    ANY_MATCH_TYPE,
    COUNT_MATCHES_TYPE,
    NOT_TYPE,
    WHEN_TYPE,
)
from fieldrules.errors import ConfigurationError

if TYPE_CHECKING:
    from fieldrules.conditions.registry import ConditionRegistry

logger = logging.getLogger(__name__)

# Type alias for condition expressions from YAML
ConditionExpression = Union[str, Dict[str, Any]]

_OPERATORS = ("and", "or", "not", "when", "count")
_SHARED_KEYS = ("category", "treat_undetermined_as", "value_host_name")


class ExpressionParseError(ConfigurationError):
    """Raised when expression parsing fails."""

    def __init__(self, expression: Any, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid expression {expression!r}: {reason}")


class UnknownConditionError(ConfigurationError):
    """Raised when an expression names an unregistered condition type."""

    def __init__(self, condition_type: str, source: str = ""):
        self.condition_type = condition_type
        self.source = source
        message = f"Unknown condition '{condition_type}'"
        if source:
            message += f" in {source}"
        super().__init__(message)


class UnknownCustomConditionError(ConfigurationError):
    """Raised when a custom condition is not found."""

    def __init__(self, condition_name: str):
        self.condition_name = condition_name
        super().__init__(f"Unknown custom condition 'custom:{condition_name}'")


class ConditionExpressionParser:
    """
    Parses condition expressions into ConditionConfig trees.

    Example:
        parser = ConditionExpressionParser(registry, custom_conditions)

        config = parser.parse({
            "and": [
                "RequireText",
                {"not": {"type": "EqualTo", "value": "none"}},
                {"when": {
                    "enabler": {"type": "RequireText", "value_host_name": "country"},
                    "condition": "custom:postal_code",
                }},
            ]
        })
    """

    def __init__(
        self,
        registry: "ConditionRegistry",
        custom_conditions: Optional[Dict[str, Dict[str, Any]]] = None
    ):
        """
        Initialize parser.

        Args:
            registry: ConditionRegistry used to check condition types
            custom_conditions: Named expressions from YAML
                Format: {"name": {"description": "...", "expression": {...}}}
        """
        self.registry = registry
        self.custom_conditions = custom_conditions or {}
        self._cache: Dict[str, ConditionConfig] = {}

    def parse(self, expression: ConditionExpression, source_name: str = "") -> ConditionConfig:
        """
        Parse a condition expression.

        Args:
            expression: The expression to parse (string or dict)
            source_name: Optional name for error messages

        Returns:
            ConditionConfig tree

        Raises:
            ExpressionParseError: If expression format is invalid
            UnknownConditionError: If a referenced type isn't registered
            UnknownCustomConditionError: If custom condition doesn't exist
        """
        cache_key = self._make_cache_key(expression)
        if cache_key in self._cache:
            return self._cache[cache_key]

        parsed = self._parse_internal(expression, source_name, set())
        self._cache[cache_key] = parsed
        return parsed

    def _make_cache_key(self, expression: ConditionExpression) -> str:
        if isinstance(expression, str):
            return expression
        return repr(self._normalize_expression(expression))

    def _normalize_expression(self, expression: Any) -> Any:
        if isinstance(expression, dict):
            return {k: self._normalize_expression(v) for k, v in sorted(expression.items())}
        if isinstance(expression, list):
            return [self._normalize_expression(item) for item in expression]
        return expression

    def _parse_internal(
        self,
        expression: ConditionExpression,
        source_name: str,
        custom_stack: Set[str]
    ) -> ConditionConfig:
        if isinstance(expression, str):
            if expression.startswith("custom:"):
                return self._parse_custom(expression[7:], custom_stack)
            return self._parse_simple({"type": expression}, source_name)

        if isinstance(expression, dict):
            operators = [key for key in _OPERATORS if key in expression]
            if len(operators) > 1:
                raise ExpressionParseError(
                    expression,
                    f"only one operator allowed, got {', '.join(operators)}"
                )
            if operators:
                operator = operators[0]
                parse = getattr(self, f"_parse_{operator}")
                return parse(expression, source_name, custom_stack)
            if "type" in expression:
                return self._parse_simple(expression, source_name)

            raise ExpressionParseError(
                expression,
                "dict must contain 'type' or one of 'and', 'or', 'not', 'when', 'count'"
            )

        raise ExpressionParseError(
            expression,
            f"expected string or dict, got {type(expression).__name__}"
        )

    def _shared_fields(self, expression: Dict[str, Any]) -> Dict[str, Any]:
        """category / value_host_name / treat_undetermined_as of a dict expression."""
        fields: Dict[str, Any] = {}
        category = expression.get("category")
        if category is not None:
            try:
                fields["category"] = ConditionCategory(category)
            except ValueError:
                raise ExpressionParseError(expression, f"unknown category '{category}'")
        if expression.get("value_host_name"):
            fields["value_host_name"] = expression["value_host_name"]
        treat_as = expression.get("treat_undetermined_as")
        if treat_as is not None:
            try:
                fields["treat_undetermined_as"] = ConditionEvaluateResult(treat_as)
            except ValueError:
                raise ExpressionParseError(
                    expression, f"unknown treat_undetermined_as '{treat_as}'"
                )
        return fields

    def _build(
        self,
        condition_type: str,
        expression: Dict[str, Any],
        params: Dict[str, Any]
    ) -> ConditionConfig:
        shared = self._shared_fields(expression)
        treat_as = shared.pop("treat_undetermined_as", None)
        if treat_as is not None:
            params["treat_undetermined_as"] = treat_as
        return ConditionConfig(condition_type=condition_type, params=params, **shared)

    def _parse_simple(self, expression: Dict[str, Any], source_name: str) -> ConditionConfig:
        condition_type = expression["type"]
        if not isinstance(condition_type, str) or not condition_type:
            raise ExpressionParseError(expression, "'type' must be a non-empty string")
        if not self.registry.is_registered(condition_type):
            raise UnknownConditionError(condition_type, source_name or "expression")

        params = {
            key: value for key, value in expression.items()
            if key != "type" and key not in _SHARED_KEYS
        }
        return self._build(condition_type, expression, params)

    def _parse_custom(self, custom_name: str, custom_stack: Set[str]) -> ConditionConfig:
        if custom_name not in self.custom_conditions:
            raise UnknownCustomConditionError(custom_name)
        if custom_name in custom_stack:
            raise ExpressionParseError(
                f"custom:{custom_name}",
                "custom condition refers to itself"
            )

        custom_def = self.custom_conditions[custom_name]
        if "expression" not in custom_def:
            raise ExpressionParseError(
                f"custom:{custom_name}",
                "custom condition must have 'expression' field"
            )

        return self._parse_internal(
            custom_def["expression"],
            f"custom:{custom_name}",
            custom_stack | {custom_name},
        )

    def _parse_operands(
        self,
        operator: str,
        operands: Any,
        source_name: str,
        custom_stack: Set[str]
    ) -> List[ConditionConfig]:
        if not isinstance(operands, list):
            raise ExpressionParseError({operator: operands}, f"'{operator}' value must be a list")
        if not operands:
            raise ExpressionParseError(
                {operator: operands}, f"'{operator}' requires at least 1 operand"
            )
        return [self._parse_internal(op, source_name, custom_stack) for op in operands]

    def _parse_and(self, expression, source_name, custom_stack) -> ConditionConfig:
        children = self._parse_operands("and", expression["and"], source_name, custom_stack)
        return self._build(ALL_MATCH_TYPE, expression, {"conditions": children})

    def _parse_or(self, expression, source_name, custom_stack) -> ConditionConfig:
        children = self._parse_operands("or", expression["or"], source_name, custom_stack)
        return self._build(ANY_MATCH_TYPE, expression, {"conditions": children})

    def _parse_not(self, expression, source_name, custom_stack) -> ConditionConfig:
        child = self._parse_internal(expression["not"], source_name, custom_stack)
        return self._build(NOT_TYPE, expression, {"condition": child})

    def _parse_when(self, expression, source_name, custom_stack) -> ConditionConfig:
        body = expression["when"]
        if not isinstance(body, dict) or "enabler" not in body or "condition" not in body:
            raise ExpressionParseError(
                expression, "'when' requires a dict with 'enabler' and 'condition'"
            )
        enabler = self._parse_internal(body["enabler"], source_name, custom_stack)
        child = self._parse_internal(body["condition"], source_name, custom_stack)
        return self._build(WHEN_TYPE, expression, {"enabler": enabler, "condition": child})

    def _parse_count(self, expression, source_name, custom_stack) -> ConditionConfig:
        body = expression["count"]
        if not isinstance(body, dict):
            raise ExpressionParseError(expression, "'count' value must be a dict")
        children = self._parse_operands(
            "count", body.get("conditions"), source_name, custom_stack
        )
        params: Dict[str, Any] = {"conditions": children}
        for bound in ("minimum", "maximum"):
            value = body.get(bound)
            if value is None:
                continue
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ExpressionParseError(
                    expression, f"'{bound}' must be a non-negative integer"
                )
            params[bound] = value
        if "maximum" in params and params["maximum"] < params.get("minimum", 1):
            raise ExpressionParseError(expression, "'maximum' is less than 'minimum'")
        return self._build(COUNT_MATCHES_TYPE, expression, params)

    def validate_expression(self, expression: ConditionExpression, source_name: str = "") -> List[str]:
        """
        Validate an expression without keeping the result.

        Returns:
            List of error messages (empty if valid)
        """
        try:
            self.parse(expression, source_name)
        except ConfigurationError as e:
            return [str(e)]
        return []

    def validate_custom_conditions(self) -> Dict[str, List[str]]:
        """
        Validate all custom conditions.

        Returns:
            Dict mapping condition name to list of errors (only names with errors)
        """
        results = {}
        for name, definition in self.custom_conditions.items():
            if "expression" not in definition:
                errors = ["Missing 'expression' field"]
            else:
                errors = self.validate_expression(definition["expression"], f"custom:{name}")
            if errors:
                results[name] = errors
        return results

    def get_all_referenced_conditions(self, expression: ConditionExpression) -> Set[str]:
        """
        Get all condition types referenced by an expression.

        Raises the same errors as parse() for invalid expressions.
        """
        return {config.condition_type for config in walk_configs(self.parse(expression))}

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            "cache_size": len(self._cache),
            "cached_expressions": list(self._cache.keys()),
        }

    def __repr__(self) -> str:
        return (
            f"ConditionExpressionParser("
            f"registry={self.registry.name!r}, "
            f"custom_count={len(self.custom_conditions)}, "
            f"cached={len(self._cache)})"
        )


__all__ = [
    "ConditionExpressionParser",
    "ConditionExpression",
    "ExpressionParseError",
    "UnknownConditionError",
    "UnknownCustomConditionError",
]
