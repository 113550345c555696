"""
Merge strategies for the condition of a validator that exists in both
configurations.

REPLACE: the new condition replaces the old one
COMBINE_ALL: All([old, new])
COMBINE_ANY: Any([old, new])
COMBINE_WHEN: When(enabler=new, condition=old)
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

from fieldrules.conditions.base import ConditionCategory, ConditionConfig
from fieldrules.conditions.combinators import all_match, any_match, when_condition
from fieldrules.settings import get_settings

if TYPE_CHECKING:
    from fieldrules.conditions.registry import ConditionRegistry


class MergeStrategy(str, Enum):
    REPLACE = "replace"
    COMBINE_ALL = "combine_all"
    COMBINE_ANY = "combine_any"
    COMBINE_WHEN = "combine_when"


def default_merge_strategy() -> MergeStrategy:
    return MergeStrategy(get_settings().get_nested("merge.default_strategy", "replace"))


def effective_category(
    config: ConditionConfig,
    registry: Optional["ConditionRegistry"] = None
) -> Optional[ConditionCategory]:
    """Category of config, falling back to the registered default for its type."""
    if config.category is not None:
        return config.category
    if registry is None:
        return None
    registration = registry.get(config.condition_type)
    return registration.category if registration else None


def combine_conditions(
    existing: ConditionConfig,
    new: ConditionConfig,
    strategy: MergeStrategy,
    registry: Optional["ConditionRegistry"] = None
) -> ConditionConfig:
    """
    Build the condition that results from merging new into existing.

    Both configs are used as they are (they are immutable). The wrapper
    takes the category of the existing condition so the validator keeps its
    place in the validation order.
    """
    strategy = MergeStrategy(strategy)
    if strategy is MergeStrategy.REPLACE:
        return new

    category = effective_category(existing, registry)
    if strategy is MergeStrategy.COMBINE_WHEN:
        return when_condition(enabler=new, condition=existing, category=category)
    if strategy is MergeStrategy.COMBINE_ALL:
        return all_match(existing, new, category=category)
    return any_match(existing, new, category=category)


__all__ = [
    "MergeStrategy",
    "default_merge_strategy",
    "effective_category",
    "combine_conditions",
]
