"""
Merging of configuration layers.

- combine.py: MergeStrategy and combine_conditions()
- merge_service.py: property conflict rules and the ValueHostConfig /
  ValidatorConfig merge services
"""

from fieldrules.merge.combine import (
    MergeStrategy,
    combine_conditions,
    default_merge_strategy,
    effective_category,
)
from fieldrules.merge.merge_service import (
    ConfigMergeServiceBase,
    ConflictResolution,
    MergeIdentity,
    PropertyConflictRule,
    ValidatorConfigMergeService,
    ValueHostConfigMergeService,
)

__all__ = [
    "MergeStrategy",
    "combine_conditions",
    "default_merge_strategy",
    "effective_category",
    "ConfigMergeServiceBase",
    "ConflictResolution",
    "MergeIdentity",
    "PropertyConflictRule",
    "ValidatorConfigMergeService",
    "ValueHostConfigMergeService",
]
