"""
Tests for configuration merging: property conflict rules, MergeStrategy
and layering of ValueHostConfigs.
"""

from dataclasses import dataclass, field
from typing import Any, List

import pytest

from fieldrules.conditions import ConditionCategory, ConditionConfig
from fieldrules.errors import ConfigurationError
from fieldrules.logger import LoggingLevel
from fieldrules.merge import (
    ConfigMergeServiceBase,
    ConflictResolution,
    MergeIdentity,
    MergeStrategy,
    PropertyConflictRule,
    combine_conditions,
)
from fieldrules.settings import DotDict
from fieldrules.validation import (
    ValidatorConfig,
    ValueHostConfig,
    ValueHostType,
    resolve_error_code,
)


@dataclass
class Sample:
    first: Any = None
    second: Any = None
    items: List[str] = field(default_factory=list)


IDENTITY = MergeIdentity("sample")


@pytest.fixture
def base_service(capturing_logger):
    return ConfigMergeServiceBase(capturing_logger)


@pytest.fixture
def merge_service(services):
    return services.merge_service


@pytest.fixture
def validator_service(merge_service):
    return merge_service.validator_merge_service


def equal_to(value):
    return ConditionConfig("EqualTo", params={"value": value})


# =============================================================================
# Property conflict rules
# =============================================================================

class TestPropertyConflictRules:
    """Tests for ConfigMergeServiceBase"""

    def test_default_is_replace(self, base_service):
        destination = Sample(first=1, second=2)
        base_service.merge_configs(Sample(first=10), destination, IDENTITY)
        assert destination.first == 10
        assert destination.second == 2
        assert base_service.get_property_conflict_rule("first") is PropertyConflictRule.REPLACE

    def test_none_destination_is_assigned(self, base_service):
        destination = Sample()
        base_service.merge_configs(Sample(first="a"), destination, IDENTITY)
        assert destination.first == "a"

    def test_replace_except_none(self, base_service):
        base_service.set_property_conflict_rule("first", "replace_except_none")
        destination = Sample(first=1)
        base_service.merge_configs(Sample(first=None), destination, IDENTITY)
        assert destination.first == 1

    def test_no_change(self, base_service):
        base_service.set_property_conflict_rule("first", PropertyConflictRule.NO_CHANGE)
        destination = Sample(first=1)
        base_service.merge_configs(Sample(first=2), destination, IDENTITY)
        assert destination.first == 1

    def test_no_change_keeps_none(self, base_service):
        base_service.set_property_conflict_rule("first", PropertyConflictRule.NO_CHANGE)
        destination = Sample()
        base_service.merge_configs(Sample(first=2), destination, IDENTITY)
        assert destination.first is None

    def test_locked_rule_cannot_change(self, base_service):
        base_service.set_property_conflict_rule("first", PropertyConflictRule.LOCKED)
        with pytest.raises(ConfigurationError, match="locked"):
            base_service.set_property_conflict_rule("first", PropertyConflictRule.REPLACE)
        destination = Sample(first=1)
        base_service.merge_configs(Sample(first=2), destination, IDENTITY)
        assert destination.first == 1

    def test_delete(self, base_service):
        base_service.set_property_conflict_rule("first", PropertyConflictRule.DELETE)
        base_service.set_property_conflict_rule("items", PropertyConflictRule.DELETE)
        destination = Sample(first=1, items=["x"])
        base_service.merge_configs(Sample(), destination, IDENTITY)
        assert destination.first is None
        assert destination.items == []

    def test_replace_or_delete(self, base_service):
        base_service.set_property_conflict_rule("first", PropertyConflictRule.REPLACE_OR_DELETE)
        base_service.set_property_conflict_rule("second", PropertyConflictRule.REPLACE_OR_DELETE)
        destination = Sample(first=1, second=2)
        base_service.merge_configs(Sample(first=None, second=3), destination, IDENTITY)
        assert destination.first is None
        assert destination.second == 3

    def test_callback_value(self, base_service):
        def add(source, destination, name, identity):
            return ConflictResolution(use_value=getattr(source, name) + getattr(destination, name))

        base_service.set_property_conflict_rule("first", add)
        destination = Sample(first=1)
        base_service.merge_configs(Sample(first=2), destination, IDENTITY)
        assert destination.first == 3

    def test_callback_action(self, base_service):
        base_service.set_property_conflict_rule(
            "first",
            lambda source, destination, name, identity: ConflictResolution(use_action=PropertyConflictRule.NO_CHANGE),
        )
        destination = Sample(first=1)
        base_service.merge_configs(Sample(first=2), destination, IDENTITY)
        assert destination.first == 1

    def test_no_change_property_names(self, base_service):
        base_service.set_property_conflict_rule("first", PropertyConflictRule.NO_CHANGE)
        base_service.set_property_conflict_rule("second", PropertyConflictRule.LOCKED)
        base_service.set_property_conflict_rule("items", lambda *args: ConflictResolution())
        assert base_service.get_no_change_property_names() == ["first", "second"]

    def test_skip(self, base_service):
        destination = Sample(first=1)
        base_service.merge_configs(Sample(first=2), destination, IDENTITY, skip={"first"})
        assert destination.first == 1

    def test_routine_messages_logged(self, base_service, capturing_logger):
        base_service.merge_configs(Sample(first=2), Sample(first=1), MergeIdentity("vh", "Code"))
        records = capturing_logger.find(LoggingLevel.DEBUG, "merge")
        assert records[-1]["message"] == "vh.validators[Code].first replaced"
        assert records[-1]["source"] == "ConfigMergeServiceBase"


# =============================================================================
# ValueHostConfig properties
# =============================================================================

class TestValueHostMerge:
    """Tests for ValueHostConfigMergeService"""

    def test_properties(self, merge_service):
        destination = ValueHostConfig("age", data_type="Integer", label="Age")
        merge_service.merge(ValueHostConfig("age", label="Your age", group="person"), destination)
        assert destination.label == "Your age"
        assert destination.group == "person"
        assert destination.data_type == "Integer"

    def test_other_name_ignored(self, merge_service):
        destination = ValueHostConfig("age", label="Age")
        merge_service.merge(ValueHostConfig("name", label="Name"), destination)
        assert destination.label == "Age"

    def test_property_upgrades_to_input(self, merge_service):
        destination = ValueHostConfig("age", value_host_type=ValueHostType.PROPERTY)
        merge_service.merge(ValueHostConfig("age", value_host_type=ValueHostType.INPUT), destination)
        assert destination.value_host_type is ValueHostType.INPUT

    def test_other_type_changes_warn(self, merge_service, capturing_logger):
        destination = ValueHostConfig("age")
        merge_service.merge(ValueHostConfig("age", value_host_type=ValueHostType.STATIC), destination)
        assert destination.value_host_type is ValueHostType.INPUT
        records = capturing_logger.find(LoggingLevel.WARNING, "merge")
        assert records[-1]["message"] == "Will not change ValueHostType from Input to Static."

    def test_rules(self, merge_service):
        assert merge_service.get_property_conflict_rule("name") is PropertyConflictRule.LOCKED
        assert merge_service.get_property_conflict_rule("data_type") is PropertyConflictRule.REPLACE_EXCEPT_NONE
        assert set(merge_service.get_no_change_property_names()) == {"name", "validator_configs"}


# =============================================================================
# Validators and strategies
# =============================================================================

class TestValidatorMerge:
    """Tests for ValidatorConfigMergeService"""

    def test_replace_by_default(self, merge_service):
        destination = ValueHostConfig("code", validator_configs=[
            ValidatorConfig(condition_config=equal_to(1), error_message="Old message"),
        ])
        merge_service.merge(ValueHostConfig("code", validator_configs=[
            ValidatorConfig(condition_config=equal_to(2)),
        ]), destination)
        assert len(destination.validator_configs) == 1
        merged = destination.validator_configs[0]
        assert merged.condition_config == equal_to(2)
        assert merged.error_message == "Old message"

    def test_replace_type_mismatch_warns(self, merge_service, capturing_logger):
        destination = ValueHostConfig("code", validator_configs=[ValidatorConfig(condition_config=equal_to(1))])
        merge_service.merge(ValueHostConfig("code", validator_configs=[
            ValidatorConfig(condition_config=ConditionConfig("Range"), error_code="EqualTo"),
        ]), destination)
        merged = destination.validator_configs[0]
        assert merged.condition_config.condition_type == "Range"
        assert resolve_error_code(merged) == "EqualTo"
        messages = [r["message"] for r in capturing_logger.find(LoggingLevel.WARNING, "merge")]
        assert "ConditionType mismatch for code.validators[EqualTo].condition_config" in messages

    def test_combine_all_keeps_error_code(self, merge_service):
        old = ConditionConfig("RequireText")
        new = ConditionConfig("RequireText", params={"min_length": 2})
        destination = ValueHostConfig("code", validator_configs=[ValidatorConfig(condition_config=old)])
        merge_service.merge(
            ValueHostConfig("code", validator_configs=[ValidatorConfig(condition_config=new)]),
            destination,
            {"RequireText": MergeStrategy.COMBINE_ALL},
        )
        merged = destination.validator_configs[0]
        assert merged.condition_config.condition_type == "All"
        assert merged.condition_config.get("conditions") == [old, new]
        assert merged.condition_config.category is ConditionCategory.REQUIRE
        assert merged.error_code == "RequireText"

    def test_combine_any(self, validator_service):
        destination = ValidatorConfig(condition_config=equal_to(1))
        validator_service.merge_validator(
            ValidatorConfig(condition_config=equal_to(2)), destination,
            MergeStrategy.COMBINE_ANY, MergeIdentity("code", "EqualTo"),
        )
        assert destination.condition_config.condition_type == "Any"
        assert destination.condition_config.get("conditions") == [equal_to(1), equal_to(2)]
        assert resolve_error_code(destination) == "EqualTo"

    def test_combine_when(self, validator_service):
        enabler = ConditionConfig("EqualTo", value_host_name="country", params={"value": "US"})
        destination = ValidatorConfig(condition_config=ConditionConfig("RequireText"))
        validator_service.merge_validator(
            ValidatorConfig(condition_config=enabler, error_code="RequireText"), destination,
            MergeStrategy.COMBINE_WHEN, MergeIdentity("postal", "RequireText"),
        )
        merged = destination.condition_config
        assert merged.condition_type == "When"
        assert merged.get("enabler") == enabler
        assert merged.get("condition") == ConditionConfig("RequireText")
        assert resolve_error_code(destination) == "RequireText"

    def test_unmatched_appended_as_copy(self, merge_service):
        added = ValidatorConfig(condition_config=ConditionConfig("RequireText"))
        destination = ValueHostConfig("code", validator_configs=[ValidatorConfig(condition_config=equal_to(1))])
        merge_service.merge(ValueHostConfig("code", validator_configs=[added]), destination)
        assert [resolve_error_code(vc) for vc in destination.validator_configs] == ["EqualTo", "RequireText"]
        assert destination.validator_configs[1] == added
        assert destination.validator_configs[1] is not added

    def test_strategy_per_error_code(self, merge_service):
        destination = ValueHostConfig("code", validator_configs=[
            ValidatorConfig(condition_config=equal_to(1)),
            ValidatorConfig(condition_config=ConditionConfig("RequireText")),
        ])
        merge_service.merge(
            ValueHostConfig("code", validator_configs=[
                ValidatorConfig(condition_config=equal_to(2)),
                ValidatorConfig(condition_config=ConditionConfig("RequireText", params={"min_length": 1})),
            ]),
            destination,
            {"EqualTo": MergeStrategy.COMBINE_ANY},
        )
        assert destination.validator_configs[0].condition_config.condition_type == "Any"
        assert destination.validator_configs[1].condition_config.get("min_length") == 1

    def test_default_strategy_from_settings(self, merge_service, monkeypatch):
        monkeypatch.setattr(
            "fieldrules.merge.combine.get_settings",
            lambda: DotDict({"merge": {"default_strategy": "combine_all"}}),
        )
        destination = ValueHostConfig("code", validator_configs=[ValidatorConfig(condition_config=equal_to(1))])
        merge_service.merge(
            ValueHostConfig("code", validator_configs=[ValidatorConfig(condition_config=equal_to(2))]),
            destination,
        )
        assert destination.validator_configs[0].condition_config.condition_type == "All"

    def test_creator_destination_not_merged(self, merge_service, capturing_logger):
        def creator(config):
            return None

        destination = ValueHostConfig("code", validator_configs=[
            ValidatorConfig(condition_creator=creator, error_code="Custom"),
        ])
        merge_service.merge(ValueHostConfig("code", validator_configs=[
            ValidatorConfig(condition_config=equal_to(1), error_code="Custom"),
        ]), destination)
        merged = destination.validator_configs[0]
        assert merged.condition_config is None
        assert merged.condition_creator is creator
        messages = [r["message"] for r in capturing_logger.find(LoggingLevel.WARNING, "merge")]
        assert any("destination uses condition_creator" in message for message in messages)


class TestCombineConditions:
    """Tests for combine_conditions()"""

    def test_replace(self):
        assert combine_conditions(equal_to(1), equal_to(2), MergeStrategy.REPLACE) == equal_to(2)

    def test_inputs_unchanged(self):
        old, new = equal_to(1), equal_to(2)
        combine_conditions(old, new, "combine_all")
        assert old == equal_to(1)
        assert new == equal_to(2)

    def test_category_from_registry(self, services):
        combined = combine_conditions(
            ConditionConfig("IsNumber"), ConditionConfig("AlwaysMatch"),
            MergeStrategy.COMBINE_ANY, services.condition_registry,
        )
        assert combined.category is ConditionCategory.DATA_TYPE_CHECK

    def test_explicit_category_wins(self, services):
        combined = combine_conditions(
            ConditionConfig("IsNumber", category=ConditionCategory.COMPARISON), ConditionConfig("AlwaysMatch"),
            MergeStrategy.COMBINE_ALL, services.condition_registry,
        )
        assert combined.category is ConditionCategory.COMPARISON


# =============================================================================
# Layers
# =============================================================================

class TestMergeInto:
    """Tests for merging a whole layer"""

    def test_layer(self, merge_service):
        base = [
            ValueHostConfig("name", label="Name", validator_configs=[
                ValidatorConfig(condition_config=ConditionConfig("RequireText")),
            ]),
        ]
        layer = [
            ValueHostConfig("name", label="Full name", validator_configs=[
                ValidatorConfig(condition_config=ConditionConfig("RequireText", params={"min_length": 3})),
            ]),
            ValueHostConfig("phone"),
        ]
        result = merge_service.merge_into(layer, base, {"name": {"RequireText": MergeStrategy.COMBINE_ALL}})
        assert result is base
        assert [config.name for config in base] == ["name", "phone"]
        assert base[0].label == "Full name"
        assert base[0].validator_configs[0].condition_config.condition_type == "All"
        assert base[1] is not layer[1]
