"""
Tests for ValidationManagerConfigModifier: changing the rules of a running
ValidationManager.
"""

import copy

import pytest

from fieldrules.conditions import ConditionConfig
from fieldrules.errors import ConfigurationError, ValidatorNotFoundError, ValueHostNotFoundError
from fieldrules.logger import LoggingLevel
from fieldrules.merge import MergeStrategy
from fieldrules.validation import (
    ValidationSeverity,
    ValidationStatus,
    ValidatorConfig,
    ValueHostConfig,
    ValueHostType,
    resolve_error_code,
)


@pytest.fixture
def manager(make_manager):
    return make_manager(
        ValueHostConfig("postal", label="Postal code", validator_configs=[
            ValidatorConfig(
                condition_config=ConditionConfig("EqualTo", params={"value": "12345"}),
                error_message="{Label} is unknown",
            ),
        ]),
        ValueHostConfig("name", label="Name", validator_configs=[
            ValidatorConfig(condition_config=ConditionConfig("RequireText"), error_message="{Label} is required"),
        ]),
        ValueHostConfig("total", value_host_type=ValueHostType.PROPERTY),
        ValueHostConfig("country", value_host_type=ValueHostType.STATIC, initial_value="CA"),
    )


def us_only(c):
    c.equal_to(value_host_name="country", value="US")


# =============================================================================
# combine_with_rule
# =============================================================================

class TestCombineWithRule:
    """Tests for combine_with_rule()"""

    def test_combine_when(self, manager):
        manager.set_value("postal", "99999")
        assert not manager.validate("postal").is_valid

        manager.start_modifying().combine_with_rule(
            "postal", "EqualTo", MergeStrategy.COMBINE_WHEN, us_only,
        ).apply()

        assert manager.validate("postal").is_valid
        manager.set_value("country", "US")
        result = manager.validate("postal")
        assert not result.is_valid
        assert result.issues_found[0].error_message == "Postal code is unknown"

    def test_combine_all_keeps_error_code(self, manager):
        modifier = manager.start_modifying()
        modifier.combine_with_rule("postal", "EqualTo", "combine_all", lambda c: c.require_text())
        config = modifier.preview("postal")
        validator = config.validator_configs[0]
        assert validator.condition_config.condition_type == "All"
        assert resolve_error_code(validator) == "EqualTo"
        assert validator.error_message == "{Label} is unknown"

    def test_several_conditions_joined(self, manager):
        modifier = manager.start_modifying()
        modifier.combine_with_rule(
            "postal", "EqualTo", MergeStrategy.COMBINE_ANY,
            lambda c: c.require_text().is_number(),
        )
        condition = modifier.preview("postal").validator_configs[0].condition_config
        added = condition.get("conditions")[1]
        assert added.condition_type == "All"
        assert [c.condition_type for c in added.get("conditions")] == ["RequireText", "IsNumber"]

    def test_callback(self, manager):
        def widen(builder, existing):
            builder.any_match(existing, ConditionConfig("EqualTo", params={"value": "54321"}))

        manager.start_modifying().combine_with_rule("postal", "EqualTo", widen).apply()
        manager.set_value("postal", "54321")
        assert manager.validate("postal").is_valid
        assert manager.get_validator("postal", "EqualTo").condition.condition_type == "Any"

    def test_callback_without_condition_is_no_op(self, manager, capturing_logger):
        modifier = manager.start_modifying()
        modifier.combine_with_rule("postal", "EqualTo", lambda builder, existing: None)
        assert modifier.preview("postal") is None
        record = capturing_logger.find(LoggingLevel.WARNING, "merge")[-1]
        assert record["source"] == "ValidationManagerConfigModifier"
        assert "'postal' validator 'EqualTo' unchanged" in record["message"]

    def test_strategy_needs_builder(self, manager):
        with pytest.raises(ConfigurationError, match="needs a builder function"):
            manager.start_modifying().combine_with_rule("postal", "EqualTo", MergeStrategy.COMBINE_ALL)

    def test_unknown_value_host(self, manager):
        with pytest.raises(ValueHostNotFoundError):
            manager.start_modifying().combine_with_rule("zip", "EqualTo", MergeStrategy.COMBINE_ALL, us_only)

    def test_unknown_error_code(self, manager):
        with pytest.raises(ValidatorNotFoundError):
            manager.start_modifying().combine_with_rule("postal", "Range", MergeStrategy.COMBINE_ALL, us_only)


# =============================================================================
# replace_rule / update_validator / add_validators_to
# =============================================================================

class TestReplaceRule:
    """Tests for replace_rule()"""

    def test_with_config(self, manager):
        manager.start_modifying().replace_rule(
            "postal", "EqualTo", ConditionConfig("EqualTo", params={"value": "00000"}),
        ).apply()
        manager.set_value("postal", "00000")
        assert manager.validate("postal").is_valid

    def test_keeps_code_and_messages(self, manager):
        modifier = manager.start_modifying()
        modifier.replace_rule("postal", "EqualTo", lambda c: c.range(minimum=1, maximum=5))
        validator = modifier.preview("postal").validator_configs[0]
        assert validator.condition_config.condition_type == "Range"
        assert validator.error_code == "EqualTo"
        assert validator.error_message == "{Label} is unknown"


class TestUpdateValidator:
    """Tests for update_validator()"""

    def test_messages_and_severity(self, manager):
        manager.start_modifying().update_validator(
            "name", "RequireText",
            error_message="Please enter {Label}",
            severity=ValidationSeverity.WARNING,
        ).apply()
        result = manager.validate("name")
        issue = result.issues_found[0]
        assert issue.error_message == "Please enter Name"
        assert issue.severity is ValidationSeverity.WARNING
        assert result.is_valid

    def test_disable(self, manager):
        manager.start_modifying().update_validator("name", "RequireText", enabled=False).apply()
        assert manager.validate("name").is_valid

    @pytest.mark.parametrize("prop", ["condition_config", "condition_creator", "error_code"])
    def test_protected_properties(self, manager, prop):
        with pytest.raises(ConfigurationError, match=f"cannot change {prop}"):
            manager.start_modifying().update_validator("name", "RequireText", **{prop: None})

    def test_unknown_property(self, manager):
        with pytest.raises(ConfigurationError, match="Unknown validator properties: colour"):
            manager.start_modifying().update_validator("name", "RequireText", colour="red")

    def test_unknown_error_code(self, manager):
        with pytest.raises(ValidatorNotFoundError):
            manager.start_modifying().update_validator("name", "Range", enabled=False)


class TestAddValidators:
    """Tests for add_validators_to()"""

    def test_add(self, manager):
        modifier = manager.start_modifying()
        modifier.add_validators_to("name").equal_to(value="Ann", error_message="Only Ann")
        modifier.apply()
        manager.set_value("name", "Bob")
        result = manager.validate("name")
        assert [issue.error_code for issue in result.issues_found] == ["EqualTo"]
        assert result.issues_found[0].error_message == "Only Ann"

    def test_static_rejected(self, manager):
        with pytest.raises(ConfigurationError, match="does not support validators"):
            manager.start_modifying().add_validators_to("country")


# =============================================================================
# Value hosts
# =============================================================================

class TestValueHostChanges:
    """Tests for input() / property() / static() on a modifier"""

    def test_label_update(self, manager):
        manager.start_modifying().input("name", label="Full name").apply()
        assert manager.get_value_host("name").get_label() == "Full name"
        assert len(manager.get_value_host("name").validators()) == 1

    def test_new_value_host(self, manager):
        manager.start_modifying().input("phone", label="Phone").require_text().apply()
        assert "phone" in manager
        assert not manager.validate("phone").is_valid

    def test_type_mismatch(self, manager):
        with pytest.raises(ConfigurationError, match="is not type=Input"):
            manager.start_modifying().input("total")

    def test_property(self, manager):
        manager.start_modifying().property("total", "Decimal").apply()
        assert manager.get_value_host("total").data_type == "Decimal"

    def test_chain_ends_with_build(self, manager):
        configs = manager.start_modifying().add_validators_to("name").equal_to(value="Ann").build()
        assert [resolve_error_code(vc) for vc in configs[0].validator_configs] == ["RequireText", "EqualTo"]
        assert len(manager.get_value_host("name").validators()) == 1

    def test_add_validators_chain_applies(self, manager):
        manager.start_modifying().add_validators_to("name").equal_to(value="Ann").apply()
        assert manager.get_validator("name", "EqualTo") is not None

    def test_static(self, manager):
        manager.start_modifying().static("country", label="Country").apply()
        assert manager.get_value_host("country").get_label() == "Country"
        assert manager.get_value("country") == "CA"


# =============================================================================
# Applying
# =============================================================================

class TestApply:
    """Tests for build() and apply()"""

    def test_applied_config_not_mutated(self, manager):
        original = manager.get_value_host("postal").config
        snapshot = copy.deepcopy(original)
        modifier = manager.start_modifying()
        modifier.combine_with_rule("postal", "EqualTo", MergeStrategy.COMBINE_ALL, us_only)
        modifier.update_validator("postal", "EqualTo", error_message="Changed")
        configs = modifier.apply()

        assert original == snapshot
        assert configs[0] is not original
        assert manager.get_value_host("postal").config is configs[0]

    def test_changes_merge_in_order(self, manager):
        modifier = manager.start_modifying()
        modifier.combine_with_rule("postal", "EqualTo", MergeStrategy.COMBINE_ALL, us_only)
        modifier.update_validator("postal", "EqualTo", error_message="Changed")
        validator = modifier.preview("postal").validator_configs[0]
        assert validator.condition_config.condition_type == "All"
        assert validator.error_message == "Changed"

    def test_update_after_replace_keeps_new_condition(self, manager):
        modifier = manager.start_modifying()
        modifier.replace_rule("postal", "EqualTo", ConditionConfig("EqualTo", params={"value": "00000"}))
        modifier.update_validator("postal", "EqualTo", error_message="Changed")
        modifier.apply()

        manager.set_value("postal", "00000")
        assert manager.validate("postal").is_valid
        manager.set_value("postal", "12345")
        assert manager.validate("postal").issues_found[0].error_message == "Changed"

    def test_apply_keeps_value_and_status(self, manager):
        manager.set_value("name", "", validate=True)
        manager.start_modifying().update_validator("name", "RequireText", error_message="Changed").apply()
        value_host = manager.get_value_host("name")
        assert value_host.get_value() == ""
        assert value_host.status is ValidationStatus.INVALID
        assert [issue.error_code for issue in value_host.get_issues_found()] == ["RequireText"]

    def test_apply_twice(self, manager):
        modifier = manager.start_modifying()
        modifier.update_validator("name", "RequireText", enabled=False)
        modifier.apply()
        with pytest.raises(ConfigurationError, match="already completed"):
            modifier.apply()

    def test_only_changed_value_hosts(self, manager):
        configs = manager.start_modifying().input("name", label="Full name").apply()
        assert [config.name for config in configs] == ["name"]
