"""
Tests for business logic errors reported after server-side validation.
"""

import pytest

from fieldrules.conditions import ConditionConfig
from fieldrules.logger import LoggingLevel
from fieldrules.validation import (
    BusinessLogicError,
    ValidationSeverity,
    ValidationStatus,
    ValidatorConfig,
    ValueHostConfig,
    ValueHostType,
)


@pytest.fixture
def manager(make_manager):
    return make_manager(
        ValueHostConfig("age", label="Age", initial_value=30, validator_configs=[
            ValidatorConfig(
                condition_config=ConditionConfig("Range", params={"minimum": 18, "maximum": 120}),
                error_message="{Label} must be between 18 and 120",
            ),
        ]),
        ValueHostConfig("email", label="Email", initial_value="a@example.com"),
        ValueHostConfig("lang", value_host_type=ValueHostType.STATIC, initial_value="en"),
    )


class TestValidatorSwap:
    """Errors whose code matches a validator use that validator's messages"""

    def test_matching_code(self, manager):
        manager.set_business_logic_error(BusinessLogicError(
            "Server says no", error_code="Range", associated_value_host_name="age",
        ))
        value_host = manager.get_value_host("age")
        assert value_host.status is ValidationStatus.INVALID
        issues = value_host.get_issues_found()
        assert len(issues) == 1
        assert issues[0].error_code == "Range"
        assert issues[0].error_message == "Age must be between 18 and 120"
        assert issues[0].severity is ValidationSeverity.ERROR

    def test_replaces_existing_issue(self, manager):
        manager.set_value("age", 10, validate=True)
        manager.set_business_logic_error(BusinessLogicError(
            "Too young", error_code="Range", severity=ValidationSeverity.WARNING,
            associated_value_host_name="age",
        ))
        issues = manager.get_value_host("age").get_issues_found()
        assert len(issues) == 1
        assert issues[0].severity is ValidationSeverity.WARNING

    def test_swapped_issue_cleared_by_next_pass(self, manager):
        manager.set_business_logic_error(BusinessLogicError(
            "Server says no", error_code="Range", associated_value_host_name="age",
        ))
        result = manager.get_value_host("age").validate()
        assert result.status is ValidationStatus.VALID
        assert result.issues_found == []


class TestFreeStandingErrors:
    """Errors without a matching validator"""

    def test_unmatched_code_is_kept(self, manager):
        manager.set_business_logic_error(BusinessLogicError(
            "Email already registered", error_code="Duplicate", associated_value_host_name="email",
        ))
        value_host = manager.get_value_host("email")
        assert value_host.status is ValidationStatus.INVALID
        issue = value_host.get_issues_found()[0]
        assert issue.error_code == "Duplicate"
        assert issue.error_message == "Email already registered"
        assert issue.value_host_name == "email"

    def test_kept_across_passes(self, manager):
        manager.set_business_logic_error(BusinessLogicError(
            "Email already registered", associated_value_host_name="email",
        ))
        result = manager.get_value_host("email").validate()
        assert result.status is ValidationStatus.INVALID
        assert result.issues_found[0].error_code == "BusinessLogicError"

    def test_warning_keeps_field_valid(self, manager):
        manager.set_business_logic_error(BusinessLogicError(
            "Unusual address", severity=ValidationSeverity.WARNING, associated_value_host_name="email",
        ))
        value_host = manager.get_value_host("email")
        assert value_host.status is ValidationStatus.VALID
        assert len(value_host.get_issues_found()) == 1

    def test_clear(self, manager):
        manager.set_business_logic_error(BusinessLogicError("x", associated_value_host_name="email"))
        assert manager.clear_business_logic_errors()
        value_host = manager.get_value_host("email")
        assert value_host.status is ValidationStatus.UNDETERMINED
        assert value_host.get_issues_found() == []
        assert not manager.clear_business_logic_errors()


class TestFormLevelErrors:
    """Errors not tied to a value host"""

    def test_no_value_host(self, manager):
        manager.set_business_logic_errors([BusinessLogicError("Order limit reached")])
        issues = manager.get_issues_found()
        assert issues[-1].value_host_name is None
        assert issues[-1].error_message == "Order limit reached"
        assert not manager.is_valid

    def test_unknown_value_host_logged(self, manager, capturing_logger):
        manager.set_business_logic_error(BusinessLogicError("x", associated_value_host_name="missing"))
        assert manager.get_issues_found()[-1].value_host_name is None
        records = capturing_logger.find(LoggingLevel.WARNING, "validation")
        assert "missing" in records[-1]["message"]

    def test_static_value_host_goes_to_form(self, manager):
        manager.set_business_logic_error(BusinessLogicError("x", associated_value_host_name="lang"))
        assert manager.get_issues_found()[-1].value_host_name is None

    def test_warning_does_not_invalidate_form(self, manager):
        manager.set_business_logic_errors([BusinessLogicError("Heads up", severity=ValidationSeverity.WARNING)])
        assert manager.is_valid

    def test_set_replaces_previous(self, manager):
        manager.set_business_logic_errors([
            BusinessLogicError("one", associated_value_host_name="email"),
            BusinessLogicError("two"),
        ])
        manager.set_business_logic_errors([BusinessLogicError("three", associated_value_host_name="email")])
        messages = [issue.error_message for issue in manager.get_issues_found()]
        assert messages == ["three"]

    def test_disabled_value_host_logged(self, manager, capturing_logger):
        manager.get_value_host("email").config.enabled = False
        manager.set_business_logic_error(BusinessLogicError("x", associated_value_host_name="email"))
        records = capturing_logger.find(LoggingLevel.WARNING, "validation")
        assert "disabled" in records[-1]["message"]
