"""
Tests for ValidatorOrchestrator: ordering, folding, Severe stop,
asynchronous validators and generations.
"""

import asyncio

import pytest

from fieldrules.conditions import ConditionCategory, ConditionConfig, all_match
from fieldrules.errors import DuplicateErrorCodeError, PendingChildError
from fieldrules.logger import LoggingLevel
from fieldrules.validation import (
    ValidateOptions,
    ValidationSeverity,
    ValidationStatus,
    ValidatorConfig,
    ValueHostConfig,
    ValueHostType,
)


def rule(condition, error_code=None, severity=None, **kwargs):
    return ValidatorConfig(condition_config=condition, error_code=error_code, severity=severity, **kwargs)


@pytest.fixture
def host(make_manager):
    """host(*validator_configs, value=...) -> ValueHost named 'field'"""
    def factory(*validator_configs, value="text", **properties):
        manager = make_manager(
            ValueHostConfig("field", validator_configs=list(validator_configs), **properties),
        )
        manager.set_value("field", value)
        return manager.get_value_host("field")
    return factory


# =============================================================================
# Ordering and folding
# =============================================================================

class TestOrdering:
    """Require first, DataTypeCheck second, then declaration order"""

    def test_category_order(self, host, tracked, calls):
        value_host = host(
            rule(tracked("compare"), "compare"),
            rule(tracked("require").replace(category=ConditionCategory.REQUIRE), "require"),
            rule(tracked("data_type").replace(category=ConditionCategory.DATA_TYPE_CHECK), "data_type"),
            rule(tracked("compare2"), "compare2"),
        )
        value_host.validate()
        assert calls == ["require", "data_type", "compare", "compare2"]


class TestFolding:
    """Tests for the status of a value host after a pass"""

    def test_all_match_is_valid(self, host):
        result = host(rule(ConditionConfig("AlwaysMatch"))).validate()
        assert result.status is ValidationStatus.VALID
        assert result.issues_found == []

    def test_only_undetermined(self, host):
        result = host(rule(ConditionConfig("AlwaysUndetermined"))).validate()
        assert result.status is ValidationStatus.UNDETERMINED

    def test_no_validators(self, host):
        assert host().validate().status is ValidationStatus.UNDETERMINED

    def test_error_is_invalid(self, host):
        result = host(rule(ConditionConfig("AlwaysMatch")), rule(ConditionConfig("NeverMatch"))).validate()
        assert result.status is ValidationStatus.INVALID
        assert [issue.error_code for issue in result.issues_found] == ["NeverMatch"]
        assert not result.is_valid

    def test_warning_stays_valid(self, host):
        result = host(rule(ConditionConfig("NeverMatch"), severity=ValidationSeverity.WARNING)).validate()
        assert result.status is ValidationStatus.VALID
        assert result.issues_found[0].severity is ValidationSeverity.WARNING

    def test_warning_does_not_hide_error(self, host):
        result = host(
            rule(ConditionConfig("NeverMatch"), "first", ValidationSeverity.WARNING),
            rule(ConditionConfig("NeverMatch"), "second"),
        ).validate()
        assert result.status is ValidationStatus.INVALID
        assert len(result.issues_found) == 2

    def test_skipped_validators_do_not_count(self, host):
        result = host(rule(ConditionConfig("NeverMatch"), enabled=False)).validate()
        assert result.status is ValidationStatus.UNDETERMINED


class TestSevereStop:
    """A Severe issue stops the remaining validators"""

    def test_stops_after_severe(self, host, tracked, calls):
        value_host = host(
            rule(tracked("A", "NoMatch"), "A", ValidationSeverity.ERROR),
            rule(tracked("B", "NoMatch"), "B", ValidationSeverity.SEVERE),
            rule(tracked("C", "Match"), "C"),
        )
        result = value_host.validate()
        assert calls == ["A", "B"]
        assert [issue.error_code for issue in result.issues_found] == ["A", "B"]
        assert result.status is ValidationStatus.INVALID

    def test_failed_require_stops_comparisons(self, host, tracked, calls):
        value_host = host(
            rule(tracked("compare", "NoMatch"), "compare"),
            rule(ConditionConfig("RequireText")),
            value="",
        )
        result = value_host.validate()
        assert calls == []
        assert [issue.error_code for issue in result.issues_found] == ["RequireText"]


class TestValidationPass:
    """Tests for the pass as a whole"""

    def test_exception_in_condition_does_not_stop_pass(self, host, capturing_logger):
        result = host(rule(ConditionConfig("Raises")), rule(ConditionConfig("NeverMatch"))).validate()
        assert result.status is ValidationStatus.INVALID
        assert [issue.error_code for issue in result.issues_found] == ["NeverMatch"]
        assert capturing_logger.find(LoggingLevel.ERROR, "validation")

    def test_duplicate_error_code(self, host):
        with pytest.raises(DuplicateErrorCodeError, match="'Same'"):
            host(rule(ConditionConfig("AlwaysMatch"), "Same"), rule(ConditionConfig("NeverMatch"), "Same"))

    def test_duplicate_condition_type(self, host):
        with pytest.raises(DuplicateErrorCodeError, match="'RequireText'"):
            host(rule(ConditionConfig("RequireText")), rule(ConditionConfig("RequireText")))

    def test_duplicate_from_condition_creator(self, host, services):
        value_host = host(
            rule(ConditionConfig("NeverMatch")),
            ValidatorConfig(condition_creator=lambda config: services.condition_registry.create(
                ConditionConfig("NeverMatch")
            )),
        )
        with pytest.raises(DuplicateErrorCodeError, match="'NeverMatch'"):
            value_host.validate()

    def test_issues_reset_each_pass(self, host):
        value_host = host(rule(ConditionConfig("RequireText")), value="")
        assert value_host.validate().status is ValidationStatus.INVALID
        value_host.set_value("filled")
        result = value_host.validate()
        assert result.status is ValidationStatus.VALID
        assert result.issues_found == []

    def test_corrected(self, host):
        value_host = host(rule(ConditionConfig("RequireText")), value="")
        assert not value_host.validate().corrected
        value_host.set_value("filled")
        assert value_host.validate().corrected
        assert value_host.validate().corrected
        value_host.set_value("")
        assert not value_host.validate().corrected

    def test_valid_from_start_is_not_corrected(self, host):
        assert not host(rule(ConditionConfig("RequireText"))).validate().corrected

    def test_log_entry_per_pass(self, host, capturing_logger):
        host(rule(ConditionConfig("AlwaysMatch"))).validate()
        records = capturing_logger.find(LoggingLevel.DEBUG, "result")
        assert records[-1]["message"] == "Validated 'field': Valid"
        assert records[-1]["source"] == "ValidatorOrchestrator"


class TestParticipation:
    """Value hosts that do not take part in a pass"""

    def test_disabled_value_host_is_cleared(self, host):
        value_host = host(rule(ConditionConfig("NeverMatch")))
        value_host.validate()
        value_host.config.enabled = False
        assert value_host.validate() is None
        assert value_host.status is ValidationStatus.UNDETERMINED
        assert value_host.get_issues_found() == []

    def test_group_filter(self, host):
        value_host = host(rule(ConditionConfig("NeverMatch")), group=["billing", "shipping"])
        assert value_host.validate(ValidateOptions(group="contact")) is None
        assert value_host.validate(ValidateOptions(group="billing")).status is ValidationStatus.INVALID

    def test_static_value_host(self, make_manager):
        manager = make_manager(ValueHostConfig("lang", value_host_type=ValueHostType.STATIC, initial_value="en"))
        assert manager.get_value_host("lang").validate() is None
        assert manager.get_value("lang") == "en"


class TestNotifications:
    """State changed notifications"""

    def test_notified_on_change_only(self, host):
        value_host = host(rule(ConditionConfig("NeverMatch")))
        seen = []
        value_host.manager.on_state_changed(lambda vh, result: seen.append(result.status))
        value_host.validate()
        value_host.validate()
        assert seen == [ValidationStatus.INVALID]

    def test_skip_callback(self, host):
        value_host = host(rule(ConditionConfig("NeverMatch")))
        seen = []
        value_host.manager.on_state_changed(lambda vh, result: seen.append(result))
        value_host.validate(ValidateOptions(skip_callback=True))
        assert seen == []


# =============================================================================
# Asynchronous validators
# =============================================================================

class TestAsyncValidators:
    """Tests for pending results"""

    @pytest.mark.asyncio
    async def test_pending_then_valid(self, host):
        value_host = host(rule(ConditionConfig("AsyncEqualTo", params={"value": "text"})))
        result = value_host.validate()
        assert result.is_pending
        assert result.status is ValidationStatus.UNDETERMINED
        assert not result.is_valid

        final = await value_host.wait_for_pending()
        assert not final.is_pending
        assert final.status is ValidationStatus.VALID

    @pytest.mark.asyncio
    async def test_pending_then_invalid_notifies(self, host):
        value_host = host(rule(
            ConditionConfig("AsyncEqualTo", params={"value": "other"}), error_message="Not available",
        ))
        seen = []
        value_host.manager.on_state_changed(lambda vh, result: seen.append(result))
        value_host.validate()
        final = await value_host.wait_for_pending()
        assert final.status is ValidationStatus.INVALID
        assert final.issues_found[0].error_message == "Not available"
        assert seen[-1].status is ValidationStatus.INVALID
        assert not seen[-1].is_pending

    @pytest.mark.asyncio
    async def test_sync_result_kept_while_pending(self, host):
        value_host = host(
            rule(ConditionConfig("NeverMatch")),
            rule(ConditionConfig("AsyncEqualTo", params={"value": "text"})),
        )
        result = value_host.validate()
        assert result.status is ValidationStatus.INVALID
        assert result.is_pending
        final = await value_host.wait_for_pending()
        assert final.status is ValidationStatus.INVALID
        assert len(final.issues_found) == 1

    @pytest.mark.asyncio
    async def test_older_pass_discarded(self, host):
        value_host = host(rule(ConditionConfig("AsyncEqualTo", params={"value": "US", "delay": 0.01})), value="CA")
        first = value_host.validate()
        value_host.set_value("US")
        second = value_host.validate()
        assert first.pending[0] is not second.pending[0]

        final = await value_host.wait_for_pending()
        await asyncio.sleep(0.02)
        assert first.pending[0].done()
        assert final.status is ValidationStatus.VALID
        assert value_host.status is ValidationStatus.VALID
        assert value_host.get_issues_found() == []

    @pytest.mark.asyncio
    async def test_corrected_when_later_pass_settles(self, host):
        value_host = host(rule(ConditionConfig("AsyncEqualTo", params={"value": "US"})), value="CA")
        value_host.validate()
        assert (await value_host.wait_for_pending()).status is ValidationStatus.INVALID

        value_host.set_value("US")
        assert not value_host.validate().corrected
        final = await value_host.wait_for_pending()
        assert final.status is ValidationStatus.VALID
        assert final.corrected
        assert value_host.corrected

    @pytest.mark.asyncio
    async def test_clear_validation_discards_pending(self, host):
        value_host = host(rule(ConditionConfig("AsyncEqualTo", params={"value": "other"})))
        result = value_host.validate()
        value_host.clear_validation()
        await result.pending[0]
        await asyncio.sleep(0)
        assert value_host.status is ValidationStatus.UNDETERMINED
        assert value_host.get_issues_found() == []

    @pytest.mark.asyncio
    async def test_async_exception_is_undetermined(self, host, capturing_logger):
        value_host = host(rule(ConditionConfig("AsyncRaises")))
        value_host.validate()
        final = await value_host.wait_for_pending()
        assert final.status is ValidationStatus.UNDETERMINED
        messages = [r["message"] for r in capturing_logger.find(LoggingLevel.ERROR, "validation")]
        assert any("remote check failed" in message for message in messages)

    @pytest.mark.asyncio
    async def test_async_child_of_combinator_raises(self, host):
        value_host = host(rule(all_match(
            ConditionConfig("AlwaysMatch"), ConditionConfig("AsyncEqualTo", params={"value": "text"}),
        )))
        with pytest.raises(PendingChildError):
            value_host.validate()
