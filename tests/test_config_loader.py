"""
Tests for loading ValueHostConfigs from YAML.
"""

import pytest
import yaml

from fieldrules.conditions import UnknownConditionError
from fieldrules.config_loader import (
    ConfigLoadError,
    ConfigValidationError,
    load_validation_config,
    load_validation_manager,
    parse_validation_config,
)
from fieldrules.errors import ConfigurationError, ValueHostNameConflictError
from fieldrules.validation import ValidationSeverity, ValueHostType, resolve_error_code


CONFIG = {
    "custom_conditions": {
        "us_only": {
            "description": "Country is US",
            "expression": {"type": "EqualTo", "value_host_name": "country", "value": "US"},
        },
    },
    "value_hosts": [
        {"name": "country", "type": "Static", "initial_value": "US"},
        {
            "name": "postal_code",
            "label": "Postal code",
            "data_type": "String",
            "group": ["address"],
            "validators": [
                {"condition": "RequireText", "severity": "Severe", "error_message": "{Label} is required"},
                {
                    "condition": {"type": "EqualTo", "value": "12345"},
                    "enabler": "custom:us_only",
                    "error_code": "KnownPostal",
                    "error_message": "{Label} is unknown",
                },
            ],
        },
    ],
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "validation.yaml"
    path.write_text(yaml.safe_dump(CONFIG), encoding="utf-8")
    return path


class TestLoading:
    """Tests for load_validation_config()"""

    def test_from_mapping(self, services):
        configs = load_validation_config(CONFIG, services)
        assert [config.name for config in configs] == ["country", "postal_code"]
        assert configs[0].value_host_type is ValueHostType.STATIC
        assert configs[0].initial_value == "US"

        postal = configs[1]
        assert postal.value_host_type is ValueHostType.INPUT
        assert postal.label == "Postal code"
        assert postal.data_type == "String"
        assert postal.group == ["address"]

    def test_validators(self, services):
        postal = load_validation_config(CONFIG, services)[1]
        required, known = postal.validator_configs
        assert required.severity is ValidationSeverity.SEVERE
        assert resolve_error_code(required) == "RequireText"
        assert known.error_code == "KnownPostal"
        assert known.enabler_config.value_host_name == "country"
        assert known.condition_config.get("value") == "12345"

    def test_from_file(self, services, config_file):
        configs = load_validation_config(config_file, services)
        assert len(configs) == 2
        assert load_validation_config(str(config_file), services)[1].name == "postal_code"

    def test_empty_file(self, services, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_validation_config(path, services) == []

    def test_manager(self, services, config_file):
        manager = load_validation_manager(config_file, services)
        result = manager.validate()
        assert not result.is_valid
        assert [issue.error_message for issue in result.issues_found] == ["Postal code is required"]

        manager.set_value("postal_code", "99999")
        result = manager.validate()
        assert [issue.error_message for issue in result.issues_found] == ["Postal code is unknown"]

        manager.set_value("country", "CA")
        assert manager.validate().is_valid


class TestLoadErrors:
    """Files that cannot be read"""

    def test_missing_file(self, services, tmp_path):
        with pytest.raises(ConfigLoadError, match="File not found") as exc_info:
            load_validation_config(tmp_path / "missing.yaml", services)
        assert exc_info.value.file_path.endswith("missing.yaml")

    def test_bad_yaml(self, services, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("value_hosts: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigLoadError, match="YAML parse error"):
            load_validation_config(path, services)

    def test_top_level_not_mapping(self, services, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigLoadError, match="top level must be a mapping"):
            load_validation_config(path, services)

    def test_errors_are_configuration_errors(self):
        assert issubclass(ConfigLoadError, ConfigurationError)
        assert issubclass(ConfigValidationError, ConfigurationError)


class TestValidationErrors:
    """Content that does not match the schema"""

    def test_unknown_key(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_validation_config({"value_hosts": [{"name": "a", "colour": "red"}]})
        assert any("colour" in error for error in exc_info.value.errors)

    def test_static_with_validators(self):
        with pytest.raises(ConfigValidationError, match="cannot have validators"):
            parse_validation_config({"value_hosts": [
                {"name": "lang", "type": "Static", "validators": [{"condition": "RequireText"}]},
            ]})

    def test_empty_condition(self):
        with pytest.raises(ConfigValidationError, match="condition must not be empty"):
            parse_validation_config({"value_hosts": [{"name": "a", "validators": [{"condition": ""}]}]})

    def test_bad_severity(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_validation_config({"value_hosts": [
                {"name": "a", "validators": [{"condition": "RequireText", "severity": "Fatal"}]},
            ]})
        assert exc_info.value.errors[0].startswith("value_hosts.0.validators.0.severity")

    def test_unknown_condition(self, services):
        with pytest.raises(UnknownConditionError, match=r"a\.validators\[0\]"):
            load_validation_config({"value_hosts": [{"name": "a", "validators": [{"condition": "Nope"}]}]}, services)

    def test_broken_custom_condition(self, services):
        data = {"custom_conditions": {"broken": {"expression": {"and": ["Nope"]}}}}
        with pytest.raises(ConfigValidationError, match="custom_conditions.broken"):
            load_validation_config(data, services)

    def test_duplicate_names(self, services):
        with pytest.raises(ValueHostNameConflictError, match="'a'"):
            load_validation_config({"value_hosts": [{"name": "a"}, {"name": "a"}]}, services)
