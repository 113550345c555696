"""
Settings loader for fieldrules (settings.yaml).

Usage:
    from fieldrules.settings import settings

    level = settings.logging.level
    strategy = settings.get_nested("merge.default_strategy")
"""

import logging
from pathlib import Path
from typing import Any, List, Optional

import yaml

logger = logging.getLogger(__name__)


SETTINGS_FILE = Path(__file__).parent / "settings.yaml"

# Used when a key is missing from the YAML file
DEFAULTS = {
    "logging": {
        "level": "INFO",
        "format": "readable",
    },
    "validation": {
        "default_error_message": "{Label} is invalid.",
        "default_summary_message": None,
    },
    "merge": {
        "default_strategy": "replace",
        "log_level": "DEBUG",
    },
}

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
VALID_LOG_FORMATS = ("readable", "json")
VALID_MERGE_STRATEGIES = ("replace", "combine_all", "combine_any", "combine_when")


class DotDict(dict):
    """Dictionary with attribute access: d.key instead of d['key']"""

    def __getattr__(self, key: str) -> Any:
        try:
            value = self[key]
            if isinstance(value, dict):
                return DotDict(value)
            return value
        except KeyError:
            raise AttributeError(f"Setting '{key}' not found")

    def __setattr__(self, key: str, value: Any) -> None:
        self[key] = value

    def get_nested(self, path: str, default: Any = None) -> Any:
        """Get a value by dotted path: 'merge.default_strategy'"""
        value = self
        for key in path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge of dictionaries (override wins)"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(filepath: Optional[Path] = None) -> DotDict:
    """
    Load settings from a YAML file.

    Priority:
    1. Values from the YAML file
    2. DEFAULTS

    Args:
        filepath: Settings file (settings.yaml next to this module by default)

    Returns:
        DotDict with settings
    """
    filepath = Path(filepath) if filepath else SETTINGS_FILE

    config = _deep_merge({}, DEFAULTS)

    if filepath.exists():
        with open(filepath, "r", encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
        config = _deep_merge(config, yaml_config)
    else:
        logger.warning("Settings file not found: %s, using defaults", filepath)

    return DotDict(config)


def validate_settings(settings: DotDict) -> List[str]:
    """
    Validate settings.

    Returns:
        List of errors (empty when everything is OK)
    """
    errors = []

    level = str(settings.get_nested("logging.level", "")).upper()
    if level not in VALID_LOG_LEVELS:
        errors.append(f"logging.level must be one of {', '.join(VALID_LOG_LEVELS)}")

    log_format = settings.get_nested("logging.format")
    if log_format not in VALID_LOG_FORMATS:
        errors.append(f"logging.format must be one of {', '.join(VALID_LOG_FORMATS)}")

    strategy = settings.get_nested("merge.default_strategy")
    if strategy not in VALID_MERGE_STRATEGIES:
        errors.append(
            f"merge.default_strategy must be one of {', '.join(VALID_MERGE_STRATEGIES)}"
        )

    merge_level = str(settings.get_nested("merge.log_level", "")).upper()
    if merge_level not in VALID_LOG_LEVELS:
        errors.append(f"merge.log_level must be one of {', '.join(VALID_LOG_LEVELS)}")

    if not settings.get_nested("validation.default_error_message"):
        errors.append("validation.default_error_message is not set")

    return errors


_settings = None


def get_settings() -> DotDict:
    """Get global settings (lazy singleton)"""
    global _settings
    if _settings is None:
        _settings = load_settings()
        for err in validate_settings(_settings):
            logger.error("Invalid setting: %s", err)
    return _settings


def reload_settings() -> DotDict:
    """Reload settings from file"""
    global _settings
    _settings = None
    return get_settings()


# For convenient import: from fieldrules.settings import settings
settings = get_settings()
