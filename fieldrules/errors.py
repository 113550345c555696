"""
Exceptions shared across fieldrules.

ConfigurationError and its subclasses describe mistakes in how conditions,
validators or value hosts were configured. They are always raised to the
caller. Problems found while evaluating user data are never raised; they
are logged and the affected validator is treated as Undetermined.
"""

from typing import Any, Optional


class ConfigurationError(Exception):
    """Raised for configuration bugs that must reach the developer."""


class ValueHostNameConflictError(ConfigurationError):
    """Raised when a configuration layer defines the same value host twice."""

    def __init__(self, value_host_name: str):
        self.value_host_name = value_host_name
        super().__init__(f"ValueHost name '{value_host_name}' already defined")


class ValueHostNotFoundError(ConfigurationError):
    """Raised when a value host name does not exist in the configuration."""

    def __init__(self, value_host_name: str, source: str = ""):
        self.value_host_name = value_host_name
        self.source = source
        message = f"ValueHost '{value_host_name}' not found"
        if source:
            message += f" in {source}"
        super().__init__(message)


class ValidatorNotFoundError(ConfigurationError):
    """Raised when no validator with the given error code exists on a value host."""

    def __init__(self, value_host_name: str, error_code: str):
        self.value_host_name = value_host_name
        self.error_code = error_code
        super().__init__(
            f"Validator with error code '{error_code}' not found on ValueHost '{value_host_name}'"
        )


class DuplicateErrorCodeError(ConfigurationError):
    """Raised when two validators of one value host resolve to the same error code."""

    def __init__(self, value_host_name: str, error_code: str):
        self.value_host_name = value_host_name
        self.error_code = error_code
        super().__init__(
            f"Error code '{error_code}' is used by more than one validator "
            f"on ValueHost '{value_host_name}'"
        )


class ValidatorConfigError(ConfigurationError):
    """Raised when a ValidatorConfig cannot produce a condition."""

    def __init__(self, reason: str, error_code: Optional[str] = None):
        self.reason = reason
        self.error_code = error_code
        message = reason
        if error_code:
            message = f"Validator '{error_code}': {reason}"
        super().__init__(message)


class PendingChildError(ConfigurationError):
    """Raised when a child of a combinator returns a pending evaluation."""

    def __init__(self, parent_type: str, child: Any = None):
        self.parent_type = parent_type
        self.child = child
        super().__init__(
            f"Asynchronous evaluation is not supported for child conditions of '{parent_type}'"
        )


__all__ = [
    "ConfigurationError",
    "ValueHostNameConflictError",
    "ValueHostNotFoundError",
    "ValidatorNotFoundError",
    "DuplicateErrorCodeError",
    "ValidatorConfigError",
    "PendingChildError",
]
