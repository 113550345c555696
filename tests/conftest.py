"""
Pytest fixtures for fieldrules tests.

Provides:
- CapturingLogger: StructuredLogger that records entries instead of printing
- services: ValidationServices with a small set of test conditions
- make_manager: builds a ValidationManager from ValueHostConfigs
"""

import asyncio
from typing import Any, Dict, List

import pytest

from fieldrules.conditions import (
    ConditionBase,
    ConditionCategory,
    ConditionConfig,
    ConditionEvaluateResult,
)
from fieldrules.logger import LoggingLevel, StructuredLogger
from fieldrules.manager import ValidationManager
from fieldrules.services import ValidationServices


class CapturingLogger(StructuredLogger):
    """Keeps every entry in self.records."""

    def __init__(self, name: str = "fieldrules.tests"):
        super().__init__(name, LoggingLevel.DEBUG)
        self.records: List[Dict[str, Any]] = []

    def _log(self, level: LoggingLevel, message: str, **kwargs: Any) -> None:
        if not self.is_enabled_for(level):
            return
        self.records.append(dict(kwargs, level=level, message=message))

    def find(self, level: LoggingLevel = None, category: str = None) -> List[Dict[str, Any]]:
        return [
            record for record in self.records
            if (level is None or record["level"] is level)
            and (category is None or record.get("category") == category)
        ]


def register_test_conditions(services: ValidationServices) -> None:
    registry = services.condition_registry

    @registry.predicate("RequireText", "Value must contain text", ConditionCategory.REQUIRE)
    def require_text(value, config):
        return value is not None and bool(str(value).strip())

    @registry.predicate("IsNumber", "Value must be a number", ConditionCategory.DATA_TYPE_CHECK)
    def is_number(value, config):
        if value is None:
            return None
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    @registry.predicate("EqualTo")
    def equal_to(value, config):
        if value is None:
            return None
        return value == config.get("value")

    @registry.predicate("Range")
    def in_range(value, config):
        if not isinstance(value, (int, float)):
            return None
        return config.get("minimum") <= value <= config.get("maximum")

    @registry.predicate("AlwaysMatch")
    def always_match(value, config):
        return True

    @registry.predicate("NeverMatch")
    def never_match(value, config):
        return False

    @registry.predicate("AlwaysUndetermined")
    def always_undetermined(value, config):
        return None

    @registry.predicate("Raises")
    def raises(value, config):
        raise RuntimeError("boom")

    @registry.predicate("AsyncEqualTo")
    async def async_equal_to(value, config):
        await asyncio.sleep(config.get("delay", 0))
        return value == config.get("value")

    @registry.predicate("AsyncRaises")
    async def async_raises(value, config):
        await asyncio.sleep(0)
        raise RuntimeError("remote check failed")

    @registry.condition("Tracked")
    class TrackedCondition(ConditionBase):
        """Appends params["name"] to params["calls"] and returns params["result"]."""

        def evaluate(self, value_host, resolver):
            self.config.get("calls").append(self.config.get("name"))
            return ConditionEvaluateResult(self.config.get("result", "Match"))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def capturing_logger():
    """Logger that records entries for assertions"""
    return CapturingLogger()


@pytest.fixture
def services(capturing_logger):
    """ValidationServices with the test conditions registered"""
    services = ValidationServices(logger=capturing_logger)
    register_test_conditions(services)
    return services


@pytest.fixture
def make_manager(services):
    """Factory: make_manager(*value_host_configs) -> ValidationManager"""
    def factory(*configs):
        return ValidationManager(list(configs), services)
    return factory


@pytest.fixture
def calls():
    """Names of Tracked conditions in evaluation order"""
    return []


@pytest.fixture
def tracked(calls):
    """Factory: tracked(name, result="Match") -> ConditionConfig recording into calls"""
    def factory(name: str, result: str = "Match") -> ConditionConfig:
        return ConditionConfig("Tracked", params={"calls": calls, "name": name, "result": result})
    return factory
