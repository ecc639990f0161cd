"""Tests for claims_decisioning.serialization module."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType

from claims_decisioning.insurance.assessments import EscalationTrigger, Severity, TriggerType
from claims_decisioning.serialization import summarize, to_serializable


class Color(Enum):
    RED = "red"


@dataclass
class Point:
    x: float
    y: float


class TestToSerializable:
    def test_primitives(self):
        assert to_serializable(None) is None
        assert to_serializable(3) == 3
        assert to_serializable("s") == "s"

    def test_enum_and_datetime(self):
        assert to_serializable(Color.RED) == "red"
        assert to_serializable(datetime(2024, 1, 1, tzinfo=timezone.utc)) == "2024-01-01T00:00:00+00:00"

    def test_containers(self):
        assert to_serializable((1, 2)) == [1, 2]
        assert to_serializable({"b", "a"}) == ["a", "b"]
        assert to_serializable(MappingProxyType({"k": Color.RED})) == {"k": "red"}

    def test_dataclass(self):
        assert to_serializable(Point(1.0, 2.0)) == {"x": 1.0, "y": 2.0}

    def test_pydantic_model(self):
        trigger = EscalationTrigger(type=TriggerType.TOTAL_LOSS, reason="Totaled", severity=Severity.HIGH)
        data = to_serializable(trigger)
        assert data["type"] == "total_loss"
        assert data["severity"] == "high"
        json.dumps(data)

    def test_fallback_to_str(self):
        class Opaque:
            __slots__ = ()

            def __str__(self):
                return "opaque"

        assert to_serializable(Opaque()) == "opaque"


class TestSummarize:
    def test_long_lists_truncated(self):
        assert summarize(list(range(12)), max_items=3) == [0, 1, 2, "... 9 more"]

    def test_nested_dicts(self):
        data = {"a": {"b": list(range(5))}, "c": 1}
        assert summarize(data, max_items=2) == {"a": {"b": [0, 1, "... 3 more"]}, "c": 1}
