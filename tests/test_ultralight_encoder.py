"""Tests del encoder Ultralight.

Ejecutar:
    pytest tests/test_ultralight_encoder.py -v
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from crawler_api.ultralight import encode, render_value


# =============================================================================
# ESCALARES
# =============================================================================

class TestScalarRendering:

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("test", "test"),
            (21.5, "21.5"),
            (60, "60"),
            (True, "true"),
            (False, "false"),
            (None, ""),
            (Decimal("3.10"), "3.10"),
        ],
    )
    def test_scalar_forms(self, value, expected):
        assert render_value(value) == expected

    def test_datetime_is_iso8601(self):
        ts = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert render_value(ts) == "2024-05-01T12:30:00+00:00"


# =============================================================================
# COMPUESTOS
# =============================================================================

class TestCompositeRendering:

    def test_dict_is_canonical_json(self):
        assert render_value({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_key_order_does_not_matter(self):
        assert render_value({"x": 1, "y": 2}) == render_value({"y": 2, "x": 1})

    def test_nested_dataclass(self):
        @dataclass
        class Wind:
            speed: float
            direction: str

        assert render_value({"wind": Wind(3.5, "N")}) == '{"wind":{"direction":"N","speed":3.5}}'

    def test_list(self):
        assert render_value([1, "a", None]) == '[1,"a",null]'

    def test_decimal_inside_composite_is_a_number(self):
        assert render_value({"t": Decimal("3.10")}) == '{"t":3.1}'
        assert render_value([Decimal("2")]) == "[2.0]"


# =============================================================================
# PAYLOAD
# =============================================================================

class TestEncode:

    def test_two_pairs_sorted_by_name(self):
        assert encode({"temp": 21.5, "hum": 60}) == "hum|60|temp|21.5"

    def test_deterministic_across_insertion_orders(self):
        first = encode({"temp": 21.5, "hum": 60, "wind": {"s": 1}})
        second = encode({"wind": {"s": 1}, "hum": 60, "temp": 21.5})
        assert first == second
        assert [encode({"temp": 21.5, "hum": 60}) for _ in range(5)] == ["hum|60|temp|21.5"] * 5

    def test_single_pair(self):
        assert encode({"test": "test"}) == "test|test"

    def test_empty_attribute_set(self):
        assert encode({}) == ""

    def test_separator_is_not_escaped_but_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            payload = encode({"note": "a|b"})

        assert payload == "note|a|b"
        assert "framing" in caplog.text
