"""
Unit Tests for Lenient Coercion Helpers
"""

import math

import pytest

from studyreg.core.coerce import (
    as_bool,
    as_list,
    as_text,
    clamp,
    enum_or_default,
    number_or_none,
    parse_enum,
    parse_number,
)
from studyreg.core.enums import Platform, Sex
from studyreg.core.exceptions import InvalidNumericField, UnknownEnumValue


class TestAsList:
    """Tests for as_list."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, []),
            ("Asthma", ["Asthma"]),
            (["a", " b ", "", "a"], ["a", "b"]),
            (("x", 3), ["x", "3"]),
            ({"not": "a list"}, []),
            (True, []),
            ([None, True, "ok"], ["ok"]),
        ],
    )
    def test_normalises(self, value, expected: list[str]) -> None:
        assert as_list(value) == expected


class TestScalars:
    """Tests for as_text and as_bool."""

    def test_text_from_enum(self) -> None:
        assert as_text(Platform.JDR) == "jdr"

    def test_text_drops_non_scalars(self) -> None:
        assert as_text(["a"]) == ""
        assert as_text(None) == ""

    @pytest.mark.parametrize("value", ["yes", "TRUE", "on", 1, "1", True])
    def test_truthy(self, value) -> None:
        assert as_bool(value) is True

    @pytest.mark.parametrize("value", ["no", "", None, 0, False, "maybe"])
    def test_falsy(self, value) -> None:
        assert as_bool(value) is False


class TestNumbers:
    """Tests for number parsing."""

    def test_parse_number(self) -> None:
        assert parse_number("radius", " 12.5 ") == 12.5
        assert parse_number("radius", 7) == 7.0

    @pytest.mark.parametrize("raw", ["abc", "", True, math.inf, "nan", None, 10**400, "1e400"])
    def test_parse_number_rejects(self, raw) -> None:
        with pytest.raises(InvalidNumericField) as exc_info:
            parse_number("radius", raw)
        assert exc_info.value.field == "radius"

    def test_number_or_none(self) -> None:
        assert number_or_none("radius", "8") == 8.0
        assert number_or_none("radius", "eight") is None
        assert number_or_none("radius", "   ") is None
        assert number_or_none("radius", 10**400) is None

    def test_clamp(self) -> None:
        assert clamp(250, 1, 200) == 200
        assert clamp(0.5, 1, 200) == 1
        assert clamp(50, 1, 200) == 50


class TestEnums:
    """Tests for enum lookup."""

    def test_parse_enum(self) -> None:
        assert parse_enum(Sex, "sex", "FEMALE") is Sex.FEMALE

    def test_parse_enum_unknown(self) -> None:
        with pytest.raises(UnknownEnumValue):
            parse_enum(Sex, "sex", "other")

    def test_blank_takes_default(self) -> None:
        chosen = enum_or_default(Platform, "platform", "", Platform.BPOR, Platform.JDR)
        assert chosen is Platform.BPOR

    def test_unknown_takes_strictest(self) -> None:
        chosen = enum_or_default(Platform, "platform", "x", Platform.BPOR, Platform.JDR)
        assert chosen is Platform.JDR
