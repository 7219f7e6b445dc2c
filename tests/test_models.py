"""Tests for party, split and token parsing."""

from decimal import Decimal

import pytest

from duo_ledger.exceptions import ValidationError
from duo_ledger.models import (
    Party,
    Watermark,
    is_valid_split,
    parse_amount,
    parse_positive_int,
)


class TestParty:
    """Test the closed two-party type."""

    def test_other_is_the_counterparty(self):
        assert Party.A.other is Party.B
        assert Party.B.other is Party.A

    @pytest.mark.parametrize("raw", ["A", "a", " a "])
    def test_parse_accepts_case_insensitive(self, raw):
        assert Party.parse(raw) is Party.A

    def test_parse_passes_through_party(self):
        assert Party.parse(Party.B) is Party.B

    @pytest.mark.parametrize("raw", ["C", "", "payer", "AB"])
    def test_parse_rejects_unknown(self, raw):
        with pytest.raises(ValidationError, match="Unknown party"):
            Party.parse(raw)


class TestIsValidSplit:
    """Test the split invariant."""

    @pytest.mark.parametrize(
        "a, b",
        [(0.5, 0.5), (0.7, 0.3), (1, 0), (0.0, 1.0), (0.3333, 0.6667)],
    )
    def test_valid_splits(self, a, b):
        assert is_valid_split(a, b)

    @pytest.mark.parametrize(
        "a, b",
        [
            (0.5, 0.6),  # sums to 1.1
            (1.2, -0.2),  # out of range
            (True, False),  # bools are not percentages
            ("0.5", "0.5"),
            (None, 0.5),
            (0.5, 0.498),  # outside tolerance
        ],
    )
    def test_invalid_splits(self, a, b):
        assert not is_valid_split(a, b)


class TestWatermark:
    """Test strict watermark parsing."""

    def test_parses_positive_int(self):
        assert Watermark.parse(42).value == 42

    def test_parses_digit_string(self):
        assert Watermark.parse("1337").value == 1337

    def test_passes_through_watermark(self):
        token = Watermark(value=7)
        assert Watermark.parse(token) is token

    def test_str_is_plain_number(self):
        assert str(Watermark(value=15)) == "15"

    @pytest.mark.parametrize(
        "raw",
        [True, False, 0, -1, "-1", "0", "01", "1.5", 1.5, "1 OR 1=1", " 5", "", None],
    )
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValidationError, match="Invalid watermark"):
            Watermark.parse(raw)

    @pytest.mark.parametrize("raw", ["99999999999999999999", 2**63])
    def test_rejects_values_beyond_sqlite_integer(self, raw):
        with pytest.raises(ValidationError, match="Invalid watermark"):
            Watermark.parse(raw)


class TestParsePositiveInt:
    def test_accepts_largest_sqlite_integer(self):
        assert parse_positive_int(str(2**63 - 1)) == 2**63 - 1
        assert parse_positive_int(2**63 - 1) == 2**63 - 1

    @pytest.mark.parametrize(
        "raw", [2**63, str(2**63), "99999999999999999999", "9" * 5000]
    )
    def test_rejects_values_beyond_sqlite_integer(self, raw):
        with pytest.raises(ValidationError):
            parse_positive_int(raw, "transaction id")

    def test_message_names_the_value(self):
        with pytest.raises(ValidationError, match="Invalid transaction id"):
            parse_positive_int("abc", "transaction id")


class TestParseAmount:
    """Test amount coercion."""

    def test_float_goes_through_str(self):
        assert parse_amount(30.1) == Decimal("30.1")

    def test_string_amount(self):
        assert parse_amount(" 12.50 ") == Decimal("12.50")

    def test_negative_is_parsed_not_rejected(self):
        assert parse_amount("-5") == Decimal("-5")

    @pytest.mark.parametrize("raw", [True, "abc", "NaN", "Infinity", None])
    def test_rejects_non_numbers(self, raw):
        with pytest.raises(ValidationError):
            parse_amount(raw)
