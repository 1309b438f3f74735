"""Tests for raw token quantity decoding."""

from decimal import Decimal

import pytest

from trc20watch.amounts import to_decimal_amount, to_display_amount


class TestToDisplayAmount:
    """Tests for to_display_amount."""

    def test_usdt_amount(self):
        """Test the canonical 6-decimal USDT example."""
        assert to_display_amount("10229460000", 6) == "10229.46"

    def test_whole_amount_has_no_fraction(self):
        """Test that a zero remainder yields just the integer part."""
        assert to_display_amount("5000000", 6) == "5"

    def test_small_amount_is_zero_padded(self):
        """Test that the fraction keeps its leading zeros."""
        assert to_display_amount("1", 6) == "0.000001"
        assert to_display_amount("1050", 6) == "0.00105"

    def test_zero_decimals(self):
        """Test tokens without decimals."""
        assert to_display_amount("42", 0) == "42"

    def test_int_input(self):
        """Test that integer quantities are accepted."""
        assert to_display_amount(123456789, 3) == "123456.789"

    def test_empty_quantity_is_zero(self):
        """Test that missing quantities decode to zero."""
        assert to_display_amount(None, 6) == "0"
        assert to_display_amount("", 6) == "0"

    def test_large_decimals_keep_precision(self):
        """Test 18-decimal tokens far beyond float precision."""
        raw = "123456789012345678901234567890"
        assert to_display_amount(raw, 18) == "123456789012.34567890123456789"

    @pytest.mark.parametrize(
        "raw,decimals",
        [
            ("10229460000", 6),
            ("1", 18),
            ("100000000000000000000", 18),
            ("98765432109876543210", 24),
            ("7", 0),
            ("0", 6),
        ],
    )
    def test_round_trip_is_exact(self, raw, decimals):
        """Test that scaling the decoded amount back gives the raw integer."""
        decoded = Decimal(to_display_amount(raw, decimals))
        assert decoded.scaleb(decimals) == Decimal(raw)
        assert int(decoded.scaleb(decimals)) == int(raw)

    @pytest.mark.parametrize("raw", ["12.5", "abc", "-100", "1e6", " "])
    def test_malformed_quantity_raises(self, raw):
        """Test that non-integer quantities are rejected."""
        with pytest.raises(ValueError):
            to_display_amount(raw, 6)

    def test_negative_decimals_raises(self):
        """Test that negative decimal places are rejected."""
        with pytest.raises(ValueError):
            to_display_amount("100", -1)


class TestToDecimalAmount:
    """Tests for to_decimal_amount."""

    def test_returns_decimal(self):
        """Test Decimal conversion for ledger storage."""
        amount = to_decimal_amount("10229460000", 6)

        assert isinstance(amount, Decimal)
        assert amount == Decimal("10229.46")
