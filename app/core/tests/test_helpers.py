"""
Tests for core helper functions.
"""

import uuid

import pytest

from core.helpers import round_half_up_div, short_reference, validate_uuid


class TestRoundHalfUpDiv:
    """Tests for round_half_up_div()."""

    @pytest.mark.parametrize(
        "numerator,divisor,expected",
        [
            (10_000, 200, 50),
            (100, 200, 1),
            (99, 200, 0),
            (300, 200, 2),
            (0, 200, 0),
            (149, 100, 1),
            (150, 100, 2),
        ],
    )
    def test_rounds_halves_up(self, numerator, divisor, expected):
        """Should round to the nearest integer with halves going up."""
        assert round_half_up_div(numerator, divisor) == expected

    def test_differs_from_bankers_rounding(self):
        """Should not round 2.5 down to 2 the way round() does."""
        assert round(500 / 200) == 2
        assert round_half_up_div(500, 200) == 3

    def test_rejects_non_positive_divisor(self):
        """Should raise ValueError for a zero divisor."""
        with pytest.raises(ValueError, match="divisor must be positive"):
            round_half_up_div(100, 0)

    def test_rejects_negative_numerator(self):
        """Should raise ValueError for a negative numerator."""
        with pytest.raises(ValueError, match="numerator must be non-negative"):
            round_half_up_div(-1, 200)


class TestValidateUuid:
    def test_valid_uuid(self):
        assert validate_uuid(str(uuid.uuid4())) is True

    def test_uuid_instance(self):
        assert validate_uuid(uuid.uuid4()) is True

    @pytest.mark.parametrize("value", ["order-123", "", None, "1234"])
    def test_invalid_values(self, value):
        assert validate_uuid(value) is False


class TestShortReference:
    def test_uses_last_six_characters_uppercased(self):
        """Should drop dashes and keep the last six characters."""
        value = uuid.UUID("550e8400-e29b-41d4-a716-446655440abc")

        assert short_reference(value) == "440ABC"

    def test_custom_length(self):
        assert short_reference("abcdef123", length=3) == "123"
