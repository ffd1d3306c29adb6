"""Tests for money utilities and largest-remainder allocation."""

from decimal import Decimal, ROUND_HALF_EVEN

import pytest

from distribution_domain.money import (
    allocate_largest_remainder,
    quantize,
    ratio,
    to_money,
)


class TestRounding:

    def test_to_money_converts_floats_via_str(self):
        assert to_money(0.1) == Decimal("0.10")
        assert to_money("1234.565") == Decimal("1234.57")

    def test_quantize_respects_rounding_mode(self):
        assert quantize(Decimal("0.125"), rounding=ROUND_HALF_EVEN) == Decimal("0.12")
        assert quantize(Decimal("0.135"), rounding=ROUND_HALF_EVEN) == Decimal("0.14")

    def test_ratio_by_zero_is_zero(self):
        assert ratio(Decimal("5"), Decimal("0")) == Decimal("0")


class TestLargestRemainder:

    def test_odd_cent_goes_to_largest_remainder(self):
        """75/25 of $1,040,000.01: 78,000,000.75 vs 26,000,000.25 cents."""
        parts = allocate_largest_remainder(
            Decimal("1040000.01"), {"calpers": Decimal("6"), "smith_family": Decimal("2")}
        )
        assert parts == {"calpers": Decimal("780000.01"), "smith_family": Decimal("260000.00")}

    def test_equal_remainders_use_tie_break_then_key(self):
        weights = {"gamma": Decimal("1"), "alpha": Decimal("1"), "beta": Decimal("1")}

        by_key = allocate_largest_remainder(Decimal("0.02"), weights)
        assert by_key == {"alpha": Decimal("0.01"), "beta": Decimal("0.01"), "gamma": Decimal("0.00")}

        gamma_first = allocate_largest_remainder(
            Decimal("0.02"), weights, tie_break=lambda k: 0 if k == "gamma" else 1
        )
        assert gamma_first["gamma"] == Decimal("0.01")
        assert gamma_first["beta"] == Decimal("0.00")

    def test_parts_always_sum_to_total(self):
        weights = {"a": Decimal("3"), "b": Decimal("7"), "c": Decimal("11"), "d": Decimal("0")}
        for total in ["0", "0.01", "0.05", "99.99", "1000000.07"]:
            parts = allocate_largest_remainder(Decimal(total), weights)
            assert sum(parts.values()) == Decimal(total)
            assert parts["d"] == Decimal("0")

    def test_smallest_share_can_fall_as_total_rises(self):
        """Weights 5/3/1: c keeps the leftover cent of 0.04 but loses it at 0.05."""
        weights = {"a": Decimal("5"), "b": Decimal("3"), "c": Decimal("1")}

        at_four = allocate_largest_remainder(Decimal("0.04"), weights)
        at_five = allocate_largest_remainder(Decimal("0.05"), weights)

        assert at_four == {"a": Decimal("0.02"), "b": Decimal("0.01"), "c": Decimal("0.01")}
        assert at_five == {"a": Decimal("0.03"), "b": Decimal("0.02"), "c": Decimal("0.00")}

    def test_two_way_split_never_falls(self):
        weights = {"a": Decimal("5"), "b": Decimal("3")}
        previous = {"a": Decimal("0"), "b": Decimal("0")}
        for cents in range(1, 40):
            parts = allocate_largest_remainder(Decimal(cents).scaleb(-2), weights)
            assert parts["a"] >= previous["a"] and parts["b"] >= previous["b"]
            previous = parts

    def test_result_independent_of_input_order(self):
        forward = {"a": Decimal("1"), "b": Decimal("1"), "c": Decimal("1")}
        backward = dict(reversed(list(forward.items())))
        assert allocate_largest_remainder(Decimal("10.00"), forward) == \
            allocate_largest_remainder(Decimal("10.00"), backward)

    def test_empty_weights(self):
        assert allocate_largest_remainder(Decimal("0"), {}) == {}
        with pytest.raises(ValueError, match="no recipients"):
            allocate_largest_remainder(Decimal("1"), {})

    def test_invalid_inputs(self):
        with pytest.raises(ValueError, match="negative total"):
            allocate_largest_remainder(Decimal("-1"), {"a": Decimal("1")})
        with pytest.raises(ValueError, match="whole number"):
            allocate_largest_remainder(Decimal("1.005"), {"a": Decimal("1")})
        with pytest.raises(ValueError, match="positive value"):
            allocate_largest_remainder(Decimal("1"), {"a": Decimal("0")})
        with pytest.raises(ValueError, match="Negative weight"):
            allocate_largest_remainder(Decimal("1"), {"a": Decimal("2"), "b": Decimal("-1")})
