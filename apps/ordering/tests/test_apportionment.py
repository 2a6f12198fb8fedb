"""
Largest-remainder apportionment tests.

Pure function, no database.
"""

import pytest
from hypothesis import given, settings, strategies as st

from apps.ordering.services import largest_remainder


class TestLargestRemainderExamples:

    def test_seven_three_approved_six(self):
        """Exact shares 4.2 / 1.8: the leftover unit goes to 1.8."""
        assert largest_remainder([7, 3], 6) == [4, 2]

    def test_five_three_approved_six(self):
        """Exact shares 3.75 / 2.25: the leftover unit goes to 3.75."""
        assert largest_remainder([5, 3], 6) == [4, 2]

    def test_full_approval_returns_weights(self):
        assert largest_remainder([5, 3, 2], 10) == [5, 3, 2]

    def test_zero_total(self):
        assert largest_remainder([5, 3], 0) == [0, 0]

    def test_zero_weights_is_noop(self):
        assert largest_remainder([0, 0], 4) == [0, 0]

    def test_empty_weights(self):
        assert largest_remainder([], 0) == []

    def test_tie_goes_to_earlier_weight(self):
        assert largest_remainder([1, 1], 1) == [1, 0]
        assert largest_remainder([1, 1, 1], 2) == [1, 1, 0]

    def test_tie_order_follows_input_order(self):
        assert largest_remainder([2, 1, 1], 2) == [1, 1, 0]

    def test_zero_weight_line_gets_nothing(self):
        assert largest_remainder([4, 0, 4], 3) == [2, 0, 1]

    def test_negative_total_rejected(self):
        with pytest.raises(ValueError):
            largest_remainder([1, 2], -1)

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            largest_remainder([3, -1], 1)


@st.composite
def weights_and_total(draw):
    weights = draw(st.lists(st.integers(min_value=0, max_value=500), min_size=1, max_size=25))
    total = draw(st.integers(min_value=0, max_value=sum(weights)))
    return weights, total


class TestLargestRemainderProperties:

    @settings(max_examples=300)
    @given(weights_and_total())
    def test_parts_sum_to_total(self, case):
        weights, total = case
        parts = largest_remainder(weights, total)

        assert len(parts) == len(weights)
        if sum(weights) == 0:
            assert parts == [0] * len(weights)
        else:
            assert sum(parts) == total

    @settings(max_examples=300)
    @given(weights_and_total())
    def test_parts_within_floor_and_ceiling_of_exact_share(self, case):
        weights, total = case
        weight_sum = sum(weights)
        parts = largest_remainder(weights, total)

        for weight, part in zip(weights, parts):
            if weight_sum == 0:
                assert part == 0
                continue
            exact_floor = (total * weight) // weight_sum
            exact_ceil = -(-(total * weight) // weight_sum)
            assert exact_floor <= part <= exact_ceil

    @settings(max_examples=300)
    @given(weights_and_total())
    def test_parts_never_exceed_weights(self, case):
        weights, total = case
        parts = largest_remainder(weights, total)

        assert all(0 <= part <= weight for part, weight in zip(parts, weights))

    @given(weights_and_total())
    def test_deterministic(self, case):
        weights, total = case
        assert largest_remainder(weights, total) == largest_remainder(list(weights), total)
