"""Tests for distribution hints, fees and probability validation."""

import pytest

from omen_cpk.errors import PreconditionError
from omen_cpk.market_math import calc_distribution_hint, spread_to_fee, validate_probabilities


class TestDistributionHint:

    def test_even_market(self):
        assert calc_distribution_hint([0.5, 0.5]) == [500000, 500000]

    def test_likely_outcome_gets_fewer_tokens(self):
        assert calc_distribution_hint([0.25, 0.75]) == [750000, 250000]

    def test_three_outcomes(self):
        # prod = 0.1 * 0.3 * 0.6 = 0.018
        assert calc_distribution_hint([0.1, 0.3, 0.6]) == [180000, 60000, 30000]

    def test_preserves_relative_odds(self):
        hint = calc_distribution_hint([0.2, 0.8])
        assert hint[0] / hint[1] == pytest.approx(0.8 / 0.2)


class TestFee:

    def test_two_percent(self):
        assert spread_to_fee(2) == 2 * 10 ** 16

    def test_fractional(self):
        assert spread_to_fee(0.5) == 5 * 10 ** 15

    def test_zero(self):
        assert spread_to_fee(0) == 0


class TestValidateProbabilities:

    def test_valid(self):
        validate_probabilities([0.2, 0.3, 0.5])

    def test_tolerance(self):
        validate_probabilities([0.3333333, 0.3333333, 0.3333334])

    @pytest.mark.parametrize("probabilities", [
        [1.0],
        [0.5, 0.6],
        [0.0, 1.0],
        [-0.5, 1.5],
    ])
    def test_invalid(self, probabilities):
        with pytest.raises(PreconditionError):
            validate_probabilities(probabilities)
