"""
Omen CPK SDK - Market Math

Numeric helpers for market creation: initial distribution hint and fee.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Sequence

from .errors import PreconditionError

PROBABILITY_TOLERANCE = Decimal("0.000001")
HINT_SCALE = Decimal(1000000)
WEI = Decimal(10) ** 18


def validate_probabilities(probabilities: Sequence[float]) -> None:
    """Probabilities must be positive and sum to 1 (within tolerance)."""
    if len(probabilities) < 2:
        raise PreconditionError("A market needs at least two outcomes")
    values = [Decimal(str(p)) for p in probabilities]
    if any(p <= 0 for p in values):
        raise PreconditionError(f"Outcome probabilities must be positive: {list(probabilities)}")
    if abs(sum(values) - 1) > PROBABILITY_TOLERANCE:
        raise PreconditionError(f"Outcome probabilities must sum to 1, got {sum(values)}")


def calc_distribution_hint(probabilities: Sequence[float]) -> List[int]:
    """
    Initial funding distribution hint for the market maker.

    hint_i = round(1e6 * prod(p) / p_i): the outcome with the highest
    probability gets the smallest share of tokens, so its price is highest.
    """
    values = [Decimal(str(p)) for p in probabilities]
    product = Decimal(1)
    for value in values:
        product *= value
    return [int((product / value * HINT_SCALE).quantize(Decimal(1), rounding=ROUND_HALF_UP))
            for value in values]


def spread_to_fee(spread: float) -> int:
    """Fee percentage (e.g. 2.0 for 2%) as an 18-decimal fraction."""
    return int(Decimal(str(spread)) / 100 * WEI)
