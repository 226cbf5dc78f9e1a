"""
PSS Top-N Validator Selection

Selects the validators that must secure a Top-N consumer chain: the smallest
prefix of the power-sorted validator set whose cumulative power reaches N% of
the total, extended so that a power level is never split.

Selection algorithm:
1. Sort validators by power, descending; equal powers ordered by address
2. threshold = floor(total_power * N / 100), exact integer arithmetic
3. Fold left over the sorted sequence with an explicit accumulator
4. Return the admitted validators

Security properties:
- Selection is deterministic given the same inputs (no floats, no randomness)
- A power level is included or excluded as a whole
- Zero-power validators are never selected
"""

import logging
from dataclasses import dataclass
from functools import reduce
from typing import FrozenSet, List, Optional, Tuple

from ..constants import PERCENT_DENOMINATOR
from ..logger import get_logger
from .types import Node, ValidatorSet

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Accumulator:
    """
    Fold state carried across the power-sorted validators.

    Admitted validators always form a prefix of the sorted sequence, so the
    selection is carried as the prefix length.
    """
    admitted: int = 0
    accumulated_power: int = 0
    tie_inclusion: bool = False
    last_admitted_power: Optional[int] = None


def top_n_threshold(total_power: int, top_n: int) -> int:
    """Return floor(total_power * top_n / 100) without leaving the integers."""
    return (total_power * top_n) // PERCENT_DENOMINATOR


def sort_by_power(validator_set: ValidatorSet) -> List[Tuple[Node, int]]:
    """Sort (validator, power) pairs by power descending, then by address."""
    return sorted(validator_set.items(), key=lambda item: (-item[1], item[0]))


def get_top_n_validators(validator_set: ValidatorSet, top_n: int) -> FrozenSet[Node]:
    """
    Select the top-N validators of a validator set.

    A validator is admitted if it has power and the power accumulated before
    it is still below the threshold, or if it shares the exact power of the
    last admitted validator. Tie inclusion stays active only while the
    threshold has not been met at a strictly lower power level.

    Args:
        validator_set: Validator address -> non-negative power
        top_n: Percentage in 0..100 (caller precondition)

    Returns:
        Frozen set of selected validator addresses
    """
    total_power = sum(validator_set.values())
    threshold = top_n_threshold(total_power, top_n)

    def step(acc: _Accumulator, item: Tuple[Node, int]) -> _Accumulator:
        node, power = item
        below_threshold = power > 0 and acc.accumulated_power < threshold
        tied = acc.tie_inclusion and power == acc.last_admitted_power
        if not (below_threshold or tied):
            # Lower power levels past the threshold close the tie window
            return _Accumulator(
                admitted=acc.admitted,
                accumulated_power=acc.accumulated_power,
                tie_inclusion=False,
                last_admitted_power=acc.last_admitted_power,
            )
        return _Accumulator(
            admitted=acc.admitted + 1,
            accumulated_power=acc.accumulated_power + power,
            tie_inclusion=True,
            last_admitted_power=power,
        )

    ordered = sort_by_power(validator_set)
    result = reduce(step, ordered, _Accumulator())
    return frozenset(node for node, _ in ordered[:result.admitted])


class TopNSelector:
    """
    Computes Top-N membership for consumer chains.

    Stateless wrapper around `get_top_n_validators` that logs each selection.
    """

    def select(self, validator_set: ValidatorSet, top_n: int) -> FrozenSet[Node]:
        """Select the top-N validators of `validator_set`."""
        selected = get_top_n_validators(validator_set, top_n)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Top-N selection: N=%d, %d/%d validators, threshold power=%d",
                top_n, len(selected), len(validator_set), self.threshold(validator_set, top_n),
            )
        return selected

    def threshold(self, validator_set: ValidatorSet, top_n: int) -> int:
        """Power the selection has to reach for `top_n`."""
        return top_n_threshold(sum(validator_set.values()), top_n)

    def is_top_n(self, validator: Node, validator_set: ValidatorSet, top_n: int) -> bool:
        """Check if `validator` is selected into the top N of `validator_set`."""
        return validator in get_top_n_validators(validator_set, top_n)
