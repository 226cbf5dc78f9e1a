"""
PSS End-Block Reconciliation

Once per block, after all opt-in/opt-out messages of the block, every
running consumer chain gets the current top-N validators (live powers)
unioned into its opted-in set. The opted-in sets only ever grow here.
"""

from ..logger import get_logger
from .selection import TopNSelector
from .types import ProviderState

logger = get_logger(__name__)

_selector = TopNSelector()


def end_block_pss(provider_state: ProviderState) -> ProviderState:
    """
    Force-opt-in the live top-N validators of every running consumer.

    Args:
        provider_state: State after the block's messages were applied

    Returns:
        New provider state; opted-in sets are supersets of the input's
    """
    state = provider_state
    powers = provider_state.current_powers

    for consumer in sorted(provider_state.running_consumers):
        top_n_vals = _selector.select(powers, provider_state.top_n(consumer))
        opted_in = state.opted_in(consumer)
        added = top_n_vals - opted_in
        if not added:
            continue
        state = state.with_opted_in(consumer, opted_in | top_n_vals)
        logger.debug(
            f"End-block ratchet consumer={consumer}: +{len(added)} "
            f"({', '.join(sorted(added))})"
        )

    return state
