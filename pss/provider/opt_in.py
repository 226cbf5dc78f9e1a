"""
PSS Opt-In / Opt-Out

Validator-initiated authorization changes for consumer chains.

State machine per (validator, consumer):
- NotOptedIn --opt_in--> OptedIn           (always succeeds)
- OptedIn --opt_out--> NotOptedIn           (only if not in the top N)
- OptedIn --end_block_pss--> OptedIn        (top-N ratchet, see end_block.py)

Top-N membership for opt-out is taken from the head of the voting-power
history, not from the live powers used by the end-block ratchet.
"""

from ..exceptions import ValidatorInTopNError, ValidatorNotOptedInError
from ..logger import get_logger
from .selection import TopNSelector
from .types import ConsumerChain, Node, OptResult, ProtocolState

logger = get_logger(__name__)

_selector = TopNSelector()


def is_top_n(state: ProtocolState, validator: Node, consumer: ConsumerChain) -> bool:
    """Check top-N membership against the most recent power snapshot."""
    provider = state.provider
    return _selector.is_top_n(validator, provider.latest_snapshot, provider.top_n(consumer))


def is_opted_in(state: ProtocolState, validator: Node, consumer: ConsumerChain) -> bool:
    return validator in state.provider.opted_in(consumer)


def opt_in(state: ProtocolState, consumer: ConsumerChain, validator: Node) -> OptResult:
    """
    Opt `validator` in to `consumer`.

    Idempotent, and valid whether or not the consumer chain is running yet.
    """
    provider = state.provider
    opted_in = provider.opted_in(consumer)
    if validator in opted_in:
        logger.debug(f"Validator {validator} already opted in to consumer={consumer}")
        return OptResult.success(state)

    new_state = state.with_provider(provider.with_opted_in(consumer, opted_in | {validator}))
    logger.info(f"Validator {validator} --> opted in to consumer={consumer}")
    return OptResult.success(new_state)


def opt_out(state: ProtocolState, consumer: ConsumerChain, validator: Node) -> OptResult:
    """
    Opt `validator` out of `consumer`.

    Fails with ValidatorInTopN if the validator is in the consumer's top N,
    otherwise with ValidatorNotOptedIn if it is not opted in. The top-N check
    runs first.
    """
    if is_top_n(state, validator, consumer):
        error = ValidatorInTopNError(validator, consumer)
        logger.info(f"Opt-out rejected [{error.kind}]: {validator} consumer={consumer}")
        return OptResult.failure(error)

    if not is_opted_in(state, validator, consumer):
        error = ValidatorNotOptedInError(validator, consumer)
        logger.info(f"Opt-out rejected [{error.kind}]: {validator} consumer={consumer}")
        return OptResult.failure(error)

    provider = state.provider
    new_state = state.with_provider(
        provider.with_opted_in(consumer, provider.opted_in(consumer) - {validator})
    )
    logger.info(f"Validator {validator} <-- opted out of consumer={consumer}")
    return OptResult.success(new_state)
