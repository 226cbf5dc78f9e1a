"""
PSS Block Processing

Applies one block's PSS messages to a protocol state: opt-in/opt-out
messages in the block's canonical transaction order, then the end-block
ratchet exactly once.
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple, Union

from ..logger import get_logger
from .end_block import end_block_pss
from .opt_in import opt_in, opt_out
from .types import ConsumerChain, Node, OptResult, ProtocolState

logger = get_logger(__name__)


@dataclass(frozen=True)
class MsgOptIn:
    """Validator request to secure a consumer chain."""
    consumer: ConsumerChain
    validator: Node


@dataclass(frozen=True)
class MsgOptOut:
    """Validator request to stop securing a consumer chain."""
    consumer: ConsumerChain
    validator: Node


PSSMessage = Union[MsgOptIn, MsgOptOut]


@dataclass(frozen=True)
class BlockResult:
    """
    Outcome of processing a block.

    Attributes:
        state: Protocol state after the messages and the end-block ratchet
        results: One (message, result) pair per message, in block order
    """
    state: ProtocolState
    results: Tuple[Tuple[PSSMessage, OptResult], ...] = ()

    @property
    def failed(self) -> List[Tuple[PSSMessage, OptResult]]:
        return [(msg, res) for msg, res in self.results if not res.ok]


def apply_message(state: ProtocolState, message: PSSMessage) -> OptResult:
    """Apply a single PSS message."""
    if isinstance(message, MsgOptIn):
        return opt_in(state, message.consumer, message.validator)
    if isinstance(message, MsgOptOut):
        return opt_out(state, message.consumer, message.validator)
    raise TypeError(f"Unsupported PSS message: {type(message).__name__}")


def apply_block(state: ProtocolState, messages: Iterable[PSSMessage]) -> BlockResult:
    """
    Process one block.

    A rejected message leaves the state unchanged and processing continues
    with the next message.
    """
    results = []
    for message in messages:
        result = apply_message(state, message)
        if result.ok:
            state = result.state
        results.append((message, result))

    state = state.with_provider(end_block_pss(state.provider))

    failed = sum(1 for _, res in results if not res.ok)
    logger.debug(f"Processed block: {len(results)} messages, {failed} rejected")
    return BlockResult(state=state, results=tuple(results))
