"""
PSS Provider Module

Partial Set Security on the provider chain: which validators secure which
consumer chain.

Components:
- TopNSelector / get_top_n_validators: tie-complete top N% by power
- get_pss_validator_set: validator set projected onto a consumer
- opt_in / opt_out: validator-initiated authorization changes
- end_block_pss: per-block top-N ratchet
- apply_block: canonical per-block driver

Usage:
    from pss.provider import ProtocolState, ProviderState, opt_in

    state = ProtocolState(provider=ProviderState.create(current_powers={"A": 10}))
    state = opt_in(state, "consumer-1", "A").unwrap()
"""

from .types import (
    Node,
    ConsumerChain,
    ValidatorSet,
    ProviderState,
    ProtocolState,
    OptResult,
    freeze_validator_set,
)
from .selection import (
    TopNSelector,
    get_top_n_validators,
    sort_by_power,
    top_n_threshold,
)
from .projection import get_pss_validator_set
from .opt_in import (
    opt_in,
    opt_out,
    is_top_n,
    is_opted_in,
)
from .end_block import end_block_pss
from .block import (
    MsgOptIn,
    MsgOptOut,
    BlockResult,
    apply_block,
    apply_message,
)

__all__ = [
    # Types
    'Node',
    'ConsumerChain',
    'ValidatorSet',
    'ProviderState',
    'ProtocolState',
    'OptResult',
    'freeze_validator_set',

    # Selection
    'TopNSelector',
    'get_top_n_validators',
    'sort_by_power',
    'top_n_threshold',

    # Projection
    'get_pss_validator_set',

    # Opt-in / opt-out
    'opt_in',
    'opt_out',
    'is_top_n',
    'is_opted_in',

    # Block processing
    'end_block_pss',
    'MsgOptIn',
    'MsgOptOut',
    'BlockResult',
    'apply_block',
    'apply_message',
]
