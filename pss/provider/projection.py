"""
PSS Validator Set Projection

Restricts the provider's validator set to the validators authorized to
secure a given consumer chain. Used when building the validator set update
sent to that consumer.
"""

from types import MappingProxyType

from .types import ConsumerChain, ProviderState, ValidatorSet


def get_pss_validator_set(
    provider_state: ProviderState,
    full_validator_set: ValidatorSet,
    consumer: ConsumerChain,
) -> ValidatorSet:
    """
    Project `full_validator_set` onto the validators opted in to `consumer`.

    Opted-in validators missing from the full set are skipped. An unknown
    consumer yields an empty set.
    """
    opted_in = provider_state.opted_in(consumer)
    return MappingProxyType({
        node: power
        for node, power in sorted(full_validator_set.items())
        if node in opted_in
    })
