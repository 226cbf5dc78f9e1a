"""
PSS Provider Types

Immutable state snapshots threaded through the provider core.

Every container held by a state value is read-only (`MappingProxyType`,
`frozenset`, `tuple`). Operations return a new state built with
`dataclasses.replace`, so untouched containers are shared between the old
and the new snapshot.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from ..constants import DEFAULT_TOP_N
from ..exceptions import PSSError

# Validator consensus address. String order is the tie-break order.
Node = str

# Consumer chain id.
ConsumerChain = str

# Node -> non-negative integer voting power.
ValidatorSet = Mapping[Node, int]


_EMPTY_MAPPING: Mapping = MappingProxyType({})


def freeze_validator_set(powers: Optional[Mapping[Node, int]] = None) -> ValidatorSet:
    """Return a read-only copy of `powers` with keys in canonical order."""
    if not powers:
        return _EMPTY_MAPPING
    return MappingProxyType({node: int(powers[node]) for node in sorted(powers)})


def _freeze_opted_in(data: Optional[Mapping[ConsumerChain, Iterable[Node]]]) -> Mapping[ConsumerChain, FrozenSet[Node]]:
    if not data:
        return _EMPTY_MAPPING
    return MappingProxyType({chain: frozenset(data[chain]) for chain in sorted(data)})


@dataclass(frozen=True)
class ProviderState:
    """
    Provider-side PSS state.

    Attributes:
        top_n_by_consumer: Governance-assigned N per consumer (absent means 0)
        opted_in_vals: Validators authorized per consumer (absent means none)
        current_powers: Live validator powers
        voting_power_history: Past power snapshots, most recent first
        running_consumers: Consumer chains that are currently running
    """
    top_n_by_consumer: Mapping[ConsumerChain, int] = field(default_factory=lambda: _EMPTY_MAPPING)
    opted_in_vals: Mapping[ConsumerChain, FrozenSet[Node]] = field(default_factory=lambda: _EMPTY_MAPPING)
    current_powers: ValidatorSet = field(default_factory=lambda: _EMPTY_MAPPING)
    voting_power_history: Tuple[ValidatorSet, ...] = ()
    running_consumers: FrozenSet[ConsumerChain] = frozenset()

    @classmethod
    def create(
        cls,
        top_n_by_consumer: Optional[Mapping[ConsumerChain, int]] = None,
        opted_in_vals: Optional[Mapping[ConsumerChain, Iterable[Node]]] = None,
        current_powers: Optional[Mapping[Node, int]] = None,
        voting_power_history: Iterable[Mapping[Node, int]] = (),
        running_consumers: Iterable[ConsumerChain] = (),
    ) -> "ProviderState":
        """Build a state from plain (mutable) containers, freezing them."""
        return cls(
            top_n_by_consumer=MappingProxyType(dict(top_n_by_consumer or {})),
            opted_in_vals=_freeze_opted_in(opted_in_vals),
            current_powers=freeze_validator_set(current_powers),
            voting_power_history=tuple(freeze_validator_set(s) for s in voting_power_history),
            running_consumers=frozenset(running_consumers),
        )

    # -- queries -------------------------------------------------------

    def top_n(self, consumer: ConsumerChain) -> int:
        return self.top_n_by_consumer.get(consumer, DEFAULT_TOP_N)

    def opted_in(self, consumer: ConsumerChain) -> FrozenSet[Node]:
        return self.opted_in_vals.get(consumer, frozenset())

    def is_running(self, consumer: ConsumerChain) -> bool:
        return consumer in self.running_consumers

    @property
    def latest_snapshot(self) -> ValidatorSet:
        """Head of the voting-power history (empty if there is no history)."""
        if not self.voting_power_history:
            return _EMPTY_MAPPING
        return self.voting_power_history[0]

    # -- copy-on-write updates ---------------------------------------------

    def with_opted_in(self, consumer: ConsumerChain, validators: Iterable[Node]) -> "ProviderState":
        """Return a copy whose opted-in set for `consumer` is `validators`."""
        updated = dict(self.opted_in_vals)
        updated[consumer] = frozenset(validators)
        return replace(self, opted_in_vals=MappingProxyType(updated))

    def with_top_n(self, consumer: ConsumerChain, top_n: int) -> "ProviderState":
        updated = dict(self.top_n_by_consumer)
        updated[consumer] = top_n
        return replace(self, top_n_by_consumer=MappingProxyType(updated))

    def with_running(self, consumer: ConsumerChain, running: bool = True) -> "ProviderState":
        if running:
            return replace(self, running_consumers=self.running_consumers | {consumer})
        return replace(self, running_consumers=self.running_consumers - {consumer})

    def with_current_powers(self, powers: Mapping[Node, int]) -> "ProviderState":
        return replace(self, current_powers=freeze_validator_set(powers))

    def with_history_snapshot(self, powers: Mapping[Node, int]) -> "ProviderState":
        """Return a copy with `powers` recorded as the newest history entry."""
        snapshot = freeze_validator_set(powers)
        return replace(self, voting_power_history=(snapshot,) + self.voting_power_history)

    # -- serialization -----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict with deterministic ordering."""
        return {
            'top_n_by_consumer': {c: self.top_n_by_consumer[c] for c in sorted(self.top_n_by_consumer)},
            'opted_in_vals': {c: sorted(self.opted_in_vals[c]) for c in sorted(self.opted_in_vals)},
            'current_powers': dict(self.current_powers),
            'voting_power_history': [dict(s) for s in self.voting_power_history],
            'running_consumers': sorted(self.running_consumers),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProviderState':
        """Create from dictionary."""
        return cls.create(
            top_n_by_consumer=data.get('top_n_by_consumer', {}),
            opted_in_vals=data.get('opted_in_vals', {}),
            current_powers=data.get('current_powers', {}),
            voting_power_history=data.get('voting_power_history', []),
            running_consumers=data.get('running_consumers', []),
        )


@dataclass(frozen=True)
class ProtocolState:
    """
    Provider PSS state plus the rest of the CCV state.

    `extra` is carried through untouched; this core never interprets it.
    """
    provider: ProviderState = field(default_factory=ProviderState)
    extra: Mapping[str, Any] = field(default_factory=lambda: _EMPTY_MAPPING)

    def with_provider(self, provider: ProviderState) -> "ProtocolState":
        return replace(self, provider=provider)


@dataclass(frozen=True)
class OptResult:
    """
    Outcome of an opt-in or opt-out request.

    Exactly one of `state` and `error` is set.
    """
    state: Optional[ProtocolState] = None
    error: Optional[PSSError] = None

    @classmethod
    def success(cls, state: ProtocolState) -> "OptResult":
        return cls(state=state)

    @classmethod
    def failure(cls, error: PSSError) -> "OptResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> ProtocolState:
        """Return the new state, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.state
