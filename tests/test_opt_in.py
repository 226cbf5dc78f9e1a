"""
PSS Opt-In / Opt-Out and Projection Test Suite

Coverage:
  - opt_in: idempotent union, works for non-running consumers
  - opt_out: top-N guard (history head), not-opted-in guard, check order
  - get_pss_validator_set: projection onto opted-in validators
  - ProviderState copy-on-write helpers and serialization
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from pss.exceptions import (
    PSSError,
    ValidatorInTopNError,
    ValidatorNotOptedInError,
)
from pss.provider import (
    OptResult,
    ProtocolState,
    ProviderState,
    get_pss_validator_set,
    is_opted_in,
    is_top_n,
    opt_in,
    opt_out,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

C1 = "consumer-1"
C2 = "consumer-2"

POWERS = {"A": 50, "B": 30, "C": 20}


def make_state(top_n=60, history=(POWERS,), current=POWERS, opted_in=None, running=()):
    provider = ProviderState.create(
        top_n_by_consumer={C1: top_n},
        opted_in_vals=opted_in or {},
        current_powers=current,
        voting_power_history=history,
        running_consumers=running,
    )
    return ProtocolState(provider=provider)


@pytest.fixture
def state():
    return make_state()


@pytest.fixture
def empty_state():
    return ProtocolState()


# ══════════════════════════════════════════════════════════════════════
#  OPT-IN
# ══════════════════════════════════════════════════════════════════════

class TestOptIn:

    def test_opt_in_on_empty_state(self, empty_state):
        result = opt_in(empty_state, "c1", "X")
        assert result.ok
        assert result.state.provider.opted_in("c1") == {"X"}
        assert is_opted_in(result.state, "X", "c1")

    def test_opt_in_is_idempotent(self, state):
        once = opt_in(state, C1, "C").unwrap()
        twice = opt_in(once, C1, "C").unwrap()
        assert twice.provider.opted_in(C1) == {"C"}
        assert twice == once

    def test_opt_in_does_not_touch_input_state(self, state):
        opt_in(state, C1, "C")
        assert not is_opted_in(state, "C", C1)
        assert state.provider.opted_in(C1) == frozenset()

    def test_opt_in_top_n_validator(self, state):
        result = opt_in(state, C1, "A")
        assert result.ok
        assert is_opted_in(result.state, "A", C1)

    def test_opt_in_is_per_consumer(self, state):
        new_state = opt_in(state, C1, "C").unwrap()
        assert is_opted_in(new_state, "C", C1)
        assert not is_opted_in(new_state, "C", C2)

    def test_opt_in_preserves_extra_state(self):
        state = ProtocolState(provider=ProviderState(), extra={"channel": "channel-0"})
        new_state = opt_in(state, C1, "A").unwrap()
        assert new_state.extra["channel"] == "channel-0"

    def test_unknown_consumer_is_not_opted_in(self, empty_state):
        assert not is_opted_in(empty_state, "A", "nowhere")


# ══════════════════════════════════════════════════════════════════════
#  TOP-N MEMBERSHIP
# ══════════════════════════════════════════════════════════════════════

class TestIsTopN:

    def test_uses_consumer_top_n(self, state):
        assert is_top_n(state, "A", C1)
        assert is_top_n(state, "B", C1)
        assert not is_top_n(state, "C", C1)

    def test_consumer_without_top_n_is_opt_in_only(self, state):
        assert not is_top_n(state, "A", C2)

    def test_no_history_means_no_top_n(self):
        state = make_state(history=())
        assert not is_top_n(state, "A", C1)

    def test_uses_history_head_not_live_powers(self):
        state = make_state(history=(POWERS,), current={"A": 1, "B": 1, "C": 98})
        assert is_top_n(state, "A", C1)
        assert not is_top_n(state, "C", C1)

    def test_uses_most_recent_snapshot(self):
        older = {"A": 1, "B": 1, "C": 98}
        state = make_state(history=(POWERS, older))
        assert not is_top_n(state, "C", C1)

        newer = state.provider.with_history_snapshot(older)
        assert is_top_n(state.with_provider(newer), "C", C1)


# ══════════════════════════════════════════════════════════════════════
#  OPT-OUT
# ══════════════════════════════════════════════════════════════════════

class TestOptOut:

    def test_opt_out_after_opt_in(self, state):
        opted = opt_in(state, C1, "C").unwrap()
        result = opt_out(opted, C1, "C")
        assert result.ok
        assert not is_opted_in(result.state, "C", C1)

    def test_top_n_validator_cannot_opt_out(self, state):
        opted = opt_in(state, C1, "A").unwrap()
        result = opt_out(opted, C1, "A")
        assert not result.ok
        assert isinstance(result.error, ValidatorInTopNError)
        assert result.error_kind == "ValidatorInTopN"
        assert result.state is None

    def test_top_n_error_wins_over_not_opted_in(self, state):
        assert not is_opted_in(state, "A", C1)
        result = opt_out(state, C1, "A")
        assert isinstance(result.error, ValidatorInTopNError)

    def test_not_opted_in(self, state):
        result = opt_out(state, C1, "C")
        assert isinstance(result.error, ValidatorNotOptedInError)
        assert result.error_kind == "ValidatorNotOptedIn"
        assert result.error.validator == "C"
        assert result.error.consumer == C1

    def test_unknown_consumer(self, empty_state):
        result = opt_out(empty_state, "nowhere", "A")
        assert isinstance(result.error, ValidatorNotOptedInError)

    def test_live_top_n_can_opt_out_when_history_says_otherwise(self):
        state = make_state(current={"A": 1, "B": 1, "C": 98}, opted_in={C1: {"C"}})
        result = opt_out(state, C1, "C")
        assert result.ok
        assert not is_opted_in(result.state, "C", C1)

    def test_opt_out_keeps_other_validators(self, state):
        opted = opt_in(opt_in(state, C1, "C").unwrap(), C1, "A").unwrap()
        after = opt_out(opted, C1, "C").unwrap()
        assert after.provider.opted_in(C1) == {"A"}

    def test_unwrap_raises_carried_error(self, state):
        result = opt_out(state, C1, "A")
        with pytest.raises(ValidatorInTopNError) as exc_info:
            result.unwrap()
        assert isinstance(exc_info.value, PSSError)
        assert "cannot opt out" in str(exc_info.value)


# ══════════════════════════════════════════════════════════════════════
#  OPT RESULT
# ══════════════════════════════════════════════════════════════════════

class TestOptResult:

    def test_success(self, empty_state):
        result = OptResult.success(empty_state)
        assert result.ok
        assert result.error_kind is None
        assert result.unwrap() is empty_state

    def test_failure(self):
        error = ValidatorNotOptedInError("A", C1)
        result = OptResult.failure(error)
        assert not result.ok
        assert result.error is error


# ══════════════════════════════════════════════════════════════════════
#  PROJECTION
# ══════════════════════════════════════════════════════════════════════

class TestPSSValidatorSet:

    def test_restricts_to_opted_in(self):
        state = make_state(opted_in={C1: {"A", "C"}})
        projected = get_pss_validator_set(state.provider, POWERS, C1)
        assert dict(projected) == {"A": 50, "C": 20}

    def test_unknown_consumer_is_empty(self):
        state = make_state(opted_in={C1: {"A"}})
        assert dict(get_pss_validator_set(state.provider, POWERS, C2)) == {}

    def test_opted_in_validator_missing_from_full_set(self):
        state = make_state(opted_in={C1: {"A", "Z"}})
        assert dict(get_pss_validator_set(state.provider, POWERS, C1)) == {"A": 50}

    def test_keeps_powers_from_full_set(self):
        state = make_state(opted_in={C1: {"A"}})
        projected = get_pss_validator_set(state.provider, {"A": 7, "B": 9}, C1)
        assert projected["A"] == 7

    def test_projection_is_read_only(self):
        state = make_state(opted_in={C1: {"A"}})
        projected = get_pss_validator_set(state.provider, POWERS, C1)
        with pytest.raises(TypeError):
            projected["B"] = 1


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER STATE
# ══════════════════════════════════════════════════════════════════════

class TestProviderState:

    def test_defaults(self):
        provider = ProviderState()
        assert provider.top_n("any") == 0
        assert provider.opted_in("any") == frozenset()
        assert dict(provider.latest_snapshot) == {}
        assert not provider.is_running("any")

    def test_copy_on_write_shares_untouched_containers(self, state):
        provider = state.provider
        updated = provider.with_opted_in(C1, {"A"})
        assert updated.current_powers is provider.current_powers
        assert updated.voting_power_history is provider.voting_power_history
        assert provider.opted_in(C1) == frozenset()

    def test_with_running(self):
        provider = ProviderState().with_running(C1)
        assert provider.is_running(C1)
        assert not provider.with_running(C1, False).is_running(C1)

    def test_with_top_n(self):
        assert ProviderState().with_top_n(C1, 95).top_n(C1) == 95

    def test_history_snapshot_prepends(self):
        provider = ProviderState().with_history_snapshot({"A": 1}).with_history_snapshot({"A": 2})
        assert dict(provider.latest_snapshot) == {"A": 2}
        assert len(provider.voting_power_history) == 2

    def test_state_is_frozen(self):
        provider = ProviderState()
        with pytest.raises(AttributeError):
            provider.running_consumers = frozenset({C1})

    def test_dict_roundtrip(self):
        provider = ProviderState.create(
            top_n_by_consumer={C1: 95, C2: 0},
            opted_in_vals={C1: {"B", "A"}},
            current_powers={"A": 10, "B": 5},
            voting_power_history=[{"A": 10}, {"A": 9}],
            running_consumers=[C1],
        )
        data = provider.to_dict()
        assert data["opted_in_vals"] == {C1: ["A", "B"]}
        assert data["running_consumers"] == [C1]
        assert ProviderState.from_dict(data) == provider
