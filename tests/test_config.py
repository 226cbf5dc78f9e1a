"""
PSS Configuration Test Suite

TOML loading, environment overrides, validation and initial state.
"""

import os
import sys
import textwrap

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from pss.config import PSSConfig, ProviderConfig, load_config
from pss.constants import ConfigBool, ConfigString, parse_bool
from pss.exceptions import ConfigurationError


SAMPLE_TOML = textwrap.dedent("""
    [logging]
    level = "debug"
    console = false

    [provider]
    default_top_n = 0

    [provider.validators]
    alice = 50
    bob = 30
    carol = 20

    [provider.consumers."consumer-1"]
    top_n = 60
    running = true

    [provider.consumers."consumer-2"]
""")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("PSS_LOG_LEVEL", "PSS_LOG_FILE", "PSS_DEFAULT_TOP_N", "PSS_CONFIG"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(SAMPLE_TOML)
    return path


# =============================================================================
# LOADING
# =============================================================================

class TestLoadConfig:

    def test_load_sections(self, config_file):
        config = load_config(str(config_file))
        assert config.logging.level == "DEBUG"
        assert config.logging.console is False
        assert config.provider.validators == {"alice": 50, "bob": 30, "carol": 20}
        assert config.provider.consumers["consumer-1"].top_n == 60
        assert config.provider.consumers["consumer-1"].running is True
        assert config.provider.consumers["consumer-2"].top_n is None

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "absent.toml"))
        assert config.logging.level == "INFO"
        assert config.provider.default_top_n == 0
        assert config.provider.consumers == {}

    def test_path_from_env(self, config_file, monkeypatch):
        monkeypatch.setenv("PSS_CONFIG", str(config_file))
        assert load_config().provider.consumers["consumer-1"].top_n == 60

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[provider\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_to_dict(self, config_file):
        data = load_config(str(config_file)).to_dict()
        assert data["provider"]["consumers"]["consumer-2"] == {"top_n": 0, "running": False}


# =============================================================================
# ENVIRONMENT OVERRIDES
# =============================================================================

class TestEnvOverrides:

    def test_log_level(self, config_file, monkeypatch):
        monkeypatch.setenv("PSS_LOG_LEVEL", "warning")
        assert load_config(str(config_file)).logging.level == "WARNING"

    def test_default_top_n_applies_to_unset_consumers(self, config_file, monkeypatch):
        monkeypatch.setenv("PSS_DEFAULT_TOP_N", "100")
        provider = load_config(str(config_file)).provider
        assert provider.top_n_for("consumer-2") == 100
        assert provider.top_n_for("consumer-1") == 60

    def test_default_top_n_must_be_integer(self, config_file, monkeypatch):
        monkeypatch.setenv("PSS_DEFAULT_TOP_N", "lots")
        with pytest.raises(ConfigurationError):
            load_config(str(config_file))


# =============================================================================
# VALIDATION
# =============================================================================

class TestValidation:

    @pytest.mark.parametrize("top_n", [-1, 101, "95", True])
    def test_consumer_top_n_out_of_range(self, top_n):
        with pytest.raises(ConfigurationError):
            ProviderConfig.from_dict({"consumers": {"c1": {"top_n": top_n}}})

    def test_negative_power(self):
        with pytest.raises(ConfigurationError):
            ProviderConfig.from_dict({"validators": {"alice": -5}})

    def test_invalid_log_level(self):
        config = PSSConfig.from_dict({"logging": {"level": "chatty"}})
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_top_n_bounds_accepted(self):
        config = ProviderConfig.from_dict({"consumers": {"a": {"top_n": 0}, "b": {"top_n": 100}}})
        assert config.top_n_for("a") == 0
        assert config.top_n_for("b") == 100


# =============================================================================
# INITIAL STATE
# =============================================================================

class TestInitialState:

    def test_initial_state(self, config_file):
        state = load_config(str(config_file)).provider.initial_state()
        assert state.top_n("consumer-1") == 60
        assert state.top_n("consumer-2") == 0
        assert state.running_consumers == {"consumer-1"}
        assert dict(state.current_powers) == {"alice": 50, "bob": 30, "carol": 20}
        assert dict(state.latest_snapshot) == dict(state.current_powers)
        assert state.opted_in("consumer-1") == frozenset()

    def test_no_validators_no_history(self):
        assert ProviderConfig().initial_state().voting_power_history == ()


# =============================================================================
# CONSTANT WRAPPERS
# =============================================================================

class TestConstantWrappers:

    def test_parse_bool(self):
        assert parse_bool(" true ") is True
        assert parse_bool("FALSE") is False
        assert parse_bool("INFO") == "INFO"

    def test_config_string_default(self):
        value = ConfigString("DEBUG", "INFO")
        assert value == "DEBUG"
        assert value.default() == "INFO"

    def test_config_bool(self):
        value = ConfigBool(False, True)
        assert value == False  # noqa: E712
        assert str(value) == "False"
        assert value.default() is True
