"""
PSS Provider Constants

This module consolidates the global constants and environment configuration
used by the Partial Set Security core. Constants are organized by category
for easy reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW ARE CONSENSUS-CRITICAL. EVERY PROVIDER NODE MUST USE THE SAME VALUES,
# OTHERWISE REPLICAS WILL COMPUTE DIFFERENT CONSUMER VALIDATOR SETS AND FORK.

# ==================================================================================
# PARTIAL SET SECURITY PARAMETERS
# ==================================================================================
TOP_N_MIN = 0  # Opt-in only chain, no validator is forced
TOP_N_MAX = 100  # Every bonded validator with power is forced
PERCENT_DENOMINATOR = 100

# Default N for consumers that have no governance-assigned value
DEFAULT_TOP_N = 0


# ==================================================================================
# ERROR KINDS
# ==================================================================================
ERR_VALIDATOR_IN_TOP_N = 'ValidatorInTopN'
ERR_VALIDATOR_NOT_OPTED_IN = 'ValidatorNotOptedIn'


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = dict(LOGGER_DEFAULTS)
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
