"""
Referenda Constants

This module consolidates the protocol constants and the environment
configuration used throughout the codebase. Constants are organized by
category for easy reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

GOVERNANCE_DEFAULTS = {
    'REFERENDA_ADMIN':                 'ST1ADMIN',
    'REFERENDA_ESCROW_ACCOUNT':        'referenda.escrow',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW ARE PART OF THE GOVERNANCE CONTRACT. CHANGING THEM CHANGES
# WHICH REFERENDUMS, VOTES AND REFUNDS ARE ACCEPTED. ONLY CHANGE THEM FOR TESTING PURPOSES OR WHEN
# DEPLOYING A NEW GOVERNANCE INSTANCE.

# ==================================================================================
# REFERENDUM PARAMETERS
# ==================================================================================
MIN_VOTING_WINDOW = 10  # end_block must be at least start_block + 10
MAX_QUORUM = 10_000  # Raw weighted-vote threshold, not a percentage


# ==================================================================================
# STAKING PARAMETERS
# ==================================================================================
MIN_STAKE = 100  # Smallest lockable stake, in treasury units
REFUND_COOLDOWN_BLOCKS = 1440  # ~1 day of blocks, between refunds and request -> claim
MAX_REFUNDS = 5  # Refund requests per (user, referendum)


# ==================================================================================
# VOTE WEIGHTING
# ==================================================================================
BASE_MULTIPLIER = 100  # 1.0x
QUIZ_MULTIPLIER = 150  # 1.5x, requires a passed quiz on a quiz-gated referendum


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
DEFAULTS = GOVERNANCE_DEFAULTS | LOGGER_DEFAULTS
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

    # Parses only boolean-literals. Leaves other values untouched.
    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
