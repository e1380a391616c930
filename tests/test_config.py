"""
Configuration, Clock and Logging Tests
"""

import logging
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from referenda import constants
from referenda.clock import BlockClock
from referenda.config import GovernanceConfig, load_config
from referenda.exceptions import (
    ClockError,
    ConfigurationError,
    ErrorCode,
    GovernanceError,
    InvalidStateError,
    StateError,
)
from referenda.logger import LogManager, TerminalSafeFormatter, get_logger


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("REFERENDA_ADMIN", "REFERENDA_ESCROW_ACCOUNT", "REFERENDA_CONFIG"):
        monkeypatch.delenv(var, raising=False)


# ══════════════════════════════════════════════════════════════════════
#  CONFIG
# ══════════════════════════════════════════════════════════════════════


class TestGovernanceConfig:
    """Defaults, TOML loading and env overrides."""

    def test_defaults_match_constants(self):
        cfg = GovernanceConfig()
        assert cfg.min_stake == constants.MIN_STAKE == 100
        assert cfg.min_voting_window == 10
        assert cfg.max_quorum == 10_000
        assert cfg.refund_cooldown_blocks == 1440
        assert cfg.max_refunds == 5
        assert (cfg.base_multiplier, cfg.quiz_multiplier) == (100, 150)
        assert cfg.admin == str(constants.REFERENDA_ADMIN)
        assert cfg.validate()

    def test_from_dict(self):
        cfg = GovernanceConfig.from_dict({"admin": "ST9ROOT", "min_stake": "250"})
        assert cfg.admin == "ST9ROOT"
        assert cfg.min_stake == 250
        assert cfg.max_refunds == 5

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[governance]\nadmin = "ST9ROOT"\nescrow_account = "vault"\n'
            "refund_cooldown_blocks = 10\n"
        )
        cfg = GovernanceConfig.from_file(str(path))
        assert cfg.admin == "ST9ROOT"
        assert cfg.escrow_account == "vault"
        assert cfg.refund_cooldown_blocks == 10

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = GovernanceConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.to_dict() == GovernanceConfig().to_dict()

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text('[governance]\nadmin = "ST9ROOT"\n')
        monkeypatch.setenv("REFERENDA_ADMIN", "ST8ENV")
        assert GovernanceConfig.from_file(str(path)).admin == "ST8ENV"

    def test_load_config_from_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "gov.toml"
        path.write_text("[governance]\nmax_refunds = 2\n")
        monkeypatch.setenv("REFERENDA_CONFIG", str(path))
        assert load_config().max_refunds == 2

    def test_load_config_validates(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[governance]\nmin_stake = 0\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"admin": ""},
            {"escrow_account": ""},
            {"admin": "same", "escrow_account": "same"},
            {"max_refunds": -1},
            {"quiz_multiplier": 50},
        ],
    )
    def test_validate_rejects(self, overrides):
        with pytest.raises(ConfigurationError):
            GovernanceConfig(**overrides).validate()


# ══════════════════════════════════════════════════════════════════════
#  CLOCK
# ══════════════════════════════════════════════════════════════════════


class TestBlockClock:
    """Monotonic block height."""

    def test_advance(self):
        clock = BlockClock(10)
        assert clock.advance() == 11
        assert clock.advance(9) == 20
        assert clock.height == 20

    def test_set_height_forward(self):
        clock = BlockClock()
        assert clock.set_height(500) == 500
        assert clock.set_height(500) == 500

    def test_backwards_rejected(self):
        clock = BlockClock(100)
        with pytest.raises(ClockError):
            clock.set_height(99)
        assert clock.height == 100

    def test_negative_values(self):
        with pytest.raises(ClockError):
            BlockClock(-1)
        with pytest.raises(ClockError):
            BlockClock().advance(-1)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS & LOGGING
# ══════════════════════════════════════════════════════════════════════


class TestErrors:
    """Error code taxonomy."""

    def test_code_in_message(self):
        err = InvalidStateError("Referendum #1 is CLOSED")
        assert str(err) == "[E109] Referendum #1 is CLOSED"
        assert isinstance(err, StateError)

    def test_explicit_code(self):
        err = GovernanceError("boom", code=ErrorCode.TRANSFER_FAILED)
        assert err.code == ErrorCode.TRANSFER_FAILED
        assert str(err).startswith("[E202]")

    def test_codes_unique(self):
        values = [c.value for c in ErrorCode]
        assert len(values) == len(set(values))


class TestLogging:
    """Logger singleton and output sanitizing."""

    def test_singleton(self):
        assert LogManager() is LogManager()
        assert LogManager().is_configured

    def test_get_logger(self):
        logger = get_logger("referenda.tests")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "referenda.tests"

    def test_sanitize_strips_escapes(self):
        raw = "Referendum \x1b[31mRED\x1b[0m\r title\x07"
        assert TerminalSafeFormatter.sanitize(raw) == "Referendum RED title"

    def test_bad_log_format_falls_back(self):
        fmt = LogManager.validate_log_format("(asctime)s broken")
        assert fmt == str(constants.LOG_FORMAT.default())
