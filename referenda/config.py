"""
Referenda Governance Configuration

Loads the [governance] section of config.toml with environment variable
overrides. Protocol parameters default to the values in constants.py.

Environment variable mapping:
    [governance] admin          → REFERENDA_ADMIN
    [governance] escrow_account → REFERENDA_ESCROW_ACCOUNT
    [governance] config path    → REFERENDA_CONFIG
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from .constants import (
    BASE_MULTIPLIER,
    MAX_QUORUM,
    MAX_REFUNDS,
    MIN_STAKE,
    MIN_VOTING_WINDOW,
    QUIZ_MULTIPLIER,
    REFERENDA_ADMIN,
    REFERENDA_ESCROW_ACCOUNT,
    REFUND_COOLDOWN_BLOCKS,
)
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class GovernanceConfig:
    """
    Governance configuration shared by the registry, ledger and voting engine.

    Attributes:
        admin:                  Principal with close / unlock / force-unlock rights
        escrow_account:         Treasury account that holds locked stake
        min_stake:              Smallest stake accepted for a lock or a vote
        min_voting_window:      Minimum end_block - start_block
        max_quorum:             Upper bound for a referendum's quorum
        refund_cooldown_blocks: Wait between refunds, and between request and claim
        max_refunds:            Refund requests allowed per (user, referendum)
        base_multiplier:        Vote weight without quiz bonus (100 = 1.0x)
        quiz_multiplier:        Vote weight with quiz bonus (150 = 1.5x)
    """
    admin: str = str(REFERENDA_ADMIN)
    escrow_account: str = str(REFERENDA_ESCROW_ACCOUNT)
    min_stake: int = MIN_STAKE
    min_voting_window: int = MIN_VOTING_WINDOW
    max_quorum: int = MAX_QUORUM
    refund_cooldown_blocks: int = REFUND_COOLDOWN_BLOCKS
    max_refunds: int = MAX_REFUNDS
    base_multiplier: int = BASE_MULTIPLIER
    quiz_multiplier: int = QUIZ_MULTIPLIER

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        """Create from the [governance] table of a config file."""
        return cls(
            admin=data.get("admin", str(REFERENDA_ADMIN)),
            escrow_account=data.get("escrow_account", str(REFERENDA_ESCROW_ACCOUNT)),
            min_stake=int(data.get("min_stake", MIN_STAKE)),
            min_voting_window=int(data.get("min_voting_window", MIN_VOTING_WINDOW)),
            max_quorum=int(data.get("max_quorum", MAX_QUORUM)),
            refund_cooldown_blocks=int(data.get("refund_cooldown_blocks", REFUND_COOLDOWN_BLOCKS)),
            max_refunds=int(data.get("max_refunds", MAX_REFUNDS)),
            base_multiplier=int(data.get("base_multiplier", BASE_MULTIPLIER)),
            quiz_multiplier=int(data.get("quiz_multiplier", QUIZ_MULTIPLIER)),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "GovernanceConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            GovernanceConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomli.load(f)

        cfg = cls.from_dict(raw.get("governance", {}))
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("REFERENDA_ADMIN"):
            self.admin = v
        if v := os.environ.get("REFERENDA_ESCROW_ACCOUNT"):
            self.escrow_account = v

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.admin:
            raise ConfigurationError("admin principal is required")
        if not self.escrow_account:
            raise ConfigurationError("escrow_account is required")
        if self.admin == self.escrow_account:
            raise ConfigurationError("admin and escrow_account must differ")
        if self.min_stake <= 0:
            raise ConfigurationError("min_stake must be positive")
        if self.min_voting_window < 0:
            raise ConfigurationError("min_voting_window cannot be negative")
        if self.max_quorum < 0:
            raise ConfigurationError("max_quorum cannot be negative")
        if self.refund_cooldown_blocks < 0:
            raise ConfigurationError("refund_cooldown_blocks cannot be negative")
        if self.max_refunds < 0:
            raise ConfigurationError("max_refunds cannot be negative")
        if self.base_multiplier <= 0 or self.quiz_multiplier < self.base_multiplier:
            raise ConfigurationError(
                "multipliers must be positive and quiz_multiplier >= base_multiplier"
            )
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "admin": self.admin,
            "escrow_account": self.escrow_account,
            "min_stake": self.min_stake,
            "min_voting_window": self.min_voting_window,
            "max_quorum": self.max_quorum,
            "refund_cooldown_blocks": self.refund_cooldown_blocks,
            "max_refunds": self.max_refunds,
            "base_multiplier": self.base_multiplier,
            "quiz_multiplier": self.quiz_multiplier,
        }


def load_config(path: Optional[str] = None) -> GovernanceConfig:
    """
    Load governance configuration.

    Resolution order:
        1. Explicit *path* argument
        2. REFERENDA_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("REFERENDA_CONFIG", "config.toml")

    cfg = GovernanceConfig.from_file(path)
    cfg.validate()
    return cfg
