"""
Governance System

Builds the registry, ledger and voting engine around one clock, one config
and one treasury, and points referendum closure at the voting engine's
tallies.
"""

from typing import Any, Dict, Optional

from ..clock import BlockClock
from ..config import GovernanceConfig
from ..logger import get_logger
from ..treasury import Treasury
from .referendum import Referendum, ReferendumRegistry
from .staking import PendingRefund, StakingLedger, UserStake
from .voting import Vote, VoteTally, VotingEngine

logger = get_logger(__name__)


class GovernanceSystem:
    """
    Wired governance components plus the public read surface.

    Mutating operations live on the components themselves
    (``system.registry.create``, ``system.voting.cast_vote``,
    ``system.staking.request_refund`` ...).
    """

    def __init__(
        self,
        treasury: Treasury,
        clock: Optional[BlockClock] = None,
        config: Optional[GovernanceConfig] = None,
    ):
        self.config = config or GovernanceConfig()
        self.config.validate()
        self.clock = clock or BlockClock()
        self.treasury = treasury

        self.registry = ReferendumRegistry(self.clock, self.config)
        self.staking = StakingLedger(treasury, self.clock, self.config)
        self.voting = VotingEngine(self.registry, self.staking, self.clock, self.config)
        self.registry.set_tally_source(self.voting.get_tally)

        logger.info(
            f"Governance system ready at block {self.clock.height} "
            f"(admin={self.config.admin}, escrow={self.config.escrow_account})"
        )

    # ── Read surface ──────────────────────────────────────────────────

    def get_referendum(self, referendum_id: int) -> Optional[Referendum]:
        return self.registry.get(referendum_id)

    def get_stake(self, user: str, referendum_id: int) -> Optional[UserStake]:
        return self.staking.get_stake(user, referendum_id)

    def get_pending_refund(self, user: str, referendum_id: int) -> Optional[PendingRefund]:
        return self.staking.get_pending_refund(user, referendum_id)

    def get_vote(self, referendum_id: int, voter: str) -> Optional[Vote]:
        return self.voting.get_vote(referendum_id, voter)

    def get_tally(self, referendum_id: int) -> VoteTally:
        return self.voting.get_tally(referendum_id)

    def global_staked(self, referendum_id: int) -> int:
        return self.staking.global_staked(referendum_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blockHeight": self.clock.height,
            "config": self.config.to_dict(),
            "registry": self.registry.to_dict(),
            "staking": self.staking.to_dict(),
            "voting": self.voting.to_dict(),
        }

    def __repr__(self) -> str:
        return (
            f"<GovernanceSystem block={self.clock.height} "
            f"referendums={self.registry.count}>"
        )
