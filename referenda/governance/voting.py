"""
Stake-Weighted Voting Engine

Implements:
  - One ballot per (referendum, voter), backed by stake locked in the ledger
  - Weight = stake × multiplier (100 = 1.0x, 150 = 1.5x with a passed quiz)
  - Vote switching while the window is open
  - Stake withdrawal after closure (historical tally is preserved)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..clock import BlockClock
from ..config import GovernanceConfig
from ..exceptions import (
    ErrorCode,
    InvalidStateError,
    StateError,
    TimingError,
    ValidationError,
)
from ..logger import get_logger
from .referendum import Choice, Referendum, ReferendumRegistry, ReferendumStatus
from .staking import StakingLedger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class AlreadyVotedError(StateError):
    """Voter already cast a vote on this referendum."""
    code = ErrorCode.ALREADY_VOTED


class VoteBelowMinimumError(ValidationError):
    """Stake behind the vote is below the minimum."""
    code = ErrorCode.VOTE_BELOW_MINIMUM


class ZeroStakeError(ValidationError):
    """Vote without stake."""
    code = ErrorCode.ZERO_STAKE


class OutsideWindowError(TimingError):
    """Current block is outside the voting window."""
    code = ErrorCode.OUTSIDE_WINDOW


class QuizNotPassedError(StateError):
    """Quiz-gated referendum and the quiz was not passed."""
    code = ErrorCode.QUIZ_NOT_PASSED


class NotClosedError(StateError):
    """Stake can only be withdrawn from a closed referendum."""
    code = ErrorCode.NOT_CLOSED


class NoVoteError(StateError):
    """Voter has no vote on this referendum."""
    code = ErrorCode.NO_VOTE


class InvalidChoiceError(ValidationError):
    """Choice is not YES or NO."""
    code = ErrorCode.INVALID_CHOICE


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Vote:
    """A ballot cast by a voter."""
    referendum_id: int
    voter: str
    choice: Choice
    stake: int
    multiplier: int
    voted_at: int
    updated_at: Optional[int] = None

    @property
    def weight(self) -> int:
        return self.stake * self.multiplier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referendumId": self.referendum_id,
            "voter": self.voter,
            "choice": self.choice.name,
            "stake": self.stake,
            "multiplier": self.multiplier,
            "weight": self.weight,
            "votedAt": self.voted_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class VoteTally:
    """Running accumulators for a referendum."""
    referendum_id: int
    yes: int = 0
    no: int = 0
    total_staked: int = 0

    @property
    def total_votes(self) -> int:
        """Weighted yes + no, the figure compared against quorum."""
        return self.yes + self.no

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referendumId": self.referendum_id,
            "yes": self.yes,
            "no": self.no,
            "totalVotes": self.total_votes,
            "totalStaked": self.total_staked,
        }


# ══════════════════════════════════════════════════════════════════════
#  VOTING ENGINE
# ══════════════════════════════════════════════════════════════════════

class VotingEngine:
    """
    Stake-weighted voting engine.

    Responsibilities:
        - Check referendum eligibility through the registry
        - Lock the voter's stake through the ledger
        - Keep per-referendum weighted tallies
        - Release stake after closure
    """

    def __init__(
        self,
        registry: ReferendumRegistry,
        ledger: StakingLedger,
        clock: BlockClock,
        config: Optional[GovernanceConfig] = None,
    ):
        self.registry = registry
        self.ledger = ledger
        self.clock = clock
        self.config = config or GovernanceConfig()

        self._votes: Dict[Tuple[int, str], Vote] = {}
        self._tallies: Dict[int, VoteTally] = {}

    @property
    def admin(self) -> str:
        return self.config.admin

    # ── Helpers ───────────────────────────────────────────────────────

    def _tally(self, referendum_id: int) -> VoteTally:
        if referendum_id not in self._tallies:
            self._tallies[referendum_id] = VoteTally(referendum_id=referendum_id)
        return self._tallies[referendum_id]

    def _require_active(self, ref: Referendum):
        if ref.status != ReferendumStatus.ACTIVE:
            raise InvalidStateError(
                f"Referendum #{ref.id} is not votable (status={ref.status.name})"
            )

    def multiplier_for(self, ref: Referendum, quiz_passed: bool) -> int:
        if ref.quiz_required and quiz_passed:
            return self.config.quiz_multiplier
        return self.config.base_multiplier

    # ── Cast vote ─────────────────────────────────────────────────────

    def cast_vote(
        self,
        caller: str,
        referendum_id: int,
        choice: Choice,
        stake: int,
        quiz_passed: bool = False,
    ) -> Vote:
        """
        Lock *stake* and cast a weighted ballot.

        Args:
            caller: Voter's principal
            referendum_id: Referendum being voted on
            choice: Choice.YES or Choice.NO
            stake: Amount locked behind the vote
            quiz_passed: Oracle verdict for quiz-gated referendums
        """
        ref = self.registry.get_or_raise(referendum_id)
        self._require_active(ref)

        now = self.clock.height
        if not ref.in_window(now):
            raise OutsideWindowError(
                f"Block {now} outside voting window "
                f"[{ref.start_block}, {ref.end_block}) of referendum #{referendum_id}"
            )

        key = (referendum_id, caller)
        if key in self._votes:
            raise AlreadyVotedError(
                f"{caller} has already voted on referendum #{referendum_id}"
            )
        if not isinstance(choice, Choice):
            raise InvalidChoiceError(f"Invalid choice: {choice!r}")
        if stake < self.config.min_stake:
            raise VoteBelowMinimumError(
                f"Stake {stake} < minimum {self.config.min_stake}"
            )
        if stake == 0:
            raise ZeroStakeError("Vote stake cannot be zero")
        if ref.quiz_required and not quiz_passed:
            raise QuizNotPassedError(
                f"Referendum #{referendum_id} requires quiz {ref.quiz_id}"
            )

        multiplier = self.multiplier_for(ref, quiz_passed)

        # Failures here propagate unchanged and leave no vote behind
        self.ledger.lock_stake(caller, referendum_id, stake)

        vote = Vote(
            referendum_id=referendum_id,
            voter=caller,
            choice=choice,
            stake=stake,
            multiplier=multiplier,
            voted_at=now,
        )
        self._votes[key] = vote

        tally = self._tally(referendum_id)
        if choice == Choice.YES:
            tally.yes += vote.weight
        else:
            tally.no += vote.weight
        tally.total_staked += stake

        logger.info(
            f"Vote: {caller} → {choice.name} on Referendum #{referendum_id} "
            f"(stake={stake}, multiplier={multiplier}, weight={vote.weight})"
        )
        return vote

    # ── Update vote ───────────────────────────────────────────────────

    def update_vote(self, caller: str, referendum_id: int, new_choice: Choice) -> Vote:
        """Move an existing ballot's full weight to *new_choice*."""
        ref = self.registry.get_or_raise(referendum_id)
        self._require_active(ref)

        now = self.clock.height
        if now >= ref.end_block:
            raise OutsideWindowError(
                f"Voting on referendum #{referendum_id} ended at block {ref.end_block}"
            )

        vote = self._votes.get((referendum_id, caller))
        if vote is None:
            raise NoVoteError(f"{caller} has no vote on referendum #{referendum_id}")
        if not isinstance(new_choice, Choice):
            raise InvalidChoiceError(f"Invalid choice: {new_choice!r}")

        tally = self._tally(referendum_id)
        weight = vote.weight
        if vote.choice == Choice.YES:
            tally.yes -= weight
        else:
            tally.no -= weight
        if new_choice == Choice.YES:
            tally.yes += weight
        else:
            tally.no += weight

        old = vote.choice
        vote.choice = new_choice
        vote.updated_at = now

        logger.info(
            f"Vote updated: {caller} {old.name} → {new_choice.name} "
            f"on Referendum #{referendum_id}"
        )
        return vote

    # ── Withdraw ──────────────────────────────────────────────────────

    def withdraw_stake(self, caller: str, referendum_id: int) -> int:
        """
        Release the stake behind a ballot once the referendum is closed.

        Returns:
            The stake paid back to the voter
        """
        ref = self.registry.get(referendum_id)
        if ref is None or ref.status != ReferendumStatus.CLOSED:
            raise NotClosedError(f"Referendum #{referendum_id} is not closed")

        key = (referendum_id, caller)
        vote = self._votes.get(key)
        if vote is None:
            raise NoVoteError(f"{caller} has no vote on referendum #{referendum_id}")

        self.ledger.unlock_stake(self.admin, referendum_id, caller, vote.stake)

        del self._votes[key]
        self._tally(referendum_id).total_staked -= vote.stake

        logger.info(
            f"Stake withdrawn: {caller} recovered {vote.stake} from Referendum #{referendum_id}"
        )
        return vote.stake

    # ── Queries ───────────────────────────────────────────────────────

    def get_vote(self, referendum_id: int, voter: str) -> Optional[Vote]:
        return self._votes.get((referendum_id, voter))

    def has_voted(self, referendum_id: int, voter: str) -> bool:
        return (referendum_id, voter) in self._votes

    def get_votes(self, referendum_id: int) -> List[Vote]:
        return [v for (rid, _), v in self._votes.items() if rid == referendum_id]

    def voter_count(self, referendum_id: int) -> int:
        return len(self.get_votes(referendum_id))

    def get_tally(self, referendum_id: int) -> VoteTally:
        """Copy of the accumulators; zeros for a referendum without votes."""
        tally = self._tallies.get(referendum_id)
        if tally is None:
            return VoteTally(referendum_id=referendum_id)
        return VoteTally(
            referendum_id=referendum_id,
            yes=tally.yes,
            no=tally.no,
            total_staked=tally.total_staked,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "votes": len(self._votes),
            "tallies": {rid: t.to_dict() for rid, t in self._tallies.items()},
        }

    def __repr__(self) -> str:
        return f"<VotingEngine votes={len(self._votes)}>"
