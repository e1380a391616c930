"""
Referendum Registry

Defines referendum lifecycle states and the Referendum dataclass, and the
registry that owns referendum records and the title index.

Lifecycle:
    PENDING --activate--> ACTIVE --close--> CLOSED

Activation is a pre-start confirmation by the creator; closing is gated by
the end block and resolves the final result against the quorum.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional

from ..clock import BlockClock
from ..config import GovernanceConfig
from ..exceptions import (
    ErrorCode,
    InvalidStateError,
    NotFoundError,
    TimingError,
    UnauthorizedError,
    ValidationError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class DuplicateTitleError(ValidationError):
    """A referendum with this title already exists."""
    code = ErrorCode.DUPLICATE_TITLE


class InvalidTitleError(ValidationError):
    """Title is empty."""
    code = ErrorCode.INVALID_TITLE


class InvalidWindowError(ValidationError):
    """Voting window is shorter than the minimum."""
    code = ErrorCode.INVALID_WINDOW


class WindowInPastError(ValidationError):
    """Voting window starts before the current block."""
    code = ErrorCode.WINDOW_IN_PAST


class QuorumTooHighError(ValidationError):
    """Quorum exceeds the configured maximum."""
    code = ErrorCode.QUORUM_TOO_HIGH


class EmptyRewardPoolError(ValidationError):
    """Reward pool must be positive."""
    code = ErrorCode.EMPTY_REWARD_POOL


class MissingQuizIdError(ValidationError):
    """Quiz-gated referendum without a quiz id."""
    code = ErrorCode.MISSING_QUIZ_ID


class TooLateError(TimingError):
    """Activation attempted after the start block."""
    code = ErrorCode.TOO_LATE


class TooEarlyError(TimingError):
    """Closure attempted before the end block."""
    code = ErrorCode.TOO_EARLY


class AlreadyClosedError(InvalidStateError):
    """Referendum already has a final result."""
    code = ErrorCode.ALREADY_CLOSED


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class Choice(IntEnum):
    """Ballot side, also used for a referendum's final result."""
    YES = 1
    NO = 2

    @classmethod
    def from_bool(cls, value: bool) -> "Choice":
        return cls.YES if value else cls.NO


class ReferendumStatus(IntEnum):
    """Lifecycle stage."""
    PENDING = 0     # Created, awaiting creator activation
    ACTIVE = 1      # Accepting votes inside [start_block, end_block)
    CLOSED = 2      # Final result resolved (terminal)


_VALID_TRANSITIONS: Dict[ReferendumStatus, set] = {
    ReferendumStatus.PENDING: {ReferendumStatus.ACTIVE},
    ReferendumStatus.ACTIVE:  {ReferendumStatus.CLOSED},
    ReferendumStatus.CLOSED:  set(),
}


# ══════════════════════════════════════════════════════════════════════
#  REFERENDUM
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Referendum:
    """
    Governance referendum.

    Fields:
        id:             Sequential identifier, never reused
        title:          Unique, non-empty title
        description:    Free-form rationale
        creator:        Principal that created the referendum
        start_block:    First block votes are accepted
        end_block:      First block votes are rejected; closure allowed from here
        quorum:         Minimum weighted yes + no total for a non-null result
        reward_pool:    Rewards promised to participants
        quiz_required:  Votes need a passed quiz (and earn the quiz multiplier)
        quiz_id:        Oracle quiz reference, required with quiz_required
        yes_votes:      Weighted YES tally, snapshotted at closure
        no_votes:       Weighted NO tally, snapshotted at closure
        total_staked:   Raw stake behind live votes, snapshotted at closure
        final_result:   YES / NO, or None when quorum failed or tied
    """
    id: int
    title: str
    description: str
    creator: str
    start_block: int
    end_block: int
    quorum: int
    reward_pool: int
    quiz_required: bool = False
    quiz_id: Optional[int] = None
    status: ReferendumStatus = ReferendumStatus.PENDING
    yes_votes: int = 0
    no_votes: int = 0
    total_staked: int = 0
    final_result: Optional[Choice] = None
    created_at: int = 0
    closed_at: Optional[int] = None
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    # ── Properties ────────────────────────────────────────────────────

    @property
    def is_votable(self) -> bool:
        return self.status == ReferendumStatus.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.status == ReferendumStatus.CLOSED

    @property
    def is_finalized(self) -> bool:
        """A final result (possibly None) has been recorded."""
        return self.closed_at is not None

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def in_window(self, block: int) -> bool:
        return self.start_block <= block < self.end_block

    # ── State transitions ─────────────────────────────────────────────

    def transition_to(self, new_status: ReferendumStatus, block: int, reason: str = ""):
        """
        Advance referendum to *new_status*.

        Raises InvalidStateError on invalid transitions.
        """
        allowed = _VALID_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateError(
                f"Referendum #{self.id} cannot transition from "
                f"{self.status.name} → {new_status.name}"
            )
        self._history.append({
            "from": self.status.name,
            "to": new_status.name,
            "reason": reason,
            "block": block,
        })
        old = self.status
        self.status = new_status
        logger.info(
            f"Referendum #{self.id} ({self.title}): "
            f"{old.name} → {new_status.name} at block {block} | {reason}"
        )

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "creator": self.creator,
            "startBlock": self.start_block,
            "endBlock": self.end_block,
            "quorum": self.quorum,
            "rewardPool": self.reward_pool,
            "quizRequired": self.quiz_required,
            "quizId": self.quiz_id,
            "status": self.status.name,
            "yesVotes": self.yes_votes,
            "noVotes": self.no_votes,
            "totalStaked": self.total_staked,
            "finalResult": self.final_result.name if self.final_result else None,
            "createdAt": self.created_at,
            "closedAt": self.closed_at,
            "historyLength": len(self._history),
        }

    def __repr__(self) -> str:
        return (
            f"<Referendum #{self.id} '{self.title}' status={self.status.name}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class ReferendumRegistry:
    """
    Owns referendum records and the title index.

    Closing a referendum reads the weighted tally from an injected
    ``tally_fn(referendum_id)`` (normally ``VotingEngine.get_tally``);
    without one, the record's own accumulators are used.
    """

    def __init__(
        self,
        clock: BlockClock,
        config: Optional[GovernanceConfig] = None,
        tally_fn: Optional[Callable[[int], Any]] = None,
    ):
        self.clock = clock
        self.config = config or GovernanceConfig()
        self._tally_fn = tally_fn

        self._referendums: Dict[int, Referendum] = {}
        self._title_index: Dict[str, int] = {}
        self._next_id = 0

    def set_tally_source(self, tally_fn: Callable[[int], Any]):
        """Point closure at the voting engine's accumulators."""
        self._tally_fn = tally_fn

    # ── Create ────────────────────────────────────────────────────────

    def create(
        self,
        caller: str,
        title: str,
        description: str,
        start_block: int,
        end_block: int,
        quorum: int,
        reward_pool: int,
        quiz_required: bool = False,
        quiz_id: Optional[int] = None,
    ) -> int:
        """
        Create a PENDING referendum and return its id.

        Checks run in a fixed order; the first failing check is reported.
        """
        now = self.clock.height

        if title in self._title_index:
            raise DuplicateTitleError(f"Title '{title}' is already in use")
        if not title:
            raise InvalidTitleError("Referendum title cannot be empty")
        if end_block < start_block + self.config.min_voting_window:
            raise InvalidWindowError(
                f"Voting window {end_block - start_block} blocks < "
                f"minimum {self.config.min_voting_window}"
            )
        if start_block < now:
            raise WindowInPastError(
                f"start block {start_block} is before current block {now}"
            )
        if quorum > self.config.max_quorum:
            raise QuorumTooHighError(
                f"Quorum {quorum} exceeds max {self.config.max_quorum}"
            )
        if reward_pool <= 0:
            raise EmptyRewardPoolError("Reward pool must be positive")
        if quiz_required and quiz_id is None:
            raise MissingQuizIdError("quiz_required needs a quiz_id")

        rid = self._next_id
        self._referendums[rid] = Referendum(
            id=rid,
            title=title,
            description=description,
            creator=caller,
            start_block=start_block,
            end_block=end_block,
            quorum=quorum,
            reward_pool=reward_pool,
            quiz_required=quiz_required,
            quiz_id=quiz_id,
            created_at=now,
        )
        self._title_index[title] = rid
        self._next_id += 1

        logger.info(
            f"Referendum #{rid} created by {caller}: '{title}' "
            f"blocks [{start_block}, {end_block}) quorum={quorum}"
        )
        return rid

    # ── Lifecycle ─────────────────────────────────────────────────────

    def activate(self, referendum_id: int, caller: str):
        """PENDING → ACTIVE, creator only, no later than the start block."""
        ref = self.get_or_raise(referendum_id)
        if caller != ref.creator:
            raise UnauthorizedError(
                f"{caller} is not the creator of referendum #{referendum_id}"
            )
        if ref.status != ReferendumStatus.PENDING:
            raise InvalidStateError(
                f"Referendum #{referendum_id} is {ref.status.name}, expected PENDING"
            )
        now = self.clock.height
        if now > ref.start_block:
            raise TooLateError(
                f"Referendum #{referendum_id} starts at block {ref.start_block}, "
                f"now {now}"
            )
        ref.transition_to(ReferendumStatus.ACTIVE, now, "Activated by creator")

    def close(self, referendum_id: int, caller: str) -> Optional[Choice]:
        """
        ACTIVE → CLOSED and resolve the final result.

        A tie with quorum met yields no result, as does a missed quorum.
        """
        ref = self.get_or_raise(referendum_id)
        if caller != ref.creator and caller != self.config.admin:
            raise UnauthorizedError(
                f"{caller} may not close referendum #{referendum_id}"
            )
        if ref.status == ReferendumStatus.CLOSED:
            raise AlreadyClosedError(f"Referendum #{referendum_id} is already closed")
        if ref.status != ReferendumStatus.ACTIVE:
            raise InvalidStateError(
                f"Referendum #{referendum_id} is {ref.status.name}, expected ACTIVE"
            )
        now = self.clock.height
        if now < ref.end_block:
            raise TooEarlyError(
                f"Referendum #{referendum_id} ends at block {ref.end_block}, now {now}"
            )
        if ref.is_finalized:
            raise AlreadyClosedError(
                f"Referendum #{referendum_id} already has a final result"
            )

        if self._tally_fn is not None:
            tally = self._tally_fn(referendum_id)
            ref.yes_votes = tally.yes
            ref.no_votes = tally.no
            ref.total_staked = tally.total_staked

        total = ref.yes_votes + ref.no_votes
        result: Optional[Choice] = None
        if total >= ref.quorum:
            if ref.yes_votes > ref.no_votes:
                result = Choice.YES
            elif ref.no_votes > ref.yes_votes:
                result = Choice.NO

        ref.final_result = result
        ref.closed_at = now
        ref.transition_to(
            ReferendumStatus.CLOSED,
            now,
            f"Closed by {caller}: yes={ref.yes_votes} no={ref.no_votes} "
            f"quorum={ref.quorum} result={result.name if result else None}",
        )
        if total < ref.quorum:
            logger.warning(
                f"Referendum #{referendum_id}: quorum not reached ({total}/{ref.quorum})"
            )
        return result

    # ── Lookup ────────────────────────────────────────────────────────

    def get(self, referendum_id: int) -> Optional[Referendum]:
        return self._referendums.get(referendum_id)

    def get_or_raise(self, referendum_id: int) -> Referendum:
        ref = self.get(referendum_id)
        if ref is None:
            raise NotFoundError(f"Referendum #{referendum_id} not found")
        return ref

    def get_by_title(self, title: str) -> Optional[Referendum]:
        rid = self._title_index.get(title)
        return None if rid is None else self._referendums[rid]

    def exists(self, referendum_id: int) -> bool:
        return referendum_id in self._referendums

    def list_ids(self, status: Optional[ReferendumStatus] = None) -> List[int]:
        return [
            rid for rid, ref in self._referendums.items()
            if status is None or ref.status == status
        ]

    @property
    def count(self) -> int:
        return len(self._referendums)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": len(self._referendums),
            "nextId": self._next_id,
            "referendums": {rid: r.to_dict() for rid, r in self._referendums.items()},
        }

    def __repr__(self) -> str:
        return f"<ReferendumRegistry referendums={len(self._referendums)}>"
