"""
Referenda Governance

Provides:
  - Referendum / ReferendumStatus / ReferendumRegistry    (referendum.py)
  - UserStake / PendingRefund / StakingLedger             (staking.py)
  - Vote / VoteTally / VotingEngine                       (voting.py)
  - GovernanceSystem                                      (system.py)
"""

from .referendum import (
    AlreadyClosedError,
    Choice,
    DuplicateTitleError,
    EmptyRewardPoolError,
    InvalidTitleError,
    InvalidWindowError,
    MissingQuizIdError,
    QuorumTooHighError,
    Referendum,
    ReferendumRegistry,
    ReferendumStatus,
    TooEarlyError,
    TooLateError,
    WindowInPastError,
)
from .staking import (
    AlreadyStakedError,
    AmountMismatchError,
    CooldownActiveError,
    NotLockedError,
    NothingPendingError,
    PendingRefund,
    RefundAlreadyPendingError,
    RefundLimitReachedError,
    StakeBelowMinimumError,
    StakeNotFoundError,
    StakingLedger,
    StakingUnauthorizedError,
    StillLockedError,
    UserStake,
)
from .voting import (
    AlreadyVotedError,
    InvalidChoiceError,
    NoVoteError,
    NotClosedError,
    OutsideWindowError,
    QuizNotPassedError,
    Vote,
    VoteBelowMinimumError,
    VoteTally,
    VotingEngine,
    ZeroStakeError,
)
from .system import GovernanceSystem

__all__ = [
    # Referendums
    "AlreadyClosedError",
    "Choice",
    "DuplicateTitleError",
    "EmptyRewardPoolError",
    "InvalidTitleError",
    "InvalidWindowError",
    "MissingQuizIdError",
    "QuorumTooHighError",
    "Referendum",
    "ReferendumRegistry",
    "ReferendumStatus",
    "TooEarlyError",
    "TooLateError",
    "WindowInPastError",
    # Staking
    "AlreadyStakedError",
    "AmountMismatchError",
    "CooldownActiveError",
    "NotLockedError",
    "NothingPendingError",
    "PendingRefund",
    "RefundAlreadyPendingError",
    "RefundLimitReachedError",
    "StakeBelowMinimumError",
    "StakeNotFoundError",
    "StakingLedger",
    "StakingUnauthorizedError",
    "StillLockedError",
    "UserStake",
    # Voting
    "AlreadyVotedError",
    "InvalidChoiceError",
    "NoVoteError",
    "NotClosedError",
    "OutsideWindowError",
    "QuizNotPassedError",
    "Vote",
    "VoteBelowMinimumError",
    "VoteTally",
    "VotingEngine",
    "ZeroStakeError",
    # System
    "GovernanceSystem",
]
