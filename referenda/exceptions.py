"""
Referenda Exceptions

Error codes and the exception taxonomy shared by the referendum registry,
the staking ledger and the voting engine. Component-specific errors are
declared next to the component that raises them.
"""

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Stable error taxonomy. Values are an internal contract detail."""
    # Referendum lifecycle
    UNAUTHORIZED = 100
    NOT_FOUND = 101
    DUPLICATE_TITLE = 102
    INVALID_WINDOW = 103
    QUORUM_TOO_HIGH = 104
    EMPTY_REWARD_POOL = 105
    WINDOW_IN_PAST = 106
    MISSING_QUIZ_ID = 107
    INVALID_TITLE = 108
    INVALID_STATE = 109
    TOO_LATE = 110
    TOO_EARLY = 111
    ALREADY_CLOSED = 112

    # Voting
    ALREADY_VOTED = 120
    VOTE_BELOW_MINIMUM = 121
    OUTSIDE_WINDOW = 122
    QUIZ_NOT_PASSED = 123
    NOT_CLOSED = 124
    ZERO_STAKE = 125
    NO_VOTE = 126
    INVALID_CHOICE = 127

    # Staking
    STAKE_UNAUTHORIZED = 200
    NOTHING_PENDING = 201
    TRANSFER_FAILED = 202
    ALREADY_STAKED = 203
    STAKE_NOT_FOUND = 204
    STILL_LOCKED = 205
    STAKE_BELOW_MINIMUM = 206
    COOLDOWN_ACTIVE = 207
    REFUND_LIMIT_REACHED = 208
    REFUND_ALREADY_PENDING = 209
    NOT_LOCKED = 210
    AMOUNT_MISMATCH = 211


class GovernanceError(Exception):
    """Base governance exception. Every failure carries an ErrorCode."""

    code: Optional[ErrorCode] = None

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None):
        if code is not None:
            self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.code is None:
            return message
        return f"[E{int(self.code)}] {message}"


# ── Categories ────────────────────────────────────────────────────────

class ValidationError(GovernanceError):
    """Malformed input. Always reported, never retried."""


class AuthorizationError(GovernanceError):
    """Caller lacks the rights for the operation."""


class StateError(GovernanceError):
    """Record is in the wrong phase for the operation."""


class TimingError(GovernanceError):
    """Too early or too late relative to block height or cooldown."""


class ResourceError(GovernanceError):
    """An external resource (the treasury) refused the operation."""


class LimitError(GovernanceError):
    """A per-key limit has been exhausted."""


# ── Shared conditions ─────────────────────────────────────────────────

class NotFoundError(StateError):
    """Referendum does not exist."""
    code = ErrorCode.NOT_FOUND


class UnauthorizedError(AuthorizationError):
    """Caller is neither the creator nor the administrator."""
    code = ErrorCode.UNAUTHORIZED


class InvalidStateError(StateError):
    """Referendum status does not allow the operation."""
    code = ErrorCode.INVALID_STATE


class TransferFailedError(ResourceError):
    """Treasury transfer failed; the calling operation was aborted."""
    code = ErrorCode.TRANSFER_FAILED


class ClockError(Exception):
    """Block height moved backwards."""


class ConfigurationError(Exception):
    """Governance configuration is invalid."""
