"""
Referendum Staking Ledger

Manages per-(user, referendum) stake locks, the running total of stake held
in escrow per referendum, and the refund sub-protocol:

  - lock_stake          pull stake into escrow through the treasury
  - unlock_stake        admin release; pays the stake back
  - request_refund      user asks for an unlocked stake, cooldown-limited
  - claim_refund        second cooldown after the request, then pay out
  - admin_force_unlock  flips the lock only; funds stay escrowed

Every operation checks everything first, calls the treasury next and only
then mutates local state, so a failed transfer leaves the ledger untouched.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..clock import BlockClock
from ..config import GovernanceConfig
from ..exceptions import (
    AuthorizationError,
    ErrorCode,
    LimitError,
    StateError,
    TimingError,
    TransferFailedError,
    ValidationError,
)
from ..logger import get_logger
from ..treasury import Treasury, TreasuryError

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class StakingUnauthorizedError(AuthorizationError):
    """Caller is not the administrator."""
    code = ErrorCode.STAKE_UNAUTHORIZED


class AlreadyStakedError(StateError):
    """A stake already exists for this (user, referendum)."""
    code = ErrorCode.ALREADY_STAKED


class StakeBelowMinimumError(ValidationError):
    """Stake is below the minimum."""
    code = ErrorCode.STAKE_BELOW_MINIMUM


class StakeNotFoundError(StateError):
    """No stake exists for this (user, referendum)."""
    code = ErrorCode.STAKE_NOT_FOUND


class NotLockedError(StateError):
    """Stake is not locked."""
    code = ErrorCode.NOT_LOCKED


class StillLockedError(StateError):
    """Stake is still locked and cannot be refunded."""
    code = ErrorCode.STILL_LOCKED


class RefundLimitReachedError(LimitError):
    """Refund request count exhausted."""
    code = ErrorCode.REFUND_LIMIT_REACHED


class RefundAlreadyPendingError(StateError):
    """A refund request is already outstanding."""
    code = ErrorCode.REFUND_ALREADY_PENDING


class CooldownActiveError(TimingError):
    """Refund cooldown has not elapsed."""
    code = ErrorCode.COOLDOWN_ACTIVE


class NothingPendingError(StateError):
    """No refund request to claim."""
    code = ErrorCode.NOTHING_PENDING


class AmountMismatchError(ValidationError):
    """Caller-supplied amount disagrees with the stored stake."""
    code = ErrorCode.AMOUNT_MISMATCH


# ══════════════════════════════════════════════════════════════════════
#  RECORDS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class UserStake:
    """
    Stake locked by one user for one referendum.

    Attributes:
        amount:        Locked principal
        locked:        Lock flag; cleared by unlock_stake or admin_force_unlock
        staked_at:     Block of the lock
        last_refund:   Block of the last refund request (0 = never)
        refund_count:  Refund requests made so far
        escrowed:      Principal still held by the escrow account
    """
    user: str
    referendum_id: int
    amount: int
    staked_at: int
    locked: bool = True
    last_refund: int = 0
    refund_count: int = 0
    escrowed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "referendumId": self.referendum_id,
            "amount": self.amount,
            "locked": self.locked,
            "stakedAt": self.staked_at,
            "lastRefund": self.last_refund,
            "refundCount": self.refund_count,
            "escrowed": self.escrowed,
        }


@dataclass(frozen=True)
class PendingRefund:
    """Outstanding refund request."""
    user: str
    referendum_id: int
    requested_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "referendumId": self.referendum_id,
            "requestedAt": self.requested_at,
        }


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class StakingLedger:
    """
    Escrowed stake per (user, referendum).

    Invariant: ``global_staked(rid)`` equals the sum of ``amount`` over the
    stakes of *rid* whose principal is still escrowed. Outside of
    ``admin_force_unlock`` that is exactly the set of locked stakes.
    """

    def __init__(
        self,
        treasury: Treasury,
        clock: BlockClock,
        config: Optional[GovernanceConfig] = None,
    ):
        self.treasury = treasury
        self.clock = clock
        self.config = config or GovernanceConfig()

        self._stakes: Dict[Tuple[str, int], UserStake] = {}
        self._pending_refunds: Dict[Tuple[str, int], PendingRefund] = {}
        self._global_staked: Dict[int, int] = {}

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def escrow_account(self) -> str:
        return self.config.escrow_account

    def get_stake(self, user: str, referendum_id: int) -> Optional[UserStake]:
        return self._stakes.get((user, referendum_id))

    def has_stake(self, user: str, referendum_id: int) -> bool:
        return (user, referendum_id) in self._stakes

    def get_pending_refund(self, user: str, referendum_id: int) -> Optional[PendingRefund]:
        return self._pending_refunds.get((user, referendum_id))

    def global_staked(self, referendum_id: int) -> int:
        return self._global_staked.get(referendum_id, 0)

    def stakers(self, referendum_id: int) -> List[UserStake]:
        return [s for (_, rid), s in self._stakes.items() if rid == referendum_id]

    # =========================================================================
    # GUARDS
    # =========================================================================

    def _require_admin(self, caller: str):
        if caller != self.config.admin:
            raise StakingUnauthorizedError(f"{caller} is not the administrator")

    def _require_stake(self, user: str, referendum_id: int) -> UserStake:
        stake = self._stakes.get((user, referendum_id))
        if stake is None:
            raise StakeNotFoundError(
                f"No stake for {user} on referendum #{referendum_id}"
            )
        return stake

    def _pay_out(self, user: str, amount: int):
        try:
            self.treasury.transfer(self.escrow_account, user, amount)
        except TreasuryError as e:
            raise TransferFailedError(
                f"Treasury transfer of {amount} to {user} failed: {e}"
            ) from e

    # =========================================================================
    # STAKE OPERATIONS
    # =========================================================================

    def lock_stake(self, caller: str, referendum_id: int, amount: int) -> UserStake:
        """
        Lock *amount* of the caller's funds against *referendum_id*.

        Raises:
            AlreadyStakedError: A stake already exists for the key
            StakeBelowMinimumError: amount < min_stake
            TransferFailedError: The treasury refused the pull
        """
        key = (caller, referendum_id)
        if key in self._stakes:
            raise AlreadyStakedError(
                f"{caller} already has a stake on referendum #{referendum_id}"
            )
        if amount < self.config.min_stake:
            raise StakeBelowMinimumError(
                f"Stake {amount} < minimum {self.config.min_stake}"
            )

        try:
            self.treasury.transfer_from(caller, self.escrow_account, amount)
        except TreasuryError as e:
            raise TransferFailedError(
                f"Treasury pull of {amount} from {caller} failed: {e}"
            ) from e

        stake = UserStake(
            user=caller,
            referendum_id=referendum_id,
            amount=amount,
            staked_at=self.clock.height,
        )
        self._stakes[key] = stake
        self._global_staked[referendum_id] = self.global_staked(referendum_id) + amount

        logger.info(
            f"Stake locked: {caller} locked {amount} on Referendum #{referendum_id} "
            f"(global: {self._global_staked[referendum_id]})"
        )
        return stake

    def unlock_stake(
        self,
        caller: str,
        referendum_id: int,
        user: str,
        amount: Optional[int] = None,
    ) -> int:
        """
        Release a locked stake back to *user*. Administrator only.

        The released amount is always the stored stake's amount; *amount*,
        if given, must match it.

        Returns:
            Amount paid out
        """
        self._require_admin(caller)
        stake = self._require_stake(user, referendum_id)
        if not stake.locked:
            raise NotLockedError(
                f"Stake of {user} on referendum #{referendum_id} is not locked"
            )
        if amount is not None and amount != stake.amount:
            raise AmountMismatchError(
                f"Requested unlock of {amount} but stake is {stake.amount}"
            )

        self._pay_out(user, stake.amount)

        stake.locked = False
        stake.escrowed = False
        self._global_staked[referendum_id] = self.global_staked(referendum_id) - stake.amount

        logger.info(
            f"Stake unlocked: {user} received {stake.amount} from Referendum #{referendum_id} "
            f"(global: {self._global_staked[referendum_id]})"
        )
        return stake.amount

    def admin_force_unlock(self, caller: str, user: str, referendum_id: int):
        """
        Clear the lock flag without moving funds or the global total.

        The principal stays in escrow until the refund path pays it out.
        """
        self._require_admin(caller)
        stake = self._require_stake(user, referendum_id)
        stake.locked = False
        logger.warning(
            f"Stake force-unlocked by {caller}: {user} on Referendum #{referendum_id} "
            f"({stake.amount} still escrowed)"
        )

    # =========================================================================
    # REFUNDS
    # =========================================================================

    def request_refund(self, caller: str, referendum_id: int) -> PendingRefund:
        """
        Open a refund request for an unlocked stake.

        Raises:
            StakeNotFoundError, StillLockedError, RefundLimitReachedError,
            RefundAlreadyPendingError, CooldownActiveError
        """
        stake = self._require_stake(caller, referendum_id)
        if stake.locked:
            raise StillLockedError(
                f"Stake of {caller} on referendum #{referendum_id} is still locked"
            )
        if stake.refund_count >= self.config.max_refunds:
            raise RefundLimitReachedError(
                f"{caller} reached {self.config.max_refunds} refunds on "
                f"referendum #{referendum_id}"
            )
        key = (caller, referendum_id)
        if key in self._pending_refunds:
            raise RefundAlreadyPendingError(
                f"{caller} already has a pending refund on referendum #{referendum_id}"
            )
        now = self.clock.height
        elapsed = now - stake.last_refund
        if elapsed < self.config.refund_cooldown_blocks:
            raise CooldownActiveError(
                f"Refund cooldown: {elapsed}/{self.config.refund_cooldown_blocks} blocks"
            )

        pending = PendingRefund(user=caller, referendum_id=referendum_id, requested_at=now)
        self._pending_refunds[key] = pending
        stake.last_refund = now
        stake.refund_count += 1

        logger.info(
            f"Refund requested: {caller} on Referendum #{referendum_id} at block {now} "
            f"(request {stake.refund_count}/{self.config.max_refunds})"
        )
        return pending

    def claim_refund(self, caller: str, referendum_id: int) -> int:
        """
        Settle a refund request after its own cooldown.

        Deletes the stake and the request. Escrowed principal is paid out and
        leaves the global total; principal already paid by unlock_stake is
        not paid twice.

        Returns:
            Amount refunded
        """
        key = (caller, referendum_id)
        pending = self._pending_refunds.get(key)
        stake = self._stakes.get(key)
        if pending is None or stake is None:
            raise NothingPendingError(
                f"No pending refund for {caller} on referendum #{referendum_id}"
            )
        now = self.clock.height
        elapsed = now - pending.requested_at
        if elapsed < self.config.refund_cooldown_blocks:
            raise CooldownActiveError(
                f"Claim cooldown: {elapsed}/{self.config.refund_cooldown_blocks} blocks"
            )

        refunded = stake.amount if stake.escrowed else 0
        if refunded:
            self._pay_out(caller, refunded)
            self._global_staked[referendum_id] = self.global_staked(referendum_id) - refunded

        del self._pending_refunds[key]
        del self._stakes[key]

        logger.info(
            f"Refund claimed: {caller} received {refunded} from Referendum #{referendum_id}"
        )
        return refunded

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "escrowAccount": self.escrow_account,
            "stakes": [s.to_dict() for s in self._stakes.values()],
            "pendingRefunds": [p.to_dict() for p in self._pending_refunds.values()],
            "globalStaked": dict(self._global_staked),
        }

    def __repr__(self) -> str:
        return f"<StakingLedger stakes={len(self._stakes)}>"
