"""
Treasury Token

The governance core moves stake through a narrow treasury contract:

  - transfer_from(sender, recipient, amount)  pull funds into escrow
  - transfer(sender, recipient, amount)       pay funds out of escrow

Both either succeed completely or raise a TreasuryError without touching
any balance. TreasuryToken is an in-memory fungible token with an
ERC-20–style interface that satisfies this contract.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TreasuryError(Exception):
    """Base exception for treasury operations."""


class InsufficientBalanceError(TreasuryError):
    """Raised when sender balance is too low."""


class InsufficientAllowanceError(TreasuryError):
    """Raised when spender allowance is too low."""


class TreasuryFrozenError(TreasuryError):
    """Raised when the treasury is frozen."""


# ══════════════════════════════════════════════════════════════════════
#  CONTRACT
# ══════════════════════════════════════════════════════════════════════

class Treasury(Protocol):
    """What the staking ledger needs from a value-transfer ledger."""

    def transfer_from(self, sender: str, recipient: str, amount: int) -> Any:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> Any:
        ...


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TreasuryTransferEvent:
    """Emitted on every successful transfer."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int
    spender: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": self.amount,
            "spender": self.spender,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TreasuryApprovalEvent:
    """Emitted on every successful approve."""
    token_symbol: str
    owner: str
    spender: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "token": self.token_symbol,
            "owner": self.owner,
            "spender": self.spender,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  TREASURY TOKEN
# ══════════════════════════════════════════════════════════════════════

class TreasuryToken:
    """
    In-memory fungible token used as the governance treasury.

    Mirrors ERC-20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - approve(owner, spender, amount)
        - transfer_from(sender, recipient, amount, spender=None)
        - total_supply → int

    ``transfer_from`` spends the allowance *sender* granted to *spender*;
    the spender defaults to the recipient, which is how the escrow account
    pulls stake it has been approved for.
    """

    def __init__(
        self,
        symbol: str = "GOV",
        total_supply: int = 0,
        deployer: str = "",
        *,
        require_allowance: bool = True,
    ):
        """
        Args:
            symbol: Short ticker
            total_supply: Initial minted supply, credited to *deployer*
            deployer: Address of deploying account
            require_allowance: Enforce allowances on transfer_from
        """
        if not symbol:
            raise TreasuryError("Token symbol cannot be empty")
        if total_supply < 0:
            raise TreasuryError("Total supply cannot be negative")

        self.symbol = symbol
        self.deployer = deployer
        self.require_allowance = require_allowance
        self._total_supply = total_supply
        self._frozen = False

        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)
        self._events: List[Any] = []

        if total_supply > 0 and deployer:
            self._balances[deployer] = total_supply

        logger.info(f"Treasury token deployed: {symbol}, supply={total_supply}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── State guards ──────────────────────────────────────────────────

    def _require_not_frozen(self):
        if self._frozen:
            raise TreasuryFrozenError(f"Treasury {self.symbol} is frozen")

    def _require_positive(self, amount: int):
        if amount <= 0:
            raise TreasuryError("Transfer amount must be positive")

    # ── Core operations ───────────────────────────────────────────────

    def mint(self, recipient: str, amount: int) -> int:
        """Credit *recipient* with newly issued tokens. Returns new balance."""
        self._require_not_frozen()
        self._require_positive(amount)
        self._total_supply += amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        logger.debug(f"Mint: {amount} {self.symbol} → {recipient}")
        return self._balances[recipient]

    def transfer(self, sender: str, recipient: str, amount: int) -> TreasuryTransferEvent:
        """Move *amount* from *sender* to *recipient*."""
        self._require_not_frozen()
        self._require_positive(amount)
        if sender == recipient:
            raise TreasuryError("Cannot transfer to self")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self.balance_of(recipient) + amount

        event = TreasuryTransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    def approve(self, owner: str, spender: str, amount: int) -> TreasuryApprovalEvent:
        """Set spender allowance."""
        self._require_not_frozen()
        if amount < 0:
            raise TreasuryError("Allowance amount cannot be negative")

        self._allowances[(owner, spender)] = amount

        event = TreasuryApprovalEvent(
            token_symbol=self.symbol,
            owner=owner,
            spender=spender,
            amount=amount,
        )
        self._events.append(event)
        logger.debug(f"Approve: {owner} → {spender} allowance={amount} {self.symbol}")
        return event

    def transfer_from(
        self,
        sender: str,
        recipient: str,
        amount: int,
        spender: Optional[str] = None,
    ) -> TreasuryTransferEvent:
        """
        Transfer on behalf of *sender* using *spender*'s allowance.
        """
        self._require_not_frozen()
        self._require_positive(amount)
        spender = spender or recipient

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        allow = self.allowance(sender, spender)
        if self.require_allowance and allow < amount:
            raise InsufficientAllowanceError(
                f"Allowance {allow} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        if self.require_allowance:
            self._allowances[(sender, spender)] = allow - amount

        event = TreasuryTransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
            spender=spender,
        )
        self._events.append(event)
        logger.debug(
            f"transferFrom: spender={spender} {sender} → {recipient} {amount} {self.symbol}"
        )
        return event

    # ── Freeze / unfreeze ─────────────────────────────────────────────

    def freeze(self):
        """Halt every balance-moving operation."""
        self._frozen = True
        logger.warning(f"Treasury {self.symbol} FROZEN")

    def unfreeze(self):
        self._frozen = False
        logger.info(f"Treasury {self.symbol} unfrozen")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "totalSupply": self._total_supply,
            "deployer": self.deployer,
            "frozen": self._frozen,
            "requireAllowance": self.require_allowance,
            "holders": len([b for b in self._balances.values() if b > 0]),
        }

    def __repr__(self) -> str:
        return f"<TreasuryToken {self.symbol} supply={self._total_supply}>"
