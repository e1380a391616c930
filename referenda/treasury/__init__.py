"""
Referenda Treasury

Provides:
  - Treasury        : the transfer contract the staking ledger depends on
  - TreasuryToken   : in-memory fungible token implementing it
"""

from .token import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    Treasury,
    TreasuryApprovalEvent,
    TreasuryError,
    TreasuryFrozenError,
    TreasuryToken,
    TreasuryTransferEvent,
)

__all__ = [
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "Treasury",
    "TreasuryApprovalEvent",
    "TreasuryError",
    "TreasuryFrozenError",
    "TreasuryToken",
    "TreasuryTransferEvent",
]
