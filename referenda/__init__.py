"""
Referenda Package

Stake-weighted referendum governance: a referendum registry, a staking
ledger with cooldown-limited refunds, and a voting engine, driven by an
injected block clock and a treasury contract.

Core imports are lazily loaded so that importing a submodule does not
configure logging for the whole package:

    from referenda.governance import GovernanceSystem
    from referenda.treasury import TreasuryToken
    from referenda.clock import BlockClock
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    if name == 'GovernanceSystem':
        from .governance import GovernanceSystem
        return GovernanceSystem
    elif name == 'BlockClock':
        from .clock import BlockClock
        return BlockClock
    elif name == 'GovernanceConfig':
        from .config import GovernanceConfig
        return GovernanceConfig
    elif name == 'TreasuryToken':
        from .treasury import TreasuryToken
        return TreasuryToken
    elif name == 'GovernanceError':
        from .exceptions import GovernanceError
        return GovernanceError
    raise AttributeError(f"module 'referenda' has no attribute {name!r}")

__all__ = ['GovernanceSystem', 'BlockClock', 'GovernanceConfig', 'TreasuryToken', 'GovernanceError']
