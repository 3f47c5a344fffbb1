"""
Linear Vesting - Event-sourced vesting ledger

Allocates a fixed pool of fungible units to recipients and releases each
allocation linearly, second by second, over one shared window. Every grant,
claim and admin change is an event in an append-only journal.
"""

from linear_vesting.ledger import VestingLedger

__version__ = "0.1.0"
__all__ = ["VestingLedger", "__version__"]
