"""
Vesting Module - Pool, grants and linear release

- One pool per ledger with a fixed start and duration
- Write-once grants, funded in atomic batches
- Claims pay out whatever has vested and not yet been claimed
"""

from linear_vesting.vesting.models import (
    ClaimRecord,
    Grant,
    GrantSnapshot,
    Pool,
)

__all__ = [
    "Pool",
    "Grant",
    "GrantSnapshot",
    "ClaimRecord",
]
