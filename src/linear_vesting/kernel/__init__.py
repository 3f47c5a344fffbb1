"""
Kernel - Core event sourcing infrastructure

The journal, checked arithmetic and the collaborator boundaries (clock,
capability system, custody) that the vesting domain builds upon.
"""

from linear_vesting.kernel.access import Authorizer, Capability, RoleRegistry
from linear_vesting.kernel.custody import (
    AccountingCustody,
    InMemoryCustody,
    TokenCustody,
)
from linear_vesting.kernel.errors import (
    ArithmeticFault,
    DegenerateDuration,
    EventStoreError,
    FundingFailure,
    InvalidBatch,
    InvalidConfiguration,
    JournalCommitFailed,
    LedgerInconsistency,
    NoClaimableAmount,
    PoolAlreadyInitialized,
    PoolNotInitialized,
    QueryBeforeLastClaim,
    StreamVersionConflict,
    TransferFailure,
    Unauthorized,
    VestingError,
)
from linear_vesting.kernel.events import Event
from linear_vesting.kernel.ids import generate_id
from linear_vesting.kernel.policy import LedgerPolicy
from linear_vesting.kernel.time import (
    FixedTimeProvider,
    RealTimeProvider,
    TestTimeProvider,
    TimeProvider,
)

__all__ = [
    # IDs
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    "FixedTimeProvider",
    # Events
    "Event",
    # Collaborators
    "Authorizer",
    "Capability",
    "RoleRegistry",
    "TokenCustody",
    "InMemoryCustody",
    "AccountingCustody",
    # Configuration
    "LedgerPolicy",
    # Errors
    "VestingError",
    "EventStoreError",
    "StreamVersionConflict",
    "JournalCommitFailed",
    "InvalidConfiguration",
    "PoolAlreadyInitialized",
    "PoolNotInitialized",
    "InvalidBatch",
    "FundingFailure",
    "NoClaimableAmount",
    "TransferFailure",
    "QueryBeforeLastClaim",
    "Unauthorized",
    "DegenerateDuration",
    "ArithmeticFault",
    "LedgerInconsistency",
]
