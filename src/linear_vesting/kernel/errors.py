"""
Custom exceptions for the linear vesting ledger

Every failure rejects the whole operation and leaves prior state untouched.
There is no split between recoverable and fatal errors: callers either get a
committed result or one of these exceptions.
"""


class VestingError(Exception):
    """Base exception for all vesting ledger errors"""

    pass


class EventStoreError(VestingError):
    """Base class for event journal errors"""

    pass


class JournalCommitFailed(EventStoreError):
    """
    Raised when COMMIT fails after the staged block has already run

    Work done inside the block (a custody transfer, a capability change)
    has happened but the journal does not record it; the caller must
    reverse it.
    """

    pass


class StreamVersionConflict(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates a concurrent writer outside this process's locks.
    """

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


# Configuration errors


class InvalidConfiguration(VestingError):
    """Raised when pool or administration parameters are rejected"""

    pass


class PoolAlreadyInitialized(InvalidConfiguration):
    """Raised when initialize is called on a ledger that already has a pool"""

    def __init__(self, pool_name: str) -> None:
        self.pool_name = pool_name
        super().__init__(f"Pool '{pool_name}' is already initialized")


class PoolNotInitialized(VestingError):
    """Raised when an operation needs a pool and none exists yet"""

    def __init__(self) -> None:
        super().__init__("Vesting pool has not been initialized")


# Grant and claim errors


class InvalidBatch(VestingError):
    """
    Raised when a grant batch is malformed

    Covers empty or oversized batches, length mismatches, null or zero
    recipients, duplicates (inside the batch or against existing grants)
    and non-positive amounts. The whole batch is rejected.
    """

    def __init__(self, reason: str, recipient: str | None = None) -> None:
        self.reason = reason
        self.recipient = recipient
        super().__init__(f"Invalid grant batch: {reason}")


class FundingFailure(VestingError):
    """Raised when the aggregate inbound transfer for a batch fails"""

    def __init__(self, funder: str, amount: int) -> None:
        self.funder = funder
        self.amount = amount
        super().__init__(f"Funding transfer of {amount} units from {funder} failed")


class NoClaimableAmount(VestingError):
    """Raised when a claim finds nothing vested and unclaimed"""

    def __init__(self, recipient: str) -> None:
        self.recipient = recipient
        super().__init__(f"Nothing claimable for {recipient}")


class TransferFailure(VestingError):
    """Raised when the outbound payout of a claim fails"""

    def __init__(self, recipient: str, amount: int) -> None:
        self.recipient = recipient
        self.amount = amount
        super().__init__(f"Payout of {amount} units to {recipient} failed")


class QueryBeforeLastClaim(VestingError):
    """Raised when a claimable query is dated before the recipient's last claim"""

    def __init__(self, recipient: str, at: int, last_claimed_at: int) -> None:
        self.recipient = recipient
        self.at = at
        self.last_claimed_at = last_claimed_at
        super().__init__(
            f"Cannot compute claimable for {recipient} at {at}: "
            f"last claim was at {last_claimed_at}"
        )


class Unauthorized(VestingError):
    """Raised when the caller lacks the capability an operation needs"""

    def __init__(self, account: str, capability: str) -> None:
        self.account = account
        self.capability = capability
        super().__init__(f"Account {account} lacks capability {capability}")


# Arithmetic errors


class DegenerateDuration(VestingError):
    """Raised when a daily rate is requested for a sub-day vesting window"""

    def __init__(self, vesting_duration: int) -> None:
        self.vesting_duration = vesting_duration
        super().__init__(
            f"Vesting duration {vesting_duration}s is shorter than one day - "
            "daily rate is undefined"
        )


class ArithmeticFault(VestingError):
    """Raised by checked arithmetic on overflow, underflow or division by zero"""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Checked {operation} failed: {detail}")


class LedgerInconsistency(VestingError):
    """
    Raised when stored state breaks a ledger invariant

    This signals a bug elsewhere (for example a grant that claimed more than
    has vested), never bad user input. It is raised rather than clamped so
    the bug surfaces.
    """

    pass
