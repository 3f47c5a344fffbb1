"""
Vesting Events - Domain events for the ledger journal

Every committed change is one of these payloads wrapped in a kernel Event.
Replaying them in version order rebuilds the pool, the grant registry and
the capability holders.
"""

from pydantic import BaseModel


class PoolInitialized(BaseModel):
    """The vesting window was fixed and the admin appointed"""

    name: str
    token: str
    admin: str
    start_time: int
    end_time: int
    vesting_duration: int
    initialized_at: int


class GrantCreated(BaseModel):
    """
    A recipient received a grant

    One event per recipient; all events of a batch share batch_id and are
    committed together with the batch's single funding transfer.
    """

    batch_id: str
    recipient: str
    amount: int
    per_second_rate: int
    funded_by: str
    created_at: int


class TokensClaimed(BaseModel):
    """Units were paid out to a recipient"""

    recipient: str
    amount: int
    total_claimed: int
    claimed_at: int


class AdminChanged(BaseModel):
    """The admin capability moved to a new account"""

    previous_admin: str
    new_admin: str
    changed_at: int


class IssuerGranted(BaseModel):
    """An account may now fund and create grants"""

    account: str
    granted_by: str
    granted_at: int


class IssuerRevoked(BaseModel):
    """An account may no longer fund and create grants"""

    account: str
    revoked_by: str
    revoked_at: int
