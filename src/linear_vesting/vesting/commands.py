"""
Vesting Commands - Intentions to change ledger state

Commands carry raw caller input. Shape checks that would otherwise surface
as pydantic errors (empty batches, zero amounts) are left to the invariant
layer so they raise the ledger's own errors.
"""

from pydantic import BaseModel, Field


class InitializePool(BaseModel):
    """
    Create the ledger's single vesting pool

    Requirements:
    - No pool exists yet
    - start_time strictly in the future, non-zero
    - vesting_duration non-zero (and within bounds in strict mode)
    """

    name: str
    token: str
    start_time: int = Field(..., ge=0)
    vesting_duration: int = Field(..., ge=0)
    admin: str


class AddGrants(BaseModel):
    """
    Fund and create a batch of grants

    Applied all-or-nothing: every recipient is validated, the batch total is
    pulled from the funder in one transfer, then every grant is written.
    """

    recipients: list[str | None]
    amounts: list[int]

    # No coercion: True or "5" must not become a valid amount
    model_config = {"strict": True}


class Claim(BaseModel):
    """Withdraw everything currently claimable for the calling recipient"""

    pass


class ChangeAdmin(BaseModel):
    """Move the admin capability from the caller to new_admin"""

    new_admin: str | None


class SetIssuer(BaseModel):
    """Grant or revoke the grant-issuance capability for account"""

    account: str | None
    enabled: bool

