"""
Vesting Domain Models - Pool and Grant

The pool is a single vesting window shared by every grant; a grant is one
recipient's allocation and claim history inside it.

Key concepts:
- Linear release: a grant unlocks per_second_rate units every second of the
  window, with the truncation remainder released at the end
- Write-once grants: one per recipient, never overwritten or removed
- Monotonic counters: total_amount, total_claimed and grant_count only grow
"""

from pydantic import BaseModel, Field

ZERO_ADDRESS = "0x" + "0" * 40


def is_null_identity(account: str | None) -> bool:
    """True for accounts that cannot hold a grant or a capability"""
    if account is None:
        return True
    stripped = account.strip()
    return stripped == "" or stripped.lower() == ZERO_ADDRESS


class Pool(BaseModel):
    """
    The ledger's vesting window and aggregate totals

    Invariants enforced:
    - end_time == start_time + vesting_duration
    - total_claimed <= total_amount
    - total_amount equals the sum of all grant amounts

    Attributes:
        name: Display label
        token: Reference to the vested unit
        admin: Account given the admin capability at initialization
        start_time: Unix second the window opens
        end_time: Unix second the window closes
        vesting_duration: Window length in seconds
        total_amount: Units allocated across all grants
        total_claimed: Units paid out across all grants
        grant_count: Number of grants created
    """

    name: str
    token: str
    admin: str
    start_time: int = Field(gt=0)
    end_time: int = Field(gt=0)
    vesting_duration: int = Field(gt=0)
    total_amount: int = Field(default=0, ge=0)
    total_claimed: int = Field(default=0, ge=0)
    grant_count: int = Field(default=0, ge=0)

    def total_unclaimed(self) -> int:
        return self.total_amount - self.total_claimed

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Team allocation",
                    "token": "0xtoken",
                    "admin": "0xadmin",
                    "start_time": 1767225600,
                    "end_time": 1798761600,
                    "vesting_duration": 31536000,
                    "total_amount": 600,
                    "total_claimed": 0,
                    "grant_count": 3,
                }
            ]
        }
    }


class Grant(BaseModel):
    """
    One recipient's allocation

    per_second_rate is fixed at creation (amount // vesting_duration) and
    never recomputed, so later policy or pool reads cannot shift it.
    """

    recipient: str
    amount: int = Field(ge=0)
    total_claimed: int = Field(default=0, ge=0)
    per_second_rate: int = Field(ge=0)

    @classmethod
    def empty(cls, recipient: str) -> "Grant":
        """Zero grant used for recipients that were never granted anything"""
        return cls(recipient=recipient, amount=0, total_claimed=0, per_second_rate=0)


class GrantSnapshot(BaseModel):
    """Read-only view returned by get_grant"""

    amount: int
    total_claimed: int
    per_second_rate: int

    model_config = {"frozen": True}


class ClaimRecord(BaseModel):
    """One historical claim, read back from the journal"""

    recipient: str
    amount: int
    total_claimed: int
    claimed_at: int
