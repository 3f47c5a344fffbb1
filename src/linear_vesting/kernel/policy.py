"""
Ledger Policy - tunable limits for pool setup and grant batches
"""

from pydantic import BaseModel, Field

from linear_vesting.kernel.time import SECONDS_PER_DAY


class LedgerPolicy(BaseModel):
    """
    Configuration parameters for a vesting ledger

    Defaults reproduce the deployed ledger's limits. The duration bounds are
    only enforced as a range when strict_duration_bounds is switched on;
    otherwise initialization applies the historical compound check.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    max_batch_size: int = Field(
        default=100,
        ge=1,
        description="Maximum recipients accepted in one add_grants call",
    )

    min_vesting_duration: int = Field(
        default=SECONDS_PER_DAY,
        ge=1,
        description="Lower duration bound in seconds (one day)",
    )

    max_vesting_duration: int = Field(
        default=10 * 365 * SECONDS_PER_DAY,
        ge=1,
        description="Upper duration bound in seconds (ten 365-day years)",
    )

    strict_duration_bounds: bool = Field(
        default=False,
        description="Reject durations outside [min, max] instead of the compound check",
    )

    model_config = {"frozen": True}
