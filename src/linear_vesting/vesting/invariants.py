"""
Vesting Invariants - precondition checks

Pure functions that either return normally or raise the ledger error for
the first violated precondition. Handlers run all of them before touching
custody or the journal, so a rejected operation never leaves a trace.
"""

from linear_vesting.kernel.access import Authorizer, Capability
from linear_vesting.kernel.errors import (
    ArithmeticFault,
    InvalidBatch,
    InvalidConfiguration,
    PoolAlreadyInitialized,
    PoolNotInitialized,
    Unauthorized,
)
from linear_vesting.kernel.policy import LedgerPolicy
from linear_vesting.kernel.safemath import require_u256
from linear_vesting.vesting.models import Pool, is_null_identity
from linear_vesting.vesting.projections import GrantRegistry


def validate_pool_absent(pool: Pool | None) -> None:
    if pool is not None:
        raise PoolAlreadyInitialized(pool.name)


def validate_pool_exists(pool: Pool | None) -> Pool:
    if pool is None:
        raise PoolNotInitialized()
    return pool


def validate_pool_config(
    name: str,
    admin: str | None,
    start_time: int,
    vesting_duration: int,
    now: int,
    policy: LedgerPolicy,
) -> None:
    """
    Check pool initialization parameters

    Raises:
        InvalidConfiguration: On a zero start or duration, a start that is
            not strictly in the future, an empty name, a null admin, or a
            duration rejected by the bound check
    """
    if not name or not name.strip():
        raise InvalidConfiguration("Pool name must not be empty")

    if is_null_identity(admin):
        raise InvalidConfiguration("Pool admin must be a non-null account")

    if start_time == 0:
        raise InvalidConfiguration("start_time must be non-zero")

    if vesting_duration == 0:
        raise InvalidConfiguration("vesting_duration must be non-zero")

    if start_time <= now:
        raise InvalidConfiguration(
            f"start_time {start_time} must be after current time {now}"
        )

    try:
        require_u256(start_time, vesting_duration)
    except ArithmeticFault as e:
        raise InvalidConfiguration(str(e)) from e

    validate_duration_bounds(vesting_duration, policy)


def validate_duration_bounds(vesting_duration: int, policy: LedgerPolicy) -> None:
    """
    Apply the duration bound check

    By default the historical compound condition is kept: a duration is
    rejected only if it is both below the minimum and above the maximum,
    which no duration can be. strict_duration_bounds switches to a plain
    range check.
    """
    below_min = vesting_duration < policy.min_vesting_duration
    above_max = vesting_duration > policy.max_vesting_duration

    if policy.strict_duration_bounds:
        rejected = below_min or above_max
    else:
        rejected = below_min and above_max

    if rejected:
        raise InvalidConfiguration(
            f"vesting_duration {vesting_duration}s outside "
            f"[{policy.min_vesting_duration}, {policy.max_vesting_duration}]"
        )


def validate_capability(
    authorizer: Authorizer, account: str, capability: Capability
) -> None:
    """
    Raises:
        Unauthorized: If account does not hold capability
    """
    if not authorizer.authorize(account, capability):
        raise Unauthorized(account=account, capability=capability.value)


def validate_grant_batch(
    recipients: list[str | None],
    amounts: list[int],
    registry: GrantRegistry,
    policy: LedgerPolicy,
) -> None:
    """
    Check a whole grant batch before anything is funded or written

    Raises:
        InvalidBatch: On the first malformed entry
    """
    if not recipients:
        raise InvalidBatch("batch must contain at least one recipient")

    if len(recipients) > policy.max_batch_size:
        raise InvalidBatch(
            f"batch of {len(recipients)} exceeds maximum of {policy.max_batch_size}"
        )

    if len(recipients) != len(amounts):
        raise InvalidBatch(
            f"{len(recipients)} recipients but {len(amounts)} amounts"
        )

    seen: set[str] = set()
    for recipient, amount in zip(recipients, amounts):
        if is_null_identity(recipient):
            raise InvalidBatch("recipient must be a non-null account", recipient)

        if recipient in seen:
            raise InvalidBatch("recipient appears twice in batch", recipient)
        seen.add(recipient)

        if registry.exists(recipient):
            raise InvalidBatch("recipient already has a grant", recipient)

        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidBatch(f"amount {amount!r} is not an integer", recipient)

        if amount <= 0:
            raise InvalidBatch(f"amount {amount} must be positive", recipient)

        try:
            require_u256(amount)
        except ArithmeticFault as e:
            raise InvalidBatch(str(e), recipient) from e


def validate_new_admin(caller: str, new_admin: str | None) -> str:
    if is_null_identity(new_admin):
        raise InvalidConfiguration("New admin must be a non-null account")
    if new_admin == caller:
        raise InvalidConfiguration("New admin must differ from the current admin")
    return new_admin
