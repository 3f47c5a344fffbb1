"""
Vesting Calculator - time-based release math

Pure functions of (pool, grant, now). They hold no state and can be called
at any time without side effects. All arithmetic is checked; a claimed total
that exceeds what has vested is a broken ledger, reported as
LedgerInconsistency rather than clamped to zero.
"""

from linear_vesting.kernel.errors import (
    ArithmeticFault,
    DegenerateDuration,
    LedgerInconsistency,
)
from linear_vesting.kernel.safemath import checked_div, checked_mul, checked_sub
from linear_vesting.kernel.time import SECONDS_PER_DAY
from linear_vesting.vesting.models import Grant, Pool


def per_second_rate(amount: int, vesting_duration: int) -> int:
    """Units released per second, truncated; the remainder vests at end_time"""
    return checked_div(amount, vesting_duration)


def elapsed_seconds(pool: Pool, now: int) -> int:
    """Seconds of the window that have passed, capped at the window length"""
    if now < pool.start_time:
        return 0
    cap = min(now, pool.end_time)
    return checked_sub(cap, pool.start_time)


def vested_balance(pool: Pool, grant: Grant, now: int) -> int:
    """
    Total units unlocked for a grant, ignoring what was already claimed

    0 before start_time, the full amount from end_time on, and
    per_second_rate * elapsed in between.
    """
    if now < pool.start_time:
        return 0
    if now >= pool.end_time:
        return grant.amount
    return checked_mul(grant.per_second_rate, checked_sub(now, pool.start_time))


def claimable(pool: Pool, grant: Grant, now: int) -> int:
    """
    Units a recipient can withdraw right now

    Once the whole window has elapsed the full remainder is claimable, which
    absorbs the truncation loss of per_second_rate.

    Raises:
        LedgerInconsistency: If the grant has claimed more than has vested
    """
    if now < pool.start_time:
        return 0

    elapsed = elapsed_seconds(pool, now)
    if elapsed >= pool.vesting_duration:
        vested = grant.amount
    else:
        vested = checked_mul(grant.per_second_rate, elapsed)

    try:
        return checked_sub(vested, grant.total_claimed)
    except ArithmeticFault as e:
        raise LedgerInconsistency(
            f"Grant for {grant.recipient} claimed {grant.total_claimed} "
            f"but only {vested} has vested"
        ) from e


def daily_rate(pool: Pool, amount: int) -> int:
    """
    Units of amount released per whole day of the window

    Computed as amount // (vesting_duration // SECONDS_PER_DAY), truncating
    at each step.

    Raises:
        DegenerateDuration: If the window is shorter than one day
    """
    days = pool.vesting_duration // SECONDS_PER_DAY
    if days == 0:
        raise DegenerateDuration(pool.vesting_duration)
    return checked_div(amount, days)
