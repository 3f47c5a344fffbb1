"""
Checked unsigned-integer arithmetic for ledger amounts

Python integers never wrap, so the bound is enforced explicitly: every
operand and result must lie in [0, U256_MAX]. Any violation raises
ArithmeticFault instead of producing an out-of-range value.
"""

from typing import Final

from linear_vesting.kernel.errors import ArithmeticFault

U256_MAX: Final[int] = 2**256 - 1


def require_u256(*values: int) -> None:
    """Raise ArithmeticFault unless every value is an int in [0, U256_MAX]"""
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ArithmeticFault("range", f"{value!r} is not an integer")
        if value < 0 or value > U256_MAX:
            raise ArithmeticFault("range", f"{value} outside [0, 2**256 - 1]")


def checked_add(x: int, y: int) -> int:
    require_u256(x, y)
    total = x + y
    if total > U256_MAX:
        raise ArithmeticFault("add", f"{x} + {y} overflows")
    return total


def checked_sub(x: int, y: int) -> int:
    require_u256(x, y)
    if y > x:
        raise ArithmeticFault("sub", f"{x} - {y} underflows")
    return x - y


def checked_mul(x: int, y: int) -> int:
    require_u256(x, y)
    product = x * y
    if product > U256_MAX:
        raise ArithmeticFault("mul", f"{x} * {y} overflows")
    return product


def checked_div(x: int, y: int) -> int:
    """Truncating division; raises on a zero divisor"""
    require_u256(x, y)
    if y == 0:
        raise ArithmeticFault("div", f"{x} / 0")
    return x // y


def checked_sum(values: list[int]) -> int:
    total = 0
    for value in values:
        total = checked_add(total, value)
    return total
