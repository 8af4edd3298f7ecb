from __future__ import annotations

from ticketdb.errors import ErrorCode, TicketError

U8_BITS = 8
U32_BITS = 32
U64_BITS = 64


def max_unsigned(bits: int) -> int:
    return (1 << bits) - 1


def checked_add(a: int, b: int, bits: int = U64_BITS) -> int:
    if a < 0 or b < 0:
        raise TicketError(ErrorCode.INVALID_PARAMETER, "operands must be unsigned")
    if max_unsigned(bits) - a < b:
        raise TicketError(ErrorCode.INTEGER_OVERFLOW, f"{a} + {b} exceeds u{bits}")
    return a + b


def checked_increment(value: int, bits: int = U64_BITS) -> int:
    return checked_add(value, 1, bits)


def checked_mul(a: int, b: int, bits: int = U64_BITS) -> int:
    if a < 0 or b < 0:
        raise TicketError(ErrorCode.INVALID_PARAMETER, "operands must be unsigned")
    if a == 0 or b == 0:
        return 0
    if max_unsigned(bits) // a < b:
        raise TicketError(ErrorCode.INTEGER_OVERFLOW, f"{a} * {b} exceeds u{bits}")
    return a * b


def checked_truncate(value: int, bits: int) -> int:
    """Narrow ``value`` to an unsigned integer of ``bits`` width or fail."""
    if value < 0:
        raise TicketError(ErrorCode.INVALID_PARAMETER, f"{value} is negative")
    if value > max_unsigned(bits):
        raise TicketError(ErrorCode.INTEGER_OVERFLOW, f"{value} does not fit in u{bits}")
    return value
