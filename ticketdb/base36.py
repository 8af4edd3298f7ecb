from __future__ import annotations

from ticketdb.checked import U64_BITS, checked_add, checked_mul
from ticketdb.errors import ErrorCode, TicketError

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
BASE = len(ALPHABET)

# ASCII lowercase only; other scripts never map onto a digit.
_DIGIT_VALUES = {character: value for value, character in enumerate(ALPHABET)}
_DIGIT_VALUES.update({character.lower(): value for character, value in list(_DIGIT_VALUES.items())})


def encode_id(value: int) -> str:
    """Render an unsigned integer as an uppercase base-36 string, most significant digit first."""
    if value < 0:
        raise TicketError(ErrorCode.INVALID_PARAMETER, f"cannot encode negative value {value}")
    if value == 0:
        return "0"

    digits = []
    while value:
        value, digit = divmod(value, BASE)
        digits.append(ALPHABET[digit])
    return "".join(reversed(digits))


def decode_id(text: str, bits: int = U64_BITS) -> int:
    """
    Parse a base-36 string (case-insensitive) into an unsigned integer of ``bits`` width.
    Overflow is checked at every multiply and add step.
    """
    if not text:
        raise TicketError(ErrorCode.INVALID_PARAMETER, "empty ticket id")

    result = 0
    for character in text:
        digit = _DIGIT_VALUES.get(character)
        if digit is None:
            raise TicketError(
                ErrorCode.INVALID_PARAMETER, f"invalid base-36 character {character!r} in {text!r}"
            )
        result = checked_mul(result, BASE, bits)
        result = checked_add(result, digit, bits)
    return result
