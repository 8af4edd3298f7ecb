from __future__ import annotations

import re

from ticketdb.errors import ErrorCode, TicketError
from ticketdb.models import Entry

GRADE_LOW = 9
GRADE_HIGH = 12
GRADE_ID_LOW = "A"
GRADE_ID_HIGH = "F"

SEPARATORS = (" ", "-")

_NAME_CHARS = re.compile(r"[A-Za-z \-]*")


def is_valid_grade(grade: int) -> bool:
    return GRADE_LOW <= grade <= GRADE_HIGH


def is_valid_grade_id(grade_id: str) -> bool:
    return len(grade_id) == 1 and GRADE_ID_LOW <= grade_id <= GRADE_ID_HIGH


def format_name(name: str) -> str:
    """
    Canonicalize a first or last name: "  jean--paul " -> "Jean-Paul".
    Letters following a separator (or the start) are capitalized, runs of
    separators collapse to their first character, and separators at either
    end are dropped.
    """
    if _NAME_CHARS.fullmatch(name) is None:
        raise TicketError(ErrorCode.INVALID_STRING, f"name {name!r} may only contain letters, spaces and hyphens")

    formatted = []
    after_separator = True
    for character in name.lower():
        if character in SEPARATORS:
            if not after_separator:
                formatted.append(character)
            after_separator = True
            continue
        formatted.append(character.upper() if after_separator else character)
        after_separator = False

    if formatted and formatted[-1] in SEPARATORS:
        formatted.pop()
    return "".join(formatted)


def format_entry(entry: Entry) -> Entry:
    """Return a validated, canonical copy of ``entry``; the argument is left untouched."""
    entry.check_corrupted()

    if not is_valid_grade(entry.grade):
        raise TicketError(
            ErrorCode.INVALID_ENTRY_FIELD, f"grade {entry.grade} is outside {GRADE_LOW}..{GRADE_HIGH}"
        )

    grade_id = entry.grade_id.upper()
    if not is_valid_grade_id(grade_id):
        raise TicketError(
            ErrorCode.INVALID_ENTRY_FIELD,
            f"grade id {entry.grade_id!r} is outside {GRADE_ID_LOW}..{GRADE_ID_HIGH}",
        )

    return entry.model_copy(
        update={
            "grade_id": grade_id,
            "first_name": format_name(entry.first_name),
            "last_name": format_name(entry.last_name),
        },
        deep=True,
    )
