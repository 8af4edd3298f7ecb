from __future__ import annotations

from enum import Enum, IntFlag

from pydantic import BaseModel, ConfigDict, Field

from ticketdb.errors import ErrorCode, TicketError

INVALID_TICKET_ID = 0
INVALID_GENERATION = 0

# 5 base-36 characters.
MAX_TICKET_ID = 36**5

# Every healthy entry carries these four bytes packed big-endian.
ENTRY_TAG = int.from_bytes(b"OPTE", "big")


class EntryFlag(IntFlag):
    NONE = 0
    NOT_SCANNABLE = 1 << 0


class IterationDecision(Enum):
    BREAK = "break"
    CONTINUE = "continue"


class EntryMetadata(BaseModel):
    flags: int = 0
    scan_count: int = 0
    last_scan_date: str = ""

    @property
    def scannable(self) -> bool:
        return not (self.flags & EntryFlag.NOT_SCANNABLE)


class Entry(BaseModel):
    """
    One paper ticket. ``tag`` is written at construction; any other value
    means the record was damaged and must be reported, never repaired.
    """

    tag: int = ENTRY_TAG
    metadata: EntryMetadata = Field(default_factory=EntryMetadata)
    first_name: str
    last_name: str
    grade: int
    grade_id: str

    def is_corrupted(self) -> bool:
        return self.tag != ENTRY_TAG

    def check_corrupted(self, code: ErrorCode = ErrorCode.CORRUPTED_TABLE_ENTRY) -> None:
        if self.is_corrupted():
            raise TicketError(code, f"entry tag {self.tag:#010x} is invalid")

    @property
    def class_label(self) -> str:
        return f"{self.grade}{self.grade_id}"

    @property
    def full_name(self) -> str:
        return f"{self.last_name} {self.first_name}"

    def same_person(self, other: "Entry") -> bool:
        return (self.grade, self.grade_id, self.last_name, self.first_name) == (
            other.grade,
            other.grade_id,
            other.last_name,
            other.first_name,
        )


class GeneratedTicketID(BaseModel):
    """A freshly drawn ticket ID, usable for one insertion while ``generation`` is current."""

    model_config = ConfigDict(frozen=True)

    id: int
    generation: int
