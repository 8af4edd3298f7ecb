from __future__ import annotations

import bisect
import random
import secrets
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from ticketdb.checked import U32_BITS, U64_BITS, checked_increment, checked_truncate
from ticketdb.errors import ErrorCode, TicketError
from ticketdb.models import (
    INVALID_GENERATION,
    INVALID_TICKET_ID,
    MAX_TICKET_ID,
    Entry,
    EntryFlag,
    GeneratedTicketID,
    IterationDecision,
)
from ticketdb.validators import format_entry

DEFAULT_TABLE_NAME = "CNGC-BB-2024"

GENERATION_ATTEMPTS = 512

EntryCallback = Callable[[int, Entry], Optional[IterationDecision]]


def scan_timestamp(now: datetime) -> str:
    return f"{now.day}/{now.month}/{now.year}-{now.hour}:{now.minute}:{now.second}"


class Table:
    """
    In-memory ticket table keyed by ticket ID and iterated in ascending ID order.

    ``generation`` is bumped by every generate, insert and replace. A
    GeneratedTicketID is only accepted while the generation it carries is
    still current, so a drawn ID must be used by the very next mutation.

    Entries handed out by ``get_entry`` and the iteration helpers are
    snapshots: mutating them never reaches the table, and they go stale as
    soon as the table is mutated again.
    """

    def __init__(self, rng: random.Random | None = None, name: str = DEFAULT_TABLE_NAME):
        self.name = name
        self._entries: Dict[int, Entry] = {}
        self._order: List[int] = []
        self._generation = INVALID_GENERATION
        self._rng = rng if rng is not None else secrets.SystemRandom()

    @classmethod
    def create_new(cls, rng: random.Random | None = None, name: str = DEFAULT_TABLE_NAME) -> "Table":
        table = cls(rng=rng, name=name)
        table._generation = 1
        return table

    @classmethod
    def create_from_file(cls, path: str | Path, rng: random.Random | None = None) -> "Table":
        from ticketdb.persistence import load_table

        return load_table(path, rng=rng)

    def save_to_file(self, path: str | Path, name: str | None = None) -> None:
        from ticketdb.persistence import save_table

        save_table(self, path, name=name)

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._entries)

    def entry_count(self) -> int:
        return len(self._entries)

    def ticket_ids(self) -> List[int]:
        return list(self._order)

    def is_ticket_id_valid(self, ticket_id: int) -> bool:
        return ticket_id in self._entries

    # -------- ticket ID generation --------

    def generate_ticket_id(self) -> GeneratedTicketID:
        for _ in range(GENERATION_ATTEMPTS):
            ticket_id = self._rng.randint(1, MAX_TICKET_ID)
            if ticket_id not in self._entries:
                break
        else:
            raise TicketError(
                ErrorCode.ID_GENERATION_FAILED,
                f"no free ticket id after {GENERATION_ATTEMPTS} attempts ({len(self)} in use)",
            )

        self._bump_generation()
        return GeneratedTicketID(id=ticket_id, generation=self._generation)

    def has_expired(self, generated: GeneratedTicketID) -> bool:
        if generated.id == INVALID_TICKET_ID:
            raise TicketError(ErrorCode.ID_INVALID, "generated ticket id is the reserved invalid id")
        return generated.generation != self._generation

    def _bump_generation(self) -> None:
        self._generation = checked_increment(self._generation, U64_BITS)

    # -------- insertion --------

    def insert_entry_with_ticket_id(self, ticket_id: int | GeneratedTicketID, entry: Entry) -> None:
        if isinstance(ticket_id, GeneratedTicketID):
            if self.has_expired(ticket_id):
                raise TicketError(
                    ErrorCode.ID_EXPIRED,
                    f"ticket id generated at generation {ticket_id.generation}, table is at {self._generation}",
                )
            ticket_id = ticket_id.id

        entry.check_corrupted()
        if not INVALID_TICKET_ID < ticket_id <= MAX_TICKET_ID:
            raise TicketError(ErrorCode.ID_INVALID, f"ticket id {ticket_id} is outside 1..{MAX_TICKET_ID}")
        if ticket_id in self._entries:
            raise TicketError(ErrorCode.ID_ALREADY_EXISTS, f"ticket id {ticket_id} is already taken")

        formatted = format_entry(entry)
        if self._find_duplicate(formatted) is not None:
            raise TicketError(
                ErrorCode.ENTRY_ALREADY_EXISTS,
                f"{formatted.full_name} ({formatted.class_label}) already holds a ticket",
            )

        self._bump_generation()
        self._entries[ticket_id] = formatted
        bisect.insort(self._order, ticket_id)

    def insert_entry(self, entry: Entry) -> int:
        generated = self.generate_ticket_id()
        self.insert_entry_with_ticket_id(generated, entry)
        return generated.id

    def replace_entry(self, ticket_id: int, entry: Entry) -> None:
        """Overwrite the personal fields of a ticket. Scan metadata stays with the ticket."""
        stored = self._stored_entry(ticket_id)
        formatted = format_entry(entry)

        duplicate_id = self._find_duplicate(formatted)
        if duplicate_id is not None and duplicate_id != ticket_id:
            raise TicketError(
                ErrorCode.ENTRY_ALREADY_EXISTS,
                f"{formatted.full_name} ({formatted.class_label}) already holds a ticket",
            )

        self._bump_generation()
        self._entries[ticket_id] = formatted.model_copy(update={"metadata": stored.metadata})

    # -------- duplicate detection --------

    def is_duplicate(self, candidate: Entry) -> bool:
        return self._find_duplicate(format_entry(candidate)) is not None

    def _find_duplicate(self, formatted: Entry) -> int | None:
        for ticket_id in self._order:
            existing = self._entries[ticket_id]
            existing.check_corrupted(ErrorCode.CORRUPTED_TABLE)
            if existing.same_person(formatted):
                return ticket_id
        return None

    # -------- lookup and removal --------

    def _stored_entry(self, ticket_id: int) -> Entry:
        entry = self._entries.get(ticket_id)
        if entry is None:
            raise TicketError(ErrorCode.ID_NOT_FOUND, f"ticket id {ticket_id} not found")
        entry.check_corrupted()
        return entry

    def get_entry(self, ticket_id: int) -> Entry:
        return self._stored_entry(ticket_id).model_copy(deep=True)

    def remove_ticket(self, ticket_id: int) -> None:
        self._stored_entry(ticket_id)
        del self._entries[ticket_id]
        del self._order[bisect.bisect_left(self._order, ticket_id)]

    def entries(self) -> Iterator[Tuple[int, Entry]]:
        for ticket_id in tuple(self._order):
            entry = self._entries.get(ticket_id)
            if entry is None:
                continue
            entry.check_corrupted(ErrorCode.CORRUPTED_TABLE)
            yield ticket_id, entry.model_copy(deep=True)

    def iterate_over_entries(self, callback: EntryCallback) -> None:
        for ticket_id, entry in self.entries():
            if callback(ticket_id, entry) is IterationDecision.BREAK:
                break

    def find_ticket_id_by_name(self, first_name: str, last_name: str) -> List[int]:
        return [
            ticket_id
            for ticket_id, entry in self.entries()
            if entry.first_name == first_name and entry.last_name == last_name
        ]

    # -------- scanning --------

    def increment_ticket_scan_count(self, ticket_id: int) -> None:
        metadata = self._stored_entry(ticket_id).metadata
        if not metadata.scannable:
            raise TicketError(ErrorCode.ID_NOT_SCANNABLE, f"ticket id {ticket_id} is marked not scannable")

        scan_count = checked_increment(metadata.scan_count, U32_BITS)
        metadata.last_scan_date = scan_timestamp(datetime.now())
        metadata.scan_count = scan_count

    def set_entry_flags(self, ticket_id: int, flags: int) -> None:
        metadata = self._stored_entry(ticket_id).metadata
        metadata.flags = checked_truncate(int(flags), U32_BITS)

    def set_scannable(self, ticket_id: int, scannable: bool) -> None:
        flags = self._stored_entry(ticket_id).metadata.flags
        if scannable:
            flags &= ~int(EntryFlag.NOT_SCANNABLE)
        else:
            flags |= int(EntryFlag.NOT_SCANNABLE)
        self.set_entry_flags(ticket_id, flags)
