from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ticketdb.base36 import encode_id
from ticketdb.table import Table
from ticketdb.validators import GRADE_HIGH, GRADE_LOW

SEPARATOR = "-" * 16


@dataclass
class ClassRoster:
    grade: int
    grade_id: str
    tickets: List[Tuple[str, int]] = field(default_factory=list)  # (full name, ticket id)

    @property
    def label(self) -> str:
        return f"{self.grade}{self.grade_id}"


def class_rosters(table: Table) -> List[ClassRoster]:
    """Group tickets per class, classes ordered by grade then letter, names alphabetically."""
    rosters: Dict[Tuple[int, str], ClassRoster] = {}
    for ticket_id, entry in table.entries():
        key = (entry.grade, entry.grade_id)
        roster = rosters.setdefault(key, ClassRoster(grade=entry.grade, grade_id=entry.grade_id))
        roster.tickets.append((entry.full_name, ticket_id))

    ordered = [rosters[key] for key in sorted(rosters)]
    for roster in ordered:
        roster.tickets.sort()
    return ordered


def render_listing(table: Table) -> List[str]:
    rosters = class_rosters(table)
    lines: List[str] = []

    for roster in rosters:
        lines.append(f"Class {roster.label} ({len(roster.tickets)} tickets):")
        for full_name, ticket_id in roster.tickets:
            lines.append(f"  {encode_id(ticket_id)}: {full_name}")
        lines.append("")

    lines.append(f"Total tickets count: {table.entry_count()}")
    lines.append(SEPARATOR)

    by_grade: Dict[int, List[ClassRoster]] = {}
    for roster in rosters:
        by_grade.setdefault(roster.grade, []).append(roster)

    for grade in range(GRADE_LOW, GRADE_HIGH + 1):
        for roster in by_grade.get(grade, []):
            padding = " " if grade < 10 else ""
            lines.append(f"{roster.label}:{padding} {len(roster.tickets)}")
        if grade != GRADE_HIGH:
            lines.append(SEPARATOR)

    return lines
