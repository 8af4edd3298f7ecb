from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, List

from cli.listing import class_rosters
from ticketdb.base36 import encode_id
from ticketdb.table import Table


def md_table(rows: List[List[Any]], headers: List[str]) -> str:
    out = ["| " + " | ".join(headers) + " |", "|" + "|".join(["---"] * len(headers)) + "|"]
    for row in rows:
        out.append("| " + " | ".join(str(x) for x in row) + " |")
    return "\n".join(out) + "\n"


def roster_markdown(table: Table) -> str:
    """One section per class with the ticket IDs to hand out, then a totals table."""
    rosters = class_rosters(table)
    parts = [f"# {table.name}\n"]

    for roster in rosters:
        rows = []
        for full_name, ticket_id in roster.tickets:
            entry = table.get_entry(ticket_id)
            scanned = entry.metadata.last_scan_date or "never"
            rows.append([encode_id(ticket_id), full_name, entry.metadata.scan_count, scanned])
        parts.append(f"## Class {roster.label}\n")
        parts.append(md_table(rows, ["Ticket", "Name", "Scans", "Last scan"]))

    totals = [[roster.label, len(roster.tickets)] for roster in rosters]
    totals.append(["Total", table.entry_count()])
    parts.append("## Totals\n")
    parts.append(md_table(totals, ["Class", "Tickets"]))
    return "\n".join(parts)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--table", required=True)
    parser.add_argument("--out", default="results/roster.md")
    args = parser.parse_args()

    table = Table.create_from_file(args.table)
    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(roster_markdown(table), encoding="utf-8")
    print(f"Wrote:\n- {out}")


if __name__ == "__main__":
    main()
