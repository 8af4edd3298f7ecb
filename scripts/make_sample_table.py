from __future__ import annotations

import argparse
import random

from ticketdb.errors import ErrorCode, TicketError
from ticketdb.models import Entry
from ticketdb.table import DEFAULT_TABLE_NAME, Table

FIRST_NAMES = ["Ana", "Mihai", "Ioana", "Andrei", "Maria", "Jean-Paul", "Elena", "Radu", "Sofia", "Matei"]
LAST_NAMES = ["Popescu", "Ionescu", "Dumitru", "Stan", "Gheorghe", "Matei", "Constantin", "Marin"]


def build_sample_table(count: int, seed: int, name: str = DEFAULT_TABLE_NAME) -> Table:
    rng = random.Random(seed)
    table = Table.create_new(rng=rng, name=name)
    while table.entry_count() < count:
        entry = Entry(
            first_name=rng.choice(FIRST_NAMES),
            last_name=rng.choice(LAST_NAMES),
            grade=rng.randint(9, 12),
            grade_id=rng.choice("ABCDEF"),
        )
        try:
            table.insert_entry(entry)
        except TicketError as exc:
            if exc.code != ErrorCode.ENTRY_ALREADY_EXISTS:
                raise
    return table


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--count", type=int, default=20)
    ap.add_argument("--seed", type=int, default=1, help="Random seed for names and ticket IDs")
    ap.add_argument("--name", default=DEFAULT_TABLE_NAME)
    ap.add_argument("--out", required=True)
    args = ap.parse_args()

    max_people = len(FIRST_NAMES) * len(LAST_NAMES) * 4 * 6
    if not 0 <= args.count <= max_people:
        raise SystemExit(f"--count must be between 0 and {max_people}")

    table = build_sample_table(args.count, args.seed, name=args.name)
    table.save_to_file(args.out)
    print(f"Wrote {table.entry_count()} tickets to {args.out}")


if __name__ == "__main__":
    main()
