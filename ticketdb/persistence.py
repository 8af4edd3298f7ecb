from __future__ import annotations

import os
import random
import tempfile
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ticketdb.base36 import decode_id, encode_id
from ticketdb.errors import ErrorCode, TicketError
from ticketdb.models import Entry, EntryMetadata
from ticketdb.schema import validate_table_document
from ticketdb.table import Table

NEVER_SCANNED = "N/A"


def load_yaml(path: str | Path) -> Any:
    p = Path(path)
    if not p.is_file():
        raise TicketError(ErrorCode.INVALID_FILEPATH, f"table file not found: {p}")
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TicketError(ErrorCode.FILE_ERROR, f"cannot read {p}: {exc}") from exc

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise TicketError(ErrorCode.INVALID_YAML, f"{p} is not valid YAML: {exc}") from exc


def entry_from_document(item: Dict[str, Any]) -> Entry:
    metadata = item["metadata"]
    last_scan_date = metadata["last_scan_date"]
    return Entry(
        first_name=item["first_name"],
        last_name=item["last_name"],
        grade=item["grade"],
        grade_id=item["grade_id"],
        metadata=EntryMetadata(
            flags=metadata["flags"],
            scan_count=metadata["scan_count"],
            last_scan_date="" if last_scan_date == NEVER_SCANNED else last_scan_date,
        ),
    )


def table_from_document(document: Any, rng: random.Random | None = None) -> Table:
    """
    Rebuild a table from a parsed document. Every entry goes through the same
    validated insertion path as a live insert, and the header count must match.
    """
    validate_table_document(document)

    info = document["info"]
    table = Table.create_new(rng=rng, name=info["name"])

    for item in document["entries"]:
        # An all-digit id left unquoted by hand loads as an int.
        ticket_id = decode_id(str(item["ticket_id"]))
        table.insert_entry_with_ticket_id(ticket_id, entry_from_document(item))

    if info["tickets"] != table.entry_count():
        raise TicketError(
            ErrorCode.CORRUPTED_TABLE,
            f"header declares {info['tickets']} tickets but {table.entry_count()} were loaded",
        )
    return table


def load_table(path: str | Path, rng: random.Random | None = None) -> Table:
    return table_from_document(load_yaml(path), rng=rng)


def table_to_document(table: Table, name: str | None = None) -> Dict[str, Any]:
    entries: List[Dict[str, Any]] = []
    for ticket_id, entry in table.entries():
        entries.append(
            {
                "ticket_id": encode_id(ticket_id),
                "first_name": entry.first_name,
                "last_name": entry.last_name,
                "grade": int(entry.grade),
                "grade_id": entry.grade_id,
                "metadata": {
                    "flags": int(entry.metadata.flags),
                    "scan_count": int(entry.metadata.scan_count),
                    "last_scan_date": entry.metadata.last_scan_date or NEVER_SCANNED,
                },
            }
        )

    return {
        "info": {"name": table.name if name is None else name, "tickets": len(entries)},
        "entries": entries,
    }


def _atomic_write_text(path: Path, content: str) -> None:
    if path.is_dir() or not path.parent.is_dir():
        raise TicketError(ErrorCode.INVALID_FILEPATH, f"cannot write table to {path}")

    try:
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    except OSError as exc:
        raise TicketError(ErrorCode.FILE_ERROR, f"cannot write {path}: {exc}") from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, str(path))
    except OSError as exc:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise TicketError(ErrorCode.FILE_ERROR, f"cannot write {path}: {exc}") from exc


def save_table(table: Table, path: str | Path, name: str | None = None) -> None:
    # The document is built in full first so a corrupted entry leaves the file untouched.
    document = table_to_document(table, name=name)
    text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True, default_flow_style=False)
    _atomic_write_text(Path(path), text)
