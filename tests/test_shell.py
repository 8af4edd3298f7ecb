from __future__ import annotations

import io
import re
from pathlib import Path

import pytest

from cli.audit import AuditLogger
from cli.commands import Session, build_command_registry
from cli.config import Settings
from cli.listing import SEPARATOR, render_listing
from cli.shell import main, run_subcommand
from ticketdb.base36 import decode_id, encode_id
from ticketdb.models import Entry, IterationDecision
from ticketdb.table import Table


@pytest.fixture()
def config(tmp_path: Path) -> Settings:
    return Settings(
        table_name="Test Ball",
        audit_log_path=str(tmp_path / "audit.jsonl"),
        autosave_on_scan=False,
        autosave_path="",
        log_level="WARNING",
    )


@pytest.fixture()
def seeded(tmp_path: Path) -> Path:
    table = Table.create_new(name="Test Ball")
    table.insert_entry_with_ticket_id(decode_id("ABC"), Entry(first_name="john", last_name="doe", grade=9, grade_id="a"))
    path = tmp_path / "tickets.yaml"
    table.save_to_file(path)
    return path


def run_main(argv, script: str, config: Settings):
    out = io.StringIO()
    code = main(argv, stdin=io.StringIO(script), stdout=out, config=config)
    return code, out.getvalue()


def make_session(config: Settings, table: Table | None = None) -> Session:
    return Session(
        table=table or Table.create_new(),
        audit=AuditLogger(config.audit_log_path),
        settings=config,
        out=io.StringIO(),
    )


def test_emit_print_save_through_main(tmp_path: Path, config: Settings) -> None:
    saved = tmp_path / "out.yaml"
    code, output = run_main(["db"], f"emit Doe john 9 a\nprint\nsave {saved}\nexit\nemit Late comer 9 a\n", config)

    assert code == 0
    assert "The following ticket was emitted:" in output
    ticket_text = re.search(r"ID:\s+([0-9A-Z]+)", output).group(1)
    assert "First name: John" in output
    assert f"  {ticket_text}: Doe John" in output
    assert f"Database file successfully saved to '{saved}'." in output

    table = Table.create_from_file(saved)
    assert table.name == "Test Ball"
    assert table.ticket_ids() == [decode_id(ticket_text)]

    events = AuditLogger(config.audit_log_path).events()
    assert [e["command"] for e in events if e["event"] == "subcommand"] == ["emit", "print", "save", "exit"]
    emitted = [e for e in events if e["event"] == "ticket_emitted"]
    assert len(emitted) == 1
    assert (emitted[0]["ticket_id"], emitted[0]["class"]) == (ticket_text, "9A")
    assert all("ts" in e for e in events)


def test_scan_reports_previous_state(seeded: Path, config: Settings) -> None:
    code, output = run_main(["db", str(seeded)], f"scan ABC\ns abc\nsave {seeded}\n", config)

    assert code == 0
    assert "Ticket ID 'ABC' was never scanned before." in output
    assert "Ticket ID 'abc' was scanned 1 times." in output
    assert "  Name:           Doe John" in output
    assert Table.create_from_file(seeded).get_entry(decode_id("ABC")).metadata.scan_count == 2
    scans = [e for e in AuditLogger(config.audit_log_path).events() if e.get("command") == "scan"]
    assert [e["ticket_id"] for e in scans] == ["ABC", "abc"]


def test_unknown_ticket_is_not_valid(seeded: Path, config: Settings) -> None:
    _, output = run_main(["db", str(seeded)], "scan ZZZ\nremove ZZZ\nlock ZZZ\n", config)
    assert output.count("Ticket ID 'ZZZ' is not valid.") == 3


def test_failed_subcommand_is_reported_and_audited(seeded: Path, config: Settings) -> None:
    code, output = run_main(["db", str(seeded)], "scan !!\nemit Doe John 9 A\nprint\n", config)

    assert code == 0
    assert "Subcommand 'scan' failed: InvalidParameter (" in output
    assert "Subcommand 'emit' failed: EntryAlreadyExists (" in output
    assert "Total tickets count: 1" in output

    statuses = [
        (e["command"], e["status"], e["error_code"])
        for e in AuditLogger(config.audit_log_path).events()
        if e["event"] == "subcommand"
    ]
    assert statuses == [
        ("scan", "failed", "InvalidParameter"),
        ("emit", "failed", "EntryAlreadyExists"),
        ("print", "ok", None),
    ]


def test_lock_blocks_scanning_until_unlocked(seeded: Path, config: Settings) -> None:
    _, output = run_main(["db", str(seeded)], "lock ABC\nscan ABC\nunlock ABC\nscan ABC\n", config)

    assert "Ticket ID 'ABC' is now not scannable." in output
    assert "Subcommand 'scan' failed: IdNotScannable (" in output
    assert "Ticket ID 'ABC' is now scannable." in output
    assert "Ticket ID 'ABC' was never scanned before." in output


def test_autosave_after_scan(seeded: Path, config: Settings) -> None:
    run_main(["--autosave", "db", str(seeded)], "scan ABC\n", config)
    assert Table.create_from_file(seeded).get_entry(decode_id("ABC")).metadata.scan_count == 1


def test_failed_autosave_keeps_scan_ok(tmp_path: Path, seeded: Path, config: Settings) -> None:
    broken = str(tmp_path / "missing" / "t.yaml")
    config = config.model_copy(update={"autosave_path": broken})

    code, output = run_main(["--autosave", "db", str(seeded)], "scan ABC\nscan ABC\n", config)

    assert code == 0
    assert f"Warning: autosave to '{broken}' failed: InvalidFilepath (" in output
    assert "Ticket ID 'ABC' was scanned 1 times." in output
    assert "Subcommand 'scan' failed" not in output

    events = AuditLogger(config.audit_log_path).events()
    scans = [(e["status"], e["error_code"]) for e in events if e.get("command") == "scan"]
    assert scans == [("ok", None), ("ok", None)]
    failures = [e for e in events if e["event"] == "autosave_failed"]
    assert [(e["ticket_id"], e["path"], e["error_code"]) for e in failures] == [
        ("ABC", broken, "InvalidFilepath"),
        ("ABC", broken, "InvalidFilepath"),
    ]
    assert Table.create_from_file(seeded).get_entry(decode_id("ABC")).metadata.scan_count == 0


def test_log_level_is_case_insensitive(config: Settings) -> None:
    code, _ = run_main(["--log-level", "debug", "help"], "", config)
    assert code == 0


def test_invalid_log_level_is_a_usage_error(config: Settings) -> None:
    with pytest.raises(SystemExit) as exc:
        run_main(["--log-level", "LOUD", "help"], "", config)
    assert exc.value.code == 2

    with pytest.raises(SystemExit) as exc:
        run_main(["help"], "", config.model_copy(update={"log_level": "LOUD"}))
    assert exc.value.code == 2


def test_without_autosave_scans_stay_in_memory(seeded: Path, config: Settings) -> None:
    run_main(["db", str(seeded)], "scan ABC\n", config)
    assert Table.create_from_file(seeded).get_entry(decode_id("ABC")).metadata.scan_count == 0


def test_missing_table_file_fails_primary_command(tmp_path: Path, config: Settings) -> None:
    code, output = run_main(["db", str(tmp_path / "missing.yaml")], "", config)
    assert code == 1
    assert output.startswith("Primary command failed: InvalidFilepath (")


def test_help_primary_command(config: Settings) -> None:
    code, output = run_main(["help"], "", config)
    assert code == 0
    assert "db" in output


def test_argument_errors_print_syntax(config: Settings) -> None:
    session = make_session(config)
    registry = build_command_registry()

    run_subcommand(session, registry, "emit Doe")
    run_subcommand(session, registry, "emit Doe John nine A")
    output = session.out.getvalue()

    assert output.count("The subcommand 'emit' requires the syntax:") == 2
    assert "  [String last_name], [String first_name], [Integer grade], [String grade_id]" in output
    assert session.table.entry_count() == 0


def test_unknown_operation_and_blank_lines(config: Settings) -> None:
    session = make_session(config)
    registry = build_command_registry()

    assert run_subcommand(session, registry, "   ") is IterationDecision.CONTINUE
    assert run_subcommand(session, registry, "fly away") is IterationDecision.CONTINUE
    assert "No subcommand with operation code 'fly'." in session.out.getvalue()
    assert run_subcommand(session, registry, "quit") is IterationDecision.BREAK


def test_quoted_names_and_find(config: Settings) -> None:
    session = make_session(config)
    registry = build_command_registry()

    run_subcommand(session, registry, 'e "van der berg" anna 11 c')
    run_subcommand(session, registry, 'find Anna "Van Der Berg"')
    run_subcommand(session, registry, "find Nobody Here")

    ticket_id = session.table.ticket_ids()[0]
    lines = session.out.getvalue().splitlines()
    assert encode_id(ticket_id) in lines
    assert "No ticket found for Here Nobody." in lines


def test_change_prints_field_diff(config: Settings) -> None:
    table = Table.create_new()
    table.insert_entry_with_ticket_id(100, Entry(first_name="john", last_name="doe", grade=9, grade_id="a"))
    session = make_session(config, table)

    run_subcommand(session, build_command_registry(), f"change {encode_id(100)} Doe jonathan 10 b")
    lines = session.out.getvalue().splitlines()

    assert lines == ["First name: John -> Jonathan", "Grade:      9 -> 10", "Grade ID:   A -> B"]


def test_remove_prints_removed_entry(config: Settings) -> None:
    table = Table.create_new()
    table.insert_entry_with_ticket_id(100, Entry(first_name="john", last_name="doe", grade=9, grade_id="a"))
    session = make_session(config, table)

    run_subcommand(session, build_command_registry(), f"rem {encode_id(100)}")

    assert "The following entry was removed:" in session.out.getvalue()
    assert table.entry_count() == 0


def test_grade_id_must_be_one_letter(config: Settings) -> None:
    session = make_session(config)
    run_subcommand(session, build_command_registry(), "emit Doe John 9 AB")
    assert "Subcommand 'emit' failed: InvalidParameter (" in session.out.getvalue()


def test_help_lists_every_command(config: Settings) -> None:
    session = make_session(config)
    registry = build_command_registry()
    run_subcommand(session, registry, "help")

    output = session.out.getvalue()
    for command in registry.all():
        assert f"* {command.name}:" in output
    assert "'e'" in output and "'quit'" in output


def test_render_listing_groups_by_class() -> None:
    table = Table.create_new()
    table.insert_entry_with_ticket_id(1, Entry(first_name="john", last_name="doe", grade=9, grade_id="a"))
    table.insert_entry_with_ticket_id(2, Entry(first_name="anna", last_name="smith", grade=12, grade_id="b"))
    table.insert_entry_with_ticket_id(3, Entry(first_name="zed", last_name="alpha", grade=9, grade_id="a"))

    assert render_listing(table) == [
        "Class 9A (2 tickets):",
        "  3: Alpha Zed",
        "  1: Doe John",
        "",
        "Class 12B (1 tickets):",
        "  2: Smith Anna",
        "",
        "Total tickets count: 3",
        SEPARATOR,
        "9A:  2",
        SEPARATOR,
        SEPARATOR,
        SEPARATOR,
        "12B: 1",
    ]
