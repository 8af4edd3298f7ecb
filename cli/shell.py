from __future__ import annotations

import argparse
import logging
import shlex
import sys
from typing import List, Optional, TextIO

from pydantic import ValidationError

from cli.audit import AuditLogger
from cli.commands import CommandRegistry, Session, build_command_registry
from cli.config import Settings, settings
from ticketdb.errors import TicketError
from ticketdb.models import IterationDecision
from ticketdb.table import Table

logger = logging.getLogger(__name__)

PROMPT = "> "

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def run_subcommand(session: Session, registry: CommandRegistry, line: str) -> IterationDecision:
    """Parse and execute one line of input. Errors are reported, never raised."""
    try:
        tokens = shlex.split(line)
    except ValueError as exc:
        session.say(f"Invalid usage: {exc}.")
        return IterationDecision.CONTINUE
    if not tokens:
        return IterationDecision.CONTINUE

    operation_code, arguments = tokens[0], tokens[1:]
    if operation_code == "help":
        for text in registry.help_lines():
            session.say(text)
        return IterationDecision.CONTINUE

    command = registry.get(operation_code)
    if command is None:
        session.say(f"No subcommand with operation code '{operation_code}'. Type 'help' for the list.")
        return IterationDecision.CONTINUE

    try:
        args = command.parse_args(arguments)
    except (ValidationError, ValueError):
        session.say(f"The subcommand '{command.name}' requires the syntax:")
        session.say(command.syntax(), indent=1)
        return IterationDecision.CONTINUE

    ticket_id = getattr(args, "ticket_id", None)
    logger.debug("running %s %s", command.name, arguments)
    try:
        decision = command.execute(session, args)
    except TicketError as exc:
        logger.warning("subcommand %s failed: %s", command.name, exc)
        session.audit.record(command.name, "failed", arguments, error_code=exc.code.value, ticket_id=ticket_id)
        session.say(f"Subcommand '{command.name}' failed: {exc.code.value} ({exc.args[0]})")
        return IterationDecision.CONTINUE

    session.audit.record(command.name, "ok", arguments, ticket_id=ticket_id)
    return decision


def run_session(session: Session, registry: CommandRegistry, stdin: TextIO, interactive: bool = False) -> None:
    while True:
        if interactive:
            session.out.write(PROMPT)
            session.out.flush()
        line = stdin.readline()
        if not line:
            break
        if run_subcommand(session, registry, line) is IterationDecision.BREAK:
            break
        session.say()


def open_table(path: str, config: Settings) -> Table:
    if path:
        table = Table.create_from_file(path)
        logger.info("loaded %d tickets from %s", table.entry_count(), path)
        return table
    logger.info("created a new memory-only table")
    return Table.create_new(name=config.table_name)


def build_parser(config: Settings) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="paper-tickets", description="Issue, scan and track paper tickets.")
    ap.add_argument("--audit-log", default=config.audit_log_path)
    ap.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=config.log_level,
    )
    ap.add_argument(
        "--autosave",
        action="store_true",
        default=config.autosave_on_scan,
        help="Save the table after every successful scan",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    db = sub.add_parser("db", help="Open a database file, or create a new memory-only database.")
    db.add_argument("path", nargs="?", default="", help="Table file to open; omit for a new table")
    sub.add_parser("help", help="Print the primary commands.")
    return ap


def main(
    argv: Optional[List[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    config: Optional[Settings] = None,
) -> int:
    config = config or settings
    parser = build_parser(config)
    args = parser.parse_args(argv)
    # choices are not applied to defaults.
    if args.log_level not in LOG_LEVELS:
        parser.error(f"invalid log level {args.log_level!r} (choose from {', '.join(LOG_LEVELS)})")
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    if args.command == "help":
        parser.print_help(file=stdout)
        return 0

    session_config = config.model_copy(update={"autosave_on_scan": args.autosave})

    try:
        table = open_table(args.path, session_config)
    except TicketError as exc:
        print(f"Primary command failed: {exc.code.value} ({exc.args[0]})", file=stdout)
        return 1

    session = Session(
        table=table,
        audit=AuditLogger(args.audit_log),
        settings=session_config,
        path=args.path,
        out=stdout,
    )
    run_session(session, build_command_registry(), stdin, interactive=stdin.isatty())
    return 0


if __name__ == "__main__":
    sys.exit(main())
