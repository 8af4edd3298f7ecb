from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TextIO, Tuple

from pydantic import BaseModel

from cli.audit import AuditLogger
from cli.config import Settings
from cli.listing import render_listing
from ticketdb.base36 import decode_id, encode_id
from ticketdb.checked import U8_BITS, checked_truncate
from ticketdb.errors import ErrorCode, TicketError
from ticketdb.models import Entry, IterationDecision
from ticketdb.table import Table

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """State shared by the subcommands of one interactive run."""

    table: Table
    audit: AuditLogger
    settings: Settings
    path: str = ""
    out: TextIO = field(default_factory=lambda: sys.stdout)

    def say(self, line: str = "", indent: int = 0) -> None:
        print(" " * (2 * indent) + line, file=self.out)

    def autosave_path(self) -> str:
        return self.settings.autosave_path or self.path


class SaveArgs(BaseModel):
    save_filepath: str


class TicketIdArgs(BaseModel):
    ticket_id: str


class EmitArgs(BaseModel):
    last_name: str
    first_name: str
    grade: int
    grade_id: str


class ChangeArgs(BaseModel):
    ticket_id: str
    last_name: str
    first_name: str
    grade: int
    grade_id: str


class FindArgs(BaseModel):
    first_name: str
    last_name: str


class NoArgs(BaseModel):
    pass


CommandExecute = Callable[[Session, BaseModel], IterationDecision]


@dataclass
class CommandDef:
    name: str
    aliases: Tuple[str, ...]
    args_model: type[BaseModel]
    execute: CommandExecute
    help: str

    def syntax(self) -> str:
        fields = self.args_model.model_fields
        if not fields:
            return "(void)"
        parts = []
        for name, info in fields.items():
            kind = "Integer" if info.annotation is int else "String"
            parts.append(f"[{kind} {name}]")
        return ", ".join(parts)

    def parse_args(self, tokens: List[str]) -> BaseModel:
        names = list(self.args_model.model_fields)
        if len(names) != len(tokens):
            raise ValueError(f"expected {len(names)} arguments, got {len(tokens)}")
        return self.args_model(**dict(zip(names, tokens)))


def build_entry(last_name: str, first_name: str, grade: int, grade_id: str) -> Entry:
    if len(grade_id) != 1:
        raise TicketError(ErrorCode.INVALID_PARAMETER, f"grade id {grade_id!r} must be a single letter")
    return Entry(
        first_name=first_name,
        last_name=last_name,
        grade=checked_truncate(grade, U8_BITS),
        grade_id=grade_id,
    )


def _lookup(session: Session, ticket_id_text: str) -> Optional[Tuple[int, Entry]]:
    ticket_id = decode_id(ticket_id_text)
    try:
        return ticket_id, session.table.get_entry(ticket_id)
    except TicketError as exc:
        if exc.code != ErrorCode.ID_NOT_FOUND:
            raise
    session.say(f"Ticket ID '{ticket_id_text}' is not valid.")
    return None


def _exec_save(session: Session, args: SaveArgs) -> IterationDecision:
    session.table.save_to_file(args.save_filepath)
    session.path = session.path or args.save_filepath
    logger.info("saved %d tickets to %s", session.table.entry_count(), args.save_filepath)
    session.say(f"Database file successfully saved to '{args.save_filepath}'.")
    return IterationDecision.CONTINUE


def _exec_emit(session: Session, args: EmitArgs) -> IterationDecision:
    entry = build_entry(args.last_name, args.first_name, args.grade, args.grade_id)
    ticket_id = session.table.insert_entry(entry)
    inserted = session.table.get_entry(ticket_id)
    session.audit.emit({"event": "ticket_emitted", "ticket_id": encode_id(ticket_id), "class": inserted.class_label})

    session.say("The following ticket was emitted:")
    session.say(f"ID:         {encode_id(ticket_id)}", indent=1)
    session.say(f"First name: {inserted.first_name}", indent=1)
    session.say(f"Last name:  {inserted.last_name}", indent=1)
    session.say(f"Grade:      {inserted.class_label}", indent=1)
    return IterationDecision.CONTINUE


def _exec_remove(session: Session, args: TicketIdArgs) -> IterationDecision:
    found = _lookup(session, args.ticket_id)
    if found is None:
        return IterationDecision.CONTINUE
    ticket_id, removed = found
    session.table.remove_ticket(ticket_id)

    session.say("The following entry was removed:")
    session.say(f"First name: {removed.first_name}", indent=1)
    session.say(f"Last name:  {removed.last_name}", indent=1)
    session.say(f"Grade:      {removed.class_label}", indent=1)
    return IterationDecision.CONTINUE


def _exec_scan(session: Session, args: TicketIdArgs) -> IterationDecision:
    found = _lookup(session, args.ticket_id)
    if found is None:
        return IterationDecision.CONTINUE
    ticket_id, entry = found

    if entry.metadata.scan_count == 0:
        session.say(f"Ticket ID '{args.ticket_id}' was never scanned before.")
        session.say(f"Name:  {entry.full_name}", indent=1)
        session.say(f"Grade: {entry.class_label}", indent=1)
    else:
        session.say(f"Ticket ID '{args.ticket_id}' was scanned {entry.metadata.scan_count} times.")
        session.say(f"Name:           {entry.full_name}", indent=1)
        session.say(f"Grade:          {entry.class_label}", indent=1)
        session.say(f"Last scan date: {entry.metadata.last_scan_date}", indent=1)

    session.table.increment_ticket_scan_count(ticket_id)

    if session.settings.autosave_on_scan and session.autosave_path():
        _autosave(session, args.ticket_id)
    return IterationDecision.CONTINUE


def _autosave(session: Session, ticket_id_text: str) -> None:
    """The scan is already counted; a failed save is reported without failing it."""
    path = session.autosave_path()
    try:
        session.table.save_to_file(path)
    except TicketError as exc:
        logger.warning("autosave to %s failed: %s", path, exc)
        session.audit.emit(
            {
                "event": "autosave_failed",
                "ticket_id": ticket_id_text,
                "path": path,
                "error_code": exc.code.value,
            }
        )
        session.say(f"Warning: autosave to '{path}' failed: {exc.code.value} ({exc.args[0]})")
        return
    logger.debug("autosaved table to %s after scan", path)


def _exec_change(session: Session, args: ChangeArgs) -> IterationDecision:
    ticket_id = decode_id(args.ticket_id)
    current = session.table.get_entry(ticket_id)
    session.table.replace_entry(
        ticket_id, build_entry(args.last_name, args.first_name, args.grade, args.grade_id)
    )
    updated = session.table.get_entry(ticket_id)

    if current.first_name != updated.first_name:
        session.say(f"First name: {current.first_name} -> {updated.first_name}")
    if current.last_name != updated.last_name:
        session.say(f"Last name:  {current.last_name} -> {updated.last_name}")
    if current.grade != updated.grade:
        session.say(f"Grade:      {current.grade} -> {updated.grade}")
    if current.grade_id != updated.grade_id:
        session.say(f"Grade ID:   {current.grade_id} -> {updated.grade_id}")
    return IterationDecision.CONTINUE


def _set_scannable(session: Session, ticket_id_text: str, scannable: bool) -> IterationDecision:
    found = _lookup(session, ticket_id_text)
    if found is None:
        return IterationDecision.CONTINUE
    session.table.set_scannable(found[0], scannable)
    state = "scannable" if scannable else "not scannable"
    session.say(f"Ticket ID '{ticket_id_text}' is now {state}.")
    return IterationDecision.CONTINUE


def _exec_lock(session: Session, args: TicketIdArgs) -> IterationDecision:
    return _set_scannable(session, args.ticket_id, False)


def _exec_unlock(session: Session, args: TicketIdArgs) -> IterationDecision:
    return _set_scannable(session, args.ticket_id, True)


def _exec_find(session: Session, args: FindArgs) -> IterationDecision:
    ticket_ids = session.table.find_ticket_id_by_name(args.first_name, args.last_name)
    if not ticket_ids:
        session.say(f"No ticket found for {args.last_name} {args.first_name}.")
        return IterationDecision.CONTINUE
    for ticket_id in ticket_ids:
        session.say(encode_id(ticket_id))
    return IterationDecision.CONTINUE


def _exec_print(session: Session, _args: NoArgs) -> IterationDecision:
    for line in render_listing(session.table):
        session.say(line)
    return IterationDecision.CONTINUE


def _exec_exit(_session: Session, _args: NoArgs) -> IterationDecision:
    return IterationDecision.BREAK


class CommandRegistry:
    def __init__(self, commands: List[CommandDef]):
        self._commands: Dict[str, CommandDef] = {}
        self._by_alias: Dict[str, CommandDef] = {}
        for command in commands:
            if command.name in self._commands:
                raise ValueError(f"duplicate command: {command.name}")
            self._commands[command.name] = command
            for alias in (command.name, *command.aliases):
                if alias in self._by_alias:
                    raise ValueError(f"alias {alias!r} is used by two commands")
                self._by_alias[alias] = command

    def get(self, operation_code: str) -> Optional[CommandDef]:
        return self._by_alias.get(operation_code)

    def all(self) -> List[CommandDef]:
        return list(self._commands.values())

    def help_lines(self) -> List[str]:
        lines = ["The following subcommands are available:"]
        for command in self.all():
            lines.append(f"  * {command.name}: {command.help}")
            lines.append(f"      Syntax:   {command.syntax()}")
            codes = ", ".join(f"'{code}'" for code in (command.name, *command.aliases))
            lines.append(f"      Op codes: {codes}")
        return lines


def build_command_registry() -> CommandRegistry:
    return CommandRegistry(
        [
            CommandDef("save", (), SaveArgs, _exec_save, "Saves the current database to a file."),
            CommandDef("emit", ("e",), EmitArgs, _exec_emit, "Emits a new ticket, by generating a new ticket ID."),
            CommandDef("remove", ("rem",), TicketIdArgs, _exec_remove, "Removes a ticket ID from the database."),
            CommandDef("scan", ("s",), TicketIdArgs, _exec_scan, "Scans a ticket ID."),
            CommandDef(
                "change",
                (),
                ChangeArgs,
                _exec_change,
                "Changes the details of the entry associated with the given ticket id.",
            ),
            CommandDef("lock", (), TicketIdArgs, _exec_lock, "Marks a ticket as not scannable."),
            CommandDef("unlock", (), TicketIdArgs, _exec_unlock, "Makes a locked ticket scannable again."),
            CommandDef("find", (), FindArgs, _exec_find, "Lists the ticket IDs issued to a first and last name."),
            CommandDef("print", (), NoArgs, _exec_print, "Prints all tickets to the console."),
            CommandDef("exit", ("quit",), NoArgs, _exec_exit, "Leaves the interactive session."),
        ]
    )
