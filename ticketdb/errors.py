from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    ID_INVALID = "IdInvalid"
    ID_GENERATION_FAILED = "IdGenerationFailed"
    ID_ALREADY_EXISTS = "IdAlreadyExists"
    ID_NOT_FOUND = "IdNotFound"
    ID_EXPIRED = "IdExpired"
    ID_NOT_SCANNABLE = "IdNotScannable"
    ENTRY_ALREADY_EXISTS = "EntryAlreadyExists"
    INTEGER_OVERFLOW = "IntegerOverflow"
    INVALID_PARAMETER = "InvalidParameter"
    INVALID_ENTRY_FIELD = "InvalidEntryField"
    INVALID_STRING = "InvalidString"
    INVALID_FILEPATH = "InvalidFilepath"
    FILE_ERROR = "FileError"
    CORRUPTED_TABLE = "CorruptedTable"
    CORRUPTED_TABLE_ENTRY = "CorruptedTableEntry"
    INVALID_YAML = "InvalidYAML"


class TicketError(ValueError):
    def __init__(self, code: ErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code

    def __str__(self) -> str:
        detail = super().__str__()
        if detail == self.code.value:
            return detail
        return f"{self.code.value}: {detail}"
