from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from jsonschema import Draft202012Validator

from ticketdb.errors import ErrorCode, TicketError


_SCHEMA_PATH = Path(__file__).resolve().parent / "table_schema.json"


def load_table_schema() -> Dict[str, Any]:
    return json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))


def validate_table_document(document: Any) -> None:
    validator = Draft202012Validator(load_table_schema())
    errors = sorted(validator.iter_errors(document), key=lambda e: e.json_path)
    if errors:
        joined = "; ".join(f"{e.json_path}: {e.message}" for e in errors)
        raise TicketError(ErrorCode.INVALID_YAML, f"table document validation failed: {joined}")
