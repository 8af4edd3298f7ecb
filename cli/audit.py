from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional


class AuditLogger:
    """
    Append-only JSONL trail of every subcommand run against a ticket table.
    Scans are recorded here even when the table itself is never saved.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: Dict[str, Any]) -> None:
        event = dict(event)
        event.setdefault("ts", time.time())
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False) + "\n")

    def record(
        self,
        command: str,
        status: str,
        args: Optional[List[str]] = None,
        error_code: Optional[str] = None,
        **extra: Any,
    ) -> None:
        event: Dict[str, Any] = {
            "event": "subcommand",
            "command": command,
            "args": list(args or []),
            "status": status,
            "error_code": error_code,
        }
        event.update(extra)
        self.emit(event)

    def events(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        lines = self.path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
