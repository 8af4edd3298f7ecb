from __future__ import annotations

from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()


class Settings(BaseModel):
    table_name: str = os.getenv("TICKETS_TABLE_NAME", "CNGC-BB-2024")
    audit_log_path: str = os.getenv("TICKETS_AUDIT_LOG_PATH", "results/audit.jsonl")
    autosave_on_scan: bool = os.getenv("TICKETS_AUTOSAVE_ON_SCAN", "false").lower() == "true"
    autosave_path: str = os.getenv("TICKETS_AUTOSAVE_PATH", "")
    log_level: str = os.getenv("TICKETS_LOG_LEVEL", "WARNING").upper()


settings = Settings()
