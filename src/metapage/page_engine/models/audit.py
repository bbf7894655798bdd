from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, List, Optional

from pydantic import BaseModel, Field


class DbLogEntry(BaseModel):
    """One successful server mutation or read, kept for developer inspection."""

    log_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    prj_id: str
    form_id: Optional[int] = None
    action: str = Field(..., description="getData | execProc | dsPost")
    sql_id: Optional[int] = None
    data_adapter: Optional[str] = None
    data_set_action: Optional[str] = None
    data_set_name: Optional[str] = None
    params: Any = None
    conn_code: Optional[str] = None


class DbLog:
    """Append-only, capped, in memory only."""

    def __init__(self, max_entries: int = 1000):
        self._entries: Deque[DbLogEntry] = deque(maxlen=max_entries)

    def append(self, entry: DbLogEntry) -> None:
        self._entries.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self, prj_id: Optional[str] = None) -> List[DbLogEntry]:
        if prj_id is None:
            return list(self._entries)
        return [e for e in self._entries if e.prj_id == prj_id]

    def clear(self) -> None:
        self._entries.clear()
