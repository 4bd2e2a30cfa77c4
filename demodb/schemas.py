from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class TriggerFetchResponse(BaseModel):
    fetch_id: str


class FetchResponse(BaseModel):
    status: str
    init_sql: str
    size_bytes: int


class FetchRunResponse(BaseModel):
    fetch_id: str
    status: str
    created_at: datetime
    completed_at: datetime | None = None
    file_path: str | None = None
    size_bytes: int | None = None
    error_message: str | None = None
