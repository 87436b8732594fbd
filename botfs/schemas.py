from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class FSEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    path: str
    is_dir: bool
    size: int
    mode: int
    mod_time: datetime


class FSListResponse(BaseModel):
    path: str
    entries: list[FSEntry]


class FSReadResponse(BaseModel):
    path: str
    content: str
    size: int
    mode: int
    mod_time: datetime


class FSStatResponse(FSEntry):
    pass


class FSUsageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    path: str
    total_bytes: int
    file_count: int
    dir_count: int


class FSWriteRequest(BaseModel):
    path: str
    content: str = ''
    overwrite: Optional[bool] = None


class FSMkdirRequest(BaseModel):
    path: str
    parents: Optional[bool] = None


class ApiResponse(BaseModel):
    ok: bool
    message: str
    data: Optional[Any] = None
