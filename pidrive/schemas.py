from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FileEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    size: int
    modified: datetime
    is_directory: bool = Field(alias='isDirectory')


class UploadedFile(BaseModel):
    name: str
    size: int


class UploadResponse(BaseModel):
    success: bool
    files: list[UploadedFile]


class RenameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_name: Optional[str] = Field(default=None, alias='newName')


class RenameResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    new_name: str = Field(alias='newName')


class SuccessResponse(BaseModel):
    success: bool


class DiskUsage(BaseModel):
    total: int
    used: int
    free: int


class MountStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    state: str
    mount_root: str = Field(alias='mountRoot')
    last_error: Optional[str] = Field(default=None, alias='lastError')
    usage: Optional[DiskUsage] = None
