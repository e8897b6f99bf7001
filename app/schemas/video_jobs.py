from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator


class VideoJobCreate(BaseModel):
    source_url: str
    filename: str | None = None
    content_type: str | None = None
    duration: float | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("source_url")
    @classmethod
    def source_url_http(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("source_url zorunlu.")
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("source_url http(s) adresi olmalı.")
        return v


class VideoJobCreated(BaseModel):
    job_id: int


class VideoJobStatus(BaseModel):
    job_id: int
    status: str
    progress: int
    result: dict[str, Any] | None = None
    error: str | None = None
    source_url: str
    filename: str | None = None
    created_at: datetime
    updated_at: datetime


class VideoJobList(BaseModel):
    jobs: list[VideoJobStatus]


class RetryResponse(BaseModel):
    success: bool = True
    job_id: int


class ProcessResponse(BaseModel):
    """Dahili worker ucu yanıtı."""
    status: str  # already_done | done | failed
    video_id: str | None = None
    error: str | None = None
