"""Video analiz işi: queued → processing → done | failed. provider_task_id kaldığı yerden devam anahtarıdır."""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

VIDEO_JOB_STATUSES = ("queued", "processing", "done", "failed")


class VideoJob(SQLModel, table=True):
    __tablename__ = "video_jobs"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    source_url: str
    filename: str | None = None
    content_type: str | None = None
    duration: float | None = None  # İstemcinin bildirdiği süre (sn)
    status: str = Field(default="queued", index=True)  # queued | processing | done | failed
    progress: int = 0  # 0-100
    provider_task_id: str | None = Field(default=None, index=True)
    # done iken dolu: video_id, task_id, summary, chapters, highlights, metadata, thumbnails
    result_json: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    error_message: str | None = None
    # İstemci bağlamı; asset_id varsa özet MediaAsset'e de yazılır
    metadata_json: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
