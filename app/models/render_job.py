"""Render işi: queued → running → done | failed. Proje başına en fazla bir aktif iş (admission kontrol eder)."""
from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

RENDER_ACTIVE_STATUSES = ("queued", "running")


class RenderJob(SQLModel, table=True):
    __tablename__ = "render_jobs"
    id: int | None = Field(default=None, primary_key=True)
    project_id: int = Field(index=True)
    status: str = Field(default="queued", index=True)  # queued | running | done | failed
    progress: int = 0
    logs: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))  # sadece eklenir
    error_message: str | None = None
    dispatch_tier: str | None = None  # batch | redis | worker | database
    dispatch_ref: str | None = None  # Katmanın döndürdüğü onay id'si
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
