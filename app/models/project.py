from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class Project(SQLModel, table=True):
    __tablename__ = "projects"
    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(index=True)
    title: str = ""
    status: str = "draft"  # draft | rendering | done | failed
    timeline_json: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    # Render kabulünde compare-and-set; her başarılı kabulde +1
    render_version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
