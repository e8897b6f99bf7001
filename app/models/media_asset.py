from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class MediaAsset(SQLModel, table=True):
    """Kullanıcının yüklediği medya; analiz bitince açıklama/bölümler metadata'ya kopyalanır."""

    __tablename__ = "media_assets"
    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(index=True)
    url: str
    status: str = "uploaded"  # uploaded | processing | ready
    metadata_json: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
