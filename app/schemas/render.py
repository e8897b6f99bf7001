from datetime import datetime

from pydantic import BaseModel


class RenderJobOut(BaseModel):
    id: int
    project_id: int
    status: str
    progress: int
    logs: list[str]
    error: str | None = None
    dispatch_tier: str | None = None
    created_at: datetime
    updated_at: datetime


class RenderJobResponse(BaseModel):
    job: RenderJobOut


class RenderJobList(BaseModel):
    jobs: list[RenderJobOut]
