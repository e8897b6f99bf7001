"""
İş kayıtları üzerinde kalıcılık: oluştur, id ile oku, id ile güncelle, sahibe göre listele.
owner_id verilirse sahiplik filtresi uygulanır; None ise (dahili worker kimliği) sadece id ile adreslenir.
"""
from datetime import datetime, timedelta
from typing import Any

from sqlmodel import Session, select

from app.models import Project, RenderJob, VideoJob


def create_video_job(
    db: Session,
    user_id: int,
    source_url: str,
    filename: str | None = None,
    content_type: str | None = None,
    duration: float | None = None,
    metadata: dict[str, Any] | None = None,
) -> VideoJob:
    job = VideoJob(
        user_id=user_id,
        source_url=source_url,
        filename=filename or None,
        content_type=content_type or None,
        duration=duration,
        status="queued",
        progress=0,
        metadata_json=dict(metadata or {}),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_video_job(db: Session, job_id: int, owner_id: int | None = None) -> VideoJob | None:
    stmt = select(VideoJob).where(VideoJob.id == job_id)
    if owner_id is not None:
        stmt = stmt.where(VideoJob.user_id == owner_id)
    return db.exec(stmt).first()


def update_video_job(db: Session, job_id: int, **fields: Any) -> VideoJob | None:
    """Alanları yazar ve updated_at'i günceller. Satırda sürüm/kilit yok: son yazan kazanır."""
    job = db.get(VideoJob, job_id)
    if not job:
        return None
    for key, value in fields.items():
        setattr(job, key, value)
    job.updated_at = datetime.utcnow()
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def list_video_jobs(
    db: Session,
    owner_id: int,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[VideoJob]:
    stmt = (
        select(VideoJob)
        .where(VideoJob.user_id == owner_id)
        .order_by(VideoJob.created_at.desc(), VideoJob.id.desc())
        .offset(max(offset, 0))
        .limit(min(max(limit, 1), 100))
    )
    if status:
        stmt = stmt.where(VideoJob.status == status)
    return list(db.exec(stmt).all())


def find_stale_video_jobs(db: Session, older_than_minutes: int, limit: int = 100) -> list[VideoJob]:
    """queued/processing kalıp belirtilen süredir güncellenmemiş işler (uzlaştırma taraması)."""
    cutoff = datetime.utcnow() - timedelta(minutes=older_than_minutes)
    stmt = (
        select(VideoJob)
        .where(VideoJob.status.in_(("queued", "processing")))
        .where(VideoJob.updated_at < cutoff)
        .order_by(VideoJob.updated_at)
        .limit(limit)
    )
    return list(db.exec(stmt).all())


def get_render_job(db: Session, job_id: int, owner_id: int | None = None) -> RenderJob | None:
    """Render işinin sahibi projenin sahibidir."""
    job = db.get(RenderJob, job_id)
    if not job or owner_id is None:
        return job
    project = db.get(Project, job.project_id)
    if not project or project.owner_id != owner_id:
        return None
    return job


def update_render_job(db: Session, job_id: int, log: str | None = None, **fields: Any) -> RenderJob | None:
    job = db.get(RenderJob, job_id)
    if not job:
        return None
    for key, value in fields.items():
        setattr(job, key, value)
    if log:
        # JSON sütunu yerinde değişiklikleri izlemez; yeni liste ata
        job.logs = [*(job.logs or []), log]
    job.updated_at = datetime.utcnow()
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def list_render_jobs(db: Session, project_id: int, limit: int = 20) -> list[RenderJob]:
    stmt = (
        select(RenderJob)
        .where(RenderJob.project_id == project_id)
        .order_by(RenderJob.created_at.desc(), RenderJob.id.desc())
        .limit(min(max(limit, 1), 100))
    )
    return list(db.exec(stmt).all())
