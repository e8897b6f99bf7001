"""Video analiz işleri: gönder, listele, durum, yeniden dene, dahili işleme ucu."""
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from app.api.deps import get_current_user_id, require_internal_secret
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.core.rate_limit import SUBMIT_RATE_LIMIT, limiter
from app.models import VIDEO_JOB_STATUSES, VideoJob
from app.schemas import (
    ProcessResponse,
    RetryResponse,
    VideoJobCreate,
    VideoJobCreated,
    VideoJobList,
    VideoJobStatus,
)
from app.services import job_store
from app.services.video_jobs import process_video_job, retry_video_job, submit_video_job

router = APIRouter(prefix="/api/video-jobs", tags=["video-jobs"])
log = logging.getLogger(__name__)


def _status_out(job: VideoJob) -> VideoJobStatus:
    return VideoJobStatus(
        job_id=job.id,
        status=job.status,
        progress=job.progress,
        result=job.result_json,
        error=job.error_message,
        source_url=job.source_url,
        filename=job.filename,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@router.post("", response_model=VideoJobCreated, status_code=201)
@limiter.limit(SUBMIT_RATE_LIMIT)
def create_video_job(
    request: Request,
    body: VideoJobCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    job = submit_video_job(
        db,
        user_id=user_id,
        source_url=body.source_url,
        filename=body.filename,
        content_type=body.content_type,
        duration=body.duration,
        metadata=body.metadata,
    )
    return VideoJobCreated(job_id=job.id)


@router.get("", response_model=VideoJobList)
def list_video_jobs(
    status: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if status and status not in VIDEO_JOB_STATUSES:
        status = None
    jobs = job_store.list_video_jobs(db, owner_id=user_id, status=status, limit=limit, offset=offset)
    return VideoJobList(jobs=[_status_out(j) for j in jobs])


@router.get("/{job_id}", response_model=VideoJobStatus)
def get_video_job(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    # Başkasının işi de "bulunamadı" döner
    job = job_store.get_video_job(db, job_id, owner_id=user_id)
    if not job:
        raise NotFoundError("İş bulunamadı.")
    return _status_out(job)


@router.post("/{job_id}/retry", response_model=RetryResponse)
def retry(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    job = retry_video_job(db, job_id, user_id)
    return RetryResponse(job_id=job.id)


@router.post("/{job_id}/process", response_model=ProcessResponse)
def process(job_id: int, _: None = Depends(require_internal_secret)):
    """Dahili worker ucu (loopback tetikleme veya harici worker). İşleme bitene kadar bekler."""
    outcome = process_video_job(job_id)
    if outcome.status == "not_found":
        raise NotFoundError("İş bulunamadı.")
    log.info("Internal process call for job %s finished: %s", job_id, outcome.status)
    return ProcessResponse(status=outcome.status, video_id=outcome.video_id, error=outcome.error)
