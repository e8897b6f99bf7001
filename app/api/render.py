from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.api.deps import get_current_user_id
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.models import Project, RenderJob
from app.schemas import RenderJobList, RenderJobOut, RenderJobResponse
from app.services import job_store
from app.services.credits import admit_render_job

router = APIRouter(prefix="/api", tags=["render"])


def _render_out(job: RenderJob) -> RenderJobOut:
    return RenderJobOut(
        id=job.id,
        project_id=job.project_id,
        status=job.status,
        progress=job.progress,
        logs=list(job.logs or []),
        error=job.error_message,
        dispatch_tier=job.dispatch_tier,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@router.post("/projects/{project_id}/render", response_model=RenderJobResponse, status_code=201)
def render_project(
    project_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """1 kredi düşer; yetersiz kredi 402, devam eden render 409, zaman çizelgesi yoksa 400."""
    job = admit_render_job(db, user_id=user_id, project_id=project_id)
    return RenderJobResponse(job=_render_out(job))


@router.get("/projects/{project_id}/render-jobs", response_model=RenderJobList)
def list_project_render_jobs(
    project_id: int,
    limit: int = Query(20, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    project = db.get(Project, project_id)
    if not project or project.owner_id != user_id:
        raise NotFoundError("Proje bulunamadı.")
    jobs = job_store.list_render_jobs(db, project_id, limit=limit)
    return RenderJobList(jobs=[_render_out(j) for j in jobs])


@router.get("/render-jobs/{job_id}", response_model=RenderJobResponse)
def get_render_job(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    job = job_store.get_render_job(db, job_id, owner_id=user_id)
    if not job:
        raise NotFoundError("Render işi bulunamadı.")
    return RenderJobResponse(job=_render_out(job))
