"""Admin API: sadece X-Admin-Secret ile erişilir. Kredi tanıma, takılı işler, render kuyruğu, hata logları."""
import logging

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from app.api.deps import require_admin
from app.core.config import settings
from app.core.database import get_db
from app.models import ErrorLog
from app.schemas import GrantCreditsRequest
from app.services import job_store
from app.services.credits import grant_credits
from app.services.render_queue import RedisQueueTier, get_render_dispatcher
from app.services.trigger import trigger_video_job

router = APIRouter(prefix="/admin", tags=["admin"])
log = logging.getLogger(__name__)


@router.post("/credits/grant")
def admin_grant_credits(
    body: GrantCreditsRequest,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    """Destek: kullanıcıya kredi ekler veya düşer; deftere admin_grant olarak yazılır."""
    balance = grant_credits(db, body.user_id, body.amount, body.description)
    return {"success": True, "user_id": body.user_id, "new_balance": balance}


@router.get("/video-jobs/stale")
def admin_stale_video_jobs(
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
    older_than_minutes: int | None = Query(None, ge=1),
    limit: int = Query(100, le=500),
):
    """queued/processing kalıp uzun süredir güncellenmeyen işler (tetikleme kaybolmuş olabilir)."""
    minutes = older_than_minutes or settings.stale_job_minutes
    jobs = job_store.find_stale_video_jobs(db, minutes, limit=limit)
    return [
        {
            "id": j.id,
            "user_id": j.user_id,
            "status": j.status,
            "progress": j.progress,
            "provider_task_id": j.provider_task_id,
            "updated_at": j.updated_at.isoformat() if j.updated_at else None,
        }
        for j in jobs
    ]


@router.post("/video-jobs/reconcile")
def admin_reconcile_video_jobs(
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
    older_than_minutes: int | None = Query(None, ge=1),
    limit: int = Query(50, le=200),
):
    """Takılı işleri yeniden tetikler. İşleme idempotent: kayıtlı görevden devam eder."""
    minutes = older_than_minutes or settings.stale_job_minutes
    jobs = job_store.find_stale_video_jobs(db, minutes, limit=limit)
    triggered = [j.id for j in jobs if trigger_video_job(j.id)]
    log.info("Reconcile: %s stale jobs found, %s re-triggered", len(jobs), len(triggered))
    return {"found": len(jobs), "triggered": triggered}


@router.get("/render-queue")
def admin_render_queue(_: None = Depends(require_admin)):
    """Dağıtım katmanları ve (varsa) Redis kuyruğu sayaçları."""
    dispatcher = get_render_dispatcher()
    tiers = [{"name": t.name, "configured": t.is_configured()} for t in dispatcher.tiers]
    queue_stats = None
    redis_tier = dispatcher.tier("redis")
    if isinstance(redis_tier, RedisQueueTier) and redis_tier.is_configured():
        try:
            queue_stats = redis_tier.stats()
        except Exception as e:
            log.warning("Render queue stats unavailable: %s", e)
    return {"tiers": tiers, "queue": queue_stats}


@router.get("/errors")
def admin_errors(
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
    limit: int = Query(100, le=500),
):
    logs = list(db.exec(select(ErrorLog).order_by(ErrorLog.id.desc()).limit(limit)).all())
    return [
        {
            "id": e.id,
            "request_id": e.request_id,
            "user_id": e.user_id,
            "endpoint": e.endpoint,
            "method": e.method,
            "error_message": (e.error_message or "")[:200],
            "created_at": e.created_at.isoformat() if e.created_at else None,
        }
        for e in logs
    ]
