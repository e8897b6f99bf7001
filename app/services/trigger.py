"""
İşlemeyi isteği bekletmeden başlatır (fire-and-forget).

thread:   process_video_job ayrık bir daemon thread'de çalışır.
loopback: dahili uca (/api/video-jobs/{id}/process) X-Internal-Secret ile POST atılır.
Her iki modda da hata çağırana yansımaz; iş DB'de queued kalır, retry veya uzlaştırma ile alınır.
"""
import logging
import threading

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

INTERNAL_SECRET_HEADER = "X-Internal-Secret"


def _process_in_thread(job_id: int) -> None:
    from app.services.video_jobs import process_video_job

    try:
        outcome = process_video_job(job_id)
        logger.info("Background processing of job %s finished: %s", job_id, outcome.status)
    except Exception:
        logger.exception("Background processing of job %s crashed", job_id)


def _call_loopback(job_id: int) -> None:
    url = f"{settings.public_base_url}/api/video-jobs/{job_id}/process"
    try:
        resp = httpx.post(
            url,
            headers={INTERNAL_SECRET_HEADER: settings.internal_worker_secret},
            timeout=settings.trigger_timeout_seconds,
        )
        if resp.is_error:
            logger.error("Loopback trigger for job %s returned %s", job_id, resp.status_code)
    except httpx.ReadTimeout:
        # İstek ulaştı; işleme sunucu tarafında sürüyor
        logger.info("Loopback trigger for job %s delivered, not waiting for completion", job_id)
    except Exception as e:
        logger.error("Failed to trigger background processing for job %s: %s", job_id, e)


def trigger_video_job(job_id: int) -> bool:
    """İşlemeyi planlar; planlandıysa True. Asla fırlatmaz."""
    try:
        if settings.trigger_mode == "loopback":
            if not settings.internal_worker_secret:
                logger.error("INTERNAL_WORKER_SECRET not configured; job %s stays queued", job_id)
                return False
            target = _call_loopback
        else:
            target = _process_in_thread
        threading.Thread(target=target, args=(job_id,), name=f"video-job-{job_id}", daemon=True).start()
        return True
    except Exception as e:
        logger.error("Failed to dispatch background processing for job %s: %s", job_id, e)
        return False
