"""
Video analiz işi durum makinesi: queued → processing → done | failed.

process_video_job tekrar çağrılabilir (idempotent):
- done ise hiçbir şey yazmaz, "already_done" döner.
- provider_task_id varsa önce sağlayıcıya sorar; yeni görev açmadan devam eder.
- Yeni görev açıldığında id beklemeye geçmeden hemen kaydedilir (çökmeden sonra devam noktası).
Aynı iş için eşzamanlı iki çağrı, id kaydedilmeden önceki kısa aralıkta iki görev açabilir;
sonrasında her çağrı mevcut görevden devam eder.
done terminaldir: geç kalan bir çağrının ilerleme veya failed yazımı done satırı değiştirmez.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import update
from sqlmodel import Session

from app.core.config import settings
from app.core.database import engine
from app.core.errors import ForbiddenError, InvalidStateError, NotFoundError
from app.models import MediaAsset, VideoJob
from app.services import job_store
from app.services.indexing import IndexingClient, IndexingError, get_indexing_client
from app.services.progress import (
    PROGRESS_DONE,
    PROGRESS_HARVEST,
    PROGRESS_INDEX_READY,
    PROGRESS_INDEXED,
    PROGRESS_QUEUED,
    PROGRESS_STARTED,
    PROGRESS_TASK_CREATED,
    advance,
    map_indexing_progress,
)
from app.services.trigger import trigger_video_job

logger = logging.getLogger(__name__)

ERROR_MESSAGE_MAX = 2000


@dataclass
class ProcessOutcome:
    status: str  # already_done | done | failed | not_found
    video_id: str | None = None
    error: str | None = None


def submit_video_job(
    db: Session,
    user_id: int,
    source_url: str,
    filename: str | None = None,
    content_type: str | None = None,
    duration: float | None = None,
    metadata: dict[str, Any] | None = None,
    trigger: Callable[[int], None] | None = None,
) -> VideoJob:
    """İşi queued/0 olarak oluşturur, işlemeyi bir kez tetikler ve beklemeden döner."""
    job = job_store.create_video_job(
        db,
        user_id=user_id,
        source_url=source_url,
        filename=filename,
        content_type=content_type,
        duration=duration,
        metadata=metadata,
    )
    logger.info("Video job %s created for user %s", job.id, user_id)
    (trigger or trigger_video_job)(job.id)
    return job


def retry_video_job(
    db: Session,
    job_id: int,
    user_id: int,
    trigger: Callable[[int], None] | None = None,
) -> VideoJob:
    """Sadece failed iş: queued/0'a çeker, hatayı siler, provider_task_id'yi korur ve yeniden tetikler."""
    job = job_store.get_video_job(db, job_id)
    if not job:
        raise NotFoundError("İş bulunamadı.")
    if job.user_id != user_id:
        raise ForbiddenError("Bu iş size ait değil.")
    if job.status != "failed":
        raise InvalidStateError(f"Sadece başarısız işler yeniden denenebilir (durum: {job.status}).")
    job = job_store.update_video_job(
        db,
        job_id,
        status="queued",
        progress=PROGRESS_QUEUED,
        error_message=None,
    )
    logger.info("Video job %s re-queued (provider_task_id=%s)", job_id, job.provider_task_id)
    (trigger or trigger_video_job)(job_id)
    return job


def _update_unless_done(db: Session, job_id: int, *conditions, **values: Any) -> bool:
    """
    Koşullu yazım: done satıra dokunmaz. Oturumdaki önbelleğe değil satırın güncel haline bakar;
    aynı iş için başka bir process() çağrısının yazdığı sonuç ezilmez.
    """
    result = db.connection().execute(
        update(VideoJob)
        .where(VideoJob.id == job_id, VideoJob.status != "done", *conditions)
        .values(**values, updated_at=datetime.utcnow())
    )
    db.commit()
    return result.rowcount == 1


def _set_progress(db: Session, job_id: int, progress: int) -> None:
    _update_unless_done(db, job_id, VideoJob.progress < progress, progress=progress)


def _resume_existing_task(indexer: IndexingClient, job_id: int, task_id: str) -> tuple[str | None, str | None]:
    """
    Kayıtlı görev için (task_id, video_id) döner.
    ready -> video_id dolu; failed veya sorgu hatası -> task_id None (yeni görev açılır);
    sürüyor -> aynı task_id ile yoklamaya devam.
    """
    try:
        task = indexer.get_task_status(task_id)
    except Exception as e:
        # Süresi dolmuş/bozuk id ile sonsuza kadar takılmamak için yeni görev aç
        logger.warning("Job %s: could not fetch task %s (%s), creating a new one", job_id, task_id, e)
        return None, None
    if task.is_ready and task.video_id:
        logger.info("Job %s: task %s already ready, skipping to harvest", job_id, task_id)
        return task_id, task.video_id
    if task.is_failed:
        logger.info("Job %s: previous task %s failed, creating a new one", job_id, task_id)
        return None, None
    logger.info("Job %s: task %s still %s, resuming poll", job_id, task_id, task.status)
    return task_id, None


def _write_back_to_asset(db: Session, job: VideoJob, analysis: dict[str, Any]) -> None:
    """Özeti kaynak MediaAsset metadata'sına kopyalar. Hata işi etkilemez, sadece loglanır."""
    asset_id = (job.metadata_json or {}).get("asset_id")
    summary = analysis.get("summary")
    if not asset_id or not summary:
        return
    try:
        asset = db.get(MediaAsset, int(asset_id))
        if not asset:
            logger.warning("Job %s: asset %s not found for write-back", job.id, asset_id)
            return
        asset.metadata_json = {
            **(asset.metadata_json or {}),
            "description": summary,
            "ai_generated": True,
            "analyzed_at": datetime.utcnow().isoformat(),
            "video_job_id": job.id,
            "chapters": analysis.get("chapters") or [],
            "highlights": analysis.get("highlights") or [],
        }
        asset.status = "ready"
        db.add(asset)
        db.commit()
        logger.info("Job %s: asset %s updated with AI description", job.id, asset_id)
    except Exception as e:
        db.rollback()
        logger.warning("Job %s: asset write-back failed: %s", job.id, e)


def _mark_failed(db: Session, job_id: int, message: str) -> bool:
    """failed yazar; iş bu arada done olduysa False döner ve satır değişmez."""
    try:
        db.rollback()
        # İlerleme olduğu yerde kalır
        return _update_unless_done(db, job_id, status="failed", error_message=message, result_json=None)
    except Exception:
        logger.exception("Job %s: could not persist failure", job_id)
        return True


def _already_done(db: Session, job_id: int) -> ProcessOutcome:
    job = job_store.get_video_job(db, job_id)
    return ProcessOutcome(status="already_done", video_id=((job.result_json if job else None) or {}).get("video_id"))


def _run(
    db: Session,
    job_id: int,
    indexer: IndexingClient | None,
    sleep: Callable[[float], None],
    poll_interval: float,
    timeout: float,
) -> ProcessOutcome:
    job = job_store.get_video_job(db, job_id)
    if not job:
        logger.warning("Job %s not found", job_id)
        return ProcessOutcome(status="not_found", error="İş bulunamadı.")
    if job.status == "done":
        logger.info("Job %s is already done, skipping", job_id)
        return ProcessOutcome(status="already_done", video_id=(job.result_json or {}).get("video_id"))

    started = advance(job.progress, PROGRESS_STARTED) if job.status == "processing" else PROGRESS_STARTED
    if not _update_unless_done(db, job_id, status="processing", progress=started, error_message=None):
        return _already_done(db, job_id)
    job = job_store.get_video_job(db, job_id)

    try:
        if indexer is None:
            indexer = get_indexing_client()

        task_id = job.provider_task_id
        video_id: str | None = None
        index_id: str | None = None

        if task_id:
            logger.info("Job %s: resuming with existing task %s", job_id, task_id)
            task_id, video_id = _resume_existing_task(indexer, job_id, task_id)
            if video_id:
                _set_progress(db, job_id, PROGRESS_INDEXED)

        if not task_id:
            index_id = indexer.get_or_create_default_index()
            _set_progress(db, job_id, PROGRESS_INDEX_READY)
            task_id = indexer.create_task(job.source_url, index_id)
            # Kontrol noktası: beklemeden önce kaydet
            _update_unless_done(db, job_id, provider_task_id=task_id)
            _set_progress(db, job_id, PROGRESS_TASK_CREATED)
            logger.info("Job %s: created task %s", job_id, task_id)

        if not video_id:
            completed = indexer.wait_for_task(
                task_id,
                poll_interval=poll_interval,
                timeout=timeout,
                on_progress=lambda t: _set_progress(db, job_id, map_indexing_progress(t.percentage)),
                sleep=sleep,
            )
            video_id = completed.video_id
            if not video_id:
                raise IndexingError("Indexing completed but no video ID returned")

        if index_id is None:
            # Devam edilen görevde index bilinmiyor; metadata index kapsamlı uçtan okunur
            try:
                index_id = indexer.get_or_create_default_index()
            except IndexingError as e:
                logger.warning("Job %s: index lookup failed before harvest: %s", job_id, e)

        _set_progress(db, job_id, PROGRESS_HARVEST)
        logger.info("Job %s: indexing complete, video_id=%s; harvesting", job_id, video_id)
        analysis = indexer.analyze_indexed_video(video_id, index_id)
        result = {**analysis, "video_id": video_id, "task_id": task_id}
        job = job_store.update_video_job(
            db,
            job_id,
            status="done",
            progress=PROGRESS_DONE,
            result_json=result,
            error_message=None,
        )
    except Exception as e:
        message = (str(e) or type(e).__name__)[:ERROR_MESSAGE_MAX]
        if not _mark_failed(db, job_id, message):
            logger.info("Job %s failed (%s) but another run already finished it", job_id, message)
            return _already_done(db, job_id)
        logger.exception("Job %s processing failed: %s", job_id, e)
        return ProcessOutcome(status="failed", error=message)

    _write_back_to_asset(db, job, analysis)
    logger.info("Job %s: processing complete", job_id)
    return ProcessOutcome(status="done", video_id=video_id)


def process_video_job(
    job_id: int,
    indexer: IndexingClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
    poll_interval: float | None = None,
    timeout: float | None = None,
) -> ProcessOutcome:
    """Dahili worker giriş noktası; kendi DB oturumunu açar. Sağlayıcı hataları failed olarak yazılır, fırlatılmaz."""
    with Session(engine) as db:
        return _run(
            db,
            job_id,
            indexer,
            sleep,
            settings.indexing_poll_interval_seconds if poll_interval is None else poll_interval,
            settings.indexing_timeout_seconds if timeout is None else timeout,
        )
