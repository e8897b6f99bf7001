"""
Kredi defteri ve render kabul kontrolü.

Render kabulü (admit_render_job):
1. Kredi hesabı yoksa başlangıç hakkıyla açılır.
2. Bakiye < 1 -> insufficient_credits.
3. Projede queued/running render işi varsa -> conflict_in_progress.
4. 1 kredi düşülür ve hareket yazılır, sonra RenderJob oluşturulur.
5. İş dağıtım zincirine verilir; teslim edilemezse iş ve proje failed olur. Kredi iade edilmez.

Bakiye düşümü ve proje talebi koşullu UPDATE ile yapılır (oku-sonra-yaz yok):
aynı anda gelen iki istekten sadece biri kabul edilir.
"""
import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.config import settings
from app.core.errors import (
    DispatchFailedError,
    InsufficientCreditsError,
    NoTimelineError,
    NotFoundError,
    PromoCodeError,
    RenderConflictError,
)
from app.models import (
    RENDER_ACTIVE_STATUSES,
    CodeRedemption,
    CreditTransaction,
    Project,
    PromoCode,
    RenderJob,
    UserCredits,
)
from app.services import job_store
from app.services.render_queue import RenderDispatcher, RenderPayload, get_render_dispatcher

logger = logging.getLogger(__name__)

RENDER_COST = 1


def _get_account(db: Session, user_id: int) -> UserCredits | None:
    return db.exec(select(UserCredits).where(UserCredits.user_id == user_id)).first()


def ensure_credit_account(db: Session, user_id: int) -> UserCredits:
    """Hesap yoksa STARTING_CREDITS ile açar; başlangıç hakkı da deftere yazılır."""
    account = _get_account(db, user_id)
    if account:
        return account
    starting = max(settings.starting_credits, 0)
    account = UserCredits(user_id=user_id, credits=starting)
    db.add(account)
    if starting:
        db.add(
            CreditTransaction(
                user_id=user_id,
                amount=starting,
                kind="signup_grant",
                description="Başlangıç kredisi",
            )
        )
    try:
        db.commit()
    except IntegrityError:
        # Eşzamanlı istek hesabı önce açtı
        db.rollback()
        return _get_account(db, user_id)
    db.refresh(account)
    logger.info("Credit account opened for user %s with %s credits", user_id, starting)
    return account


def get_balance(db: Session, user_id: int) -> int:
    return ensure_credit_account(db, user_id).credits


def list_transactions(db: Session, user_id: int, limit: int = 50) -> list[CreditTransaction]:
    stmt = (
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .limit(min(max(limit, 1), 200))
    )
    return list(db.exec(stmt).all())


def _debit(db: Session, user_id: int, amount: int) -> bool:
    """Koşullu düşüm: bakiye yetmiyorsa hiçbir satır değişmez. Commit çağırana aittir."""
    result = db.connection().execute(
        update(UserCredits)
        .where(UserCredits.user_id == user_id, UserCredits.credits >= amount)
        .values(credits=UserCredits.credits - amount, updated_at=datetime.utcnow())
    )
    return result.rowcount == 1


def _credit(db: Session, user_id: int, amount: int) -> None:
    db.connection().execute(
        update(UserCredits)
        .where(UserCredits.user_id == user_id)
        .values(credits=UserCredits.credits + amount, updated_at=datetime.utcnow())
    )


def _claim_project(db: Session, project_id: int, observed_version: int) -> bool:
    """Projeyi rendering'e çeker; okunan sürüm hâlâ geçerliyse başarılı."""
    result = db.connection().execute(
        update(Project)
        .where(Project.id == project_id, Project.render_version == observed_version)
        .values(
            status="rendering",
            render_version=Project.render_version + 1,
            updated_at=datetime.utcnow(),
        )
    )
    return result.rowcount == 1


def _set_project_status(db: Session, project_id: int, status: str) -> None:
    project = db.get(Project, project_id)
    if project:
        project.status = status
        project.updated_at = datetime.utcnow()
        db.add(project)
        db.commit()


def active_render_job(db: Session, project_id: int) -> RenderJob | None:
    stmt = (
        select(RenderJob)
        .where(RenderJob.project_id == project_id)
        .where(RenderJob.status.in_(RENDER_ACTIVE_STATUSES))
    )
    return db.exec(stmt).first()


def admit_render_job(
    db: Session,
    user_id: int,
    project_id: int,
    dispatcher: RenderDispatcher | None = None,
) -> RenderJob:
    account = ensure_credit_account(db, user_id)
    if account.credits < RENDER_COST:
        raise InsufficientCreditsError("Yetersiz kredi. Video render için en az 1 kredi gerekir.")

    project = db.get(Project, project_id)
    if not project or project.owner_id != user_id:
        raise NotFoundError("Proje bulunamadı.")
    if not project.timeline_json:
        raise NoTimelineError("Projede zaman çizelgesi yok. Önce plan oluşturun.")
    if active_render_job(db, project_id):
        raise RenderConflictError("Bu proje için devam eden bir render işi var.")

    title = project.title
    if not _claim_project(db, project_id, project.render_version):
        db.rollback()
        raise RenderConflictError("Bu proje için devam eden bir render işi var.")
    if not _debit(db, user_id, RENDER_COST):
        db.rollback()
        raise InsufficientCreditsError("Yetersiz kredi. Video render için en az 1 kredi gerekir.")
    # Hareket iş satırından önce yazılır
    db.add(
        CreditTransaction(
            user_id=user_id,
            amount=-RENDER_COST,
            kind="render",
            description=f"Render: {title}",
            reference_id=str(project_id),
        )
    )
    job = RenderJob(project_id=project_id, status="queued", progress=0, logs=["Render job created"])
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("Render job %s admitted for project %s (user %s)", job.id, project_id, user_id)

    dispatcher = dispatcher or get_render_dispatcher()
    try:
        result = dispatcher.dispatch(RenderPayload(job_id=job.id, project_id=project_id))
    except Exception as e:
        logger.error("Render job %s could not be dispatched: %s", job.id, e)
        job_store.update_render_job(
            db,
            job.id,
            status="failed",
            error_message="Failed to enqueue job",
            log=f"Dispatch failed: {e}",
        )
        _set_project_status(db, project_id, "failed")
        raise DispatchFailedError("Render işi kuyruğa alınamadı.") from e

    return job_store.update_render_job(
        db,
        job.id,
        dispatch_tier=result.tier,
        dispatch_ref=result.reference,
        log=f"Dispatched via {result.tier}",
    )


def redeem_promo_code(db: Session, user_id: int, code: str) -> tuple[int, int]:
    """Kodu doğrular ve krediyi ekler. (eklenen, yeni_bakiye) döner."""
    code_upper = (code or "").strip().upper()
    if not code_upper:
        raise PromoCodeError("Kod girilmedi.")
    promo = db.exec(
        select(PromoCode).where(PromoCode.code == code_upper).where(PromoCode.is_active == True)  # noqa: E712
    ).first()
    if not promo:
        raise PromoCodeError("Geçersiz veya süresi dolmuş kod.")
    if promo.expires_at and promo.expires_at < datetime.utcnow():
        raise PromoCodeError("Bu kodun süresi dolmuş.")
    if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
        raise PromoCodeError("Bu kodun kullanım limiti dolmuş.")
    already = db.exec(
        select(CodeRedemption)
        .where(CodeRedemption.user_id == user_id)
        .where(CodeRedemption.promo_code_id == promo.id)
    ).first()
    if already:
        raise PromoCodeError("Bu kodu zaten kullandınız.")

    ensure_credit_account(db, user_id)
    promo_id, granted = promo.id, promo.credits
    used = db.connection().execute(
        update(PromoCode)
        .where(PromoCode.id == promo_id)
        .where((PromoCode.max_uses == None) | (PromoCode.current_uses < PromoCode.max_uses))  # noqa: E711
        .values(current_uses=PromoCode.current_uses + 1)
    )
    if used.rowcount != 1:
        db.rollback()
        raise PromoCodeError("Bu kodun kullanım limiti dolmuş.")
    _credit(db, user_id, granted)
    db.add(CodeRedemption(user_id=user_id, promo_code_id=promo_id, credits_granted=granted))
    db.add(
        CreditTransaction(
            user_id=user_id,
            amount=granted,
            kind="promo_code",
            description=f"Redeemed code: {code_upper}",
            reference_id=str(promo_id),
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise PromoCodeError("Bu kodu zaten kullandınız.")
    logger.info("User %s redeemed promo code %s (+%s)", user_id, code_upper, granted)
    return granted, get_balance(db, user_id)


def grant_credits(db: Session, user_id: int, amount: int, description: str | None = None) -> int:
    """Destek/admin: kredi ekler (negatifse düşer, bakiye eksiye inmez). Yeni bakiyeyi döner."""
    ensure_credit_account(db, user_id)
    if amount > 0:
        _credit(db, user_id, amount)
    elif not _debit(db, user_id, -amount):
        db.rollback()
        raise InsufficientCreditsError("Bakiye bu düşüm için yetersiz.")
    db.add(
        CreditTransaction(
            user_id=user_id,
            amount=amount,
            kind="admin_grant",
            description=description or "Admin grant",
        )
    )
    db.commit()
    logger.info("Admin granted %s credits to user %s", amount, user_id)
    return get_balance(db, user_id)
