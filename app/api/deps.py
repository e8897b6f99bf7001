from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.security import owner_id_from_token, secrets_match
from app.services.trigger import INTERNAL_SECRET_HEADER

security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> int:
    """Kimlik doğrulama bu servisin dışında; token sadece sahip id'si (sub) için okunur."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Giriş yapmanız gerekiyor.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = owner_id_from_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Geçersiz veya süresi dolmuş token.",
        )
    return user_id


def require_internal_secret(
    x_internal_secret: str | None = Header(None, alias=INTERNAL_SECRET_HEADER),
) -> None:
    """Dahili worker ucu: sır tanımlı değilse veya eşleşmezse 401."""
    if not secrets_match(x_internal_secret, settings.internal_worker_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_admin(
    x_admin_secret: str | None = Header(None, alias="X-Admin-Secret"),
) -> None:
    if not settings.admin_secret:
        raise HTTPException(status_code=503, detail="Admin uçları yapılandırılmamış (ADMIN_SECRET yok).")
    if not secrets_match(x_admin_secret, settings.admin_secret):
        raise HTTPException(status_code=403, detail="Yetkisiz.")
