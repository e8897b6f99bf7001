"""Bearer token (JWT) okuma ve paylaşılan sırların sabit sürede karşılaştırılması."""
import hmac
from datetime import datetime, timedelta

from jose import JWTError, jwt

from .config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 gün


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Token'ı kimlik servisi üretir; burada testler ve yerel geliştirme için."""
    claims = {**data, "exp": datetime.utcnow() + timedelta(minutes=expires_minutes)}
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None


def owner_id_from_token(token: str) -> int | None:
    """sub claim'i tamsayı kullanıcı id'si; geçersiz/eksikse None."""
    payload = decode_access_token(token)
    if not payload:
        return None
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None


def secrets_match(provided: str | None, expected: str | None) -> bool:
    """Beklenen sır boşsa (yapılandırılmamış) her zaman False."""
    if not expected:
        return False
    return hmac.compare_digest((provided or "").encode("utf-8"), expected.encode("utf-8"))
