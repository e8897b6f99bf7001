"""SlowAPI limitleri. Anahtar: proxy arkasında X-Forwarded-For'daki ilk IP."""
from fastapi import Request
from slowapi import Limiter

from .config import settings


def client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client and request.client.host else "127.0.0.1"


limiter = Limiter(key_func=client_ip)

# İş gönderimi ve kod kullanımı
SUBMIT_RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"
REDEEM_RATE_LIMIT = f"{max(settings.rate_limit_per_minute // 4, 1)}/minute;50/hour"
