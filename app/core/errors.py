"""Servis katmanı hataları: router'lar bunları yakalamaz, main.py'deki handler JSON'a çevirir."""


class ServiceError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class ForbiddenError(ServiceError):
    status_code = 403
    code = "forbidden"


class InvalidStateError(ServiceError):
    """Örn. failed olmayan işe retry."""
    status_code = 400
    code = "invalid_state"


class InsufficientCreditsError(ServiceError):
    status_code = 402
    code = "insufficient_credits"


class RenderConflictError(ServiceError):
    """Aynı proje için queued/running bir render işi zaten var."""
    status_code = 409
    code = "conflict_in_progress"


class NoTimelineError(ServiceError):
    status_code = 400
    code = "no_timeline"


class PromoCodeError(ServiceError):
    status_code = 400
    code = "invalid_code"


class DispatchFailedError(ServiceError):
    """Render işi hiçbir çalıştırma katmanına teslim edilemedi."""
    status_code = 503
    code = "dispatch_failed"
