import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Uvicorn nereden çalışırsa çalışsın .env proje kökünden yüklensin
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlmodel import Session

from app.api.admin import router as admin_router
from app.api.credits import router as credits_router
from app.api.render import router as render_router
from app.api.video_jobs import router as video_jobs_router
from app.core import ServiceError, engine, init_db, is_indexing_configured, ping_db, settings
from app.core.rate_limit import limiter
from app.core.security import owner_id_from_token
from app.logging import setup_logging
from app.models import ErrorLog

setup_logging()
log = logging.getLogger("kurgu")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("Indexing provider configured: %s", "yes" if is_indexing_configured() else "NO (TWELVELABS_API_KEY eksik)")
    if settings.trigger_mode == "loopback" and not settings.internal_worker_secret:
        log.warning("TRIGGER_MODE=loopback but INTERNAL_WORKER_SECRET is empty; video jobs will stay queued")
    yield


app = FastAPI(
    title="Kurgu API",
    description="Video analiz ve render iş orkestrasyonu",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str, code: str | None = None) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "status_code": status_code}
    if code:
        body["code"] = code
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s", request.url.path)
    return _error_response(request, 429, "Çok fazla istek. Lütfen bir dakika bekleyin.", "rate_limited")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(ServiceError)
def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("Service error: path=%s code=%s %s", request.url.path, exc.code, exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.code)


def _jsonable_errors(errs: list) -> list:
    # ctx içinde exception nesneleri olabilir
    return [{k: v for k, v in e.items() if k in ("loc", "msg", "type")} for e in errs]


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.info("Request validation error (422): path=%s method=%s", request.url.path, request.method)
    first = errs[0] if errs else {}
    msg = first.get("msg") or "Geçersiz istek."
    # pydantic "Value error, ..." önekini kullanıcıya gösterme
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    rid = getattr(request.state, "request_id", None)
    body = {"error": msg, "code": "validation_error", "status_code": 422, "detail": _jsonable_errors(errs)}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    response = _error_response(request, exc.status_code, detail)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    rid = getattr(request.state, "request_id", None)
    auth = request.headers.get("authorization") or ""
    user_id = owner_id_from_token(auth[7:]) if auth.lower().startswith("bearer ") else None
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                request_id=rid,
                user_id=user_id,
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace=traceback.format_exc()[:10000],
            ))
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Beklenmeyen sunucu hatası.", "internal_error")


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(video_jobs_router)
app.include_router(render_router)
app.include_router(credits_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "database": "ok" if ping_db() else "error",
        "indexing_configured": is_indexing_configured(),
        "trigger_mode": settings.trigger_mode,
    }
