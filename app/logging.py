"""
Logging yapılandırması: tek stdout handler, seviye LOG_LEVEL'dan.
İşleme hataları logger.exception ile yığın izi dahil yazılır (app/services/video_jobs.py);
dağıtım katmanı hataları katman adıyla loglanır (app/services/render_queue.py).
"""
import logging
import sys

from app.core.config import settings

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(threadName)s]: %(message)s"

# Her HTTP isteğini / AWS çağrısını loglamasınlar
_NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "urllib3", "rq.worker")


def setup_logging(level: int | str | None = None, format_string: str | None = None) -> None:
    level = level if level is not None else settings.log_level
    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "kurgu", "app"):
        logging.getLogger(name).setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if settings.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
