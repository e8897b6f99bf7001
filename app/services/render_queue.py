"""
Render işini çalıştıracak katmana teslim eder. Öncelik sırası:
1. AWS Batch (USE_AWS_BATCH=true) - konteyner, sıfıra ölçeklenir
2. Redis/RQ kuyruğu (REDIS_URL) - ayrı worker'lar için
3. Doğrudan HTTP (WORKER_URL) - tek worker
4. Sadece DB - iş queued kalır, polling worker alır (RENDER_DB_FALLBACK)

Yapılandırılmamış katman atlanır; hata veren katman loglanıp sıradakine geçilir.
Katmanlar hiçbir zaman paralel denenmez; ilk başarılı katmanın sonucu kullanılır.
"""
import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any

import boto3
import httpx
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from rq import Queue, Retry

from app.core.config import settings

logger = logging.getLogger(__name__)

# Worker tarafındaki RQ görev fonksiyonu (bu depoda değil)
RENDER_TASK_PATH = "worker.render.render_project"


class DispatchError(Exception):
    pass


@dataclass
class RenderPayload:
    job_id: int
    project_id: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DispatchResult:
    tier: str
    reference: str | None = None


class DispatchTier:
    name = "tier"

    def is_configured(self) -> bool:
        return True

    def submit(self, payload: RenderPayload) -> str | None:
        raise NotImplementedError


class BatchTier(DispatchTier):
    """AWS Batch: JOB_ID ve PROJECT_ID konteyner ortam değişkeni olarak geçilir."""

    name = "batch"

    def __init__(self, enabled: bool, region: str, job_queue: str, job_definition: str, client=None):
        self.enabled = enabled
        self.region = region
        self.job_queue = job_queue
        self.job_definition = job_definition
        self._client = client

    def is_configured(self) -> bool:
        return self.enabled

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("batch", region_name=self.region)
        return self._client

    def submit(self, payload: RenderPayload) -> str | None:
        # Benzersiz ad: en fazla 128 karakter, harf/rakam/tire
        job_name = f"render-{payload.project_id}-{int(time.time() * 1000)}"
        logger.info(
            "Submitting render job %s to AWS Batch: queue=%s definition=%s name=%s",
            payload.job_id,
            self.job_queue,
            self.job_definition,
            job_name,
        )
        resp = self.client.submit_job(
            jobName=job_name,
            jobQueue=self.job_queue,
            jobDefinition=self.job_definition,
            containerOverrides={
                "environment": [
                    {"name": "JOB_ID", "value": str(payload.job_id)},
                    {"name": "PROJECT_ID", "value": str(payload.project_id)},
                ],
            },
            retryStrategy={"attempts": 2},
        )
        batch_job_id = resp.get("jobId")
        if not batch_job_id:
            raise DispatchError("AWS Batch did not return a job ID")
        return batch_job_id


class RedisQueueTier(DispatchTier):
    """
    RQ kuyruğu, job_id = render işi id'si (aynı iş iki kez kuyruğa girmez).
    İlk bağlantı/zaman aşımı hatasında devre kesilir ve süreç boyunca bu katman atlanır.
    """

    name = "redis"

    def __init__(self, redis_url: str, queue_name: str = "render", connect_timeout: float = 5.0, connection=None):
        self.redis_url = redis_url
        self.queue_name = queue_name
        self.connect_timeout = connect_timeout
        self._connection = connection
        self._queue: Queue | None = None
        self.available = bool(redis_url) or connection is not None

    def is_configured(self) -> bool:
        return self.available

    def _get_queue(self) -> Queue:
        if self._queue is None:
            try:
                if self._connection is None:
                    self._connection = Redis.from_url(
                        self.redis_url,
                        socket_connect_timeout=self.connect_timeout,
                        socket_timeout=self.connect_timeout,
                    )
                self._queue = Queue(self.queue_name, connection=self._connection)
            except Exception:
                self.available = False
                raise
        return self._queue

    def submit(self, payload: RenderPayload) -> str | None:
        queue = self._get_queue()
        try:
            job = queue.enqueue(
                RENDER_TASK_PATH,
                payload.as_dict(),
                job_id=str(payload.job_id),
                retry=Retry(max=3, interval=[1, 2, 4]),
                result_ttl=24 * 3600,
                failure_ttl=7 * 24 * 3600,
            )
        except (RedisConnectionError, RedisTimeoutError):
            self.available = False
            logger.warning("Redis unavailable; skipping the queue tier for the rest of this process")
            raise
        return job.id

    def stats(self) -> dict[str, int]:
        queue = self._get_queue()
        return {
            "waiting": queue.count,
            "active": queue.started_job_registry.count,
            "completed": queue.finished_job_registry.count,
            "failed": queue.failed_job_registry.count,
        }


class DirectWorkerTier(DispatchTier):
    name = "worker"

    def __init__(self, worker_url: str, worker_secret: str = "", timeout: float = 10.0, http: httpx.Client | None = None):
        self.worker_url = worker_url
        self.worker_secret = worker_secret
        self.timeout = timeout
        self._http = http

    def is_configured(self) -> bool:
        return bool(self.worker_url)

    def submit(self, payload: RenderPayload) -> str | None:
        if self._http is None:
            self._http = httpx.Client(timeout=self.timeout)
        resp = self._http.post(
            f"{self.worker_url}/render",
            json=payload.as_dict(),
            headers={"Authorization": f"Bearer {self.worker_secret}"},
        )
        if resp.is_error:
            raise DispatchError(f"Worker returned {resp.status_code}")
        try:
            body = resp.json()
        except ValueError:
            body = {}
        ref = (body.get("job_id") or body.get("id")) if isinstance(body, dict) else None
        return str(ref) if ref else None


class DatabaseOnlyTier(DispatchTier):
    """Hiçbir şey göndermez; iş DB'de queued kalır."""

    name = "database"

    def submit(self, payload: RenderPayload) -> str | None:
        logger.info("Render job %s left queued in database for a polling worker", payload.job_id)
        return None


class RenderDispatcher:
    def __init__(self, tiers: list[DispatchTier]):
        self.tiers = tiers

    def tier(self, name: str) -> DispatchTier | None:
        return next((t for t in self.tiers if t.name == name), None)

    def dispatch(self, payload: RenderPayload) -> DispatchResult:
        failures: list[str] = []
        for tier in self.tiers:
            if not tier.is_configured():
                continue
            try:
                reference = tier.submit(payload)
            except Exception as e:
                logger.error(
                    "Render job %s (project %s): %s tier failed, falling through: %s",
                    payload.job_id,
                    payload.project_id,
                    tier.name,
                    e,
                )
                failures.append(f"{tier.name}: {e}")
                continue
            logger.info("Render job %s dispatched via %s (ref=%s)", payload.job_id, tier.name, reference)
            return DispatchResult(tier=tier.name, reference=reference)
        raise DispatchError("; ".join(failures) or "No render dispatch tier configured")


_dispatcher: RenderDispatcher | None = None
_dispatcher_lock = threading.Lock()


def build_render_dispatcher() -> RenderDispatcher:
    tiers: list[DispatchTier] = [
        BatchTier(
            enabled=settings.use_aws_batch,
            region=settings.aws_region,
            job_queue=settings.aws_batch_job_queue,
            job_definition=settings.aws_batch_job_definition,
        ),
        RedisQueueTier(
            redis_url=settings.redis_url,
            queue_name=settings.render_queue_name,
            connect_timeout=settings.redis_connect_timeout_seconds,
        ),
        DirectWorkerTier(
            worker_url=settings.worker_url,
            worker_secret=settings.worker_secret,
            timeout=settings.worker_timeout_seconds,
        ),
    ]
    if settings.render_db_fallback:
        tiers.append(DatabaseOnlyTier())
    return RenderDispatcher(tiers)


def get_render_dispatcher() -> RenderDispatcher:
    """Süreç boyunca tek dağıtıcı; istemciler ve Redis devre kesici durumu burada yaşar."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            _dispatcher = build_render_dispatcher()
        return _dispatcher


def reset_render_dispatcher() -> None:
    global _dispatcher
    with _dispatcher_lock:
        _dispatcher = None
