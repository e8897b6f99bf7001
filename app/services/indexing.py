"""
Video anlama sağlayıcısı (TwelveLabs v1.3 sözleşmesi) istemcisi.

Akış: index bul/oluştur -> URL'den indeksleme görevi aç -> görevi yokla ->
video_id ile türetilmiş analizleri (özet, bölümler, öne çıkanlar) ve metadata'yı topla.
Türetilmiş analiz çağrıları birbirinden bağımsızdır; biri düşerse diğerleri devam eder.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

TASK_READY = "ready"
TASK_FAILED = "failed"

SUMMARY_PROMPT = (
    "Provide a comprehensive summary of this video including main subjects, actions, setting, and mood."
)

EMPTY_VIDEO_METADATA: dict[str, Any] = {
    "filename": "",
    "duration": 0,
    "fps": 0,
    "width": 0,
    "height": 0,
    "size": 0,
}


class IndexingError(Exception):
    """Sağlayıcı hatası (HTTP, bozuk yanıt, failed görev)."""


class IndexingTimeout(IndexingError):
    pass


@dataclass
class IndexingTask:
    task_id: str
    status: str  # pending | validating | indexing | ready | failed
    percentage: float = 0
    video_id: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.status == TASK_READY

    @property
    def is_failed(self) -> bool:
        return self.status == TASK_FAILED


class IndexingClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.twelvelabs.io/v1.3",
        index_id: str | None = None,
        index_name: str = "kurgu",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_key:
            raise IndexingError("TWELVELABS_API_KEY tanımlı değil.")
        self.index_id = index_id or None
        self.index_name = index_name
        self._http = httpx.Client(
            base_url=base_url,
            headers={"x-api-key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, endpoint: str, json: dict | None = None) -> dict[str, Any]:
        logger.debug("Indexing API request: %s %s", method, endpoint)
        try:
            resp = self._http.request(method, endpoint, json=json)
        except httpx.HTTPError as e:
            raise IndexingError(f"{method} {endpoint} bağlantı hatası: {e}") from e
        text = resp.text.strip()
        # Yanlış sürüm/uç HTML hata sayfası döner
        if text.startswith("<"):
            raise IndexingError(
                f"{endpoint} HTML hata sayfası döndü (HTTP {resp.status_code}); uç veya API sürümü yanlış olabilir."
            )
        try:
            data = resp.json() if text else {}
        except ValueError as e:
            raise IndexingError(f"{endpoint} yanıtı JSON değil (HTTP {resp.status_code}): {text[:200]}") from e
        if resp.is_error:
            raise IndexingError(f"{endpoint} başarısız (HTTP {resp.status_code}): {data}")
        return data

    # Index

    def list_indexes(self) -> list[dict[str, Any]]:
        return self._request("GET", "/indexes").get("data") or []

    def create_index(self, name: str) -> str:
        data = self._request(
            "POST",
            "/indexes",
            json={"index_name": name, "models": [{"model_name": "marengo2.7", "model_options": ["visual", "audio"]}]},
        )
        return data["_id"]

    def get_or_create_default_index(self) -> str:
        """Ayarlı index id; yoksa ada göre bul, o da yoksa oluştur (sonuç önbelleklenir)."""
        if self.index_id:
            return self.index_id
        for index in self.list_indexes():
            if index.get("index_name") == self.index_name:
                self.index_id = index["_id"]
                return self.index_id
        self.index_id = self.create_index(self.index_name)
        logger.info("Indexing: created index %s (%s)", self.index_name, self.index_id)
        return self.index_id

    # Görevler

    def create_task(self, video_url: str, index_id: str, language: str = "en") -> str:
        data = self._request(
            "POST",
            "/tasks",
            json={"index_id": index_id, "url": video_url, "language": language},
        )
        task_id = data.get("_id")
        if not task_id:
            raise IndexingError(f"Görev oluşturuldu ama id dönmedi: {data}")
        return task_id

    def get_task_status(self, task_id: str) -> IndexingTask:
        data = self._request("GET", f"/tasks/{task_id}")
        process = data.get("process") or {}
        return IndexingTask(
            task_id=data.get("_id") or task_id,
            status=(data.get("status") or "pending").lower(),
            percentage=process.get("percentage") or 0,
            video_id=data.get("video_id"),
        )

    def wait_for_task(
        self,
        task_id: str,
        poll_interval: float = 5.0,
        timeout: float = 600.0,
        on_progress: Callable[[IndexingTask], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> IndexingTask:
        """ready olana kadar yoklar; failed veya zaman aşımında IndexingError fırlatır."""
        started = time.monotonic()
        while True:
            task = self.get_task_status(task_id)
            if on_progress:
                on_progress(task)
            if task.is_ready:
                return task
            if task.is_failed:
                raise IndexingError(f"Indexing task failed: {task_id}")
            if time.monotonic() - started > timeout:
                raise IndexingTimeout(f"Indexing task timed out after {int(timeout)}s: {task_id}")
            sleep(poll_interval)

    # Türetilmiş analizler

    def _generate(self, video_id: str, kind: str, prompt: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"video_id": video_id, "type": kind}
        if prompt:
            body["prompt"] = prompt
        return self._request("POST", "/summarize", json=body)

    def generate_summary(self, video_id: str) -> str:
        data = self._generate(video_id, "summary", SUMMARY_PROMPT)
        return data.get("summary") or data.get("data") or ""

    def generate_chapters(self, video_id: str) -> list[dict[str, Any]]:
        return self._generate(video_id, "chapter").get("chapters") or []

    def generate_highlights(self, video_id: str) -> list[dict[str, Any]]:
        return self._generate(video_id, "highlight").get("highlights") or []

    def get_video_details(self, video_id: str, index_id: str | None = None) -> dict[str, Any]:
        endpoint = f"/indexes/{index_id}/videos/{video_id}" if index_id else f"/videos/{video_id}"
        return self._request("GET", endpoint)

    def analyze_indexed_video(self, video_id: str, index_id: str | None = None) -> dict[str, Any]:
        """
        Özet, bölümler ve öne çıkanları paralel ister; her biri bağımsız, hata boş değere düşer.
        Ardından metadata (opsiyonel) alınır. Bu metot sağlayıcı hatası fırlatmaz.
        """
        parts: dict[str, tuple[Callable[[str], Any], Any]] = {
            "summary": (self.generate_summary, ""),
            "chapters": (self.generate_chapters, []),
            "highlights": (self.generate_highlights, []),
        }
        result: dict[str, Any] = {"video_id": video_id}
        with ThreadPoolExecutor(max_workers=len(parts), thread_name_prefix="harvest") as pool:
            futures = {name: pool.submit(fn, video_id) for name, (fn, _) in parts.items()}
            for name, future in futures.items():
                try:
                    result[name] = future.result()
                except Exception as e:
                    logger.warning("Harvest %s failed for video %s: %s", name, video_id, e)
                    result[name] = parts[name][1]

        try:
            details = self.get_video_details(video_id, index_id)
        except Exception as e:
            logger.warning("Video details lookup failed for video %s: %s", video_id, e)
            details = {}
        result["metadata"] = details.get("system_metadata") or details.get("metadata") or dict(EMPTY_VIDEO_METADATA)
        result["thumbnails"] = (details.get("hls") or {}).get("thumbnail_urls") or []
        return result


_indexing_client: IndexingClient | None = None
_indexing_client_lock = threading.Lock()


def get_indexing_client() -> IndexingClient:
    """Süreç boyunca tek istemci (ilk kullanımda oluşturulur)."""
    global _indexing_client
    with _indexing_client_lock:
        if _indexing_client is None:
            _indexing_client = IndexingClient(
                api_key=settings.twelvelabs_api_key,
                base_url=settings.twelvelabs_base_url,
                index_id=settings.twelvelabs_index_id,
                index_name=settings.twelvelabs_index_name,
                timeout=settings.indexing_request_timeout_seconds,
            )
        return _indexing_client


def reset_indexing_client() -> None:
    global _indexing_client
    with _indexing_client_lock:
        if _indexing_client is not None:
            _indexing_client.close()
        _indexing_client = None
