"""process_video_job: durum makinesi, devam etme, idempotentlik, hata yazımı, asset'e geri yazma."""
import json

import httpx
from sqlmodel import Session

from app.core.database import engine
from app.models import MediaAsset, VideoJob
from app.services import job_store
from app.services.indexing import IndexingClient, IndexingError, IndexingTask
from app.services.video_jobs import process_video_job


def _process(job_id, indexer, **kwargs):
    kwargs.setdefault("poll_interval", 0)
    kwargs.setdefault("timeout", 60)
    return process_video_job(job_id, indexer=indexer, sleep=lambda s: None, **kwargs)


def _job(db, **fields) -> VideoJob:
    job = job_store.create_video_job(db, user_id=1, source_url="https://cdn.example.com/a.mp4")
    if fields:
        job = job_store.update_video_job(db, job.id, **fields)
    return job


def _reload(db, job_id) -> VideoJob:
    db.expire_all()
    return db.get(VideoJob, job_id)


def test_happy_path_reaches_done(db, fake_indexer):
    indexer = fake_indexer(statuses=[("pending", 0), ("indexing", 50), ("ready", 100)], video_id="vid-9")
    job = _job(db)

    outcome = _process(job.id, indexer)

    assert outcome.status == "done"
    assert outcome.video_id == "vid-9"
    job = _reload(db, job.id)
    assert job.status == "done"
    assert job.progress == 100
    assert job.error_message is None
    assert job.provider_task_id == "task-1"
    assert job.result_json["video_id"] == "vid-9"
    assert job.result_json["task_id"] == "task-1"
    assert job.result_json["summary"].startswith("Sahilde")
    assert job.result_json["chapters"][0]["chapter_title"] == "Giriş"
    assert indexer.created == ["https://cdn.example.com/a.mp4"]


def test_done_job_is_not_reprocessed(db, fake_indexer):
    indexer = fake_indexer(statuses=[("ready", 100)])
    job = _job(db)
    _process(job.id, indexer)
    before = _reload(db, job.id)
    updated_at = before.updated_at

    outcome = _process(job.id, indexer)

    assert outcome.status == "already_done"
    assert outcome.video_id == "vid-1"
    assert len(indexer.created) == 1
    assert indexer.analyzed == ["vid-1"]
    assert _reload(db, job.id).updated_at == updated_at


def test_unknown_job(fake_indexer):
    assert _process(12345, fake_indexer()).status == "not_found"


def test_resumes_ready_task_without_creating_new_one(db, fake_indexer):
    indexer = fake_indexer()
    indexer.existing["task-old"] = IndexingTask(task_id="task-old", status="ready", percentage=100, video_id="vid-old")
    job = _job(db, status="failed", progress=40, provider_task_id="task-old", error_message="timeout")

    outcome = _process(job.id, indexer)

    assert outcome.status == "done"
    assert indexer.created == []
    job = _reload(db, job.id)
    assert job.result_json["video_id"] == "vid-old"
    assert job.result_json["task_id"] == "task-old"
    assert job.provider_task_id == "task-old"


def test_failed_previous_task_gets_new_task(db, fake_indexer):
    indexer = fake_indexer(statuses=[("ready", 100)])
    indexer.existing["task-old"] = IndexingTask(task_id="task-old", status="failed")
    job = _job(db, provider_task_id="task-old")

    assert _process(job.id, indexer).status == "done"
    assert len(indexer.created) == 1
    assert _reload(db, job.id).provider_task_id == "task-1"


def test_unreadable_previous_task_gets_new_task(db, fake_indexer):
    indexer = fake_indexer(statuses=[("ready", 100)])
    indexer.existing["task-gone"] = IndexingError("404 task not found")
    job = _job(db, provider_task_id="task-gone")

    assert _process(job.id, indexer).status == "done"
    assert len(indexer.created) == 1


def test_provider_error_marks_failed_and_keeps_progress(db, fake_indexer):
    indexer = fake_indexer(fail_create=IndexingError("HTTP 500 from provider"))
    job = _job(db)

    outcome = _process(job.id, indexer)

    assert outcome.status == "failed"
    assert "HTTP 500" in outcome.error
    job = _reload(db, job.id)
    assert job.status == "failed"
    assert "HTTP 500" in job.error_message
    # index hazır (10) noktasında kaldı
    assert job.progress == 10
    assert job.provider_task_id is None


def test_failed_indexing_task(db, fake_indexer):
    indexer = fake_indexer(statuses=[("indexing", 20), ("failed", 20)])
    job = _job(db)

    outcome = _process(job.id, indexer)

    assert outcome.status == "failed"
    job = _reload(db, job.id)
    assert job.status == "failed"
    assert "task-1" in job.error_message
    # Görev id'si retry için saklanır
    assert job.provider_task_id == "task-1"


def test_timeout_marks_failed(db, fake_indexer):
    indexer = fake_indexer(statuses=[("indexing", 30)])
    job = _job(db)

    outcome = _process(job.id, indexer, timeout=-1)

    assert outcome.status == "failed"
    assert "timed out" in _reload(db, job.id).error_message


def test_progress_never_moves_backwards_while_processing(db, fake_indexer):
    indexer = fake_indexer()
    indexer.existing["task-slow"] = IndexingTask(task_id="task-slow", status="indexing", percentage=10)
    job = _job(db, status="processing", progress=60, provider_task_id="task-slow")

    outcome = _process(job.id, indexer, timeout=-1)

    assert outcome.status == "failed"
    # 10% -> 20 olurdu; mevcut 60 korunur
    assert _reload(db, job.id).progress == 60


def test_summary_written_back_to_asset(db, fake_indexer):
    asset = MediaAsset(owner_id=1, url="https://cdn.example.com/a.mp4", metadata_json={"original_name": "a.mp4"})
    db.add(asset)
    db.commit()
    db.refresh(asset)
    job = job_store.create_video_job(
        db, user_id=1, source_url=asset.url, metadata={"asset_id": asset.id}
    )

    assert _process(job.id, fake_indexer(statuses=[("ready", 100)])).status == "done"

    db.expire_all()
    asset = db.get(MediaAsset, asset.id)
    assert asset.status == "ready"
    assert asset.metadata_json["original_name"] == "a.mp4"
    assert asset.metadata_json["description"].startswith("Sahilde")
    assert asset.metadata_json["ai_generated"] is True
    assert asset.metadata_json["video_job_id"] == job.id


def test_missing_asset_does_not_fail_job(db, fake_indexer):
    job = job_store.create_video_job(
        db, user_id=1, source_url="https://cdn.example.com/a.mp4", metadata={"asset_id": 999}
    )
    assert _process(job.id, fake_indexer(statuses=[("ready", 100)])).status == "done"
    assert _reload(db, job.id).status == "done"


def test_late_failure_does_not_overwrite_finished_job(db, fake_indexer):
    job = _job(db)
    finisher = fake_indexer()
    finisher.existing["task-1"] = IndexingTask(task_id="task-1", status="ready", percentage=100, video_id="vid-1")

    class LateIndexer(fake_indexer):
        def get_task_status(self, task_id):
            # Bu yoklama sürerken ikinci bir çağrı aynı görevden işi bitirir
            assert _process(job.id, finisher).status == "done"
            return IndexingTask(task_id=task_id, status="failed", percentage=20)

    outcome = _process(job.id, LateIndexer())

    assert outcome.status == "already_done"
    assert outcome.video_id == "vid-1"
    job = _reload(db, job.id)
    assert job.status == "done"
    assert job.progress == 100
    assert job.error_message is None
    assert job.result_json["video_id"] == "vid-1"


def test_progress_sequence_is_non_decreasing(db, fake_indexer):
    job = _job(db)
    seen = [_reload(db, job.id).progress]

    def snapshot():
        with Session(engine) as s:
            seen.append(s.get(VideoJob, job.id).progress)

    class ObservedIndexer(fake_indexer):
        def get_or_create_default_index(self):
            snapshot()
            return super().get_or_create_default_index()

        def create_task(self, video_url, index_id, language="en"):
            snapshot()
            return super().create_task(video_url, index_id, language)

        def get_task_status(self, task_id):
            snapshot()
            return super().get_task_status(task_id)

        def analyze_indexed_video(self, video_id, index_id=None):
            snapshot()
            return super().analyze_indexed_video(video_id, index_id)

    # Sağlayıcı yüzdesi geri düşse bile genel ilerleme düşmez
    indexer = ObservedIndexer(statuses=[("indexing", 60), ("indexing", 20), ("ready", 100)])
    assert _process(job.id, indexer).status == "done"
    seen.append(_reload(db, job.id).progress)

    assert seen == sorted(seen)
    assert seen[0] == 0
    assert seen[-1] == 100
    assert 48 in seen


def _provider(paths: list[str], summary_timeout: bool = False):
    """Sağlayıcı uçlarının httpx.MockTransport karşılığı; istenen yolları kaydeder."""

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1.3")
        paths.append(f"{request.method} {path}")
        if path == "/indexes":
            return httpx.Response(200, json={"data": [{"_id": "idx-1", "index_name": "kurgu"}]})
        if path == "/tasks":
            return httpx.Response(200, json={"_id": "task-1"})
        if path.startswith("/tasks/"):
            return httpx.Response(
                200,
                json={"_id": path.split("/")[-1], "status": "ready", "video_id": "vid-1", "process": {"percentage": 100}},
            )
        if path == "/summarize":
            kind = json.loads(request.read())["type"]
            if kind == "summary":
                if summary_timeout:
                    raise httpx.ReadTimeout("summary timed out", request=request)
                return httpx.Response(200, json={"summary": "Kısa özet."})
            if kind == "chapter":
                return httpx.Response(200, json={"chapters": [{"start": 0, "end": 8, "chapter_title": "Açılış"}]})
            return httpx.Response(200, json={"highlights": [{"start": 2, "end": 4, "highlight": "Gol"}]})
        if path == "/indexes/idx-1/videos/vid-1":
            return httpx.Response(
                200,
                json={
                    "system_metadata": {"filename": "mac.mp4", "duration": 90.0},
                    "hls": {"thumbnail_urls": ["https://cdn.example.com/t.jpg"]},
                },
            )
        return httpx.Response(404, json={"message": "not found"})

    return handler


def _real_client(paths, **kwargs) -> IndexingClient:
    return IndexingClient(
        "tl-key", base_url="https://api.test/v1.3", transport=httpx.MockTransport(_provider(paths, **kwargs))
    )


def test_summary_timeout_still_completes_job(db):
    job = _job(db)
    paths: list[str] = []

    outcome = _process(job.id, _real_client(paths, summary_timeout=True))

    assert outcome.status == "done"
    job = _reload(db, job.id)
    assert job.status == "done"
    assert job.progress == 100
    assert job.error_message is None
    assert job.result_json["summary"] == ""
    assert job.result_json["chapters"][0]["chapter_title"] == "Açılış"
    assert job.result_json["highlights"][0]["highlight"] == "Gol"
    assert job.result_json["metadata"]["filename"] == "mac.mp4"
    assert job.result_json["thumbnails"] == ["https://cdn.example.com/t.jpg"]


def test_resumed_task_reads_details_from_index(db):
    job = _job(db, status="failed", progress=40, provider_task_id="task-old", error_message="timeout")
    paths: list[str] = []

    assert _process(job.id, _real_client(paths)).status == "done"

    assert "POST /tasks" not in paths
    assert "GET /indexes/idx-1/videos/vid-1" in paths
    assert "GET /videos/vid-1" not in paths
    job = _reload(db, job.id)
    assert job.result_json["task_id"] == "task-old"
    assert job.result_json["metadata"]["duration"] == 90.0
