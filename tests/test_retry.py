"""Yeniden deneme: sadece sahibin failed işi; görev id'si korunur ve işleme yeniden tetiklenir."""
import pytest
from fastapi.testclient import TestClient

from app.models import VideoJob
from app.services import job_store


def _failed_job(db, user_id=1) -> VideoJob:
    job = job_store.create_video_job(db, user_id=user_id, source_url="https://cdn.example.com/a.mp4")
    return job_store.update_video_job(
        db, job.id, status="failed", progress=40, provider_task_id="task-keep", error_message="Indexing task failed"
    )


def _reload(db, job_id) -> VideoJob:
    db.expire_all()
    return db.get(VideoJob, job_id)


def test_retry_resets_failed_job(client: TestClient, auth_headers, db, triggered):
    job = _failed_job(db)

    r = client.post(f"/api/video-jobs/{job.id}/retry", headers=auth_headers)

    assert r.status_code == 200
    assert r.json() == {"success": True, "job_id": job.id}
    assert triggered == [job.id]
    db.expire_all()
    job = db.get(VideoJob, job.id)
    assert job.status == "queued"
    assert job.progress == 0
    assert job.error_message is None
    assert job.provider_task_id == "task-keep"


def test_retry_other_users_job_forbidden(client: TestClient, other_headers, db, triggered):
    job = _failed_job(db, user_id=1)
    r = client.post(f"/api/video-jobs/{job.id}/retry", headers=other_headers)
    assert r.status_code == 403
    assert r.json()["code"] == "forbidden"
    assert triggered == []


def test_retry_missing_job(client: TestClient, auth_headers):
    r = client.post("/api/video-jobs/999/retry", headers=auth_headers)
    assert r.status_code == 404


@pytest.mark.parametrize("status,progress", [("queued", 0), ("processing", 42), ("done", 100)])
def test_retry_rejected_state_is_left_untouched(client: TestClient, auth_headers, db, triggered, status, progress):
    job = job_store.create_video_job(db, user_id=1, source_url="https://cdn.example.com/a.mp4")
    job = job_store.update_video_job(db, job.id, status=status, progress=progress, provider_task_id="task-1")
    updated_at = job.updated_at

    r = client.post(f"/api/video-jobs/{job.id}/retry", headers=auth_headers)

    assert r.status_code == 400
    assert r.json()["code"] == "invalid_state"
    assert triggered == []
    job = _reload(db, job.id)
    assert job.status == status
    assert job.progress == progress
    assert job.updated_at == updated_at
    assert job.provider_task_id == "task-1"
