"""Admin: takılı işleri bulma ve yeniden tetikleme, render kuyruğu durumu."""
from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from app.main import app
from app.models import VideoJob
from app.services import job_store


def _age(db, job_id, minutes):
    job = db.get(VideoJob, job_id)
    job.updated_at = datetime.utcnow() - timedelta(minutes=minutes)
    db.add(job)
    db.commit()


def test_stale_jobs_listed_and_reconciled(client: TestClient, admin_headers, db, triggered):
    stuck = job_store.create_video_job(db, user_id=1, source_url="https://cdn.example.com/a.mp4")
    fresh = job_store.create_video_job(db, user_id=1, source_url="https://cdn.example.com/b.mp4")
    done = job_store.create_video_job(db, user_id=1, source_url="https://cdn.example.com/c.mp4")
    job_store.update_video_job(db, done.id, status="done", progress=100)
    _age(db, stuck.id, 60)
    _age(db, done.id, 60)

    r = client.get("/admin/video-jobs/stale", headers=admin_headers)
    assert r.status_code == 200
    assert [j["id"] for j in r.json()] == [stuck.id]

    r = client.post("/admin/video-jobs/reconcile", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"found": 1, "triggered": [stuck.id]}
    assert triggered == [stuck.id]
    assert fresh.id not in triggered


def test_render_queue_status(client: TestClient, admin_headers):
    r = client.get("/admin/render-queue", headers=admin_headers)
    assert r.status_code == 200
    j = r.json()
    assert [t["name"] for t in j["tiers"]] == ["batch", "redis", "worker", "database"]
    assert j["queue"] is None


def test_admin_endpoints_require_secret(client: TestClient):
    assert client.get("/admin/video-jobs/stale").status_code == 403
    assert client.post("/admin/video-jobs/reconcile").status_code == 403
    assert client.get("/admin/errors").status_code == 403


def test_unhandled_error_logged_with_owner(admin_headers, auth_headers, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("liste okunamadı")

    monkeypatch.setattr(job_store, "list_video_jobs", _boom)
    with TestClient(app, raise_server_exceptions=False) as c:
        r = c.get("/api/video-jobs", headers=auth_headers)
        assert r.status_code == 500
        assert r.json()["code"] == "internal_error"

        errors = c.get("/admin/errors", headers=admin_headers).json()

    assert errors[0]["endpoint"] == "/api/video-jobs"
    assert errors[0]["user_id"] == 1
    assert "liste okunamadı" in errors[0]["error_message"]
