"""Pytest fixtures: test client, in-memory SQLite, token başlıkları, sahte sağlayıcı ve dağıtım katmanları."""
import os

import pytest
from fastapi.testclient import TestClient

# app import edilmeden önce set edilmeli
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("INTERNAL_WORKER_SECRET", "test-internal-secret")
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "20")
os.environ["TRIGGER_MODE"] = "thread"
os.environ["TWELVELABS_API_KEY"] = ""
# Dağıtım zincirinde sadece DB katmanı kalsın
os.environ["USE_AWS_BATCH"] = "false"
os.environ["REDIS_URL"] = ""
os.environ["WORKER_URL"] = ""
os.environ["RENDER_DB_FALLBACK"] = "true"

from sqlmodel import Session, SQLModel

from app.main import app
from app.api import admin as admin_api
from app.core.database import engine
from app.core.rate_limit import limiter
from app.core.security import create_access_token
from app.models import Project
from app.services import video_jobs as video_jobs_service
from app.services.indexing import IndexingClient, IndexingTask, reset_indexing_client
from app.services.render_queue import DispatchTier, reset_render_dispatcher

INTERNAL_HEADERS = {"X-Internal-Secret": "test-internal-secret"}
ADMIN_HEADERS = {"X-Admin-Secret": "test-admin-secret"}


@pytest.fixture(autouse=True)
def _fresh_state():
    """Her test boş tablolar, sıfır rate limit sayacı ve yeni dağıtıcı ile başlar."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    limiter.reset()
    reset_render_dispatcher()
    reset_indexing_client()
    yield
    reset_render_dispatcher()
    reset_indexing_client()


@pytest.fixture(autouse=True)
def triggered(monkeypatch):
    """Arka plan tetiklemesi yerine çağrılan iş id'lerini kaydeder."""
    calls: list[int] = []

    def _record(job_id: int) -> bool:
        calls.append(job_id)
        return True

    monkeypatch.setattr(video_jobs_service, "trigger_video_job", _record)
    monkeypatch.setattr(admin_api, "trigger_video_job", _record)
    return calls


@pytest.fixture(scope="function")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


def token_headers(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@pytest.fixture
def auth_headers():
    return token_headers(1)


@pytest.fixture
def other_headers():
    return token_headers(2)


@pytest.fixture
def internal_headers():
    return dict(INTERNAL_HEADERS)


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture
def make_project(db):
    def _make(owner_id: int = 1, timeline: dict | None = None, title: str = "Tatil videosu") -> Project:
        project = Project(
            owner_id=owner_id,
            title=title,
            timeline_json={"clips": [{"asset_id": 1, "start": 0, "end": 5}]} if timeline is None else timeline,
        )
        db.add(project)
        db.commit()
        db.refresh(project)
        return project

    return _make


class FakeIndexer:
    """
    Sağlayıcı sahtesi. statuses: wait_for_task sırasında dönen (durum, yüzde) dizisi (son eleman tekrarlanır).
    existing: önceden kayıtlı görevler için task_id -> IndexingTask veya Exception.
    """

    def __init__(self, statuses=None, video_id: str = "vid-1", fail_create: Exception | None = None):
        self.statuses = list(statuses or [("indexing", 40), ("ready", 100)])
        self.video_id = video_id
        self.fail_create = fail_create
        self.existing: dict[str, object] = {}
        self.created: list[str] = []
        self.analyzed: list[str] = []

    def get_or_create_default_index(self) -> str:
        return "idx-1"

    def create_task(self, video_url: str, index_id: str, language: str = "en") -> str:
        if self.fail_create:
            raise self.fail_create
        self.created.append(video_url)
        return f"task-{len(self.created)}"

    def get_task_status(self, task_id: str) -> IndexingTask:
        if task_id in self.existing:
            known = self.existing[task_id]
            if isinstance(known, Exception):
                raise known
            return known
        status, percentage = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return IndexingTask(
            task_id=task_id,
            status=status,
            percentage=percentage,
            video_id=self.video_id if status == "ready" else None,
        )

    # Yoklama döngüsü gerçek istemcideki ile aynı
    wait_for_task = IndexingClient.wait_for_task

    def analyze_indexed_video(self, video_id: str, index_id: str | None = None) -> dict:
        self.analyzed.append(video_id)
        return {
            "video_id": video_id,
            "summary": "Sahilde gün batımı, iki kişi yürüyor.",
            "chapters": [{"start": 0, "end": 12, "chapter_title": "Giriş"}],
            "highlights": [],
            "metadata": {"filename": "tatil.mp4", "duration": 42.0, "fps": 30, "width": 1920, "height": 1080, "size": 0},
            "thumbnails": [],
        }


@pytest.fixture
def fake_indexer():
    return FakeIndexer


class RecordingTier(DispatchTier):
    def __init__(self, name: str, reference: str | None = "ref-1", error: Exception | None = None, configured: bool = True):
        self.name = name
        self.reference = reference
        self.error = error
        self.configured = configured
        self.submitted = []

    def is_configured(self) -> bool:
        return self.configured

    def submit(self, payload):
        self.submitted.append(payload)
        if self.error:
            raise self.error
        return self.reference


@pytest.fixture
def recording_tier():
    return RecordingTier
