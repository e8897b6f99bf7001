"""Engine ve oturumlar. Tablolar geliştirmede create_all, üretimde alembic (migrations/) ile kurulur."""
from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import settings

DEFAULT_DATABASE_URL = "sqlite:///./kurgu.db"


def _normalized_database_url(raw_url: str | None) -> str:
    """postgres:// ve sürücüsüz postgresql:// adresleri psycopg3 dialektine çevrilir; diğerleri aynen kalır."""
    url = (raw_url or "").strip() or DEFAULT_DATABASE_URL
    scheme, sep, rest = url.partition("://")
    if scheme in ("postgres", "postgresql"):
        return f"postgresql+psycopg{sep}{rest}"
    return url


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options: dict = {"connect_args": {"check_same_thread": False}}
    # In-memory SQLite: tek bağlantı, yoksa her oturum boş bir veritabanı görür
    if ":memory:" in url:
        options["poolclass"] = StaticPool
    return options


DATABASE_URL = _normalized_database_url(settings.database_url)
engine = create_engine(DATABASE_URL, echo=settings.sql_echo, **_engine_options(DATABASE_URL))


def get_db():
    with Session(engine) as session:
        yield session


def init_db() -> None:
    import app.models  # noqa: F401  tablo sınıfları metadata'ya kaydolsun

    SQLModel.metadata.create_all(engine)


def ping_db() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
