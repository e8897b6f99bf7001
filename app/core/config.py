from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env proje kökünde: app/core/config.py -> app/core -> app -> kök
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

TRIGGER_MODES = ("thread", "loopback")


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./kurgu.db"
    # CORS: virgülle ayrılmış origin listesi
    cors_origins: str = "*"
    # IP başına dakikada max iş gönderimi (rate limit)
    rate_limit_per_minute: int = 60
    log_level: str = "INFO"
    # SQL sorgularını logla (geliştirme)
    sql_echo: bool = False
    admin_secret: str = ""  # /admin/* uçları için X-Admin-Secret
    # Dahili worker ucu (/api/video-jobs/{id}/process) için paylaşılan sır
    internal_worker_secret: str = ""
    # Loopback tetikleme: uygulamanın kendine ulaştığı adres
    public_base_url: str = "http://127.0.0.1:8000"
    # thread: aynı süreçte ayrık thread | loopback: dahili uca HTTP çağrısı
    trigger_mode: str = "thread"
    trigger_timeout_seconds: float = 5.0

    # Video anlama sağlayıcısı (TwelveLabs v1.3 sözleşmesi)
    twelvelabs_api_key: str = ""
    twelvelabs_index_id: str = ""
    twelvelabs_base_url: str = "https://api.twelvelabs.io/v1.3"
    twelvelabs_index_name: str = "kurgu"
    indexing_poll_interval_seconds: float = 5.0
    indexing_timeout_seconds: float = 600.0  # 10 dk sonra iş failed olur
    indexing_request_timeout_seconds: float = 30.0

    # Render dağıtım zinciri: AWS Batch -> Redis kuyruğu -> doğrudan worker -> sadece DB
    use_aws_batch: bool = False
    aws_region: str = "ap-southeast-2"
    aws_batch_job_queue: str = "kurgu-render-queue"
    aws_batch_job_definition: str = "kurgu-render"
    redis_url: str = ""
    redis_connect_timeout_seconds: float = 5.0
    render_queue_name: str = "render"
    worker_url: str = ""
    worker_secret: str = ""
    worker_timeout_seconds: float = 10.0
    # Tüm katmanlar düşerse iş DB'de queued kalır, polling worker alır
    render_db_fallback: bool = True

    # Kredi defteri: ilk render isteğinde açılan hesaba verilen başlangıç hakkı
    starting_credits: int = 3
    # Bu süreden uzun güncellenmeyen queued/processing işler "stale" sayılır
    stale_job_minutes: int = 15

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator(
        "twelvelabs_api_key",
        "internal_worker_secret",
        "admin_secret",
        "worker_secret",
        mode="before",
    )
    @classmethod
    def strip_secret(cls, v: str | None) -> str:
        """Boşluk/yanlış kopya kaynaklı hataları azaltır."""
        return (v or "").strip()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str | None) -> str:
        return (v or "INFO").strip().upper()

    @field_validator("trigger_mode", mode="before")
    @classmethod
    def normalize_trigger_mode(cls, v: str | None) -> str:
        mode = (v or "thread").strip().lower()
        return mode if mode in TRIGGER_MODES else "thread"

    @field_validator("twelvelabs_base_url", "public_base_url", "worker_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str:
        return (v or "").strip().rstrip("/")


settings = Settings()


def is_indexing_configured() -> bool:
    """Video anlama sağlayıcısı için API anahtarı tanımlı mı?"""
    return bool(settings.twelvelabs_api_key)
