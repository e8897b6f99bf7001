from .config import is_indexing_configured, settings
from .database import engine, get_db, init_db, ping_db
from .errors import ServiceError

__all__ = ["engine", "get_db", "init_db", "is_indexing_configured", "ping_db", "ServiceError", "settings"]
