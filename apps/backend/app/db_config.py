"""
Database configuration module.
Uses SUPABASE_DB_URL when present, otherwise DATABASE_URL.
"""

import os
import logging
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def mask_dsn(dsn: str) -> str:
    """Return the DSN with its password replaced by ***."""
    try:
        parsed = urlparse(dsn.replace('[', '').replace(']', ''))
    except Exception:
        return "<unparseable dsn>"
    if parsed.password:
        return dsn.replace(parsed.password, '***')
    return dsn


class DBConfig:
    """PostgreSQL connection settings read from the environment"""

    def __init__(self):
        self.supabase_db_url = os.getenv("SUPABASE_DB_URL")
        self.database_url = os.getenv("DATABASE_URL")

        if self.supabase_db_url and self.database_url:
            logger.info("[db_config] Both SUPABASE_DB_URL and DATABASE_URL set; using SUPABASE_DB_URL")

        if self.db_url:
            logger.info(f"[db_config] Database configured: {mask_dsn(self.db_url)}")
        else:
            logger.warning("[db_config] No database URL set (SUPABASE_DB_URL or DATABASE_URL) - storage disabled")

    @property
    def db_url(self) -> str | None:
        return self.supabase_db_url or self.database_url

    @property
    def is_db_enabled(self) -> bool:
        return bool(self.db_url)

