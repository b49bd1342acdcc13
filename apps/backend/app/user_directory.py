"""
Read-only access to users' search keywords.

The users table is owned by the account service; this module never writes it.
"""
import logging
from typing import List

import psycopg2

logger = logging.getLogger(__name__)


class UserDirectory:
    def __init__(self, db_url: str, connect_timeout: int = 10):
        self.db_url = db_url
        self.connect_timeout = connect_timeout

    def list_active_keywords(self) -> List[str]:
        """Raw keyword values of active users. Trimming and dedupe are left to the caller."""
        conn = psycopg2.connect(self.db_url, connect_timeout=self.connect_timeout)
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT keyword
                    FROM users
                    WHERE is_active = TRUE
                      AND keyword IS NOT NULL
                """)
                keywords = [row[0] for row in cur.fetchall()]
            logger.debug(f"[user_directory] {len(keywords)} active users with a keyword")
            return keywords
        finally:
            conn.close()
