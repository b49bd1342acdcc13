"""
PostgreSQL persistence for job postings.

The UNIQUE constraint on jobs.url is the only guard against two concurrent
units (or two overlapping runs) creating the same posting.
"""
import logging
from datetime import datetime
from typing import List, Optional

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extras import RealDictCursor

from core.errors import DuplicateKeyError
from core.models import JobPosting

logger = logging.getLogger(__name__)

JOB_COLUMNS = """
    id, title, company, location, posted_date_text, url,
    raw_description, enriched_description, enriched, created_at
"""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS jobs (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title TEXT NOT NULL,
    company TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    posted_date_text TEXT NOT NULL DEFAULT '',
    url TEXT NOT NULL,
    raw_description TEXT,
    enriched_description TEXT,
    enriched BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT jobs_url_key UNIQUE (url),
    CONSTRAINT jobs_enriched_has_text CHECK (NOT enriched OR enriched_description IS NOT NULL)
);
CREATE INDEX IF NOT EXISTS jobs_pending_idx ON jobs (created_at) WHERE enriched = FALSE;
CREATE INDEX IF NOT EXISTS jobs_created_at_idx ON jobs (created_at);
"""


class JobStore:
    """Job store backed by a PostgreSQL `jobs` table."""

    def __init__(self, db_url: str, connect_timeout: int = 10):
        self.db_url = db_url
        self.connect_timeout = connect_timeout

    def _get_db_conn(self):
        """Get database connection"""
        return psycopg2.connect(self.db_url, connect_timeout=self.connect_timeout)

    def ensure_schema(self):
        conn = self._get_db_conn()
        try:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
            logger.info("[job_store] Schema ready")
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ping(self) -> bool:
        try:
            conn = psycopg2.connect(self.db_url, connect_timeout=1)
        except Exception:
            return False
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
            return True
        except Exception:
            return False
        finally:
            conn.close()

    def find_by_url(self, url: str) -> Optional[JobPosting]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"SELECT {JOB_COLUMNS} FROM jobs WHERE url = %s", (url,))
                row = cur.fetchone()
                return JobPosting.from_row(row) if row else None
        finally:
            conn.close()

    def create(self, posting: JobPosting) -> JobPosting:
        """
        Insert a new posting.

        Raises:
            DuplicateKeyError: a posting with the same url already exists
        """
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    INSERT INTO jobs (title, company, location, posted_date_text, url, raw_description)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING {JOB_COLUMNS}
                    """,
                    (
                        posting.title,
                        posting.company,
                        posting.location,
                        posting.posted_date_text,
                        posting.url,
                        posting.raw_description,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
            logger.debug(f"[job_store] Created job {row['id']} for {posting.url}")
            return JobPosting.from_row(row)
        except pg_errors.UniqueViolation:
            conn.rollback()
            raise DuplicateKeyError(posting.url)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def select_pending(self, limit: int) -> List[JobPosting]:
        """Oldest postings that have raw text and have not been enriched yet."""
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {JOB_COLUMNS}
                    FROM jobs
                    WHERE enriched = FALSE
                      AND raw_description IS NOT NULL
                      AND raw_description <> ''
                    ORDER BY created_at ASC
                    LIMIT %s
                    """,
                    (limit,),
                )
                return [JobPosting.from_row(row) for row in cur.fetchall()]
        finally:
            conn.close()

    def mark_enriched(self, job_id: str, text: str) -> bool:
        """Store the enrichment result. Returns False if the row no longer exists."""
        if not text:
            raise ValueError("enriched text must be non-empty")
        conn = self._get_db_conn()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE jobs
                    SET enriched_description = %s,
                        enriched = TRUE
                    WHERE id = %s
                    """,
                    (text, str(job_id)),
                )
                updated = cur.rowcount
            conn.commit()
            return updated > 0
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete_older_than(self, cutoff: datetime) -> int:
        conn = self._get_db_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM jobs WHERE created_at < %s", (cutoff,))
                deleted_count = cur.rowcount
            conn.commit()
            return deleted_count
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_recent(self, keyword: str = "", location: str = "", limit: int = 20) -> List[JobPosting]:
        """Newest postings whose title and location contain the given filters."""
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {JOB_COLUMNS}
                    FROM jobs
                    WHERE title ILIKE %s
                      AND location ILIKE %s
                    ORDER BY created_at DESC
                    LIMIT %s
                    """,
                    (f"%{keyword or ''}%", f"%{location or ''}%", limit),
                )
                return [JobPosting.from_row(row) for row in cur.fetchall()]
        finally:
            conn.close()
