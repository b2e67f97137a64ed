"""Database utilities for saved learner sessions and generation history."""

import json
import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Dict
from pathlib import Path

from models.curriculum import LearningProgress
from models.job import GenerationJob

logger = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = "opal"


class ProgressCorruptedError(Exception):
    """Raised when a saved session cannot be decoded."""
    pass


def init_database(db_path: str) -> None:
    """Initialize SQLite database with required tables."""
    db_file = Path(db_path)
    db_file.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS sessions (
                session_key TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS jobs (
                job_id TEXT PRIMARY KEY,
                subject TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                module_count INTEGER,
                videos_per_module TEXT,
                error_message TEXT
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_jobs_updated_at ON jobs(updated_at)')

        conn.commit()
        logger.debug(f"Database initialized at {db_path}")


@contextmanager
def get_db_connection(db_path: str):
    """Context manager for database connections."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row  # Enable dict-like access
    try:
        yield conn
    finally:
        conn.close()


def save_progress(progress: LearningProgress, db_path: str, session_key: str = DEFAULT_SESSION_KEY) -> None:
    """Save a learner session, replacing whatever was stored under the key."""
    data = json.dumps(progress.to_dict())
    with get_db_connection(db_path) as conn:
        conn.execute(
            'INSERT OR REPLACE INTO sessions (session_key, data, updated_at) VALUES (?, ?, ?)',
            (session_key, data, datetime.now().isoformat())
        )
        conn.commit()
    logger.debug(f"Saved progress for session '{session_key}' ({len(data)} bytes)")


def load_progress(db_path: str, session_key: str = DEFAULT_SESSION_KEY) -> Optional[LearningProgress]:
    """Load a learner session, or None when nothing is saved.

    Raises:
        ProgressCorruptedError: the stored blob is not a valid session
    """
    with get_db_connection(db_path) as conn:
        row = conn.execute(
            'SELECT data FROM sessions WHERE session_key = ?', (session_key,)
        ).fetchone()

    if row is None:
        return None

    try:
        return LearningProgress.from_dict(json.loads(row['data']))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ProgressCorruptedError(f"Saved session '{session_key}' is corrupted: {e}") from e


def has_saved_progress(db_path: str, session_key: str = DEFAULT_SESSION_KEY) -> bool:
    with get_db_connection(db_path) as conn:
        row = conn.execute(
            'SELECT 1 FROM sessions WHERE session_key = ?', (session_key,)
        ).fetchone()
    return row is not None


def clear_progress(db_path: str, session_key: str = DEFAULT_SESSION_KEY) -> None:
    with get_db_connection(db_path) as conn:
        conn.execute('DELETE FROM sessions WHERE session_key = ?', (session_key,))
        conn.commit()
    logger.info(f"Cleared saved session '{session_key}'")


def save_job(job: GenerationJob, db_path: str) -> None:
    """Save generation job state to database."""
    with get_db_connection(db_path) as conn:
        cursor = conn.cursor()

        job_data = job.to_dict()

        # Use INSERT OR REPLACE to handle both new and updated jobs
        cursor.execute('''
            INSERT OR REPLACE INTO jobs (
                job_id, subject, status, created_at, updated_at,
                module_count, videos_per_module, error_message
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            job_data['job_id'],
            job_data['subject'],
            job_data['status'],
            job_data['created_at'],
            job_data['updated_at'],
            job_data['module_count'],
            job_data['videos_per_module'],
            job_data['error_message'],
        ))

        conn.commit()
        logger.debug(f"Saved job: {job.job_id} - {job.status.value}")


def load_job(job_id: str, db_path: str) -> Optional[GenerationJob]:
    """Load a specific job from database."""
    with get_db_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute('SELECT * FROM jobs WHERE job_id = ?', (job_id,))
        row = cursor.fetchone()

        if row:
            return GenerationJob.from_dict(dict(row))
        return None


def get_job_statistics(db_path: str) -> Dict[str, int]:
    """Get statistics about jobs in the database."""
    with get_db_connection(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            SELECT status, COUNT(*) as count
            FROM jobs
            GROUP BY status
        ''')

        stats = {}
        for row in cursor.fetchall():
            stats[row['status']] = row['count']

        cursor.execute('SELECT COUNT(*) as total FROM jobs')
        stats['total'] = cursor.fetchone()['total']

        return stats


def get_recent_jobs(db_path: str, limit: int = 10) -> List[GenerationJob]:
    """Get most recent jobs for status display."""
    with get_db_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute('''
            SELECT * FROM jobs
            ORDER BY updated_at DESC
            LIMIT ?
        ''', (limit,))

        return [GenerationJob.from_dict(dict(row)) for row in cursor.fetchall()]
