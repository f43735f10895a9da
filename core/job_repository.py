#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Job Repository - SQLite persistence for translation jobs

Stores:
- translation_jobs: single, parent and child jobs
- qa_results: one QA result per completed job (JSON)
- corrections: reviewer corrections submitted against a job

Jobs are created, read and updated, never deleted. A failed job keeps no QA result.
"""

import json
import sqlite3
import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from config.logging_config import get_logger
from core.quality import QAResult

logger = get_logger(__name__)


class RepositoryError(Exception):
    """Persistence failure (wraps sqlite3 errors)"""
    pass


class JobStatus(str, Enum):
    """Job status states"""
    PENDING = "pending"          # Job created, waiting to start
    PROCESSING = "processing"    # Provider work in flight
    COMPLETED = "completed"      # Output (or all children) finished
    FAILED = "failed"            # Failed with errors

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def new_job_id() -> str:
    return str(uuid.uuid4())


def normalize_language(code: Optional[str]) -> str:
    """Language codes are stored upper-case ('de' -> 'DE')"""
    return (code or "").strip().upper()


@dataclass
class TranslationJob:
    """A translation job (single-language, parent or child)"""

    # Identification
    job_id: str
    user_id: str

    # Languages; a parent stores its targets comma-joined
    source_lang: str
    target_lang: str

    # Input/Output
    source_file_name: str
    source_file_path: str
    output_file_name: Optional[str] = None
    output_file_path: Optional[str] = None
    glossary_id: Optional[str] = None

    # Fan-out
    parent_job_id: Optional[str] = None
    is_multi_language: bool = False

    # Status
    status: JobStatus = JobStatus.PENDING
    error_message: Optional[str] = None
    warning_message: Optional[str] = None

    # Stats
    billed_characters: int = 0
    applied_corrections: int = 0

    # Provider handles while a document is in flight
    document_id: Optional[str] = None
    document_key: Optional[str] = None

    # Timestamps
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def target_languages(self) -> List[str]:
        return [lang for lang in self.target_lang.split(",") if lang]

    @property
    def is_child(self) -> bool:
        return self.parent_job_id is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        data = asdict(self)
        data['status'] = JobStatus(self.status).value
        return data


@dataclass
class CorrectionRecord:
    """A reviewer correction stored against a job"""
    job_id: str
    target_lang: str
    country_code: str
    original_text: str
    corrected_text: str
    correction_type: str
    submitted_by: str
    is_approved: bool = True
    id: Optional[int] = None
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Columns the orchestrator may change after creation
_UPDATABLE_COLUMNS = {
    'status', 'error_message', 'warning_message',
    'output_file_name', 'output_file_path',
    'billed_characters', 'applied_corrections',
    'document_id', 'document_key',
}


class JobRepository:
    """
    SQLite repository for translation jobs, QA results and corrections.

    Opens one connection per operation so it is safe to call from any task.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"JobRepository initialized: {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30)
        except sqlite3.Error as e:
            raise RepositoryError(f"Cannot open database {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise RepositoryError(f"Database error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS translation_jobs (
                    job_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    source_lang TEXT NOT NULL,
                    target_lang TEXT NOT NULL,
                    source_file_name TEXT NOT NULL,
                    source_file_path TEXT NOT NULL,
                    output_file_name TEXT,
                    output_file_path TEXT,
                    glossary_id TEXT,

                    parent_job_id TEXT REFERENCES translation_jobs(job_id),
                    is_multi_language INTEGER NOT NULL DEFAULT 0,

                    status TEXT NOT NULL DEFAULT 'pending',
                    error_message TEXT,
                    warning_message TEXT,

                    billed_characters INTEGER NOT NULL DEFAULT 0,
                    applied_corrections INTEGER NOT NULL DEFAULT 0,

                    document_id TEXT,
                    document_key TEXT,

                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_user
                ON translation_jobs(user_id, created_at DESC)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_parent
                ON translation_jobs(parent_job_id)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS qa_results (
                    job_id TEXT PRIMARY KEY REFERENCES translation_jobs(job_id),
                    quality_score INTEGER NOT NULL,
                    total_warnings INTEGER NOT NULL,
                    result_json TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS corrections (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_id TEXT NOT NULL REFERENCES translation_jobs(job_id),
                    target_lang TEXT NOT NULL,
                    country_code TEXT NOT NULL,
                    original_text TEXT NOT NULL,
                    corrected_text TEXT NOT NULL,
                    correction_type TEXT NOT NULL,
                    submitted_by TEXT NOT NULL,
                    is_approved INTEGER NOT NULL DEFAULT 1,
                    created_at REAL NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_corrections_job
                ON corrections(job_id)
            """)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def create_job(self, job: TranslationJob) -> TranslationJob:
        """Insert a new job."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO translation_jobs (
                    job_id, user_id, source_lang, target_lang,
                    source_file_name, source_file_path,
                    output_file_name, output_file_path, glossary_id,
                    parent_job_id, is_multi_language,
                    status, error_message, warning_message,
                    billed_characters, applied_corrections,
                    document_id, document_key,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                job.job_id, job.user_id, job.source_lang, job.target_lang,
                job.source_file_name, job.source_file_path,
                job.output_file_name, job.output_file_path, job.glossary_id,
                job.parent_job_id, 1 if job.is_multi_language else 0,
                JobStatus(job.status).value, job.error_message, job.warning_message,
                job.billed_characters, job.applied_corrections,
                job.document_id, job.document_key,
                job.created_at, job.updated_at,
            ))

        logger.debug(f"Created job {job.job_id} ({job.source_lang}->{job.target_lang})")
        return job

    def get_job(self, job_id: str) -> Optional[TranslationJob]:
        """Get a job by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM translation_jobs WHERE job_id = ?",
                (job_id,)
            ).fetchone()

        return self._row_to_job(row) if row else None

    def get_children(self, parent_job_id: str) -> List[TranslationJob]:
        """Child jobs of a parent, in creation order."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT * FROM translation_jobs
                WHERE parent_job_id = ?
                ORDER BY created_at ASC, rowid ASC
            """, (parent_job_id,)).fetchall()

        return [self._row_to_job(row) for row in rows]

    def list_jobs(self, user_id: str, limit: int = 50) -> List[TranslationJob]:
        """Top-level jobs (single or parent) of a user, most recent first."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT * FROM translation_jobs
                WHERE user_id = ? AND parent_job_id IS NULL
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
            """, (user_id, limit)).fetchall()

        return [self._row_to_job(row) for row in rows]

    def update_job(self, job_id: str, **fields) -> TranslationJob:
        """
        Update selected columns of a job and return the stored job.

        Raises:
            RepositoryError: unknown column or job does not exist
        """
        with self._get_connection() as conn:
            self._update_columns(conn, job_id, fields)
        return self._require_job(job_id)

    def _update_columns(self, conn, job_id: str, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if unknown:
            raise RepositoryError(f"Cannot update columns: {', '.join(sorted(unknown))}")

        if 'status' in fields:
            fields['status'] = JobStatus(fields['status']).value
        fields['updated_at'] = time.time()

        assignments = ", ".join(f"{column} = ?" for column in fields)
        cursor = conn.execute(
            f"UPDATE translation_jobs SET {assignments} WHERE job_id = ?",
            (*fields.values(), job_id)
        )
        if cursor.rowcount == 0:
            raise RepositoryError(f"Job not found: {job_id}")

    def _require_job(self, job_id: str) -> TranslationJob:
        job = self.get_job(job_id)
        if job is None:
            raise RepositoryError(f"Job not found: {job_id}")
        return job

    def mark_processing(self, job_id: str) -> TranslationJob:
        return self.update_job(job_id, status=JobStatus.PROCESSING)

    def set_document_handle(self, job_id: str, document_id: str, document_key: str) -> TranslationJob:
        """Persist provider handles while a document is in flight."""
        return self.update_job(job_id, document_id=document_id, document_key=document_key)

    def mark_completed(
        self,
        job_id: str,
        output_file_name: str,
        output_file_path: str,
        billed_characters: int = 0,
        applied_corrections: int = 0,
        qa_result: Optional[QAResult] = None
    ) -> TranslationJob:
        """
        Mark a leaf job completed with its output.

        The QA result and the completed status are written in one
        transaction: either both are stored or neither is.
        """
        with self._get_connection() as conn:
            self._update_columns(conn, job_id, {
                'status': JobStatus.COMPLETED,
                'output_file_name': output_file_name,
                'output_file_path': output_file_path,
                'billed_characters': billed_characters,
                'applied_corrections': applied_corrections,
                'error_message': None,
                'document_id': None,
                'document_key': None,
            })
            if qa_result is not None:
                self._upsert_qa_result(conn, job_id, qa_result)
        return self._require_job(job_id)

    def mark_failed(self, job_id: str, error_message: str) -> TranslationJob:
        """Mark a job failed; no output or QA result is ever kept for a failed job."""
        with self._get_connection() as conn:
            self._update_columns(conn, job_id, {
                'status': JobStatus.FAILED,
                'error_message': error_message,
                'output_file_name': None,
                'output_file_path': None,
                'document_id': None,
                'document_key': None,
            })
            conn.execute("DELETE FROM qa_results WHERE job_id = ?", (job_id,))
        return self._require_job(job_id)

    # ------------------------------------------------------------------
    # QA results
    # ------------------------------------------------------------------

    def save_qa_result(self, job_id: str, result: QAResult) -> None:
        """Save or replace the QA result of a job."""
        with self._get_connection() as conn:
            self._upsert_qa_result(conn, job_id, result)

    def _upsert_qa_result(self, conn, job_id: str, result: QAResult) -> None:
        conn.execute("""
            INSERT INTO qa_results (job_id, quality_score, total_warnings, result_json, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(job_id) DO UPDATE SET
                quality_score = excluded.quality_score,
                total_warnings = excluded.total_warnings,
                result_json = excluded.result_json
        """, (
            job_id,
            result.quality_score,
            result.total_warnings,
            json.dumps(result.to_dict(), ensure_ascii=False),
            time.time(),
        ))

    def get_qa_result(self, job_id: str) -> Optional[QAResult]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT result_json FROM qa_results WHERE job_id = ?",
                (job_id,)
            ).fetchone()

        return QAResult.from_dict(json.loads(row['result_json'])) if row else None

    def get_quality_scores(self, job_ids: Iterable[str]) -> Dict[str, int]:
        """job_id -> quality score for the jobs that have one."""
        job_ids = list(job_ids)
        if not job_ids:
            return {}

        placeholders = ", ".join("?" for _ in job_ids)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT job_id, quality_score FROM qa_results WHERE job_id IN ({placeholders})",
                job_ids
            ).fetchall()

        return {row['job_id']: row['quality_score'] for row in rows}

    # ------------------------------------------------------------------
    # Corrections
    # ------------------------------------------------------------------

    def add_correction(self, record: CorrectionRecord) -> CorrectionRecord:
        with self._get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO corrections (
                    job_id, target_lang, country_code, original_text, corrected_text,
                    correction_type, submitted_by, is_approved, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.job_id, record.target_lang, record.country_code,
                record.original_text, record.corrected_text,
                record.correction_type, record.submitted_by,
                1 if record.is_approved else 0, record.created_at,
            ))
            record.id = cursor.lastrowid

        return record

    def list_corrections(self, job_id: str) -> List[CorrectionRecord]:
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT * FROM corrections
                WHERE job_id = ?
                ORDER BY created_at DESC, id DESC
            """, (job_id,)).fetchall()

        return [
            CorrectionRecord(
                id=row['id'],
                job_id=row['job_id'],
                target_lang=row['target_lang'],
                country_code=row['country_code'],
                original_text=row['original_text'],
                corrected_text=row['corrected_text'],
                correction_type=row['correction_type'],
                submitted_by=row['submitted_by'],
                is_approved=bool(row['is_approved']),
                created_at=row['created_at'],
            )
            for row in rows
        ]

    def _row_to_job(self, row: sqlite3.Row) -> TranslationJob:
        """Convert database row to TranslationJob."""
        return TranslationJob(
            job_id=row['job_id'],
            user_id=row['user_id'],
            source_lang=row['source_lang'],
            target_lang=row['target_lang'],
            source_file_name=row['source_file_name'],
            source_file_path=row['source_file_path'],
            output_file_name=row['output_file_name'],
            output_file_path=row['output_file_path'],
            glossary_id=row['glossary_id'],
            parent_job_id=row['parent_job_id'],
            is_multi_language=bool(row['is_multi_language']),
            status=JobStatus(row['status']),
            error_message=row['error_message'],
            warning_message=row['warning_message'],
            billed_characters=row['billed_characters'],
            applied_corrections=row['applied_corrections'],
            document_id=row['document_id'],
            document_key=row['document_key'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )
