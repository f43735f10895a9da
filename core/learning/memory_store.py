#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Correction Memory - SQLite store of learned corrections

Two kinds of corrections are learned from human reviewers:
- LearnedSegment: exact source segment -> improved translation
- LearnedTerm: term-level override, used like a glossary entry

Both are keyed by (source, source_lang, target_lang). Repeated corrections
increment the counter and overwrite the stored translation.
"""

import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from config.constants import CONFIDENCE_USAGE_DIVISOR, MEMORY_LOCK_STRIPES, MIN_TERM_FREQUENCY
from config.logging_config import get_logger

logger = get_logger(__name__)


class CorrectionType(str, Enum):
    """Kinds of reviewer corrections"""
    TERMINOLOGY = "terminology"
    PHRASING = "phrasing"


@dataclass
class LearnedSegment:
    """Exact segment override"""
    id: Optional[int] = None
    source_text: str = ""
    target_text: Optional[str] = None  # Original machine translation, if known
    improved_text: str = ""
    source_lang: str = ""
    target_lang: str = ""
    usage_count: int = 1
    last_used: Optional[float] = None
    created_at: Optional[float] = None

    @property
    def confidence(self) -> float:
        """Confidence grows with reuse: usage_count / 3, capped at 1.0"""
        return min(self.usage_count / CONFIDENCE_USAGE_DIVISOR, 1.0)


@dataclass
class LearnedTerm:
    """Term-level override"""
    id: Optional[int] = None
    source_term: str = ""
    target_term: str = ""
    source_lang: str = ""
    target_lang: str = ""
    frequency: int = 1
    created_at: Optional[float] = None
    updated_at: Optional[float] = None


class TermEntry(NamedTuple):
    """Glossary-ready view of a learned term"""
    source: str
    target: str
    frequency: int


def extract_term(text: str) -> str:
    """
    Term stored for a terminology correction

    A single token is used as-is, anything longer is kept as the whole
    trimmed phrase.
    """
    parts = text.split()
    return parts[0] if len(parts) == 1 else text.strip()


class CorrectionMemoryStore:
    """SQLite-backed correction memory with atomic upserts"""

    def __init__(self, db_path: Path):
        """
        Initialize correction memory

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)

        # Striped write locks: ON CONFLICT keeps each upsert atomic, the
        # stripe keeps increment + overwrite ordered for a key.
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(MEMORY_LOCK_STRIPES)]

        self._init_database()

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Initialize database schema"""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS learned_segments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_text TEXT NOT NULL,
                    target_text TEXT,
                    improved_text TEXT NOT NULL,
                    source_lang TEXT NOT NULL,
                    target_lang TEXT NOT NULL,
                    usage_count INTEGER NOT NULL DEFAULT 1,
                    last_used REAL NOT NULL,
                    created_at REAL NOT NULL,
                    UNIQUE (source_text, source_lang, target_lang)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS learned_terms (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_term TEXT NOT NULL,
                    target_term TEXT NOT NULL,
                    source_lang TEXT NOT NULL,
                    target_lang TEXT NOT NULL,
                    frequency INTEGER NOT NULL DEFAULT 1,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    UNIQUE (source_term, source_lang, target_lang)
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_terms_pair_freq
                ON learned_terms(source_lang, target_lang, frequency DESC)
            """)

    def _lock_for(self, kind: str, key: str, source_lang: str, target_lang: str) -> threading.Lock:
        return self._locks[hash((kind, key, source_lang, target_lang)) % len(self._locks)]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_segment_override(
        self,
        source_text: str,
        source_lang: str,
        target_lang: str
    ) -> Optional[LearnedSegment]:
        """
        Exact (trimmed, case-sensitive) segment lookup

        Returns the row with the highest usage count, or None.
        """
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT * FROM learned_segments
                WHERE source_text = ?
                AND source_lang = ?
                AND target_lang = ?
                ORDER BY usage_count DESC
                LIMIT 1
            """, (source_text.strip(), source_lang, target_lang)).fetchone()

        return self._row_to_segment(row) if row else None

    def list_terms(self, source_lang: str, target_lang: str) -> List[TermEntry]:
        """Learned terms for a language pair, most frequent first"""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT source_term, target_term, frequency FROM learned_terms
                WHERE source_lang = ?
                AND target_lang = ?
                AND frequency >= ?
                ORDER BY frequency DESC, id ASC
            """, (source_lang, target_lang, MIN_TERM_FREQUENCY)).fetchall()

        return [
            TermEntry(row['source_term'], row['target_term'], row['frequency'])
            for row in rows
        ]

    def get_term(self, source_term: str, source_lang: str, target_lang: str) -> Optional[LearnedTerm]:
        """Get a single learned term"""
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT * FROM learned_terms
                WHERE source_term = ? AND source_lang = ? AND target_lang = ?
            """, (source_term, source_lang, target_lang)).fetchone()

        return self._row_to_term(row) if row else None

    def get_learning_stats(self, source_lang: str, target_lang: str) -> Dict[str, int]:
        """Counts of learned terms/segments and their summed usage"""
        with self._get_connection() as conn:
            terms = conn.execute("""
                SELECT COUNT(*) AS n, COALESCE(SUM(frequency), 0) AS usage
                FROM learned_terms WHERE source_lang = ? AND target_lang = ?
            """, (source_lang, target_lang)).fetchone()
            segments = conn.execute("""
                SELECT COUNT(*) AS n, COALESCE(SUM(usage_count), 0) AS usage
                FROM learned_segments WHERE source_lang = ? AND target_lang = ?
            """, (source_lang, target_lang)).fetchone()

        return {
            'term_count': terms['n'],
            'segment_count': segments['n'],
            'total_usage': terms['usage'] + segments['usage'],
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_correction(
        self,
        original: str,
        corrected: str,
        correction_type: CorrectionType,
        source_lang: str,
        target_lang: str,
        original_translation: Optional[str] = None
    ) -> None:
        """
        Feed one reviewer correction into memory

        Args:
            original: Source text (segment or term) the reviewer corrected
            corrected: Reviewer's improved translation
            correction_type: terminology -> LearnedTerm, phrasing -> LearnedSegment
            source_lang: Source language code
            target_lang: Target language code
            original_translation: Machine translation being replaced, if known

        Raises:
            ValueError: original or corrected text is blank
        """
        correction_type = CorrectionType(correction_type)
        if not original or not original.strip() or not corrected or not corrected.strip():
            raise ValueError("Correction needs non-blank original and corrected text")

        if correction_type == CorrectionType.TERMINOLOGY:
            self._upsert_term(extract_term(original), extract_term(corrected), source_lang, target_lang)
        else:
            self._upsert_segment(original.strip(), corrected, source_lang, target_lang, original_translation)

    def _upsert_term(self, source_term: str, target_term: str, source_lang: str, target_lang: str):
        now = time.time()
        with self._lock_for('term', source_term, source_lang, target_lang):
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO learned_terms (
                        source_term, target_term, source_lang, target_lang,
                        frequency, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, 1, ?, ?)
                    ON CONFLICT(source_term, source_lang, target_lang) DO UPDATE SET
                        frequency = learned_terms.frequency + 1,
                        target_term = excluded.target_term,
                        updated_at = excluded.updated_at
                """, (source_term, target_term, source_lang, target_lang, now, now))

        logger.debug(f"Learned term {source_lang}->{target_lang}: {source_term!r} -> {target_term!r}")

    def _upsert_segment(
        self,
        source_text: str,
        improved_text: str,
        source_lang: str,
        target_lang: str,
        original_translation: Optional[str]
    ):
        now = time.time()
        with self._lock_for('segment', source_text, source_lang, target_lang):
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO learned_segments (
                        source_text, target_text, improved_text, source_lang, target_lang,
                        usage_count, last_used, created_at
                    ) VALUES (?, ?, ?, ?, ?, 1, ?, ?)
                    ON CONFLICT(source_text, source_lang, target_lang) DO UPDATE SET
                        usage_count = learned_segments.usage_count + 1,
                        improved_text = excluded.improved_text,
                        target_text = COALESCE(excluded.target_text, learned_segments.target_text),
                        last_used = excluded.last_used
                """, (source_text, original_translation, improved_text, source_lang, target_lang, now, now))

        logger.debug(f"Learned segment {source_lang}->{target_lang}: {source_text[:50]!r}")

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _row_to_segment(self, row: sqlite3.Row) -> LearnedSegment:
        return LearnedSegment(
            id=row['id'],
            source_text=row['source_text'],
            target_text=row['target_text'],
            improved_text=row['improved_text'],
            source_lang=row['source_lang'],
            target_lang=row['target_lang'],
            usage_count=row['usage_count'],
            last_used=row['last_used'],
            created_at=row['created_at'],
        )

    def _row_to_term(self, row: sqlite3.Row) -> LearnedTerm:
        return LearnedTerm(
            id=row['id'],
            source_term=row['source_term'],
            target_term=row['target_term'],
            source_lang=row['source_lang'],
            target_lang=row['target_lang'],
            frequency=row['frequency'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )
