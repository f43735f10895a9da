"""
Unit tests for core.learning.memory_store
"""

import sqlite3
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.learning import CorrectionType, LearnedSegment, extract_term


class TestLearnedSegmentConfidence:
    """Confidence grows with usage_count / 3, capped at 1.0."""

    @pytest.mark.parametrize("usage, expected", [
        (1, 0.33),
        (2, 0.67),
        (3, 1.0),
        (6, 1.0),
    ])
    def test_confidence(self, usage, expected):
        assert round(LearnedSegment(usage_count=usage).confidence, 2) == expected


class TestExtractTerm:

    def test_single_token(self):
        assert extract_term("invoice") == "invoice"

    def test_phrase_kept_whole(self):
        assert extract_term("  due date  ") == "due date"


class TestSegmentCorrections:
    """Phrasing corrections become exact segment overrides."""

    def test_first_correction_creates_segment(self, memory_store):
        memory_store.record_correction(
            "Good morning.", "Guten Morgen.", CorrectionType.PHRASING, "EN", "DE"
        )
        segment = memory_store.find_segment_override("Good morning.", "EN", "DE")

        assert segment is not None
        assert segment.improved_text == "Guten Morgen."
        assert segment.usage_count == 1
        assert segment.target_text is None

    def test_repeat_increments_and_overwrites(self, memory_store):
        memory_store.record_correction("Hello.", "Hallo.", "phrasing", "EN", "DE")
        memory_store.record_correction("Hello.", "Servus.", "phrasing", "EN", "DE")

        segment = memory_store.find_segment_override("Hello.", "EN", "DE")
        assert segment.usage_count == 2
        assert segment.improved_text == "Servus."

    def test_lookup_trims_source(self, memory_store):
        memory_store.record_correction("  Hello.  ", "Hallo.", "phrasing", "EN", "DE")
        assert memory_store.find_segment_override("Hello.", "EN", "DE") is not None
        assert memory_store.find_segment_override(" Hello. ", "EN", "DE") is not None

    def test_lookup_case_sensitive(self, memory_store):
        memory_store.record_correction("Hello.", "Hallo.", "phrasing", "EN", "DE")
        assert memory_store.find_segment_override("hello.", "EN", "DE") is None

    def test_language_pair_isolated(self, memory_store):
        memory_store.record_correction("Hello.", "Hallo.", "phrasing", "EN", "DE")
        assert memory_store.find_segment_override("Hello.", "EN", "FR") is None

    def test_original_translation_kept(self, memory_store):
        memory_store.record_correction(
            "Hello.", "Hallo.", "phrasing", "EN", "DE", original_translation="Hallo!"
        )
        memory_store.record_correction("Hello.", "Servus.", "phrasing", "EN", "DE")

        segment = memory_store.find_segment_override("Hello.", "EN", "DE")
        assert segment.target_text == "Hallo!"


class TestTermCorrections:
    """Terminology corrections become learned terms."""

    def test_terms_sorted_by_frequency(self, memory_store):
        memory_store.record_correction("invoice", "Rechnung", "terminology", "EN", "DE")
        memory_store.record_correction("order", "Bestellung", "terminology", "EN", "DE")
        memory_store.record_correction("order", "Auftrag", "terminology", "EN", "DE")

        terms = memory_store.list_terms("EN", "DE")
        assert [t.source for t in terms] == ["order", "invoice"]
        assert terms[0].target == "Auftrag"
        assert terms[0].frequency == 2

    def test_get_term(self, memory_store):
        memory_store.record_correction("invoice", "Rechnung", "terminology", "EN", "DE")
        term = memory_store.get_term("invoice", "EN", "DE")

        assert term.target_term == "Rechnung"
        assert term.frequency == 1
        assert memory_store.get_term("invoice", "EN", "FR") is None

    def test_invalid_type_rejected(self, memory_store):
        with pytest.raises(ValueError):
            memory_store.record_correction("a", "b", "spelling", "EN", "DE")

    @pytest.mark.parametrize("original, corrected, correction_type", [
        ("   ", "Rechnung", "terminology"),
        ("invoice", "\t", "terminology"),
        ("", "Hallo.", "phrasing"),
        ("Hello.", "  ", "phrasing"),
    ])
    def test_blank_text_rejected(self, memory_store, original, corrected, correction_type):
        with pytest.raises(ValueError, match="non-blank"):
            memory_store.record_correction(original, corrected, correction_type, "EN", "DE")

        assert memory_store.list_terms("EN", "DE") == []
        assert memory_store.get_learning_stats("EN", "DE")["segment_count"] == 0


class TestConcurrency:
    """Concurrent corrections of the same key never lose updates."""

    def test_concurrent_segment_upserts(self, memory_store, db_path):
        def correct(i):
            memory_store.record_correction("Hello.", f"Hallo {i}.", "phrasing", "EN", "DE")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(correct, range(20)))

        segment = memory_store.find_segment_override("Hello.", "EN", "DE")
        assert segment.usage_count == 20

        conn = sqlite3.connect(str(db_path))
        try:
            rows = conn.execute("SELECT COUNT(*) FROM learned_segments").fetchone()[0]
        finally:
            conn.close()
        assert rows == 1

    def test_concurrent_term_upserts(self, memory_store):
        def correct(_):
            memory_store.record_correction("invoice", "Rechnung", "terminology", "EN", "DE")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(correct, range(15)))

        terms = memory_store.list_terms("EN", "DE")
        assert len(terms) == 1
        assert terms[0].frequency == 15

    def test_lock_pool_does_not_grow(self, memory_store):
        stripes = len(memory_store._locks)
        for i in range(stripes * 3):
            memory_store.record_correction(f"term{i}", f"Begriff{i}", "terminology", "EN", "DE")

        assert len(memory_store._locks) == stripes
        assert memory_store._lock_for("term", "term1", "EN", "DE") is memory_store._lock_for(
            "term", "term1", "EN", "DE"
        )


class TestLearningStats:

    def test_stats(self, memory_store):
        memory_store.record_correction("invoice", "Rechnung", "terminology", "EN", "DE")
        memory_store.record_correction("invoice", "Rechnung", "terminology", "EN", "DE")
        memory_store.record_correction("Hello.", "Hallo.", "phrasing", "EN", "DE")

        assert memory_store.get_learning_stats("EN", "DE") == {
            'term_count': 1,
            'segment_count': 1,
            'total_usage': 3,
        }

    def test_empty_pair(self, memory_store):
        assert memory_store.get_learning_stats("EN", "JA") == {
            'term_count': 0,
            'segment_count': 0,
            'total_usage': 0,
        }
