"""
Translation Quality Module

Segment-level quality checks run after a translation is produced.

Components:
  - evaluate: glossary + number checks, deterministic score
  - QAResult: warnings and score for one job
  - GlossaryTerm / Segment: inputs to evaluate

Scoring:
  - Start at 100
  - -10 per glossary warning, -15 per number warning
  - Floored at 0
"""

from core.quality.quality_checker import (
    QAResult,
    Segment,
    GlossaryTerm,
    GlossaryWarning,
    NumberWarning,
    evaluate,
    extract_numbers,
    normalize_number,
    calculate_quality_score,
    check_glossary_compliance,
    check_number_consistency,
)

__all__ = [
    'QAResult',
    'Segment',
    'GlossaryTerm',
    'GlossaryWarning',
    'NumberWarning',
    'evaluate',
    'extract_numbers',
    'normalize_number',
    'calculate_quality_score',
    'check_glossary_compliance',
    'check_number_consistency',
]
