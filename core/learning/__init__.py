"""
Correction Memory - learning from reviewer corrections

Components:
  - CorrectionMemoryStore: learned segments and terms (SQLite)
  - CorrectionMemoryApplier: exact overrides + ephemeral provider glossaries
"""

from core.learning.memory_store import (
    CorrectionMemoryStore,
    CorrectionType,
    LearnedSegment,
    LearnedTerm,
    TermEntry,
    extract_term,
)
from core.learning.memory_applier import (
    CorrectionMemoryApplier,
    EnhancedGlossary,
    count_applied_terms,
    ephemeral_glossary_name,
)

__all__ = [
    'CorrectionMemoryStore',
    'CorrectionType',
    'LearnedSegment',
    'LearnedTerm',
    'TermEntry',
    'extract_term',
    'CorrectionMemoryApplier',
    'EnhancedGlossary',
    'count_applied_terms',
    'ephemeral_glossary_name',
]
