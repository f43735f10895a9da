"""
Quality Checker Module

Provides quality validation for translated segments, including:
- Glossary compliance (expected target terms present)
- Number consistency (counts and values preserved)
- A deterministic 0-100 quality score

Pure functions only: no I/O, no shared state. Identical inputs always
produce identical warnings and score.
"""

import re
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Optional, Sequence, NamedTuple, Any

from config.constants import (
    QUALITY_MAX_SCORE,
    GLOSSARY_WARNING_PENALTY,
    NUMBER_WARNING_PENALTY,
)


# Integers and decimals (comma or dot separated), optionally followed by a
# percent or currency symbol. A bare number must end on a word boundary.
NUMBER_PATTERN = re.compile(r'\b\d+(?:[.,]\d+)*(?:\s*[%$€£¥]|\b)')
_STRIP_PATTERN = re.compile(r'[%$€£¥,\s]')

COUNT_MISMATCH = "count_mismatch"
VALUE_MISMATCH = "value_mismatch"


class Segment(NamedTuple):
    """A source segment and its (possibly missing) translation"""
    source_text: str
    target_text: Optional[str] = None


@dataclass(frozen=True)
class GlossaryTerm:
    """Expected source -> target term pair"""
    source_term: str
    target_term: str


@dataclass
class GlossaryWarning:
    """Source contains a glossary term whose translation is missing"""
    segment_index: int
    segment: str
    source_term: str
    target_term: str
    message: str


@dataclass
class NumberWarning:
    """Numbers in source and target do not line up"""
    segment_index: int
    segment: str
    source_numbers: List[str]
    target_numbers: List[str]
    message: str
    kind: str = VALUE_MISMATCH


@dataclass
class QAResult:
    """Quality check result for one job"""
    glossary_warnings: List[GlossaryWarning] = field(default_factory=list)
    number_warnings: List[NumberWarning] = field(default_factory=list)
    quality_score: int = QUALITY_MAX_SCORE
    total_warnings: int = 0
    segment_level: bool = True

    def __repr__(self) -> str:
        return (
            f"QAResult(score={self.quality_score}, "
            f"glossary={len(self.glossary_warnings)}, "
            f"numbers={len(self.number_warnings)})"
        )

    @classmethod
    def placeholder(cls) -> 'QAResult':
        """Default result for document-API jobs with no segment text"""
        return cls(segment_level=False)

    def summary(self) -> str:
        """Get human-readable summary"""
        lines = [f"Quality score: {self.quality_score}/{QUALITY_MAX_SCORE}"]
        if not self.segment_level:
            lines.append("  (document translation, no segment-level checks)")
        for warning in self.glossary_warnings:
            lines.append(f"  [glossary #{warning.segment_index}] {warning.message}")
        for warning in self.number_warnings:
            lines.append(f"  [number #{warning.segment_index}] {warning.message}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QAResult':
        """Create from dictionary"""
        return cls(
            glossary_warnings=[GlossaryWarning(**w) for w in data.get('glossary_warnings', [])],
            number_warnings=[NumberWarning(**w) for w in data.get('number_warnings', [])],
            quality_score=data.get('quality_score', QUALITY_MAX_SCORE),
            total_warnings=data.get('total_warnings', 0),
            segment_level=data.get('segment_level', True),
        )


def extract_numbers(text: str) -> List[str]:
    """
    Extract numeric tokens from text

    Example:
        >>> extract_numbers("Save 15% on 1,234.56 $ today")
        ['15%', '1,234.56 $']
    """
    if not text:
        return []
    return NUMBER_PATTERN.findall(text)


def normalize_number(token: str) -> str:
    """
    Normalize a numeric token for comparison

    Strips currency/percent symbols, whitespace, thousands separators and
    decimal points. Idempotent: normalizing a normalized token is a no-op.

    Example:
        >>> normalize_number("1,234.56")
        '123456'
        >>> normalize_number("1234.56")
        '123456'
    """
    return _STRIP_PATTERN.sub('', token).replace('.', '')


def check_glossary_compliance(
    source_text: str,
    target_text: str,
    glossary_terms: Sequence[GlossaryTerm],
    segment_index: int = 0
) -> List[GlossaryWarning]:
    """
    Check that every glossary term found in the source has its expected
    translation in the target (case-insensitive substring match)
    """
    warnings = []
    source_lower = source_text.lower()
    target_lower = target_text.lower()

    for term in glossary_terms:
        if not term.source_term.strip():
            continue
        if term.source_term.lower() not in source_lower:
            continue
        if term.target_term.lower() in target_lower:
            continue
        warnings.append(GlossaryWarning(
            segment_index=segment_index,
            segment=source_text,
            source_term=term.source_term,
            target_term=term.target_term,
            message=(
                f'Source contains "{term.source_term}" but target text doesn\'t '
                f'contain the expected translation "{term.target_term}".'
            ),
        ))

    return warnings


def check_number_consistency(
    source_text: str,
    target_text: str,
    segment_index: int = 0
) -> List[NumberWarning]:
    """
    Check that numbers survive translation

    A count mismatch produces a single warning. Equal counts are compared
    pairwise in order after normalization; each differing pair warns.
    """
    source_numbers = extract_numbers(source_text)
    target_numbers = extract_numbers(target_text)

    if len(source_numbers) != len(target_numbers):
        return [NumberWarning(
            segment_index=segment_index,
            segment=source_text,
            source_numbers=source_numbers,
            target_numbers=target_numbers,
            message=(
                f"Number count mismatch: source has {len(source_numbers)} numbers, "
                f"target has {len(target_numbers)}."
            ),
            kind=COUNT_MISMATCH,
        )]

    warnings = []
    for source_num, target_num in zip(source_numbers, target_numbers):
        if normalize_number(source_num) != normalize_number(target_num):
            warnings.append(NumberWarning(
                segment_index=segment_index,
                segment=source_text,
                source_numbers=source_numbers,
                target_numbers=target_numbers,
                message=(
                    f'Number value mismatch: "{source_num}" in source vs '
                    f'"{target_num}" in target.'
                ),
                kind=VALUE_MISMATCH,
            ))

    return warnings


def calculate_quality_score(glossary_warning_count: int, number_warning_count: int) -> int:
    """100 minus 10 per glossary warning and 15 per number warning, floored at 0"""
    score = (
        QUALITY_MAX_SCORE
        - glossary_warning_count * GLOSSARY_WARNING_PENALTY
        - number_warning_count * NUMBER_WARNING_PENALTY
    )
    return max(0, score)


def evaluate(
    segments: Sequence[Segment],
    glossary_terms: Optional[Sequence[GlossaryTerm]] = None
) -> QAResult:
    """
    Run all checks over translated segments

    Args:
        segments: Ordered (source_text, target_text) pairs; pairs without
                  target text are skipped
        glossary_terms: Expected term translations

    Returns:
        QAResult with warnings and score

    Example:
        >>> result = evaluate(
        ...     [Segment("Pay 1000 EUR now", "Zahlen Sie 1000 EUR jetzt")],
        ...     [GlossaryTerm("Pay", "Zahlen Sie")],
        ... )
        >>> result.quality_score
        100
    """
    glossary_terms = list(glossary_terms or [])
    glossary_warnings: List[GlossaryWarning] = []
    number_warnings: List[NumberWarning] = []

    for index, (source_text, target_text) in enumerate(segments):
        if not target_text:
            continue

        if glossary_terms:
            glossary_warnings.extend(
                check_glossary_compliance(source_text, target_text, glossary_terms, index)
            )

        number_warnings.extend(
            check_number_consistency(source_text, target_text, index)
        )

    return QAResult(
        glossary_warnings=glossary_warnings,
        number_warnings=number_warnings,
        quality_score=calculate_quality_score(len(glossary_warnings), len(number_warnings)),
        total_warnings=len(glossary_warnings) + len(number_warnings),
    )


# Example usage and testing
if __name__ == "__main__":
    print("Quality Checker - Demo")
    print("=" * 80)

    glossary = [GlossaryTerm("Pay", "Zahlen Sie")]

    print("\n1. Clean translation:")
    print(evaluate([Segment("Pay 1000 EUR now", "Zahlen Sie 1000 EUR jetzt")], glossary).summary())

    print("\n2. Changed number:")
    print(evaluate([Segment("Pay 1000 EUR now", "Zahlen Sie 999 EUR jetzt")], glossary).summary())
