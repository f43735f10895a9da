"""
Correction Memory Applier

Bridges the correction memory and the translation provider:
- exact segment overrides that bypass the provider entirely
- an ephemeral provider glossary built from learned terms
- best-effort teardown of that glossary once the job is done
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from config.constants import OVERRIDE_CONFIDENCE_THRESHOLD
from config.logging_config import get_logger
from providers.base import BaseTranslationProvider, ProviderError

from .memory_store import CorrectionMemoryStore, TermEntry

logger = get_logger(__name__)


@dataclass
class EnhancedGlossary:
    """Glossary to use for one job"""
    glossary_id: Optional[str]
    is_ephemeral: bool = False
    terms: List[TermEntry] = field(default_factory=list)

    @property
    def term_count(self) -> int:
        return len(self.terms) if self.is_ephemeral else 0


def ephemeral_glossary_name(source_lang: str, target_lang: str) -> str:
    """Learned_{src}_{tgt}_{epoch millis}"""
    return f"Learned_{source_lang}_{target_lang}_{int(time.time() * 1000)}"


def count_applied_terms(text: str, terms: Sequence[TermEntry]) -> int:
    """Number of learned terms whose source form occurs in text"""
    return sum(1 for term in terms if term.source and term.source in text)


class CorrectionMemoryApplier:
    """Applies learned corrections to provider requests"""

    def __init__(self, store: CorrectionMemoryStore, provider: BaseTranslationProvider):
        self.store = store
        self.provider = provider

    async def prepare_enhanced_glossary(
        self,
        source_lang: str,
        target_lang: str,
        base_glossary_id: Optional[str] = None
    ) -> EnhancedGlossary:
        """
        Build an ephemeral glossary from learned terms.

        Returns the base glossary (not ephemeral) when there are no learned
        terms or the provider refuses to create the glossary.
        """
        terms = self.store.list_terms(source_lang, target_lang)
        if not terms:
            return EnhancedGlossary(glossary_id=base_glossary_id)

        name = ephemeral_glossary_name(source_lang, target_lang)
        try:
            info = await self.provider.create_glossary(
                name, source_lang, target_lang,
                {term.source: term.target for term in terms},
            )
        except ProviderError as e:
            logger.warning(
                f"Failed to create learning glossary {name} ({e.kind.value}): {e}; "
                f"continuing with base glossary {base_glossary_id or 'none'}"
            )
            return EnhancedGlossary(glossary_id=base_glossary_id)

        logger.info(
            f"Learning glossary {info.glossary_id} ready: "
            f"{len(terms)} terms {source_lang}->{target_lang}"
        )
        return EnhancedGlossary(glossary_id=info.glossary_id, is_ephemeral=True, terms=terms)

    def try_exact_override(
        self,
        source_text: str,
        source_lang: str,
        target_lang: str,
        confidence_threshold: float = OVERRIDE_CONFIDENCE_THRESHOLD
    ) -> Optional[str]:
        """Improved text of a learned segment whose confidence meets the threshold"""
        segment = self.store.find_segment_override(source_text, source_lang, target_lang)
        if segment is None:
            return None

        if segment.confidence < confidence_threshold:
            logger.debug(
                f"Learned segment below threshold ({segment.confidence:.2f} < "
                f"{confidence_threshold}): {segment.source_text[:50]!r}"
            )
            return None

        logger.debug(f"Exact override ({segment.confidence:.2f}): {segment.source_text[:50]!r}")
        return segment.improved_text

    async def cleanup(self, glossary_id: Optional[str], is_ephemeral: bool) -> bool:
        """
        Delete an ephemeral glossary.

        Never raises; returns False when the provider refused the delete.
        """
        if not is_ephemeral or not glossary_id:
            return True

        try:
            await self.provider.delete_glossary(glossary_id)
            return True
        except Exception as e:
            logger.error(f"Failed to cleanup learning glossary {glossary_id}: {e}")
            return False
