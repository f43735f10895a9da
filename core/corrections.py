"""
Correction Service - reviewer corrections in, correction memory out

Validates a submission, stores one CorrectionRecord per correction, feeds
each correction into the correction memory and sends a confirmation.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from config.logging_config import get_logger
from core.job_repository import CorrectionRecord, JobRepository, normalize_language
from core.learning import CorrectionMemoryStore, CorrectionType
from core.notifications import CorrectionSubmittedEvent, Notifier

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
VALID_TYPES = {t.value for t in CorrectionType}


class CorrectionValidationError(ValueError):
    """Submission rejected before anything is stored"""
    pass


class JobNotFoundError(LookupError):
    """Correction targets an unknown job"""
    pass


@dataclass
class CorrectionInput:
    original_text: str
    corrected_text: str
    type: str


@dataclass
class CorrectionSubmission:
    """Outcome of a successful submission"""
    job_id: str
    records: List[CorrectionRecord]

    @property
    def message(self) -> str:
        return f"Successfully submitted {len(self.records)} corrections"


def validate_submission(
    job_id: str,
    target_language: str,
    country_code: str,
    submitted_by: str,
    corrections: Sequence[CorrectionInput]
) -> None:
    """
    Raises:
        CorrectionValidationError: on the first problem found
    """
    if not job_id or not target_language or not country_code or not submitted_by or not corrections:
        raise CorrectionValidationError(
            "Missing required fields: job_id, target_language, country_code, "
            "submitted_by, and at least one correction are required"
        )

    if not EMAIL_PATTERN.match(submitted_by):
        raise CorrectionValidationError("Invalid email format")

    for correction in corrections:
        if not (correction.original_text or "").strip() \
                or not (correction.corrected_text or "").strip() \
                or not correction.type:
            raise CorrectionValidationError(
                "Each correction must have original_text, corrected_text, and type"
            )
        if correction.type not in VALID_TYPES:
            raise CorrectionValidationError(
                'Correction type must be either "terminology" or "phrasing"'
            )


class CorrectionService:
    """Submission and listing of reviewer corrections"""

    def __init__(
        self,
        repository: JobRepository,
        memory_store: CorrectionMemoryStore,
        notifier: Optional[Notifier] = None
    ):
        self.repository = repository
        self.memory_store = memory_store
        self.notifier = notifier

    async def submit(
        self,
        job_id: str,
        target_language: str,
        country_code: str,
        submitted_by: str,
        corrections: Sequence[CorrectionInput]
    ) -> CorrectionSubmission:
        """
        Store corrections and learn from them.

        Raises:
            CorrectionValidationError: invalid submission
            JobNotFoundError: job_id is unknown
        """
        validate_submission(job_id, target_language, country_code, submitted_by, corrections)
        target_language = normalize_language(target_language)
        country_code = country_code.strip().upper()

        job = self.repository.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Translation job not found: {job_id}")

        records = []
        for correction in corrections:
            records.append(self.repository.add_correction(CorrectionRecord(
                job_id=job_id,
                target_lang=target_language,
                country_code=country_code,
                original_text=correction.original_text,
                corrected_text=correction.corrected_text,
                correction_type=correction.type,
                submitted_by=submitted_by,
                is_approved=True,
            )))

            self.memory_store.record_correction(
                correction.original_text,
                correction.corrected_text,
                CorrectionType(correction.type),
                job.source_lang,
                target_language,
            )

        logger.info(
            f"Corrections submitted: job {job_id} {target_language}/{country_code} "
            f"by {submitted_by} ({len(records)} corrections)"
        )

        await self._confirm(CorrectionSubmittedEvent(
            submitter_email=submitted_by,
            job_id=job_id,
            target_language=target_language,
            correction_count=len(records),
            source_file_name=job.source_file_name,
        ))

        return CorrectionSubmission(job_id=job_id, records=records)

    async def _confirm(self, event: CorrectionSubmittedEvent) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.correction_submitted(event)
        except Exception as e:
            logger.error(f"Failed to send correction confirmation to {event.submitter_email}: {e}")

    def list_for_job(self, job_id: str) -> Dict[str, List[CorrectionRecord]]:
        """Corrections of a job grouped by country code, newest first"""
        grouped: Dict[str, List[CorrectionRecord]] = {}
        for record in self.repository.list_corrections(job_id):
            grouped.setdefault(record.country_code, []).append(record)
        return grouped
