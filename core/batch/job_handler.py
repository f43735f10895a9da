"""
Job lifecycle management.
Validates status transitions and persists them through the repository.

    pending ──> processing ──> completed
       │             │
       └─────────────┴──────> failed
"""

import time
from typing import Dict, FrozenSet, Optional

from config.logging_config import get_logger, job_logger
from core.job_repository import JobRepository, JobStatus, TranslationJob
from core.quality import QAResult
from providers.base import ProviderError

logger = get_logger(__name__)


ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Status change not allowed by the job lifecycle"""

    def __init__(self, job_id: str, current: JobStatus, target: JobStatus):
        super().__init__(f"Job {job_id}: cannot move from {current.value} to {target.value}")
        self.job_id = job_id
        self.current = current
        self.target = target


def describe_error(error: BaseException) -> str:
    """
    Human-readable error message stored on a failed job.

    Retryable provider errors are prefixed with [retryable] so the caller can
    decide to resubmit.
    """
    message = str(error) or error.__class__.__name__
    if isinstance(error, ProviderError) and error.retryable:
        return f"[retryable] {message}"
    return message


class JobHandler:
    """
    Drives one leaf job through its lifecycle.

    Usage:
        handler = JobHandler(job, repository)
        handler.start()
        # ... translate ...
        handler.complete(output_name, output_path, billed_characters=1200)
    """

    def __init__(self, job: TranslationJob, repository: JobRepository):
        self.job = job
        self.repository = repository
        self._started_at: Optional[float] = None
        self.log = job_logger(logger, job.job_id)

    @property
    def job_id(self) -> str:
        return self.job.job_id

    @property
    def status(self) -> JobStatus:
        return JobStatus(self.job.status)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration(self) -> Optional[float]:
        if self._started_at is None:
            return None
        return time.time() - self._started_at

    def _check(self, target: JobStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.job_id, self.status, target)

    def start(self) -> TranslationJob:
        """pending -> processing"""
        self._check(JobStatus.PROCESSING)
        self._started_at = time.time()
        self.job = self.repository.mark_processing(self.job_id)
        self.log.info(f"Job started ({self.job.source_lang}->{self.job.target_lang})")
        return self.job

    def record_document_handle(self, document_id: str, document_key: str) -> None:
        self.job = self.repository.set_document_handle(self.job_id, document_id, document_key)

    def complete(
        self,
        output_file_name: str,
        output_file_path: str,
        billed_characters: int = 0,
        applied_corrections: int = 0,
        qa_result: Optional[QAResult] = None
    ) -> TranslationJob:
        """processing -> completed (status and QA result stored together)"""
        self._check(JobStatus.COMPLETED)
        self.job = self.repository.mark_completed(
            self.job_id,
            output_file_name=output_file_name,
            output_file_path=output_file_path,
            billed_characters=billed_characters,
            applied_corrections=applied_corrections,
            qa_result=qa_result,
        )
        self.log.info(
            f"Job completed ({self.job.target_lang}) "
            f"billed={billed_characters} applied={applied_corrections}"
            + (f" in {self.duration:.1f}s" if self.duration is not None else "")
        )
        return self.job

    def fail(self, error_message: str) -> TranslationJob:
        """pending/processing -> failed"""
        self._check(JobStatus.FAILED)
        self.job = self.repository.mark_failed(self.job_id, error_message)
        self.log.error(f"Job failed ({self.job.target_lang}): {error_message}")
        return self.job
