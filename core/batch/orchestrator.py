"""
Job orchestrator.

Creates job records, fans multi-language requests out into child jobs,
drives each job through glossary -> translate -> QA -> persist, and
aggregates child outcomes into the parent status.

Uses the batch sub-modules:
- JobHandler for lifecycle transitions
- ResultAggregator for parent aggregation
- ProviderRateLimiter for admission control
- CancellationToken for cooperative cancellation
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set

from config.constants import (
    BATCH_DELAY_SECONDS,
    BATCH_SIZE,
    DOCUMENT_TIMEOUT_SECONDS,
    MAX_FILE_SIZE_MB,
    OVERRIDE_CONFIDENCE_THRESHOLD,
    PROVIDER_MAX_CONCURRENCY,
    RATE_LIMIT_BACKOFF_SECONDS,
    REVIEW_BASE_URL,
    SEGMENT_BATCH_SIZE,
    SUPPORTED_EXTENSIONS,
)
from config.logging_config import get_logger, job_logger
from core.file_processor import (
    atomic_write_bytes,
    discard_partial,
    extract_text_segments,
    is_segmentable,
    output_file_name,
    safe_file_name,
    write_output_file,
)
from core.job_repository import (
    JobRepository,
    JobStatus,
    RepositoryError,
    TranslationJob,
    new_job_id,
    normalize_language,
)
from core.learning import (
    CorrectionMemoryApplier,
    CorrectionMemoryStore,
    EnhancedGlossary,
    count_applied_terms,
)
from core.notifications import Notifier, TranslationReadyEvent, review_url
from core.quality import GlossaryTerm, QAResult, Segment, evaluate
from providers.base import (
    BaseTranslationProvider,
    DocumentStatus,
    ProviderError,
    TransientServiceError,
)

from .cancellation import CancellationToken
from .job_handler import JobHandler, describe_error
from .rate_limiter import ProviderRateLimiter
from .result_aggregator import ParentOutcome, ResultAggregator

logger = get_logger(__name__)


class SubmissionError(ValueError):
    """Request rejected before any job is created"""
    pass


@dataclass
class OrchestratorConfig:
    """Configuration for JobOrchestrator."""
    upload_dir: Path
    output_dir: Path
    batch_size: int = BATCH_SIZE
    batch_delay_seconds: float = BATCH_DELAY_SECONDS
    provider_max_concurrency: int = PROVIDER_MAX_CONCURRENCY
    rate_limit_backoff_seconds: float = RATE_LIMIT_BACKOFF_SECONDS
    document_timeout_seconds: float = DOCUMENT_TIMEOUT_SECONDS
    override_confidence_threshold: float = OVERRIDE_CONFIDENCE_THRESHOLD
    max_upload_size_mb: int = MAX_FILE_SIZE_MB
    review_base_url: str = REVIEW_BASE_URL

    @classmethod
    def from_settings(cls, settings) -> "OrchestratorConfig":
        return cls(
            upload_dir=Path(settings.upload_dir),
            output_dir=Path(settings.output_dir),
            batch_size=settings.batch_size,
            batch_delay_seconds=settings.batch_delay_seconds,
            provider_max_concurrency=settings.provider_max_concurrency,
            rate_limit_backoff_seconds=settings.rate_limit_backoff_seconds,
            document_timeout_seconds=settings.document_timeout_seconds,
            override_confidence_threshold=settings.override_confidence_threshold,
            max_upload_size_mb=settings.max_upload_size_mb,
            review_base_url=settings.review_base_url,
        )


@dataclass
class JobSubmission:
    """Returned to the caller when jobs are created"""
    job_id: str
    status: str
    source_file_name: str
    source_language: str
    target_languages: List[str]
    is_multi_language: bool
    child_job_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'job_id': self.job_id,
            'status': self.status,
            'source_file_name': self.source_file_name,
            'source_language': self.source_language,
            'target_languages': self.target_languages,
            'is_multi_language': self.is_multi_language,
        }


@dataclass
class JobDetails:
    """A job with its children and QA result"""
    job: TranslationJob
    child_jobs: List[TranslationJob] = field(default_factory=list)
    qa_result: Optional[QAResult] = None
    child_quality_scores: Dict[str, int] = field(default_factory=dict)


@dataclass
class JobSummary:
    job: TranslationJob
    quality_score: Optional[int] = None


@dataclass
class _TranslationOutcome:
    output_path: Path
    qa: QAResult
    billed_characters: int = 0
    applied_corrections: int = 0


def parse_target_languages(target_languages) -> List[str]:
    """'de, fr,DE' or ['de', 'fr'] -> ['DE', 'FR'] (order kept, duplicates dropped)"""
    if isinstance(target_languages, str):
        target_languages = target_languages.split(",")
    languages: List[str] = []
    for code in target_languages or []:
        code = normalize_language(code)
        if code and code not in languages:
            languages.append(code)
    return languages


def batched(items: Sequence[Any], size: int) -> List[List[Any]]:
    size = max(1, size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class JobOrchestrator:
    """
    State machine and concurrency controller for translation jobs.

    Usage:
        orchestrator = JobOrchestrator(repository, memory_store, provider, config)
        submission = orchestrator.submit(
            user_id="u1",
            file_name="manual.txt",
            content=b"...",
            source_lang="EN",
            target_languages=["DE", "FR", "ES"],
        )
        job = await orchestrator.process(submission.job_id)
    """

    def __init__(
        self,
        repository: JobRepository,
        memory_store: CorrectionMemoryStore,
        provider: BaseTranslationProvider,
        config: OrchestratorConfig,
        notifier: Optional[Notifier] = None,
        rate_limiter: Optional[ProviderRateLimiter] = None,
        aggregator: Optional[ResultAggregator] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            repository: Job / QA persistence
            memory_store: Correction memory
            provider: Translation provider
            config: Orchestrator configuration (directories, batching, limits)
            notifier: Optional "translation ready" notifier
            rate_limiter: Optional shared admission controller
            aggregator: Optional parent aggregator
        """
        self.repository = repository
        self.memory_store = memory_store
        self.provider = provider
        self.config = config
        self.notifier = notifier
        self.applier = CorrectionMemoryApplier(memory_store, provider)
        self.rate_limiter = rate_limiter or ProviderRateLimiter(
            capacity=config.provider_max_concurrency,
            backoff_seconds=config.rate_limit_backoff_seconds,
        )
        self.aggregator = aggregator or ResultAggregator()

        self.config.upload_dir.mkdir(parents=True, exist_ok=True)
        self.config.output_dir.mkdir(parents=True, exist_ok=True)

        self._tokens: Dict[str, CancellationToken] = {}
        self._tasks: Set[asyncio.Task] = set()

        logger.info(
            f"JobOrchestrator initialized: provider={provider.name}, "
            f"batch_size={config.batch_size}, "
            f"batch_delay={config.batch_delay_seconds}s, "
            f"concurrency={config.provider_max_concurrency}"
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        user_id: str,
        file_name: str,
        content: bytes,
        source_lang: str,
        target_languages,
        glossary_id: Optional[str] = None,
        start: bool = True
    ) -> JobSubmission:
        """
        Validate a request, store the upload and create job records.

        One target language creates a single job; several create a parent
        plus one child per language. With start=True processing is scheduled
        on the running event loop.

        Raises:
            SubmissionError: invalid request, nothing was created
        """
        languages = parse_target_languages(target_languages)
        source_lang = normalize_language(source_lang)
        file_name = safe_file_name(file_name or "")

        if not content:
            raise SubmissionError("A non-empty file is required")
        if not source_lang:
            raise SubmissionError("Source language is required")
        if not languages:
            raise SubmissionError("At least one target language is required")
        if Path(file_name).suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise SubmissionError(
                f"Unsupported file type: {Path(file_name).suffix or file_name}. "
                f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
            )
        if len(content) > self.config.max_upload_size_mb * 1024 * 1024:
            raise SubmissionError(f"File exceeds {self.config.max_upload_size_mb}MB upload limit")
        if source_lang in languages and len(languages) == 1:
            raise SubmissionError("Source and target language must differ")

        job_id = new_job_id()
        source_path = atomic_write_bytes(self.config.upload_dir / job_id / file_name, content)

        submission = self._create_jobs(
            job_id, user_id, file_name, source_path, source_lang, languages, glossary_id
        )
        if start:
            self.start(submission.job_id)
        return submission

    def _create_jobs(
        self,
        job_id: str,
        user_id: str,
        file_name: str,
        source_path: Path,
        source_lang: str,
        languages: List[str],
        glossary_id: Optional[str]
    ) -> JobSubmission:
        is_multi = len(languages) > 1
        self.repository.create_job(TranslationJob(
            job_id=job_id,
            user_id=user_id,
            source_lang=source_lang,
            target_lang=",".join(languages),
            source_file_name=file_name,
            source_file_path=str(source_path),
            glossary_id=glossary_id,
            is_multi_language=is_multi,
        ))

        child_ids = []
        if is_multi:
            for language in languages:
                child = self.repository.create_job(TranslationJob(
                    job_id=new_job_id(),
                    user_id=user_id,
                    source_lang=source_lang,
                    target_lang=language,
                    source_file_name=file_name,
                    source_file_path=str(source_path),
                    glossary_id=glossary_id,
                    parent_job_id=job_id,
                ))
                child_ids.append(child.job_id)

        job_logger(logger, job_id).info(
            f"Job created: {file_name} {source_lang}->{','.join(languages)}"
            + (f" ({len(child_ids)} children)" if is_multi else "")
        )

        return JobSubmission(
            job_id=job_id,
            status=JobStatus.PENDING.value,
            source_file_name=file_name,
            source_language=source_lang,
            target_languages=languages,
            is_multi_language=is_multi,
            child_job_ids=child_ids,
        )

    def resubmit_failed(self, job_id: str, user_id: Optional[str] = None, start: bool = True) -> JobSubmission:
        """
        Create a new job for the failed languages of a finished job.

        Raises:
            SubmissionError: job unknown, still running, or nothing failed
        """
        job = self.repository.get_job(job_id)
        if job is None or (user_id is not None and job.user_id != user_id):
            raise SubmissionError(f"Job not found: {job_id}")
        if not JobStatus(job.status).is_terminal:
            raise SubmissionError(f"Job {job_id} is still {JobStatus(job.status).value}")

        if job.is_multi_language:
            failed = [c.target_lang for c in self.repository.get_children(job_id)
                      if JobStatus(c.status) == JobStatus.FAILED]
        else:
            failed = [job.target_lang] if JobStatus(job.status) == JobStatus.FAILED else []

        if not failed:
            raise SubmissionError(f"Job {job_id} has no failed languages to resubmit")

        source_path = Path(job.source_file_path)
        if not source_path.exists():
            raise SubmissionError(f"Source file of job {job_id} is no longer available")

        job_logger(logger, job_id).info(f"Resubmitting failed languages: {', '.join(failed)}")
        submission = self._create_jobs(
            new_job_id(), job.user_id, job.source_file_name, source_path,
            job.source_lang, failed, job.glossary_id,
        )
        if start:
            self.start(submission.job_id)
        return submission

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def start(self, job_id: str) -> asyncio.Task:
        """Schedule processing of a job on the running event loop."""
        task = asyncio.ensure_future(self.process(job_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def process(self, job_id: str) -> Optional[TranslationJob]:
        """Run a single job or a multi-language fan-out to completion."""
        job = self.repository.get_job(job_id)
        if job is None:
            job_logger(logger, job_id).error("Cannot process unknown job")
            return None

        token = self._tokens.setdefault(job_id, CancellationToken())
        try:
            if job.is_multi_language:
                return await self.run_multi_language(job_id, token)
            job = await self.run_single_job(job_id, token)
            await self._notify(job, [job.target_lang] if JobStatus(job.status) == JobStatus.COMPLETED else [])
            return job
        finally:
            self._tokens.pop(job_id, None)

    def cancel(self, job_id: str, reason: str = "Cancelled") -> bool:
        """
        Cancel an in-flight job or fan-out.

        Returns False when the job is not running in this process.
        """
        token = self._tokens.get(job_id)
        if token is None:
            return False
        token.cancel(reason)
        job_logger(logger, job_id).info("Cancellation requested")
        return True

    async def shutdown(self) -> None:
        """Cancel in-flight work and wait for scheduled tasks to finish."""
        for token in list(self._tokens.values()):
            token.cancel("Shutting down")
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        logger.info("JobOrchestrator shut down")

    # ------------------------------------------------------------------
    # Single job
    # ------------------------------------------------------------------

    async def run_single_job(
        self,
        job_id: str,
        cancellation_token: Optional[CancellationToken] = None
    ) -> TranslationJob:
        """
        Translate one leaf job end to end.

        Never raises for provider, persistence or file errors: they end the
        job in 'failed' with the reason as error_message.
        """
        job = self.repository.get_job(job_id)
        if job is None:
            raise RepositoryError(f"Job not found: {job_id}")

        handler = JobHandler(job, self.repository)
        token = cancellation_token or CancellationToken()
        registered = job_id not in self._tokens
        if registered:
            self._tokens[job_id] = token

        glossary: Optional[EnhancedGlossary] = None
        output_path: Optional[Path] = None
        try:
            if token.is_cancelled():
                return handler.fail(token.cancellation_reason())

            handler.start()

            glossary = await self.applier.prepare_enhanced_glossary(
                job.source_lang, job.target_lang, job.glossary_id
            )
            output_name = output_file_name(job.source_file_name, job.target_lang)
            output_path = self.config.output_dir / job.job_id / output_name

            if is_segmentable(job.source_file_path):
                outcome = await self._translate_segments(job, glossary, output_path, token)
            else:
                outcome = await self._translate_document(handler, glossary, output_path, token)

            return handler.complete(
                output_name,
                str(outcome.output_path),
                billed_characters=outcome.billed_characters,
                applied_corrections=outcome.applied_corrections,
                qa_result=outcome.qa,
            )

        except asyncio.CancelledError:
            self._fail_quietly(handler, output_path, "Cancelled")
            raise
        except Exception as e:
            if getattr(e, 'retryable', False):
                job_logger(logger, job_id).warning(f"Retryable failure: {e}")
            return self._fail_quietly(handler, output_path, describe_error(e))

        finally:
            if glossary is not None:
                await self.applier.cleanup(glossary.glossary_id, glossary.is_ephemeral)
            if registered:
                self._tokens.pop(job_id, None)

    def _fail_quietly(
        self,
        handler: JobHandler,
        output_path: Optional[Path],
        message: str
    ) -> TranslationJob:
        discard_partial(output_path)
        if handler.is_terminal:
            return handler.job
        try:
            return handler.fail(message)
        except RepositoryError as e:
            handler.log.error(f"Could not record failure ({message}): {e}")
            return handler.job

    async def _translate_segments(
        self,
        job: TranslationJob,
        glossary: EnhancedGlossary,
        output_path: Path,
        token: CancellationToken
    ) -> _TranslationOutcome:
        """
        Segment-oriented translation: exact overrides first, the remaining
        segments go to the provider in sub-batches, one limiter slot each.
        """
        texts = extract_text_segments(job.source_file_path)
        translated: List[Optional[str]] = [None] * len(texts)
        pending: List[int] = []
        billed = 0
        applied = 0

        for index, text in enumerate(texts):
            override = self.applier.try_exact_override(
                text, job.source_lang, job.target_lang,
                self.config.override_confidence_threshold,
            )
            if override is not None:
                translated[index] = override
                applied += 1
            else:
                pending.append(index)

        for chunk in batched(pending, SEGMENT_BATCH_SIZE):
            token.raise_if_cancelled()
            async with self.rate_limiter.slot():
                results = await self.provider.translate_segments(
                    [texts[i] for i in chunk], job.source_lang, job.target_lang, glossary.glossary_id
                )
            for index, result in zip(chunk, results):
                translated[index] = result.text
                billed += result.billed_characters
                applied += count_applied_terms(texts[index], glossary.terms)

        token.raise_if_cancelled()

        segments = [Segment(text, target) for text, target in zip(texts, translated)]
        terms = await self._qa_glossary_terms(job, glossary)
        qa = evaluate(segments, terms)
        write_output_file(job.source_file_path, segments, output_path)

        job_logger(logger, job.job_id).info(
            f"{len(segments)} segments translated, "
            f"quality={qa.quality_score}, warnings={qa.total_warnings}"
        )
        return _TranslationOutcome(output_path, qa, billed, applied)

    async def _qa_glossary_terms(self, job: TranslationJob, glossary: EnhancedGlossary) -> List[GlossaryTerm]:
        """
        Terms QA checks against: the job's own glossary entries plus the
        learned terms, a learned term replacing a base entry with the same source.
        """
        entries: Dict[str, str] = {}
        if job.glossary_id:
            try:
                async with self.rate_limiter.slot():
                    entries.update(await self.provider.get_glossary_entries(job.glossary_id))
            except ProviderError as e:
                job_logger(logger, job.job_id).warning(
                    f"Could not load glossary {job.glossary_id} for QA ({e.kind.value}): {e}"
                )

        entries.update((term.source, term.target) for term in glossary.terms)
        return [GlossaryTerm(source, target) for source, target in entries.items() if source.strip()]

    async def _translate_document(
        self,
        handler: JobHandler,
        glossary: EnhancedGlossary,
        output_path: Path,
        token: CancellationToken
    ) -> _TranslationOutcome:
        """Whole-document translation through the provider's document API"""
        job = handler.job
        content = Path(job.source_file_path).read_bytes()

        token.raise_if_cancelled()
        async with self.rate_limiter.slot():
            handle = await self.provider.upload_document(
                job.source_file_name, content, job.source_lang, job.target_lang, glossary.glossary_id
            )
        handler.record_document_handle(handle.document_id, handle.document_key)

        def on_progress(status: DocumentStatus):
            job_logger(logger, job.job_id).debug(f"document {status.status}, ~{status.seconds_remaining}s remaining")

        status = await self.provider.wait_for_document_completion(
            handle.document_id,
            handle.document_key,
            on_progress=on_progress,
            cancellation_token=token,
            timeout=self.config.document_timeout_seconds,
        )
        if status.is_error:
            raise TransientServiceError(
                f"Document translation failed: {status.error_message or 'unknown error'}"
            )

        token.raise_if_cancelled()
        async with self.rate_limiter.slot():
            data = await self.provider.download_document(handle.document_id, handle.document_key)
        atomic_write_bytes(output_path, data)

        return _TranslationOutcome(
            output_path,
            QAResult.placeholder(),
            billed_characters=status.billed_characters,
            applied_corrections=glossary.term_count,
        )

    # ------------------------------------------------------------------
    # Multi-language fan-out
    # ------------------------------------------------------------------

    async def run_multi_language(
        self,
        parent_id: str,
        cancellation_token: Optional[CancellationToken] = None
    ) -> TranslationJob:
        """
        Process every child in fixed-size batches, then aggregate.

        Batch N+1 starts only after every child of batch N is terminal.
        One child's failure never affects its siblings.
        """
        parent = self.repository.get_job(parent_id)
        if parent is None:
            raise RepositoryError(f"Job not found: {parent_id}")

        token = cancellation_token or CancellationToken()
        if JobStatus(parent.status) == JobStatus.PENDING:
            parent = self.repository.mark_processing(parent_id)

        children = self.repository.get_children(parent_id)
        batches = batched(children, self.config.batch_size)
        logger.info(f"[{parent_id}] Fan-out: {len(children)} languages in {len(batches)} batch(es)")

        for index, batch in enumerate(batches):
            if index > 0:
                await asyncio.sleep(self.config.batch_delay_seconds)

            logger.info(
                f"[{parent_id}] Batch {index + 1}/{len(batches)}: "
                f"{', '.join(c.target_lang for c in batch)}"
            )
            results = await asyncio.gather(
                *[self._run_child(child.job_id, token.child()) for child in batch],
                return_exceptions=True,
            )
            for child, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(f"[{parent_id}] Child {child.job_id} ({child.target_lang}) crashed: {result}")

        outcome = self.aggregator.aggregate(self.repository.get_children(parent_id))
        parent = self._finish_parent(parent_id, outcome)
        await self._notify(parent, outcome.completed_languages)
        return parent

    async def _run_child(self, child_id: str, token: CancellationToken) -> TranslationJob:
        self._tokens[child_id] = token
        try:
            return await self.run_single_job(child_id, token)
        except RepositoryError as e:
            child = self.repository.get_job(child_id)
            if child is not None and not JobStatus(child.status).is_terminal:
                return self.repository.mark_failed(child_id, describe_error(e))
            raise
        finally:
            self._tokens.pop(child_id, None)

    def _finish_parent(self, parent_id: str, outcome: ParentOutcome) -> TranslationJob:
        parent = self.repository.update_job(
            parent_id,
            status=outcome.status,
            error_message=outcome.error_message,
            warning_message=outcome.warning_message,
            billed_characters=outcome.billed_characters,
            applied_corrections=outcome.applied_corrections,
        )
        if outcome.status == JobStatus.FAILED:
            logger.error(f"[{parent_id}] Multi-language job failed: {outcome.error_message}")
        elif outcome.is_partial:
            logger.warning(f"[{parent_id}] {outcome.warning_message}")
        else:
            logger.info(f"[{parent_id}] All {len(outcome.completed_languages)} languages completed")
        return parent

    async def _notify(self, job: TranslationJob, completed_languages: List[str]) -> None:
        """One "translation ready" event per top-level job, successful languages only"""
        if self.notifier is None or not completed_languages:
            return

        event = TranslationReadyEvent(
            job_id=job.job_id,
            source_file_name=job.source_file_name,
            source_language=job.source_lang,
            target_languages=list(completed_languages),
            review_url=review_url(self.config.review_base_url, job.job_id),
        )
        try:
            await self.notifier.translation_ready(event)
        except Exception as e:
            job_logger(logger, job.job_id).error(f"Failed to send translation-ready notification: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job_details(self, job_id: str, user_id: Optional[str] = None) -> Optional[JobDetails]:
        """Job with children and QA; None if absent or owned by another user."""
        job = self.repository.get_job(job_id)
        if job is None or (user_id is not None and job.user_id != user_id):
            return None

        children = self.repository.get_children(job_id) if job.is_multi_language else []
        return JobDetails(
            job=job,
            child_jobs=children,
            qa_result=self.repository.get_qa_result(job_id),
            child_quality_scores=self.repository.get_quality_scores(c.job_id for c in children),
        )

    def list_jobs(self, user_id: str, limit: int = 50) -> List[JobSummary]:
        """User's top-level jobs with their quality score (parents: mean of children)."""
        jobs = self.repository.list_jobs(user_id, limit)
        scores = self.repository.get_quality_scores(j.job_id for j in jobs)

        summaries = []
        for job in jobs:
            score = scores.get(job.job_id)
            if score is None and job.is_multi_language:
                child_scores = list(self.repository.get_quality_scores(
                    c.job_id for c in self.repository.get_children(job.job_id)
                ).values())
                if child_scores:
                    score = round(sum(child_scores) / len(child_scores))
            summaries.append(JobSummary(job=job, quality_score=score))
        return summaries
