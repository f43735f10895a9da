"""
Parent job aggregation.
Combines terminal child jobs into the parent's final status.

Rules:
- every child completed           -> completed
- some completed, some failed     -> completed, warning names failed languages
- every child failed              -> failed, error lists each language's error
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from config.logging_config import get_logger
from core.job_repository import JobStatus, TranslationJob

logger = get_logger(__name__)

UNFINISHED_MESSAGE = "did not finish"


@dataclass
class ParentOutcome:
    """Aggregated status for a multi-language parent job"""
    status: JobStatus
    completed_languages: List[str] = field(default_factory=list)
    failed_languages: List[str] = field(default_factory=list)
    error_message: Optional[str] = None
    warning_message: Optional[str] = None
    billed_characters: int = 0
    applied_corrections: int = 0

    @property
    def is_partial(self) -> bool:
        return bool(self.completed_languages and self.failed_languages)


def _failure_reason(child: TranslationJob) -> str:
    if JobStatus(child.status) != JobStatus.FAILED:
        return UNFINISHED_MESSAGE
    return child.error_message or "unknown error"


class ResultAggregator:
    """
    Aggregates child outcomes into a parent outcome.

    Usage:
        outcome = ResultAggregator().aggregate(children)
    """

    def aggregate(self, children: Sequence[TranslationJob]) -> ParentOutcome:
        """
        Aggregate children into the parent's outcome.

        A child that is not terminal is counted as failed; callers only
        aggregate after every child had its chance to finish.
        """
        completed = [c for c in children if JobStatus(c.status) == JobStatus.COMPLETED]
        failed = [c for c in children if JobStatus(c.status) != JobStatus.COMPLETED]

        outcome = ParentOutcome(
            status=JobStatus.COMPLETED if completed else JobStatus.FAILED,
            completed_languages=[c.target_lang for c in completed],
            failed_languages=[c.target_lang for c in failed],
            billed_characters=sum(c.billed_characters for c in completed),
            applied_corrections=sum(c.applied_corrections for c in completed),
        )

        if not children:
            outcome.error_message = "No target languages"
        elif not completed:
            outcome.error_message = "All languages failed: " + "; ".join(
                f"{c.target_lang}: {_failure_reason(c)}" for c in failed
            )
        elif failed:
            outcome.warning_message = "Partial failure: " + "; ".join(
                f"{c.target_lang} failed ({_failure_reason(c)})" for c in failed
            )

        logger.debug(
            f"Aggregated {len(children)} children: "
            f"completed={outcome.completed_languages} failed={outcome.failed_languages}"
        )
        return outcome
