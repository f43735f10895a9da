"""
Pydantic request/response models for the API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.batch import JobDetails, JobSubmission, JobSummary
from core.job_repository import CorrectionRecord, JobStatus, TranslationJob


# ==================== JOBS ====================

class JobSubmissionResponse(BaseModel):
    """Response for a newly created job"""
    job_id: str
    status: str
    source_file_name: str
    source_language: str
    target_languages: List[str]
    is_multi_language: bool


class JobResponse(BaseModel):
    """
    One job record.

    error_message is set only when status is "failed". A multi-language
    parent whose children partly failed is "completed" and names the failed
    languages and their reasons in warning_message; see child_jobs for each
    language's own error_message.
    """
    job_id: str
    status: str
    source_language: str
    target_language: str
    source_file_name: str
    output_file_name: Optional[str] = None
    glossary_id: Optional[str] = None
    parent_job_id: Optional[str] = None
    is_multi_language: bool = False
    error_message: Optional[str] = None
    warning_message: Optional[str] = None
    billed_characters: int = 0
    applied_corrections: int = 0
    quality_score: Optional[int] = None
    created_at: float
    updated_at: float


class JobDetailsResponse(BaseModel):
    """Job with children and QA result"""
    job: JobResponse
    child_jobs: List[JobResponse] = Field(default_factory=list)
    qa_result: Optional[Dict[str, Any]] = None


class JobListResponse(BaseModel):
    jobs: List[JobResponse]
    total: int


class CancelResponse(BaseModel):
    job_id: str
    cancelled: bool
    status: str


# ==================== CORRECTIONS ====================

class CorrectionItem(BaseModel):
    original_text: str = Field(..., description="Source text the reviewer corrected")
    corrected_text: str = Field(..., description="Improved translation")
    type: str = Field(..., description="terminology or phrasing")


class CorrectionSubmitRequest(BaseModel):
    job_id: str
    target_language: str
    country_code: str
    submitted_by: str = Field(..., description="Reviewer email")
    corrections: List[CorrectionItem] = Field(default_factory=list)


class CorrectionResponse(BaseModel):
    id: Optional[int] = None
    job_id: str
    target_language: str
    country_code: str
    original_text: str
    corrected_text: str
    correction_type: str
    submitted_by: str
    is_approved: bool
    created_at: float


class CorrectionSubmitResponse(BaseModel):
    success: bool = True
    message: str
    corrections: List[CorrectionResponse]


class CorrectionListResponse(BaseModel):
    success: bool = True
    corrections: List[CorrectionResponse]
    corrections_by_country: Dict[str, List[CorrectionResponse]]
    total_corrections: int
    countries: List[str]


class LearningStats(BaseModel):
    term_count: int
    segment_count: int
    total_usage: int


class LearningStatsResponse(BaseModel):
    success: bool = True
    stats: LearningStats
    message: str


# ==================== CONVERTERS ====================

def job_to_response(job: TranslationJob, quality_score: Optional[int] = None) -> JobResponse:
    return JobResponse(
        job_id=job.job_id,
        status=JobStatus(job.status).value,
        source_language=job.source_lang,
        target_language=job.target_lang,
        source_file_name=job.source_file_name,
        output_file_name=job.output_file_name,
        glossary_id=job.glossary_id,
        parent_job_id=job.parent_job_id,
        is_multi_language=job.is_multi_language,
        error_message=job.error_message,
        warning_message=job.warning_message,
        billed_characters=job.billed_characters,
        applied_corrections=job.applied_corrections,
        quality_score=quality_score,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def submission_to_response(submission: JobSubmission) -> JobSubmissionResponse:
    return JobSubmissionResponse(**submission.to_dict())


def details_to_response(details: JobDetails) -> JobDetailsResponse:
    qa = details.qa_result
    return JobDetailsResponse(
        job=job_to_response(details.job, qa.quality_score if qa else None),
        child_jobs=[
            job_to_response(child, details.child_quality_scores.get(child.job_id))
            for child in details.child_jobs
        ],
        qa_result=qa.to_dict() if qa else None,
    )


def summary_to_response(summary: JobSummary) -> JobResponse:
    return job_to_response(summary.job, summary.quality_score)


def correction_to_response(record: CorrectionRecord) -> CorrectionResponse:
    return CorrectionResponse(
        id=record.id,
        job_id=record.job_id,
        target_language=record.target_lang,
        country_code=record.country_code,
        original_text=record.original_text,
        corrected_text=record.corrected_text,
        correction_type=record.correction_type,
        submitted_by=record.submitted_by,
        is_approved=record.is_approved,
        created_at=record.created_at,
    )
