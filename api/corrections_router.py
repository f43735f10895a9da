"""
Corrections API Router

Reviewer corrections and correction-memory statistics.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from config.logging_config import get_logger
from core.corrections import (
    CorrectionInput,
    CorrectionService,
    CorrectionValidationError,
    JobNotFoundError,
)
from core.job_repository import normalize_language
from core.learning import CorrectionMemoryStore

from .dependencies import get_correction_service, get_memory_store, limiter, rate_limit
from .models import (
    CorrectionListResponse,
    CorrectionSubmitRequest,
    CorrectionSubmitResponse,
    LearningStats,
    LearningStatsResponse,
    correction_to_response,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Corrections"])


@router.post("/corrections", response_model=CorrectionSubmitResponse)
@limiter.limit(rate_limit)
async def submit_corrections(
    request: Request,
    body: CorrectionSubmitRequest,
    service: CorrectionService = Depends(get_correction_service),
):
    """Store reviewer corrections and feed them into the correction memory."""
    try:
        submission = await service.submit(
            job_id=body.job_id,
            target_language=body.target_language,
            country_code=body.country_code,
            submitted_by=body.submitted_by,
            corrections=[
                CorrectionInput(c.original_text, c.corrected_text, c.type)
                for c in body.corrections
            ],
        )
    except CorrectionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return CorrectionSubmitResponse(
        message=submission.message,
        corrections=[correction_to_response(r) for r in submission.records],
    )


@router.get("/corrections/{job_id}", response_model=CorrectionListResponse)
async def list_corrections(
    job_id: str,
    service: CorrectionService = Depends(get_correction_service),
):
    """Corrections of a job, grouped by country."""
    grouped = service.list_for_job(job_id)
    by_country = {
        country: [correction_to_response(r) for r in records]
        for country, records in grouped.items()
    }
    flat = [item for records in by_country.values() for item in records]
    flat.sort(key=lambda c: c.created_at, reverse=True)

    return CorrectionListResponse(
        corrections=flat,
        corrections_by_country=by_country,
        total_corrections=len(flat),
        countries=list(by_country.keys()),
    )


@router.get("/learning/stats", response_model=LearningStatsResponse)
async def learning_stats(
    source_language: str = "",
    target_language: str = "",
    store: CorrectionMemoryStore = Depends(get_memory_store),
):
    """Learned term / segment counts for a language pair."""
    source_language = normalize_language(source_language)
    target_language = normalize_language(target_language)
    if not source_language or not target_language:
        raise HTTPException(
            status_code=400,
            detail="source_language and target_language parameters are required",
        )

    stats = LearningStats(**store.get_learning_stats(source_language, target_language))
    return LearningStatsResponse(
        stats=stats,
        message=f"Found {stats.term_count} learned terms and {stats.segment_count} learned segments",
    )
