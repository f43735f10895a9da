"""
Jobs API Router

Submit, inspect, resubmit, cancel and download translation jobs.
Every endpoint is scoped to the caller given by the X-User-Id header.
"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from config.logging_config import get_logger, job_logger
from core.batch import JobOrchestrator, SubmissionError
from core.job_repository import JobStatus

from .dependencies import get_orchestrator, get_user_id, limiter, rate_limit
from .models import (
    CancelResponse,
    JobDetailsResponse,
    JobListResponse,
    JobSubmissionResponse,
    details_to_response,
    submission_to_response,
    summary_to_response,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["Jobs"])


@router.post("", response_model=JobSubmissionResponse, status_code=201)
@limiter.limit(rate_limit)
async def create_job(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    source_language: str = Form(default=""),
    target_languages: str = Form(default=""),
    glossary_id: Optional[str] = Form(default=None),
    user_id: str = Depends(get_user_id),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Upload a file and start translating it.

    target_languages is comma-separated; more than one language creates a
    multi-language parent job with one child per language.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="A file is required")

    content = await file.read()
    try:
        submission = orchestrator.submit(
            user_id=user_id,
            file_name=file.filename,
            content=content,
            source_lang=source_language,
            target_languages=target_languages,
            glossary_id=glossary_id or None,
        )
    except SubmissionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return submission_to_response(submission)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    limit: int = 50,
    user_id: str = Depends(get_user_id),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """List the caller's jobs, most recent first."""
    summaries = orchestrator.list_jobs(user_id, limit=limit)
    return JobListResponse(
        jobs=[summary_to_response(s) for s in summaries],
        total=len(summaries),
    )


@router.get("/{job_id}", response_model=JobDetailsResponse)
async def get_job(
    job_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Job status, child jobs (multi-language) and QA result."""
    details = orchestrator.get_job_details(job_id, user_id=user_id)
    if details is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return details_to_response(details)


@router.post("/{job_id}/resubmit", response_model=JobSubmissionResponse, status_code=201)
@limiter.limit(rate_limit)
async def resubmit_job(
    request: Request,
    job_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Start a new job for only the failed languages of a finished job."""
    if orchestrator.get_job_details(job_id, user_id=user_id) is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

    try:
        submission = orchestrator.resubmit_failed(job_id, user_id=user_id)
    except SubmissionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return submission_to_response(submission)


@router.post("/{job_id}/cancel", response_model=CancelResponse)
@limiter.limit(rate_limit)
async def cancel_job(
    request: Request,
    job_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Cancel a running job.

    Already finished jobs are left unchanged (cancelled=false).
    """
    details = orchestrator.get_job_details(job_id, user_id=user_id)
    if details is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

    cancelled = orchestrator.cancel(job_id)
    return CancelResponse(
        job_id=job_id,
        cancelled=cancelled,
        status=JobStatus(details.job.status).value,
    )


@router.get("/{job_id}/download", response_class=FileResponse)
async def download_job(
    job_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Download the translated file of a completed job."""
    details = orchestrator.get_job_details(job_id, user_id=user_id)
    if details is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

    job = details.job
    if JobStatus(job.status) != JobStatus.COMPLETED or not job.output_file_path:
        raise HTTPException(status_code=404, detail=f"Job {job_id} has no output file")

    output_path = Path(job.output_file_path)
    if not output_path.exists():
        job_logger(logger, job_id).error(f"Output file missing on disk: {output_path}")
        raise HTTPException(status_code=404, detail="Output file not found")

    return FileResponse(path=str(output_path), filename=job.output_file_name)
