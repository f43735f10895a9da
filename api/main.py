#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
FastAPI Web Server - REST API for the translation orchestrator.

Usage:
    # Start server
    uvicorn api.main:app --host 0.0.0.0 --port 8000

    # Or run directly
    python -m api.main

Key Endpoints:
    POST /api/jobs - Upload a file and create translation job(s)
    GET /api/jobs - List the caller's jobs
    GET /api/jobs/{job_id} - Job details, child jobs and QA result
    POST /api/jobs/{job_id}/resubmit - Retry failed languages
    POST /api/jobs/{job_id}/cancel - Cancel a running job
    GET /api/jobs/{job_id}/download - Download translated output
    POST /api/corrections - Submit reviewer corrections
    GET /api/corrections/{job_id} - Corrections of a job by country
    GET /api/learning/stats - Correction memory statistics

Configuration:
    Environment variables:
    - DEEPL_API_KEY: Provider API key (required to translate)
    - RATE_LIMIT: API rate limit (default: "60/minute")
    - MAX_UPLOAD_SIZE_MB: Max upload size (default: 50)
"""

import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config.logging_config import get_logger
from config.settings import get_settings

from .corrections_router import router as corrections_router
from .dependencies import limiter, shutdown_services
from .jobs_router import router as jobs_router

logger = get_logger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title="Translation Orchestrator API",
    description="Multi-language document translation with correction memory and QA",
    version=VERSION,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(jobs_router)
app.include_router(corrections_router)


@app.on_event("shutdown")
async def on_shutdown():
    """Cancel running jobs and close provider connections"""
    await shutdown_services()
    logger.info("API server stopped")


@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "version": VERSION,
        "timestamp": time.time()
    }


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Translation Orchestrator API Server...")
    logger.info("API Documentation: http://localhost:8000/docs")

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
