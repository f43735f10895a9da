#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Pytest fixtures for integration tests.

Provides:
- api_client: TestClient with services wired to temp storage and the fake provider
- wait_for_job: polls a job until it reaches a terminal status
"""

import time

import pytest
from fastapi.testclient import TestClient

from api.dependencies import (
    get_correction_service,
    get_memory_store,
    get_orchestrator,
    limiter,
)
from api.main import app
from core.corrections import CorrectionService

USER_HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def api_client(orchestrator, repository, memory_store, notifier):
    """TestClient whose lifespan keeps one event loop for background jobs."""
    service = CorrectionService(repository, memory_store, notifier)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_correction_service] = lambda: service
    app.dependency_overrides[get_memory_store] = lambda: memory_store
    limiter.enabled = False

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def wait_for_job(api_client):
    def _wait(job_id, headers=USER_HEADERS, timeout=5.0):
        deadline = time.time() + timeout
        while time.time() < deadline:
            response = api_client.get(f"/api/jobs/{job_id}", headers=headers)
            body = response.json()
            if body["job"]["status"] in ("completed", "failed"):
                return body
            time.sleep(0.02)
        raise AssertionError(f"Job {job_id} did not finish within {timeout}s")
    return _wait
