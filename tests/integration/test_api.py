"""
Integration tests for API endpoints (api/main.py)
"""
import pytest

from providers.base import RateLimitedError

USER_HEADERS = {"X-User-Id": "user-1"}
OTHER_USER = {"X-User-Id": "user-2"}


def upload(client, content=b"Pay 1000 EUR now. The invoice is due in 30 days!",
           targets="DE", file_name="manual.txt", headers=USER_HEADERS):
    return client.post(
        "/api/jobs",
        files={"file": (file_name, content, "text/plain")},
        data={"source_language": "EN", "target_languages": targets},
        headers=headers,
    )


class TestAPIBasics:
    """Test basic API functionality."""

    def test_health_check(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_user_header(self, api_client):
        response = api_client.get("/api/jobs")
        assert response.status_code == 401

    def test_job_schema_documents_partial_failure(self, api_client):
        schema = api_client.get("/openapi.json").json()
        description = schema["components"]["schemas"]["JobResponse"]["description"]
        assert "warning_message" in description


class TestJobsEndpoints:
    """Test /api/jobs endpoints."""

    def test_create_and_download(self, api_client, wait_for_job):
        response = upload(api_client)
        assert response.status_code == 201
        job_id = response.json()["job_id"]
        assert response.json()["target_languages"] == ["DE"]

        body = wait_for_job(job_id)
        assert body["job"]["status"] == "completed"
        assert body["job"]["quality_score"] == 100
        assert body["qa_result"]["quality_score"] == 100

        download = api_client.get(f"/api/jobs/{job_id}/download", headers=USER_HEADERS)
        assert download.status_code == 200
        assert download.content.decode("utf-8").startswith("[DE] Pay 1000 EUR now.")

    def test_multi_language_partial_failure(self, api_client, wait_for_job, fake_provider):
        fake_provider.fail_languages["FR"] = RateLimitedError("Too many requests")

        response = upload(api_client, targets="DE,FR,ES")
        assert response.status_code == 201
        assert response.json()["is_multi_language"] is True

        body = wait_for_job(response.json()["job_id"])
        assert body["job"]["status"] == "completed"
        assert "FR" in body["job"]["warning_message"]
        assert body["job"]["error_message"] is None

        statuses = {c["target_language"]: c["status"] for c in body["child_jobs"]}
        assert statuses == {"DE": "completed", "FR": "failed", "ES": "completed"}

    def test_resubmit_failed_language(self, api_client, wait_for_job, fake_provider):
        fake_provider.fail_languages["FR"] = RateLimitedError("Too many requests")
        job_id = upload(api_client, targets="DE,FR").json()["job_id"]
        wait_for_job(job_id)

        fake_provider.fail_languages.clear()
        response = api_client.post(f"/api/jobs/{job_id}/resubmit", headers=USER_HEADERS)
        assert response.status_code == 201
        assert response.json()["target_languages"] == ["FR"]

        body = wait_for_job(response.json()["job_id"])
        assert body["job"]["status"] == "completed"

    @pytest.mark.parametrize("kwargs", [
        {"content": b""},
        {"targets": ""},
        {"file_name": "setup.exe"},
    ])
    def test_invalid_submission(self, api_client, kwargs):
        response = upload(api_client, **kwargs)
        assert response.status_code == 400

    def test_jobs_scoped_to_user(self, api_client, wait_for_job):
        job_id = upload(api_client).json()["job_id"]
        wait_for_job(job_id)

        assert api_client.get(f"/api/jobs/{job_id}", headers=OTHER_USER).status_code == 404
        assert api_client.get(f"/api/jobs/{job_id}/download", headers=OTHER_USER).status_code == 404
        assert api_client.get("/api/jobs", headers=OTHER_USER).json()["total"] == 0

        listing = api_client.get("/api/jobs", headers=USER_HEADERS).json()
        assert [j["job_id"] for j in listing["jobs"]] == [job_id]

    def test_cancel_finished_job(self, api_client, wait_for_job):
        job_id = upload(api_client).json()["job_id"]
        wait_for_job(job_id)

        response = api_client.post(f"/api/jobs/{job_id}/cancel", headers=USER_HEADERS)
        assert response.status_code == 200
        assert response.json()["cancelled"] is False
        assert response.json()["status"] == "completed"

    def test_unknown_job(self, api_client):
        assert api_client.get("/api/jobs/nope", headers=USER_HEADERS).status_code == 404
        assert api_client.post("/api/jobs/nope/cancel", headers=USER_HEADERS).status_code == 404


class TestCorrectionsEndpoints:
    """Test /api/corrections and /api/learning endpoints."""

    def test_submit_and_list(self, api_client, wait_for_job):
        job_id = upload(api_client).json()["job_id"]
        wait_for_job(job_id)

        response = api_client.post("/api/corrections", json={
            "job_id": job_id,
            "target_language": "de",
            "country_code": "at",
            "submitted_by": "reviewer@example.com",
            "corrections": [
                {"original_text": "invoice", "corrected_text": "Rechnung", "type": "terminology"},
                {"original_text": "Pay 1000 EUR now.", "corrected_text": "Zahlen Sie jetzt 1000 EUR.",
                 "type": "phrasing"},
            ],
        })
        assert response.status_code == 200
        assert response.json()["message"] == "Successfully submitted 2 corrections"

        listing = api_client.get(f"/api/corrections/{job_id}").json()
        assert listing["countries"] == ["AT"]
        assert listing["total_corrections"] == 2

        stats = api_client.get(
            "/api/learning/stats", params={"source_language": "en", "target_language": "de"}
        ).json()
        assert stats["stats"] == {"term_count": 1, "segment_count": 1, "total_usage": 2}

    def test_invalid_correction(self, api_client):
        response = api_client.post("/api/corrections", json={
            "job_id": "job-1",
            "target_language": "DE",
            "country_code": "DE",
            "submitted_by": "not-an-email",
            "corrections": [{"original_text": "a", "corrected_text": "b", "type": "phrasing"}],
        })
        assert response.status_code == 400

    def test_correction_for_unknown_job(self, api_client):
        response = api_client.post("/api/corrections", json={
            "job_id": "missing",
            "target_language": "DE",
            "country_code": "DE",
            "submitted_by": "r@example.com",
            "corrections": [{"original_text": "a", "corrected_text": "b", "type": "phrasing"}],
        })
        assert response.status_code == 404

    def test_learning_stats_requires_languages(self, api_client):
        assert api_client.get("/api/learning/stats").status_code == 400
