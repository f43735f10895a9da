"""
Unit tests for core.corrections
"""

import pytest

from core.corrections import (
    CorrectionInput,
    CorrectionService,
    CorrectionValidationError,
    JobNotFoundError,
    validate_submission,
)
from core.job_repository import TranslationJob
from core.notifications import CorrectionSubmittedEvent, Notifier


class FailingNotifier(Notifier):
    async def translation_ready(self, event):
        raise RuntimeError("smtp down")

    async def correction_submitted(self, event: CorrectionSubmittedEvent):
        raise RuntimeError("smtp down")


@pytest.fixture
def job(repository):
    return repository.create_job(TranslationJob(
        job_id="job-1",
        user_id="user-1",
        source_lang="EN",
        target_lang="DE",
        source_file_name="manual.txt",
        source_file_path="/tmp/manual.txt",
    ))


@pytest.fixture
def service(repository, memory_store, notifier):
    return CorrectionService(repository, memory_store, notifier)


def corrections(*items):
    return [CorrectionInput(*item) for item in items]


class TestValidation:

    def test_missing_fields(self):
        with pytest.raises(CorrectionValidationError, match="Missing required fields"):
            validate_submission("job-1", "DE", "DE", "a@b.com", [])

    def test_invalid_email(self):
        with pytest.raises(CorrectionValidationError, match="Invalid email"):
            validate_submission("job-1", "DE", "DE", "not-an-email",
                                corrections(("a", "b", "phrasing")))

    def test_invalid_type(self):
        with pytest.raises(CorrectionValidationError, match="terminology"):
            validate_submission("job-1", "DE", "DE", "a@b.com",
                                corrections(("a", "b", "spelling")))

    def test_empty_text(self):
        with pytest.raises(CorrectionValidationError):
            validate_submission("job-1", "DE", "DE", "a@b.com",
                                corrections(("", "b", "phrasing")))

    @pytest.mark.parametrize("item", [
        ("   ", "Rechnung", "terminology"),
        ("invoice", " \n ", "terminology"),
    ])
    def test_whitespace_only_text(self, item):
        with pytest.raises(CorrectionValidationError, match="original_text, corrected_text"):
            validate_submission("job-1", "DE", "DE", "a@b.com", corrections(item))


class TestSubmit:

    @pytest.mark.asyncio
    async def test_submit_stores_and_learns(self, service, job, memory_store, notifier):
        submission = await service.submit(
            job_id="job-1",
            target_language="de",
            country_code="de",
            submitted_by="reviewer@example.com",
            corrections=corrections(
                ("invoice", "Rechnung", "terminology"),
                ("Good morning.", "Guten Morgen.", "phrasing"),
            ),
        )

        assert submission.message == "Successfully submitted 2 corrections"
        assert all(r.id is not None for r in submission.records)
        assert submission.records[0].target_lang == "DE"
        assert submission.records[0].country_code == "DE"

        assert memory_store.get_term("invoice", "EN", "DE").target_term == "Rechnung"
        assert memory_store.find_segment_override("Good morning.", "EN", "DE") is not None

        assert notifier.sent[-1].to == ["reviewer@example.com"]

    @pytest.mark.asyncio
    async def test_unknown_job(self, service):
        with pytest.raises(JobNotFoundError):
            await service.submit("missing", "DE", "DE", "a@b.com",
                                 corrections(("a", "b", "phrasing")))

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail(self, repository, memory_store, job):
        service = CorrectionService(repository, memory_store, FailingNotifier())
        submission = await service.submit("job-1", "DE", "DE", "a@b.com",
                                          corrections(("a", "b", "phrasing")))
        assert len(submission.records) == 1


class TestListForJob:

    @pytest.mark.asyncio
    async def test_grouped_by_country(self, service, job):
        await service.submit("job-1", "DE", "DE", "de@example.com",
                             corrections(("a", "b", "phrasing")))
        await service.submit("job-1", "DE", "AT", "at@example.com",
                             corrections(("c", "d", "phrasing"), ("e", "f", "terminology")))

        grouped = service.list_for_job("job-1")

        assert set(grouped) == {"DE", "AT"}
        assert len(grouped["AT"]) == 2
        assert grouped["DE"][0].submitted_by == "de@example.com"

    def test_no_corrections(self, service, job):
        assert service.list_for_job("job-1") == {}
