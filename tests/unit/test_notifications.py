"""
Unit tests for core.notifications
"""

import pytest

from core.notifications import (
    CorrectionSubmittedEvent,
    LoggingNotifier,
    TranslationReadyEvent,
    review_url,
)


def ready_event(languages):
    return TranslationReadyEvent(
        job_id="job-1",
        source_file_name="manual.docx",
        source_language="EN",
        target_languages=languages,
        review_url=review_url("https://review.example.com/", "job-1"),
    )


class TestLoggingNotifier:

    def test_review_url(self):
        assert review_url("https://review.example.com/", "job-1") == "https://review.example.com/review/job-1"

    def test_one_message_per_language(self):
        notifier = LoggingNotifier()
        messages = notifier.render_translation_ready(ready_event(["DE", "ES"]))

        assert [m.to for m in messages] == [["germany@example.com"], ["spain@example.com"]]
        assert "EN -> DE" in messages[0].body
        assert "https://review.example.com/review/job-1" in messages[0].body

    def test_language_without_reviewers_skipped(self):
        notifier = LoggingNotifier({"de": ["team@de.example.com"]})
        messages = notifier.render_translation_ready(ready_event(["DE", "JA"]))

        assert len(messages) == 1
        assert messages[0].to == ["team@de.example.com"]

    @pytest.mark.asyncio
    async def test_sent_messages_recorded(self):
        notifier = LoggingNotifier()
        await notifier.translation_ready(ready_event(["FR"]))
        await notifier.correction_submitted(CorrectionSubmittedEvent(
            submitter_email="r@example.com",
            job_id="job-1",
            target_language="FR",
            correction_count=3,
            source_file_name="manual.docx",
        ))

        assert [m.to for m in notifier.sent] == [["france@example.com"], ["r@example.com"]]
        assert "3 correction(s)" in notifier.sent[1].body
