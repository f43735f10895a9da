"""
Notifications - "translation ready" and "correction submitted" events

Delivery is pluggable through the Notifier interface. The default
LoggingNotifier resolves reviewer addresses per target language and writes
the rendered message to the log.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config.logging_config import get_logger

logger = get_logger(__name__)


# Country code -> reviewer addresses, used when settings provide none
DEFAULT_REVIEWER_EMAILS: Dict[str, List[str]] = {
    'NL': ['netherlands@example.com'],
    'DE': ['germany@example.com'],
    'FR': ['france@example.com'],
    'ES': ['spain@example.com'],
    'IT': ['italy@example.com'],
    'PT': ['portugal@example.com'],
}


@dataclass
class TranslationReadyEvent:
    """A job (or fan-out) finished with at least one translated language"""
    job_id: str
    source_file_name: str
    source_language: str
    target_languages: List[str]
    review_url: str


@dataclass
class CorrectionSubmittedEvent:
    """Confirmation to a reviewer that their corrections were stored"""
    submitter_email: str
    job_id: str
    target_language: str
    correction_count: int
    source_file_name: str


@dataclass
class NotificationMessage:
    """Rendered message for one set of recipients"""
    to: List[str]
    subject: str
    body: str


def review_url(base_url: str, job_id: str) -> str:
    return f"{base_url.rstrip('/')}/review/{job_id}"


class Notifier(ABC):
    """Notification boundary"""

    @abstractmethod
    async def translation_ready(self, event: TranslationReadyEvent) -> None:
        pass

    @abstractmethod
    async def correction_submitted(self, event: CorrectionSubmittedEvent) -> None:
        pass


class LoggingNotifier(Notifier):
    """Renders notifications and logs them instead of sending"""

    def __init__(self, reviewer_emails: Optional[Dict[str, List[str]]] = None):
        self.reviewer_emails = {
            code.upper(): list(addresses)
            for code, addresses in (reviewer_emails or DEFAULT_REVIEWER_EMAILS).items()
        }
        self.sent: List[NotificationMessage] = []

    def render_translation_ready(self, event: TranslationReadyEvent) -> List[NotificationMessage]:
        """One message per target language that has reviewers"""
        messages = []
        for target_lang in event.target_languages:
            recipients = self.reviewer_emails.get(target_lang.upper())
            if not recipients:
                continue
            messages.append(NotificationMessage(
                to=recipients,
                subject=f"Translation Ready for Review: {event.source_file_name}",
                body=(
                    f"Hello {target_lang} Team,\n\n"
                    f"A new translation has been completed and is ready for your review:\n\n"
                    f"Document: {event.source_file_name}\n"
                    f"Translation: {event.source_language} -> {target_lang}\n"
                    f"Job ID: {event.job_id}\n\n"
                    f"Review URL: {event.review_url}\n\n"
                    f"Your corrections help improve future translations automatically!\n"
                ),
            ))
        return messages

    def render_correction_submitted(self, event: CorrectionSubmittedEvent) -> NotificationMessage:
        return NotificationMessage(
            to=[event.submitter_email],
            subject=f"Corrections received: {event.source_file_name}",
            body=(
                f"Thank you! {event.correction_count} correction(s) for "
                f"{event.source_file_name} ({event.target_language}, job {event.job_id}) "
                f"have been saved and will be applied to future translations.\n"
            ),
        )

    async def translation_ready(self, event: TranslationReadyEvent) -> None:
        messages = self.render_translation_ready(event)
        logger.info(
            f"Translation ready: job {event.job_id} "
            f"[{', '.join(event.target_languages)}] -> {len(messages)} notification(s)"
        )
        for message in messages:
            logger.info(f"EMAIL to {', '.join(message.to)}: {message.subject}")
            logger.debug(message.body)
        self.sent.extend(messages)

    async def correction_submitted(self, event: CorrectionSubmittedEvent) -> None:
        message = self.render_correction_submitted(event)
        logger.info(f"EMAIL to {event.submitter_email}: {message.subject}")
        self.sent.append(message)
