"""
Base Translation Provider - Abstract Interface

Every machine-translation backend exposes the same async surface:
text translation, whole-document translation (upload / poll / download)
and provider-side glossaries. Failures are reported as ProviderError with an
explicit kind, so callers never have to match on message text.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class ProviderErrorKind(Enum):
    """Failure categories a provider call can end in"""
    PAYLOAD_TOO_LARGE = "payload_too_large"
    AUTHENTICATION_FAILURE = "authentication_failure"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_SERVICE_ERROR = "transient_service_error"
    MALFORMED_RESPONSE = "malformed_response"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    REQUEST_REJECTED = "request_rejected"


RETRYABLE_KINDS = frozenset({
    ProviderErrorKind.RATE_LIMITED,
    ProviderErrorKind.TRANSIENT_SERVICE_ERROR,
    ProviderErrorKind.TIMEOUT,
})


class ProviderError(Exception):
    """Base error raised by translation providers"""

    kind: ProviderErrorKind = ProviderErrorKind.TRANSIENT_SERVICE_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether resubmitting the same request may succeed"""
        return self.kind in RETRYABLE_KINDS

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.kind.value} status={self.status_code}>"


class PayloadTooLargeError(ProviderError):
    kind = ProviderErrorKind.PAYLOAD_TOO_LARGE


class AuthenticationError(ProviderError):
    kind = ProviderErrorKind.AUTHENTICATION_FAILURE


class RateLimitedError(ProviderError):
    kind = ProviderErrorKind.RATE_LIMITED

    def __init__(self, message: str, status_code: Optional[int] = 429, retry_after: Optional[float] = None):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class TransientServiceError(ProviderError):
    kind = ProviderErrorKind.TRANSIENT_SERVICE_ERROR


class MalformedResponseError(ProviderError):
    kind = ProviderErrorKind.MALFORMED_RESPONSE


class ProviderTimeoutError(ProviderError):
    kind = ProviderErrorKind.TIMEOUT


class OperationCancelledError(ProviderError):
    kind = ProviderErrorKind.CANCELLED


class InvalidRequestError(ProviderError):
    """Provider rejected the request itself (unsupported language, unknown glossary)"""
    kind = ProviderErrorKind.REQUEST_REJECTED


@dataclass
class TranslationResult:
    """Result of a text translation call"""
    text: str
    detected_source_language: Optional[str] = None
    billed_characters: int = 0


@dataclass
class DocumentHandle:
    """Provider handle for a document being translated"""
    document_id: str
    document_key: str


@dataclass
class DocumentStatus:
    """Snapshot of a document translation"""
    status: str  # "queued", "translating", "done", "error"
    billed_characters: int = 0
    error_message: Optional[str] = None
    seconds_remaining: Optional[int] = None

    @property
    def is_done(self) -> bool:
        return self.status == "done"

    @property
    def is_error(self) -> bool:
        return self.status == "error"


@dataclass
class GlossaryInfo:
    """Provider-side glossary metadata"""
    glossary_id: str
    name: str
    source_lang: str
    target_lang: str
    entry_count: int = 0
    raw: Optional[Dict[str, Any]] = None


ProgressCallback = Callable[[DocumentStatus], None]


class BaseTranslationProvider(ABC):
    """
    Abstract base class for translation providers.
    All providers must implement these methods.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name, used in logs"""
        pass

    @abstractmethod
    async def translate_text(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        glossary_id: Optional[str] = None
    ) -> TranslationResult:
        """
        Translate a single piece of text.

        Args:
            text: Text to translate
            source_lang: Source language code
            target_lang: Target language code
            glossary_id: Optional provider glossary to apply

        Returns:
            TranslationResult with the translated text
        """
        pass

    async def translate_segments(
        self,
        texts: List[str],
        source_lang: str,
        target_lang: str,
        glossary_id: Optional[str] = None
    ) -> List[TranslationResult]:
        """Translate several segments, order preserved"""
        return [
            await self.translate_text(text, source_lang, target_lang, glossary_id)
            for text in texts
        ]

    @abstractmethod
    async def upload_document(
        self,
        file_name: str,
        content: bytes,
        source_lang: str,
        target_lang: str,
        glossary_id: Optional[str] = None
    ) -> DocumentHandle:
        """Start a whole-document translation"""
        pass

    @abstractmethod
    async def get_document_status(self, document_id: str, document_key: str) -> DocumentStatus:
        """Fetch current status of a document translation"""
        pass

    @abstractmethod
    async def wait_for_document_completion(
        self,
        document_id: str,
        document_key: str,
        on_progress: Optional[ProgressCallback] = None,
        cancellation_token=None,
        timeout: Optional[float] = None
    ) -> DocumentStatus:
        """
        Poll until the document is done.

        Raises:
            ProviderTimeoutError: deadline reached
            OperationCancelledError: cancellation_token was cancelled

        A final status of "error" is returned, not raised.
        """
        pass

    @abstractmethod
    async def download_document(self, document_id: str, document_key: str) -> bytes:
        """Download the translated document"""
        pass

    @abstractmethod
    async def create_glossary(
        self,
        name: str,
        source_lang: str,
        target_lang: str,
        entries: Dict[str, str]
    ) -> GlossaryInfo:
        """Create a provider-side glossary"""
        pass

    @abstractmethod
    async def delete_glossary(self, glossary_id: str) -> None:
        """Delete a provider-side glossary"""
        pass

    @abstractmethod
    async def get_glossary_entries(self, glossary_id: str) -> Dict[str, str]:
        """Entries of a provider-side glossary as source -> target"""
        pass

    async def close(self) -> None:
        """Release network resources"""
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name}>"
