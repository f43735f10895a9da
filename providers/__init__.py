"""
Translation Providers - external machine-translation backends

Usage:
    from providers import DeepLProvider, ProviderError

    provider = DeepLProvider(api_key="...")
    try:
        result = await provider.translate_text("Hello", "EN", "DE")
    except ProviderError as e:
        print(e.kind, e.retryable)
"""

from .base import (
    BaseTranslationProvider,
    TranslationResult,
    DocumentHandle,
    DocumentStatus,
    GlossaryInfo,
    ProviderErrorKind,
    ProviderError,
    PayloadTooLargeError,
    AuthenticationError,
    RateLimitedError,
    TransientServiceError,
    MalformedResponseError,
    ProviderTimeoutError,
    OperationCancelledError,
    InvalidRequestError,
)
from .deepl_provider import DeepLProvider, max_upload_size

__all__ = [
    'BaseTranslationProvider',
    'TranslationResult',
    'DocumentHandle',
    'DocumentStatus',
    'GlossaryInfo',
    'ProviderErrorKind',
    'ProviderError',
    'PayloadTooLargeError',
    'AuthenticationError',
    'RateLimitedError',
    'TransientServiceError',
    'MalformedResponseError',
    'ProviderTimeoutError',
    'OperationCancelledError',
    'InvalidRequestError',
    'DeepLProvider',
    'max_upload_size',
]
