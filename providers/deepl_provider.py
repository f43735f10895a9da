#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DeepL Provider - REST client for the DeepL v2 API
Implements BaseTranslationProvider over httpx.AsyncClient.

API Documentation: https://developers.deepl.com/docs

Usage:
    provider = DeepLProvider(api_key="...")
    result = await provider.translate_text("Hello", "EN", "DE")
    await provider.close()
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from config.constants import (
    DEEPL_FREE_URL,
    DEEPL_PRO_URL,
    DOCUMENT_POLL_INTERVAL,
    DOCUMENT_TIMEOUT_SECONDS,
    FREE_DOCUMENT_LIMIT,
    FREE_OTHER_LIMIT,
    HTTP_TIMEOUT_SECONDS,
    OFFICE_EXTENSIONS,
    PRO_DOCUMENT_LIMIT,
    PRO_OTHER_LIMIT,
    SEGMENT_BATCH_SIZE,
)
from config.logging_config import get_logger

from .base import (
    AuthenticationError,
    BaseTranslationProvider,
    DocumentHandle,
    DocumentStatus,
    GlossaryInfo,
    InvalidRequestError,
    MalformedResponseError,
    OperationCancelledError,
    PayloadTooLargeError,
    ProgressCallback,
    ProviderTimeoutError,
    RateLimitedError,
    TransientServiceError,
    TranslationResult,
)

logger = get_logger(__name__)


def is_free_key(api_key: str) -> bool:
    """DeepL free-tier keys end with ':fx'"""
    return api_key.endswith(":fx")


def max_upload_size(file_name: str, free_account: bool) -> int:
    """Largest accepted upload (bytes) for this file type and account tier"""
    is_office = file_name.lower().endswith(OFFICE_EXTENSIONS)
    if free_account:
        return FREE_DOCUMENT_LIMIT if is_office else FREE_OTHER_LIMIT
    return PRO_DOCUMENT_LIMIT if is_office else PRO_OTHER_LIMIT


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class DeepLProvider(BaseTranslationProvider):
    """
    DeepL translation provider.

    HTTP status codes are mapped to typed errors in one place
    (_raise_for_status):
        413        -> PayloadTooLargeError
        401 / 403  -> AuthenticationError
        429        -> RateLimitedError (retry_after from header)
        5xx        -> TransientServiceError
        other 4xx  -> InvalidRequestError
    Transport failures map to TransientServiceError, request timeouts to
    ProviderTimeoutError, undecodable bodies to MalformedResponseError.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        poll_interval: float = DOCUMENT_POLL_INTERVAL,
        document_timeout: float = DOCUMENT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize DeepL provider.

        Args:
            api_key: DeepL auth key (":fx" suffix selects the free endpoint)
            base_url: Override endpoint
            timeout: Per-request HTTP timeout in seconds
            poll_interval: Seconds between document status polls
            document_timeout: Default deadline for document completion
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if not api_key:
            raise AuthenticationError("DeepL API key is required")

        self.api_key = api_key
        self.free_account = is_free_key(api_key)
        self.base_url = (base_url or (DEEPL_FREE_URL if self.free_account else DEEPL_PRO_URL)).rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.document_timeout = document_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings) -> "DeepLProvider":
        """Build a provider from application Settings"""
        return cls(
            api_key=settings.get_api_key(),
            base_url=settings.provider_base_url,
            timeout=settings.http_timeout_seconds,
            poll_interval=settings.document_poll_interval,
            document_timeout=settings.document_timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "deepl"

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"DeepL-Auth-Key {self.api_key}"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DeepLProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"DeepL request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            raise TransientServiceError(f"DeepL unreachable: {e}") from e

        self._raise_for_status(response)
        return response

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return

        status = response.status_code
        detail = self._error_detail(response)
        message = f"DeepL API error: {status} {detail}".strip()

        if status == 413:
            raise PayloadTooLargeError(message, status)
        if status in (401, 403):
            raise AuthenticationError(message, status)
        if status == 429:
            raise RateLimitedError(
                message, status,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if status >= 500:
            raise TransientServiceError(message, status)
        raise InvalidRequestError(message, status)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            return str(body.get("message") or body.get("detail") or "")
        return ""

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"DeepL returned non-JSON body: {response.text[:200]}") from e
        if not isinstance(body, dict):
            raise MalformedResponseError(f"DeepL returned unexpected JSON: {body!r}")
        return body

    @staticmethod
    def _require(body: Dict[str, Any], *keys: str) -> None:
        missing = [key for key in keys if key not in body]
        if missing:
            raise MalformedResponseError(f"DeepL response missing fields: {', '.join(missing)}")

    # ------------------------------------------------------------------
    # Text translation
    # ------------------------------------------------------------------

    async def translate_text(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        glossary_id: Optional[str] = None
    ) -> TranslationResult:
        data = {"text": text, "target_lang": target_lang.upper()}
        if source_lang:
            data["source_lang"] = source_lang.upper()
        if glossary_id:
            data["glossary_id"] = glossary_id

        body = self._json(await self._request("POST", "/translate", data=data))
        translations = body.get("translations")
        if not translations or not isinstance(translations, list) or "text" not in translations[0]:
            raise MalformedResponseError("DeepL response has no translations")

        item = translations[0]
        return TranslationResult(
            text=item["text"],
            detected_source_language=item.get("detected_source_language"),
            billed_characters=item.get("billed_characters", len(text)),
        )

    async def translate_segments(
        self,
        texts: List[str],
        source_lang: str,
        target_lang: str,
        glossary_id: Optional[str] = None
    ) -> List[TranslationResult]:
        """Translate in sub-batches of SEGMENT_BATCH_SIZE, concurrent within a sub-batch"""
        results: List[TranslationResult] = []
        for start in range(0, len(texts), SEGMENT_BATCH_SIZE):
            batch = texts[start:start + SEGMENT_BATCH_SIZE]
            results.extend(await asyncio.gather(*[
                self.translate_text(text, source_lang, target_lang, glossary_id)
                for text in batch
            ]))
        return results

    # ------------------------------------------------------------------
    # Document translation
    # ------------------------------------------------------------------

    def validate_file_size(self, file_name: str, size: int) -> None:
        """Raise PayloadTooLargeError when the upload exceeds the tier limit"""
        limit = max_upload_size(file_name, self.free_account)
        if size > limit:
            tier = "Free" if self.free_account else "Pro"
            raise PayloadTooLargeError(
                f"File size ({size / 1024 / 1024:.2f}MB) exceeds DeepL's {tier} tier limit "
                f"of {limit // (1024 * 1024)}MB for {Path(file_name).suffix.lower()} files. "
                f"Please use a smaller file."
            )

    async def upload_document(
        self,
        file_name: str,
        content: bytes,
        source_lang: str,
        target_lang: str,
        glossary_id: Optional[str] = None
    ) -> DocumentHandle:
        self.validate_file_size(file_name, len(content))

        data = {"target_lang": target_lang.upper()}
        if source_lang:
            data["source_lang"] = source_lang.upper()
        if glossary_id:
            data["glossary_id"] = glossary_id

        logger.info(
            f"DeepL document upload: {file_name} ({len(content) / 1024 / 1024:.2f}MB) "
            f"{source_lang}->{target_lang} glossary={glossary_id or 'none'}"
        )
        response = await self._request(
            "POST", "/document",
            data=data,
            files={"file": (file_name, content)},
        )
        body = self._json(response)
        self._require(body, "document_id", "document_key")
        return DocumentHandle(document_id=body["document_id"], document_key=body["document_key"])

    async def get_document_status(self, document_id: str, document_key: str) -> DocumentStatus:
        response = await self._request(
            "GET", f"/document/{document_id}",
            params={"document_key": document_key},
        )
        body = self._json(response)
        self._require(body, "status")
        return DocumentStatus(
            status=body["status"],
            billed_characters=body.get("billed_characters") or 0,
            error_message=body.get("error_message"),
            seconds_remaining=body.get("seconds_remaining"),
        )

    async def wait_for_document_completion(
        self,
        document_id: str,
        document_key: str,
        on_progress: Optional[ProgressCallback] = None,
        cancellation_token=None,
        timeout: Optional[float] = None
    ) -> DocumentStatus:
        deadline = self.document_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(
                self._poll_until_final(document_id, on_progress, cancellation_token, document_key),
                timeout=deadline,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"Document translation timeout after {deadline:.0f}s (document {document_id})"
            ) from e

    async def _poll_until_final(
        self,
        document_id: str,
        on_progress: Optional[ProgressCallback],
        cancellation_token,
        document_key: str
    ) -> DocumentStatus:
        while True:
            self._check_cancelled(cancellation_token, document_id)

            status = await self.get_document_status(document_id, document_key)
            if on_progress:
                on_progress(status)

            if status.is_done or status.is_error:
                return status

            logger.debug(
                f"Document {document_id}: {status.status}, "
                f"~{status.seconds_remaining}s remaining"
            )
            await asyncio.sleep(self.poll_interval)

    @staticmethod
    def _check_cancelled(cancellation_token, document_id: str) -> None:
        if cancellation_token is not None and cancellation_token.is_cancelled():
            raise OperationCancelledError(f"Cancelled while waiting for document {document_id}")

    async def download_document(self, document_id: str, document_key: str) -> bytes:
        response = await self._request(
            "GET", f"/document/{document_id}/result",
            params={"document_key": document_key},
        )
        return response.content

    # ------------------------------------------------------------------
    # Glossaries
    # ------------------------------------------------------------------

    async def create_glossary(
        self,
        name: str,
        source_lang: str,
        target_lang: str,
        entries: Dict[str, str]
    ) -> GlossaryInfo:
        entries_tsv = "\n".join(f"{source}\t{target}" for source, target in entries.items())
        response = await self._request("POST", "/glossaries", data={
            "name": name,
            "source_lang": source_lang.lower(),
            "target_lang": target_lang.lower(),
            "entries": entries_tsv,
            "entries_format": "tsv",
        })
        body = self._json(response)
        self._require(body, "glossary_id")
        logger.info(f"Created DeepL glossary {body['glossary_id']} ({name}, {len(entries)} entries)")
        return GlossaryInfo(
            glossary_id=body["glossary_id"],
            name=body.get("name", name),
            source_lang=body.get("source_lang", source_lang),
            target_lang=body.get("target_lang", target_lang),
            entry_count=body.get("entry_count", len(entries)),
            raw=body,
        )

    async def delete_glossary(self, glossary_id: str) -> None:
        await self._request("DELETE", f"/glossaries/{glossary_id}")
        logger.info(f"Deleted DeepL glossary {glossary_id}")

    async def get_glossary_entries(self, glossary_id: str) -> Dict[str, str]:
        """Fetch glossary entries (TSV) as a source -> target mapping"""
        response = await self._request(
            "GET", f"/glossaries/{glossary_id}/entries",
            headers={"Accept": "text/tab-separated-values"},
        )
        entries: Dict[str, str] = {}
        for line in response.text.splitlines():
            if not line.strip():
                continue
            source, _, target = line.partition("\t")
            source, target = source.strip(), target.strip()
            if source and target:
                entries[source] = target
        return entries
