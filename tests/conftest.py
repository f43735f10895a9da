"""
Pytest configuration and shared fixtures for translation orchestrator tests.
"""
import sys
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional, Set

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.batch import JobOrchestrator, OrchestratorConfig, ProviderRateLimiter
from core.job_repository import JobRepository
from core.learning import CorrectionMemoryStore
from core.notifications import LoggingNotifier
from providers.base import (
    BaseTranslationProvider,
    DocumentHandle,
    DocumentStatus,
    GlossaryInfo,
    ProviderError,
    TranslationResult,
)


# ============================================================================
# Fake provider
# ============================================================================

class FakeTranslationProvider(BaseTranslationProvider):
    """
    In-memory provider with scriptable failures.

    translate_text returns "[DE] <text>"; languages listed in fail_languages
    raise the configured error instead.
    """

    def __init__(self):
        self.fail_languages: Dict[str, ProviderError] = {}
        self.glossary_error: Optional[ProviderError] = None
        self.delete_error: Optional[Exception] = None
        self.document_statuses: List[DocumentStatus] = [DocumentStatus(status="done", billed_characters=42)]
        self.document_result = b"translated document"
        self.glossary_entries: Dict[str, Dict[str, str]] = {}
        self.entries_error: Optional[ProviderError] = None

        self.translate_calls: List[tuple] = []
        self.segment_batches: List[List[str]] = []
        self.created_glossaries: List[GlossaryInfo] = []
        self.deleted_glossaries: List[str] = []
        self.uploads: List[tuple] = []
        self.closed = False
        self._glossary_seq = 0
        self._status_index = 0

    @property
    def name(self) -> str:
        return "fake"

    async def translate_text(self, text, source_lang, target_lang, glossary_id=None):
        self.translate_calls.append((text, source_lang, target_lang, glossary_id))
        error = self.fail_languages.get(target_lang)
        if error is not None:
            raise error
        return TranslationResult(text=f"[{target_lang}] {text}", billed_characters=len(text))

    async def translate_segments(self, texts, source_lang, target_lang, glossary_id=None):
        self.segment_batches.append(list(texts))
        return await super().translate_segments(texts, source_lang, target_lang, glossary_id)

    async def upload_document(self, file_name, content, source_lang, target_lang, glossary_id=None):
        self.uploads.append((file_name, source_lang, target_lang, glossary_id))
        error = self.fail_languages.get(target_lang)
        if error is not None:
            raise error
        return DocumentHandle(document_id=f"doc-{target_lang}", document_key=f"key-{target_lang}")

    async def get_document_status(self, document_id, document_key):
        status = self.document_statuses[min(self._status_index, len(self.document_statuses) - 1)]
        self._status_index += 1
        return status

    async def wait_for_document_completion(
        self, document_id, document_key, on_progress=None, cancellation_token=None, timeout=None
    ):
        while True:
            status = await self.get_document_status(document_id, document_key)
            if on_progress:
                on_progress(status)
            if status.is_done or status.is_error:
                return status

    async def download_document(self, document_id, document_key):
        return self.document_result

    async def create_glossary(self, name, source_lang, target_lang, entries):
        if self.glossary_error is not None:
            raise self.glossary_error
        self._glossary_seq += 1
        info = GlossaryInfo(
            glossary_id=f"gl-{self._glossary_seq}",
            name=name,
            source_lang=source_lang,
            target_lang=target_lang,
            entry_count=len(entries),
            raw={"entries": dict(entries)},
        )
        self.created_glossaries.append(info)
        return info

    async def delete_glossary(self, glossary_id):
        self.deleted_glossaries.append(glossary_id)
        if self.delete_error is not None:
            raise self.delete_error

    async def get_glossary_entries(self, glossary_id):
        if self.entries_error is not None:
            raise self.entries_error
        return dict(self.glossary_entries.get(glossary_id, {}))

    async def close(self):
        self.closed = True


# ============================================================================
# Fixtures: Storage
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    return temp_dir / "translations.db"


@pytest.fixture
def repository(db_path: Path) -> JobRepository:
    return JobRepository(db_path)


@pytest.fixture
def memory_store(db_path: Path) -> CorrectionMemoryStore:
    return CorrectionMemoryStore(db_path)


# ============================================================================
# Fixtures: Orchestration
# ============================================================================

@pytest.fixture
def fake_provider() -> FakeTranslationProvider:
    return FakeTranslationProvider()


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def orchestrator_config(temp_dir: Path) -> OrchestratorConfig:
    return OrchestratorConfig(
        upload_dir=temp_dir / "uploads",
        output_dir=temp_dir / "output",
        batch_size=3,
        batch_delay_seconds=0.0,
        provider_max_concurrency=3,
        rate_limit_backoff_seconds=0.01,
        document_timeout_seconds=5.0,
        review_base_url="https://review.example.com",
    )


@pytest.fixture
def orchestrator(repository, memory_store, fake_provider, orchestrator_config, notifier) -> JobOrchestrator:
    return JobOrchestrator(
        repository=repository,
        memory_store=memory_store,
        provider=fake_provider,
        config=orchestrator_config,
        notifier=notifier,
        rate_limiter=ProviderRateLimiter(capacity=3, backoff_seconds=0.01),
    )


# ============================================================================
# Fixtures: Sample Data
# ============================================================================

@pytest.fixture
def sample_text() -> bytes:
    return b"Pay 1000 EUR now. The invoice is due in 30 days!"


@pytest.fixture
def sample_srt() -> bytes:
    return (
        "1\n00:00:01,000 --> 00:00:02,000\nHello there\n\n"
        "2\n00:00:03,000 --> 00:00:04,000\nSee you\nsoon\n"
    ).encode("utf-8")


# ============================================================================
# Session-level Setup
# ============================================================================

def pytest_configure(config):
    """Register the markers applied below."""
    config.addinivalue_line("markers", "unit: fast tests without I/O beyond temp files")
    config.addinivalue_line("markers", "integration: API-level tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        # Auto-add 'unit' marker to test files in tests/unit/
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        # Auto-add 'integration' marker to test files in tests/integration/
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
