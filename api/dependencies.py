"""
Service wiring for the API.

Each service is a lazily created singleton built from Settings; routers
receive them through FastAPI dependencies so tests can override them.
"""

from typing import Optional

from fastapi import Header, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from config.logging_config import get_logger
from config.settings import Settings, get_settings
from core.batch import JobOrchestrator, OrchestratorConfig
from core.corrections import CorrectionService
from core.job_repository import JobRepository
from core.learning import CorrectionMemoryStore
from core.notifications import LoggingNotifier, Notifier
from providers import BaseTranslationProvider, DeepLProvider

logger = get_logger(__name__)

# Rate limiting for mutating endpoints (RATE_LIMIT env var, default 60/minute)
limiter = Limiter(key_func=get_remote_address)


def rate_limit() -> str:
    return get_settings().rate_limit


_repository: Optional[JobRepository] = None
_memory_store: Optional[CorrectionMemoryStore] = None
_provider: Optional[BaseTranslationProvider] = None
_notifier: Optional[Notifier] = None
_orchestrator: Optional[JobOrchestrator] = None
_correction_service: Optional[CorrectionService] = None


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity, supplied by the authentication layer in front of the API"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_repository() -> JobRepository:
    global _repository
    if _repository is None:
        _repository = JobRepository(get_settings().database_path)
    return _repository


def get_memory_store() -> CorrectionMemoryStore:
    global _memory_store
    if _memory_store is None:
        _memory_store = CorrectionMemoryStore(get_settings().database_path)
    return _memory_store


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = LoggingNotifier(get_settings().reviewer_emails)
    return _notifier


def get_provider() -> BaseTranslationProvider:
    global _provider
    if _provider is None:
        settings: Settings = get_settings()
        try:
            _provider = DeepLProvider.from_settings(settings)
        except ValueError as e:
            logger.error(f"Translation provider not configured: {e}")
            raise HTTPException(status_code=503, detail="Translation provider not configured")
    return _provider


def get_orchestrator() -> JobOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = JobOrchestrator(
            repository=get_repository(),
            memory_store=get_memory_store(),
            provider=get_provider(),
            config=OrchestratorConfig.from_settings(get_settings()),
            notifier=get_notifier(),
        )
    return _orchestrator


def get_correction_service() -> CorrectionService:
    global _correction_service
    if _correction_service is None:
        _correction_service = CorrectionService(
            repository=get_repository(),
            memory_store=get_memory_store(),
            notifier=get_notifier(),
        )
    return _correction_service


async def shutdown_services() -> None:
    """Stop in-flight jobs and close the provider's HTTP client."""
    if _orchestrator is not None:
        await _orchestrator.shutdown()
    if _provider is not None:
        await _provider.close()
