#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Settings - Centralized configuration management
"""

from pathlib import Path
from typing import Dict, List, Optional
from pydantic_settings import BaseSettings

from .constants import (
    BATCH_SIZE,
    BATCH_DELAY_SECONDS,
    PROVIDER_MAX_CONCURRENCY,
    RATE_LIMIT_BACKOFF_SECONDS,
    DOCUMENT_POLL_INTERVAL,
    DOCUMENT_TIMEOUT_SECONDS,
    HTTP_TIMEOUT_SECONDS,
    OVERRIDE_CONFIDENCE_THRESHOLD,
    MAX_FILE_SIZE_MB,
    API_RATE_LIMIT,
    REVIEW_BASE_URL,
    DEEPL_FREE_URL,
    DEEPL_PRO_URL,
)


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    # ========== Provider ==========
    deepl_api_key: str = ""
    deepl_base_url: Optional[str] = None  # Derived from the key type when unset
    http_timeout_seconds: float = HTTP_TIMEOUT_SECONDS

    # ========== Fan-out & Admission Control ==========
    batch_size: int = BATCH_SIZE
    batch_delay_seconds: float = BATCH_DELAY_SECONDS
    provider_max_concurrency: int = PROVIDER_MAX_CONCURRENCY
    rate_limit_backoff_seconds: float = RATE_LIMIT_BACKOFF_SECONDS

    # ========== Document API ==========
    document_poll_interval: float = DOCUMENT_POLL_INTERVAL
    document_timeout_seconds: float = DOCUMENT_TIMEOUT_SECONDS

    # ========== Correction Memory ==========
    override_confidence_threshold: float = OVERRIDE_CONFIDENCE_THRESHOLD

    # ========== API ==========
    max_upload_size_mb: int = MAX_FILE_SIZE_MB
    rate_limit: str = API_RATE_LIMIT
    review_base_url: str = REVIEW_BASE_URL
    allowed_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Country code -> reviewer addresses for "translation ready" notices
    reviewer_emails: Dict[str, List[str]] = {}

    # ========== Directories ==========
    data_dir: Path = BASE_DIR / "data"
    upload_dir: Path = BASE_DIR / "data" / "uploads"
    output_dir: Path = BASE_DIR / "data" / "output"
    database_path: Path = BASE_DIR / "data" / "translations.db"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env that aren't defined in model

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Create directories
        for dir_path in [
            self.data_dir,
            self.upload_dir,
            self.output_dir,
            self.database_path.parent,
        ]:
            dir_path.mkdir(exist_ok=True, parents=True)

    @property
    def is_free_account(self) -> bool:
        """DeepL free-tier keys end with ':fx'"""
        return self.deepl_api_key.endswith(":fx")

    @property
    def provider_base_url(self) -> str:
        """Resolved DeepL endpoint"""
        if self.deepl_base_url:
            return self.deepl_base_url.rstrip("/")
        return DEEPL_FREE_URL if self.is_free_account else DEEPL_PRO_URL

    def get_api_key(self) -> str:
        """Get provider API key"""
        if not self.deepl_api_key:
            raise ValueError("DEEPL_API_KEY not set in .env")
        return self.deepl_api_key


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings singleton (API wiring only)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
