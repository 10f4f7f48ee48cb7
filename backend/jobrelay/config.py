"""Application settings and configuration helpers."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import List
from dotenv import load_dotenv, find_dotenv


class Settings:
    """Runtime configuration loaded from environment variables.

    Defaults are suitable for local development. Production should set
    explicit values via environment variables and Secret Manager.
    """

    APP_NAME: str = "Remote Job Relay API"
    API_PREFIX: str = "/api"

    # CORS / logging
    CORS_ORIGINS: List[str]
    LOG_LEVEL: str

    # Storage (destination uploads and OCR staging)
    GCS_BUCKET: str
    UPLOAD_PREFIX: str
    OUTPUT_PREFIX: str

    # Transport
    HTTP_TIMEOUT_SECONDS: float

    # Providers
    DOCUMENTS_API_BASE_URL: str
    DOCUMENTS_API_KEY: str
    DOCUMENTS_API_VERSION: str
    MEDIA_API_BASE_URL: str
    MEDIA_API_KEY: str
    MEDIA_API_VERSION: str
    RERANK_API_BASE_URL: str
    RERANK_API_KEY: str
    RERANK_DEFAULT_MODEL: str
    RERANK_IMAGE_MODELS: List[str]

    # Polling / fan-out
    POLL_INTERVAL_SECONDS: int
    MAX_WAIT_SECONDS: int
    FANOUT_CONCURRENCY: int

    # Limits
    MAX_SIZE_MB: int
    MAX_PAGES: int
    OCR_BATCH_SIZE: int
    RERANK_MAX_DOC_CHARS: int

    def __init__(self) -> None:
        # Load .env once (supports parent directories)
        load_dotenv(find_dotenv(), override=False)
        self.CORS_ORIGINS = self._get_list("CORS_ORIGINS", default="*")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        self.GCS_BUCKET = os.getenv("GCS_BUCKET", "jobrelay_storage")
        self.UPLOAD_PREFIX = os.getenv("UPLOAD_PREFIX", "uploads").strip("/")
        self.OUTPUT_PREFIX = os.getenv("OUTPUT_PREFIX", "outputs").strip("/")

        self.HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "60"))

        self.DOCUMENTS_API_BASE_URL = os.getenv("DOCUMENTS_API_BASE_URL", "https://api.extend.ai/")
        self.DOCUMENTS_API_KEY = os.getenv("DOCUMENTS_API_KEY", "")
        self.DOCUMENTS_API_VERSION = os.getenv("DOCUMENTS_API_VERSION", "2026-02-09")
        self.MEDIA_API_BASE_URL = os.getenv("MEDIA_API_BASE_URL", "https://api.dev.runwayml.com/")
        self.MEDIA_API_KEY = os.getenv("MEDIA_API_KEY", "")
        self.MEDIA_API_VERSION = os.getenv("MEDIA_API_VERSION", "2024-11-06")
        self.RERANK_API_BASE_URL = os.getenv("RERANK_API_BASE_URL", "https://api.jina.ai/v1/")
        self.RERANK_API_KEY = os.getenv("RERANK_API_KEY", "")
        self.RERANK_DEFAULT_MODEL = os.getenv("RERANK_DEFAULT_MODEL", "jina-reranker-v2-base-multilingual")
        self.RERANK_IMAGE_MODELS = self._get_list("RERANK_IMAGE_MODELS", default="jina-reranker-m0")

        self.POLL_INTERVAL_SECONDS = int(os.getenv("POLL_INTERVAL_SECONDS", "2"))
        self.MAX_WAIT_SECONDS = int(os.getenv("MAX_WAIT_SECONDS", "900"))
        self.FANOUT_CONCURRENCY = int(os.getenv("FANOUT_CONCURRENCY", "3"))

        self.MAX_SIZE_MB = int(os.getenv("MAX_SIZE_MB", "20"))
        self.MAX_PAGES = int(os.getenv("MAX_PAGES", "100"))
        self.OCR_BATCH_SIZE = int(os.getenv("OCR_BATCH_SIZE", "20"))
        self.RERANK_MAX_DOC_CHARS = int(os.getenv("RERANK_MAX_DOC_CHARS", "20000"))

    @staticmethod
    def _get_list(name: str, default: str = "") -> List[str]:
        raw = os.getenv(name, default)
        return [item.strip() for item in raw.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
