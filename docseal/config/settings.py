"""
Application Settings.

Centralizes all configuration via .env / environment variables.
The scoring cut points live here and nowhere else.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    # --- App ---
    env: str = "development"
    debug: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # --- Database ---
    database_url: str = "sqlite:///docseal.db"

    # --- Scoring ---
    approve_threshold: int = 85
    review_threshold: int = 70
    score_weights: dict[str, float] | None = None   # None → equal weighting
    biometric_match_threshold: float = 0.95

    # --- Analysis (Gemini) ---
    analysis_timeout_seconds: float = 30.0
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"

    # --- Forensic cache ---
    cache_ttl_seconds: int = 3600
    cache_max_entries: int = 1024

    # --- Ledger ---
    ledger_backend: str = "memory"                   # "memory" | "http"
    ledger_url: str = "http://localhost:8899"
    ledger_api_key: str = ""
    ledger_timeout_seconds: float = 30.0
    attestation_schema_id: str = "schema_document_verification"
    issuer_id: str = "docseal-issuer"

    # --- Archive ---
    archive_backend: str = "memory"                  # "memory" | "http"
    archive_url: str = "http://localhost:1984"
    archive_timeout_seconds: float = 60.0
    archive_encryption_key: str = ""                 # 64 hex chars (AES-256)

    # --- Retries ---
    retry_max_attempts: int = 3
    retry_backoff_seconds: float = 1.0

    # --- Batch ---
    batch_max_size: int = 100

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Settings singleton."""
    return Settings()
