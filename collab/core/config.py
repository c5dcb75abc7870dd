"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB (users, projects, meetups)
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "campus_collab"

    # LLM for alignment blurbs (OpenAI-compatible endpoint)
    llm_api_key: str = ""
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    llm_model: str = "gemini-2.5-flash"
    llm_max_tokens: int = 1000
    llm_temperature: float = 0.3
    llm_top_p: float = 0.8
    alignment_timeout_seconds: float = 10.0

    # Identity provider tokens (verified here, issued elsewhere)
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None
    jwt_issuer: Optional[str] = None

    # Empty list = any email domain may sign in
    allowed_email_domains: List[str] = []
    test_user_emails: List[str] = []

    # App
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def llm_configured(self) -> bool:
        """True when an API key for the alignment model is present."""
        return bool(self.llm_api_key.strip())

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
