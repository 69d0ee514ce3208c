from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ──────────────────────────────────────────────
# Settings (from environment variables / .env)
# ──────────────────────────────────────────────
class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Gemini settings
    gemini_api_key: str = Field(validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"))
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float | None = None  # None → wait for the model indefinitely

    # CORS settings
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000"
    cors_allow_credentials: bool = True
    cors_allow_methods: str = "GET,POST,PUT,DELETE,OPTIONS"
    cors_allow_headers: str = "*"

    # Session settings
    session_cookie_name: str = "session_id"
    max_sessions: int = Field(default=1000, ge=1)  # least recently used sessions are dropped beyond this

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("gemini_api_key")
    @classmethod
    def _require_api_key(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("GEMINI_API_KEY must not be empty")
        return value.strip()

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def cors_methods_list(self) -> list[str]:
        """Parse CORS methods from comma-separated string."""
        if self.cors_allow_methods == "*":
            return ["*"]
        return [method.strip() for method in self.cors_allow_methods.split(",")]

    @property
    def cors_headers_list(self) -> list[str]:
        """Parse CORS headers from comma-separated string."""
        if self.cors_allow_headers == "*":
            return ["*"]
        return [header.strip() for header in self.cors_allow_headers.split(",")]

    @property
    def generate_content_url(self) -> str:
        """Full ``generateContent`` endpoint for the configured model."""
        return f"{self.gemini_api_base.rstrip('/')}/models/{self.gemini_model}:generateContent"


# Global settings instance
settings = Settings()

# ──────────────────────────────────────────────
# Paths
# ──────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent          # src/app/
TEMPLATES_DIR = BASE_DIR / "templates"

# ──────────────────────────────────────────────
# User-facing messages (Korean UI)
# ──────────────────────────────────────────────
NO_FILES_MESSAGE = "하나 이상의 파일을 업로드해주세요."
EMPTY_RESPONSE_MESSAGE = "AI로부터 유효한 응답을 받지 못했습니다."
REQUEST_FAILED_MESSAGE = "AI 예측을 가져오는 데 실패했습니다. 자세한 내용은 서버 로그를 확인해주세요."
UNKNOWN_ERROR_MESSAGE = "알 수 없는 오류가 발생했습니다."

# Content type used when neither the browser nor the filename tells us one
DEFAULT_MIME_TYPE = "application/octet-stream"
